"""Exception hierarchy for the hookline core.

Adapters translate transport failures (httpx, aiohttp, Kubernetes API
responses) into these types so the core never depends on a client library.

Error categories:

1. Admission: SourceValidationError
2. Kubernetes API: ApiError and its not-found / conflict subclasses
3. Collaborators: SecretNotFoundError, SinkNotFoundError
4. GitLab API: ProviderError and its not-found / unauthorized subclasses
5. Reconciliation outcome: ReconcileError (the pass must be re-queued)
6. Inbound webhooks: TranslationError and subclasses, DeliveryError
"""

from dataclasses import dataclass


class HooklineError(Exception):
    """Base class for all hookline errors."""


# ============================================================================
# Admission
# ============================================================================


@dataclass(frozen=True)
class FieldError:
    """A single invalid field on a desired-state object."""

    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.message}: {self.path}"


class SourceValidationError(HooklineError):
    """A GitLabSource failed admission validation."""

    def __init__(self, errors: list[FieldError]):
        self.errors = list(errors)
        super().__init__("; ".join(str(e) for e in self.errors))


# ============================================================================
# Kubernetes API
# ============================================================================


class ApiError(HooklineError):
    """The Kubernetes API returned an unexpected response."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class ApiNotFoundError(ApiError):
    """The requested Kubernetes object does not exist."""


class ApiConflictError(ApiError):
    """A write was rejected because the object changed in the meantime."""


# ============================================================================
# Collaborators
# ============================================================================


class SecretNotFoundError(HooklineError):
    """A referenced Secret, or a key inside it, does not exist."""

    def __init__(self, name: str, key: str | None = None):
        self.name = name
        self.key = key
        if key is None:
            message = f'secret "{name}" not found'
        else:
            message = f'key "{key}" not found in secret "{name}"'
        super().__init__(message)


class SinkNotFoundError(HooklineError):
    """The sink destination could not be resolved to an address."""


# ============================================================================
# GitLab API
# ============================================================================


class ProviderError(HooklineError):
    """The webhook provider rejected a request or could not be reached.

    Treated as retryable unless a more specific subclass says otherwise.
    """

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class ProviderNotFoundError(ProviderError):
    """The webhook registration (or its project/group) does not exist."""


class ProviderUnauthorizedError(ProviderError):
    """The access token was rejected by the provider."""


# ============================================================================
# Reconciliation
# ============================================================================


class ReconcileError(HooklineError):
    """A reconciliation pass failed and should be re-queued.

    Carries a machine-readable reason alongside the message, mirroring the
    condition that was recorded on the source status.
    """

    def __init__(self, reason: str, message: str):
        self.reason = reason
        self.message = message
        super().__init__(f"{reason}: {message}")


# ============================================================================
# Inbound webhooks
# ============================================================================


class TranslationError(HooklineError):
    """An inbound webhook call was rejected. Maps to HTTP 400."""


class TokenVerificationError(TranslationError):
    """The X-Gitlab-Token header did not match the configured secret."""

    def __init__(self) -> None:
        super().__init__("token validation failed")


class MissingEventHeaderError(TranslationError):
    """The X-Gitlab-Event header is absent or blank."""

    def __init__(self) -> None:
        super().__init__("missing X-Gitlab-Event header")


class InvalidEventHeaderError(TranslationError):
    """The X-Gitlab-Event header does not follow the "<Words> Hook" form."""

    def __init__(self, header: str):
        self.header = header
        super().__init__(f"invalid webhook event type {header!r}")


class UnsupportedEventError(TranslationError):
    """The event category is well-formed but not one this source emits."""

    def __init__(self, header: str):
        self.header = header
        super().__init__(f"event not defined to be parsed: {header!r}")


class EmptyPayloadError(TranslationError):
    """The request body was empty."""

    def __init__(self) -> None:
        super().__init__("error reading request body: empty payload")


class InvalidPayloadError(TranslationError):
    """The request body is not a JSON object."""


class DeliveryError(HooklineError):
    """The sink did not acknowledge an event. Maps to HTTP 500."""


__all__ = [
    "ApiConflictError",
    "ApiError",
    "ApiNotFoundError",
    "DeliveryError",
    "EmptyPayloadError",
    "FieldError",
    "HooklineError",
    "InvalidEventHeaderError",
    "InvalidPayloadError",
    "MissingEventHeaderError",
    "ProviderError",
    "ProviderNotFoundError",
    "ProviderUnauthorizedError",
    "ReconcileError",
    "SecretNotFoundError",
    "SinkNotFoundError",
    "SourceValidationError",
    "TokenVerificationError",
    "TranslationError",
    "UnsupportedEventError",
]
