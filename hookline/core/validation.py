"""Admission validation for GitLabSource objects.

Invalid sources never reach the reconciler. Errors are collected rather
than raised one at a time so a user sees every problem at once.
"""

from .errors import FieldError, SourceValidationError
from .models import Source


def validate_source(source: Source) -> None:
    """Validate a source's spec.

    Raises:
        SourceValidationError: Listing every invalid field.
    """
    errors = collect_errors(source)
    if errors:
        raise SourceValidationError(errors)


def collect_errors(source: Source) -> list[FieldError]:
    """Return all validation errors for a source, empty when valid."""
    spec = source.spec
    errors: list[FieldError] = []

    if spec.project_url and spec.group_url:
        errors.append(
            FieldError("spec.projectUrl, spec.groupUrl", "expected exactly one, got both")
        )
    elif not spec.project_url and not spec.group_url:
        errors.append(
            FieldError("spec.projectUrl, spec.groupUrl", "expected exactly one, got neither")
        )
    else:
        try:
            spec.scope()
        except ValueError as e:
            path = "spec.projectUrl" if spec.project_url else "spec.groupUrl"
            errors.append(FieldError(path, f"invalid value: {e}"))

    if not spec.event_types:
        errors.append(FieldError("spec.eventTypes", "expected at least one, got none"))
    elif any(not t for t in spec.event_types):
        errors.append(FieldError("spec.eventTypes", "invalid value: empty event type"))

    if not spec.access_token.name or not spec.access_token.key:
        errors.append(FieldError("spec.accessToken.secretKeyRef", "missing field(s): name, key"))

    if spec.secret_token is not None and (
        not spec.secret_token.name or not spec.secret_token.key
    ):
        errors.append(FieldError("spec.secretToken.secretKeyRef", "missing field(s): name, key"))

    sink = spec.sink
    if sink.ref is None and not sink.uri:
        errors.append(FieldError("spec.sink.ref, spec.sink.uri", "expected at least one, got none"))
    elif sink.ref is not None and sink.uri:
        errors.append(FieldError("spec.sink.ref, spec.sink.uri", "expected exactly one, got both"))
    elif sink.ref is not None:
        missing = [
            name
            for name, value in (
                ("apiVersion", sink.ref.api_version),
                ("kind", sink.ref.kind),
                ("name", sink.ref.name),
            )
            if not value
        ]
        if missing:
            errors.append(
                FieldError("spec.sink.ref", f"missing field(s): {', '.join(missing)}")
            )

    return errors
