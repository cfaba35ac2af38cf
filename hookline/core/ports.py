"""Port interfaces for the hookline GitLab event source.

These abstract base classes define the boundaries between core
domain logic and external adapters. Implementations live in the
adapters/ package.

Port Interface Categories:

1. **Driven Ports** (core calls out to adapters)
   - SecretStorePort: Read credential Secrets
   - SinkResolverPort: Resolve a sink destination to a URI
   - ReceiverPlatformPort: List and create receiver services
   - WebhookClientPort / WebhookClientFactoryPort: GitLab hook CRUD
   - EventRecorderPort: Emit events about a source
   - SourceStorePort: List sources and persist their status
   - EventSinkPort: Deliver translated events

2. **Driving Ports** (adapters/external systems call into core)
   - ReconcilerPort: Entry point for reconciliation and finalization
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping

from .models import (
    CanonicalEvent,
    Destination,
    EventKind,
    HookOptions,
    ReceiverService,
    ReceiverSpec,
    Scope,
    Source,
    WebhookRegistration,
)


# ============================================================================
# DRIVEN PORTS (Core calls out to adapters)
# ============================================================================


class SecretStorePort(ABC):
    """Port for reading Secret objects holding GitLab credentials."""

    @abstractmethod
    async def get_secret(self, namespace: str, name: str) -> Mapping[str, str] | None:
        """Retrieve the decoded data of a Secret.

        Args:
            namespace: Namespace of the Secret.
            name: Name of the Secret.

        Returns:
            Mapping of key to plaintext value, or None if the Secret
            does not exist.

        Raises:
            ApiError: If the backend is unreachable or returns an error.
        """


class SinkResolverPort(ABC):
    """Port for resolving a sink destination to an address."""

    @abstractmethod
    async def resolve(self, destination: Destination, namespace: str) -> str:
        """Resolve a destination to a URI.

        Args:
            destination: Object reference or literal URI.
            namespace: Namespace used when the reference omits one.

        Returns:
            Absolute URI of the sink.

        Raises:
            SinkNotFoundError: If the destination cannot be resolved (yet).
        """


class ReceiverPlatformPort(ABC):
    """Port for the platform that runs receiver services.

    Receivers are discovered by listing and filtering on their owner,
    never by name: names are generated by the platform.
    """

    @abstractmethod
    async def list_receivers(self, namespace: str) -> list[ReceiverService]:
        """List every receiver service in a namespace.

        Raises:
            ApiError: If the platform is unreachable.
        """

    @abstractmethod
    async def create_receiver(self, spec: ReceiverSpec) -> ReceiverService:
        """Create a receiver service.

        Returns:
            The created service. It is usually not ready yet.

        Raises:
            ApiError: If creation is rejected.
        """


class WebhookClientPort(ABC):
    """Port for the webhook registrations of one GitLab project or group."""

    @abstractmethod
    async def get(self, hook_id: int) -> WebhookRegistration:
        """Fetch a registration by ID.

        Raises:
            ProviderNotFoundError: If the registration does not exist.
            ProviderUnauthorizedError: If the token is rejected.
            ProviderError: For any other failure.
        """

    @abstractmethod
    async def add(self, options: HookOptions) -> int:
        """Create a registration and return its ID.

        Raises:
            ProviderError: If the provider rejects the request.
        """

    @abstractmethod
    async def edit(self, hook_id: int, options: HookOptions) -> None:
        """Overwrite a registration with the given field set.

        Raises:
            ProviderError: If the provider rejects the request.
        """

    @abstractmethod
    async def delete(self, hook_id: int) -> None:
        """Delete a registration.

        Raises:
            ProviderNotFoundError: If the registration does not exist.
            ProviderError: For any other failure.
        """


class WebhookClientFactoryPort(ABC):
    """Port for obtaining a webhook client for a scope."""

    @abstractmethod
    def client_for(self, scope: Scope, access_token: str) -> WebhookClientPort:
        """Return a client for the project or group described by scope."""


class EventRecorderPort(ABC):
    """Port for emitting human-facing events about a source."""

    @abstractmethod
    async def record(
        self, source: Source, kind: EventKind, reason: str, message: str
    ) -> None:
        """Record an event against a source.

        Implementations should not raise: recording is best-effort.
        """


class SourceStorePort(ABC):
    """Port for reading sources and persisting what the reconciler owns."""

    @abstractmethod
    async def list_sources(self) -> list[Source]:
        """List every GitLabSource.

        Raises:
            ApiError: If the backend is unreachable.
        """

    @abstractmethod
    async def update_status(self, source: Source) -> Source:
        """Persist the status of a source.

        Returns:
            The source as stored (with a new resource version).

        Raises:
            ApiConflictError: If the source changed since it was read.
            ApiNotFoundError: If the source no longer exists.
        """

    @abstractmethod
    async def set_finalizers(self, source: Source, finalizers: list[str]) -> Source:
        """Replace the finalizers of a source.

        Raises:
            ApiConflictError: If the source changed since it was read.
        """


class EventSinkPort(ABC):
    """Port for delivering translated events to the sink."""

    @abstractmethod
    async def send(self, event: CanonicalEvent) -> None:
        """Send one event.

        Raises:
            DeliveryError: If the sink does not acknowledge the event.
        """


# ============================================================================
# DRIVING PORTS (Adapters/external systems call into core)
# ============================================================================


class ReconcilerPort(ABC):
    """Port for driving sources toward their desired state.

    Driving port: the resync scheduler invokes these methods at least once
    after any change to a source and periodically. Calls for the same
    source are never concurrent.
    """

    @abstractmethod
    async def reconcile(self, source: Source) -> Source:
        """Run one level-triggered reconciliation pass.

        Returns:
            The source with its updated status.

        Raises:
            ReconcileError: If the pass should be re-queued.
        """

    @abstractmethod
    async def finalize(self, source: Source) -> None:
        """Release external resources before the source is removed.

        Raises:
            ReconcileError: If finalization should be retried.
        """
