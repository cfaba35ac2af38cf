"""Lifecycle of the receiver service owned by a source.

Each source owns exactly one receiver. Receivers have generated names, so
discovery lists the namespace and filters on the controller owner
reference; a receiver is created only when that filter yields nothing.
"""

import logging
from collections.abc import Mapping

from .models import (
    SOURCE_API_VERSION,
    SOURCE_KIND,
    EnvVar,
    OwnerReference,
    ReceiverService,
    ReceiverSpec,
    Source,
)
from .ports import ReceiverPlatformPort

logger = logging.getLogger(__name__)

RECEIVER_LABEL = "receive-adapter"
RECEIVER_LABEL_VALUE = "gitlab"
SOURCE_NAME_LABEL = "sources.knative.dev/gitlabsource"

METRICS_DOMAIN = "knative.dev/eventing"
METRICS_PROMETHEUS_PORT = "9092"


class ReceiverLifecycleManager:
    """Finds or creates the receiver service of a source."""

    def __init__(
        self,
        platform: ReceiverPlatformPort,
        image: str,
        extra_env: Mapping[str, str] | None = None,
    ):
        """Initialize the manager.

        Args:
            platform: Platform that runs receiver services.
            image: Container image of the receiver.
            extra_env: Additional environment passed to every receiver
                (logging and tracing configuration, for example).
        """
        self.platform = platform
        self.image = image
        self.extra_env = dict(extra_env or {})

    async def find_owned(self, source: Source) -> ReceiverService | None:
        """Return the receiver controlled by the source, if any."""
        for receiver in await self.platform.list_receivers(source.namespace):
            if receiver.is_controlled_by(source):
                return receiver
        return None

    async def ensure(self, source: Source, sink_uri: str) -> tuple[ReceiverService, bool]:
        """Return the source's receiver, creating it when absent.

        An existing receiver is reused as-is; its environment is fixed at
        creation.

        Returns:
            Tuple of (receiver, created).

        Raises:
            ApiError: If listing or creation fails.
        """
        existing = await self.find_owned(source)
        if existing is not None:
            return existing, False
        return await self.create(source, sink_uri), True

    async def create(self, source: Source, sink_uri: str) -> ReceiverService:
        """Create a receiver for the source without looking for one first."""
        spec = self.build_spec(source, sink_uri)
        receiver = await self.platform.create_receiver(spec)
        logger.info(
            f"Created receiver {receiver.name} for source {source.key}",
            extra={"image": self.image},
        )
        return receiver

    def build_spec(self, source: Source, sink_uri: str) -> ReceiverSpec:
        """Describe the receiver service for a source."""
        if source.spec.secret_token is not None:
            token_var = EnvVar(name="GITLAB_SECRET_TOKEN", secret_ref=source.spec.secret_token)
        else:
            token_var = EnvVar(name="GITLAB_SECRET_TOKEN", value="")

        env = [
            token_var,
            EnvVar(name="GITLAB_EVENT_SOURCE", value=source.as_event_source()),
            EnvVar(name="K_SINK", value=sink_uri),
            EnvVar(name="NAMESPACE", value=source.namespace),
            EnvVar(name="METRICS_DOMAIN", value=METRICS_DOMAIN),
            EnvVar(name="METRICS_PROMETHEUS_PORT", value=METRICS_PROMETHEUS_PORT),
        ]
        env.extend(EnvVar(name=k, value=v) for k, v in sorted(self.extra_env.items()))

        return ReceiverSpec(
            namespace=source.namespace,
            generate_name=f"{source.name}-",
            image=self.image,
            env=tuple(env),
            labels={
                RECEIVER_LABEL: RECEIVER_LABEL_VALUE,
                SOURCE_NAME_LABEL: source.name,
            },
            owner=OwnerReference(
                api_version=SOURCE_API_VERSION,
                kind=SOURCE_KIND,
                name=source.name,
                uid=source.uid,
            ),
            service_account_name=source.spec.service_account_name,
        )
