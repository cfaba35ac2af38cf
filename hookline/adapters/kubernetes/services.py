"""Knative Serving receiver platform adapter.

Implements ReceiverPlatformPort with serving.knative.dev/v1 Services read
and created through the custom objects API. A receiver is ready when its
Ready condition is True and addressable once status.url is set.
"""

import logging

from hookline.core.models import ReceiverService, ReceiverSpec
from hookline.core.ports import ReceiverPlatformPort

from .client import KubeApiClient, api_errors
from .manifests import receiver_from_manifest, receiver_manifest

logger = logging.getLogger(__name__)

SERVING_GROUP = "serving.knative.dev"
SERVING_VERSION = "v1"
SERVICES = "services"


class KnativeServicePlatform(ReceiverPlatformPort):
    """Lists and creates Knative Services."""

    def __init__(self, api: KubeApiClient, label_selector: str = ""):
        """Initialize the platform.

        Args:
            api: Kubernetes API client.
            label_selector: Optional selector narrowing the listed services.
        """
        self.api = api
        self.label_selector = label_selector

    async def list_receivers(self, namespace: str) -> list[ReceiverService]:
        kwargs = {"label_selector": self.label_selector} if self.label_selector else {}
        with api_errors(f"list Knative services in {namespace}"):
            data = await self.api.custom.list_namespaced_custom_object(
                group=SERVING_GROUP,
                version=SERVING_VERSION,
                namespace=namespace,
                plural=SERVICES,
                **kwargs,
            )
        return [receiver_from_manifest(item) for item in data.get("items", [])]

    async def create_receiver(self, spec: ReceiverSpec) -> ReceiverService:
        with api_errors(f"create Knative service in {spec.namespace}"):
            created = await self.api.custom.create_namespaced_custom_object(
                group=SERVING_GROUP,
                version=SERVING_VERSION,
                namespace=spec.namespace,
                plural=SERVICES,
                body=receiver_manifest(spec),
            )
        receiver = receiver_from_manifest(created)
        logger.debug(f"Created Knative service {spec.namespace}/{receiver.name}")
        return receiver
