"""Sink resolution adapter.

Implements SinkResolverPort. A URI destination is used as-is. An object
reference is resolved through the Addressable contract (status.address.url),
except for core Services which are addressed by their cluster DNS name.
"""

import logging

from hookline.core.errors import ApiNotFoundError, SinkNotFoundError
from hookline.core.models import Destination
from hookline.core.ports import SinkResolverPort

from .client import KubeApiClient, api_errors, split_api_version

logger = logging.getLogger(__name__)


def plural_of(kind: str) -> str:
    """Plural resource name of a kind.

    Lowercasing and appending "s" holds for every addressable kind in
    Knative (brokers, channels, services, parallels, sequences).
    """
    return kind.lower() + "s"


class KubeSinkResolver(SinkResolverPort):
    """Resolves destinations to URIs through the Kubernetes API."""

    def __init__(self, api: KubeApiClient, cluster_domain: str = "cluster.local"):
        self.api = api
        self.cluster_domain = cluster_domain

    async def resolve(self, destination: Destination, namespace: str) -> str:
        if destination.uri and destination.ref is None:
            return destination.uri
        ref = destination.ref
        if ref is None:
            raise SinkNotFoundError("sink has neither ref nor uri")

        ref_namespace = ref.namespace or namespace
        group, version = split_api_version(ref.api_version)
        if not group:
            if ref.kind == "Service":
                return f"http://{ref.name}.{ref_namespace}.svc.{self.cluster_domain}/"
            raise SinkNotFoundError(f"{ref.kind} {ref_namespace}/{ref.name} is not addressable")

        try:
            with api_errors(f"get {ref.kind} {ref_namespace}/{ref.name}"):
                obj = await self.api.custom.get_namespaced_custom_object(
                    group=group,
                    version=version,
                    namespace=ref_namespace,
                    plural=plural_of(ref.kind),
                    name=ref.name,
                )
        except ApiNotFoundError as e:
            raise SinkNotFoundError(
                f"{ref.kind} {ref_namespace}/{ref.name} does not exist"
            ) from e

        url = ((obj.get("status") or {}).get("address") or {}).get("url")
        if not url:
            raise SinkNotFoundError(
                f"{ref.kind} {ref_namespace}/{ref.name} does not have an address yet"
            )
        logger.debug(f"Resolved sink {ref.kind} {ref_namespace}/{ref.name} to {url}")
        return url
