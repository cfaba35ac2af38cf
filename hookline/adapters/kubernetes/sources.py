"""GitLabSource store adapter.

Implements SourceStorePort with the sources.knative.dev/v1alpha1
gitlabsources custom resource. Status is written through the status
subresource; finalizers with a JSON patch guarded by resourceVersion.
"""

import logging

from hookline.core.models import Source
from hookline.core.ports import SourceStorePort

from .client import KubeApiClient, api_errors
from .manifests import source_from_manifest, status_to_manifest

logger = logging.getLogger(__name__)

GROUP = "sources.knative.dev"
VERSION = "v1alpha1"
PLURAL = "gitlabsources"


class KubeSourceStore(SourceStorePort):
    """Reads and updates GitLabSource objects."""

    def __init__(self, api: KubeApiClient, namespace: str = ""):
        """Initialize the store.

        Args:
            api: Kubernetes API client.
            namespace: Restrict to one namespace; empty watches all.
        """
        self.api = api
        self.namespace = namespace

    async def list_sources(self) -> list[Source]:
        with api_errors("list GitLabSources"):
            if self.namespace:
                data = await self.api.custom.list_namespaced_custom_object(
                    group=GROUP, version=VERSION, namespace=self.namespace, plural=PLURAL
                )
            else:
                data = await self.api.custom.list_cluster_custom_object(
                    group=GROUP, version=VERSION, plural=PLURAL
                )
        return [source_from_manifest(item) for item in data.get("items", [])]

    async def update_status(self, source: Source) -> Source:
        body = {
            "apiVersion": f"{GROUP}/{VERSION}",
            "kind": "GitLabSource",
            "metadata": {
                "name": source.name,
                "namespace": source.namespace,
                "resourceVersion": source.resource_version,
            },
            "status": status_to_manifest(source.status),
        }
        with api_errors(f"update status of GitLabSource {source.key}"):
            updated = await self.api.custom.replace_namespaced_custom_object_status(
                group=GROUP,
                version=VERSION,
                namespace=source.namespace,
                plural=PLURAL,
                name=source.name,
                body=body,
            )
        logger.debug(f"Updated status of GitLabSource {source.key}")
        return source_from_manifest(updated)

    async def set_finalizers(self, source: Source, finalizers: list[str]) -> Source:
        # A list body is sent as application/json-patch+json
        patch = [
            {
                "op": "test",
                "path": "/metadata/resourceVersion",
                "value": source.resource_version,
            },
            {"op": "add", "path": "/metadata/finalizers", "value": list(finalizers)},
        ]
        with api_errors(f"set finalizers of GitLabSource {source.key}"):
            updated = await self.api.custom.patch_namespaced_custom_object(
                group=GROUP,
                version=VERSION,
                namespace=source.namespace,
                plural=PLURAL,
                name=source.name,
                body=patch,
            )
        return source_from_manifest(updated)
