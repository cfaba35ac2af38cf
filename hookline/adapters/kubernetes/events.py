"""Kubernetes event recorder adapter.

Implements EventRecorderPort with core/v1 Events attached to the
GitLabSource object. Recording is best effort: failures are logged and
never reach the caller.
"""

import logging
import uuid
from datetime import datetime, timezone

from hookline.core.errors import ApiError
from hookline.core.models import SOURCE_API_VERSION, SOURCE_KIND, EventKind, Source
from hookline.core.ports import EventRecorderPort

from .client import KubeApiClient, api_errors
from .manifests import format_time

logger = logging.getLogger(__name__)


class KubeEventRecorder(EventRecorderPort):
    """Creates Events about sources through CoreV1Api."""

    def __init__(self, api: KubeApiClient, component: str = "gitlab-controller"):
        self.api = api
        self.component = component

    async def record(self, source: Source, kind: EventKind, reason: str, message: str) -> None:
        now = format_time(datetime.now(timezone.utc))
        body = {
            "apiVersion": "v1",
            "kind": "Event",
            "metadata": {
                "name": f"{source.name}.{uuid.uuid4().hex[:16]}",
                "namespace": source.namespace,
            },
            "involvedObject": {
                "apiVersion": SOURCE_API_VERSION,
                "kind": SOURCE_KIND,
                "name": source.name,
                "namespace": source.namespace,
                "uid": source.uid,
                "resourceVersion": source.resource_version,
            },
            "type": kind,
            "reason": reason,
            "message": message,
            "source": {"component": self.component},
            "firstTimestamp": now,
            "lastTimestamp": now,
            "count": 1,
        }
        try:
            with api_errors(f"record event for {source.key}"):
                await self.api.core.create_namespaced_event(
                    namespace=source.namespace, body=body
                )
        except ApiError as e:
            logger.warning(f"Failed to record {reason} event for {source.key}: {e}")
