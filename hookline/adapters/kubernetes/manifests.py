"""Conversion between Kubernetes JSON objects and domain models.

GitLabSource objects follow the sources.knative.dev/v1alpha1 schema;
receivers are Knative serving.knative.dev/v1 Services.
"""

from datetime import datetime
from typing import Any

from hookline.core.models import (
    Condition,
    ConditionStatus,
    Destination,
    EventAttributes,
    ObjectRef,
    ReceiverService,
    ReceiverSpec,
    SecretKeyRef,
    Source,
    SourceSpec,
    SourceStatus,
)

KNATIVE_SERVING_API_VERSION = "serving.knative.dev/v1"


def parse_time(value: str | None) -> datetime | None:
    """Parse an RFC 3339 timestamp as written by the API server."""
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def format_time(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


def _secret_ref(data: dict[str, Any] | None) -> SecretKeyRef | None:
    ref = (data or {}).get("secretKeyRef")
    if not ref:
        return None
    return SecretKeyRef(name=ref.get("name", ""), key=ref.get("key", ""))


def _destination(data: dict[str, Any] | None) -> Destination:
    data = data or {}
    ref = data.get("ref")
    return Destination(
        ref=(
            ObjectRef(
                api_version=ref.get("apiVersion", ""),
                kind=ref.get("kind", ""),
                name=ref.get("name", ""),
                namespace=ref.get("namespace", ""),
            )
            if ref
            else None
        ),
        uri=data.get("uri") or None,
    )


def _condition(data: dict[str, Any]) -> Condition:
    try:
        status = ConditionStatus(data.get("status", "Unknown"))
    except ValueError:
        status = ConditionStatus.UNKNOWN
    return Condition(
        type=data["type"],
        status=status,
        reason=data.get("reason", ""),
        message=data.get("message", ""),
        last_transition_time=parse_time(data.get("lastTransitionTime")),
    )


def source_from_manifest(obj: dict[str, Any]) -> Source:
    """Build a Source from a GitLabSource object."""
    metadata = obj.get("metadata", {})
    spec = obj.get("spec", {})
    status = obj.get("status", {})

    # A missing access token reference is kept as an empty reference so
    # validation can report it.
    access_token = _secret_ref(spec.get("accessToken")) or SecretKeyRef(name="", key="")
    webhook_id = status.get("webhookID")

    return Source(
        namespace=metadata.get("namespace", ""),
        name=metadata.get("name", ""),
        uid=metadata.get("uid", ""),
        generation=int(metadata.get("generation", 0)),
        resource_version=metadata.get("resourceVersion", ""),
        deletion_timestamp=parse_time(metadata.get("deletionTimestamp")),
        finalizers=list(metadata.get("finalizers", [])),
        spec=SourceSpec(
            event_types=tuple(spec.get("eventTypes") or ()),
            access_token=access_token,
            sink=_destination(spec.get("sink")),
            project_url=spec.get("projectUrl", ""),
            group_url=spec.get("groupUrl", ""),
            secret_token=_secret_ref(spec.get("secretToken")),
            ssl_verify=bool(spec.get("sslverify", False)),
            service_account_name=spec.get("serviceAccountName", ""),
        ),
        status=SourceStatus(
            observed_generation=int(status.get("observedGeneration", 0)),
            sink_uri=status.get("sinkUri", ""),
            webhook_id="" if webhook_id is None else str(webhook_id),
            conditions=[_condition(c) for c in status.get("conditions", [])],
            event_attributes=[
                EventAttributes(type=a.get("type", ""), source=a.get("source", ""))
                for a in status.get("ceAttributes", [])
            ],
        ),
    )


def status_to_manifest(status: SourceStatus) -> dict[str, Any]:
    """Render a SourceStatus in its JSON form."""
    body: dict[str, Any] = {
        "observedGeneration": status.observed_generation,
        "conditions": [
            {
                key: value
                for key, value in (
                    ("type", c.type),
                    ("status", c.status.value),
                    ("reason", c.reason),
                    ("message", c.message),
                    ("lastTransitionTime", format_time(c.last_transition_time)),
                )
                if value
            }
            for c in status.conditions
        ],
    }
    if status.sink_uri:
        body["sinkUri"] = status.sink_uri
    if status.event_attributes:
        body["ceAttributes"] = [
            {"type": a.type, "source": a.source} for a in status.event_attributes
        ]
    if status.webhook_id:
        body["webhookID"] = (
            int(status.webhook_id) if status.webhook_id.isdigit() else status.webhook_id
        )
    return body


def receiver_manifest(spec: ReceiverSpec) -> dict[str, Any]:
    """Render a receiver spec as a Knative Service."""
    env: list[dict[str, Any]] = []
    for var in spec.env:
        if var.secret_ref is not None:
            env.append(
                {
                    "name": var.name,
                    "valueFrom": {
                        "secretKeyRef": {
                            "name": var.secret_ref.name,
                            "key": var.secret_ref.key,
                        }
                    },
                }
            )
        else:
            env.append({"name": var.name, "value": var.value or ""})

    pod_spec: dict[str, Any] = {"containers": [{"image": spec.image, "env": env}]}
    if spec.service_account_name:
        pod_spec["serviceAccountName"] = spec.service_account_name

    owner = spec.owner
    return {
        "apiVersion": KNATIVE_SERVING_API_VERSION,
        "kind": "Service",
        "metadata": {
            "generateName": spec.generate_name,
            "namespace": spec.namespace,
            "labels": dict(spec.labels),
            "ownerReferences": [
                {
                    "apiVersion": owner.api_version,
                    "kind": owner.kind,
                    "name": owner.name,
                    "uid": owner.uid,
                    "controller": owner.controller,
                    "blockOwnerDeletion": True,
                }
            ],
        },
        "spec": {
            "template": {
                "metadata": {"labels": dict(spec.labels)},
                "spec": pod_spec,
            }
        },
    }


def receiver_from_manifest(obj: dict[str, Any]) -> ReceiverService:
    """Build a ReceiverService from a Knative Service object."""
    metadata = obj.get("metadata", {})
    status = obj.get("status", {})
    ready = any(
        c.get("type") == "Ready" and c.get("status") == "True"
        for c in status.get("conditions", [])
    )
    return ReceiverService(
        name=metadata.get("name", ""),
        namespace=metadata.get("namespace", ""),
        owner_uids=tuple(
            ref.get("uid", "")
            for ref in metadata.get("ownerReferences", [])
            if ref.get("controller")
        ),
        ready=ready,
        address=status.get("url") or None,
    )
