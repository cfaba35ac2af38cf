"""Domain models for the hookline GitLab event source.

All models in this module use only Python standard library types,
ensuring zero external dependencies in the core domain.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Literal, TypeAlias
from urllib.parse import urlsplit

# String prepended to GitLab event types to make them fully-qualified.
EVENT_TYPE_PREFIX = "dev.knative.sources.gitlab."

# Types of events emitted by a GitLabSource. They match the "object_kind"
# attribute of the payloads GitLab sends.
EVENT_TYPE_BUILD = "build"
EVENT_TYPE_DEPLOYMENT = "deployment"
EVENT_TYPE_ISSUE = "issue"
EVENT_TYPE_MERGE_REQUEST = "merge_request"
EVENT_TYPE_NOTE = "note"
EVENT_TYPE_PIPELINE = "pipeline"
EVENT_TYPE_PUSH = "push"
EVENT_TYPE_TAG_PUSH = "tag_push"
EVENT_TYPE_WIKI_PAGE = "wiki_page"

# Webhook categories that can be enabled on a GitLab project or group.
WEBHOOK_CONFIDENTIAL_ISSUES = "confidential_issues_events"
WEBHOOK_CONFIDENTIAL_NOTE = "confidential_note_events"
WEBHOOK_DEPLOYMENT = "deployment_events"
WEBHOOK_ISSUES = "issues_events"
WEBHOOK_JOB = "job_events"
WEBHOOK_MERGE_REQUESTS = "merge_requests_events"
WEBHOOK_NOTE = "note_events"
WEBHOOK_PIPELINE = "pipeline_events"
WEBHOOK_PUSH = "push_events"
WEBHOOK_TAG_PUSH = "tag_push_events"
WEBHOOK_WIKI_PAGE = "wiki_page_events"

EVENT_TYPES_BY_WEBHOOK: Mapping[str, str] = MappingProxyType(
    {
        WEBHOOK_CONFIDENTIAL_ISSUES: EVENT_TYPE_ISSUE,
        WEBHOOK_CONFIDENTIAL_NOTE: EVENT_TYPE_NOTE,
        WEBHOOK_DEPLOYMENT: EVENT_TYPE_DEPLOYMENT,
        WEBHOOK_ISSUES: EVENT_TYPE_ISSUE,
        WEBHOOK_JOB: EVENT_TYPE_BUILD,
        WEBHOOK_MERGE_REQUESTS: EVENT_TYPE_MERGE_REQUEST,
        WEBHOOK_NOTE: EVENT_TYPE_NOTE,
        WEBHOOK_PIPELINE: EVENT_TYPE_PIPELINE,
        WEBHOOK_PUSH: EVENT_TYPE_PUSH,
        WEBHOOK_TAG_PUSH: EVENT_TYPE_TAG_PUSH,
        WEBHOOK_WIKI_PAGE: EVENT_TYPE_WIKI_PAGE,
    }
)

# Finalizer placed on GitLabSource objects so the webhook can be removed
# before the object disappears.
FINALIZER_NAME = "gitlabsources.sources.knative.dev"

SOURCE_API_VERSION = "sources.knative.dev/v1alpha1"
SOURCE_KIND = "GitLabSource"


def qualified_event_type(event_type: str) -> str:
    """Return a GitLab event type in a form suitable for a CloudEvent type."""
    return EVENT_TYPE_PREFIX + event_type


def event_type_for_webhook(webhook: str) -> str | None:
    """Return the event type emitted by a webhook category, if known."""
    return EVENT_TYPES_BY_WEBHOOK.get(webhook)


# ============================================================================
# Conditions
# ============================================================================


class ConditionStatus(Enum):
    """Tri-state status of a condition."""

    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


CONDITION_READY = "Ready"
CONDITION_SINK_PROVIDED = "SinkProvided"
CONDITION_DEPLOYED = "Deployed"
CONDITION_WEBHOOK_CONFIGURED = "WebhookConfigured"


@dataclass
class Condition:
    """A named observation about the state of a source."""

    type: str
    status: ConditionStatus = ConditionStatus.UNKNOWN
    reason: str = ""
    message: str = ""
    last_transition_time: datetime | None = None

    def is_true(self) -> bool:
        return self.status == ConditionStatus.TRUE

    def is_false(self) -> bool:
        return self.status == ConditionStatus.FALSE


@dataclass(frozen=True)
class ConditionSet:
    """Static table of the conditions tracked for one entity type.

    ``dependents`` maps each condition name to whether it contributes to the
    summary ``ready`` condition. Order is preserved and determines the order
    in which conditions appear in the status.
    """

    ready: str
    dependents: Mapping[str, bool]

    def __post_init__(self) -> None:
        """Freeze the dependents table."""
        if isinstance(self.dependents, dict):
            object.__setattr__(
                self, "dependents", MappingProxyType(dict(self.dependents))
            )
        if self.ready in self.dependents:
            raise ValueError(f"ready condition {self.ready!r} cannot be a dependent")

    @property
    def names(self) -> tuple[str, ...]:
        """All condition names, summary condition first."""
        return (self.ready, *self.dependents)

    @property
    def contributing(self) -> tuple[str, ...]:
        """Condition names that make up readiness."""
        return tuple(name for name, counts in self.dependents.items() if counts)


SOURCE_CONDITIONS = ConditionSet(
    ready=CONDITION_READY,
    dependents={
        CONDITION_SINK_PROVIDED: True,
        CONDITION_DEPLOYED: True,
        CONDITION_WEBHOOK_CONFIGURED: True,
    },
)


# ============================================================================
# Source descriptor
# ============================================================================


@dataclass(frozen=True)
class SecretKeyRef:
    """Reference to one key of a Secret in the source's namespace."""

    name: str
    key: str


@dataclass(frozen=True)
class ObjectRef:
    """Reference to an addressable object, used as a sink."""

    api_version: str
    kind: str
    name: str
    namespace: str = ""


@dataclass(frozen=True)
class Destination:
    """Where translated events are delivered: an object reference or a URI."""

    ref: ObjectRef | None = None
    uri: str | None = None


class ScopeKind(Enum):
    """Which kind of GitLab resource a source watches."""

    PROJECT = "project"
    GROUP = "group"


@dataclass(frozen=True)
class Scope:
    """A GitLab project or group, split into API base URL and path.

    Example: "https://gitlab.example.com/myuser/myproject" has base URL
    "https://gitlab.example.com/" and path "myuser/myproject".
    """

    kind: ScopeKind
    base_url: str
    path: str

    @classmethod
    def from_url(cls, kind: ScopeKind, url: str) -> "Scope":
        """Split a project or group URL into its components.

        Raises:
            ValueError: If the URL has no scheme, host or path.
        """
        parts = urlsplit(url)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError(f"{kind.value} URL {url!r} must be an absolute http(s) URL")
        path = parts.path.strip("/")
        if not path:
            raise ValueError(f"{kind.value} URL {url!r} has no {kind.value} path")
        return cls(kind=kind, base_url=f"{parts.scheme}://{parts.netloc}/", path=path)


@dataclass
class SourceSpec:
    """Desired state of a GitLabSource."""

    event_types: tuple[str, ...]
    access_token: SecretKeyRef
    sink: Destination
    project_url: str = ""
    group_url: str = ""
    secret_token: SecretKeyRef | None = None
    ssl_verify: bool = False
    service_account_name: str = ""

    def scope(self) -> Scope:
        """Resolve the project/group selection into a Scope.

        Raises:
            ValueError: If neither or both URLs are set, or the URL is invalid.
        """
        if self.project_url and self.group_url:
            raise ValueError("only one of project URL or group URL may be set")
        if self.project_url:
            return Scope.from_url(ScopeKind.PROJECT, self.project_url)
        if self.group_url:
            return Scope.from_url(ScopeKind.GROUP, self.group_url)
        raise ValueError("project or group URL not found in source spec")


@dataclass(frozen=True)
class EventAttributes:
    """A (type, source) pair of CloudEvent attributes a source may emit."""

    type: str
    source: str


@dataclass
class SourceStatus:
    """Observed state of a GitLabSource, owned by the reconciler."""

    observed_generation: int = 0
    sink_uri: str = ""
    webhook_id: str = ""
    conditions: list[Condition] = field(default_factory=list)
    event_attributes: list[EventAttributes] = field(default_factory=list)

    def get_condition(self, condition_type: str) -> Condition | None:
        """Return the condition with the given type, if present."""
        for condition in self.conditions:
            if condition.type == condition_type:
                return condition
        return None


@dataclass
class Source:
    """A GitLabSource object: identity, desired spec and observed status."""

    namespace: str
    name: str
    spec: SourceSpec
    uid: str = ""
    generation: int = 0
    resource_version: str = ""
    status: SourceStatus = field(default_factory=SourceStatus)
    deletion_timestamp: datetime | None = None
    finalizers: list[str] = field(default_factory=list)

    @property
    def key(self) -> str:
        """namespace/name identity, used in logs."""
        return f"{self.namespace}/{self.name}"

    @property
    def is_deleting(self) -> bool:
        return self.deletion_timestamp is not None

    def as_event_source(self) -> str:
        """The canonical CloudEvent source: the project or group URL."""
        return self.spec.project_url or self.spec.group_url

    def event_types(self) -> list[str]:
        """Fully-qualified event types emitted by the source.

        Some webhooks emit the same event type, so the result is
        deduplicated. Sorted in increasing lexical order.
        """
        unique = {event_type_for_webhook(hook) for hook in self.spec.event_types}
        return sorted(qualified_event_type(t) for t in unique if t)

    def event_attributes(self) -> list[EventAttributes]:
        """CloudEvent attributes for every event type the source emits."""
        source = self.as_event_source()
        return [EventAttributes(type=t, source=source) for t in self.event_types()]


# ============================================================================
# Credentials
# ============================================================================


@dataclass(frozen=True)
class Credentials:
    """Plaintext values resolved for one reconciliation pass."""

    access_token: str
    secret_token: str = ""

    def __repr__(self) -> str:
        return "Credentials(access_token='***', secret_token='***')"


# ============================================================================
# External webhook registration
# ============================================================================


@dataclass(frozen=True)
class HookOptions:
    """Full desired field set of a webhook registration.

    An empty token is still sent, so a secret removed from the source is
    also cleared on the provider.
    """

    url: str
    enable_ssl_verification: bool
    token: str
    events: Mapping[str, bool]

    def __post_init__(self) -> None:
        """Freeze the per-category flags."""
        if isinstance(self.events, dict):
            object.__setattr__(self, "events", MappingProxyType(dict(self.events)))


@dataclass(frozen=True)
class WebhookRegistration:
    """A webhook registration as reported by the provider."""

    id: int
    url: str
    enable_ssl_verification: bool = False
    events: Mapping[str, bool] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Freeze the per-category flags."""
        if isinstance(self.events, dict):
            object.__setattr__(self, "events", MappingProxyType(dict(self.events)))


@dataclass(frozen=True)
class SyncResult:
    """Outcome of synchronizing a webhook registration."""

    hook_id: str
    created: bool


# ============================================================================
# Receiver
# ============================================================================


@dataclass(frozen=True)
class OwnerReference:
    """Controller reference from an owned object back to its source."""

    api_version: str
    kind: str
    name: str
    uid: str
    controller: bool = True


@dataclass(frozen=True)
class EnvVar:
    """Environment variable of the receiver: a literal or a secret key."""

    name: str
    value: str | None = None
    secret_ref: SecretKeyRef | None = None


@dataclass(frozen=True)
class ReceiverSpec:
    """Everything needed to create a receiver service for a source."""

    namespace: str
    generate_name: str
    image: str
    env: tuple[EnvVar, ...]
    labels: Mapping[str, str]
    owner: OwnerReference
    service_account_name: str = ""

    def __post_init__(self) -> None:
        """Freeze the labels."""
        if isinstance(self.labels, dict):
            object.__setattr__(self, "labels", MappingProxyType(dict(self.labels)))


@dataclass(frozen=True)
class ReceiverService:
    """A compute service that receives webhook calls for a source."""

    name: str
    namespace: str
    owner_uids: tuple[str, ...] = ()
    ready: bool = False
    address: str | None = None

    def is_controlled_by(self, source: Source) -> bool:
        return bool(source.uid) and source.uid in self.owner_uids


# ============================================================================
# Canonical event
# ============================================================================


@dataclass(frozen=True)
class CanonicalEvent:
    """A webhook call translated into CloudEvent form.

    ``data`` holds the original request body, unmodified.
    """

    id: str
    type: str
    source: str
    time: datetime
    data: bytes
    extensions: dict[str, str] | MappingProxyType[str, str]  # converted to proxy in __post_init__
    data_content_type: str = "application/json"
    spec_version: str = "1.0"

    def __post_init__(self) -> None:
        """Convert extensions dict to read-only proxy."""
        if isinstance(self.extensions, dict):
            object.__setattr__(
                self, "extensions", MappingProxyType(self.extensions)
            )


EventKind: TypeAlias = Literal["Normal", "Warning"]
