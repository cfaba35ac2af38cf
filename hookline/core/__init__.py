"""Core domain logic for the hookline GitLab event source.

This package contains zero external dependencies and represents
the pure business logic of the application. All adapters and
external integrations are handled by the adapters package.
"""

from .models import (
    CanonicalEvent,
    Condition,
    ConditionSet,
    ConditionStatus,
    Credentials,
    Destination,
    HookOptions,
    ObjectRef,
    ReceiverService,
    ReceiverSpec,
    Scope,
    ScopeKind,
    SecretKeyRef,
    Source,
    SourceSpec,
    SourceStatus,
    WebhookRegistration,
)

__all__ = [
    "CanonicalEvent",
    "Condition",
    "ConditionSet",
    "ConditionStatus",
    "Credentials",
    "Destination",
    "HookOptions",
    "ObjectRef",
    "ReceiverService",
    "ReceiverSpec",
    "Scope",
    "ScopeKind",
    "SecretKeyRef",
    "Source",
    "SourceSpec",
    "SourceStatus",
    "WebhookRegistration",
]
