"""Fake/mock implementations of core ports for testing.

These in-memory implementations allow core domain logic to be tested
without external dependencies:

- FakeSecretStorePort: In-memory Secret data
- FakeSinkResolverPort: Canned sink URIs
- FakeReceiverPlatformPort: In-memory receiver services
- FakeWebhookClient / FakeWebhookClientFactory: In-memory GitLab hooks
- FakeEventRecorderPort: Captured events for assertion
- FakeSourceStorePort: In-memory GitLabSource objects
- FakeEventSinkPort: Captured CloudEvents for assertion
"""

from .receivers import FakeReceiverPlatformPort
from .recorder import FakeEventRecorderPort
from .secrets import FakeSecretStorePort
from .sinks import FakeEventSinkPort, FakeSinkResolverPort
from .sources import FakeSourceStorePort
from .webhooks import FakeWebhookClient, FakeWebhookClientFactory

__all__ = [
    "FakeEventRecorderPort",
    "FakeEventSinkPort",
    "FakeReceiverPlatformPort",
    "FakeSecretStorePort",
    "FakeSinkResolverPort",
    "FakeSourceStorePort",
    "FakeWebhookClient",
    "FakeWebhookClientFactory",
]
