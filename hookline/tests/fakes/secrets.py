"""Fake SecretStorePort implementation for testing."""

from collections.abc import Mapping

from hookline.core.ports import SecretStorePort


class FakeSecretStorePort(SecretStorePort):
    """In-memory Secret store for testing.

    Secrets are keyed by (namespace, name). Every lookup is recorded so
    tests can assert on caching behavior.
    """

    def __init__(self):
        """Initialize with no secrets."""
        self.secrets: dict[tuple[str, str], dict[str, str]] = {}
        self.get_secret_calls: list[tuple[str, str]] = []
        self.error: Exception | None = None

    def add_secret(self, namespace: str, name: str, data: dict[str, str]) -> None:
        """Store a secret."""
        self.secrets[(namespace, name)] = dict(data)

    async def get_secret(self, namespace: str, name: str) -> Mapping[str, str] | None:
        self.get_secret_calls.append((namespace, name))
        if self.error is not None:
            raise self.error
        return self.secrets.get((namespace, name))
