"""Fake SourceStorePort implementation for testing."""

import copy

from hookline.core.errors import ApiError
from hookline.core.models import Source
from hookline.core.ports import SourceStorePort


class FakeSourceStorePort(SourceStorePort):
    """In-memory GitLabSource store for testing.

    Stores deep copies so tests observe only what was explicitly written.
    Every write bumps the resource version.
    """

    def __init__(self):
        """Initialize with no sources."""
        self.sources: dict[str, Source] = {}
        self.status_updates: list[Source] = []
        self.finalizer_updates: list[tuple[str, list[str]]] = []
        self.update_error: ApiError | None = None
        self._version = 0

    def add(self, source: Source) -> None:
        self.sources[source.key] = copy.deepcopy(source)

    def _bump(self, source: Source) -> None:
        self._version += 1
        source.resource_version = str(self._version)

    async def list_sources(self) -> list[Source]:
        return [copy.deepcopy(s) for s in self.sources.values()]

    async def update_status(self, source: Source) -> Source:
        if self.update_error is not None:
            raise self.update_error
        stored = copy.deepcopy(source)
        self._bump(stored)
        self.sources[source.key] = stored
        self.status_updates.append(copy.deepcopy(stored))
        return copy.deepcopy(stored)

    async def set_finalizers(self, source: Source, finalizers: list[str]) -> Source:
        stored = copy.deepcopy(self.sources.get(source.key, source))
        stored.finalizers = list(finalizers)
        self._bump(stored)
        self.finalizer_updates.append((source.key, list(finalizers)))
        if stored.is_deleting and not stored.finalizers:
            self.sources.pop(source.key, None)
        else:
            self.sources[source.key] = stored
        return copy.deepcopy(stored)
