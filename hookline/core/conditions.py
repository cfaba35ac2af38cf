"""Condition bookkeeping for source status.

ConditionManager is the only code that mutates ``SourceStatus.conditions``.
It is handed the static ConditionSet of the entity type it manages, keeps
the conditions in table order, and derives the summary condition from the
contributing ones after every change.
"""

from collections.abc import Callable
from datetime import datetime, timezone

from .models import Condition, ConditionSet, ConditionStatus, SourceStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConditionManager:
    """Manages the conditions of one status object."""

    def __init__(
        self,
        condition_set: ConditionSet,
        status: SourceStatus,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.condition_set = condition_set
        self.status = status
        self._clock = clock

    def initialize(self) -> None:
        """Add every missing condition as Unknown and order them.

        Existing conditions keep their status, reason and transition time.
        Conditions not in the set are dropped.
        """
        ordered = []
        for name in self.condition_set.names:
            existing = self.status.get_condition(name)
            if existing is None:
                existing = Condition(
                    type=name,
                    status=ConditionStatus.UNKNOWN,
                    last_transition_time=self._clock(),
                )
            ordered.append(existing)
        self.status.conditions = ordered
        self._recompute_ready()

    def get(self, name: str) -> Condition | None:
        return self.status.get_condition(name)

    def mark_true(self, name: str) -> None:
        self._set(name, ConditionStatus.TRUE, "", "")

    def mark_false(self, name: str, reason: str, message: str) -> None:
        self._set(name, ConditionStatus.FALSE, reason, message)

    def is_ready(self) -> bool:
        ready = self.get(self.condition_set.ready)
        return ready is not None and ready.is_true()

    def _set(
        self, name: str, status: ConditionStatus, reason: str, message: str
    ) -> None:
        if name == self.condition_set.ready:
            raise ValueError(f"{name} is derived and cannot be set directly")
        if name not in self.condition_set.dependents:
            raise ValueError(f"unknown condition {name!r}")
        self._apply(name, status, reason, message)
        self._recompute_ready()

    def _apply(
        self, name: str, status: ConditionStatus, reason: str, message: str
    ) -> None:
        condition = self.get(name)
        if condition is None:
            self.initialize()
            condition = self.get(name)
            assert condition is not None

        if condition.status != status:
            condition.last_transition_time = self._clock()
        condition.status = status
        condition.reason = reason
        condition.message = message

    def _recompute_ready(self) -> None:
        """Derive the summary condition: logical AND of contributors.

        The first False contributor wins and lends its reason and message;
        otherwise the first Unknown one does; otherwise Ready is True.
        """
        contributors = [self.get(name) for name in self.condition_set.contributing]
        present = [c for c in contributors if c is not None]

        failed = next((c for c in present if c.is_false()), None)
        pending = next((c for c in present if not c.is_true()), None)

        if self.get(self.condition_set.ready) is None:
            return
        if failed is not None:
            self._apply(
                self.condition_set.ready,
                ConditionStatus.FALSE,
                failed.reason,
                failed.message,
            )
        elif pending is not None or len(present) < len(contributors):
            reason = pending.reason if pending is not None else ""
            message = pending.message if pending is not None else ""
            self._apply(
                self.condition_set.ready, ConditionStatus.UNKNOWN, reason, message
            )
        else:
            self._apply(self.condition_set.ready, ConditionStatus.TRUE, "", "")
