"""Unit tests for condition bookkeeping."""

from datetime import datetime, timedelta, timezone

import pytest

from hookline.core.conditions import ConditionManager
from hookline.core.models import (
    CONDITION_DEPLOYED,
    CONDITION_READY,
    CONDITION_SINK_PROVIDED,
    CONDITION_WEBHOOK_CONFIGURED,
    SOURCE_CONDITIONS,
    Condition,
    ConditionStatus,
    SourceStatus,
)


class FakeClock:
    """Clock advancing one second per reading."""

    def __init__(self):
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def status() -> SourceStatus:
    return SourceStatus()


@pytest.fixture
def manager(status: SourceStatus) -> ConditionManager:
    manager = ConditionManager(SOURCE_CONDITIONS, status, clock=FakeClock())
    manager.initialize()
    return manager


def test_initialize_adds_all_conditions_as_unknown(status: SourceStatus, manager: ConditionManager) -> None:
    assert [c.type for c in status.conditions] == list(SOURCE_CONDITIONS.names)
    assert all(c.status == ConditionStatus.UNKNOWN for c in status.conditions)


def test_initialize_keeps_existing_and_drops_unknown_conditions() -> None:
    existing = Condition(type=CONDITION_DEPLOYED, status=ConditionStatus.TRUE)
    status = SourceStatus(conditions=[Condition(type="Stale"), existing])

    ConditionManager(SOURCE_CONDITIONS, status).initialize()

    assert [c.type for c in status.conditions] == list(SOURCE_CONDITIONS.names)
    assert status.get_condition(CONDITION_DEPLOYED) is existing


def test_ready_is_true_only_when_all_contributors_are_true(manager: ConditionManager) -> None:
    manager.mark_true(CONDITION_SINK_PROVIDED)
    manager.mark_true(CONDITION_DEPLOYED)
    assert not manager.is_ready()

    manager.mark_true(CONDITION_WEBHOOK_CONFIGURED)
    assert manager.is_ready()


def test_false_contributor_makes_ready_false_with_its_reason(manager: ConditionManager) -> None:
    manager.mark_true(CONDITION_SINK_PROVIDED)
    manager.mark_false(CONDITION_DEPLOYED, "ReceiveAdapterNotReady", "not ready")

    ready = manager.get(CONDITION_READY)
    assert ready is not None
    assert ready.status == ConditionStatus.FALSE
    assert ready.reason == "ReceiveAdapterNotReady"


def test_transition_time_changes_only_on_status_change(manager: ConditionManager) -> None:
    manager.mark_false(CONDITION_DEPLOYED, "A", "first")
    condition = manager.get(CONDITION_DEPLOYED)
    assert condition is not None
    first = condition.last_transition_time

    manager.mark_false(CONDITION_DEPLOYED, "B", "second")
    assert condition.last_transition_time == first
    assert condition.reason == "B"

    manager.mark_true(CONDITION_DEPLOYED)
    assert condition.last_transition_time != first


def test_ready_cannot_be_set_directly(manager: ConditionManager) -> None:
    with pytest.raises(ValueError):
        manager.mark_true(CONDITION_READY)


def test_unknown_condition_is_rejected(manager: ConditionManager) -> None:
    with pytest.raises(ValueError):
        manager.mark_false("Bogus", "R", "m")

