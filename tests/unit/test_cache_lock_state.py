from pathlib import Path

import pytest
from pydantic import ValidationError

from grenpkg.cache_lock.state import (
    MAX_STALE_RECOVERIES,
    STALE_AFTER_MS,
    TOUCH_INTERVAL_MS,
    AcquireRequested,
    AlreadyLocked,
    CancelTouch,
    CreateMarker,
    FilesystemFailed,
    InspectMarker,
    LockAcquired,
    LockReleased,
    LockState,
    MarkerCreated,
    MarkerExists,
    MarkerInspected,
    MarkerVanished,
    ReleaseRequested,
    RemoveMarker,
    RemoveStaleMarker,
    RetryDue,
    RetryPolicy,
    ScheduleRetry,
    ScheduleTouch,
    StaleMarkerRemoved,
    TouchDue,
    TouchMarker,
    TouchSucceeded,
    UnexpectedError,
    marker_path,
    transition,
)
from grenpkg.package.exceptions import ReentrantLockError

CACHE = Path("/cache/root")
NOW_MS = 1_700_000_000_000


def _held(*paths: Path, retry: RetryPolicy | None = None) -> LockState:
    return LockState(held=frozenset(paths), retry=retry)


class TestLockConstants:
    def test_touch_interval_well_under_stale_threshold(self):
        assert TOUCH_INTERVAL_MS * 2 < STALE_AFTER_MS

    def test_marker_path(self):
        assert marker_path(CACHE) == CACHE / ".lock"

    @pytest.mark.parametrize(("attempts", "milliseconds_between"), [(0, 100), (3, -1)])
    def test_retry_policy_bounds(self, attempts: int, milliseconds_between: int):
        with pytest.raises(ValidationError):
            RetryPolicy(attempts=attempts, milliseconds_between=milliseconds_between)


class TestAcquireTransitions:
    """Acquisition: create, inspect, stale recovery and bounded retry."""

    def test_acquire_requests_marker_creation(self):
        result = transition(LockState(), AcquireRequested(path=CACHE))
        assert result.state == LockState()
        assert result.outcome is None
        assert result.effects == (CreateMarker(path=CACHE),)

    def test_acquire_held_path_raises(self):
        with pytest.raises(ReentrantLockError, match="already held"):
            transition(_held(CACHE), AcquireRequested(path=CACHE))

    def test_marker_created_holds_and_schedules_touch(self):
        result = transition(LockState(), MarkerCreated(path=CACHE, attempt=2))
        assert result.state.is_held(CACHE)
        assert result.outcome == LockAcquired(path=CACHE)
        assert result.effects == (ScheduleTouch(path=CACHE, delay_ms=TOUCH_INTERVAL_MS),)

    def test_marker_created_keeps_other_held_paths(self):
        other = Path("/other/cache")
        result = transition(_held(other), MarkerCreated(path=CACHE))
        assert result.state.held == frozenset({other, CACHE})

    def test_marker_exists_inspects(self):
        result = transition(LockState(), MarkerExists(path=CACHE, attempt=1, stale_recoveries=1))
        assert result.outcome is None
        assert result.effects == (InspectMarker(path=CACHE, attempt=1, stale_recoveries=1),)

    def test_stale_marker_is_removed(self):
        event = MarkerInspected(path=CACHE, last_accessed_ms=NOW_MS - STALE_AFTER_MS - 1, now_ms=NOW_MS)
        result = transition(LockState(), event)
        assert result.outcome is None
        assert result.effects == (RemoveStaleMarker(path=CACHE),)

    def test_marker_exactly_at_threshold_is_live(self):
        event = MarkerInspected(path=CACHE, last_accessed_ms=NOW_MS - STALE_AFTER_MS, now_ms=NOW_MS)
        result = transition(LockState(), event)
        assert result.outcome == AlreadyLocked(path=CACHE)
        assert result.effects == ()

    def test_stale_removed_retries_immediately(self):
        result = transition(LockState(), StaleMarkerRemoved(path=CACHE, attempt=0, stale_recoveries=0))
        assert result.effects == (CreateMarker(path=CACHE, attempt=1, stale_recoveries=1),)

    def test_stale_recovery_is_bounded(self):
        event = MarkerInspected(
            path=CACHE,
            attempt=MAX_STALE_RECOVERIES,
            stale_recoveries=MAX_STALE_RECOVERIES,
            last_accessed_ms=0,
            now_ms=NOW_MS,
        )
        result = transition(LockState(), event)
        assert result.outcome == AlreadyLocked(path=CACHE)
        assert result.effects == ()

    def test_vanished_marker_retries_immediately(self):
        result = transition(LockState(), MarkerVanished(path=CACHE, attempt=2, stale_recoveries=1))
        assert result.effects == (CreateMarker(path=CACHE, attempt=3, stale_recoveries=1),)

    def test_live_marker_without_policy_is_already_locked(self):
        event = MarkerInspected(path=CACHE, last_accessed_ms=NOW_MS - 200, now_ms=NOW_MS)
        result = transition(LockState(), event)
        assert result.outcome == AlreadyLocked(path=CACHE)
        assert not result.state.is_held(CACHE)

    def test_live_marker_with_policy_schedules_retry(self):
        state = LockState(retry=RetryPolicy(attempts=3, milliseconds_between=250))
        event = MarkerInspected(path=CACHE, attempt=0, last_accessed_ms=NOW_MS - 200, now_ms=NOW_MS)
        result = transition(state, event)
        assert result.outcome is None
        assert result.effects == (ScheduleRetry(path=CACHE, attempt=1, delay_ms=250),)

    @pytest.mark.parametrize(("attempt", "retries"), [(0, True), (2, True), (3, False), (7, False)])
    def test_retry_policy_exhaustion(self, attempt: int, retries: bool):
        state = LockState(retry=RetryPolicy(attempts=3, milliseconds_between=250))
        event = MarkerInspected(path=CACHE, attempt=attempt, last_accessed_ms=NOW_MS, now_ms=NOW_MS)
        result = transition(state, event)
        if retries:
            assert result.outcome is None
            assert len(result.effects) == 1
        else:
            assert result.outcome == AlreadyLocked(path=CACHE)

    def test_retry_due_creates_marker_with_same_attempt(self):
        result = transition(LockState(), RetryDue(path=CACHE, attempt=2, stale_recoveries=1))
        assert result.effects == (CreateMarker(path=CACHE, attempt=2, stale_recoveries=1),)

    def test_filesystem_failure_is_unexpected_error(self):
        error = PermissionError(13, "Permission denied")
        result = transition(LockState(), FilesystemFailed(path=CACHE, error=error))
        assert result.outcome == UnexpectedError(path=CACHE, error=error)
        assert result.effects == ()


class TestHeldTransitions:
    """Liveness touches and release."""

    def test_touch_due_touches_held_marker(self):
        result = transition(_held(CACHE), TouchDue(path=CACHE))
        assert result.effects == (TouchMarker(path=CACHE),)

    def test_touch_due_after_release_is_ignored(self):
        result = transition(LockState(), TouchDue(path=CACHE))
        assert result.outcome is None
        assert result.effects == ()

    def test_touch_succeeded_reschedules(self):
        result = transition(_held(CACHE), TouchSucceeded(path=CACHE))
        assert result.effects == (ScheduleTouch(path=CACHE),)

    def test_touch_succeeded_after_release_is_ignored(self):
        assert transition(LockState(), TouchSucceeded(path=CACHE)).effects == ()

    def test_touch_failure_keeps_path_held(self):
        error = OSError(5, "Input/output error")
        result = transition(_held(CACHE), FilesystemFailed(path=CACHE, error=error))
        assert result.outcome == UnexpectedError(path=CACHE, error=error)
        assert result.state.is_held(CACHE)

    def test_release_held_path(self):
        result = transition(_held(CACHE), ReleaseRequested(path=CACHE))
        assert not result.state.is_held(CACHE)
        assert result.outcome == LockReleased(path=CACHE)
        assert result.effects == (CancelTouch(path=CACHE), RemoveMarker(path=CACHE))

    def test_release_not_held_is_noop(self):
        state = LockState(retry=RetryPolicy(attempts=1, milliseconds_between=0))
        result = transition(state, ReleaseRequested(path=CACHE))
        assert result.state == state
        assert result.outcome is None
        assert result.effects == ()

    def test_state_is_not_mutated(self):
        state = _held(CACHE)
        transition(state, ReleaseRequested(path=CACHE))
        assert state.is_held(CACHE)
