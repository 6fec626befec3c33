"""Pure state machine for the cross-process cache lock.

A lock on directory ``P`` is the existence of the marker directory
``P/.lock``. Creating that directory atomically is the only mutual-exclusion
primitive; everything else (staleness, retries, liveness touches) is decided
here from events reported by the driver, which performs the filesystem calls
and timers listed in each transition's effects.

Acquisition events carry the attempt number and the number of stale markers
removed so far, so the state itself only records which paths are held.
"""

from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, PositiveInt

from grenpkg.package.exceptions import ReentrantLockError

MARKER_NAME = ".lock"
TOUCH_INTERVAL_MS = 1000
STALE_AFTER_MS = 5000
MAX_STALE_RECOVERIES = 3


def marker_path(path: Path) -> Path:
    return path / MARKER_NAME


class RetryPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    attempts: PositiveInt
    milliseconds_between: NonNegativeInt


class LockState(BaseModel):
    model_config = ConfigDict(frozen=True)

    held: frozenset[Path] = frozenset()
    retry: RetryPolicy | None = None

    def is_held(self, path: Path) -> bool:
        return path in self.held


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: Path


class _AttemptEvent(_Event):
    attempt: NonNegativeInt = 0
    stale_recoveries: NonNegativeInt = 0


class AcquireRequested(_Event):
    kind: Literal["acquire_requested"] = "acquire_requested"


class MarkerCreated(_AttemptEvent):
    kind: Literal["marker_created"] = "marker_created"


class MarkerExists(_AttemptEvent):
    kind: Literal["marker_exists"] = "marker_exists"


class MarkerInspected(_AttemptEvent):
    kind: Literal["marker_inspected"] = "marker_inspected"
    last_accessed_ms: int
    now_ms: int


class MarkerVanished(_AttemptEvent):
    """The marker disappeared between the failed create and the metadata read."""

    kind: Literal["marker_vanished"] = "marker_vanished"


class StaleMarkerRemoved(_AttemptEvent):
    """Best-effort removal finished; errors during removal are not reported."""

    kind: Literal["stale_marker_removed"] = "stale_marker_removed"


class RetryDue(_AttemptEvent):
    kind: Literal["retry_due"] = "retry_due"


class TouchDue(_Event):
    kind: Literal["touch_due"] = "touch_due"


class TouchSucceeded(_Event):
    kind: Literal["touch_succeeded"] = "touch_succeeded"


class FilesystemFailed(_Event):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: Literal["filesystem_failed"] = "filesystem_failed"
    error: OSError


class ReleaseRequested(_Event):
    kind: Literal["release_requested"] = "release_requested"


LockEvent = Annotated[
    AcquireRequested
    | MarkerCreated
    | MarkerExists
    | MarkerInspected
    | MarkerVanished
    | StaleMarkerRemoved
    | RetryDue
    | TouchDue
    | TouchSucceeded
    | FilesystemFailed
    | ReleaseRequested,
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Effects
# ---------------------------------------------------------------------------


class _Effect(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: Path


class _AttemptEffect(_Effect):
    attempt: NonNegativeInt = 0
    stale_recoveries: NonNegativeInt = 0


class CreateMarker(_AttemptEffect):
    kind: Literal["create_marker"] = "create_marker"


class InspectMarker(_AttemptEffect):
    kind: Literal["inspect_marker"] = "inspect_marker"


class RemoveStaleMarker(_AttemptEffect):
    kind: Literal["remove_stale_marker"] = "remove_stale_marker"


class ScheduleRetry(_AttemptEffect):
    kind: Literal["schedule_retry"] = "schedule_retry"
    delay_ms: NonNegativeInt


class ScheduleTouch(_Effect):
    kind: Literal["schedule_touch"] = "schedule_touch"
    delay_ms: NonNegativeInt = TOUCH_INTERVAL_MS


class TouchMarker(_Effect):
    kind: Literal["touch_marker"] = "touch_marker"


class CancelTouch(_Effect):
    kind: Literal["cancel_touch"] = "cancel_touch"


class RemoveMarker(_Effect):
    """Best-effort removal on release."""

    kind: Literal["remove_marker"] = "remove_marker"


LockEffect = Annotated[
    CreateMarker | InspectMarker | RemoveStaleMarker | ScheduleRetry | ScheduleTouch | TouchMarker | CancelTouch | RemoveMarker,
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


class _Outcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: Path


class LockAcquired(_Outcome):
    kind: Literal["lock_acquired"] = "lock_acquired"


class LockReleased(_Outcome):
    kind: Literal["lock_released"] = "lock_released"


class AlreadyLocked(_Outcome):
    kind: Literal["already_locked"] = "already_locked"


class UnexpectedError(_Outcome):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: Literal["unexpected_error"] = "unexpected_error"
    error: OSError


LockOutcome = Annotated[LockAcquired | LockReleased | AlreadyLocked | UnexpectedError, Field(discriminator="kind")]


class Transition(BaseModel):
    model_config = ConfigDict(frozen=True)

    state: LockState
    outcome: LockOutcome | None = None
    effects: tuple[LockEffect, ...] = ()


# ---------------------------------------------------------------------------
# Transition function
# ---------------------------------------------------------------------------


def _contended(state: LockState, event: MarkerInspected) -> Transition:
    """The marker belongs to a live holder: wait and retry, or give up."""
    policy = state.retry
    if policy is not None and event.attempt < policy.attempts:
        retry = ScheduleRetry(
            path=event.path,
            attempt=event.attempt + 1,
            stale_recoveries=event.stale_recoveries,
            delay_ms=policy.milliseconds_between,
        )
        return Transition(state=state, effects=(retry,))
    return Transition(state=state, outcome=AlreadyLocked(path=event.path))


def transition(state: LockState, event: LockEvent) -> Transition:
    """Apply one event to the lock state.

    Args:
        state: The current lock state.
        event: What just happened (a request, a filesystem result or a timer).

    Returns:
        The next state, the outcome to report (if any) and the effects the
        driver must run next.

    Raises:
        ReentrantLockError: If acquisition is requested for a path already held.
    """
    match event:
        case AcquireRequested(path=path):
            if state.is_held(path):
                msg = f"Lock on '{path}' is already held by this process"
                raise ReentrantLockError(msg)
            return Transition(state=state, effects=(CreateMarker(path=path),))

        case MarkerCreated(path=path):
            held_state = state.model_copy(update={"held": state.held | {path}})
            return Transition(state=held_state, outcome=LockAcquired(path=path), effects=(ScheduleTouch(path=path),))

        case MarkerExists(path=path, attempt=attempt, stale_recoveries=stale_recoveries):
            return Transition(state=state, effects=(InspectMarker(path=path, attempt=attempt, stale_recoveries=stale_recoveries),))

        case MarkerInspected(path=path, attempt=attempt, stale_recoveries=stale_recoveries):
            if event.now_ms - event.last_accessed_ms > STALE_AFTER_MS:
                if stale_recoveries >= MAX_STALE_RECOVERIES:
                    return Transition(state=state, outcome=AlreadyLocked(path=path))
                return Transition(state=state, effects=(RemoveStaleMarker(path=path, attempt=attempt, stale_recoveries=stale_recoveries),))
            return _contended(state, event)

        case StaleMarkerRemoved(path=path, attempt=attempt, stale_recoveries=stale_recoveries):
            return Transition(state=state, effects=(CreateMarker(path=path, attempt=attempt + 1, stale_recoveries=stale_recoveries + 1),))

        case MarkerVanished(path=path, attempt=attempt, stale_recoveries=stale_recoveries):
            return Transition(state=state, effects=(CreateMarker(path=path, attempt=attempt + 1, stale_recoveries=stale_recoveries),))

        case RetryDue(path=path, attempt=attempt, stale_recoveries=stale_recoveries):
            return Transition(state=state, effects=(CreateMarker(path=path, attempt=attempt, stale_recoveries=stale_recoveries),))

        case TouchDue(path=path):
            if not state.is_held(path):
                return Transition(state=state)
            return Transition(state=state, effects=(TouchMarker(path=path),))

        case TouchSucceeded(path=path):
            if not state.is_held(path):
                return Transition(state=state)
            return Transition(state=state, effects=(ScheduleTouch(path=path),))

        case FilesystemFailed(path=path, error=error):
            # A failed touch leaves the path held so the caller can still release it.
            return Transition(state=state, outcome=UnexpectedError(path=path, error=error))

        case ReleaseRequested(path=path):
            if not state.is_held(path):
                return Transition(state=state)
            released_state = state.model_copy(update={"held": state.held - {path}})
            return Transition(
                state=released_state,
                outcome=LockReleased(path=path),
                effects=(CancelTouch(path=path), RemoveMarker(path=path)),
            )

    msg = f"Unhandled lock event: {event!r}"
    raise TypeError(msg)
