"""Asyncio driver for the cache lock state machine.

Runs the effects produced by :func:`grenpkg.cache_lock.state.transition`:
filesystem calls go through a :class:`LockFilesystem`, waits and liveness
touches through ``loop.call_later``. All transitions for a given path happen
on the event loop thread, one at a time.

Usage:
    lock = CacheLock(retry=RetryPolicy(attempts=10, milliseconds_between=500))
    async with lock.hold(cache_root):
        # only this process writes beneath cache_root here
        ...
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from grenpkg.cache_lock.filesystem import Clock, LocalFilesystem, LockFilesystem, system_clock_ms
from grenpkg.cache_lock.state import (
    AcquireRequested,
    AlreadyLocked,
    CancelTouch,
    CreateMarker,
    FilesystemFailed,
    InspectMarker,
    LockEffect,
    LockEvent,
    LockOutcome,
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
from grenpkg.package.exceptions import CacheLockedError, CacheLockFailedError, ReentrantLockError

logger = logging.getLogger(__name__)


class CacheLock:
    """Cross-process lock over cache directories, one instance per process run.

    Attributes:
        state: The current lock state (held paths and retry policy).
    """

    def __init__(
        self,
        retry: RetryPolicy | None = None,
        filesystem: LockFilesystem | None = None,
        clock: Clock | None = None,
    ):
        self.state = LockState(retry=retry)
        self._filesystem: LockFilesystem = filesystem or LocalFilesystem()
        self._clock: Clock = clock or system_clock_ms
        self._waiters: dict[Path, asyncio.Future[LockOutcome]] = {}
        self._retry_timers: dict[Path, asyncio.TimerHandle] = {}
        self._touch_timers: dict[Path, asyncio.TimerHandle] = {}
        self._failures: dict[Path, OSError] = {}

    @property
    def held(self) -> frozenset[Path]:
        return self.state.held

    def failure(self, path: Path) -> OSError | None:
        """The filesystem error that broke a held lock's liveness touch, if any."""
        return self._failures.get(path)

    async def acquire(self, path: Path) -> LockOutcome:
        """Try to take the lock on ``path``.

        Returns:
            ``LockAcquired``, ``AlreadyLocked`` once contention outlasts the retry
            policy, or ``UnexpectedError`` for any other filesystem failure.

        Raises:
            ReentrantLockError: If this instance already holds or is acquiring ``path``.
        """
        if path in self._waiters:
            msg = f"Lock on '{path}' is already being acquired by this process"
            raise ReentrantLockError(msg)
        loop = asyncio.get_running_loop()
        future: asyncio.Future[LockOutcome] = loop.create_future()
        self._waiters[path] = future
        try:
            self._dispatch(AcquireRequested(path=path))
            self._failures.pop(path, None)
            return await future
        finally:
            self._waiters.pop(path, None)
            retry_timer = self._retry_timers.pop(path, None)
            if retry_timer is not None:
                retry_timer.cancel()

    async def release(self, path: Path) -> LockOutcome | None:
        """Release ``path`` if held. Returns ``LockReleased``, or None when not held."""
        return self._dispatch(ReleaseRequested(path=path))

    @asynccontextmanager
    async def hold(self, path: Path) -> AsyncIterator[Path]:
        """Hold the lock on ``path`` for the duration of the block.

        Raises:
            CacheLockedError: If another process holds the lock.
            CacheLockFailedError: If acquiring hit a filesystem error, or the
                liveness touch failed while the block ran.
        """
        outcome = await self.acquire(path)
        match outcome:
            case AlreadyLocked():
                msg = f"Cache '{path}' is locked by another process"
                raise CacheLockedError(msg)
            case UnexpectedError(error=error):
                msg = f"Could not lock cache '{path}': {error}"
                raise CacheLockFailedError(msg) from error
            case _:
                pass

        try:
            yield path
        finally:
            failure = self._failures.pop(path, None)
            await self.release(path)

        if failure is not None:
            msg = f"Lost liveness of the lock on cache '{path}': {failure}"
            raise CacheLockFailedError(msg) from failure

    # ---------------------------------------------------------------------
    # Event loop plumbing
    # ---------------------------------------------------------------------

    def _dispatch(self, event: LockEvent) -> LockOutcome | None:
        result = transition(self.state, event)
        self.state = result.state
        if result.outcome is not None:
            self._report(result.outcome)
        for effect in result.effects:
            self._run(effect)
        return result.outcome

    def _report(self, outcome: LockOutcome) -> None:
        logger.debug("Cache lock outcome for '%s': %s", outcome.path, outcome.kind)
        waiter = self._waiters.get(outcome.path)
        if waiter is not None and not waiter.done():
            waiter.set_result(outcome)
            return
        if isinstance(outcome, UnexpectedError):
            self._failures[outcome.path] = outcome.error
            logger.error("Cache lock on '%s' failed while held: %s", outcome.path, outcome.error)

    def _run(self, effect: LockEffect) -> None:
        path = effect.path
        marker = marker_path(path)

        match effect:
            case CreateMarker(attempt=attempt, stale_recoveries=stale_recoveries):
                try:
                    self._filesystem.create_marker(marker)
                except FileExistsError:
                    self._dispatch(MarkerExists(path=path, attempt=attempt, stale_recoveries=stale_recoveries))
                except OSError as exc:
                    self._dispatch(FilesystemFailed(path=path, error=exc))
                else:
                    logger.debug("Acquired cache lock: %s", marker)
                    self._dispatch(MarkerCreated(path=path, attempt=attempt, stale_recoveries=stale_recoveries))

            case InspectMarker(attempt=attempt, stale_recoveries=stale_recoveries):
                try:
                    last_accessed_ms = self._filesystem.last_accessed_ms(marker)
                except FileNotFoundError:
                    self._dispatch(MarkerVanished(path=path, attempt=attempt, stale_recoveries=stale_recoveries))
                except OSError as exc:
                    self._dispatch(FilesystemFailed(path=path, error=exc))
                else:
                    self._dispatch(
                        MarkerInspected(
                            path=path,
                            attempt=attempt,
                            stale_recoveries=stale_recoveries,
                            last_accessed_ms=last_accessed_ms,
                            now_ms=self._clock(),
                        )
                    )

            case RemoveStaleMarker(attempt=attempt, stale_recoveries=stale_recoveries):
                logger.warning("Removing stale cache lock: %s", marker)
                try:
                    self._filesystem.remove(marker)
                except OSError as exc:
                    logger.debug("Ignoring failure to remove stale lock '%s': %s", marker, exc)
                self._dispatch(StaleMarkerRemoved(path=path, attempt=attempt, stale_recoveries=stale_recoveries))

            case ScheduleRetry(attempt=attempt, stale_recoveries=stale_recoveries, delay_ms=delay_ms):
                logger.debug("Cache '%s' is locked, retry %d in %dms", path, attempt, delay_ms)
                retry_event = RetryDue(path=path, attempt=attempt, stale_recoveries=stale_recoveries)
                self._retry_timers[path] = asyncio.get_running_loop().call_later(delay_ms / 1000, self._dispatch, retry_event)

            case ScheduleTouch(delay_ms=delay_ms):
                self._touch_timers[path] = asyncio.get_running_loop().call_later(delay_ms / 1000, self._dispatch, TouchDue(path=path))

            case TouchMarker():
                try:
                    self._filesystem.touch(marker)
                except OSError as exc:
                    self._dispatch(FilesystemFailed(path=path, error=exc))
                else:
                    self._dispatch(TouchSucceeded(path=path))

            case CancelTouch():
                touch_timer = self._touch_timers.pop(path, None)
                if touch_timer is not None:
                    touch_timer.cancel()

            case RemoveMarker():
                try:
                    self._filesystem.remove(marker)
                except OSError as exc:
                    logger.warning("Could not remove cache lock '%s': %s", marker, exc)
                else:
                    logger.debug("Released cache lock: %s", marker)