from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger("progresswatch.poller")


class PollStatus(str, Enum):
    """Outcome kinds of a single poll check."""

    pending = "pending"
    done = "done"
    error = "error"


@dataclass(frozen=True)
class PollResult:
    """Result returned by a check function on each tick."""

    status: PollStatus
    value: Any = None
    error: BaseException | None = None

    @classmethod
    def pending(cls) -> PollResult:
        """Keep polling."""
        return _PENDING

    @classmethod
    def done(cls, value: Any = None) -> PollResult:
        """Stop polling and surface value."""
        return cls(PollStatus.done, value=value)

    @classmethod
    def fail(cls, error: BaseException) -> PollResult:
        """Stop polling and surface error."""
        return cls(PollStatus.error, error=error)


_PENDING = PollResult(PollStatus.pending)

CheckFn = Callable[[], Awaitable[PollResult]]


class PollHandle:
    """A running repeated check.

    The handle settles at most once: with the value of the first ``done``
    result, with the error of the first ``error`` result, or cancelled when
    stopped from outside.
    """

    def __init__(self, handle_id: int, interval: float, name: str | None = None):
        self.id = handle_id
        self.interval = interval
        self.name = name or f"poll-{handle_id}"
        self.ticks = 0
        self.skipped = 0

        self._task: asyncio.Task[None] | None = None
        self._outcome: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._stopped = False
        self._on_stop: Callable[[PollHandle], None] | None = None

    @property
    def active(self) -> bool:
        """True until the handle settles or is stopped."""
        return not self._stopped

    def stop(self) -> None:
        """Stop polling. Safe to call repeatedly and after self-stop."""
        if self._stopped:
            return
        # Cancelling aborts an in-flight check, so no further reads happen.
        if self._task is not None and self._task is not asyncio.current_task():
            self._task.cancel()
        if not self._outcome.done():
            self._outcome.cancel()
        self._finish()
        logger.debug(f"Poll {self.name} stopped after {self.ticks} ticks")

    def add_done_callback(self, fn: Callable[[asyncio.Future[Any]], None]) -> None:
        """Call fn with the outcome future once the handle settles or stops."""
        self._outcome.add_done_callback(fn)

    async def wait(self) -> Any:
        """Wait for the done value; raises the failure or CancelledError if stopped."""
        return await asyncio.shield(self._outcome)

    def _settle(self, value: Any) -> None:
        if not self._outcome.done():
            self._outcome.set_result(value)
        self._finish()

    def _fail(self, error: BaseException) -> None:
        if not self._outcome.done():
            self._outcome.set_exception(error)
        self._finish()

    def _finish(self) -> None:
        self._stopped = True
        if self._on_stop is not None:
            on_stop, self._on_stop = self._on_stop, None
            on_stop(self)


class Poller:
    """Runs check functions on a fixed cadence until they finish or are stopped.

    Each handle runs at most one check at a time. Ticks that elapse while a
    check is still running are skipped rather than queued.
    """

    def __init__(self) -> None:
        self._handles: dict[int, PollHandle] = {}
        self._ids = itertools.count(1)
        self._closed = False

    @property
    def active_handles(self) -> int:
        """Number of handles still polling."""
        return len(self._handles)

    def start(self, interval: float, check: CheckFn, *, name: str | None = None) -> PollHandle:
        """Start polling check every interval seconds."""
        if self._closed:
            raise RuntimeError("Poller is closed")
        if interval <= 0:
            raise ValueError(f"Poll interval must be positive, got {interval}")

        handle = PollHandle(next(self._ids), interval, name=name)
        handle._on_stop = self._forget
        self._handles[handle.id] = handle
        handle._task = asyncio.create_task(self._run(handle, check), name=handle.name)
        logger.debug(f"Poll {handle.name} started (interval={interval}s)")
        return handle

    def stop(self, handle: PollHandle) -> None:
        """Stop a handle. Idempotent."""
        handle.stop()

    def stop_all(self) -> None:
        """Stop every active handle."""
        for handle in list(self._handles.values()):
            handle.stop()

    def close(self) -> None:
        """Stop all handles and refuse new ones."""
        self._closed = True
        self.stop_all()

    def _forget(self, handle: PollHandle) -> None:
        self._handles.pop(handle.id, None)

    async def _run(self, handle: PollHandle, check: CheckFn) -> None:
        """Tick loop for a single handle."""
        loop = asyncio.get_running_loop()
        interval = handle.interval
        next_tick = loop.time() + interval

        while handle.active:
            delay = next_tick - loop.time()
            if delay > 0:
                await asyncio.sleep(delay)
            if not handle.active:
                return

            handle.ticks += 1
            try:
                result = await check()
            except Exception as e:
                result = PollResult.fail(e)

            if not handle.active:
                return
            if result.status is PollStatus.done:
                handle._settle(result.value)
                return
            if result.status is PollStatus.error:
                logger.debug(f"Poll {handle.name} failed: {result.error!r}")
                handle._fail(result.error)
                return

            next_tick += interval
            now = loop.time()
            if now > next_tick:
                # Check overran one or more ticks
                missed = int((now - next_tick) // interval) + 1
                handle.skipped += missed
                next_tick += missed * interval
