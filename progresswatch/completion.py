from __future__ import annotations

import asyncio
import logging
from collections.abc import Generator
from typing import Any

from .checks import StoreFailures, read_for_poll
from .models import ProgressRecord
from .poller import PollHandle, Poller, PollResult
from .store.base import ProgressStore

logger = logging.getLogger("progresswatch.completion")


class CompletionFuture:
    """Settles once with the terminal record of a job.

    Usage:
        fut = await CompletionFuture(store, job_id, interval=0.2).start()
        record = await fut

    Missing records and transient store failures count as "not ready yet".
    A malformed record rejects the future. ``cancel()`` abandons it: the
    future ends cancelled, neither resolved nor rejected.
    """

    def __init__(
        self,
        store: ProgressStore,
        job_id: str,
        *,
        interval: float,
        poller: Poller | None = None,
        max_store_failures: int | None = None,
    ):
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.job_id = job_id
        self._store = store
        self._interval = interval
        self._poller = poller or Poller()
        self._failures = StoreFailures(max_store_failures)

        self._future: asyncio.Future[ProgressRecord] = asyncio.get_running_loop().create_future()
        self._future.add_done_callback(self._on_settled)
        self._handle: PollHandle | None = None
        self._started = False

    @property
    def polling(self) -> bool:
        """True while a poll timer is held."""
        return self._handle is not None and self._handle.active

    def done(self) -> bool:
        return self._future.done()

    def cancelled(self) -> bool:
        return self._future.cancelled()

    def result(self) -> ProgressRecord:
        return self._future.result()

    def exception(self) -> BaseException | None:
        return self._future.exception()

    async def start(self) -> CompletionFuture:
        """Read once, then poll unless the job has already finished."""
        if self._started:
            return self
        self._started = True

        try:
            record = await read_for_poll(self._store, self.job_id, self._failures)
        except asyncio.CancelledError:
            self.cancel()
            raise
        except Exception as e:
            self._reject(e)
            return self

        if self._future.done():
            # cancelled during the first read
            return self
        if record is not None and record.is_terminal:
            logger.info(f"Job {self.job_id} already complete")
            self._future.set_result(record)
            return self

        self._handle = self._poller.start(
            self._interval, self._check, name=f"completion-{self.job_id}"
        )
        self._handle.add_done_callback(self._on_poll_settled)
        logger.info(f"Waiting for job {self.job_id} (interval={self._interval}s)")
        return self

    def cancel(self) -> None:
        """Abandon the wait and release the timer. Idempotent."""
        if self._handle is not None:
            self._handle.stop()
        if not self._future.done():
            self._future.cancel()

    def __await__(self) -> Generator[Any, None, ProgressRecord]:
        return self._future.__await__()

    async def _check(self) -> PollResult:
        record = await read_for_poll(self._store, self.job_id, self._failures)
        if record is not None and record.is_terminal:
            return PollResult.done(record)
        return PollResult.pending()

    def _on_poll_settled(self, outcome: asyncio.Future[Any]) -> None:
        if self._future.done():
            return
        if outcome.cancelled():
            # timer stopped from outside, e.g. poller shutdown
            self._future.cancel()
            return
        error = outcome.exception()
        if error is not None:
            self._reject(error)
        else:
            self._future.set_result(outcome.result())

    def _reject(self, error: BaseException) -> None:
        logger.error(f"Wait for job {self.job_id} failed: {error}")
        if not self._future.done():
            self._future.set_exception(error)

    def _on_settled(self, fut: asyncio.Future[ProgressRecord]) -> None:
        if self._handle is not None:
            self._handle.stop()
        if fut.cancelled():
            logger.info(f"Wait for job {self.job_id} abandoned")
        elif fut.exception() is None:
            logger.info(f"Job {self.job_id} complete")
