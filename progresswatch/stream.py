from __future__ import annotations

import asyncio
import logging
from typing import Any

from .checks import StoreFailures, read_for_poll
from .poller import PollHandle, Poller, PollResult
from .store.base import ProgressStore

logger = logging.getLogger("progresswatch.stream")


class _End:
    """Queue marker: no more values."""

    __slots__ = ("error",)

    def __init__(self, error: BaseException | None = None):
        self.error = error


class ProgressFeed:
    """Async iterator over progress values pushed in by a poll check.

    Values pushed before the producer side finishes are delivered in order.
    Once the consumer closes the feed, nothing more is yielded, buffered
    values included.
    """

    def __init__(self, job_id: str):
        self.job_id = job_id
        self._queue: asyncio.Queue[int | _End] = asyncio.Queue()
        self._finished = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> ProgressFeed:
        return self

    async def __anext__(self) -> int:
        if self._closed:
            raise StopAsyncIteration
        self._ensure_started()

        item = await self._queue.get()
        if self._closed:
            raise StopAsyncIteration
        if isinstance(item, _End):
            self._closed = True
            self._release()
            if item.error is not None:
                raise item.error
            raise StopAsyncIteration
        return item

    def close(self) -> None:
        """Stop the feed. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._release()
        # wake a consumer blocked in __anext__
        self._finish()

    async def aclose(self) -> None:
        self.close()

    async def __aenter__(self) -> ProgressFeed:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()

    def _emit(self, value: int) -> None:
        if not self._finished and not self._closed:
            self._queue.put_nowait(value)

    def _finish(self, error: BaseException | None = None) -> None:
        if self._finished:
            return
        self._finished = True
        self._queue.put_nowait(_End(error))

    def _ensure_started(self) -> None:
        """Called before each wait for a value; subclasses start polling here."""

    def _release(self) -> None:
        """Called once when the feed ends; subclasses drop their poll here."""


class ProgressStream(ProgressFeed):
    """Live progress values for one job, polled for a single consumer.

    Polling starts on first iteration. Every successful read emits its value,
    duplicates included. Iteration ends after 100 is yielded or when the
    consumer closes the stream. A malformed record ends it with the error.
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
        super().__init__(job_id)
        self._store = store
        self._interval = interval
        self._poller = poller or Poller()
        self._failures = StoreFailures(max_store_failures)
        self._handle: PollHandle | None = None

    @property
    def polling(self) -> bool:
        """True while a poll timer is held."""
        return self._handle is not None and self._handle.active

    def start(self) -> None:
        """Start polling. A closed stream is never restarted."""
        if self._handle is not None or self._closed:
            return
        self._handle = self._poller.start(self._interval, self._check, name=f"stream-{self.job_id}")
        self._handle.add_done_callback(self._on_poll_settled)
        logger.info(f"Streaming progress for job {self.job_id} (interval={self._interval}s)")

    def _ensure_started(self) -> None:
        self.start()

    def _release(self) -> None:
        if self._handle is not None:
            self._handle.stop()

    async def _check(self) -> PollResult:
        record = await read_for_poll(self._store, self.job_id, self._failures)
        if record is None:
            return PollResult.pending()
        self._emit(record.progress)
        if record.is_terminal:
            self._finish()
            return PollResult.done(record)
        return PollResult.pending()

    def _on_poll_settled(self, outcome: asyncio.Future[Any]) -> None:
        if outcome.cancelled():
            self._finish()
            return
        error = outcome.exception()
        if error is not None:
            logger.error(f"Progress stream for job {self.job_id} failed: {error}")
            self._finish(error)
        else:
            logger.info(f"Progress stream for job {self.job_id} complete")
