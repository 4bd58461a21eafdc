from __future__ import annotations

import asyncio
import logging

from .completion import CompletionFuture
from .config import WatchConfig
from .exceptions import CancelledError, TimeoutError
from .hub import ProgressHub
from .models import ProgressRecord
from .poller import Poller
from .store.base import ProgressStore
from .stream import ProgressFeed, ProgressStream

logger = logging.getLogger("progresswatch.watcher")


class ProgressWatcher:
    """High-level API for observing job progress."""

    def __init__(
        self,
        store: ProgressStore,
        config: WatchConfig | None = None,
        *,
        poller: Poller | None = None,
    ):
        self._store = store
        self.config = config or WatchConfig()
        self._poller = poller or Poller()
        self._hub: ProgressHub | None = None
        if self.config.shared_polling:
            self._hub = ProgressHub(
                store,
                interval=self.config.stream_interval,
                poller=self._poller,
                max_store_failures=self.config.max_store_failures,
            )

    @property
    def store(self) -> ProgressStore:
        return self._store

    @property
    def poller(self) -> Poller:
        return self._poller

    @property
    def hub(self) -> ProgressHub | None:
        return self._hub

    @property
    def active_polls(self) -> int:
        """Number of poll timers currently held."""
        return self._poller.active_handles

    async def read(self, job_id: str) -> ProgressRecord | None:
        """Get the current record for a job."""
        return await self._store.read(job_id)

    async def completion(self, job_id: str) -> CompletionFuture:
        """Start waiting for a job to finish."""
        fut = CompletionFuture(
            self._store,
            job_id,
            interval=self.config.completion_interval,
            poller=self._poller,
            max_store_failures=self.config.max_store_failures,
        )
        return await fut.start()

    async def wait(self, job_id: str, *, timeout: float | None = None) -> ProgressRecord:
        """Wait for the terminal record of a job.

        ``timeout`` defaults to ``config.max_wait``; without either the wait
        lasts until the job completes or the watcher is closed.
        """
        if timeout is None:
            timeout = self.config.max_wait
        fut = await self.completion(job_id)

        try:
            if timeout is None:
                return await fut
            return await asyncio.wait_for(self._resolve(fut), timeout=timeout)
        except asyncio.TimeoutError:
            fut.cancel()
            raise TimeoutError(f"Job {job_id} not complete after {timeout}s") from None
        except asyncio.CancelledError:
            task = asyncio.current_task()
            if task is not None and task.cancelling():
                fut.cancel()
                raise
            raise CancelledError(f"Wait for job {job_id} was abandoned") from None

    def stream(self, job_id: str) -> ProgressFeed:
        """Open a live progress feed for a job."""
        if self._hub is not None:
            return self._hub.subscribe(job_id)
        return ProgressStream(
            self._store,
            job_id,
            interval=self.config.stream_interval,
            poller=self._poller,
            max_store_failures=self.config.max_store_failures,
        )

    async def close(self) -> None:
        """Stop all polls and close the store."""
        if self._hub is not None:
            self._hub.close()
        self._poller.close()
        await self._store.close()
        logger.info("Progress watcher closed")

    @staticmethod
    async def _resolve(fut: CompletionFuture) -> ProgressRecord:
        return await fut
