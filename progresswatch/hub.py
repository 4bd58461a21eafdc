from __future__ import annotations

import asyncio
import logging
from typing import Any

from .checks import StoreFailures, read_for_poll
from .poller import PollHandle, Poller, PollResult
from .store.base import ProgressStore
from .stream import ProgressFeed

logger = logging.getLogger("progresswatch.hub")


class HubSubscription(ProgressFeed):
    """One subscriber's view of a shared per-job poll."""

    def __init__(self, channel: _JobChannel):
        super().__init__(channel.job_id)
        self._channel = channel

    def _release(self) -> None:
        self._channel.unsubscribe(self)


class _JobChannel:
    """Single poll for one job, fanned out to every subscriber."""

    def __init__(self, hub: ProgressHub, job_id: str):
        self.hub = hub
        self.job_id = job_id
        self.subscribers: list[HubSubscription] = []
        self._failures = StoreFailures(hub.max_store_failures)
        self._handle: PollHandle | None = None

    def start(self) -> None:
        self._handle = self.hub.poller.start(
            self.hub.interval, self._check, name=f"hub-{self.job_id}"
        )
        self._handle.add_done_callback(self._on_poll_settled)
        logger.info(f"Shared poll started for job {self.job_id}")

    def subscribe(self) -> HubSubscription:
        sub = HubSubscription(self)
        self.subscribers.append(sub)
        return sub

    def unsubscribe(self, sub: HubSubscription) -> None:
        if sub in self.subscribers:
            self.subscribers.remove(sub)
        if not self.subscribers:
            self.shutdown()

    def shutdown(self, error: BaseException | None = None) -> None:
        """Stop polling and end every remaining subscription."""
        self.hub._forget(self)
        if self._handle is not None:
            self._handle.stop()
        for sub in list(self.subscribers):
            sub._finish(error)

    async def _check(self) -> PollResult:
        record = await read_for_poll(self.hub.store, self.job_id, self._failures)
        if record is None:
            return PollResult.pending()
        for sub in list(self.subscribers):
            sub._emit(record.progress)
        if record.is_terminal:
            # Detach first so late subscribers get a fresh poll
            self.hub._forget(self)
            for sub in list(self.subscribers):
                sub._finish()
            return PollResult.done(record)
        return PollResult.pending()

    def _on_poll_settled(self, outcome: asyncio.Future[Any]) -> None:
        if outcome.cancelled():
            self.shutdown()
            return
        error = outcome.exception()
        if error is not None:
            logger.error(f"Shared poll for job {self.job_id} failed: {error}")
            self.shutdown(error)
        else:
            logger.info(f"Shared poll for job {self.job_id} complete")


class ProgressHub:
    """Multiplexes one poll per job across any number of live subscribers.

    Subscribers see the values polled after they joined. The poll stops when
    the job completes, fails, or its last subscriber leaves.
    """

    def __init__(
        self,
        store: ProgressStore,
        *,
        interval: float,
        poller: Poller | None = None,
        max_store_failures: int | None = None,
    ):
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.store = store
        self.interval = interval
        self.poller = poller or Poller()
        self.max_store_failures = max_store_failures
        self._channels: dict[str, _JobChannel] = {}

    @property
    def active_jobs(self) -> int:
        return len(self._channels)

    def subscriber_count(self, job_id: str) -> int:
        channel = self._channels.get(job_id)
        return len(channel.subscribers) if channel else 0

    def subscribe(self, job_id: str) -> HubSubscription:
        """Subscribe to live progress values for a job."""
        channel = self._channels.get(job_id)
        if channel is None:
            channel = _JobChannel(self, job_id)
            # Registered only once polling is running
            channel.start()
            self._channels[job_id] = channel
        return channel.subscribe()

    def close(self) -> None:
        """Stop every shared poll and end all subscriptions."""
        for channel in list(self._channels.values()):
            channel.shutdown()

    def _forget(self, channel: _JobChannel) -> None:
        if self._channels.get(channel.job_id) is channel:
            del self._channels[channel.job_id]
