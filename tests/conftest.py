# tests/conftest.py
import asyncio
import typing as t
from pathlib import Path

import pytest

from progresswatch.exceptions import StoreUnavailable
from progresswatch.models import ProgressRecord
from progresswatch.poller import Poller
from progresswatch.store.base import ProgressStore
from progresswatch.store.memory import MemoryProgressStore

# Short cadence so timing scenarios run in well under a second
INTERVAL = 0.05


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture()
def interval() -> float:
    return INTERVAL


@pytest.fixture()
def progress_dir(tmp_path: Path) -> Path:
    d = tmp_path / "progress"
    d.mkdir()
    return d


@pytest.fixture()
def tmp_db_path(tmp_path: Path) -> str:
    return str(tmp_path / "progress.db")


@pytest.fixture()
def memory_store() -> MemoryProgressStore:
    return MemoryProgressStore()


@pytest.fixture()
async def poller():
    p = Poller()
    try:
        yield p
    finally:
        p.close()


class ScriptedStore(ProgressStore):
    """Replays one outcome per read; the last outcome repeats.

    Outcomes: a dict (validated record data), None (not found), or an
    exception instance (raised).
    """

    def __init__(self, outcomes: list[t.Any], delay: float = 0.0):
        self.outcomes = list(outcomes)
        self.delay = delay
        self.reads = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def read(self, job_id: str) -> ProgressRecord | None:
        self.reads += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            idx = min(self.reads - 1, len(self.outcomes) - 1)
            outcome = self.outcomes[idx]
        finally:
            self.in_flight -= 1
        if isinstance(outcome, BaseException):
            raise outcome
        if outcome is None:
            return None
        return ProgressRecord.from_dict(outcome)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture()
def scripted():
    """Factory for ScriptedStore."""
    return ScriptedStore


@pytest.fixture()
def unavailable():
    def _mk(msg: str = "disk gone") -> StoreUnavailable:
        return StoreUnavailable(msg)

    return _mk


async def wait_for(
    predicate: t.Callable[[], t.Awaitable[bool]] | t.Callable[[], bool], timeout=2.0, interval=0.01
):
    loop = asyncio.get_running_loop()
    end = loop.time() + timeout
    while loop.time() < end:
        res = await predicate() if asyncio.iscoroutinefunction(predicate) else predicate()
        if res:
            return True
        await asyncio.sleep(interval)
    return False


@pytest.fixture()
def until():
    return wait_for


async def collect(feed, into: list[int]) -> None:
    async for value in feed:
        into.append(value)


@pytest.fixture()
def collector():
    return collect
