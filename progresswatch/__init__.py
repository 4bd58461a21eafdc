"""
progresswatch - Watch background job progress records from asyncio and FastAPI.

Usage:
    from progresswatch import setup_progresswatch, WatchConfig
    from progresswatch.store.file import FileProgressStore

    setup_progresswatch(
        app,
        store=FileProgressStore("./progress"),
        config=WatchConfig(stream_interval=0.2, completion_interval=0.5),
    )

    # or directly
    watcher = ProgressWatcher(FileProgressStore("./progress"))
    record = await watcher.wait("a1b2c3")
    async for value in watcher.stream("a1b2c3"):
        ...
"""

from .completion import CompletionFuture
from .config import WatchConfig
from .events import ProgressEvent
from .exceptions import (
    CancelledError,
    MalformedRecord,
    ProgressWatchError,
    StoreUnavailable,
    TimeoutError,
)
from .fastapi.lifecycle import setup_progresswatch
from .hub import HubSubscription, ProgressHub
from .models import TERMINAL_PROGRESS, JobId, ProgressRecord
from .poller import PollHandle, Poller, PollResult, PollStatus
from .store.base import ProgressStore
from .store.file import FileProgressStore
from .store.memory import MemoryProgressStore
from .store.sqlite import SqliteProgressStore
from .stream import ProgressFeed, ProgressStream
from .version import __version__
from .watcher import ProgressWatcher

from .store.redis import REDIS_AVAILABLE, RedisProgressStore

# Redis store is only exported when the redis extra is installed
__all_redis = ["RedisProgressStore"] if REDIS_AVAILABLE else []

__all__ = [
    # Version
    "__version__",
    # Core
    "JobId",
    "ProgressRecord",
    "TERMINAL_PROGRESS",
    "ProgressEvent",
    "WatchConfig",
    # Polling
    "Poller",
    "PollHandle",
    "PollResult",
    "PollStatus",
    # Watches
    "CompletionFuture",
    "ProgressFeed",
    "ProgressStream",
    "ProgressHub",
    "HubSubscription",
    "ProgressWatcher",
    # Store
    "ProgressStore",
    "MemoryProgressStore",
    "FileProgressStore",
    "SqliteProgressStore",
    # FastAPI
    "setup_progresswatch",
    # Exceptions
    "ProgressWatchError",
    "StoreUnavailable",
    "MalformedRecord",
    "CancelledError",
    "TimeoutError",
] + __all_redis
