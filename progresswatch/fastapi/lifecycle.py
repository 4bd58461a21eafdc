from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from ..config import WatchConfig
from ..store.base import ProgressStore
from ..store.file import FileProgressStore
from ..watcher import ProgressWatcher

logger = logging.getLogger("progresswatch.lifecycle")

WATCHER_STATE_KEY = "progresswatch_watcher"


def setup_progresswatch(
    app: FastAPI,
    *,
    store: ProgressStore | None = None,
    progress_dir: str | Path | None = None,
    config: WatchConfig | None = None,
    include_router: bool = True,
    prefix: str = "/api/v1",
    **config_overrides,
) -> ProgressWatcher:
    """Setup progress watching in FastAPI application."""
    # Initialize store
    if store is None:
        if not progress_dir:
            raise ValueError("Provide `store` or `progress_dir`")
        store = FileProgressStore(progress_dir)

    config = config or WatchConfig()
    if config_overrides:
        config = config.with_overrides(**config_overrides)

    watcher = ProgressWatcher(store, config)
    setattr(app.state, WATCHER_STATE_KEY, watcher)

    # Setup lifecycle
    @asynccontextmanager
    async def _lifespan(app_: FastAPI):
        logger.info(
            f"Progress watching ready (stream={config.stream_interval}s, "
            f"completion={config.completion_interval}s, shared={config.shared_polling})"
        )
        try:
            yield
        finally:
            logger.info("Shutting down progress watcher...")
            try:
                await watcher.close()
            except Exception:
                logger.exception("Failed to close progress watcher")

    # Compose with existing lifespan
    if app.router.lifespan_context is None:
        app.router.lifespan_context = _lifespan
    else:
        existing = app.router.lifespan_context

        @asynccontextmanager
        async def _composed(app_: FastAPI):
            async with existing(app_):
                async with _lifespan(app_):
                    yield

        app.router.lifespan_context = _composed

    # Include router
    if include_router:
        from .router import get_router

        app.include_router(get_router(), prefix=prefix)

    return watcher
