from contextlib import asynccontextmanager

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from progresswatch.config import WatchConfig
from progresswatch.fastapi.lifecycle import WATCHER_STATE_KEY, setup_progresswatch
from progresswatch.store.memory import MemoryProgressStore


def test_setup_requires_store_or_progress_dir():
    with pytest.raises(ValueError):
        setup_progresswatch(FastAPI())  # no store and no progress_dir


def test_setup_rejects_unknown_options():
    with pytest.raises(TypeError):
        setup_progresswatch(FastAPI(), store=MemoryProgressStore(), poll_every=1)


def test_config_and_overrides_are_applied():
    app = FastAPI()
    w = setup_progresswatch(
        app,
        store=MemoryProgressStore(),
        config=WatchConfig(stream_interval=0.5),
        completion_interval=2.0,
        include_router=False,
    )
    assert w.config.stream_interval == 0.5 and w.config.completion_interval == 2.0
    assert getattr(app.state, WATCHER_STATE_KEY) is w
    assert not any(getattr(r, "path", "").startswith("/api/v1/jobs") for r in app.routes)


def test_shutdown_closes_store(scripted):
    store = scripted([None])
    app = FastAPI()
    setup_progresswatch(app, store=store)
    with TestClient(app) as client:
        assert client.get("/api/v1/jobs/_health").status_code == 200
        assert not store.closed
    assert store.closed


def test_composed_lifespan_and_custom_prefix(scripted):
    calls = {"enter": 0, "exit": 0}

    @asynccontextmanager
    async def existing(app_):
        calls["enter"] += 1
        yield
        calls["exit"] += 1

    store = scripted([{"progress": 3}])
    app = FastAPI(lifespan=existing)
    setup_progresswatch(app, store=store, prefix="/progress")
    with TestClient(app) as client:
        assert client.get("/progress/jobs/job").json()["progress"] == 3
    assert calls == {"enter": 1, "exit": 1}
    assert store.closed


def test_close_failure_is_logged_not_raised(caplog):
    class BrokenClose(MemoryProgressStore):
        async def close(self):
            raise RuntimeError("boom_close")

    app = FastAPI()
    setup_progresswatch(app, store=BrokenClose(), include_router=False)
    with TestClient(app):
        pass
    assert "Failed to close progress watcher" in caplog.text
