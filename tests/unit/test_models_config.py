import pytest

from progresswatch import __version__
from progresswatch.config import WatchConfig
from progresswatch.events import ProgressEvent
from progresswatch.exceptions import MalformedRecord
from progresswatch.models import TERMINAL_PROGRESS, ProgressRecord


def test_record_validation_accepts_valid_data():
    assert ProgressRecord.from_dict({"progress": 0}) == ProgressRecord(0)
    assert ProgressRecord.from_dict({"progress": 55.0}).progress == 55
    rec = ProgressRecord.from_dict({"progress": 100, "result": {"img": "x.png"}})
    assert rec.is_terminal and rec.result == {"img": "x.png"}
    assert ProgressRecord.from_dict({"progress": 40, "result": None}).result is None
    assert TERMINAL_PROGRESS == 100


@pytest.mark.parametrize(
    "data",
    [
        None,
        [1, 2],
        "100",
        {},
        {"progress": None},
        {"progress": "50"},
        {"progress": True},
        {"progress": 12.5},
        {"progress": -1},
        {"progress": 101},
        {"progress": 99, "result": "partial.png"},
    ],
)
def test_record_validation_rejects_malformed_data(data):
    with pytest.raises(MalformedRecord):
        ProgressRecord.from_dict(data)


def test_record_to_dict():
    assert ProgressRecord(10).to_dict() == {"progress": 10}
    assert ProgressRecord(100, "x").to_dict() == {"progress": 100, "result": "x"}
    assert not ProgressRecord(99).is_terminal


def test_progress_event_encodes_sse_frame():
    ev = ProgressEvent("progress", "job", 55)
    assert ev.encode() == "event: progress\ndata: 55\n\n"


def test_config_defaults_and_validation():
    c = WatchConfig()
    assert c.stream_interval == 0.2 and c.completion_interval == 0.2
    assert c.max_store_failures is None and c.max_wait is None and not c.shared_polling

    for bad in (
        {"stream_interval": 0},
        {"completion_interval": -0.1},
        {"max_store_failures": 0},
        {"max_wait": 0},
    ):
        with pytest.raises(ValueError):
            WatchConfig(**bad)

    c2 = c.with_overrides(completion_interval=1.0, shared_polling=True)
    assert c2.completion_interval == 1.0 and c2.shared_polling and c.completion_interval == 0.2
    with pytest.raises(TypeError):
        c.with_overrides(poll_every=3)


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("PROGRESSWATCH_STREAM_INTERVAL", "0.5")
    monkeypatch.setenv("PROGRESSWATCH_COMPLETION_INTERVAL", "1")
    monkeypatch.setenv("PROGRESSWATCH_MAX_STORE_FAILURES", "10")
    monkeypatch.setenv("PROGRESSWATCH_MAX_WAIT", "")
    monkeypatch.setenv("PROGRESSWATCH_SHARED_POLLING", "yes")
    c = WatchConfig.from_env()
    assert c.stream_interval == 0.5 and c.completion_interval == 1.0
    assert c.max_store_failures == 10 and c.max_wait is None and c.shared_polling

    monkeypatch.setenv("APP_STREAM_INTERVAL", "-2")
    with pytest.raises(ValueError):
        WatchConfig.from_env(prefix="APP_")


def test_version():
    assert isinstance(__version__, str) and __version__
