import asyncio

import pytest

from progresswatch.exceptions import MalformedRecord
from progresswatch.hub import ProgressHub
from progresswatch.poller import Poller


async def drain(feed):
    return [v async for v in feed]


@pytest.mark.asyncio
async def test_subscribers_share_one_poll(scripted, poller, interval):
    store = scripted([{"progress": 10}, {"progress": 60}, {"progress": 100}])
    hub = ProgressHub(store, interval=interval, poller=poller)

    a = hub.subscribe("job")
    b = hub.subscribe("job")
    assert hub.active_jobs == 1 and hub.subscriber_count("job") == 2
    assert poller.active_handles == 1

    ra, rb = await asyncio.wait_for(asyncio.gather(drain(a), drain(b)), 2)
    assert ra == rb == [10, 60, 100]
    assert store.reads == 3
    assert hub.active_jobs == 0 and poller.active_handles == 0


@pytest.mark.asyncio
async def test_last_unsubscribe_stops_poll(memory_store, poller, interval):
    memory_store.write("job", 25)
    hub = ProgressHub(memory_store, interval=interval, poller=poller)
    a = hub.subscribe("job")
    b = hub.subscribe("job")

    a.close()
    assert hub.subscriber_count("job") == 1 and poller.active_handles == 1
    b.close()
    b.close()
    assert hub.active_jobs == 0 and poller.active_handles == 0


@pytest.mark.asyncio
async def test_new_subscriber_after_completion_gets_fresh_poll(scripted, poller, interval):
    store = scripted([{"progress": 100}])
    hub = ProgressHub(store, interval=interval, poller=poller)

    assert await drain(hub.subscribe("job")) == [100]
    assert hub.active_jobs == 0

    assert await drain(hub.subscribe("job")) == [100]
    assert store.reads == 2


@pytest.mark.asyncio
async def test_late_subscriber_sees_only_new_values(memory_store, poller, interval):
    memory_store.write("job", 10)
    hub = ProgressHub(memory_store, interval=interval, poller=poller)
    early = hub.subscribe("job")
    assert await early.__anext__() == 10

    late = hub.subscribe("job")
    memory_store.write("job", 100)
    assert await asyncio.wait_for(drain(late), 2) in ([100], [10, 100])
    rest = await asyncio.wait_for(drain(early), 2)
    assert rest[-1] == 100


@pytest.mark.asyncio
async def test_fatal_error_reaches_every_subscriber(scripted, poller, interval):
    store = scripted([{"progress": 10}, {"progress": 10, "result": "early"}])
    hub = ProgressHub(store, interval=interval, poller=poller)
    a = hub.subscribe("job")
    b = hub.subscribe("job")

    for sub in (a, b):
        with pytest.raises(MalformedRecord):
            await asyncio.wait_for(drain(sub), 2)
    assert hub.active_jobs == 0 and poller.active_handles == 0


@pytest.mark.asyncio
async def test_close_ends_all_subscriptions(memory_store, poller, interval):
    memory_store.write("a", 1)
    memory_store.write("b", 2)
    hub = ProgressHub(memory_store, interval=interval, poller=poller)
    sa, sb = hub.subscribe("a"), hub.subscribe("b")
    assert hub.active_jobs == 2

    hub.close()
    assert await asyncio.wait_for(drain(sa), 1) == []
    assert await asyncio.wait_for(drain(sb), 1) == []
    assert poller.active_handles == 0


@pytest.mark.asyncio
async def test_failed_start_leaves_no_channel_behind(memory_store, interval):
    memory_store.write("job", 100)
    closed = Poller()
    closed.close()
    hub = ProgressHub(memory_store, interval=interval, poller=closed)

    with pytest.raises(RuntimeError):
        hub.subscribe("job")
    assert hub.active_jobs == 0

    # later subscribers are refused too, rather than joining a dead poll
    with pytest.raises(RuntimeError):
        hub.subscribe("job")
    assert hub.active_jobs == 0 and hub.subscriber_count("job") == 0
