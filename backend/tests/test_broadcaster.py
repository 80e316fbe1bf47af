import asyncio
import threading

import pytest

from notify_hub.models import Broadcaster, Lagged, PublishFailure, SubscriptionClosed


async def drain(sub, n):
    return [await asyncio.wait_for(sub.recv(), timeout=1) for _ in range(n)]


def test_publish_without_subscribers_is_not_an_error():
    bus = Broadcaster(capacity=4)
    assert bus.publish("nobody listening") == 0
    assert bus.published_count == 1


@pytest.mark.asyncio
async def test_every_subscriber_gets_each_message_once():
    bus = Broadcaster(capacity=10)
    subs = [bus.subscribe() for _ in range(3)]

    assert bus.publish("hello") == 3

    for sub in subs:
        assert await drain(sub, 1) == ["hello"]
        assert sub.pending == 0


@pytest.mark.asyncio
async def test_messages_arrive_in_publish_order():
    bus = Broadcaster(capacity=100)
    sub = bus.subscribe()
    expected = [f"m{i}" for i in range(50)]
    for text in expected:
        bus.publish(text)

    assert await drain(sub, 50) == expected


@pytest.mark.asyncio
async def test_late_subscriber_only_sees_newer_messages():
    bus = Broadcaster(capacity=10)
    bus.publish("before")
    sub = bus.subscribe()
    bus.publish("after")

    assert await drain(sub, 1) == ["after"]
    assert sub.pending == 0


@pytest.mark.asyncio
async def test_blocked_recv_wakes_on_publish():
    bus = Broadcaster(capacity=10)
    sub = bus.subscribe()
    task = asyncio.create_task(sub.recv())
    await asyncio.sleep(0)
    assert not task.done()

    bus.publish("wake up")
    assert await asyncio.wait_for(task, timeout=1) == "wake up"


@pytest.mark.asyncio
async def test_publish_from_another_thread_wakes_subscriber():
    bus = Broadcaster(capacity=10)
    sub = bus.subscribe()
    task = asyncio.create_task(sub.recv())
    await asyncio.sleep(0)

    delivered = await asyncio.get_running_loop().run_in_executor(None, bus.publish, "from a thread")

    assert delivered == 1
    assert await asyncio.wait_for(task, timeout=1) == "from a thread"


@pytest.mark.asyncio
async def test_lagging_subscriber_is_told_how_many_it_missed():
    bus = Broadcaster(capacity=3)
    sub = bus.subscribe()
    for i in range(5):
        bus.publish(str(i))

    with pytest.raises(Lagged) as excinfo:
        await sub.recv()
    assert excinfo.value.missed == 2

    # resumes at the oldest retained message, nothing repeated
    assert await drain(sub, 3) == ["2", "3", "4"]
    bus.publish("5")
    assert await drain(sub, 1) == ["5"]


@pytest.mark.asyncio
async def test_cursor_exactly_capacity_behind_is_not_lagged():
    bus = Broadcaster(capacity=3)
    sub = bus.subscribe()
    for i in range(3):
        bus.publish(str(i))

    assert await drain(sub, 3) == ["0", "1", "2"]


@pytest.mark.asyncio
async def test_close_wakes_pending_recv():
    bus = Broadcaster(capacity=10)
    sub = bus.subscribe()
    task = asyncio.create_task(sub.recv())
    await asyncio.sleep(0)

    sub.close()
    sub.close()

    with pytest.raises(SubscriptionClosed):
        await asyncio.wait_for(task, timeout=1)
    with pytest.raises(SubscriptionClosed):
        await sub.recv()
    assert bus.subscriber_count == 0


@pytest.mark.asyncio
async def test_closing_one_subscription_leaves_others_alone():
    bus = Broadcaster(capacity=10)
    a, b = bus.subscribe(), bus.subscribe()
    a.close()

    assert bus.publish("still here") == 1
    assert await drain(b, 1) == ["still here"]


@pytest.mark.asyncio
async def test_shutdown_closes_subscriptions_and_rejects_publish():
    bus = Broadcaster(capacity=10)
    sub = bus.subscribe()
    task = asyncio.create_task(sub.recv())
    await asyncio.sleep(0)

    bus.close()
    bus.close()

    with pytest.raises(SubscriptionClosed):
        await asyncio.wait_for(task, timeout=1)
    with pytest.raises(PublishFailure):
        bus.publish("too late")
    assert bus.subscribe().closed


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        Broadcaster(capacity=0)


def run_threads(target, count):
    start = threading.Barrier(count)

    def worker(index):
        start.wait()
        target(index)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)
    assert not any(t.is_alive() for t in threads)


@pytest.mark.asyncio
async def test_concurrent_publishers_share_one_total_order():
    producers, per_producer = 8, 200
    bus = Broadcaster(capacity=producers * per_producer)
    subs = [bus.subscribe() for _ in range(3)]

    def produce(index):
        for n in range(per_producer):
            bus.publish(f"{index}:{n}")

    run_threads(produce, producers)

    assert bus.published_count == producers * per_producer
    received = [await drain(sub, producers * per_producer) for sub in subs]
    assert received[0] == received[1] == received[2]
    assert sorted(received[0]) == sorted(f"{i}:{n}" for i in range(producers) for n in range(per_producer))
    for index in range(producers):
        mine = [int(m.split(":")[1]) for m in received[0] if m.split(":")[0] == str(index)]
        assert mine == list(range(per_producer))
    assert all(sub.pending == 0 for sub in subs)


def test_concurrent_subscribes_are_all_registered():
    workers, per_worker = 8, 100
    bus = Broadcaster(capacity=10)
    opened = [[] for _ in range(workers)]

    def subscribe_many(index):
        for _ in range(per_worker):
            opened[index].append(bus.subscribe())

    run_threads(subscribe_many, workers)

    subs = [sub for batch in opened for sub in batch]
    assert bus.subscriber_count == workers * per_worker
    assert len({sub.id for sub in subs}) == workers * per_worker
    assert bus.publish("everyone") == workers * per_worker
    assert all(sub.pending == 1 for sub in subs)
