import asyncio
import json

from notification_hub.models.notification import Notification, NotificationStatus
from notification_hub.websockets.broadcaster import (
    NotificationBroadcaster,
    CONNECTED_EVENT,
    NOTIFICATION_UPDATE_EVENT,
    TRY_AGAIN_LATER,
    WebSocketObserver,
)

from conftest import RecordingObserver


def snapshot(notification_id="n1", status=NotificationStatus.PENDING, error=None):
    return Notification(id=notification_id, content="hello", status=status, error=error)


def test_connect_sends_connected_event_with_observer_id():
    async def scenario():
        broadcaster = NotificationBroadcaster()
        observer = RecordingObserver()
        observer_id = await broadcaster.connect(observer)
        await broadcaster.flush(timeout=1)
        await broadcaster.shutdown()
        return observer_id, observer

    observer_id, observer = asyncio.run(scenario())

    assert observer.received == [
        (CONNECTED_EVENT, {"message": "Connected to notification service", "clientId": observer_id})
    ]


def test_push_reaches_every_observer_in_order():
    async def scenario():
        broadcaster = NotificationBroadcaster()
        observers = [RecordingObserver() for _ in range(3)]
        for observer in observers:
            await broadcaster.connect(observer)

        reached = [
            broadcaster.push(snapshot(status=NotificationStatus.PENDING)),
            broadcaster.push(snapshot(status=NotificationStatus.PROCESSING)),
            broadcaster.push(snapshot(status=NotificationStatus.FAILED, error="boom")),
        ]
        await broadcaster.flush(timeout=1)
        await broadcaster.shutdown()
        return reached, observers

    reached, observers = asyncio.run(scenario())

    assert reached == [3, 3, 3]
    for observer in observers:
        updates = observer.events(NOTIFICATION_UPDATE_EVENT)
        assert [u["status"] for u in updates] == ["PENDING", "PROCESSING", "FAILED"]
        assert "error" not in updates[0]
        assert updates[2]["error"] == "boom"
        assert set(updates[0]) == {"id", "content", "status", "createdAt", "updatedAt"}


def test_push_with_no_observers_is_a_noop():
    broadcaster = NotificationBroadcaster()
    assert broadcaster.push(snapshot()) == 0
    assert broadcaster.stats() == {"count": 0, "ids": []}


def test_push_to_targets_single_observer():
    async def scenario():
        broadcaster = NotificationBroadcaster()
        target, other = RecordingObserver(), RecordingObserver()
        target_id = await broadcaster.connect(target)
        await broadcaster.connect(other)

        sent = broadcaster.push_to(target_id, snapshot())
        missing = broadcaster.push_to("unknown", snapshot())
        await broadcaster.flush(timeout=1)
        await broadcaster.shutdown()
        return sent, missing, target, other

    sent, missing, target, other = asyncio.run(scenario())

    assert sent is True
    assert missing is False
    assert len(target.events(NOTIFICATION_UPDATE_EVENT)) == 1
    assert other.events(NOTIFICATION_UPDATE_EVENT) == []


def test_failing_observer_is_dropped_without_affecting_others():
    async def scenario():
        broadcaster = NotificationBroadcaster()
        healthy = RecordingObserver()
        await broadcaster.connect(healthy, observer_id="healthy")
        broken = RecordingObserver(fail=True)
        await broadcaster.connect(broken, observer_id="broken")
        await asyncio.sleep(0.01)

        broadcaster.push(snapshot())
        await broadcaster.flush(timeout=1)
        stats = broadcaster.stats()
        await broadcaster.shutdown()
        return stats, healthy, broken

    stats, healthy, broken = asyncio.run(scenario())

    assert stats == {"count": 1, "ids": ["healthy"]}
    assert broken.closed is True
    assert healthy.closed is False
    assert len(healthy.events(NOTIFICATION_UPDATE_EVENT)) == 1


def test_slow_observer_never_blocks_push():
    async def scenario():
        broadcaster = NotificationBroadcaster(queue_size=2)
        fast = RecordingObserver()
        slow = RecordingObserver(delay=10)
        await broadcaster.connect(fast, observer_id="fast")
        await broadcaster.connect(slow, observer_id="slow")
        await asyncio.sleep(0.01)

        loop = asyncio.get_running_loop()
        started = loop.time()
        for i in range(5):
            broadcaster.push(snapshot(notification_id=f"n{i}"))
            await asyncio.sleep(0)
        elapsed = loop.time() - started

        await asyncio.sleep(0.01)
        stats = broadcaster.stats()
        await broadcaster.shutdown()
        return elapsed, stats, fast, slow

    elapsed, stats, fast, slow = asyncio.run(scenario())

    assert elapsed < 0.1
    assert slow.closed is True
    assert fast.closed is False
    assert stats["ids"] == ["fast"]
    assert [u["id"] for u in fast.events(NOTIFICATION_UPDATE_EVENT)] == [f"n{i}" for i in range(5)]


def test_disconnect_updates_stats():
    async def scenario():
        broadcaster = NotificationBroadcaster()
        first = await broadcaster.connect(RecordingObserver())
        second = await broadcaster.connect(RecordingObserver())
        before = broadcaster.stats()
        await broadcaster.disconnect(first)
        await broadcaster.disconnect("never-connected")
        after = broadcaster.stats()
        await broadcaster.shutdown()
        return first, second, before, after

    first, second, before, after = asyncio.run(scenario())

    assert before == {"count": 2, "ids": [first, second]}
    assert after == {"count": 1, "ids": [second]}


class FakeWebSocket:
    def __init__(self, delay=0.0):
        self.sent = []
        self.close_codes = []
        self.delay = delay

    async def send_text(self, text):
        if self.delay:
            await asyncio.sleep(self.delay)
        self.sent.append(json.loads(text))

    async def close(self, code=1000):
        self.close_codes.append(code)


def test_evicted_websocket_is_closed_so_client_can_reconnect():
    async def scenario():
        broadcaster = NotificationBroadcaster(queue_size=2)
        websocket = FakeWebSocket(delay=10)
        await broadcaster.connect(WebSocketObserver(websocket), observer_id="slow-socket")
        await asyncio.sleep(0.01)

        for i in range(5):
            broadcaster.push(snapshot(notification_id=f"n{i}"))
        await asyncio.sleep(0.01)

        stats = broadcaster.stats()
        await broadcaster.shutdown()
        return stats, websocket

    stats, websocket = asyncio.run(scenario())

    assert stats == {"count": 0, "ids": []}
    assert websocket.close_codes == [TRY_AGAIN_LATER]


def test_websocket_observer_frames_events_as_json():
    websocket = FakeWebSocket()

    asyncio.run(WebSocketObserver(websocket).send(NOTIFICATION_UPDATE_EVENT, snapshot().to_dict()))

    assert websocket.sent[0]["event"] == NOTIFICATION_UPDATE_EVENT
    assert websocket.sent[0]["data"]["id"] == "n1"
