import asyncio
import random
from typing import Any, Dict, List, Optional, Tuple

import pytest

from notification_hub.messaging.redis_broker import BrokerClient, PublishResult
from notification_hub.models.notification import Notification
from notification_hub.services.notification_service import NotificationService
from notification_hub.services.processing import NotificationProcessor
from notification_hub.storage.notification_store import InMemoryNotificationStore
from notification_hub.utils.error_handling import BrokerPublishError
from notification_hub.websockets.broadcaster import NotificationBroadcaster


class FakeBroker(BrokerClient):
    """Records publishes in memory; can be told to fail per channel."""

    def __init__(self):
        self.published: List[Tuple[str, Dict[str, Any]]] = []
        self.failures: Dict[str, BrokerPublishError] = {}
        self.raise_on_publish: Optional[Exception] = None
        self.connected = False

    def fail(self, channel: str, error: BrokerPublishError) -> None:
        self.failures[channel] = error

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.connected = False

    async def publish(self, channel: str, payload: Dict[str, Any]) -> PublishResult:
        if self.raise_on_publish is not None:
            raise self.raise_on_publish
        if channel in self.failures:
            return PublishResult(success=False, channel=channel, error=self.failures[channel])
        self.published.append((channel, payload))
        return PublishResult(success=True, channel=channel, queue=channel, queue_depth=len(self.published))

    def messages(self, channel: str) -> List[Dict[str, Any]]:
        return [payload for published_channel, payload in self.published if published_channel == channel]


class RecordingBroadcaster(NotificationBroadcaster):
    """Real broadcaster that also keeps every pushed snapshot."""

    def __init__(self, queue_size: int = 100):
        super().__init__(queue_size=queue_size)
        self.pushed: List[Notification] = []

    def push(self, notification: Notification) -> int:
        self.pushed.append(notification)
        return super().push(notification)

    def pushes_for(self, notification_id: str) -> List[Notification]:
        return [n for n in self.pushed if n.id == notification_id]


class RecordingObserver:
    def __init__(self, delay: float = 0.0, fail: bool = False):
        self.received: List[Tuple[str, Dict[str, Any]]] = []
        self.delay = delay
        self.fail = fail
        self.closed = False

    async def send(self, event: str, data: Dict[str, Any]) -> None:
        if self.fail:
            raise ConnectionError("socket closed")
        if self.delay:
            await asyncio.sleep(self.delay)
        self.received.append((event, data))

    async def close(self) -> None:
        self.closed = True

    def events(self, name: str) -> List[Dict[str, Any]]:
        return [data for event, data in self.received if event == name]


async def no_sleep(_seconds: float) -> None:
    return None


def make_processor(failure_rate: float = 0.0) -> NotificationProcessor:
    """Processor with no delay and a fixed outcome"""
    return NotificationProcessor(
        min_delay=0.0,
        max_delay=0.0,
        failure_rate=failure_rate,
        rng=random.Random(42),
        sleep=no_sleep,
    )


@pytest.fixture
def store():
    return InMemoryNotificationStore()


@pytest.fixture
def broker():
    return FakeBroker()


@pytest.fixture
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture
def make_service(store, broker, broadcaster):
    def _make(failure_rate: float = 0.0, processor: Optional[NotificationProcessor] = None) -> NotificationService:
        return NotificationService(
            store=store,
            broker=broker,
            broadcaster=broadcaster,
            processor=processor or make_processor(failure_rate),
        )
    return _make
