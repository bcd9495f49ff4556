"""
Redis Broker Client
Work and status queues on Redis lists with bounded-time publishing
"""

import json
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Any, Optional, Sequence, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError, TimeoutError as RedisTimeoutError

from ..config.settings import Settings
from ..monitoring.prometheus_metrics import record_publish
from ..utils.error_handling import BrokerPublishError, BrokerUnavailable, BrokerPublishTimeout

logger = logging.getLogger(__name__)

# Logical channels
PROCESS_NOTIFICATION = 'process_notification'
NOTIFICATION_STATUS = 'notification_status'


@dataclass
class PublishResult:
    """Result of publishing a message"""
    success: bool
    channel: str
    queue: Optional[str] = None
    queue_depth: Optional[int] = None
    error: Optional[BrokerPublishError] = None


def encode_envelope(channel: str, payload: Dict[str, Any]) -> str:
    return json.dumps({
        'pattern': channel,
        'data': payload,
        'timestamp': datetime.now().isoformat()
    }, default=str)


def decode_envelope(raw: Any) -> Tuple[str, Dict[str, Any]]:
    """Return (pattern, data) from a raw queue message, ValueError if malformed"""
    if isinstance(raw, bytes):
        raw = raw.decode('utf-8')
    try:
        message = json.loads(raw)
    except (TypeError, json.JSONDecodeError) as e:
        raise ValueError(f"Message is not valid JSON: {e}") from e

    if not isinstance(message, dict) or 'pattern' not in message:
        raise ValueError("Message envelope has no pattern")
    return message['pattern'], message.get('data') or {}


class BrokerClient(ABC):
    """Producer side of the broker as seen by the lifecycle engine"""

    @abstractmethod
    async def publish(self, channel: str, payload: Dict[str, Any]) -> PublishResult:
        ...

    async def connect(self) -> None:
        pass

    async def close(self) -> None:
        pass


class RedisBrokerClient(BrokerClient):
    """
    Redis-backed broker.

    Each logical channel maps to one Redis list: producers LPUSH JSON
    envelopes and consumers BRPOP them, which gives FIFO work-queue
    semantics with one delivery per message.
    """

    def __init__(
        self,
        redis_url: str = 'redis://localhost:6379/0',
        queue_name: str = 'notifications',
        publish_timeout: float = 5.0,
        redis_client: Optional[redis.Redis] = None
    ):
        self.redis_url = redis_url
        self.publish_timeout = publish_timeout
        self.redis_client: Optional[redis.Redis] = redis_client
        self.queues: Dict[str, str] = {
            PROCESS_NOTIFICATION: queue_name,
            NOTIFICATION_STATUS: f"{queue_name}_status",
        }

    @classmethod
    def from_settings(cls, settings: Settings) -> 'RedisBrokerClient':
        return cls(
            redis_url=settings.redis_url,
            queue_name=settings.queue_name,
            publish_timeout=settings.publish_timeout_seconds,
        )

    def queue_for(self, channel: str) -> str:
        return self.queues.get(channel, channel)

    def channel_for(self, queue: str) -> str:
        for channel, name in self.queues.items():
            if name == queue:
                return channel
        return queue

    async def connect(self) -> None:
        """Connect to Redis server"""
        if self.redis_client is None:
            self.redis_client = redis.from_url(self.redis_url)
        try:
            await asyncio.wait_for(self.redis_client.ping(), timeout=self.publish_timeout)
            logger.info(f"✅ Redis broker connected ({self.redis_url})")
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            logger.error(f"❌ Redis broker connection failed: {e}")
            raise BrokerUnavailable('connect', str(e)) from e

    async def close(self) -> None:
        """Disconnect from Redis"""
        if self.redis_client is not None:
            await self.redis_client.aclose()
            self.redis_client = None
            logger.info("🔌 Redis broker disconnected")

    async def publish(self, channel: str, payload: Dict[str, Any]) -> PublishResult:
        """Push a message onto the channel's queue within publish_timeout"""
        queue = self.queue_for(channel)
        error: Optional[BrokerPublishError] = None
        depth = None

        try:
            if self.redis_client is None:
                self.redis_client = redis.from_url(self.redis_url)
            depth = await asyncio.wait_for(
                self.redis_client.lpush(queue, encode_envelope(channel, payload)),
                timeout=self.publish_timeout
            )
        except (asyncio.TimeoutError, RedisTimeoutError):
            error = BrokerPublishTimeout(channel, self.publish_timeout)
        except (RedisError, OSError) as e:
            error = BrokerUnavailable(channel, str(e) or type(e).__name__)

        record_publish(channel, error is None)

        if error is not None:
            logger.error(f"❌ Error publishing to {channel}: {error.message}")
            return PublishResult(success=False, channel=channel, queue=queue, error=error)

        logger.debug(f"📡 Published to {channel} ({queue}, depth={depth})")
        return PublishResult(success=True, channel=channel, queue=queue, queue_depth=depth)

    async def receive(self, channels: Sequence[str], timeout: float = 1.0) -> Optional[Tuple[str, Any]]:
        """
        Block up to `timeout` seconds for the next message on any channel.

        Returns (channel, raw_message) or None when nothing arrived. Transport
        errors propagate so the consumer can back off and reconnect.
        """
        if self.redis_client is None:
            self.redis_client = redis.from_url(self.redis_url)

        queues = [self.queue_for(channel) for channel in channels]
        item = await self.redis_client.brpop(queues, timeout=timeout)
        if item is None:
            return None

        queue, raw = item
        if isinstance(queue, bytes):
            queue = queue.decode('utf-8')
        return self.channel_for(queue), raw
