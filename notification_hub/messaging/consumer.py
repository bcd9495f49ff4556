"""
Notification Consumer
Pulls work items off the broker and hands them to registered handlers
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from redis.exceptions import RedisError

from .redis_broker import RedisBrokerClient, decode_envelope
from ..monitoring.prometheus_metrics import record_consumer_message

logger = logging.getLogger(__name__)

MessageHandler = Callable[[Dict[str, Any]], Awaitable[Any]]


class NotificationConsumer:
    """
    Broker consumer loop.

    One handler per logical channel. Each message runs in its own task, at
    most `prefetch` at a time, so slow work on one notification never holds
    up the others. A failing handler is logged and the loop carries on.
    """

    def __init__(
        self,
        broker: RedisBrokerClient,
        poll_timeout: float = 1.0,
        prefetch: int = 10,
        reconnect_delay: float = 5.0
    ):
        self.broker = broker
        self.poll_timeout = poll_timeout
        self.reconnect_delay = reconnect_delay
        self.prefetch = prefetch
        self.handlers: Dict[str, MessageHandler] = {}
        # Created in start() so it belongs to the serving loop
        self._slots: Optional[asyncio.Semaphore] = None
        self._in_flight: Set[asyncio.Task] = set()
        self._loop_task: Optional[asyncio.Task] = None
        self._running = False

    def register(self, pattern: str, handler: MessageHandler) -> None:
        if pattern in self.handlers:
            raise ValueError(f"Handler already registered for {pattern}")
        self.handlers[pattern] = handler
        logger.info(f"📻 Registered consumer handler for {pattern}")

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._slots = asyncio.Semaphore(self.prefetch)
        self._loop_task = asyncio.create_task(self._consume())
        logger.info(f"👂 Consumer started for {', '.join(self.handlers) or 'no channels'}")

    async def stop(self) -> None:
        """Stop polling and wait for in-flight handlers to finish"""
        self._running = False
        if self._loop_task is not None:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None

        if self._in_flight:
            logger.info(f"⏳ Waiting for {len(self._in_flight)} in-flight messages")
            await asyncio.gather(*self._in_flight, return_exceptions=True)
        logger.info("🛑 Consumer stopped")

    async def _consume(self) -> None:
        channels = list(self.handlers)
        while self._running:
            await self._slots.acquire()
            try:
                item = await self.broker.receive(channels, timeout=self.poll_timeout)
            except asyncio.CancelledError:
                self._slots.release()
                raise
            except (RedisError, OSError) as e:
                self._slots.release()
                logger.error(f"❌ Consumer lost broker connection: {e}; retrying in {self.reconnect_delay}s")
                await asyncio.sleep(self.reconnect_delay)
                continue
            except Exception as e:
                self._slots.release()
                logger.error(f"❌ Unexpected consumer error: {e}; retrying in {self.reconnect_delay}s", exc_info=True)
                await asyncio.sleep(self.reconnect_delay)
                continue

            if item is None:
                self._slots.release()
                continue

            _, raw = item
            task = asyncio.create_task(self._run_and_release(raw))
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)

    async def _run_and_release(self, raw: Any) -> None:
        try:
            await self.handle_message(raw)
        finally:
            self._slots.release()

    async def handle_message(self, raw: Any) -> bool:
        """Decode one envelope and dispatch it. Returns True if a handler ran cleanly."""
        try:
            pattern, data = decode_envelope(raw)
        except ValueError as e:
            logger.error(f"❌ Dropping malformed message: {e}")
            record_consumer_message('dropped')
            return False

        handler = self.handlers.get(pattern)
        if handler is None:
            logger.warning(f"⚠️ No handler for pattern {pattern}, dropping message")
            record_consumer_message('dropped')
            return False

        logger.info(f"📥 Received {pattern}: {data}")
        try:
            await handler(data)
        except Exception as e:
            logger.error(f"❌ Error handling {pattern} message: {e}", exc_info=True)
            record_consumer_message('failed')
            return False

        record_consumer_message('handled')
        return True
