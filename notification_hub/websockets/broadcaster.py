"""
Realtime Notification Broadcaster
Fans every notification snapshot out to the connected observers
"""

import asyncio
import json
import logging
from typing import Dict, List, Optional, Any, Protocol, Set, Tuple
from uuid import uuid4

from fastapi import WebSocket

from ..models.notification import Notification
from ..monitoring.prometheus_metrics import record_observer_connection, record_observer_drop

logger = logging.getLogger(__name__)

CONNECTED_EVENT = 'connected'
NOTIFICATION_UPDATE_EVENT = 'notification_update'
TRY_AGAIN_LATER = 1013


class Observer(Protocol):
    async def send(self, event: str, data: Dict[str, Any]) -> None:
        ...

    async def close(self) -> None:
        ...


class WebSocketObserver:
    """Observer backed by a FastAPI WebSocket connection"""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket

    async def send(self, event: str, data: Dict[str, Any]) -> None:
        await self.websocket.send_text(json.dumps({'event': event, 'data': data}, default=str))

    async def close(self) -> None:
        await self.websocket.close(code=TRY_AGAIN_LATER)


class _ObserverConnection:
    """Per-observer outbox drained by a dedicated task"""

    def __init__(self, observer_id: str, observer: Observer, queue_size: int):
        self.observer_id = observer_id
        self.observer = observer
        self.outbox: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.task: Optional[asyncio.Task] = None


class NotificationBroadcaster:
    """
    Best-effort fan-out to realtime observers.

    push() only enqueues, so it never waits on a socket. Delivery happens on
    one task per observer, which keeps each observer's messages in push
    order. An observer that falls `queue_size` messages behind, or whose
    send fails, is disconnected.
    """

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self.connections: Dict[str, _ObserverConnection] = {}
        self._closing: Set[asyncio.Task] = set()

    async def connect(self, observer: Observer, observer_id: Optional[str] = None) -> str:
        """Register an observer and greet it with its assigned id"""
        observer_id = observer_id or str(uuid4())
        if observer_id in self.connections:
            await self.disconnect(observer_id)

        connection = _ObserverConnection(observer_id, observer, self.queue_size)
        self.connections[observer_id] = connection
        connection.task = asyncio.create_task(self._deliver(connection))
        record_observer_connection(1)

        self._enqueue(connection, CONNECTED_EVENT, {
            'message': 'Connected to notification service',
            'clientId': observer_id
        })

        logger.info(f"🔌 Observer connected: {observer_id}. Total observers: {len(self.connections)}")
        return observer_id

    async def disconnect(self, observer_id: str) -> None:
        connection = self.connections.pop(observer_id, None)
        if connection is None:
            return

        record_observer_connection(-1)
        if connection.task is not None and connection.task is not asyncio.current_task():
            connection.task.cancel()
            try:
                await connection.task
            except asyncio.CancelledError:
                pass

        logger.info(f"🔌 Observer disconnected: {observer_id}. Total observers: {len(self.connections)}")

    def push(self, notification: Notification) -> int:
        """Queue a snapshot for every observer; returns how many were reached"""
        payload = notification.to_dict()
        delivered = 0

        for connection in list(self.connections.values()):
            if self._enqueue(connection, NOTIFICATION_UPDATE_EVENT, payload):
                delivered += 1

        logger.info(
            f"📡 Emitted notification update for ID: {notification.id} "
            f"({notification.status.value}) to {delivered} observers"
        )
        return delivered

    def push_to(self, observer_id: str, notification: Notification) -> bool:
        """Queue a snapshot for a single observer"""
        connection = self.connections.get(observer_id)
        if connection is None:
            logger.debug(f"Observer {observer_id} not connected, skipping update for {notification.id}")
            return False

        sent = self._enqueue(connection, NOTIFICATION_UPDATE_EVENT, notification.to_dict())
        if sent:
            logger.info(f"📡 Emitted notification update for ID: {notification.id} to observer: {observer_id}")
        return sent

    def stats(self) -> Dict[str, Any]:
        """Get observer connection statistics"""
        ids: List[str] = list(self.connections.keys())
        return {'count': len(ids), 'ids': ids}

    async def flush(self, timeout: Optional[float] = None) -> None:
        """Wait until every connected observer has drained its outbox"""
        pending = [connection.outbox.join() for connection in list(self.connections.values())]
        if pending:
            await asyncio.wait_for(asyncio.gather(*pending), timeout=timeout)

    async def shutdown(self) -> None:
        for observer_id in list(self.connections.keys()):
            await self.disconnect(observer_id)
        if self._closing:
            await asyncio.gather(*self._closing, return_exceptions=True)
        logger.info("🔄 Broadcaster shut down")

    def _enqueue(self, connection: _ObserverConnection, event: str, data: Dict[str, Any]) -> bool:
        try:
            connection.outbox.put_nowait((event, data))
            return True
        except asyncio.QueueFull:
            logger.warning(f"⚠️ Observer {connection.observer_id} is too slow, disconnecting")
            record_observer_drop('queue_full')
            self._evict(connection)
            return False

    def _evict(self, connection: _ObserverConnection) -> None:
        if self.connections.get(connection.observer_id) is connection:
            del self.connections[connection.observer_id]
            record_observer_connection(-1)
            if connection.task is not None and connection.task is not asyncio.current_task():
                connection.task.cancel()

            closing = asyncio.create_task(self._close_observer(connection))
            self._closing.add(closing)
            closing.add_done_callback(self._closing.discard)

    async def _close_observer(self, connection: _ObserverConnection) -> None:
        try:
            await connection.observer.close()
        except Exception as e:
            logger.debug(f"Closing evicted observer {connection.observer_id} failed: {e}")

    async def _deliver(self, connection: _ObserverConnection) -> None:
        while True:
            item: Tuple[str, Dict[str, Any]] = await connection.outbox.get()
            event, data = item
            try:
                await connection.observer.send(event, data)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"❌ Error sending {event} to {connection.observer_id}: {e}")
                record_observer_drop('send_failed')
                self._evict(connection)
                logger.info(f"🔌 Observer disconnected: {connection.observer_id}. Total observers: {len(self.connections)}")
                return
            finally:
                connection.outbox.task_done()
