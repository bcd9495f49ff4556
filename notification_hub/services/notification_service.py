"""
Notification Lifecycle Service
Owns the PENDING -> PROCESSING -> SUCCEEDED/FAILED state machine and keeps
the store, the broker and the realtime broadcaster in step
"""

import logging
import time
from typing import Any, Dict, List, Optional
from uuid import uuid4

from ..messaging.redis_broker import BrokerClient, PublishResult, PROCESS_NOTIFICATION, NOTIFICATION_STATUS
from ..models.notification import Notification, NotificationStatus, WorkItem, StatusEvent
from ..monitoring.prometheus_metrics import record_transition, record_processing
from ..storage.notification_store import NotificationStore
from ..websockets.broadcaster import NotificationBroadcaster
from .processing import NotificationProcessor

logger = logging.getLogger(__name__)

ENQUEUE_FAILURE_MESSAGE = 'Failed to publish to message queue'


class NotificationService:
    """
    Lifecycle orchestrator.

    Called from two places at once: request handlers (create) and the broker
    consumer (process). All record mutation goes through
    NotificationStore.update_status, which re-reads the current record under
    the store lock, so no snapshot is ever written back after an await.
    """

    def __init__(
        self,
        store: NotificationStore,
        broker: BrokerClient,
        broadcaster: NotificationBroadcaster,
        processor: Optional[NotificationProcessor] = None,
        retention_hours: float = 24
    ):
        self.store = store
        self.broker = broker
        self.broadcaster = broadcaster
        self.processor = processor if processor is not None else NotificationProcessor()
        self.retention_hours = retention_hours

    async def create_notification(self, content: str, notification_id: Optional[str] = None) -> Notification:
        """
        Accept a notification and dispatch it for processing.

        Always returns the PENDING snapshot. A failed enqueue is recorded as a
        FAILED transition and reaches callers only through the broadcaster and
        later reads.
        """
        notification = self.store.create(Notification(
            id=notification_id or str(uuid4()),
            content=content,
            status=NotificationStatus.PENDING,
        ))
        record_transition(notification.status.value)
        logger.info(f"📝 Created notification with ID: {notification.id}")

        self.broadcaster.push(notification)

        try:
            result = await self.broker.publish(
                PROCESS_NOTIFICATION,
                WorkItem.for_notification(notification).to_dict()
            )
        except Exception as e:
            logger.error(f"❌ Unexpected error publishing notification {notification.id}: {e}", exc_info=True)
            result = PublishResult(success=False, channel=PROCESS_NOTIFICATION)

        if result.success:
            logger.info(f"📤 Published notification {notification.id} to {PROCESS_NOTIFICATION}")
        else:
            reason = result.error.message if result.error else 'unknown error'
            logger.error(f"❌ Failed to publish notification {notification.id}: {reason}")
            self._transition(notification.id, NotificationStatus.FAILED, ENQUEUE_FAILURE_MESSAGE)

        return notification

    async def process_notification(self, work_item: WorkItem) -> Optional[Notification]:
        """
        Run one processing attempt for a work item.

        Unknown ids are logged and dropped. Every failure inside the attempt
        ends as a FAILED transition; nothing is raised to the consumer.
        """
        logger.info(f"⚙️ Processing notification: {work_item.id}")

        notification = self._transition(work_item.id, NotificationStatus.PROCESSING)
        if notification is None:
            logger.error(f"❌ Notification {work_item.id} not found")
            return None

        started = time.monotonic()
        try:
            await self.processor.process(work_item)
        except Exception as e:
            error = str(e) or type(e).__name__
            record_processing('failed', time.monotonic() - started)
            logger.error(f"❌ Failed to process notification {work_item.id}: {error}")
            status = NotificationStatus.FAILED
        else:
            error = None
            record_processing('succeeded', time.monotonic() - started)
            logger.info(f"✅ Successfully processed notification: {work_item.id}")
            status = NotificationStatus.SUCCEEDED

        notification = self.store.update_status(work_item.id, status, error)
        if notification is not None:
            record_transition(status.value)

        await self._publish_status(StatusEvent(id=work_item.id, status=status))

        if notification is None:
            logger.warning(f"⚠️ Notification {work_item.id} was removed during processing")
            return None

        self.broadcaster.push(notification)
        return notification

    async def handle_work_message(self, payload: Dict[str, Any]) -> None:
        """Consumer entry point for the process_notification channel"""
        await self.process_notification(WorkItem.from_dict(payload))

    def get_notification(self, notification_id: str) -> Optional[Notification]:
        return self.store.find_by_id(notification_id)

    def get_all_notifications(self) -> List[Notification]:
        return self.store.find_all()

    def delete_notification(self, notification_id: str) -> bool:
        deleted = self.store.delete(notification_id)
        if deleted:
            logger.info(f"🗑️ Deleted notification {notification_id}")
        return deleted

    def connection_stats(self) -> Dict[str, Any]:
        return self.broadcaster.stats()

    def purge_expired(self, older_than_hours: Optional[float] = None) -> int:
        """Retention sweep; meant to be triggered by an external scheduler"""
        hours = self.retention_hours if older_than_hours is None else older_than_hours
        return self.store.cleanup(hours)

    def _transition(
        self,
        notification_id: str,
        status: NotificationStatus,
        error: Optional[str] = None
    ) -> Optional[Notification]:
        notification = self.store.update_status(notification_id, status, error)
        if notification is not None:
            record_transition(status.value)
            self.broadcaster.push(notification)
        return notification

    async def _publish_status(self, event: StatusEvent) -> None:
        # The transition is already stored; a lost status event is only logged
        try:
            result = await self.broker.publish(NOTIFICATION_STATUS, event.to_dict())
        except Exception as e:
            logger.error(f"❌ Failed to publish status update for {event.id}: {e}", exc_info=True)
            return

        if result.success:
            logger.info(f"📤 Published status update for {event.id}: {event.status.value}")
        else:
            reason = result.error.message if result.error else 'unknown error'
            logger.error(f"❌ Failed to publish status update for {event.id}: {reason}")
