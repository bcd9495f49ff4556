"""
Notification Store
Volatile, thread-safe keyed store for notification snapshots
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from ..models.notification import Notification, NotificationStatus, utc_now

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_REASON = "Notification failed"


class NotificationStore(ABC):
    """Storage capability the lifecycle engine depends on"""

    @abstractmethod
    def create(self, notification: Notification) -> Notification:
        ...

    @abstractmethod
    def find_by_id(self, notification_id: str) -> Optional[Notification]:
        ...

    @abstractmethod
    def find_all(self) -> List[Notification]:
        ...

    @abstractmethod
    def update_status(
        self,
        notification_id: str,
        status: NotificationStatus,
        error: Optional[str] = None
    ) -> Optional[Notification]:
        ...

    @abstractmethod
    def delete(self, notification_id: str) -> bool:
        ...

    @abstractmethod
    def cleanup(self, older_than_hours: float = 24) -> int:
        ...


class InMemoryNotificationStore(NotificationStore):
    """
    Dict-backed store guarded by a re-entrant lock.

    Every operation runs entirely under the lock, so concurrent writers from
    request handlers and the broker consumer are serialized per call and the
    last write for an id wins.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._notifications: Dict[str, Notification] = {}
        self._lock = threading.RLock()
        self._clock = clock

    def __len__(self) -> int:
        with self._lock:
            return len(self._notifications)

    def create(self, notification: Notification) -> Notification:
        now = self._clock()
        record = replace(
            notification,
            created_at=now,
            updated_at=now,
            error=notification.error if notification.status == NotificationStatus.FAILED else None,
        )

        with self._lock:
            if record.id in self._notifications:
                # Caller-supplied ids replace the previous record without a conflict signal
                logger.warning(f"⚠️ Overwriting existing notification {record.id}")
            self._notifications[record.id] = record

        return record

    def find_by_id(self, notification_id: str) -> Optional[Notification]:
        with self._lock:
            return self._notifications.get(notification_id)

    def find_all(self) -> List[Notification]:
        with self._lock:
            records = list(self._notifications.values())
        return sorted(records, key=lambda n: n.created_at, reverse=True)

    def update_status(
        self,
        notification_id: str,
        status: NotificationStatus,
        error: Optional[str] = None
    ) -> Optional[Notification]:
        if status == NotificationStatus.FAILED:
            error = error or DEFAULT_FAILURE_REASON
        else:
            error = None

        with self._lock:
            current = self._notifications.get(notification_id)
            if current is None:
                return None

            # updated_at never moves backwards even if the wall clock does
            updated = replace(
                current,
                status=status,
                error=error,
                updated_at=max(self._clock(), current.updated_at),
            )
            self._notifications[notification_id] = updated
            return updated

    def delete(self, notification_id: str) -> bool:
        with self._lock:
            return self._notifications.pop(notification_id, None) is not None

    def cleanup(self, older_than_hours: float = 24) -> int:
        """Remove records created before the retention cutoff"""
        cutoff = self._clock() - timedelta(hours=older_than_hours)

        with self._lock:
            expired = [
                notification_id
                for notification_id, notification in self._notifications.items()
                if notification.created_at < cutoff
            ]
            for notification_id in expired:
                del self._notifications[notification_id]

        if expired:
            logger.info(f"🧹 Removed {len(expired)} notifications older than {older_than_hours}h")
        return len(expired)
