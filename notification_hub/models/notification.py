"""
Notification Data Model
Immutable snapshots of a notification plus the transient broker payloads
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, Optional


class NotificationStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Notification:
    """
    Point-in-time snapshot of a notification record.

    Snapshots are never modified in place: the store swaps in a new value on
    every status change, so a snapshot handed to an observer stays valid.
    """
    id: str
    content: str
    status: NotificationStatus = NotificationStatus.PENDING
    created_at: datetime = field(default_factory=utc_now)
    updated_at: Optional[datetime] = None
    error: Optional[str] = None

    def __post_init__(self):
        if self.updated_at is None:
            object.__setattr__(self, 'updated_at', self.created_at)

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation pushed to observers and returned by the API"""
        data = {
            'id': self.id,
            'content': self.content,
            'status': self.status.value,
            'createdAt': self.created_at.isoformat(),
            'updatedAt': self.updated_at.isoformat(),
        }
        if self.error is not None:
            data['error'] = self.error
        return data


@dataclass(frozen=True)
class WorkItem:
    """Payload placed on the work queue"""
    id: str
    content: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'WorkItem':
        if not isinstance(data, dict) or 'id' not in data:
            raise ValueError(f"Invalid work item payload: {data!r}")
        return cls(id=str(data['id']), content=str(data.get('content', '')))

    @classmethod
    def for_notification(cls, notification: Notification) -> 'WorkItem':
        return cls(id=notification.id, content=notification.content)


@dataclass(frozen=True)
class StatusEvent:
    """Terminal outcome published to the status queue"""
    id: str
    status: NotificationStatus

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'status': self.status.value}
