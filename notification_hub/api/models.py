"""
Request and response models for the notification API
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models.notification import Notification, NotificationStatus


class NotificationCreate(BaseModel):
    """Create a new notification"""
    id: Optional[UUID] = Field(None, description="Client-supplied notification id (UUID)")
    content: str = Field(..., min_length=1, max_length=10000, description="Notification content")

    @field_validator('content')
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError('content must not be empty')
        return v


class NotificationResponse(BaseModel):
    """Notification snapshot as returned to API callers"""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    content: str
    status: NotificationStatus
    created_at: datetime = Field(..., alias='createdAt')
    updated_at: datetime = Field(..., alias='updatedAt')
    error: Optional[str] = None

    @classmethod
    def from_notification(cls, notification: Notification) -> 'NotificationResponse':
        return cls(
            id=notification.id,
            content=notification.content,
            status=notification.status,
            created_at=notification.created_at,
            updated_at=notification.updated_at,
            error=notification.error,
        )


class ConnectionStatsResponse(BaseModel):
    connected_clients: int = Field(..., alias='connectedClients')
    client_ids: List[str] = Field(default_factory=list, alias='clientIds')

    model_config = ConfigDict(populate_by_name=True)


class CleanupResponse(BaseModel):
    deleted: int
    older_than_hours: float
