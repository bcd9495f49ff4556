"""
Notification API
Create notifications, query their status and inspect realtime connections
"""

from fastapi import APIRouter, Depends, Query, Request, Response, status
from typing import List, Optional
import logging

from .models import NotificationCreate, NotificationResponse, ConnectionStatsResponse, CleanupResponse
from ..services.notification_service import NotificationService
from ..utils.error_handling import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["notifications"])


def get_notification_service(request: Request) -> NotificationService:
    return request.app.state.notification_service


@router.post(
    "/notify",
    response_model=NotificationResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Create a notification",
    description="Stores the notification as PENDING and queues it for asynchronous processing",
)
async def create_notification(
    payload: NotificationCreate,
    service: NotificationService = Depends(get_notification_service)
):
    notification = await service.create_notification(
        content=payload.content,
        notification_id=str(payload.id) if payload.id else None
    )
    return NotificationResponse.from_notification(notification)


@router.get(
    "/stats/connections",
    response_model=ConnectionStatsResponse,
    summary="Realtime connection statistics",
)
async def get_connection_stats(service: NotificationService = Depends(get_notification_service)):
    stats = service.connection_stats()
    return ConnectionStatsResponse(connected_clients=stats['count'], client_ids=stats['ids'])


@router.get(
    "/notifications",
    response_model=List[NotificationResponse],
    response_model_exclude_none=True,
    summary="List notifications, most recent first",
)
async def list_notifications(service: NotificationService = Depends(get_notification_service)):
    return [NotificationResponse.from_notification(n) for n in service.get_all_notifications()]


@router.get(
    "/notifications/{notification_id}",
    response_model=NotificationResponse,
    response_model_exclude_none=True,
    summary="Get a notification by id",
    responses={404: {"description": "Notification not found"}},
)
async def get_notification(
    notification_id: str,
    service: NotificationService = Depends(get_notification_service)
):
    notification = service.get_notification(notification_id)
    if notification is None:
        raise NotFoundError("Notification", notification_id)
    return NotificationResponse.from_notification(notification)


@router.delete(
    "/notifications/{notification_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a notification",
    responses={404: {"description": "Notification not found"}},
)
async def delete_notification(
    notification_id: str,
    service: NotificationService = Depends(get_notification_service)
):
    if not service.delete_notification(notification_id):
        raise NotFoundError("Notification", notification_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/admin/cleanup",
    response_model=CleanupResponse,
    summary="Remove notifications older than the retention window",
)
async def cleanup_notifications(
    older_than_hours: Optional[float] = Query(None, description="Defaults to the configured retention"),
    service: NotificationService = Depends(get_notification_service)
):
    if older_than_hours is not None and older_than_hours <= 0:
        raise ValidationError("older_than_hours must be positive", field="older_than_hours")

    hours = older_than_hours if older_than_hours is not None else service.retention_hours
    deleted = service.purge_expired(hours)
    logger.info(f"🧹 Cleanup removed {deleted} notifications (older than {hours}h)")
    return CleanupResponse(deleted=deleted, older_than_hours=hours)
