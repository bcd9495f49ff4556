"""
Notification Hub Error Handling
Exception hierarchy shared by the engine, the broker layer and the HTTP API
"""

import logging
import uuid
from datetime import datetime
from enum import Enum
from typing import Dict, Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ErrorCategory(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    BROKER = "broker"
    PROCESSING = "processing"


class NotificationHubException(Exception):
    """Base exception carrying an error code, a category and an HTTP status."""

    def __init__(
        self,
        message: str,
        error_code: str,
        category: ErrorCategory,
        http_status: int = 500,
        context: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.category = category
        self.http_status = http_status
        self.context = context or {}
        self.error_id = str(uuid.uuid4())
        self.timestamp = datetime.now()

        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary."""
        return {
            "error_id": self.error_id,
            "error_code": self.error_code,
            "category": self.category.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "context": self.context
        }


class ValidationError(NotificationHubException):
    """Input validation errors."""

    def __init__(self, message: str = "Validation failed", field: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="VAL_001",
            category=ErrorCategory.VALIDATION,
            http_status=422,
            context={'field': field} if field else None
        )


class NotFoundError(NotificationHubException):
    """Resource not found errors."""

    def __init__(self, resource: str = "Resource", resource_id: Optional[str] = None):
        message = f"{resource} not found"
        if resource_id:
            message += f" (ID: {resource_id})"

        super().__init__(
            message=message,
            error_code="NOT_001",
            category=ErrorCategory.NOT_FOUND,
            http_status=404,
            context={'resource': resource, 'resource_id': resource_id}
        )


class BrokerPublishError(NotificationHubException):
    """Any transport-level failure to hand a message to the broker."""

    def __init__(self, channel: str, message: str = "Broker publish failed", error_code: str = "MQ_001"):
        self.channel = channel
        super().__init__(
            message=message,
            error_code=error_code,
            category=ErrorCategory.BROKER,
            http_status=503,
            context={'channel': channel}
        )


class BrokerUnavailable(BrokerPublishError):
    """Broker could not be reached or refused the connection."""

    def __init__(self, channel: str, reason: str = "Broker unavailable"):
        super().__init__(channel, message=reason, error_code="MQ_002")


class BrokerPublishTimeout(BrokerPublishError):
    """Publish did not complete within the configured bound."""

    def __init__(self, channel: str, timeout: float):
        self.timeout = timeout
        super().__init__(
            channel,
            message=f"Publish to {channel} timed out after {timeout:.1f}s",
            error_code="MQ_003"
        )


class ProcessingFailure(NotificationHubException):
    """Downstream work for a notification failed."""

    def __init__(self, message: str = "Processing failed", notification_id: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="PROC_001",
            category=ErrorCategory.PROCESSING,
            http_status=500,
            context={'notification_id': notification_id} if notification_id else None
        )


async def notification_hub_exception_handler(request: Request, exc: NotificationHubException) -> JSONResponse:
    """Render NotificationHubException subclasses as the standard error body"""
    if exc.http_status >= 500:
        logger.error(f"❌ {exc.error_code} on {request.method} {request.url.path}: {exc.to_dict()}")
    else:
        logger.info(f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}")

    return JSONResponse(
        status_code=exc.http_status,
        content={
            "success": False,
            "error": exc.error_code,
            "message": exc.message,
            "error_id": exc.error_id,
        }
    )
