"""
Notification Hub Main Application
FastAPI application wiring the lifecycle engine, the broker and the realtime channel
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional
import logging
import time
import uvicorn

from .api.notification_endpoints import router as notifications_router
from .config.settings import Settings, get_settings
from .messaging.consumer import NotificationConsumer
from .messaging.redis_broker import BrokerClient, RedisBrokerClient, PROCESS_NOTIFICATION
from .monitoring.prometheus_metrics import router as metrics_router
from .services.notification_service import NotificationService
from .services.processing import NotificationProcessor
from .storage.notification_store import NotificationStore, InMemoryNotificationStore
from .utils.error_handling import NotificationHubException, BrokerUnavailable, notification_hub_exception_handler
from .websockets.broadcaster import NotificationBroadcaster
from .websockets.websocket_endpoints import router as websocket_router

# Initialize logging
logging.basicConfig(level=get_settings().log_level)
logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"
APP_DESCRIPTION = """
Accepts notifications, processes them asynchronously through a Redis work
queue and streams every status change to WebSocket clients on
`/ws/notifications`.
"""


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[NotificationStore] = None,
    broker: Optional[BrokerClient] = None,
    broadcaster: Optional[NotificationBroadcaster] = None,
    processor: Optional[NotificationProcessor] = None,
    consumer: Optional[NotificationConsumer] = None
) -> FastAPI:
    """Build the application; any component can be swapped in for tests"""
    if settings is None:
        settings = get_settings()
    if store is None:
        store = InMemoryNotificationStore()
    if broker is None:
        broker = RedisBrokerClient.from_settings(settings)
    if broadcaster is None:
        broadcaster = NotificationBroadcaster(queue_size=settings.observer_queue_size)
    if processor is None:
        processor = NotificationProcessor.from_settings(settings)

    service = NotificationService(
        store=store,
        broker=broker,
        broadcaster=broadcaster,
        processor=processor,
        retention_hours=settings.retention_hours,
    )

    if consumer is None and settings.consumer_enabled and isinstance(broker, RedisBrokerClient):
        consumer = NotificationConsumer(
            broker,
            poll_timeout=settings.consumer_poll_seconds,
            prefetch=settings.consumer_prefetch,
            reconnect_delay=settings.reconnect_delay_seconds,
        )
    if consumer is not None:
        consumer.register(PROCESS_NOTIFICATION, service.handle_work_message)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"🚀 Starting {settings.app_name} {APP_VERSION}")

        try:
            await broker.connect()
        except BrokerUnavailable as e:
            # Publishing retries the connection; notifications fail until the broker is back
            logger.error(f"❌ Broker unavailable at startup: {e.message}")

        if consumer is not None:
            await consumer.start()

        logger.info(f"🎉 {settings.app_name} ready to accept requests")

        yield

        logger.info(f"🔄 {settings.app_name} shutting down gracefully...")

        if consumer is not None:
            await consumer.stop()
        await broadcaster.shutdown()
        await broker.close()

        logger.info("✅ Shutdown completed")

    app = FastAPI(
        title=settings.app_name,
        description=APP_DESCRIPTION,
        version=APP_VERSION,
        docs_url="/api/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.store = store
    app.state.broker = broker
    app.state.broadcaster = broadcaster
    app.state.consumer = consumer
    app.state.notification_service = service
    app.state.started_at = time.time()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.add_exception_handler(NotificationHubException, notification_hub_exception_handler)

    @app.get("/health", tags=["health"])
    async def health_check():
        """Simple health check"""
        return {
            "status": "healthy",
            "consumer_running": consumer is not None and consumer.is_running,
            "observers": broadcaster.stats()['count'],
            "uptime_seconds": time.time() - app.state.started_at,
            "timestamp": datetime.now().isoformat()
        }

    app.include_router(notifications_router)
    app.include_router(websocket_router)
    app.include_router(metrics_router)

    return app


app = create_app()


# Development server
if __name__ == "__main__":
    uvicorn.run(
        "notification_hub.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
