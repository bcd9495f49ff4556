"""
WebSocket API Endpoints
Realtime notification updates for connected clients
"""

import logging
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from .broadcaster import NotificationBroadcaster, WebSocketObserver

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ws", tags=["websocket"])


@router.websocket("/notifications")
async def notifications_websocket(websocket: WebSocket):
    """
    Realtime notification channel.

    On connect the client receives a `connected` event carrying its id, then
    one `notification_update` event per status transition of any
    notification. Incoming client messages are ignored.
    """
    broadcaster: NotificationBroadcaster = websocket.app.state.broadcaster
    observer_id = None

    await websocket.accept()
    try:
        observer_id = await broadcaster.connect(WebSocketObserver(websocket))

        while True:
            message = await websocket.receive_text()
            logger.debug(f"Ignoring message from observer {observer_id}: {message[:100]}")

    except WebSocketDisconnect:
        logger.info(f"🔌 WebSocket client disconnected: {observer_id}")

    finally:
        if observer_id:
            await broadcaster.disconnect(observer_id)
