"""Real-time Endpoint — WebSocket subscribers for catalog change events.

Invariants:
    - On connect: registered in the SubscriberRegistry, then greeted with
      {"type": "connection", "clientId", ...}
    - Client messages: {"type": "ping"} → pong; {"type": "subscribe", "channels": [...]}
      widens the filter and is acknowledged with "subscribed"
    - Optional ?channels=store_update,coupon_update sets the initial filter
    - Unsubscribed on every exit path (disconnect, error)
    - Malformed client messages are logged and ignored; the connection stays open
    - A subscriber the registry dropped (failed or slow send) is closed with 1013
      instead of being acknowledged
"""

import json
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from fastapi.websockets import WebSocketState

from couponhub.api.dependencies import get_registry
from couponhub.config import get_settings
from couponhub.services.subscriber_registry import DROPPED_CLOSE_CODE, SubscriberRegistry

logger = logging.getLogger(__name__)
router = APIRouter(tags=["realtime"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.websocket("/ws")
async def realtime_updates(
    websocket: WebSocket,
    registry: SubscriberRegistry = Depends(get_registry),
):
    if not get_settings().websocket_enabled:
        await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER)
        return

    await websocket.accept()
    raw_channels = websocket.query_params.get("channels")
    channels = [c for c in (raw_channels or "").split(",") if c] or None
    handle = await registry.subscribe(websocket, channels)
    try:
        await websocket.send_json({
            "type": "connection",
            "message": "Connected to real-time updates",
            "clientId": handle,
            "timestamp": _now(),
        })
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning(f"Invalid WebSocket message from {handle}")
                continue
            if not isinstance(message, dict):
                continue
            if not await _handle_client_message(websocket, registry, handle, message):
                # a failed broadcast may already have closed it
                if websocket.application_state is WebSocketState.CONNECTED:
                    await websocket.close(code=DROPPED_CLOSE_CODE)
                break
    except WebSocketDisconnect:
        pass
    finally:
        await registry.unsubscribe(handle)


async def _handle_client_message(
    websocket, registry: SubscriberRegistry, handle: str, message: dict,
) -> bool:
    """Answer one client message. False once the registry has dropped the handle."""
    if message.get("type") == "ping":
        await websocket.send_json({"type": "pong", "timestamp": _now()})
        return True

    if message.get("type") == "subscribe":
        channels = message.get("channels")
        if isinstance(channels, list) and channels:
            channels = [str(c) for c in channels]
            if not await registry.add_channels(handle, channels):
                logger.info(f"Subscriber {handle} was dropped; closing connection")
                return False
            await websocket.send_json({
                "type": "subscribed", "channels": channels, "timestamp": _now(),
            })
    return True
