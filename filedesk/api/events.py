"""Websocket endpoint for live dashboard notifications."""

from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from filedesk.services.notification_service import NotificationHub

logger = logging.getLogger(__name__)

router = APIRouter(tags=["events"])


@router.websocket("/ws")
async def events(websocket: WebSocket) -> None:
    """Hold a viewer session open; events are pushed by the hub."""
    hub: NotificationHub = websocket.app.state.hub
    await hub.connect(websocket)
    try:
        while True:
            # Clients send nothing meaningful; reading detects disconnects.
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        hub.disconnect(websocket)
