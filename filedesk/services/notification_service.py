"""Broadcast of dashboard events to connected websocket sessions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from fastapi import WebSocket

logger = logging.getLogger(__name__)

FILE_UPDATED = "fileUpdated"
SYSTEM_LOCKED = "systemLocked"
SYSTEM_UNLOCKED = "systemUnlocked"


class NotificationHub:
    """Tracks open sessions and fans events out to all of them.

    Delivery is best effort: a session whose send fails is dropped, and
    nothing is queued for sessions that are not connected.
    """

    def __init__(self) -> None:
        self._sessions: set[WebSocket] = set()

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._sessions.add(websocket)
        logger.debug("Viewer connected (%d open)", len(self._sessions))

    def disconnect(self, websocket: WebSocket) -> None:
        self._sessions.discard(websocket)
        logger.debug("Viewer disconnected (%d open)", len(self._sessions))

    async def publish(self, event: str, payload: dict[str, Any] | None = None) -> int:
        """Send ``{"event", "data"}`` to every session. Returns the delivery count."""
        message = {"event": event, "data": payload or {}}
        delivered = 0
        # Copy: failed sessions are removed while iterating.
        for websocket in list(self._sessions):
            try:
                await websocket.send_json(message)
            except Exception:
                logger.warning("Dropping viewer session after failed send", exc_info=True)
                self.disconnect(websocket)
            else:
                delivered += 1
        return delivered
