"""
WebSocket adapter for EventSubscriberPort.

Wraps one participant connection; each broadcast event is sent as a single
JSON frame, so a publish is never split across frames.
"""

from __future__ import annotations

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from domain.models import BroadcastEvent
from shared_utils.constants import LogScope
from shared_utils.logging_utils import get_scoped_logger


logger = get_scoped_logger(LogScope.ADAPTER)


class WebSocketSubscriber:
    """Delivers events to one FastAPI WebSocket."""

    def __init__(self, websocket: WebSocket, session_id: str) -> None:
        self._websocket = websocket
        self.session_id = session_id
        self.sent = 0

    async def __call__(self, event: BroadcastEvent) -> None:
        if self._websocket.client_state != WebSocketState.CONNECTED:
            logger.debug(
                "websocket_event_skipped",
                session_id=self.session_id,
                event_kind=event.kind.value,
            )
            return
        await self._websocket.send_json(event.to_wire())
        self.sent += 1

    async def send_error(self, message: str, code: str) -> None:
        """Reply to the connection itself; errors are never broadcast."""
        await self._websocket.send_json({"event": "error", "code": code, "message": message})
