"""WebSocket connection management for the tabletop session server."""

import asyncio
import logging
import uuid
from typing import Optional

from fastapi import WebSocket

from tabletop.game_server.rpc.events import EventSink

logger = logging.getLogger("tabletop.server.connection")


class Connection(EventSink):
    """Represents one connected viewer.

    A viewer identifies once with a display name and, optionally, the session
    it is watching. The name cannot change for the lifetime of the socket;
    the watched session can.
    """

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket
        self.connection_id = str(uuid.uuid4())
        self.name: Optional[str] = None
        self.session_id: Optional[str] = None
        self._send_lock = asyncio.Lock()

    async def send_event(self, envelope: dict) -> None:
        """Send an event envelope to the WebSocket client.

        Sends are serialized per connection via _send_lock so RPC replies and
        pushed events never interleave mid-frame.
        """
        logger.debug(
            "Connection %s sending event %s", self.connection_id, envelope.get("type")
        )
        async with self._send_lock:
            await self.websocket.send_json(envelope)

    async def send_frame(self, frame: dict) -> None:
        async with self._send_lock:
            await self.websocket.send_json(frame)

    def match_session(self, session_id: str) -> bool:
        """Unbound viewers see every session; bound viewers only their own."""
        return self.session_id is None or self.session_id == session_id

    def set_identity(self, name: str, session_id: Optional[str] = None) -> None:
        """Bind a display name (once) and the watched session.

        Raises:
            ValueError: If the connection already carries a different name
        """
        name = str(name).strip()
        if not name:
            raise ValueError("Name must not be empty")
        if self.name is not None and self.name != name:
            raise ValueError(
                f"Connection already identified as '{self.name}', "
                f"cannot change to '{name}'"
            )
        self.name = name
        self.session_id = str(session_id) if session_id else None
