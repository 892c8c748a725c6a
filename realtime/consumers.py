"""
WebSocket consumer for the fellow/coach relay.

Key behavior:
- URL: /ws/relay/
- Every socket gets a server-assigned connection id and starts without a role;
  the first `register-user` / `register-admin` frame decides what it is.
- Frames are JSON objects `{"event": "<name>", "data": <payload>}` both ways.
  Text that is not JSON gets `error {error: "invalid_json"}`; JSON without a
  string `event` is dropped.
- All routing goes through the shared RelayHub; this class only translates
  between the socket and the hub.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict, Optional

from channels.generic.websocket import AsyncWebsocketConsumer
from pydantic import ValidationError

from .dispatcher import RelayHub
from .serializers import Frame

logger = logging.getLogger(__name__)


class RelayConsumer(AsyncWebsocketConsumer):
    # Set per route through `RelayConsumer.as_asgi(hub=...)`.
    hub: Optional[RelayHub] = None

    def __init__(self, *args: Any, hub: Optional[RelayHub] = None, **kwargs: Any):
        super().__init__(*args, **kwargs)
        if hub is not None:
            self.hub = hub
        self.connection_id: str = uuid.uuid4().hex  # server-assigned per-connection id
        self._closed: bool = False

    async def connect(self) -> None:
        await self.accept()
        self.hub.connect(self.connection_id, self)
        logger.info("New connection: %s", self.connection_id)
        await self.send_event("connected", {"connectionId": self.connection_id})

    async def disconnect(self, close_code: int) -> None:
        self._closed = True
        logger.info("Disconnected: %s (code=%s)", self.connection_id, close_code)
        await self.hub.disconnect(self.connection_id)

    async def receive(self, text_data: Optional[str] = None, bytes_data: Optional[bytes] = None) -> None:
        if not text_data:
            return

        try:
            payload = json.loads(text_data)
        except json.JSONDecodeError:
            await self.send_json({"event": "error", "data": {"error": "invalid_json"}})
            return

        try:
            frame = Frame.model_validate(payload)
        except ValidationError as e:
            logger.debug("Frame without an event name from %s dropped: %s", self.connection_id, e.errors())
            return

        # Queued on the hub so `websocket.disconnect` is not stuck behind a slow assistant call.
        self.hub.submit(self.connection_id, frame.event, frame.data)

    async def send_event(self, event: str, data: Any) -> None:
        if self._closed:
            return
        await self.send_json({"event": event, "data": data})

    async def send_json(self, payload: Dict[str, Any]) -> None:
        await self.send(text_data=json.dumps(payload, separators=(",", ":"), ensure_ascii=False))
