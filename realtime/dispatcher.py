"""
Routing engine: turns one inbound event into deliveries.

Event protocol (data shapes in parentheses; bare strings are accepted where a
single field is expected, matching what simple clients send):
- register-user   (name | {"name"})        -> fellow; ack `registered`; roster to coaches
- register-admin  ()                        -> coach; roster snapshot to this socket
- user-message    (text | {"text"})         -> fellow's coach log; `new-message` to coaches
- admin-message   ({"userId","text"})       -> target's coach log; `admin-message` to target,
                                               `new-message` echo to the sending coach
- get-history     (userId | {"userId"})     -> `history` to the requesting coach
- user-ai-message (text | {"text"})         -> assistant bridge; `ai-message` to the fellow
- get-ai-history  ()                        -> `ai-history` to the fellow
Anything else, anything from a socket without the right role, and any payload
missing a required field is dropped without a reply.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Type, TypeVar

from pydantic import BaseModel, ValidationError

from relay_server.applib.config import Settings, config
from relay_server.applib.helpers import clean_text
from relay_server.applib.llms import request_completion

from .assistant import AssistantBridge, CompletionFn
from .directory import DirectoryPublisher
from .registry import Connection, ConnectionHandle, Registry
from .serializers import AdminMessage, HistoryReply, HistoryRequest, Registered, RegisterUser, TextPayload
from .store import MessageStore

logger = logging.getLogger(__name__)

P = TypeVar("P", bound=BaseModel)
Handler = Callable[[Connection, Any], Awaitable[None]]


def _parse(model: Type[P], data: Any, field: str) -> Optional[P]:
    """Validate a payload; a bare scalar stands for the model's single required field."""
    if isinstance(data, str):
        data = {field: data}
    elif data is None:
        data = {}
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.debug("Malformed %s payload dropped: %s", model.__name__, e.errors())
        return None


class RelayHub:
    """
    Owns the registry and everything built on it. One hub per process; consumers
    get it through `RelayConsumer.as_asgi(hub=hub)`.
    """

    def __init__(self, settings: Settings = config, completion: CompletionFn = request_completion) -> None:
        self.registry = Registry()
        self.store = MessageStore(self.registry)
        self.directory = DirectoryPublisher(self.registry)
        self.assistant = AssistantBridge(self.registry, self.store, settings=settings, completion=completion)
        self._handlers: Dict[str, Handler] = {
            "register-user": self._on_register_user,
            "register-admin": self._on_register_admin,
            "user-message": self._on_user_message,
            "admin-message": self._on_admin_message,
            "get-history": self._on_get_history,
            "user-ai-message": self._on_user_ai_message,
            "get-ai-history": self._on_get_ai_history,
        }
        # Keeps references so queued events are not garbage collected.
        self._tasks: Set[asyncio.Task] = set()

    # Transport lifecycle

    def connect(self, connection_id: str, handle: ConnectionHandle) -> Connection:
        return self.registry.connect(connection_id, handle)

    async def disconnect(self, connection_id: str) -> None:
        # Not queued behind the socket's events: teardown happens at once.
        conn = self.registry.unregister(connection_id)
        if conn is not None and conn.is_fellow:
            logger.info("Fellow left: %s (%s)", conn.name, connection_id)
            await self.directory.publish_roster()

    def submit(self, connection_id: str, event: Optional[str], data: Any = None) -> asyncio.Task:
        """Queue one inbound event without blocking the caller's receive loop."""
        task = asyncio.create_task(self.dispatch(connection_id, event, data), name=f"event:{connection_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every queued event (shutdown and tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def dispatch(self, connection_id: str, event: Optional[str], data: Any = None) -> None:
        """
        Handle one event. Events from the same socket run one at a time in
        arrival order, so a fellow's `get-ai-history` waits for an outstanding
        assistant reply. Other sockets have their own queue and never wait.
        """
        conn = self.registry.lookup(connection_id)
        if conn is None:
            return
        handler = self._handlers.get(event or "")
        if handler is None:
            logger.debug("Unknown event %r from %s dropped", event, connection_id)
            return
        async with conn.event_lock:
            if self.registry.lookup(connection_id) is not conn:
                logger.debug("%s from departed connection %s dropped", event, connection_id)
                return
            await handler(conn, data)

    # Registration

    async def _on_register_user(self, conn: Connection, data: Any) -> None:
        payload = _parse(RegisterUser, data, "name")
        requested = payload.name if payload else None
        name = self.registry.register_fellow(conn.connection_id, requested)
        if name is None:
            logger.debug("register-user from coach %s ignored", conn.connection_id)
            return
        await self.registry.send(conn, "registered", Registered(id=conn.connection_id, name=name).to_wire())
        await self.directory.publish_roster()

    async def _on_register_admin(self, conn: Connection, data: Any) -> None:
        if not self.registry.register_coach(conn.connection_id):
            logger.debug("register-admin from fellow %s ignored", conn.connection_id)
            return
        await self.directory.send_roster(conn.connection_id)

    # Coach thread

    async def _on_user_message(self, conn: Connection, data: Any) -> None:
        if not conn.is_fellow:
            return
        payload = _parse(TextPayload, data, "text")
        text = clean_text(payload.text) if payload else ""
        if not text:
            return
        message = self.store.append_coach_message(conn.connection_id, "user", text)
        if message is not None:
            await self.registry.broadcast_to_coaches("new-message", message.to_wire())

    async def _on_admin_message(self, conn: Connection, data: Any) -> None:
        if not conn.is_coach:
            return
        payload = _parse(AdminMessage, data, "text")
        text = clean_text(payload.text) if payload else ""
        if not text:
            return
        message = self.store.append_coach_message(payload.user_id, "admin", text)
        if message is None:
            logger.debug("admin-message for unknown fellow %s dropped", payload.user_id)
            return
        await self.registry.send(self.registry.get_fellow(payload.user_id), "admin-message", message.to_wire())
        await self.registry.send(conn, "new-message", message.to_wire())

    async def _on_get_history(self, conn: Connection, data: Any) -> None:
        if not conn.is_coach:
            return
        payload = _parse(HistoryRequest, data, "userId")
        if payload is None or self.registry.get_fellow(payload.user_id) is None:
            return
        reply = HistoryReply(user_id=payload.user_id, messages=self.store.get_coach_history(payload.user_id))
        await self.registry.send(conn, "history", reply.to_wire())

    # Assistant thread

    async def _on_user_ai_message(self, conn: Connection, data: Any) -> None:
        if not conn.is_fellow:
            return
        payload = _parse(TextPayload, data, "text")
        text = clean_text(payload.text) if payload else ""
        if not text:
            return
        await self.assistant.handle_user_query(conn.connection_id, text)

    async def _on_get_ai_history(self, conn: Connection, data: Any) -> None:
        if not conn.is_fellow:
            return
        await self.assistant.handle_history_request(conn.connection_id)
