"""
Connection registry: who is connected, in which role, and under which name.

WHY an in-process object:
- State is volatile by definition (lives as long as the socket does).
- One registry instance is owned by the RelayHub and passed by reference to
  every consumer, so tests can build isolated instances.

Design:
- `_connections`: every live socket, keyed by server-assigned connection id.
- `_fellows`: registered fellows in registration order (the roster order).
- `_coaches`: the coach group; broadcasting to coaches iterates this set.

Bookkeeping methods never await: each completes in one step of the event loop.
Only `send` suspends, and it never raises.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Dict, List, Optional, Protocol

from .serializers import AssistantMessage, CoachMessage

logger = logging.getLogger(__name__)


class Role(str, Enum):
    FELLOW = "fellow"
    COACH = "coach"


class ConnectionHandle(Protocol):
    """Anything that can push a named event down one socket."""

    def send_event(self, event: str, data: Any) -> Awaitable[None]: ...


def fallback_name(connection_id: str) -> str:
    return f"Fellow {connection_id[:6]}"


@dataclass
class Connection:
    connection_id: str
    handle: ConnectionHandle
    role: Optional[Role] = None
    name: Optional[str] = None
    coach_log: List[CoachMessage] = field(default_factory=list)
    assistant_log: List[AssistantMessage] = field(default_factory=list)
    # Events from this socket run one at a time, in arrival order.
    event_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    # Serializes this fellow's assistant calls in arrival order.
    assistant_lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @property
    def is_fellow(self) -> bool:
        return self.role is Role.FELLOW

    @property
    def is_coach(self) -> bool:
        return self.role is Role.COACH


class Registry:
    def __init__(self) -> None:
        self._connections: Dict[str, Connection] = {}
        self._fellows: Dict[str, Connection] = {}
        self._coaches: Dict[str, Connection] = {}

    def connect(self, connection_id: str, handle: ConnectionHandle) -> Connection:
        """Track a freshly opened socket. It has no role until it registers."""
        conn = Connection(connection_id=connection_id, handle=handle)
        self._connections[connection_id] = conn
        return conn

    def lookup(self, connection_id: Optional[str]) -> Optional[Connection]:
        if not connection_id:
            return None
        return self._connections.get(connection_id)

    def register_fellow(self, connection_id: str, requested_name: Optional[str]) -> Optional[str]:
        """
        Promote a connection to fellow and return its display name.

        A second registration from the same fellow only renames it; both logs
        are kept. Returns None for unknown connections and for coaches.
        """

        conn = self._connections.get(connection_id)
        if conn is None or conn.is_coach:
            return None

        name = (requested_name or "").strip() or fallback_name(connection_id)
        if conn.is_fellow:
            logger.info("Fellow %s renamed %r -> %r", connection_id, conn.name, name)
            conn.name = name
            return name

        conn.role = Role.FELLOW
        conn.name = name
        conn.coach_log = []
        conn.assistant_log = []
        self._fellows[connection_id] = conn
        logger.info("Fellow registered: %s (%s)", name, connection_id)
        return name

    def register_coach(self, connection_id: str) -> bool:
        conn = self._connections.get(connection_id)
        if conn is None or conn.is_fellow:
            return False
        if not conn.is_coach:
            conn.role = Role.COACH
            self._coaches[connection_id] = conn
            logger.info("Coach registered: %s", connection_id)
        return True

    def unregister(self, connection_id: str) -> Optional[Connection]:
        """Forget a connection entirely. Unknown ids are a no-op."""
        conn = self._connections.pop(connection_id, None)
        if conn is None:
            return None
        self._fellows.pop(connection_id, None)
        self._coaches.pop(connection_id, None)
        # Logs go with the connection; nothing is retained after disconnect.
        conn.coach_log = []
        conn.assistant_log = []
        return conn

    def get_fellow(self, connection_id: Optional[str]) -> Optional[Connection]:
        if not connection_id:
            return None
        return self._fellows.get(connection_id)

    def fellows(self) -> List[Connection]:
        return list(self._fellows.values())

    def coaches(self) -> List[Connection]:
        return list(self._coaches.values())

    @property
    def coach_ids(self) -> frozenset[str]:
        return frozenset(self._coaches)

    def counts(self) -> Dict[str, int]:
        return {
            "connections": len(self._connections),
            "fellows": len(self._fellows),
            "coaches": len(self._coaches),
        }

    async def send(self, conn: Optional[Connection], event: str, data: Any) -> bool:
        """Best-effort delivery to one connection. A socket that went away is not an error."""
        if conn is None or conn.connection_id not in self._connections:
            return False
        try:
            await conn.handle.send_event(event, data)
        except Exception:
            logger.debug("Dropped %s for %s", event, conn.connection_id, exc_info=True)
            return False
        return True

    async def broadcast_to_coaches(self, event: str, data: Any) -> int:
        sent = 0
        for coach in self.coaches():
            if await self.send(coach, event, data):
                sent += 1
        return sent
