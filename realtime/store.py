"""
Per-fellow message logs: the coach thread and the assistant thread.

The logs themselves live on the fellow's Connection; this class is the only
writer. Writes for a fellow that is no longer registered return None instead
of raising, since a message can legitimately race a disconnect.
"""

from __future__ import annotations

from typing import List, Optional

from relay_server.applib.helpers import get_utc_now

from .registry import Registry
from .serializers import AssistantMessage, CoachMessage


class MessageStore:
    def __init__(self, registry: Registry) -> None:
        self.registry = registry

    def append_coach_message(self, fellow_id: str, origin: str, text: str) -> Optional[CoachMessage]:
        fellow = self.registry.get_fellow(fellow_id)
        if fellow is None:
            return None
        message = CoachMessage(
            origin=origin,
            text=text,
            timestamp=get_utc_now(),
            user_id=fellow.connection_id,
            user_name=fellow.name or "",
        )
        fellow.coach_log.append(message)
        return message

    def append_assistant_message(self, fellow_id: str, role: str, text: str) -> Optional[AssistantMessage]:
        fellow = self.registry.get_fellow(fellow_id)
        if fellow is None:
            return None
        message = AssistantMessage(role=role, text=text, timestamp=get_utc_now())
        fellow.assistant_log.append(message)
        return message

    def get_coach_history(self, fellow_id: Optional[str]) -> List[CoachMessage]:
        fellow = self.registry.get_fellow(fellow_id)
        return list(fellow.coach_log) if fellow else []

    def get_assistant_history(self, fellow_id: Optional[str]) -> List[AssistantMessage]:
        fellow = self.registry.get_fellow(fellow_id)
        return list(fellow.assistant_log) if fellow else []
