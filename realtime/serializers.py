"""
Pydantic models for WebSocket payloads.

Inbound models validate what clients send; outbound records are what the
message store keeps and what goes on the wire (camelCase via aliases).
"""

from __future__ import annotations

from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


class Frame(BaseModel):
    """Envelope for every frame in both directions."""

    event: str
    data: Any = None


# Inbound payloads


class RegisterUser(WireModel):
    name: Optional[str] = None


class TextPayload(WireModel):
    text: str


class AdminMessage(WireModel):
    user_id: str = Field(alias="userId")
    text: str


class HistoryRequest(WireModel):
    user_id: str = Field(alias="userId")


# Stored records / outbound payloads


class CoachMessage(WireModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    origin: Literal["user", "admin"] = Field(alias="from")
    text: str
    timestamp: str
    user_id: str = Field(alias="userId")
    user_name: str = Field(alias="userName")


class AssistantMessage(WireModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    role: Literal["user", "assistant"]
    text: str
    timestamp: str


class RosterEntry(WireModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    name: str


class Registered(WireModel):
    id: str
    name: str


class HistoryReply(WireModel):
    user_id: str = Field(alias="userId")
    messages: List[CoachMessage]


class AssistantHistoryReply(WireModel):
    messages: List[AssistantMessage]
