"""
Record models shared by the store, the router and the wire codec.

Field names are snake_case in Python and camelCase on the wire
(``fromId``, ``toId``, ``isAiAssistant``) so pushed frames and HTTP
responses carry the same JSON shape.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictInt, model_validator
from pydantic.alias_generators import to_camel

from core.constants import ASSISTANT_USER_ID

UserKind = Literal["business", "consumer"]


class WireModel(BaseModel):
    """Base for models serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


class User(WireModel):
    id: int = Field(..., ge=1)
    name: str
    kind: UserKind


class Business(WireModel):
    id: int = Field(..., ge=1)
    user_id: int = Field(..., ge=1)
    description: str
    category: str
    location: str
    services: list[str] = Field(default_factory=list)

    def projection(self) -> dict[str, Any]:
        """Compact view handed to the matcher."""
        return {
            "id": self.id,
            "description": self.description,
            "category": self.category,
            "location": self.location,
            "services": list(self.services),
        }


class Message(WireModel):
    """A persisted message.

    ``is_ai_assistant`` is true exactly when the sender is the reserved
    assistant identifier.
    """

    id: int = Field(..., ge=1)
    from_id: int = Field(..., ge=0)
    to_id: int = Field(..., ge=0)
    content: str
    timestamp: datetime
    is_ai_assistant: bool = False

    @model_validator(mode="after")
    def check_assistant_flag(self) -> Message:
        if self.is_ai_assistant != (self.from_id == ASSISTANT_USER_ID):
            raise ValueError("is_ai_assistant must be true iff from_id is the assistant identifier")
        return self

    @property
    def sort_key(self) -> tuple[datetime, int]:
        return (self.timestamp, self.id)


def encode_message(message: Message) -> dict[str, Any]:
    """Outbound push frame for a message."""
    return message.to_wire()


# =============================================================================
# Inbound socket frames
# =============================================================================


class AuthFrame(WireModel):
    """``{"type": "auth", "userId": <int>}``"""

    type: Literal["auth"]
    user_id: StrictInt = Field(..., gt=ASSISTANT_USER_ID)


class SendFrame(WireModel):
    """``{"type": "message", "toId": <int>, "content": <str>}``"""

    type: Literal["message"]
    to_id: StrictInt
    content: str
