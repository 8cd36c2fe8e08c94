"""
Request bodies for the v1 API.

Bodies are camelCase on the wire like the records they create. Field
constraints here only check shape; business rules (self-addressed
messages, owner kind) are enforced by the services.
"""

from __future__ import annotations

from pydantic import Field, StrictInt

from core.constants import MAX_MESSAGE_LENGTH
from models.records import UserKind, WireModel


class CreateUserRequest(WireModel):
    """Register a user."""

    name: str = Field(..., min_length=1, max_length=200)
    kind: UserKind


class CreateBusinessRequest(WireModel):
    """Create a business profile owned by a business-kind user."""

    user_id: StrictInt = Field(..., ge=1)
    description: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1)
    services: list[str] = Field(default_factory=list)


class DirectMessageRequest(WireModel):
    """Send a message from one user to another."""

    from_id: StrictInt
    to_id: StrictInt
    content: str = Field(..., max_length=MAX_MESSAGE_LENGTH)


class AssistantTurnRequest(WireModel):
    """One user turn in the assistant conversation."""

    user_id: StrictInt
    content: str = Field(..., max_length=MAX_MESSAGE_LENGTH)
