"""Invite-related Pydantic schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .chat import ChatResponse


class InviteCreate(BaseModel):
    """Invite another user to a direct chat."""

    recipient_id: str = Field(..., min_length=1)


class InviteResponse(BaseModel):
    """Invite document."""

    id: str
    sender_id: str
    sender_name: str
    recipient_id: str
    status: Literal["pending", "accepted", "declined"]
    created_at: datetime
    chat_id: str | None = None

    model_config = ConfigDict(from_attributes=True)


class InviteDecision(BaseModel):
    """Outcome of accepting or declining an invite."""

    invite: InviteResponse
    chat: ChatResponse | None = None
