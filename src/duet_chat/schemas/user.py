"""User-related Pydantic schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class UserResponse(BaseModel):
    """Public profile fields returned by the API."""

    id: str
    name: str
    email: str
    image: str | None = None
    status: Literal["online", "offline"] = "offline"
    last_active: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class ProfileUpdateRequest(BaseModel):
    """Partial profile update; fields left out are unchanged."""

    name: str | None = Field(None, min_length=1, max_length=100)
    image: str | None = Field(None, description="Image URL, or null to clear it")


class PresenceUpdate(BaseModel):
    """Explicit presence change."""

    status: Literal["online", "offline"]
