"""Authentication request/response schemas."""

from typing import Literal

from pydantic import BaseModel, Field

from .user import UserResponse


class SignupRequest(BaseModel):
    """Email/password account creation."""

    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., description="At least MIN_PASSWORD_LENGTH characters")
    name: str | None = Field(None, max_length=100)
    remember: bool = Field(True, description="Issue a durable token instead of a session-only one")


class LoginRequest(BaseModel):
    """Email/password sign-in."""

    email: str
    password: str
    remember: bool = True


class GoogleLoginRequest(BaseModel):
    """Sign-in with a Google ID token obtained by the browser."""

    id_token: str
    remember: bool = True


class SessionResponse(BaseModel):
    """Token issued after a successful sign-in."""

    access_token: str
    token_type: str = "bearer"
    persistence: Literal["local", "session"]
    user: UserResponse
