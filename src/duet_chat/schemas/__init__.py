"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .auth import GoogleLoginRequest, LoginRequest, SessionResponse, SignupRequest
from .chat import ChatResponse, DirectChatCreate, ParticipantInfoUpdate
from .image import ImageUploadRequest, ImageUploadResponse
from .invite import InviteCreate, InviteDecision, InviteResponse
from .message import ImageMessageCreate, MessageResponse, TextMessageCreate
from .user import ProfileUpdateRequest, UserResponse

__all__ = [
    "GoogleLoginRequest", "LoginRequest", "SessionResponse", "SignupRequest",
    "ChatResponse", "DirectChatCreate", "ParticipantInfoUpdate",
    "ImageUploadRequest", "ImageUploadResponse",
    "InviteCreate", "InviteDecision", "InviteResponse",
    "ImageMessageCreate", "MessageResponse", "TextMessageCreate",
    "ProfileUpdateRequest", "UserResponse",
]
