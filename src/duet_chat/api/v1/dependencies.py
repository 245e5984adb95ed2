"""Shared API dependencies for authentication and common services."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from duet_chat.core.security import decode_access_token
from duet_chat.db.session import get_db
from duet_chat.models import User
from duet_chat.services.auth import LoginThrottle, get_login_throttle
from duet_chat.services.imagekit import ImageKitClient, get_imagekit_client
from duet_chat.services.oauth import GoogleTokenVerifier, get_google_verifier
from duet_chat.services.realtime import SnapshotHub, get_snapshot_hub

# HTTP Bearer scheme for JWT authentication
bearer_scheme = HTTPBearer()

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def resolve_user(db: Session, token: str) -> User | None:
    """Return the user a token belongs to, or None."""
    user_id = decode_access_token(token)
    if user_id is None:
        return None
    return db.get(User, user_id)


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
    db: SessionDep,
) -> User:
    """Get the current authenticated user from JWT token.

    Raises:
        HTTPException: If token is invalid or user not found
    """
    user = resolve_user(db, credentials.credentials)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    return user


def get_hub() -> SnapshotHub:
    return get_snapshot_hub()


def get_images() -> ImageKitClient:
    return get_imagekit_client()


def get_throttle() -> LoginThrottle:
    return get_login_throttle()


def get_verifier() -> GoogleTokenVerifier:
    return get_google_verifier()


# Type alias for current user dependency
CurrentUserDep = Annotated[User, Depends(get_current_user)]
HubDep = Annotated[SnapshotHub, Depends(get_hub)]
ImagesDep = Annotated[ImageKitClient, Depends(get_images)]
ThrottleDep = Annotated[LoginThrottle, Depends(get_throttle)]
VerifierDep = Annotated[GoogleTokenVerifier, Depends(get_verifier)]
