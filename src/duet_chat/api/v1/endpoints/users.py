"""User profile endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from duet_chat.models import Chat
from duet_chat.schemas.user import PresenceUpdate, ProfileUpdateRequest, UserResponse
from duet_chat.services import users as user_service
from duet_chat.services.chats import chat_topics

from ..dependencies import CurrentUserDep, HubDep, SessionDep

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
async def read_me(current_user: CurrentUserDep) -> UserResponse:
    return UserResponse.model_validate(current_user)


@router.patch("/me", response_model=UserResponse)
async def update_me(
    payload: ProfileUpdateRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
    hub: HubDep,
) -> UserResponse:
    """Update name and/or image; chat participant snapshots follow."""
    updates = payload.model_dump(exclude_unset=True)
    chat_ids = user_service.update_profile(db, current_user, updates)

    topics: list[str] = []
    for chat_id in chat_ids:
        chat = db.get(Chat, chat_id)
        if chat is not None:
            topics.extend(chat_topics(chat))
    hub.publish(topics, db=db)
    return UserResponse.model_validate(current_user)


@router.put("/me/presence", response_model=UserResponse)
async def update_presence(
    payload: PresenceUpdate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> UserResponse:
    user = user_service.set_presence(db, current_user, payload.status)
    return UserResponse.model_validate(user)


@router.get("/search", response_model=list[UserResponse])
async def search_users(
    current_user: CurrentUserDep,
    db: SessionDep,
    q: str = Query("", max_length=100),
    limit: int = Query(20, ge=1, le=50),
) -> list[UserResponse]:
    """Find other users by name or email."""
    users = user_service.search_users(db, q, current_user.id, limit=limit)
    return [UserResponse.model_validate(user) for user in users]


@router.get("/by-email", response_model=list[UserResponse])
async def find_by_email(
    current_user: CurrentUserDep,
    db: SessionDep,
    email: str = Query(..., min_length=3),
) -> list[UserResponse]:
    """Exact email lookup."""
    users = user_service.search_users_by_email(db, email)
    return [UserResponse.model_validate(user) for user in users]


@router.get("/{user_id}", response_model=UserResponse)
async def read_user(
    user_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> UserResponse:
    user = user_service.get_user(db, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    return UserResponse.model_validate(user)
