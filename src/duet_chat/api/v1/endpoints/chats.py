"""Chat endpoints: listing, direct chats, participant snapshots, bulk deletes."""

from __future__ import annotations

from fastapi import APIRouter, Response, status

from duet_chat.schemas.chat import (
    ChatResponse,
    ClearChatResponse,
    DirectChatCreate,
    DirectChatResult,
    ParticipantInfoUpdate,
)
from duet_chat.services import chats as chat_service
from duet_chat.services import messages as message_service

from ..dependencies import CurrentUserDep, HubDep, ImagesDep, SessionDep

router = APIRouter(prefix="/chats", tags=["chats"])


@router.get("", response_model=list[ChatResponse])
async def list_chats(current_user: CurrentUserDep, db: SessionDep) -> list[ChatResponse]:
    """Chats of the caller, most recently active first."""
    chats = chat_service.list_user_chats(db, current_user.id)
    return [ChatResponse.from_chat(chat) for chat in chats]


@router.post("", response_model=DirectChatResult)
async def start_chat(
    payload: DirectChatCreate,
    response: Response,
    current_user: CurrentUserDep,
    db: SessionDep,
    hub: HubDep,
) -> DirectChatResult:
    """Open a chat with another user, reusing the existing one if present."""
    chat, created = chat_service.start_direct_chat(db, current_user, payload.user_id)
    if created:
        response.status_code = status.HTTP_201_CREATED
        hub.publish(chat_service.chat_topics(chat), db=db)
    return DirectChatResult(chat=ChatResponse.from_chat(chat), created=created)


@router.get("/unread-counts", response_model=dict[str, int])
async def unread_counts(current_user: CurrentUserDep, db: SessionDep) -> dict[str, int]:
    """Unread message counts keyed by chat id; chats without unread are omitted."""
    return message_service.unread_counts(db, current_user.id)


@router.get("/{chat_id}", response_model=ChatResponse)
async def get_chat(chat_id: str, current_user: CurrentUserDep, db: SessionDep) -> ChatResponse:
    chat = chat_service.get_chat_for_participant(db, chat_id, current_user.id)
    return ChatResponse.from_chat(chat)


@router.patch("/{chat_id}/participants/{participant_id}", response_model=ChatResponse)
async def update_participant(
    chat_id: str,
    participant_id: str,
    payload: ParticipantInfoUpdate,
    current_user: CurrentUserDep,
    db: SessionDep,
    hub: HubDep,
) -> ChatResponse:
    """Overwrite one participant's name/image snapshot."""
    chat_service.get_chat_for_participant(db, chat_id, current_user.id)
    chat = chat_service.update_participant_info(
        db,
        chat_id,
        participant_id,
        payload.model_dump(exclude_unset=True),
    )
    hub.publish(chat_service.chat_topics(chat), db=db)
    return ChatResponse.from_chat(chat)


@router.post("/{chat_id}/clear", response_model=ClearChatResponse)
async def clear_chat(
    chat_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    hub: HubDep,
    images: ImagesDep,
) -> ClearChatResponse:
    """Delete every message in the chat, including hosted images."""
    chat = chat_service.get_chat_for_participant(db, chat_id, current_user.id)
    topics = chat_service.chat_topics(chat)
    count = await chat_service.clear_chat_messages(db, chat_id, images)
    hub.publish(topics, db=db)
    return ClearChatResponse(count=count)


@router.delete("/{chat_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_chat(
    chat_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    hub: HubDep,
    images: ImagesDep,
) -> Response:
    """Delete the chat and all of its messages."""
    chat_service.get_chat_for_participant(db, chat_id, current_user.id)
    topics = await chat_service.delete_chat(db, chat_id, images)
    hub.publish(topics, db=db)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
