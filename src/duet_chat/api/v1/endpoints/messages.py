"""Message endpoints for the Duet Chat API."""

from __future__ import annotations

from fastapi import APIRouter, status
from sqlalchemy.orm import Session

from duet_chat.models import Chat
from duet_chat.schemas.message import (
    ImageMessageCreate,
    MarkReadResponse,
    MessageResponse,
    ReadStatusResponse,
    TextMessageCreate,
)
from duet_chat.services import chats as chat_service
from duet_chat.services import messages as message_service
from duet_chat.services.realtime import SnapshotHub

from ..dependencies import CurrentUserDep, HubDep, ImagesDep, SessionDep

router = APIRouter(tags=["messages"])


def _publish_chat(hub: SnapshotHub, db: Session, chat_id: str) -> None:
    chat = db.get(Chat, chat_id)
    if chat is not None:
        hub.publish(chat_service.chat_topics(chat), db=db)


@router.get("/chats/{chat_id}/messages", response_model=list[MessageResponse])
async def list_messages(
    chat_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> list[MessageResponse]:
    """Messages of a chat, oldest first."""
    chat_service.get_chat_for_participant(db, chat_id, current_user.id)
    return [MessageResponse.model_validate(m) for m in message_service.list_messages(db, chat_id)]


@router.post(
    "/chats/{chat_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    chat_id: str,
    payload: TextMessageCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
    hub: HubDep,
) -> MessageResponse:
    message = message_service.send_text_message(
        db,
        chat_id,
        current_user,
        payload.content,
        reply_to_id=payload.reply_to_id,
    )
    _publish_chat(hub, db, chat_id)
    return MessageResponse.model_validate(message)


@router.post(
    "/chats/{chat_id}/messages/image",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_image_message(
    chat_id: str,
    payload: ImageMessageCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
    hub: HubDep,
    images: ImagesDep,
) -> MessageResponse:
    """Upload a data-URL image and post it to the chat."""
    message = await message_service.send_image_message(
        db,
        chat_id,
        current_user,
        payload.image,
        payload.file_name,
        images,
        reply_to_id=payload.reply_to_id,
    )
    _publish_chat(hub, db, chat_id)
    return MessageResponse.model_validate(message)


@router.post("/chats/{chat_id}/read", response_model=MarkReadResponse)
async def mark_read(
    chat_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    hub: HubDep,
) -> MarkReadResponse:
    """Mark the other participant's messages as read."""
    marked = message_service.mark_messages_as_read(db, chat_id, current_user.id)
    if marked:
        _publish_chat(hub, db, chat_id)
    return MarkReadResponse(marked=marked)


@router.get("/chats/{chat_id}/read-status", response_model=ReadStatusResponse)
async def read_status(
    chat_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> ReadStatusResponse:
    """Which of the caller's messages have been read."""
    chat_service.get_chat_for_participant(db, chat_id, current_user.id)
    return ReadStatusResponse(
        message_ids=message_service.read_message_ids(db, chat_id, current_user.id)
    )


@router.delete("/messages/{message_id}", response_model=MessageResponse)
async def delete_message(
    message_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    hub: HubDep,
    images: ImagesDep,
) -> MessageResponse:
    """Replace one of the caller's messages with a deletion placeholder."""
    message = await message_service.delete_message(db, message_id, current_user, images)
    _publish_chat(hub, db, message.chat_id)
    return MessageResponse.model_validate(message)
