"""Chat invitation endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from duet_chat.schemas.chat import ChatResponse
from duet_chat.schemas.invite import InviteCreate, InviteDecision, InviteResponse
from duet_chat.services import invites as invite_service
from duet_chat.services.chats import chat_topics
from duet_chat.services.realtime import invites_topic

from ..dependencies import CurrentUserDep, HubDep, SessionDep

router = APIRouter(prefix="/invites", tags=["invites"])


@router.post("", response_model=InviteResponse, status_code=status.HTTP_201_CREATED)
async def send_invite(
    payload: InviteCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
    hub: HubDep,
) -> InviteResponse:
    """Invite another user; repeating a pending invite returns the same one."""
    invite = invite_service.send_invite(db, current_user, payload.recipient_id)
    hub.publish([invites_topic(invite.recipient_id)], db=db)
    return InviteResponse.model_validate(invite)


@router.get("/pending", response_model=list[InviteResponse])
async def list_pending(current_user: CurrentUserDep, db: SessionDep) -> list[InviteResponse]:
    invites = invite_service.pending_invites(db, current_user.id)
    return [InviteResponse.model_validate(invite) for invite in invites]


@router.post("/{invite_id}/accept", response_model=InviteDecision)
async def accept_invite(
    invite_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    hub: HubDep,
) -> InviteDecision:
    """Accept an invite and open the chat."""
    invite, chat = invite_service.respond_to_invite(db, invite_id, current_user, accept=True)
    topics = [invites_topic(current_user.id)]
    if chat is not None:
        topics.extend(chat_topics(chat))
    hub.publish(topics, db=db)
    return InviteDecision(
        invite=InviteResponse.model_validate(invite),
        chat=ChatResponse.from_chat(chat) if chat is not None else None,
    )


@router.post("/{invite_id}/decline", response_model=InviteDecision)
async def decline_invite(
    invite_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    hub: HubDep,
) -> InviteDecision:
    invite, _ = invite_service.respond_to_invite(db, invite_id, current_user, accept=False)
    hub.publish([invites_topic(current_user.id)], db=db)
    return InviteDecision(invite=InviteResponse.model_validate(invite))
