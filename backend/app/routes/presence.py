from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID
from app.db.session import get_db
from app.core.auth import get_current_user_id
from app.core.presence import presence
from app.schemas.presence import TypingRequest, TypingResponse, TypingUser
from app.services.conversation_service import ConversationService
from app.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


def _typing_response(conversation_id: UUID, requester_id: UUID) -> TypingResponse:
    signals = presence.get_typing(conversation_id, requester_id)
    return TypingResponse(
        conversation_id=conversation_id,
        typing=[TypingUser(user_id=s.user_id, display_name=s.display_name) for s in signals],
    )


@router.post("/{conversation_id}/typing", response_model=TypingResponse)
def set_typing(
    conversation_id: UUID,
    payload: Optional[TypingRequest] = None,
    db: Session = Depends(get_db),
    current_user_id: UUID = Depends(get_current_user_id)
):
    """
    Mark the current user as typing; the signal lapses on its own after a few seconds
    """
    service = ConversationService(db)
    service.ensure_participant(conversation_id, current_user_id)

    display_name = payload.display_name.strip() if payload and payload.display_name else ""
    if not display_name:
        display_name = service.users.display_name(current_user_id)

    presence.set_typing(conversation_id, current_user_id, display_name)
    logger.debug("Typing signal set", conversation_id=str(conversation_id), user_id=str(current_user_id))
    return _typing_response(conversation_id, current_user_id)


@router.delete("/{conversation_id}/typing", response_model=TypingResponse)
def clear_typing(
    conversation_id: UUID,
    db: Session = Depends(get_db),
    current_user_id: UUID = Depends(get_current_user_id)
):
    ConversationService(db).ensure_participant(conversation_id, current_user_id)
    presence.clear_typing(conversation_id, current_user_id)
    return _typing_response(conversation_id, current_user_id)


@router.get("/{conversation_id}/typing", response_model=TypingResponse)
def get_typing(
    conversation_id: UUID,
    db: Session = Depends(get_db),
    current_user_id: UUID = Depends(get_current_user_id)
):
    """
    Who else is typing right now
    """
    ConversationService(db).ensure_participant(conversation_id, current_user_id)
    return _typing_response(conversation_id, current_user_id)
