from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from uuid import UUID
from app.db.session import get_db
from app.core.auth import get_current_user_id
from app.schemas.conversation import UnreadCountsResponse
from app.schemas.message import MessageCreate, MessageUpdate, MessageResponse
from app.services.message_service import MessageService
from app.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.post("/", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
def create_message(
    message: MessageCreate,
    db: Session = Depends(get_db),
    current_user_id: UUID = Depends(get_current_user_id)
):
    """
    Create a new message
    """
    logger.info(
        "POST /messages/",
        user_id=str(current_user_id),
        conversation_id=str(message.conversation_id),
        reply_to_id=str(message.reply_to_id) if message.reply_to_id else None,
        length=len(message.content),
    )
    db_message = MessageService(db).send_message(
        current_user_id,
        message.conversation_id,
        message.content,
        reply_to_id=message.reply_to_id,
    )
    return MessageResponse.from_message(db_message)


@router.get("/unread-counts", response_model=UnreadCountsResponse)
def get_unread_counts(
    db: Session = Depends(get_db),
    current_user_id: UUID = Depends(get_current_user_id)
):
    """
    Unread messages per active conversation plus the badge total
    """
    summary = MessageService(db).get_unread_counts(current_user_id)
    return UnreadCountsResponse(counts=summary.counts, total=summary.total)


@router.patch("/{message_id}", response_model=MessageResponse)
def edit_message(
    message_id: UUID,
    payload: MessageUpdate,
    db: Session = Depends(get_db),
    current_user_id: UUID = Depends(get_current_user_id)
):
    logger.info("PATCH /messages/{message_id}", message_id=str(message_id), user_id=str(current_user_id))
    message = MessageService(db).edit_message(message_id, current_user_id, payload.content)
    return MessageResponse.from_message(message)


@router.delete("/{message_id}", response_model=MessageResponse)
def delete_message(
    message_id: UUID,
    db: Session = Depends(get_db),
    current_user_id: UUID = Depends(get_current_user_id)
):
    """
    Delete a message for everyone; a tombstone stays in its place
    """
    logger.info("DELETE /messages/{message_id}", message_id=str(message_id), user_id=str(current_user_id))
    message = MessageService(db).delete_message(message_id, current_user_id)
    return MessageResponse.from_message(message)
