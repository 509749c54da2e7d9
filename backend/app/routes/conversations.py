from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID
from app.db.session import get_db
from app.core.auth import get_current_user_id
from app.schemas.conversation import (
    AddMembersRequest,
    AddMembersResponse,
    AdminOnlyUpdate,
    ConversationCreate,
    ConversationListResponse,
    ConversationResponse,
    ConversationUpdate,
    LeaveResponse,
    MarkReadRequest,
    ReadStateResponse,
)
from app.schemas.message import MessagePageResponse, MessageResponse
from app.services.conversation_service import ConversationService
from app.services.message_service import Direction, MessageService
from app.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


def _detail(service: ConversationService, conversation_id: UUID, user_id: UUID) -> ConversationResponse:
    return ConversationResponse.from_detail(service.get_conversation(conversation_id, user_id))


@router.post("/", response_model=ConversationResponse, status_code=status.HTTP_201_CREATED)
def create_conversation(
    payload: ConversationCreate,
    db: Session = Depends(get_db),
    current_user_id: UUID = Depends(get_current_user_id)
):
    """
    Create a direct conversation (idempotent per user pair) or a group
    """
    logger.info("POST /conversations/", user_id=str(current_user_id), is_group=payload.is_group, participants=len(payload.participant_ids))
    service = ConversationService(db)
    conversation = service.create_conversation(
        current_user_id,
        payload.participant_ids,
        name=payload.name,
        is_group=payload.is_group,
        description=payload.description,
    )
    return _detail(service, conversation.id, current_user_id)


@router.get("/", response_model=ConversationListResponse)
def list_conversations(
    limit: int = Query(20, ge=1, le=100),
    cursor: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user_id: UUID = Depends(get_current_user_id)
):
    """
    Get the current user's conversations, most recently active first
    """
    page = ConversationService(db).list_conversations(current_user_id, limit=limit, cursor=cursor)
    return ConversationListResponse(
        conversations=[ConversationResponse.from_detail(detail) for detail in page.conversations],
        next_cursor=page.next_cursor,
    )


@router.get("/with/{user_id}", response_model=ConversationResponse)
def get_or_create_conversation(
    user_id: UUID,
    db: Session = Depends(get_db),
    current_user_id: UUID = Depends(get_current_user_id)
):
    """
    Get or create a direct conversation with a specific user
    """
    logger.info("GET /conversations/with/{user_id}", user_id=str(current_user_id), target_user_id=str(user_id))
    service = ConversationService(db)
    conversation = service.get_or_create_direct(current_user_id, user_id)
    return _detail(service, conversation.id, current_user_id)


@router.get("/{conversation_id}", response_model=ConversationResponse)
def get_conversation(
    conversation_id: UUID,
    db: Session = Depends(get_db),
    current_user_id: UUID = Depends(get_current_user_id)
):
    return _detail(ConversationService(db), conversation_id, current_user_id)


@router.patch("/{conversation_id}", response_model=ConversationResponse)
def update_conversation(
    conversation_id: UUID,
    payload: ConversationUpdate,
    db: Session = Depends(get_db),
    current_user_id: UUID = Depends(get_current_user_id)
):
    """
    Update group name or description (admins only)
    """
    logger.info("PATCH /conversations/{conversation_id}", conversation_id=str(conversation_id), user_id=str(current_user_id))
    service = ConversationService(db)
    service.update_conversation(conversation_id, current_user_id, name=payload.name, description=payload.description)
    return _detail(service, conversation_id, current_user_id)


@router.patch("/{conversation_id}/admin-only", response_model=ConversationResponse)
def set_admin_only_messaging(
    conversation_id: UUID,
    payload: AdminOnlyUpdate,
    db: Session = Depends(get_db),
    current_user_id: UUID = Depends(get_current_user_id)
):
    """
    Toggle whether only admins may send messages (admins only)
    """
    logger.info("PATCH /conversations/{conversation_id}/admin-only", conversation_id=str(conversation_id), admin_only=payload.admin_only)
    service = ConversationService(db)
    service.set_admin_only_messaging(conversation_id, current_user_id, payload.admin_only)
    return _detail(service, conversation_id, current_user_id)


@router.post("/{conversation_id}/members", response_model=AddMembersResponse)
def add_members(
    conversation_id: UUID,
    payload: AddMembersRequest,
    db: Session = Depends(get_db),
    current_user_id: UUID = Depends(get_current_user_id)
):
    """
    Add members to a group (admins only); already-active members are skipped
    """
    logger.info("POST /conversations/{conversation_id}/members", conversation_id=str(conversation_id), count=len(payload.member_ids))
    service = ConversationService(db)
    added = service.add_members(conversation_id, current_user_id, payload.member_ids)
    return AddMembersResponse(added=added, conversation=_detail(service, conversation_id, current_user_id))


@router.delete("/{conversation_id}/members/{member_id}", response_model=ConversationResponse)
def remove_member(
    conversation_id: UUID,
    member_id: UUID,
    db: Session = Depends(get_db),
    current_user_id: UUID = Depends(get_current_user_id)
):
    """
    Remove another member from a group (admins only)
    """
    logger.info("DELETE /conversations/{conversation_id}/members/{member_id}", conversation_id=str(conversation_id), member_id=str(member_id))
    service = ConversationService(db)
    service.remove_member(conversation_id, current_user_id, member_id)
    return _detail(service, conversation_id, current_user_id)


@router.post("/{conversation_id}/leave", response_model=LeaveResponse)
def leave_conversation(
    conversation_id: UUID,
    db: Session = Depends(get_db),
    current_user_id: UUID = Depends(get_current_user_id)
):
    logger.info("POST /conversations/{conversation_id}/leave", conversation_id=str(conversation_id), user_id=str(current_user_id))
    promoted = ConversationService(db).leave_conversation(conversation_id, current_user_id)
    return LeaveResponse(message="Successfully left the conversation", promoted_user_id=promoted)


@router.post("/{conversation_id}/admins/{member_id}", response_model=ConversationResponse)
def make_admin(
    conversation_id: UUID,
    member_id: UUID,
    db: Session = Depends(get_db),
    current_user_id: UUID = Depends(get_current_user_id)
):
    logger.info("POST /conversations/{conversation_id}/admins/{member_id}", conversation_id=str(conversation_id), member_id=str(member_id))
    service = ConversationService(db)
    service.make_admin(conversation_id, current_user_id, member_id)
    return _detail(service, conversation_id, current_user_id)


@router.delete("/{conversation_id}/admins/{member_id}", response_model=ConversationResponse)
def revoke_admin(
    conversation_id: UUID,
    member_id: UUID,
    db: Session = Depends(get_db),
    current_user_id: UUID = Depends(get_current_user_id)
):
    logger.info("DELETE /conversations/{conversation_id}/admins/{member_id}", conversation_id=str(conversation_id), member_id=str(member_id))
    service = ConversationService(db)
    service.revoke_admin(conversation_id, current_user_id, member_id)
    return _detail(service, conversation_id, current_user_id)


@router.get("/{conversation_id}/messages", response_model=MessagePageResponse)
def get_messages(
    conversation_id: UUID,
    limit: int = Query(50, ge=1, le=100),
    cursor: Optional[str] = None,
    direction: Direction = Direction.older,
    db: Session = Depends(get_db),
    current_user_id: UUID = Depends(get_current_user_id)
):
    """
    Page through messages; deleted messages come back as tombstones
    """
    page = MessageService(db).get_messages(conversation_id, current_user_id, limit=limit, cursor=cursor, direction=direction)
    return MessagePageResponse(
        messages=[MessageResponse.from_message(message) for message in page.messages],
        next_cursor=page.next_cursor,
        prev_cursor=page.prev_cursor,
        has_more=page.has_more,
    )


@router.get("/{conversation_id}/messages/search", response_model=List[MessageResponse])
def search_messages(
    conversation_id: UUID,
    q: str = Query(..., min_length=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user_id: UUID = Depends(get_current_user_id)
):
    messages = MessageService(db).search_messages(conversation_id, current_user_id, q, limit=limit)
    return [MessageResponse.from_message(message) for message in messages]


@router.post("/{conversation_id}/read", response_model=ReadStateResponse)
def mark_messages_read(
    conversation_id: UUID,
    payload: Optional[MarkReadRequest] = None,
    db: Session = Depends(get_db),
    current_user_id: UUID = Depends(get_current_user_id)
):
    """
    Advance the read marker to the newest message, or to the newest of the given ids
    """
    message_ids = payload.message_ids if payload else None
    state = MessageService(db).mark_messages_as_read(conversation_id, current_user_id, message_ids)
    return ReadStateResponse(
        conversation_id=state.conversation_id,
        last_read_message_id=state.marker.last_read_message_id if state.marker else None,
        last_read_at=state.marker.last_read_at if state.marker else None,
        unread_count=state.unread_count,
    )
