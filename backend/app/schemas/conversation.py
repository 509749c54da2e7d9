from typing import Dict, List, Optional
from uuid import UUID
from datetime import datetime
from pydantic import BaseModel, Field, AliasChoices
from app.models.conversation import ConversationKind
from app.models.participant import ParticipantRole
from app.schemas.message import MessageResponse


class ConversationCreate(BaseModel):
    participant_ids: List[UUID] = Field(default_factory=list, validation_alias=AliasChoices('participant_ids', 'participantIds'))
    name: Optional[str] = None
    description: Optional[str] = None
    is_group: bool = Field(default=False, validation_alias=AliasChoices('is_group', 'isGroup'))


class ConversationUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class AdminOnlyUpdate(BaseModel):
    admin_only: bool = Field(validation_alias=AliasChoices('admin_only', 'adminOnly'))


class AddMembersRequest(BaseModel):
    member_ids: List[UUID] = Field(validation_alias=AliasChoices('member_ids', 'memberIds'))


class MarkReadRequest(BaseModel):
    message_ids: Optional[List[UUID]] = Field(default=None, validation_alias=AliasChoices('message_ids', 'messageIds'))


class ParticipantResponse(BaseModel):
    user_id: UUID
    role: ParticipantRole
    joined_at: datetime

    class Config:
        from_attributes = True


class ConversationResponse(BaseModel):
    id: UUID
    kind: ConversationKind
    name: Optional[str] = None
    description: Optional[str] = None
    admin_only_messaging: bool = False
    created_by: UUID
    created_at: datetime
    updated_at: Optional[datetime] = None
    last_activity_at: datetime
    last_message: Optional[MessageResponse] = None
    participants: List[ParticipantResponse] = []
    unread_count: int = 0

    @classmethod
    def from_detail(cls, detail) -> "ConversationResponse":
        conversation = detail.conversation
        return cls(
            id=conversation.id,
            kind=conversation.kind,
            name=conversation.name,
            description=conversation.description,
            admin_only_messaging=conversation.admin_only_messaging,
            created_by=conversation.created_by,
            created_at=conversation.created_at,
            updated_at=conversation.updated_at,
            last_activity_at=conversation.last_activity_at,
            last_message=MessageResponse.from_message(detail.last_message) if detail.last_message else None,
            participants=[ParticipantResponse.model_validate(p) for p in detail.participants],
            unread_count=detail.unread_count,
        )


class ConversationListResponse(BaseModel):
    conversations: List[ConversationResponse]
    next_cursor: Optional[str] = None


class AddMembersResponse(BaseModel):
    added: List[UUID]
    conversation: ConversationResponse


class LeaveResponse(BaseModel):
    message: str
    promoted_user_id: Optional[UUID] = None


class ReadStateResponse(BaseModel):
    conversation_id: UUID
    last_read_message_id: Optional[UUID] = None
    last_read_at: Optional[datetime] = None
    unread_count: int


class UnreadCountsResponse(BaseModel):
    counts: Dict[UUID, int]
    total: int
