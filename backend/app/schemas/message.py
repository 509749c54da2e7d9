from pydantic import BaseModel, Field, AliasChoices
from typing import Optional, List
from datetime import datetime
from uuid import UUID
from app.models.message import Message, MessageType

REPLY_PREVIEW_LENGTH = 100


class MessageCreate(BaseModel):
    # Accept both snake_case and the camelCase names older clients send
    conversation_id: UUID = Field(validation_alias=AliasChoices('conversation_id', 'conversationId'))
    content: str
    reply_to_id: Optional[UUID] = Field(default=None, validation_alias=AliasChoices('reply_to_id', 'replyToId'))


class MessageUpdate(BaseModel):
    content: str


class ReplyPreview(BaseModel):
    id: UUID
    sender_id: UUID
    content: Optional[str] = None
    is_deleted: bool = False


class MessageResponse(BaseModel):
    id: UUID
    conversation_id: UUID
    sender_id: UUID
    message_type: MessageType
    content: Optional[str] = None
    reply_to_id: Optional[UUID] = None
    reply_to: Optional[ReplyPreview] = None
    is_edited: bool = False
    is_deleted: bool = False
    edited_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    created_at: datetime

    @classmethod
    def from_message(cls, message: Message) -> "MessageResponse":
        """Tombstones keep id, timestamps and reply linkage but never content."""
        reply = None
        if message.reply_to is not None:
            target = message.reply_to
            reply = ReplyPreview(
                id=target.id,
                sender_id=target.sender_id,
                content=None if target.is_deleted else (target.content or "")[:REPLY_PREVIEW_LENGTH],
                is_deleted=target.is_deleted,
            )
        return cls(
            id=message.id,
            conversation_id=message.conversation_id,
            sender_id=message.sender_id,
            message_type=message.message_type,
            content=None if message.is_deleted else message.content,
            reply_to_id=message.reply_to_id,
            reply_to=reply,
            is_edited=message.edited_at is not None,
            is_deleted=message.is_deleted,
            edited_at=message.edited_at,
            deleted_at=message.deleted_at,
            created_at=message.created_at,
        )


class MessagePageResponse(BaseModel):
    messages: List[MessageResponse]
    next_cursor: Optional[str] = None
    prev_cursor: Optional[str] = None
    has_more: bool = False
