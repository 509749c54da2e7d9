from sqlalchemy import Column, String, DateTime, Boolean, Text, Uuid, Index
from sqlalchemy import Enum as SAEnum
from app.db.session import Base
from app.utils.clock import utcnow
from enum import Enum
from uuid import UUID
import uuid


class ConversationKind(str, Enum):
    direct = 'direct'
    group = 'group'


def direct_key_for(user_a: UUID, user_b: UUID) -> str:
    """Canonical key of an unordered user pair; unique per direct conversation."""
    low, high = sorted([user_a, user_b])
    return f"{low.hex}:{high.hex}"


class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    kind = Column(SAEnum(ConversationKind, name='conversation_kind', native_enum=True), nullable=False)
    name = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    admin_only_messaging = Column(Boolean, nullable=False, default=False)
    created_by = Column(Uuid(as_uuid=True), nullable=False)
    # Only set for direct conversations; the unique index makes get-or-create idempotent
    direct_key = Column(String(65), nullable=True, unique=True)
    # Denormalized pointer to the newest message, drives conversation list ordering
    last_message_id = Column(Uuid(as_uuid=True), nullable=True)
    last_activity_at = Column(DateTime, nullable=False, default=utcnow)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index('ix_conversations_activity', 'last_activity_at', 'id'),
    )

    @property
    def is_group(self) -> bool:
        return self.kind == ConversationKind.group

    def __repr__(self):
        return f"<Conversation id={self.id} kind={self.kind}>"
