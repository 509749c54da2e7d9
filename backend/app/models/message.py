from sqlalchemy import Column, DateTime, ForeignKey, Text, Uuid, Index
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import relationship
from app.db.session import Base
from app.utils.clock import utcnow
from enum import Enum
import uuid


class MessageType(str, Enum):
    text = 'text'
    system = 'system'


class Message(Base):
    __tablename__ = "messages"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    conversation_id = Column(Uuid(as_uuid=True), ForeignKey('conversations.id'), nullable=False)
    sender_id = Column(Uuid(as_uuid=True), ForeignKey('users.id'), nullable=False)
    message_type = Column('message_type', SAEnum(MessageType, name='message_type', native_enum=True), nullable=False, default=MessageType.text)
    content = Column(Text, nullable=True)  # NULL only for tombstones
    reply_to_id = Column(Uuid(as_uuid=True), ForeignKey('messages.id'), nullable=True)
    edited_at = Column(DateTime, nullable=True)
    deleted_at = Column(DateTime, nullable=True)
    # (created_at, id) is the pagination key; neither is ever rewritten
    created_at = Column(DateTime, nullable=False, default=utcnow)

    reply_to = relationship("Message", remote_side=[id], lazy="select")

    __table_args__ = (
        Index('ix_messages_conversation_order', 'conversation_id', 'created_at', 'id'),
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self):
        return f"<Message id={self.id} conversation_id={self.conversation_id}>"
