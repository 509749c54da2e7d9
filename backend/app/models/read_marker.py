from sqlalchemy import Column, DateTime, ForeignKey, Uuid
from app.db.session import Base
from app.utils.clock import utcnow


class ReadMarker(Base):
    __tablename__ = "read_markers"

    conversation_id = Column(Uuid(as_uuid=True), ForeignKey('conversations.id'), primary_key=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey('users.id'), primary_key=True)
    last_read_message_id = Column(Uuid(as_uuid=True), ForeignKey('messages.id'), nullable=False)
    # Ordering key of the boundary message, copied so unread counts need no join
    last_read_message_at = Column(DateTime, nullable=False)
    last_read_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<ReadMarker conversation_id={self.conversation_id} user_id={self.user_id} last_read_message_id={self.last_read_message_id}>"
