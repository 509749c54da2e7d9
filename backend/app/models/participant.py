from sqlalchemy import Column, DateTime, ForeignKey, Uuid, Index
from sqlalchemy import Enum as SAEnum
from app.db.session import Base
from app.utils.clock import utcnow
from enum import Enum


class ParticipantRole(str, Enum):
    member = 'member'
    admin = 'admin'

    @property
    def rank(self) -> int:
        return _ROLE_RANK[self]

    def at_least(self, other: "ParticipantRole") -> bool:
        return compare_roles(self, other) >= 0


_ROLE_RANK = {
    ParticipantRole.member: 0,
    ParticipantRole.admin: 1,
}


def compare_roles(a: ParticipantRole, b: ParticipantRole) -> int:
    """Total order over roles: negative if a < b, zero if equal, positive if a > b."""
    return a.rank - b.rank


class ConversationParticipant(Base):
    __tablename__ = "conversation_participants"

    conversation_id = Column(Uuid(as_uuid=True), ForeignKey('conversations.id'), primary_key=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey('users.id'), primary_key=True)
    role = Column(SAEnum(ParticipantRole, name='participant_role', native_enum=True), nullable=False, default=ParticipantRole.member)
    joined_at = Column(DateTime, nullable=False, default=utcnow)
    # Rows are never deleted; a value here marks the membership inactive
    left_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index('ix_participants_user_active', 'user_id', 'left_at'),
    )

    @property
    def is_active(self) -> bool:
        return self.left_at is None

    @property
    def is_admin(self) -> bool:
        return self.role == ParticipantRole.admin

    def __repr__(self):
        return f"<ConversationParticipant conversation_id={self.conversation_id} user_id={self.user_id} role={self.role}>"
