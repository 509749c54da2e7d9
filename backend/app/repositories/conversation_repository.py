from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from app.models.conversation import Conversation, ConversationKind
from app.models.message import Message
from app.models.participant import ConversationParticipant, ParticipantRole
from app.utils.clock import utcnow
from app.utils.pagination import CursorKey


class ConversationRepository:

    def __init__(self, db: Session) -> None:
        self._db = db

    def get(self, conversation_id: UUID) -> Optional[Conversation]:
        return self._db.query(Conversation).filter(Conversation.id == conversation_id).first()

    def lock(self, conversation_id: UUID) -> Optional[Conversation]:
        """Load the conversation row with an exclusive lock held until commit.

        Membership mutations take this lock first so that concurrent admin
        changes on one conversation are applied one at a time.
        """
        return (
            self._db.query(Conversation)
            .filter(Conversation.id == conversation_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def find_direct(self, direct_key: str) -> Optional[Conversation]:
        return self._db.query(Conversation).filter(Conversation.direct_key == direct_key).first()

    def create_with_participants(
        self,
        kind: ConversationKind,
        created_by: UUID,
        roles: Dict[UUID, ParticipantRole],
        name: Optional[str] = None,
        description: Optional[str] = None,
        direct_key: Optional[str] = None,
    ) -> Conversation:
        now = utcnow()
        conversation = Conversation(
            kind=kind,
            name=name,
            description=description,
            created_by=created_by,
            direct_key=direct_key,
            admin_only_messaging=False,
            last_activity_at=now,
            created_at=now,
            updated_at=now,
        )
        self._db.add(conversation)
        self._db.flush()
        for user_id, role in roles.items():
            self._db.add(ConversationParticipant(
                conversation_id=conversation.id,
                user_id=user_id,
                role=role,
                joined_at=now,
            ))
        self._db.flush()
        return conversation

    def get_participant(self, conversation_id: UUID, user_id: UUID) -> Optional[ConversationParticipant]:
        return self._db.query(ConversationParticipant).filter(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.user_id == user_id,
        ).first()

    def get_active_participant(self, conversation_id: UUID, user_id: UUID) -> Optional[ConversationParticipant]:
        return self._db.query(ConversationParticipant).filter(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.user_id == user_id,
            ConversationParticipant.left_at.is_(None),
        ).first()

    def active_participants(self, conversation_id: UUID) -> List[ConversationParticipant]:
        return self._db.query(ConversationParticipant).filter(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.left_at.is_(None),
        ).order_by(ConversationParticipant.joined_at.asc(), ConversationParticipant.user_id.asc()).all()

    def count_active_admins(self, conversation_id: UUID) -> int:
        return self._db.query(func.count()).select_from(ConversationParticipant).filter(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.left_at.is_(None),
            ConversationParticipant.role == ParticipantRole.admin,
        ).scalar()

    def upsert_participant(
        self,
        conversation_id: UUID,
        user_id: UUID,
        role: ParticipantRole = ParticipantRole.member,
    ) -> Tuple[ConversationParticipant, bool]:
        """Create or reactivate a membership row.

        Returns the row and whether it changed; an already-active member is
        left untouched.
        """
        participant = self.get_participant(conversation_id, user_id)
        if participant is None:
            participant = ConversationParticipant(
                conversation_id=conversation_id,
                user_id=user_id,
                role=role,
                joined_at=utcnow(),
            )
            self._db.add(participant)
            self._db.flush()
            return participant, True
        if participant.left_at is None:
            return participant, False
        participant.left_at = None
        participant.role = role
        participant.joined_at = utcnow()
        self._db.flush()
        return participant, True

    def mark_left(self, participant: ConversationParticipant) -> None:
        participant.left_at = utcnow()
        self._db.flush()

    def set_role(self, participant: ConversationParticipant, role: ParticipantRole) -> None:
        participant.role = role
        self._db.flush()

    def active_conversation_ids(self, user_id: UUID) -> List[UUID]:
        rows = self._db.query(ConversationParticipant.conversation_id).filter(
            ConversationParticipant.user_id == user_id,
            ConversationParticipant.left_at.is_(None),
        ).all()
        return [row[0] for row in rows]

    def list_for_user(self, user_id: UUID, limit: int, before: Optional[CursorKey] = None) -> List[Conversation]:
        query = self._db.query(Conversation).join(
            ConversationParticipant,
            and_(
                ConversationParticipant.conversation_id == Conversation.id,
                ConversationParticipant.user_id == user_id,
                ConversationParticipant.left_at.is_(None),
            ),
        )
        if before is not None:
            query = query.filter(or_(
                Conversation.last_activity_at < before.at,
                and_(Conversation.last_activity_at == before.at, Conversation.id < before.id),
            ))
        return query.order_by(
            Conversation.last_activity_at.desc(),
            Conversation.id.desc(),
        ).limit(limit).all()

    def record_message(self, conversation: Conversation, message: Message) -> None:
        conversation.last_message_id = message.id
        conversation.last_activity_at = message.created_at
        self._db.flush()
