"""
Conversation lifecycle, membership and admin roles.

Every mutation runs as one transaction (see ``app.db.transaction``) and
records a system message describing the change. Membership changes lock
the conversation row first so concurrent admin edits serialize.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidOperationError,
    NotFoundError,
    ValidationError,
)
from app.db.transaction import transactional
from app.models.conversation import Conversation, ConversationKind, direct_key_for
from app.models.message import Message, MessageType
from app.models.participant import ConversationParticipant, ParticipantRole
from app.models.user import User
from app.repositories.conversation_repository import ConversationRepository
from app.repositories.message_repository import MessageRepository
from app.repositories.read_marker_repository import ReadMarkerRepository
from app.services.user_service import UserService
from app.utils.logger import get_logger
from app.utils.pagination import decode_cursor, encode_cursor

logger = get_logger(__name__)


@dataclass
class ConversationDetail:
    conversation: Conversation
    participants: List[ConversationParticipant]
    last_message: Optional[Message] = None
    unread_count: int = 0


@dataclass
class ConversationPage:
    conversations: List[ConversationDetail] = field(default_factory=list)
    next_cursor: Optional[str] = None


def require_role(
    participant: ConversationParticipant,
    role: ParticipantRole,
    action: str,
    error_code: Optional[str] = None,
) -> None:
    """Single gate for every role-restricted operation."""
    if not participant.role.at_least(role):
        raise ForbiddenError(
            f"Only {role.value}s can {action}",
            error_code=error_code,
            context={"required_role": role.value},
        )


class ConversationService:

    def __init__(self, db: Session) -> None:
        self.db = db
        self.conversations = ConversationRepository(db)
        self.messages = MessageRepository(db)
        self.markers = ReadMarkerRepository(db)
        self.users = UserService(db)

    # ------------------------------------------------------------------
    # Access helpers
    # ------------------------------------------------------------------

    def ensure_participant(self, conversation_id: UUID, user_id: UUID) -> ConversationParticipant:
        """Return the requester's active membership or raise NotFound.

        Absent conversations and inactive requesters look the same to the
        caller.
        """
        participant = self.conversations.get_active_participant(conversation_id, user_id)
        if participant is None:
            raise NotFoundError("Conversation not found", context={"conversation_id": str(conversation_id)})
        return participant

    def _lock_for_member(self, conversation_id: UUID, user_id: UUID):
        conversation = self.conversations.lock(conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation not found", context={"conversation_id": str(conversation_id)})
        participant = self.ensure_participant(conversation_id, user_id)
        return conversation, participant

    def _require_group(self, conversation: Conversation, action: str) -> None:
        if not conversation.is_group:
            raise InvalidOperationError(
                f"Cannot {action} in a direct conversation",
                error_code="DIRECT_CONVERSATION",
            )

    def _load_users(self, user_ids: Iterable[UUID]) -> Dict[UUID, User]:
        ids = set(user_ids)
        if not ids:
            return {}
        users = self.db.query(User).filter(User.id.in_(ids), User.is_active.is_(True)).all()
        found = {user.id: user for user in users}
        missing = ids - set(found)
        if missing:
            raise ValidationError(
                "One or more participants do not exist or are inactive",
                context={"user_ids": sorted(str(uid) for uid in missing)},
            )
        return found

    def _system_message(self, conversation: Conversation, actor_id: UUID, text: str) -> Message:
        message = self.messages.insert(conversation.id, actor_id, text, message_type=MessageType.system)
        self.conversations.record_message(conversation, message)
        return message

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create_conversation(
        self,
        requester_id: UUID,
        participant_ids: List[UUID],
        name: Optional[str] = None,
        is_group: bool = False,
        description: Optional[str] = None,
    ) -> Conversation:
        others = [uid for uid in dict.fromkeys(participant_ids) if uid != requester_id]

        if is_group:
            return self._create_group(requester_id, others, name, description)

        if len(others) != 1:
            raise ValidationError(
                "Direct conversations require exactly one other participant",
                context={"participant_count": len(others)},
            )
        key = direct_key_for(requester_id, others[0])
        existing = self.conversations.find_direct(key)
        if existing is not None:
            return existing
        try:
            return self._create_direct(requester_id, others[0], key)
        except ConflictError:
            # A concurrent request created the same pair first
            existing = self.conversations.find_direct(key)
            if existing is None:
                raise
            return existing

    @transactional
    def _create_group(
        self,
        requester_id: UUID,
        member_ids: List[UUID],
        name: Optional[str],
        description: Optional[str],
    ) -> Conversation:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Group name is required")
        if len(name) > settings.GROUP_NAME_MAX_LENGTH:
            raise ValidationError(f"Group name must be at most {settings.GROUP_NAME_MAX_LENGTH} characters")
        if description is not None and len(description) > settings.DESCRIPTION_MAX_LENGTH:
            raise ValidationError(f"Description must be at most {settings.DESCRIPTION_MAX_LENGTH} characters")

        self._load_users([requester_id, *member_ids])

        roles = {requester_id: ParticipantRole.admin}
        roles.update({uid: ParticipantRole.member for uid in member_ids})
        conversation = self.conversations.create_with_participants(
            ConversationKind.group,
            created_by=requester_id,
            roles=roles,
            name=name,
            description=description,
        )
        self._system_message(conversation, requester_id, f'Group "{name}" created')

        logger.info(
            "Conversation created",
            conversation_id=str(conversation.id),
            creator_id=str(requester_id),
            is_group=True,
            participant_count=len(roles),
        )
        return conversation

    @transactional
    def _create_direct(self, requester_id: UUID, other_id: UUID, key: str) -> Conversation:
        self._load_users([requester_id, other_id])

        conversation = self.conversations.create_with_participants(
            ConversationKind.direct,
            created_by=requester_id,
            roles={requester_id: ParticipantRole.member, other_id: ParticipantRole.member},
            direct_key=key,
        )
        self._system_message(conversation, requester_id, "Conversation started")

        logger.info(
            "Conversation created",
            conversation_id=str(conversation.id),
            creator_id=str(requester_id),
            is_group=False,
            participant_count=2,
        )
        return conversation

    def get_or_create_direct(self, requester_id: UUID, other_user_id: UUID) -> Conversation:
        return self.create_conversation(requester_id, [other_user_id], is_group=False)

    @transactional
    def update_conversation(
        self,
        conversation_id: UUID,
        requester_id: UUID,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Conversation:
        conversation, participant = self._lock_for_member(conversation_id, requester_id)
        if name is not None:
            self._require_group(conversation, "rename")
        require_role(participant, ParticipantRole.admin, "update conversation settings")

        if name is None and description is None:
            return conversation

        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("Group name cannot be empty")
            if len(name) > settings.GROUP_NAME_MAX_LENGTH:
                raise ValidationError(f"Group name must be at most {settings.GROUP_NAME_MAX_LENGTH} characters")
            conversation.name = name
        if description is not None:
            if len(description) > settings.DESCRIPTION_MAX_LENGTH:
                raise ValidationError(f"Description must be at most {settings.DESCRIPTION_MAX_LENGTH} characters")
            conversation.description = description

        self._system_message(conversation, requester_id, "Group settings updated")
        logger.info("Conversation updated", conversation_id=str(conversation_id), user_id=str(requester_id))
        return conversation

    @transactional
    def set_admin_only_messaging(self, conversation_id: UUID, requester_id: UUID, admin_only: bool) -> Conversation:
        conversation, participant = self._lock_for_member(conversation_id, requester_id)
        self._require_group(conversation, "restrict messaging")
        require_role(participant, ParticipantRole.admin, "change who may send messages")

        if conversation.admin_only_messaging == admin_only:
            return conversation

        conversation.admin_only_messaging = admin_only
        text = (
            "Only admins can now send messages in this group"
            if admin_only
            else "All members can now send messages in this group"
        )
        self._system_message(conversation, requester_id, text)
        logger.info(
            "Admin-only messaging updated",
            conversation_id=str(conversation_id),
            admin_only=admin_only,
            updated_by=str(requester_id),
        )
        return conversation

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    @transactional
    def add_members(self, conversation_id: UUID, requester_id: UUID, member_ids: List[UUID]) -> List[UUID]:
        conversation, participant = self._lock_for_member(conversation_id, requester_id)
        self._require_group(conversation, "add members")
        require_role(participant, ParticipantRole.admin, "add members")

        member_ids = list(dict.fromkeys(member_ids))
        if not member_ids:
            raise ValidationError("At least one member is required")
        users = self._load_users(member_ids)

        added = []
        for member_id in member_ids:
            _, changed = self.conversations.upsert_participant(conversation_id, member_id, ParticipantRole.member)
            if changed:
                added.append(member_id)

        if added:
            names = ", ".join(users[uid].label for uid in added)
            self._system_message(conversation, requester_id, f"{names} joined the group")

        logger.info(
            "Members added to conversation",
            conversation_id=str(conversation_id),
            added=[str(uid) for uid in added],
            skipped=len(member_ids) - len(added),
        )
        return added

    @transactional
    def remove_member(self, conversation_id: UUID, requester_id: UUID, member_id: UUID) -> None:
        if member_id == requester_id:
            raise InvalidOperationError("Use leave to remove yourself", error_code="SELF_REMOVAL")

        conversation, participant = self._lock_for_member(conversation_id, requester_id)
        self._require_group(conversation, "remove members")
        require_role(participant, ParticipantRole.admin, "remove members")

        target = self.conversations.get_active_participant(conversation_id, member_id)
        if target is None:
            raise NotFoundError("Member not found in conversation", context={"user_id": str(member_id)})

        self.conversations.mark_left(target)
        self._system_message(conversation, requester_id, f"{self.users.display_name(member_id)} was removed from the group")
        logger.info(
            "Member removed from conversation",
            conversation_id=str(conversation_id),
            member_id=str(member_id),
            removed_by=str(requester_id),
        )

    @transactional
    def leave_conversation(self, conversation_id: UUID, requester_id: UUID) -> Optional[UUID]:
        """Leave a group.

        Returns the id of the member promoted to admin when the last admin
        leaves, otherwise None.
        """
        conversation, participant = self._lock_for_member(conversation_id, requester_id)
        self._require_group(conversation, "leave")

        was_admin = participant.is_admin
        self.conversations.mark_left(participant)
        self._system_message(conversation, requester_id, f"{self.users.display_name(requester_id)} left the group")

        promoted = None
        remaining = self.conversations.active_participants(conversation_id)
        if was_admin and remaining and not any(p.is_admin for p in remaining):
            successor = remaining[0]
            self.conversations.set_role(successor, ParticipantRole.admin)
            self._system_message(conversation, requester_id, f"{self.users.display_name(successor.user_id)} is now an admin")
            promoted = successor.user_id

        logger.info(
            "Member left conversation",
            conversation_id=str(conversation_id),
            user_id=str(requester_id),
            remaining=len(remaining),
            promoted=str(promoted) if promoted else None,
        )
        return promoted

    @transactional
    def make_admin(self, conversation_id: UUID, requester_id: UUID, member_id: UUID) -> ConversationParticipant:
        conversation, participant = self._lock_for_member(conversation_id, requester_id)
        self._require_group(conversation, "promote members")
        require_role(participant, ParticipantRole.admin, "promote members")

        target = self.conversations.get_active_participant(conversation_id, member_id)
        if target is None:
            raise NotFoundError("Member not found in conversation", context={"user_id": str(member_id)})
        if target.is_admin:
            return target

        self.conversations.set_role(target, ParticipantRole.admin)
        self._system_message(conversation, requester_id, f"{self.users.display_name(member_id)} is now an admin")
        logger.info("Admin granted", conversation_id=str(conversation_id), target_id=str(member_id), granted_by=str(requester_id))
        return target

    @transactional
    def revoke_admin(self, conversation_id: UUID, requester_id: UUID, member_id: UUID) -> ConversationParticipant:
        conversation, participant = self._lock_for_member(conversation_id, requester_id)
        self._require_group(conversation, "revoke admin rights")
        require_role(participant, ParticipantRole.admin, "revoke admin rights")

        target = self.conversations.get_active_participant(conversation_id, member_id)
        if target is None:
            raise NotFoundError("Member not found in conversation", context={"user_id": str(member_id)})
        if not target.is_admin:
            raise InvalidOperationError("This member is not an admin", error_code="NOT_ADMIN")
        if self.conversations.count_active_admins(conversation_id) <= 1:
            raise InvalidOperationError(
                "Cannot revoke the only admin; promote another member first",
                error_code="SOLE_ADMIN",
            )

        self.conversations.set_role(target, ParticipantRole.member)
        self._system_message(conversation, requester_id, f"{self.users.display_name(member_id)} is no longer an admin")
        logger.info("Admin rights revoked", conversation_id=str(conversation_id), target_id=str(member_id), revoked_by=str(requester_id))
        return target

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_conversation(self, conversation_id: UUID, requester_id: UUID) -> ConversationDetail:
        self.ensure_participant(conversation_id, requester_id)
        conversation = self.conversations.get(conversation_id)
        return self._detail(conversation, requester_id)

    def _detail(self, conversation: Conversation, requester_id: UUID) -> ConversationDetail:
        last_message = None
        if conversation.last_message_id is not None:
            last_message = self.messages.get(conversation.last_message_id)
        return ConversationDetail(
            conversation=conversation,
            participants=self.conversations.active_participants(conversation.id),
            last_message=last_message,
            unread_count=self.markers.unread_count(conversation.id, requester_id),
        )

    def list_conversations(self, requester_id: UUID, limit: int = 20, cursor: Optional[str] = None) -> ConversationPage:
        limit = max(1, min(limit, settings.MAX_PAGE_SIZE))
        before = decode_cursor(cursor) if cursor else None

        rows = self.conversations.list_for_user(requester_id, limit + 1, before)
        has_more = len(rows) > limit
        rows = rows[:limit]

        next_cursor = None
        if has_more and rows:
            last = rows[-1]
            next_cursor = encode_cursor(last.last_activity_at, last.id)

        return ConversationPage(
            conversations=[self._detail(conversation, requester_id) for conversation in rows],
            next_cursor=next_cursor,
        )
