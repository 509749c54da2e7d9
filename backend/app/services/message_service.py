"""
Message lifecycle, cursor pagination and read receipts.

Messages are ordered by the immutable (created_at, id) key. Deleting a
message only sets ``deleted_at`` and drops the body, so pages stay stable
and replies keep pointing at a real row.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional
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
from app.models.message import Message, MessageType
from app.models.participant import ParticipantRole
from app.models.read_marker import ReadMarker
from app.repositories.conversation_repository import ConversationRepository
from app.repositories.message_repository import MessageRepository
from app.repositories.read_marker_repository import ReadMarkerRepository
from app.services.conversation_service import require_role
from app.utils.logger import get_logger
from app.utils.pagination import decode_cursor, encode_cursor

logger = get_logger(__name__)


class Direction(str, Enum):
    older = 'older'
    newer = 'newer'


@dataclass
class MessagePage:
    messages: List[Message] = field(default_factory=list)
    next_cursor: Optional[str] = None
    prev_cursor: Optional[str] = None
    has_more: bool = False


@dataclass
class ReadState:
    conversation_id: UUID
    marker: Optional[ReadMarker]
    unread_count: int


@dataclass
class UnreadSummary:
    counts: Dict[UUID, int]

    @property
    def total(self) -> int:
        return sum(self.counts.values())


def cursor_for(message: Message) -> str:
    return encode_cursor(message.created_at, message.id)


def validate_content(content: Optional[str]) -> str:
    if content is None or not content.strip():
        raise ValidationError("Message content is required")
    if len(content) > settings.MESSAGE_MAX_LENGTH:
        raise ValidationError(
            f"Message content must be at most {settings.MESSAGE_MAX_LENGTH} characters",
            context={"length": len(content), "max_length": settings.MESSAGE_MAX_LENGTH},
        )
    return content


class MessageService:

    def __init__(self, db: Session) -> None:
        self.db = db
        self.conversations = ConversationRepository(db)
        self.messages = MessageRepository(db)
        self.markers = ReadMarkerRepository(db)

    def _ensure_participant(self, conversation_id: UUID, user_id: UUID):
        participant = self.conversations.get_active_participant(conversation_id, user_id)
        if participant is None:
            raise NotFoundError("Conversation not found", context={"conversation_id": str(conversation_id)})
        return participant

    def _owned_message(self, message_id: UUID, requester_id: UUID, action: str) -> Message:
        message = self.messages.get(message_id)
        if message is None or message.is_deleted:
            raise NotFoundError("Message not found", context={"message_id": str(message_id)})
        if message.sender_id != requester_id:
            raise ForbiddenError(f"You can only {action} your own messages")
        return message

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @transactional
    def send_message(
        self,
        sender_id: UUID,
        conversation_id: UUID,
        content: str,
        reply_to_id: Optional[UUID] = None,
    ) -> Message:
        participant = self._ensure_participant(conversation_id, sender_id)
        conversation = self.conversations.get(conversation_id)

        if conversation.admin_only_messaging:
            require_role(participant, ParticipantRole.admin, "send messages in this group", error_code="ADMIN_ONLY")

        content = validate_content(content)

        if reply_to_id is not None:
            target = self.messages.get_in_conversation(conversation_id, reply_to_id)
            if target is None or target.is_deleted:
                raise ValidationError("Reply message not found", context={"reply_to_id": str(reply_to_id)})

        message = self.messages.insert(conversation_id, sender_id, content, reply_to_id=reply_to_id)
        self.conversations.record_message(conversation, message)

        logger.debug(
            "Message sent",
            message_id=str(message.id),
            conversation_id=str(conversation_id),
            sender_id=str(sender_id),
            length=len(content),
        )
        return message

    @transactional
    def edit_message(self, message_id: UUID, requester_id: UUID, content: str) -> Message:
        message = self._owned_message(message_id, requester_id, "edit")
        if message.message_type == MessageType.system:
            raise InvalidOperationError("System messages cannot be edited", error_code="SYSTEM_MESSAGE")
        content = validate_content(content)

        self.messages.update_content(message, content)
        logger.debug("Message edited", message_id=str(message_id), user_id=str(requester_id))
        return message

    @transactional
    def delete_message(self, message_id: UUID, requester_id: UUID) -> Message:
        message = self._owned_message(message_id, requester_id, "delete")
        self.messages.soft_delete(message)
        logger.debug("Message deleted", message_id=str(message_id), user_id=str(requester_id))
        return message

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_messages(
        self,
        conversation_id: UUID,
        requester_id: UUID,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
        direction: Direction = Direction.older,
    ) -> MessagePage:
        """
        Page through a conversation on the (created_at, id) key.

        "older" walks backwards from the cursor (or from the newest message),
        "newer" walks forwards from the cursor (or from the first message).
        Either way the page is returned oldest first. Tombstones are kept in
        place with their content stripped.

        For "older", ``next_cursor`` is only set while more history exists.
        For "newer" it always points at the newest message seen, so a polling
        client can pass it back on the next tick.
        """
        self._ensure_participant(conversation_id, requester_id)

        limit = limit or settings.DEFAULT_PAGE_SIZE
        limit = max(1, min(limit, settings.MAX_PAGE_SIZE))
        key = decode_cursor(cursor) if cursor else None
        direction = Direction(direction)

        if direction == Direction.older:
            rows = self.messages.page(conversation_id, limit + 1, before=key, newest_first=True)
        else:
            rows = self.messages.page(conversation_id, limit + 1, after=key, newest_first=False)

        has_more = len(rows) > limit
        rows = rows[:limit]

        # rows[-1] is the far end of the walk, rows[0] the end nearest the cursor
        if direction == Direction.older:
            next_cursor = cursor_for(rows[-1]) if has_more and rows else None
        else:
            # Pollers keep walking forward from here even when caught up
            next_cursor = cursor_for(rows[-1]) if rows else cursor
        prev_cursor = cursor_for(rows[0]) if rows else None

        if direction == Direction.older:
            rows.reverse()

        return MessagePage(messages=rows, next_cursor=next_cursor, prev_cursor=prev_cursor, has_more=has_more)

    def search_messages(self, conversation_id: UUID, requester_id: UUID, query: str, limit: int = 20) -> List[Message]:
        self._ensure_participant(conversation_id, requester_id)
        query = (query or "").strip()
        if len(query) < 2:
            raise ValidationError("Search query must be at least 2 characters")
        limit = max(1, min(limit, settings.MAX_PAGE_SIZE))
        return self.messages.search(conversation_id, query, limit)

    # ------------------------------------------------------------------
    # Read receipts
    # ------------------------------------------------------------------

    def mark_messages_as_read(
        self,
        conversation_id: UUID,
        requester_id: UUID,
        message_ids: Optional[List[UUID]] = None,
    ) -> ReadState:
        try:
            return self._advance_read_marker(conversation_id, requester_id, message_ids)
        except ConflictError:
            # A concurrent request inserted the first marker; move that row instead
            logger.info(
                "Read marker created concurrently, retrying",
                conversation_id=str(conversation_id),
                user_id=str(requester_id),
            )
            return self._advance_read_marker(conversation_id, requester_id, message_ids)

    @transactional
    def _advance_read_marker(
        self,
        conversation_id: UUID,
        requester_id: UUID,
        message_ids: Optional[List[UUID]],
    ) -> ReadState:
        self._ensure_participant(conversation_id, requester_id)

        if message_ids:
            boundary = self.messages.newest_among(conversation_id, list(message_ids))
        else:
            boundary = self.messages.latest(conversation_id)

        if boundary is None:
            marker = self.markers.get(conversation_id, requester_id)
        else:
            marker, moved = self.markers.advance(conversation_id, requester_id, boundary)
            if moved:
                logger.debug(
                    "Read marker advanced",
                    conversation_id=str(conversation_id),
                    user_id=str(requester_id),
                    message_id=str(boundary.id),
                )

        return ReadState(
            conversation_id=conversation_id,
            marker=marker,
            unread_count=self.markers.unread_count(conversation_id, requester_id),
        )

    def get_unread_counts(self, requester_id: UUID) -> UnreadSummary:
        active_ids = self.conversations.active_conversation_ids(requester_id)
        return UnreadSummary(counts=self.markers.unread_counts(requester_id, active_ids))
