from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session, selectinload

from app.models.message import Message, MessageType
from app.utils.clock import utcnow
from app.utils.pagination import CursorKey
from app.utils.search import LIKE_ESCAPE, contains_pattern


def _after(key: CursorKey):
    return or_(
        Message.created_at > key.at,
        and_(Message.created_at == key.at, Message.id > key.id),
    )


def _before(key: CursorKey):
    return or_(
        Message.created_at < key.at,
        and_(Message.created_at == key.at, Message.id < key.id),
    )


class MessageRepository:

    def __init__(self, db: Session) -> None:
        self._db = db

    def insert(
        self,
        conversation_id: UUID,
        sender_id: UUID,
        content: str,
        message_type: MessageType = MessageType.text,
        reply_to_id: Optional[UUID] = None,
    ) -> Message:
        message = Message(
            conversation_id=conversation_id,
            sender_id=sender_id,
            message_type=message_type,
            content=content,
            reply_to_id=reply_to_id,
            created_at=utcnow(),
        )
        self._db.add(message)
        self._db.flush()
        return message

    def get(self, message_id: UUID) -> Optional[Message]:
        return self._db.query(Message).filter(Message.id == message_id).first()

    def get_in_conversation(self, conversation_id: UUID, message_id: UUID) -> Optional[Message]:
        return self._db.query(Message).filter(
            Message.id == message_id,
            Message.conversation_id == conversation_id,
        ).first()

    def page(
        self,
        conversation_id: UUID,
        limit: int,
        after: Optional[CursorKey] = None,
        before: Optional[CursorKey] = None,
        newest_first: bool = True,
    ) -> List[Message]:
        """Range read on the (created_at, id) key; tombstones included."""
        query = self._db.query(Message).options(selectinload(Message.reply_to)).filter(
            Message.conversation_id == conversation_id,
        )
        if after is not None:
            query = query.filter(_after(after))
        if before is not None:
            query = query.filter(_before(before))
        if newest_first:
            query = query.order_by(Message.created_at.desc(), Message.id.desc())
        else:
            query = query.order_by(Message.created_at.asc(), Message.id.asc())
        return query.limit(limit).all()

    def latest(self, conversation_id: UUID) -> Optional[Message]:
        return self._db.query(Message).filter(
            Message.conversation_id == conversation_id,
        ).order_by(Message.created_at.desc(), Message.id.desc()).first()

    def newest_among(self, conversation_id: UUID, message_ids: List[UUID]) -> Optional[Message]:
        if not message_ids:
            return None
        return self._db.query(Message).filter(
            Message.conversation_id == conversation_id,
            Message.id.in_(message_ids),
        ).order_by(Message.created_at.desc(), Message.id.desc()).first()

    def update_content(self, message: Message, content: str) -> Message:
        message.content = content
        message.edited_at = utcnow()
        self._db.flush()
        return message

    def soft_delete(self, message: Message) -> Message:
        # Ordering key and reply linkage stay; only the body goes
        message.deleted_at = utcnow()
        message.content = None
        self._db.flush()
        return message

    def search(self, conversation_id: UUID, query: str, limit: int) -> List[Message]:
        pattern = contains_pattern(query)
        return self._db.query(Message).filter(
            Message.conversation_id == conversation_id,
            Message.deleted_at.is_(None),
            Message.message_type == MessageType.text,
            Message.content.ilike(pattern, escape=LIKE_ESCAPE),
        ).order_by(Message.created_at.desc(), Message.id.desc()).limit(limit).all()
