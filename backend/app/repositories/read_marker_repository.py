from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from app.models.message import Message
from app.models.read_marker import ReadMarker
from app.utils.clock import utcnow


def _unread_filter(user_id: UUID):
    """Messages from others, not tombstoned, after the user's marker (if any)."""
    return and_(
        Message.sender_id != user_id,
        Message.deleted_at.is_(None),
        or_(
            ReadMarker.user_id.is_(None),
            Message.created_at > ReadMarker.last_read_message_at,
            and_(
                Message.created_at == ReadMarker.last_read_message_at,
                Message.id > ReadMarker.last_read_message_id,
            ),
        ),
    )


def _marker_join(user_id: UUID):
    return and_(
        ReadMarker.conversation_id == Message.conversation_id,
        ReadMarker.user_id == user_id,
    )


class ReadMarkerRepository:

    def __init__(self, db: Session) -> None:
        self._db = db

    def get(self, conversation_id: UUID, user_id: UUID) -> Optional[ReadMarker]:
        return self._db.query(ReadMarker).filter(
            ReadMarker.conversation_id == conversation_id,
            ReadMarker.user_id == user_id,
        ).first()

    def advance(self, conversation_id: UUID, user_id: UUID, boundary: Message) -> Tuple[ReadMarker, bool]:
        """Upsert the marker, moving it forward only.

        Returns the marker and whether it moved. A boundary at or before the
        current position leaves the row untouched.
        """
        marker = self.get(conversation_id, user_id)
        if marker is None:
            marker = ReadMarker(
                conversation_id=conversation_id,
                user_id=user_id,
                last_read_message_id=boundary.id,
                last_read_message_at=boundary.created_at,
                last_read_at=utcnow(),
            )
            self._db.add(marker)
            self._db.flush()
            return marker, True

        current = (marker.last_read_message_at, marker.last_read_message_id)
        if (boundary.created_at, boundary.id) <= current:
            return marker, False

        marker.last_read_message_id = boundary.id
        marker.last_read_message_at = boundary.created_at
        marker.last_read_at = utcnow()
        self._db.flush()
        return marker, True

    def unread_count(self, conversation_id: UUID, user_id: UUID) -> int:
        return self._db.query(func.count(Message.id)).select_from(Message).outerjoin(
            ReadMarker, _marker_join(user_id),
        ).filter(
            Message.conversation_id == conversation_id,
            _unread_filter(user_id),
        ).scalar()

    def unread_counts(self, user_id: UUID, conversation_ids: List[UUID]) -> Dict[UUID, int]:
        """Unread count per conversation, zero for those with nothing unread."""
        counts = {conversation_id: 0 for conversation_id in conversation_ids}
        if not counts:
            return counts

        rows = self._db.query(Message.conversation_id, func.count(Message.id)).outerjoin(
            ReadMarker, _marker_join(user_id),
        ).filter(
            Message.conversation_id.in_(list(counts)),
            _unread_filter(user_id),
        ).group_by(Message.conversation_id).all()

        for conversation_id, count in rows:
            counts[conversation_id] = count
        return counts
