from typing import List, Optional
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.exceptions import ValidationError
from app.models.user import User
from app.utils.search import LIKE_ESCAPE, contains_pattern

MIN_QUERY_LENGTH = 2
MAX_RESULTS = 50


class UserService:
    """Read-only lookups over the identity table."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, user_id: UUID) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def display_name(self, user_id: UUID, default: str = "Someone") -> str:
        user = self.get(user_id)
        return user.label if user else default

    def search_users(self, requester_id: UUID, query: str, limit: int = 10) -> List[User]:
        """Find people to start a conversation with, by username, display name or email"""
        query = (query or "").strip()
        if len(query) < MIN_QUERY_LENGTH:
            raise ValidationError(f"Search query must be at least {MIN_QUERY_LENGTH} characters")
        limit = max(1, min(limit, MAX_RESULTS))

        pattern = contains_pattern(query)
        return self.db.query(User).filter(
            User.id != requester_id,
            User.is_active.is_(True),
            User.discoverable.is_(True),
            or_(
                User.username.ilike(pattern, escape=LIKE_ESCAPE),
                User.display_name.ilike(pattern, escape=LIKE_ESCAPE),
                User.email.ilike(pattern, escape=LIKE_ESCAPE),
            ),
        ).order_by(User.display_name.asc(), User.username.asc()).limit(limit).all()
