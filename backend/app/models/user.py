from sqlalchemy import Column, String, DateTime, Boolean, Uuid
from app.db.session import Base
from app.utils.clock import utcnow
import uuid

class User(Base):
    """Identity owned by the external account service; read-only here."""
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String, unique=True, nullable=True)
    username = Column(String, unique=True, nullable=True)
    display_name = Column(String, nullable=True)
    avatar_url = Column(String, nullable=True)
    discoverable = Column(Boolean, default=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    @property
    def label(self) -> str:
        return self.display_name or self.username or "Someone"

    def __repr__(self):
        return f"<User id={self.id} username={self.username}>"
