from app.repositories.conversation_repository import ConversationRepository
from app.repositories.message_repository import MessageRepository
from app.repositories.read_marker_repository import ReadMarkerRepository

__all__ = [
    "ConversationRepository",
    "MessageRepository",
    "ReadMarkerRepository"
]
