from app.models.user import User
from app.models.conversation import Conversation, ConversationKind
from app.models.participant import ConversationParticipant, ParticipantRole, compare_roles
from app.models.message import Message, MessageType
from app.models.read_marker import ReadMarker

__all__ = [
    "User",
    "Conversation",
    "ConversationKind",
    "ConversationParticipant",
    "ParticipantRole",
    "compare_roles",
    "Message",
    "MessageType",
    "ReadMarker"
]
