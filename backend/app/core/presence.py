import asyncio
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
from uuid import UUID

from app.core.config import settings
from app.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class TypingSignal:
    conversation_id: UUID
    user_id: UUID
    display_name: str
    expires_at: float


class TypingPresence:
    """Process-wide typing table: {conversation_id: {user_id: TypingSignal}}.

    Nothing here is durable. A lost or duplicated signal only affects what a
    client shows for a few seconds, so one coarse lock guards the whole map.
    """

    def __init__(self, ttl: float = None, clock: Callable[[], float] = time.monotonic):
        self.ttl = settings.TYPING_TTL_SECONDS if ttl is None else ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._signals: Dict[UUID, Dict[UUID, TypingSignal]] = {}

    def set_typing(self, conversation_id: UUID, user_id: UUID, display_name: str) -> TypingSignal:
        """Create or refresh the user's signal; repeated calls just push expiry out"""
        signal = TypingSignal(
            conversation_id=conversation_id,
            user_id=user_id,
            display_name=display_name,
            expires_at=self._clock() + self.ttl,
        )
        with self._lock:
            self._signals.setdefault(conversation_id, {})[user_id] = signal
        return signal

    def clear_typing(self, conversation_id: UUID, user_id: UUID) -> None:
        with self._lock:
            users = self._signals.get(conversation_id)
            if users is None:
                return
            users.pop(user_id, None)
            if not users:
                del self._signals[conversation_id]

    def get_typing(self, conversation_id: UUID, requester_id: UUID) -> List[TypingSignal]:
        """Who is typing, excluding the requester; expired entries are skipped even before a sweep"""
        now = self._clock()
        with self._lock:
            users = self._signals.get(conversation_id)
            if not users:
                return []
            return [
                signal for user_id, signal in users.items()
                if user_id != requester_id and signal.expires_at > now
            ]

    def sweep(self) -> int:
        """Drop expired signals and empty conversations. Returns how many were purged."""
        now = self._clock()
        purged = 0
        with self._lock:
            for conversation_id in list(self._signals):
                users = self._signals[conversation_id]
                for user_id in [uid for uid, signal in users.items() if signal.expires_at <= now]:
                    del users[user_id]
                    purged += 1
                if not users:
                    del self._signals[conversation_id]
        return purged

    def reset(self) -> None:
        with self._lock:
            self._signals.clear()

    def __len__(self) -> int:
        with self._lock:
            return sum(len(users) for users in self._signals.values())


async def run_sweeper(store: TypingPresence, interval: Optional[float] = None) -> None:
    """Periodically purge expired signals until cancelled"""
    interval = settings.TYPING_SWEEP_INTERVAL_SECONDS if interval is None else interval
    logger.info("Typing sweeper started", interval=interval)
    try:
        while True:
            await asyncio.sleep(interval)
            purged = store.sweep()
            if purged:
                logger.debug("Expired typing signals purged", purged=purged)
    except asyncio.CancelledError:
        logger.info("Typing sweeper stopped")
        raise


# Global presence instance
presence = TypingPresence()
