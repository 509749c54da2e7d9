"""Unit-of-work wrapper for engine mutations.

A decorated method runs against ``self.db`` and commits exactly once when it
returns. Domain errors roll back and propagate untouched. Transient store
failures (lock timeouts, deadlocks, dropped connections) roll back and are
retried with exponential backoff before surfacing as ``StoreError``.
"""
import functools
import time

from sqlalchemy.exc import IntegrityError, OperationalError

from app.core.config import settings
from app.core.exceptions import ConflictError, MessagingError, StoreError
from app.utils.logger import get_logger

logger = get_logger(__name__)


def transactional(func):
    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        attempts = settings.STORE_RETRY_ATTEMPTS
        for attempt in range(attempts + 1):
            try:
                result = func(self, *args, **kwargs)
                self.db.commit()
                return result
            except MessagingError:
                self.db.rollback()
                raise
            except IntegrityError as e:
                self.db.rollback()
                logger.warning("Integrity violation", operation=func.__name__, error=str(e.orig)[:200])
                raise ConflictError("The change conflicts with existing data") from e
            except OperationalError as e:
                self.db.rollback()
                if attempt < attempts:
                    delay = settings.STORE_RETRY_BACKOFF_SECONDS * (2 ** attempt)
                    logger.warning(
                        "Transient store failure, backing off",
                        operation=func.__name__,
                        attempt=attempt + 1,
                        max_retries=attempts,
                        delay=delay,
                        error=str(e.orig)[:200],
                    )
                    time.sleep(delay)
                    continue
                logger.error("Store failure after retries", operation=func.__name__, error=str(e.orig)[:200])
                raise StoreError("The store is temporarily unavailable, try again") from e
            except Exception:
                self.db.rollback()
                raise
    return wrapper
