"""Utility modules for the application."""
from app.utils.clock import utcnow
from app.utils.logger import configure_logging, get_logger
from app.utils.pagination import CursorKey, decode_cursor, encode_cursor
from app.utils.search import LIKE_ESCAPE, contains_pattern

__all__ = [
    'utcnow',
    'configure_logging',
    'get_logger',
    'CursorKey',
    'decode_cursor',
    'encode_cursor',
    'LIKE_ESCAPE',
    'contains_pattern',
]
