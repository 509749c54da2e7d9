"""Opaque cursors over (timestamp, uuid) ordering keys."""
import base64
import binascii
from datetime import datetime
from typing import NamedTuple
from uuid import UUID

from app.core.exceptions import ValidationError


class CursorKey(NamedTuple):
    at: datetime
    id: UUID


def encode_cursor(at: datetime, item_id: UUID) -> str:
    raw = f"{at.isoformat()}|{item_id.hex}"
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii")


def decode_cursor(cursor: str) -> CursorKey:
    try:
        raw = base64.urlsafe_b64decode(cursor.encode("ascii")).decode("utf-8")
        at_str, id_hex = raw.split("|", 1)
        return CursorKey(datetime.fromisoformat(at_str), UUID(hex=id_hex))
    except (binascii.Error, UnicodeError, ValueError):
        raise ValidationError("Invalid cursor", error_code="INVALID_CURSOR")
