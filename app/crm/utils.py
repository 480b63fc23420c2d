from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from typing import Any

from app.crm.errors import ValidationError

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC now; all timestamp columns are stored without tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def clean_str(value: Any) -> str | None:
    v = ("" if value is None else str(value)).strip()
    return v or None


def is_valid_email(value: str | None) -> bool:
    return bool(value and _EMAIL_RE.match(value))


def parse_datetime(raw: Any, *, field: str) -> datetime | None:
    """Parse an ISO-8601 value into naive UTC. Empty input yields None."""
    if raw is None:
        return None
    if isinstance(raw, datetime):
        dt = raw
    else:
        text = str(raw).strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError(f"{field} must be an ISO-8601 date/time.", field=field)
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_bool(raw: Any, *, field: str) -> bool:
    if isinstance(raw, bool):
        return raw
    text = ("" if raw is None else str(raw)).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    raise ValidationError(f"{field} must be true or false.", field=field)


def isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
