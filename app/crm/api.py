"""
Small helpers shared by the JSON blueprints.
"""
from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from flask import request
from sqlalchemy.orm import Session

from app.crm.errors import ValidationError


def request_payload() -> dict[str, Any]:
    """JSON body when sent as JSON, otherwise form fields."""
    if request.is_json:
        data = request.get_json(silent=True)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object.")
        return data
    return request.form.to_dict()


@contextmanager
def committing(s: Session) -> Generator[Session, None, None]:
    """Commit on success; roll back and re-raise on any error."""
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
