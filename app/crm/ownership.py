"""
Row ownership checks.

Every read and write in the service layer goes through one of these helpers.
A row is visible to a caller only when row.user_id == caller.id; there is no
sharing and no admin bypass.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from functools import wraps
from typing import Any, TypeVar

from flask import g
from sqlalchemy.orm import Query, Session

from app.crm.errors import AuthenticationRequired, AuthorizationError, NotFoundError
from app.crm.models import User

T = TypeVar("T")


def require_owner(user: User | None) -> User:
    if user is None or not user.is_active:
        raise AuthenticationRequired()
    return user


def owned(query: Query, model: Any, user: User | None) -> Query:
    """Restrict a query on `model` to the caller's rows."""
    u = require_owner(user)
    return query.filter(model.user_id == u.id)


def get_owned(s: Session, model: type[T], row_id: Any, user: User | None, *, label: str | None = None) -> T:
    """
    Fetch one row the caller owns.
    Absent rows and rows owned by someone else raise the same NotFoundError.
    """
    u = require_owner(user)
    row = None
    if row_id is not None and str(row_id).strip():
        row = s.query(model).filter(model.id == str(row_id), model.user_id == u.id).one_or_none()  # type: ignore[attr-defined]
    if row is None:
        raise NotFoundError(f"{label or model.__name__} not found.")
    return row


def check_owner_reference(payload: Mapping[str, Any], user: User | None) -> None:
    """A payload may name an owner only if it names the caller."""
    u = require_owner(user)
    if "user_id" not in payload:
        return
    given = payload.get("user_id")
    if given is None or str(given).strip() != u.id:
        raise AuthorizationError(field="user_id")


def current_user() -> User | None:
    return getattr(g, "current_user", None)


def require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        require_owner(current_user())
        return fn(*args, **kwargs)

    return wrapped
