"""
Account registration and credential checks.

Registration is two steps in one transaction: create the identity, then run
the profile hook. Both happen inside a SAVEPOINT; if the hook fails the
identity insert is rolled back with it, so no account exists without a profile.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

from app.crm.audit import record_event
from app.crm.constants import MIN_PASSWORD_LENGTH
from app.crm.errors import ConflictError, ValidationError
from app.crm.models import User
from app.crm.modules.profiles.service import provision_profile
from app.crm.utils import clean_str, is_valid_email, utcnow

logger = logging.getLogger(__name__)


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def register_user(
    s: Session,
    *,
    email: str | None,
    password: str | None,
    full_name: str | None = None,
    business_name: str | None = None,
) -> User:
    email_norm = normalize_email(email)
    if not is_valid_email(email_norm):
        raise ValidationError("Email is not a valid address.", field="email")
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.", field="password")
    if s.query(User.id).filter(User.email == email_norm).first() is not None:
        raise ConflictError("This email is already registered.", field="email")

    try:
        with s.begin_nested():
            user = User(
                email=email_norm,
                password_hash=generate_password_hash(password or ""),
                is_active=True,
                created_at=utcnow(),
            )
            s.add(user)
            s.flush()
            provision_profile(s, user, full_name=clean_str(full_name), business_name=business_name)
    except IntegrityError as e:
        # Lost a race with a concurrent sign-up for the same email.
        logger.warning("Registration integrity error email=%s: %s", email_norm, e.orig)
        raise ConflictError("This email is already registered.", field="email") from e

    record_event(s, actor=user, action="auth.signup", entity_type="User", entity_id=user.id)
    logger.info("Registered user id=%s", user.id)
    return user


def authenticate(s: Session, email: str | None, password: str | None) -> User | None:
    user = s.query(User).filter(User.email == normalize_email(email)).one_or_none()
    if not user or not user.is_active or not check_password_hash(user.password_hash, password or ""):
        return None
    return user
