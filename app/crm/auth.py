from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, g, request, session

from app.crm.api import committing, request_payload
from app.crm.audit import record_event
from app.crm.db import db_session
from app.crm.errors import AuthenticationRequired, AuthorizationError
from app.crm.identity import authenticate, normalize_email, register_user
from app.crm.models import User
from app.crm.modules.profiles.admin import profile_json
from app.crm.modules.profiles.service import get_profile
from app.crm.ownership import current_user
from app.crm.security import rotate_csrf_token
from app.crm.utils import utcnow

bp = Blueprint("auth", __name__)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds


def _attempts() -> dict[str, list[datetime]]:
    return current_app.extensions.setdefault("login_attempts", defaultdict(list))


def _check_rate_limit(ip: str) -> bool:
    now = utcnow()
    cutoff = now - timedelta(seconds=_LOGIN_RATE_WINDOW)
    attempts = _attempts()
    attempts[ip] = [t for t in attempts[ip] if t > cutoff]
    return len(attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _attempts()[ip].append(utcnow())


def _user_json(user: User) -> dict:
    return {"id": user.id, "email": user.email}


def _sign_in(user: User) -> str:
    session.clear()
    session["user_id"] = user.id
    g.current_user = user
    return rotate_csrf_token()


def load_current_user() -> None:
    """
    Loads g.current_user from the signed session cookie.
    Also assigns a per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    if request.path.startswith(("/static/", "/health", "/healthz")):
        g.current_user = None
        return

    user_id = session.get("user_id")
    if not user_id:
        g.current_user = None
        return

    try:
        s = db_session()
        user = s.get(User, str(user_id))
        if not user or not user.is_active:
            session.pop("user_id", None)
            g.current_user = None
            return
        g.current_user = user
    except Exception as e:
        current_app.logger.error("load_current_user DB error (clearing session): %s", e)
        session.pop("user_id", None)
        g.current_user = None


@bp.post("/signup")
def signup():
    if not current_app.config.get("SIGNUP_ENABLED", True):
        raise AuthorizationError("Sign-up is disabled.")
    payload = request_payload()
    s = db_session()
    with committing(s):
        user = register_user(
            s,
            email=payload.get("email"),
            password=payload.get("password"),
            full_name=payload.get("full_name"),
            business_name=payload.get("business_name"),
        )
    token = _sign_in(user)
    return {"user": _user_json(user), "profile": profile_json(get_profile(s, user)), "csrf_token": token}, 201


@bp.post("/login")
def login():
    payload = request_payload()
    email = normalize_email(payload.get("email"))
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        current_app.logger.warning("Login rate limit hit ip=%s request_id=%s", ip, getattr(g, "request_id", None))
        return {"error": "rate_limited", "message": "Too many login attempts. Please wait 5 minutes."}, 429

    _record_attempt(ip)

    s = db_session()
    with committing(s):
        user = authenticate(s, email, payload.get("password"))
        if not user:
            record_event(
                s,
                actor=None,
                action="auth.login_failed",
                entity_type="User",
                entity_id=email,
                metadata={"email": email},
            )
        else:
            record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=user.id)
    if not user:
        return {"error": "invalid_credentials", "message": "Invalid email or password."}, 401

    _attempts()[ip].clear()
    token = _sign_in(user)
    return {"user": _user_json(user), "csrf_token": token}


@bp.post("/logout")
def logout():
    user = current_user()
    if user:
        s = db_session()
        with committing(s):
            record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=user.id)
    session.clear()
    return {"ok": True}


@bp.get("/me")
def me():
    user = current_user()
    if not user:
        raise AuthenticationRequired()
    s = db_session()
    return {
        "user": _user_json(user),
        "profile": profile_json(get_profile(s, user)),
        "csrf_token": session.get("csrf_token") or rotate_csrf_token(),
    }
