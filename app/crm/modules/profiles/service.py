from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from app.crm.audit import record_event
from app.crm.constants import PLAN_FREE, PLANS
from app.crm.errors import ConflictError, NotFoundError, ValidationError
from app.crm.models import User
from app.crm.modules.profiles.models import Profile
from app.crm.ownership import check_owner_reference, require_owner
from app.crm.utils import clean_str, utcnow


def provision_profile(
    s: Session,
    user: User,
    *,
    full_name: str | None = None,
    business_name: str | None = None,
) -> Profile:
    """
    Post-registration hook: materialize the identity's single profile.
    Not reachable from any user-facing endpoint.
    """
    existing = s.query(Profile).filter(Profile.user_id == user.id).one_or_none()
    if existing is not None:
        raise ConflictError("Profile already exists for this account.")
    now = utcnow()
    p = Profile(
        user_id=user.id,
        full_name=(full_name or "").strip(),
        business_name=clean_str(business_name),
        plan=PLAN_FREE,
        created_at=now,
        updated_at=now,
    )
    s.add(p)
    s.flush()
    return p


def get_profile(s: Session, user: User | None) -> Profile:
    u = require_owner(user)
    p = s.query(Profile).filter(Profile.user_id == u.id).one_or_none()
    if p is None:
        raise NotFoundError("Profile not found.")
    return p


def update_profile(s: Session, payload: dict[str, Any], *, user: User | None) -> Profile:
    u = require_owner(user)
    p = get_profile(s, u)
    check_owner_reference(payload, u)
    if "plan" in payload:
        raise ValidationError("Plan changes go through the plan endpoint.", field="plan")

    before = {"full_name": p.full_name, "business_name": p.business_name}
    if "full_name" in payload:
        p.full_name = (payload.get("full_name") or "").strip()
    if "business_name" in payload:
        p.business_name = clean_str(payload.get("business_name"))
    p.updated_at = utcnow()
    s.flush()
    record_event(
        s,
        actor=u,
        action="profile.update",
        entity_type="Profile",
        entity_id=p.id,
        metadata={"before": before, "after": {"full_name": p.full_name, "business_name": p.business_name}},
    )
    return p


def change_plan(s: Session, plan: str | None, *, user: User | None) -> Profile:
    """Switch between free and pro. No billing happens here."""
    u = require_owner(user)
    target = (plan or "").strip().lower()
    if target not in PLANS:
        raise ValidationError(f"Plan must be one of: {', '.join(PLANS)}.", field="plan")
    p = get_profile(s, u)
    old = p.plan
    p.plan = target
    p.updated_at = utcnow()
    s.flush()
    record_event(
        s,
        actor=u,
        action="profile.plan_change",
        entity_type="Profile",
        entity_id=p.id,
        metadata={"old": old, "new": target},
    )
    return p
