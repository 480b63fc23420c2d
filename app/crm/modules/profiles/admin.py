from __future__ import annotations

from flask import Blueprint

from app.crm.api import committing, request_payload
from app.crm.db import db_session
from app.crm.modules.profiles.models import Profile
from app.crm.modules.profiles.service import change_plan, get_profile, update_profile
from app.crm.ownership import current_user, require_login
from app.crm.plans import plan_usage
from app.crm.utils import isoformat

bp = Blueprint("profiles", __name__)


def profile_json(p: Profile) -> dict:
    return {
        "id": p.id,
        "user_id": p.user_id,
        "email": p.user.email if p.user else None,
        "full_name": p.full_name,
        "business_name": p.business_name,
        "plan": p.plan,
        "created_at": isoformat(p.created_at),
        "updated_at": isoformat(p.updated_at),
    }


@bp.get("/profile")
@require_login
def profile_get():
    s = db_session()
    p = get_profile(s, current_user())
    return {"profile": profile_json(p), "usage": plan_usage(s, current_user())}


@bp.route("/profile", methods=["PUT", "PATCH"])
@require_login
def profile_update():
    s = db_session()
    payload = request_payload()
    with committing(s):
        p = update_profile(s, payload, user=current_user())
    return {"profile": profile_json(p)}


@bp.post("/profile/plan")
@require_login
def profile_plan():
    s = db_session()
    payload = request_payload()
    with committing(s):
        p = change_plan(s, payload.get("plan"), user=current_user())
    return {"profile": profile_json(p), "usage": plan_usage(s, current_user())}
