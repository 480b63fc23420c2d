from __future__ import annotations

from flask import Blueprint, request

from app.crm.api import committing, request_payload
from app.crm.db import db_session
from app.crm.errors import ValidationError
from app.crm.modules.reminders.models import Reminder
from app.crm.modules.reminders.service import (
    create_reminder,
    delete_reminder,
    list_reminders,
    reminder_status,
    set_reminder_completed,
    toggle_reminder,
    update_reminder,
)
from app.crm.ownership import current_user, require_login
from app.crm.utils import isoformat, parse_bool, utcnow

bp = Blueprint("reminders", __name__)


def reminder_json(r: Reminder, now=None) -> dict:
    return {
        "id": r.id,
        "customer_id": r.customer_id,
        "customer_name": r.customer.name if r.customer else None,
        "title": r.title,
        "description": r.description,
        "reminder_date": isoformat(r.reminder_date),
        "completed": r.completed,
        "status": reminder_status(r, now),
        "created_at": isoformat(r.created_at),
        "updated_at": isoformat(r.updated_at),
    }


@bp.get("/reminders")
@require_login
def reminders_list():
    s = db_session()
    status = (request.args.get("status") or "all").strip().lower()
    customer_id = (request.args.get("customer_id") or "").strip() or None
    now = utcnow()
    rows = list_reminders(s, current_user(), status=status, customer_id=customer_id, now=now)
    return {
        "reminders": [reminder_json(r, now) for r in rows],
        "status": status,
    }


@bp.post("/reminders")
@require_login
def reminders_create():
    s = db_session()
    payload = request_payload()
    with committing(s):
        r = create_reminder(s, payload, user=current_user())
    return {"reminder": reminder_json(r)}, 201


@bp.route("/reminders/<reminder_id>", methods=["PUT", "PATCH"])
@require_login
def reminder_update(reminder_id: str):
    s = db_session()
    payload = request_payload()
    with committing(s):
        r = update_reminder(s, reminder_id, payload, user=current_user())
    return {"reminder": reminder_json(r)}


@bp.post("/reminders/<reminder_id>/toggle")
@require_login
def reminder_toggle(reminder_id: str):
    s = db_session()
    with committing(s):
        r = toggle_reminder(s, reminder_id, user=current_user())
    return {"reminder": reminder_json(r)}


@bp.post("/reminders/<reminder_id>/complete")
@require_login
def reminder_complete(reminder_id: str):
    s = db_session()
    payload = request_payload()
    if "completed" not in payload:
        raise ValidationError("completed is required.", field="completed")
    completed = parse_bool(payload.get("completed"), field="completed")
    with committing(s):
        r = set_reminder_completed(s, reminder_id, completed, user=current_user())
    return {"reminder": reminder_json(r)}


@bp.delete("/reminders/<reminder_id>")
@require_login
def reminder_delete(reminder_id: str):
    s = db_session()
    with committing(s):
        delete_reminder(s, reminder_id, user=current_user())
    return {"deleted": reminder_id}
