from __future__ import annotations

import math
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from app.crm.audit import record_event
from app.crm.constants import REMINDER_FILTERS
from app.crm.errors import ValidationError
from app.crm.models import User
from app.crm.modules.customers.service import get_customer
from app.crm.modules.reminders.models import Reminder
from app.crm.ownership import check_owner_reference, get_owned, owned, require_owner
from app.crm.utils import clean_str, parse_bool, parse_datetime, utcnow

SOON_DAYS = 3


def reminder_status(reminder: Reminder, now: datetime | None = None) -> str:
    """
    completed | overdue | today | soon | upcoming

    Days until due are rounded up, so a reminder reads as "today" from 24 hours
    past due until 24 hours before it, and "overdue" only after that.
    """
    if reminder.completed:
        return "completed"
    now = now or utcnow()
    days = math.ceil((reminder.reminder_date - now).total_seconds() / 86400)
    if days < 0:
        return "overdue"
    if days == 0:
        return "today"
    if days <= SOON_DAYS:
        return "soon"
    return "upcoming"


def validate_reminder_payload(payload: dict[str, Any], *, partial: bool = False) -> list[ValidationError]:
    errs: list[ValidationError] = []
    if not partial or "title" in payload:
        if not clean_str(payload.get("title")):
            errs.append(ValidationError("Title is required.", field="title"))
    if not partial or "reminder_date" in payload:
        try:
            if parse_datetime(payload.get("reminder_date"), field="reminder_date") is None:
                errs.append(ValidationError("Due date is required.", field="reminder_date"))
        except ValidationError as e:
            errs.append(e)
    if not partial and not clean_str(payload.get("customer_id")):
        errs.append(ValidationError("Customer is required.", field="customer_id"))
    return errs


def list_reminders(
    s: Session,
    user: User | None,
    *,
    status: str = "all",
    customer_id: Any = None,
    now: datetime | None = None,
) -> list[Reminder]:
    """Owner's reminders ordered by due date, soonest first."""
    status = (status or "all").strip().lower()
    if status not in REMINDER_FILTERS:
        raise ValidationError(f"Filter must be one of: {', '.join(REMINDER_FILTERS)}.", field="status")

    query = owned(s.query(Reminder), Reminder, user)
    if customer_id is not None:
        get_customer(s, customer_id, user)
        query = query.filter(Reminder.customer_id == str(customer_id))
    if status == "pending":
        query = query.filter(Reminder.completed.is_(False))
    elif status == "completed":
        query = query.filter(Reminder.completed.is_(True))
    elif status == "overdue":
        query = query.filter(Reminder.completed.is_(False), Reminder.reminder_date < (now or utcnow()))
    return query.order_by(Reminder.reminder_date.asc(), Reminder.created_at.asc()).all()


def get_reminder(s: Session, reminder_id: Any, user: User | None) -> Reminder:
    return get_owned(s, Reminder, reminder_id, user, label="Reminder")


def create_reminder(s: Session, payload: dict[str, Any], *, user: User | None) -> Reminder:
    u = require_owner(user)
    check_owner_reference(payload, u)
    errs = validate_reminder_payload(payload)
    if errs:
        raise errs[0]
    customer = get_customer(s, clean_str(payload.get("customer_id")), u)

    now = utcnow()
    r = Reminder(
        customer_id=customer.id,
        user_id=u.id,
        title=clean_str(payload.get("title")) or "",
        description=clean_str(payload.get("description")),
        reminder_date=parse_datetime(payload.get("reminder_date"), field="reminder_date"),
        completed=False,
        created_at=now,
        updated_at=now,
    )
    s.add(r)
    s.flush()
    record_event(
        s,
        actor=u,
        action="reminder.create",
        entity_type="Reminder",
        entity_id=r.id,
        metadata={"customer_id": customer.id, "reminder_date": r.reminder_date.isoformat()},
    )
    return r


def update_reminder(s: Session, reminder_id: Any, payload: dict[str, Any], *, user: User | None) -> Reminder:
    u = require_owner(user)
    r = get_reminder(s, reminder_id, u)
    check_owner_reference(payload, u)
    errs = validate_reminder_payload(payload, partial=True)
    if errs:
        raise errs[0]

    changes = {}

    def _set(attr: str, val) -> None:
        if val != getattr(r, attr):
            changes[attr] = {"old": getattr(r, attr), "new": val}
            setattr(r, attr, val)

    if "customer_id" in payload:
        _set("customer_id", get_customer(s, clean_str(payload.get("customer_id")), u).id)
    if "title" in payload:
        _set("title", clean_str(payload.get("title")) or "")
    if "description" in payload:
        _set("description", clean_str(payload.get("description")))
    if "reminder_date" in payload:
        _set("reminder_date", parse_datetime(payload.get("reminder_date"), field="reminder_date"))
    if "completed" in payload:
        _set("completed", parse_bool(payload.get("completed"), field="completed"))
    r.updated_at = utcnow()
    s.flush()
    record_event(
        s,
        actor=u,
        action="reminder.update",
        entity_type="Reminder",
        entity_id=r.id,
        metadata={"changes": changes},
    )
    return r


def upsert_reminder(
    s: Session,
    payload: dict[str, Any],
    *,
    user: User | None,
    reminder_id: Any = None,
) -> Reminder:
    rid = reminder_id or payload.get("id")
    if rid:
        return update_reminder(s, rid, {k: v for k, v in payload.items() if k != "id"}, user=user)
    return create_reminder(s, payload, user=user)


def set_reminder_completed(s: Session, reminder_id: Any, completed: bool, *, user: User | None) -> Reminder:
    """Idempotent: setting the flag to its current value only refreshes updated_at."""
    u = require_owner(user)
    r = get_reminder(s, reminder_id, u)
    previous = r.completed
    r.completed = bool(completed)
    r.updated_at = utcnow()
    s.flush()
    record_event(
        s,
        actor=u,
        action="reminder.complete" if r.completed else "reminder.reopen",
        entity_type="Reminder",
        entity_id=r.id,
        metadata={"old": previous, "new": r.completed},
    )
    return r


def toggle_reminder(s: Session, reminder_id: Any, *, user: User | None) -> Reminder:
    r = get_reminder(s, reminder_id, user)
    return set_reminder_completed(s, r.id, not r.completed, user=user)


def delete_reminder(s: Session, reminder_id: Any, *, user: User | None) -> None:
    u = require_owner(user)
    r = get_reminder(s, reminder_id, u)
    record_event(
        s,
        actor=u,
        action="reminder.delete",
        entity_type="Reminder",
        entity_id=r.id,
        metadata={"customer_id": r.customer_id},
    )
    s.delete(r)
    s.flush()
