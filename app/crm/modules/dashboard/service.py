from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.crm.constants import RECENT_INTERACTIONS_LIMIT
from app.crm.models import User
from app.crm.modules.customers.models import Customer
from app.crm.modules.customers.service import list_interactions
from app.crm.modules.reminders.models import Reminder
from app.crm.ownership import owned, require_owner
from app.crm.plans import plan_usage
from app.crm.utils import utcnow


def _month_start(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def dashboard_summary(s: Session, user: User | None, *, now: datetime | None = None) -> dict[str, Any]:
    """
    Counts for the landing screen. "Pending" reminders are the ones already due
    and not yet completed; "upcoming" are open and due later. Recent interactions
    are the last ones logged, whatever date they were entered for.
    """
    u = require_owner(user)
    now = now or utcnow()

    total_customers = owned(s.query(func.count(Customer.id)), Customer, u).scalar() or 0
    new_this_month = (
        owned(s.query(func.count(Customer.id)), Customer, u)
        .filter(Customer.created_at >= _month_start(now))
        .scalar()
        or 0
    )
    pending_reminders = (
        owned(s.query(func.count(Reminder.id)), Reminder, u)
        .filter(Reminder.completed.is_(False), Reminder.reminder_date <= now)
        .scalar()
        or 0
    )
    upcoming_reminders = (
        owned(s.query(func.count(Reminder.id)), Reminder, u)
        .filter(Reminder.completed.is_(False), Reminder.reminder_date > now)
        .scalar()
        or 0
    )
    recent = list_interactions(s, u, limit=RECENT_INTERACTIONS_LIMIT, order_by="created_at")

    return {
        "total_customers": int(total_customers),
        "new_customers_this_month": int(new_this_month),
        "pending_reminders": int(pending_reminders),
        "upcoming_reminders": int(upcoming_reminders),
        "recent_interactions": recent,
        "plan": plan_usage(s, u),
    }
