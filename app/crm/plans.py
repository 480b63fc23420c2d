"""
Plan-based limits.

Single source of truth for what each plan tier includes. The free tier caps
the number of customers an owner may hold; pro is unlimited.
"""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.crm.constants import NEAR_LIMIT_CUSTOMERS, PLAN_FREE, PLAN_PRO
from app.crm.errors import ConflictError
from app.crm.models import User
from app.crm.modules.customers.models import Customer
from app.crm.modules.profiles.models import Profile
from app.crm.ownership import require_owner

logger = logging.getLogger(__name__)

PLAN_LIMITS: dict[str, dict] = {
    PLAN_FREE: {
        "customer_limit": 20,
    },
    PLAN_PRO: {
        "customer_limit": None,  # unlimited
    },
}


def get_plan_limits(plan: str | None) -> dict:
    """Limits for a plan. Unknown or missing plans get the free tier."""
    return PLAN_LIMITS.get(plan or PLAN_FREE, PLAN_LIMITS[PLAN_FREE])


def customer_limit_for(plan: str | None) -> Optional[int]:
    """None means unlimited."""
    return get_plan_limits(plan)["customer_limit"]


def _count_customers(s: Session, user: User) -> int:
    return int(s.query(func.count(Customer.id)).filter(Customer.user_id == user.id).scalar() or 0)


def _plan_of(s: Session, user: User, *, lock: bool = False) -> str:
    q = s.query(Profile).filter(Profile.user_id == user.id)
    if lock:
        q = q.with_for_update()
    profile = q.one_or_none()
    return profile.plan if profile else PLAN_FREE


def ensure_customer_capacity(s: Session, user: User | None) -> None:
    """
    Pre-insert check for the customer limit.

    Locks the owner's profile row so two concurrent inserts from the same owner
    serialize; the count is taken inside the same transaction as the insert.
    """
    u = require_owner(user)
    plan = _plan_of(s, u, lock=True)
    limit = customer_limit_for(plan)
    if limit is None:
        return
    used = _count_customers(s, u)
    if used >= limit:
        logger.info("Customer limit reached user_id=%s plan=%s used=%s limit=%s", u.id, plan, used, limit)
        raise ConflictError(
            f"You have reached the {limit}-customer limit of the {plan} plan. Upgrade to Pro for unlimited customers."
        )


def plan_usage(s: Session, user: User | None) -> dict:
    u = require_owner(user)
    plan = _plan_of(s, u)
    limit = customer_limit_for(plan)
    used = _count_customers(s, u)
    return {
        "plan": plan,
        "customer_limit": limit,
        "customers_used": used,
        "customers_remaining": None if limit is None else max(limit - used, 0),
        "limit_reached": limit is not None and used >= limit,
        "near_limit": limit is not None and used >= NEAR_LIMIT_CUSTOMERS,
    }
