"""
Customer and interaction data access.

Every function takes the caller (`user`) and scopes all reads and writes to
rows that caller owns; see app.crm.ownership. Functions flush but never
commit: the blueprint (or script) owns the transaction.

INVARIANTS:
- customers.user_id never changes after insert
- interactions.user_id == interactions.customer.user_id
- deleting a customer removes exactly its interactions and reminders, in the same transaction
- the free-plan customer limit is checked inside the insert's transaction (app.crm.plans)
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.crm.audit import record_event
from app.crm.constants import INTERACTION_TYPES
from app.crm.errors import ValidationError
from app.crm.models import User
from app.crm.modules.customers.models import Customer, Interaction
from app.crm.modules.customers.utils import customer_matches, normalize_tags
from app.crm.ownership import check_owner_reference, get_owned, owned, require_owner
from app.crm.plans import ensure_customer_capacity
from app.crm.utils import clean_str, is_valid_email, parse_datetime, utcnow

logger = logging.getLogger(__name__)

_CUSTOMER_FIELDS = ("name", "email", "phone", "notes", "tags")
_INTERACTION_ORDERINGS = ("interaction_date", "created_at")


# ============================================================================
# Customers
# ============================================================================

def validate_customer_payload(payload: dict[str, Any], *, partial: bool = False) -> list[ValidationError]:
    errs: list[ValidationError] = []
    if not partial or "name" in payload:
        if not clean_str(payload.get("name")):
            errs.append(ValidationError("Name is required.", field="name"))
    email = clean_str(payload.get("email"))
    if email and not is_valid_email(email):
        errs.append(ValidationError("Email is not a valid address.", field="email"))
    tags = payload.get("tags")
    if tags is not None and not isinstance(tags, (str, list, tuple)):
        errs.append(ValidationError("Tags must be a list or a comma-separated string.", field="tags"))
    return errs


def _raise_first(errs: list[ValidationError]) -> None:
    if errs:
        raise errs[0]


def _snapshot(c: Customer) -> dict[str, Any]:
    return {
        "name": c.name,
        "email": c.email,
        "phone": c.phone,
        "notes": c.notes,
        "tags": list(c.tags or []),
    }


def list_customers(s: Session, user: User | None, *, q: str | None = None) -> list[Customer]:
    """Owner's customers, newest first, optionally filtered by the search term."""
    rows = (
        owned(s.query(Customer), Customer, user)
        .order_by(Customer.created_at.desc(), Customer.id.asc())
        .all()
    )
    if not (q or "").strip():
        return rows
    return [c for c in rows if customer_matches(c, q)]


def get_customer(s: Session, customer_id: Any, user: User | None) -> Customer:
    return get_owned(s, Customer, customer_id, user, label="Customer")


def count_customers(s: Session, user: User | None) -> int:
    u = require_owner(user)
    return int(s.query(func.count(Customer.id)).filter(Customer.user_id == u.id).scalar() or 0)


def create_customer(s: Session, payload: dict[str, Any], *, user: User | None) -> Customer:
    u = require_owner(user)
    check_owner_reference(payload, u)
    _raise_first(validate_customer_payload(payload))
    ensure_customer_capacity(s, u)

    now = utcnow()
    c = Customer(
        user_id=u.id,
        name=clean_str(payload.get("name")) or "",
        email=clean_str(payload.get("email")),
        phone=clean_str(payload.get("phone")),
        notes=clean_str(payload.get("notes")),
        tags=normalize_tags(payload.get("tags")),
        created_at=now,
        updated_at=now,
    )
    s.add(c)
    s.flush()
    record_event(
        s,
        actor=u,
        action="customer.create",
        entity_type="Customer",
        entity_id=c.id,
        metadata={"name": c.name},
    )
    return c


def update_customer(s: Session, customer_id: Any, payload: dict[str, Any], *, user: User | None) -> Customer:
    """Partial update: only keys present in the payload change."""
    u = require_owner(user)
    c = get_customer(s, customer_id, u)
    check_owner_reference(payload, u)
    _raise_first(validate_customer_payload(payload, partial=True))

    before = _snapshot(c)
    if "name" in payload:
        c.name = clean_str(payload.get("name")) or ""
    for attr in ("email", "phone", "notes"):
        if attr in payload:
            setattr(c, attr, clean_str(payload.get(attr)))
    if "tags" in payload:
        c.tags = normalize_tags(payload.get("tags"))
    c.updated_at = utcnow()
    s.flush()

    after = _snapshot(c)
    fields_changed = [k for k in _CUSTOMER_FIELDS if before[k] != after[k]]
    record_event(
        s,
        actor=u,
        action="customer.update",
        entity_type="Customer",
        entity_id=c.id,
        metadata={"before": before, "after": after, "fields_changed": fields_changed},
    )
    return c


def upsert_customer(
    s: Session,
    payload: dict[str, Any],
    *,
    user: User | None,
    customer_id: Any = None,
) -> Customer:
    cid = customer_id or payload.get("id")
    if cid:
        return update_customer(s, cid, {k: v for k, v in payload.items() if k != "id"}, user=user)
    return create_customer(s, payload, user=user)


def delete_customer(s: Session, customer_id: Any, *, user: User | None) -> dict[str, int]:
    """
    Delete a customer together with its interactions and reminders.
    Single flush; the caller's commit makes it visible all at once.
    """
    u = require_owner(user)
    c = get_customer(s, customer_id, u)
    # Children may have been added in this session after the collections loaded.
    s.expire(c, ["interactions", "reminders"])
    counts = {"interactions": len(c.interactions), "reminders": len(c.reminders)}
    record_event(
        s,
        actor=u,
        action="customer.delete",
        entity_type="Customer",
        entity_id=c.id,
        metadata={"name": c.name, "cascade": counts},
    )
    s.delete(c)
    s.flush()
    logger.info("Customer deleted id=%s user_id=%s cascade=%s", customer_id, u.id, counts)
    return counts


# ============================================================================
# Interactions
# ============================================================================

def validate_interaction_payload(payload: dict[str, Any], *, partial: bool = False) -> list[ValidationError]:
    errs: list[ValidationError] = []
    if not partial or "type" in payload:
        kind = (clean_str(payload.get("type")) or "").lower()
        if kind not in INTERACTION_TYPES:
            errs.append(
                ValidationError(f"Type must be one of: {', '.join(INTERACTION_TYPES)}.", field="type")
            )
    if not partial or "description" in payload:
        if not clean_str(payload.get("description")):
            errs.append(ValidationError("Description is required.", field="description"))
    if not partial and not clean_str(payload.get("customer_id")):
        errs.append(ValidationError("Customer is required.", field="customer_id"))
    if partial and "interaction_date" in payload:
        # Blank defaults to now on create only.
        try:
            if parse_datetime(payload.get("interaction_date"), field="interaction_date") is None:
                errs.append(ValidationError("Interaction date cannot be blank.", field="interaction_date"))
        except ValidationError as e:
            errs.append(e)
    return errs


def list_interactions(
    s: Session,
    user: User | None,
    *,
    customer_id: Any = None,
    limit: int | None = None,
    order_by: str = "interaction_date",
) -> list[Interaction]:
    """
    Owner's interactions, most recent first.

    order_by="interaction_date" sorts by when the contact happened;
    "created_at" sorts by when it was logged, so back-dated entries still surface.
    """
    if order_by not in _INTERACTION_ORDERINGS:
        raise ValidationError(f"Ordering must be one of: {', '.join(_INTERACTION_ORDERINGS)}.", field="order_by")
    query = owned(s.query(Interaction), Interaction, user)
    if customer_id is not None:
        get_customer(s, customer_id, user)
        query = query.filter(Interaction.customer_id == str(customer_id))
    if order_by == "created_at":
        query = query.order_by(Interaction.created_at.desc(), Interaction.interaction_date.desc())
    else:
        query = query.order_by(Interaction.interaction_date.desc(), Interaction.created_at.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def get_interaction(s: Session, interaction_id: Any, user: User | None) -> Interaction:
    return get_owned(s, Interaction, interaction_id, user, label="Interaction")


def create_interaction(s: Session, payload: dict[str, Any], *, user: User | None) -> Interaction:
    u = require_owner(user)
    check_owner_reference(payload, u)
    _raise_first(validate_interaction_payload(payload))
    customer = get_customer(s, clean_str(payload.get("customer_id")), u)
    when = parse_datetime(payload.get("interaction_date"), field="interaction_date")

    now = utcnow()
    i = Interaction(
        customer_id=customer.id,
        user_id=u.id,
        type=(clean_str(payload.get("type")) or "").lower(),
        description=clean_str(payload.get("description")) or "",
        interaction_date=when or now,
        created_at=now,
    )
    s.add(i)
    s.flush()
    record_event(
        s,
        actor=u,
        action="interaction.create",
        entity_type="Interaction",
        entity_id=i.id,
        metadata={"customer_id": customer.id, "type": i.type},
    )
    return i


def update_interaction(s: Session, interaction_id: Any, payload: dict[str, Any], *, user: User | None) -> Interaction:
    u = require_owner(user)
    i = get_interaction(s, interaction_id, u)
    check_owner_reference(payload, u)
    _raise_first(validate_interaction_payload(payload, partial=True))

    changes: dict[str, Any] = {}
    if "customer_id" in payload:
        customer = get_customer(s, clean_str(payload.get("customer_id")), u)
        if customer.id != i.customer_id:
            changes["customer_id"] = {"old": i.customer_id, "new": customer.id}
            i.customer_id = customer.id
    if "type" in payload:
        kind = (clean_str(payload.get("type")) or "").lower()
        if kind != i.type:
            changes["type"] = {"old": i.type, "new": kind}
            i.type = kind
    if "description" in payload:
        i.description = clean_str(payload.get("description")) or ""
        changes["description"] = True
    if "interaction_date" in payload:
        when = parse_datetime(payload.get("interaction_date"), field="interaction_date")
        i.interaction_date = when
        changes["interaction_date"] = when.isoformat()
    s.flush()
    record_event(
        s,
        actor=u,
        action="interaction.update",
        entity_type="Interaction",
        entity_id=i.id,
        metadata={"customer_id": i.customer_id, "changes": changes},
    )
    return i


def upsert_interaction(
    s: Session,
    payload: dict[str, Any],
    *,
    user: User | None,
    interaction_id: Any = None,
) -> Interaction:
    iid = interaction_id or payload.get("id")
    if iid:
        return update_interaction(s, iid, {k: v for k, v in payload.items() if k != "id"}, user=user)
    return create_interaction(s, payload, user=user)


def delete_interaction(s: Session, interaction_id: Any, *, user: User | None) -> None:
    u = require_owner(user)
    i = get_interaction(s, interaction_id, u)
    record_event(
        s,
        actor=u,
        action="interaction.delete",
        entity_type="Interaction",
        entity_id=i.id,
        metadata={"customer_id": i.customer_id},
    )
    s.delete(i)
    s.flush()
