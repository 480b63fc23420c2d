from __future__ import annotations

from flask import Blueprint, request

from app.crm.api import committing, request_payload
from app.crm.db import db_session
from app.crm.modules.customers.models import Customer, Interaction
from app.crm.modules.customers.service import (
    count_customers,
    create_customer,
    create_interaction,
    delete_customer,
    delete_interaction,
    get_customer,
    list_customers,
    list_interactions,
    update_customer,
    update_interaction,
)
from app.crm.ownership import current_user, require_login
from app.crm.plans import plan_usage
from app.crm.utils import isoformat

bp = Blueprint("customers", __name__)


def customer_json(c: Customer) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "email": c.email,
        "phone": c.phone,
        "notes": c.notes,
        "tags": list(c.tags or []),
        "created_at": isoformat(c.created_at),
        "updated_at": isoformat(c.updated_at),
    }


def interaction_json(i: Interaction) -> dict:
    return {
        "id": i.id,
        "customer_id": i.customer_id,
        "customer_name": i.customer.name if i.customer else None,
        "type": i.type,
        "description": i.description,
        "interaction_date": isoformat(i.interaction_date),
        "created_at": isoformat(i.created_at),
    }


@bp.get("/customers")
@require_login
def customers_list():
    s = db_session()
    q = (request.args.get("q") or "").strip()
    customers = list_customers(s, current_user(), q=q or None)
    return {
        "customers": [customer_json(c) for c in customers],
        "q": q,
        "plan": plan_usage(s, current_user()),
    }


@bp.get("/customers/count")
@require_login
def customers_count():
    s = db_session()
    return {"count": count_customers(s, current_user())}


@bp.post("/customers")
@require_login
def customers_create():
    s = db_session()
    payload = request_payload()
    with committing(s):
        c = create_customer(s, payload, user=current_user())
    return {"customer": customer_json(c)}, 201


@bp.get("/customers/<customer_id>")
@require_login
def customer_detail(customer_id: str):
    s = db_session()
    c = get_customer(s, customer_id, current_user())
    return {
        "customer": customer_json(c),
        "interactions": [interaction_json(i) for i in list_interactions(s, current_user(), customer_id=c.id)],
    }


@bp.route("/customers/<customer_id>", methods=["PUT", "PATCH"])
@require_login
def customer_update(customer_id: str):
    s = db_session()
    payload = request_payload()
    with committing(s):
        c = update_customer(s, customer_id, payload, user=current_user())
    return {"customer": customer_json(c)}


@bp.delete("/customers/<customer_id>")
@require_login
def customer_delete(customer_id: str):
    s = db_session()
    with committing(s):
        removed = delete_customer(s, customer_id, user=current_user())
    return {"deleted": customer_id, "cascade": removed}


@bp.get("/customers/<customer_id>/interactions")
@require_login
def customer_interactions(customer_id: str):
    s = db_session()
    rows = list_interactions(s, current_user(), customer_id=customer_id)
    return {"interactions": [interaction_json(i) for i in rows]}


@bp.post("/customers/<customer_id>/interactions")
@require_login
def customer_interaction_create(customer_id: str):
    s = db_session()
    payload = dict(request_payload(), customer_id=customer_id)
    with committing(s):
        i = create_interaction(s, payload, user=current_user())
    return {"interaction": interaction_json(i)}, 201


@bp.get("/interactions")
@require_login
def interactions_list():
    s = db_session()
    customer_id = (request.args.get("customer_id") or "").strip() or None
    rows = list_interactions(s, current_user(), customer_id=customer_id)
    return {"interactions": [interaction_json(i) for i in rows]}


@bp.post("/interactions")
@require_login
def interactions_create():
    s = db_session()
    payload = request_payload()
    with committing(s):
        i = create_interaction(s, payload, user=current_user())
    return {"interaction": interaction_json(i)}, 201


@bp.route("/interactions/<interaction_id>", methods=["PUT", "PATCH"])
@require_login
def interaction_update(interaction_id: str):
    s = db_session()
    payload = request_payload()
    with committing(s):
        i = update_interaction(s, interaction_id, payload, user=current_user())
    return {"interaction": interaction_json(i)}


@bp.delete("/interactions/<interaction_id>")
@require_login
def interaction_delete(interaction_id: str):
    s = db_session()
    with committing(s):
        delete_interaction(s, interaction_id, user=current_user())
    return {"deleted": interaction_id}
