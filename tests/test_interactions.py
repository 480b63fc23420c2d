"""Tests for customer interactions."""
from datetime import datetime

import pytest
from sqlalchemy import update

from app.crm import create_app
from app.crm.db import session_scope
from app.crm.errors import NotFoundError, ValidationError
from app.crm.identity import register_user
from app.crm.models import Base
from app.crm.modules.customers.models import Interaction
from app.crm.modules.customers.service import (
    create_customer,
    create_interaction,
    delete_interaction,
    list_interactions,
    update_interaction,
    upsert_interaction,
)


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    return app


@pytest.fixture()
def seeded(app):
    with session_scope(app) as s:
        owner = register_user(s, email="owner@example.com", password="secret1")
        jane = create_customer(s, {"name": "Jane"}, user=owner)
        bob = create_customer(s, {"name": "Bob"}, user=owner)
        return owner, jane.id, bob.id


@pytest.mark.parametrize("kind", ["visit", "sms", "", None, "CALLS"])
def test_type_outside_enum_is_rejected(app, seeded, kind):
    owner, jane_id, _ = seeded
    with session_scope(app) as s:
        with pytest.raises(ValidationError) as exc:
            create_interaction(s, {"customer_id": jane_id, "type": kind, "description": "x"}, user=owner)
        assert exc.value.field == "type"
        assert s.query(Interaction).count() == 0


def test_type_is_case_insensitive(app, seeded):
    owner, jane_id, _ = seeded
    with session_scope(app) as s:
        i = create_interaction(s, {"customer_id": jane_id, "type": "Meeting", "description": "Site visit"}, user=owner)
        assert i.type == "meeting"
        assert i.user_id == owner.id


def test_description_and_customer_required(app, seeded):
    owner, jane_id, _ = seeded
    with session_scope(app) as s:
        with pytest.raises(ValidationError) as exc:
            create_interaction(s, {"customer_id": jane_id, "type": "call", "description": "  "}, user=owner)
        assert exc.value.field == "description"
        with pytest.raises(ValidationError) as exc:
            create_interaction(s, {"type": "call", "description": "hi"}, user=owner)
        assert exc.value.field == "customer_id"
        with pytest.raises(NotFoundError):
            create_interaction(s, {"customer_id": "missing", "type": "call", "description": "hi"}, user=owner)


def test_list_is_most_recent_first_and_filterable(app, seeded):
    owner, jane_id, bob_id = seeded
    with session_scope(app) as s:
        create_interaction(
            s,
            {"customer_id": jane_id, "type": "call", "description": "old", "interaction_date": "2024-01-01T10:00:00"},
            user=owner,
        )
        create_interaction(
            s,
            {"customer_id": jane_id, "type": "quote", "description": "new", "interaction_date": "2024-03-01T10:00:00Z"},
            user=owner,
        )
        create_interaction(
            s,
            {"customer_id": bob_id, "type": "service", "description": "bob", "interaction_date": "2024-02-01"},
            user=owner,
        )

    with session_scope(app) as s:
        assert [i.description for i in list_interactions(s, owner)] == ["new", "bob", "old"]
        assert [i.description for i in list_interactions(s, owner, customer_id=jane_id)] == ["new", "old"]
        assert [i.description for i in list_interactions(s, owner, limit=1)] == ["new"]


def test_interaction_date_with_offset_is_stored_as_utc(app, seeded):
    owner, jane_id, _ = seeded
    with session_scope(app) as s:
        i = create_interaction(
            s,
            {"customer_id": jane_id, "type": "call", "description": "x", "interaction_date": "2024-06-01T12:00:00+02:00"},
            user=owner,
        )
        assert i.interaction_date == datetime(2024, 6, 1, 10, 0, 0)
        with pytest.raises(ValidationError):
            create_interaction(
                s, {"customer_id": jane_id, "type": "call", "description": "x", "interaction_date": "soon"}, user=owner
            )


def test_update_move_and_delete(app, seeded):
    owner, jane_id, bob_id = seeded
    with session_scope(app) as s:
        iid = create_interaction(s, {"customer_id": jane_id, "type": "call", "description": "hi"}, user=owner).id

    with session_scope(app) as s:
        i = update_interaction(s, iid, {"type": "EMAIL", "customer_id": bob_id}, user=owner)
        assert i.type == "email"
        assert i.customer_id == bob_id
        assert i.description == "hi"
        with pytest.raises(ValidationError):
            update_interaction(s, iid, {"type": "fax"}, user=owner)

    with session_scope(app) as s:
        i = upsert_interaction(s, {"id": iid, "description": "edited"}, user=owner)
        assert i.description == "edited"

    with session_scope(app) as s:
        delete_interaction(s, iid, user=owner)
    with session_scope(app) as s:
        assert s.get(Interaction, iid) is None
        with pytest.raises(NotFoundError):
            delete_interaction(s, iid, user=owner)


def test_http_nested_routes(app):
    c = app.test_client()
    token = c.post("/auth/signup", json={"email": "h@example.com", "password": "secret1"}).json["csrf_token"]
    headers = {"X-CSRF-Token": token}
    cid = c.post("/api/customers", json={"name": "Jane"}, headers=headers).json["customer"]["id"]

    r = c.post(f"/api/customers/{cid}/interactions", json={"type": "call", "description": "Intro"}, headers=headers)
    assert r.status_code == 201
    assert r.json["interaction"]["customer_name"] == "Jane"

    r = c.post(f"/api/customers/{cid}/interactions", json={"type": "pigeon", "description": "Intro"}, headers=headers)
    assert r.status_code == 400
    assert r.json["field"] == "type"

    r = c.get(f"/api/customers/{cid}")
    assert [i["description"] for i in r.json["interactions"]] == ["Intro"]
    assert len(c.get(f"/api/customers/{cid}/interactions").json["interactions"]) == 1


def test_upsert_interaction(app, seeded):
    owner, jane_id, _ = seeded
    with session_scope(app) as s:
        i = upsert_interaction(s, {"customer_id": jane_id, "type": "call", "description": "first"}, user=owner)
        iid = i.id
    with session_scope(app) as s:
        same = upsert_interaction(s, {"description": "second"}, user=owner, interaction_id=iid)
        assert same.id == iid
        assert same.description == "second"
        assert same.type == "call"
        assert s.query(Interaction).count() == 1


def test_upsert_interaction_foreign_id(app, seeded):
    owner, jane_id, _ = seeded
    with session_scope(app) as s:
        intruder = register_user(s, email="intruder@example.com", password="secret1")
        iid = create_interaction(s, {"customer_id": jane_id, "type": "call", "description": "mine"}, user=owner).id
    with session_scope(app) as s:
        with pytest.raises(NotFoundError):
            upsert_interaction(s, {"id": iid, "description": "theirs"}, user=intruder)
    with session_scope(app) as s:
        assert s.get(Interaction, iid).description == "mine"


@pytest.mark.parametrize("blank", ["", "   ", None])
def test_update_rejects_blank_interaction_date(app, seeded, blank):
    owner, jane_id, _ = seeded
    with session_scope(app) as s:
        i = create_interaction(
            s,
            {"customer_id": jane_id, "type": "call", "description": "x", "interaction_date": "2024-05-01T08:00:00"},
            user=owner,
        )
        with pytest.raises(ValidationError) as exc:
            update_interaction(s, i.id, {"interaction_date": blank, "description": "changed"}, user=owner)
        assert exc.value.field == "interaction_date"
        assert i.interaction_date == datetime(2024, 5, 1, 8, 0, 0)
        assert i.description == "x"


def test_list_by_logged_time(app, seeded):
    owner, jane_id, _ = seeded
    with session_scope(app) as s:
        create_interaction(
            s, {"customer_id": jane_id, "type": "call", "description": "recent", "interaction_date": "2024-06-01"}, user=owner
        )
        create_interaction(
            s, {"customer_id": jane_id, "type": "call", "description": "backfilled", "interaction_date": "2023-01-01"}, user=owner
        )
        s.execute(
            update(Interaction)
            .where(Interaction.description == "recent")
            .values(created_at=datetime(2024, 6, 1, 9, 0, 0))
        )
        s.execute(
            update(Interaction)
            .where(Interaction.description == "backfilled")
            .values(created_at=datetime(2024, 6, 2, 9, 0, 0))
        )
    with session_scope(app) as s:
        assert [i.description for i in list_interactions(s, owner)] == ["recent", "backfilled"]
        assert [i.description for i in list_interactions(s, owner, order_by="created_at")] == ["backfilled", "recent"]
        with pytest.raises(ValidationError):
            list_interactions(s, owner, order_by="type")


def test_http_blank_interaction_date_is_400(app):
    c = app.test_client()
    token = c.post("/auth/signup", json={"email": "h@example.com", "password": "secret1"}).json["csrf_token"]
    headers = {"X-CSRF-Token": token}
    cid = c.post("/api/customers", json={"name": "Jane"}, headers=headers).json["customer"]["id"]
    iid = c.post(
        "/api/interactions", json={"customer_id": cid, "type": "call", "description": "Intro"}, headers=headers
    ).json["interaction"]["id"]

    r = c.patch(f"/api/interactions/{iid}", json={"interaction_date": ""}, headers=headers)
    assert r.status_code == 400
    assert r.json["field"] == "interaction_date"
