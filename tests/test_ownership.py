"""Owner isolation: one owner can never see or touch another owner's rows."""
import pytest

from app.crm import create_app
from app.crm.db import session_scope
from app.crm.errors import AuthenticationRequired, AuthorizationError, NotFoundError
from app.crm.identity import register_user
from app.crm.models import Base
from app.crm.modules.customers.models import Customer
from app.crm.modules.customers.service import (
    create_customer,
    create_interaction,
    delete_customer,
    get_customer,
    list_customers,
    update_customer,
)
from app.crm.modules.reminders.service import create_reminder, toggle_reminder


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    return app


def _signup(app, email):
    c = app.test_client()
    r = c.post("/auth/signup", json={"email": email, "password": "secret1"})
    assert r.status_code == 201
    c.environ_base["HTTP_X_CSRF_TOKEN"] = r.json["csrf_token"]
    return c, r.json["user"]["id"]


@pytest.fixture()
def owners(app):
    a, a_id = _signup(app, "a@example.com")
    b, b_id = _signup(app, "b@example.com")
    return a, a_id, b, b_id


def _seed_a(a):
    cust = a.post("/api/customers", json={"name": "Jane", "email": "jane@example.com"}).json["customer"]
    inter = a.post(
        "/api/interactions", json={"customer_id": cust["id"], "type": "call", "description": "Intro call"}
    ).json["interaction"]
    rem = a.post(
        "/api/reminders",
        json={"customer_id": cust["id"], "title": "Follow up", "reminder_date": "2030-01-01T09:00:00Z"},
    ).json["reminder"]
    return cust, inter, rem


def test_anonymous_is_refused(app):
    c = app.test_client()
    for path in ("/api/customers", "/api/interactions", "/api/reminders", "/api/profile", "/api/dashboard"):
        r = c.get(path)
        assert r.status_code == 401, path
        assert r.json["error"] == "authentication_required"


def test_foreign_customer_is_invisible(owners):
    a, _, b, _ = owners
    cust, _, _ = _seed_a(a)

    assert b.get("/api/customers").json["customers"] == []
    assert b.get(f"/api/customers/{cust['id']}").status_code == 404
    assert b.patch(f"/api/customers/{cust['id']}", json={"name": "Hijacked"}).status_code == 404
    assert b.delete(f"/api/customers/{cust['id']}").status_code == 404

    r = a.get(f"/api/customers/{cust['id']}")
    assert r.status_code == 200
    assert r.json["customer"]["name"] == "Jane"


def test_foreign_interaction_is_invisible(owners):
    a, _, b, _ = owners
    cust, inter, _ = _seed_a(a)

    assert b.get("/api/interactions").json["interactions"] == []
    assert b.get(f"/api/interactions?customer_id={cust['id']}").status_code == 404
    assert b.patch(f"/api/interactions/{inter['id']}", json={"description": "x"}).status_code == 404
    assert b.delete(f"/api/interactions/{inter['id']}").status_code == 404
    assert len(a.get("/api/interactions").json["interactions"]) == 1


def test_foreign_reminder_is_invisible(owners):
    a, _, b, _ = owners
    _, _, rem = _seed_a(a)

    assert b.get("/api/reminders").json["reminders"] == []
    assert b.patch(f"/api/reminders/{rem['id']}", json={"title": "x"}).status_code == 404
    assert b.post(f"/api/reminders/{rem['id']}/toggle").status_code == 404
    assert b.delete(f"/api/reminders/{rem['id']}").status_code == 404

    r = a.get("/api/reminders").json["reminders"]
    assert len(r) == 1
    assert r[0]["completed"] is False


def test_cannot_attach_children_to_foreign_customer(owners):
    a, _, b, _ = owners
    cust, _, _ = _seed_a(a)

    r = b.post("/api/interactions", json={"customer_id": cust["id"], "type": "call", "description": "sneaky"})
    assert r.status_code == 404
    r = b.post(
        "/api/reminders",
        json={"customer_id": cust["id"], "title": "sneaky", "reminder_date": "2030-01-01T00:00:00"},
    )
    assert r.status_code == 404
    assert len(a.get("/api/interactions").json["interactions"]) == 1


def test_foreign_owner_reference_is_denied(owners):
    a, a_id, _, b_id = owners
    r = a.post("/api/customers", json={"name": "Planted", "user_id": b_id})
    assert r.status_code == 403
    assert r.json["field"] == "user_id"

    # Naming yourself is fine
    r = a.post("/api/customers", json={"name": "Mine", "user_id": a_id})
    assert r.status_code == 201


def test_service_layer_isolation(app):
    with app.app_context():
        with session_scope(app) as s:
            alice = register_user(s, email="alice@example.com", password="secret1")
            bob = register_user(s, email="bob@example.com", password="secret1")
            c = create_customer(s, {"name": "Acme"}, user=alice)
            create_interaction(s, {"customer_id": c.id, "type": "email", "description": "Quote sent"}, user=alice)
            r = create_reminder(
                s, {"customer_id": c.id, "title": "Call back", "reminder_date": "2030-05-01"}, user=alice
            )
            cid, rid = c.id, r.id

        with session_scope(app) as s:
            assert list_customers(s, bob) == []
            with pytest.raises(NotFoundError):
                get_customer(s, cid, bob)
            with pytest.raises(NotFoundError):
                update_customer(s, cid, {"name": "Stolen"}, user=bob)
            with pytest.raises(NotFoundError):
                delete_customer(s, cid, user=bob)
            with pytest.raises(NotFoundError):
                toggle_reminder(s, rid, user=bob)
            with pytest.raises(AuthorizationError):
                create_customer(s, {"name": "Planted", "user_id": alice.id}, user=bob)
            with pytest.raises(AuthenticationRequired):
                list_customers(s, None)

        with session_scope(app) as s:
            assert s.get(Customer, cid).name == "Acme"
