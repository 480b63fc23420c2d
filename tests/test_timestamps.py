"""updated_at is maintained on every write and never moves backwards."""
from datetime import datetime

import pytest
from sqlalchemy import update

from app.crm import create_app
from app.crm.db import session_scope
from app.crm.identity import register_user
from app.crm.models import Base
from app.crm.modules.customers.models import Customer
from app.crm.modules.customers.service import create_customer, update_customer
from app.crm.modules.profiles.models import Profile
from app.crm.modules.profiles.service import get_profile, update_profile
from app.crm.modules.reminders.models import Reminder
from app.crm.modules.reminders.service import create_reminder, toggle_reminder

FUTURE = datetime(2999, 1, 1)


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    return app


@pytest.fixture()
def owner(app):
    with session_scope(app) as s:
        return register_user(s, email="owner@example.com", password="secret1")


def test_customer_updated_at_advances(app, owner):
    with session_scope(app) as s:
        c = create_customer(s, {"name": "Jane"}, user=owner)
        cid, before = c.id, c.updated_at

    with session_scope(app) as s:
        c = update_customer(s, cid, {"name": "Jane Doe"}, user=owner)
    with session_scope(app) as s:
        c = s.get(Customer, cid)
        assert c.updated_at >= before
        assert c.created_at <= c.updated_at


def test_caller_supplied_stale_value_is_ignored(app, owner):
    with session_scope(app) as s:
        cid = create_customer(s, {"name": "Jane"}, user=owner).id
        before = s.get(Customer, cid).updated_at

    with session_scope(app) as s:
        c = s.get(Customer, cid)
        c.name = "Direct edit"
        c.updated_at = datetime(2000, 1, 1)
    with session_scope(app) as s:
        assert s.get(Customer, cid).updated_at >= before


def test_never_decreases_past_a_later_stored_value(app, owner):
    with session_scope(app) as s:
        cid = create_customer(s, {"name": "Jane"}, user=owner).id
        rid = create_reminder(s, {"customer_id": cid, "title": "t", "reminder_date": "2030-01-01"}, user=owner).id
        # Bulk UPDATE skips mapper events, standing in for a clock that ran ahead.
        s.execute(update(Customer).where(Customer.id == cid).values(updated_at=FUTURE))
        s.execute(update(Reminder).where(Reminder.id == rid).values(updated_at=FUTURE))
        s.execute(update(Profile).where(Profile.user_id == owner.id).values(updated_at=FUTURE))

    with session_scope(app) as s:
        update_customer(s, cid, {"notes": "later edit"}, user=owner)
        toggle_reminder(s, rid, user=owner)
        update_profile(s, {"full_name": "Owner"}, user=owner)

    with session_scope(app) as s:
        assert s.get(Customer, cid).updated_at == FUTURE
        assert s.get(Reminder, rid).updated_at == FUTURE
        assert get_profile(s, owner).updated_at == FUTURE
        assert s.get(Customer, cid).notes == "later edit"


def test_profile_updated_at_advances(app, owner):
    with session_scope(app) as s:
        before = get_profile(s, owner).updated_at
    with session_scope(app) as s:
        p = update_profile(s, {"business_name": "Owner & Co"}, user=owner)
        assert p.updated_at >= before
