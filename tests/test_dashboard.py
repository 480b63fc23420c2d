"""Tests for the dashboard summary."""
from datetime import timedelta

import pytest
from sqlalchemy import update

from app.crm import create_app
from app.crm.db import session_scope
from app.crm.identity import register_user
from app.crm.models import Base
from app.crm.modules.customers.models import Customer, Interaction
from app.crm.modules.customers.service import create_customer, create_interaction
from app.crm.modules.dashboard.service import dashboard_summary
from app.crm.modules.reminders.service import create_reminder, toggle_reminder
from app.crm.utils import utcnow


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    return app


def test_summary_counts(app):
    now = utcnow()
    with session_scope(app) as s:
        owner = register_user(s, email="owner@example.com", password="secret1")
        other = register_user(s, email="other@example.com", password="secret1")
        jane = create_customer(s, {"name": "Jane"}, user=owner)
        old = create_customer(s, {"name": "Old timer"}, user=owner)
        create_customer(s, {"name": "Not mine"}, user=other)
        s.execute(update(Customer).where(Customer.id == old.id).values(created_at=now - timedelta(days=400)))

        for n in range(7):
            i = create_interaction(
                s,
                {
                    "customer_id": jane.id,
                    "type": "call",
                    "description": f"call {n}",
                    "interaction_date": (now - timedelta(days=n)).isoformat(),
                },
                user=owner,
            )
            s.execute(update(Interaction).where(Interaction.id == i.id).values(created_at=now - timedelta(minutes=n + 1)))
        # Logged last but dated three months back.
        create_interaction(
            s,
            {
                "customer_id": jane.id,
                "type": "service",
                "description": "backfilled",
                "interaction_date": (now - timedelta(days=90)).isoformat(),
            },
            user=owner,
        )
        create_reminder(s, {"customer_id": jane.id, "title": "due", "reminder_date": (now - timedelta(hours=1)).isoformat()}, user=owner)
        create_reminder(s, {"customer_id": jane.id, "title": "later", "reminder_date": (now + timedelta(days=2)).isoformat()}, user=owner)
        done = create_reminder(s, {"customer_id": jane.id, "title": "done", "reminder_date": (now - timedelta(days=1)).isoformat()}, user=owner)
        toggle_reminder(s, done.id, user=owner)

    with session_scope(app) as s:
        summary = dashboard_summary(s, owner, now=now)
        assert summary["total_customers"] == 2
        assert summary["new_customers_this_month"] == 1
        assert summary["pending_reminders"] == 1
        assert summary["upcoming_reminders"] == 1
        assert [i.description for i in summary["recent_interactions"]] == ["backfilled"] + [f"call {n}" for n in range(4)]
        assert summary["plan"]["customers_used"] == 2
        assert summary["plan"]["plan"] == "free"


def test_http_dashboard(app):
    c = app.test_client()
    assert c.get("/api/dashboard").status_code == 401
    c.post("/auth/signup", json={"email": "h@example.com", "password": "secret1"})
    r = c.get("/api/dashboard")
    assert r.status_code == 200
    assert r.json["total_customers"] == 0
    assert r.json["recent_interactions"] == []
    assert r.json["plan"]["customer_limit"] == 20
