from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from app.crm.utils import new_id, utcnow


class Base(DeclarativeBase):
    pass


def touch_updated_at(mapper, connection, target) -> None:
    """
    before_update hook: stamp updated_at on every UPDATE, whatever the caller supplied.
    Never moves the value backwards.
    """
    hist = sa_inspect(target).attrs.updated_at.history
    if hist.deleted:
        previous = hist.deleted[0]
    elif hist.unchanged:
        previous = hist.unchanged[0]
    else:
        previous = None
    now = utcnow()
    target.updated_at = now if previous is None or now >= previous else previous


class User(Base):
    """Identity. Everything else in the schema is partitioned by users.id."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)


class AuditEvent(Base):
    """
    Append-only audit trail event.
    Kept generic; entity_id is a string so any table can be referenced.
    """

    __tablename__ = "audit_events"
    __table_args__ = (
        Index("idx_audit_events_actor", "actor_user_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    actor_user_id: Mapped[str | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    actor_user_email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    action: Mapped[str] = mapped_column(String(128), nullable=False)  # e.g. "customer.create"
    entity_type: Mapped[str | None] = mapped_column(String(128), nullable=True)  # e.g. "Customer"
    entity_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    client_ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)  # small JSON string


# Ensure module models are imported so Base.metadata includes their tables.
# (Kept at bottom to avoid circular imports.)
from app.crm.modules.profiles.models import Profile  # noqa: E402,F401
from app.crm.modules.customers.models import Customer, Interaction  # noqa: E402,F401
from app.crm.modules.reminders.models import Reminder  # noqa: E402,F401
