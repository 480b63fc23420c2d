from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, CheckConstraint, DateTime, ForeignKey, Index, String, Text, event
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.crm.models import Base, touch_updated_at
from app.crm.utils import new_id, utcnow

# JSONB on Postgres, plain JSON elsewhere (SQLite in dev/tests).
TagList = JSON().with_variant(JSONB(), "postgresql")


class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (
        Index("idx_customers_user_id", "user_id"),
        Index("idx_customers_name", "name"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    phone: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    tags: Mapped[list[str]] = mapped_column(TagList, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    interactions: Mapped[list["Interaction"]] = relationship(
        "Interaction",
        back_populates="customer",
        cascade="all, delete-orphan",
    )
    reminders: Mapped[list["Reminder"]] = relationship(  # noqa: F821
        "Reminder",
        back_populates="customer",
        cascade="all, delete-orphan",
    )


class Interaction(Base):
    __tablename__ = "customer_interactions"
    __table_args__ = (
        Index("idx_customer_interactions_customer_id", "customer_id"),
        Index("idx_customer_interactions_user_id", "user_id"),
        CheckConstraint(
            "type IN ('call', 'email', 'meeting', 'quote', 'service', 'other')",
            name="ck_customer_interactions_type",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    customer_id: Mapped[str] = mapped_column(ForeignKey("customers.id", ondelete="CASCADE"), nullable=False)
    # Duplicated owner reference; always equals customer.user_id.
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    type: Mapped[str] = mapped_column(String(16), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    interaction_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    customer: Mapped[Customer] = relationship("Customer", back_populates="interactions")


event.listen(Customer, "before_update", touch_updated_at)
