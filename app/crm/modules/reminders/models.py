from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.crm.models import Base, touch_updated_at
from app.crm.utils import new_id, utcnow

if TYPE_CHECKING:
    from app.crm.modules.customers.models import Customer


class Reminder(Base):
    __tablename__ = "reminders"
    __table_args__ = (
        Index("idx_reminders_user_id", "user_id"),
        Index("idx_reminders_reminder_date", "reminder_date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    customer_id: Mapped[str] = mapped_column(ForeignKey("customers.id", ondelete="CASCADE"), nullable=False)
    # Duplicated owner reference; always equals customer.user_id.
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    reminder_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    customer: Mapped["Customer"] = relationship("Customer", back_populates="reminders")


event.listen(Reminder, "before_update", touch_updated_at)
