from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.crm.models import Base, User, touch_updated_at
from app.crm.utils import new_id, utcnow


class Profile(Base):
    __tablename__ = "profiles"
    __table_args__ = (
        CheckConstraint("plan IN ('free', 'pro')", name="ck_profiles_plan"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)

    full_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    business_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    plan: Mapped[str] = mapped_column(String(16), nullable=False, default="free")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    user: Mapped[User] = relationship("User", lazy="selectin")


event.listen(Profile, "before_update", touch_updated_at)
