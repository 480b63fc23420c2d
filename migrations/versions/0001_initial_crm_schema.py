"""initial crm schema: users, profiles, customers, interactions, reminders, audit

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(*, updated: bool = True) -> list[sa.Column]:
    cols = [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=False),
            nullable=False,
            server_default=sa.func.current_timestamp(),
        ),
    ]
    if updated:
        cols.append(
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=False),
                nullable=False,
                server_default=sa.func.current_timestamp(),
            )
        )
    return cols


def upgrade() -> None:
    bind = op.get_bind()
    insp = inspect(bind)
    existing_tables = set(insp.get_table_names())
    tag_type = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.String(36), primary_key=True, nullable=False),
            sa.Column("email", sa.String(320), nullable=False),
            sa.Column("password_hash", sa.String(255), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            *_timestamps(updated=False),
            sa.UniqueConstraint("email", name="uq_users_email"),
        )

    if "profiles" not in existing_tables:
        op.create_table(
            "profiles",
            sa.Column("id", sa.String(36), primary_key=True, nullable=False),
            sa.Column("user_id", sa.String(36), nullable=False),
            sa.Column("full_name", sa.Text(), nullable=True),
            sa.Column("business_name", sa.Text(), nullable=True),
            sa.Column("plan", sa.String(16), nullable=False, server_default="free"),
            *_timestamps(),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.UniqueConstraint("user_id", name="uq_profiles_user_id"),
            sa.CheckConstraint("plan IN ('free', 'pro')", name="ck_profiles_plan"),
        )

    if "customers" not in existing_tables:
        op.create_table(
            "customers",
            sa.Column("id", sa.String(36), primary_key=True, nullable=False),
            sa.Column("user_id", sa.String(36), nullable=False),
            sa.Column("name", sa.Text(), nullable=False),
            sa.Column("email", sa.Text(), nullable=True),
            sa.Column("phone", sa.Text(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("tags", tag_type, nullable=False),
            *_timestamps(),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        )
        op.create_index("idx_customers_user_id", "customers", ["user_id"])
        op.create_index("idx_customers_name", "customers", ["name"])

    if "customer_interactions" not in existing_tables:
        op.create_table(
            "customer_interactions",
            sa.Column("id", sa.String(36), primary_key=True, nullable=False),
            sa.Column("customer_id", sa.String(36), nullable=False),
            sa.Column("user_id", sa.String(36), nullable=False),
            sa.Column("type", sa.String(16), nullable=False),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column(
                "interaction_date",
                sa.DateTime(timezone=False),
                nullable=False,
                server_default=sa.func.current_timestamp(),
            ),
            *_timestamps(updated=False),
            sa.ForeignKeyConstraint(["customer_id"], ["customers.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.CheckConstraint(
                "type IN ('call', 'email', 'meeting', 'quote', 'service', 'other')",
                name="ck_customer_interactions_type",
            ),
        )
        op.create_index("idx_customer_interactions_customer_id", "customer_interactions", ["customer_id"])
        op.create_index("idx_customer_interactions_user_id", "customer_interactions", ["user_id"])

    if "reminders" not in existing_tables:
        op.create_table(
            "reminders",
            sa.Column("id", sa.String(36), primary_key=True, nullable=False),
            sa.Column("customer_id", sa.String(36), nullable=False),
            sa.Column("user_id", sa.String(36), nullable=False),
            sa.Column("title", sa.Text(), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("reminder_date", sa.DateTime(timezone=False), nullable=False),
            sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
            *_timestamps(),
            sa.ForeignKeyConstraint(["customer_id"], ["customers.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        )
        op.create_index("idx_reminders_user_id", "reminders", ["user_id"])
        op.create_index("idx_reminders_reminder_date", "reminders", ["reminder_date"])

    if "audit_events" not in existing_tables:
        op.create_table(
            "audit_events",
            sa.Column("id", sa.String(36), primary_key=True, nullable=False),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=False),
                nullable=False,
                server_default=sa.func.current_timestamp(),
            ),
            sa.Column("request_id", sa.String(64), nullable=True),
            sa.Column("actor_user_id", sa.String(36), nullable=True),
            sa.Column("actor_user_email", sa.String(320), nullable=True),
            sa.Column("action", sa.String(128), nullable=False),
            sa.Column("entity_type", sa.String(128), nullable=True),
            sa.Column("entity_id", sa.String(128), nullable=True),
            sa.Column("client_ip", sa.String(64), nullable=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(["actor_user_id"], ["users.id"], ondelete="SET NULL"),
        )
        op.create_index("idx_audit_events_actor", "audit_events", ["actor_user_id", "created_at"])


def downgrade() -> None:
    op.drop_index("idx_audit_events_actor", table_name="audit_events")
    op.drop_table("audit_events")

    op.drop_index("idx_reminders_reminder_date", table_name="reminders")
    op.drop_index("idx_reminders_user_id", table_name="reminders")
    op.drop_table("reminders")

    op.drop_index("idx_customer_interactions_user_id", table_name="customer_interactions")
    op.drop_index("idx_customer_interactions_customer_id", table_name="customer_interactions")
    op.drop_table("customer_interactions")

    op.drop_index("idx_customers_name", table_name="customers")
    op.drop_index("idx_customers_user_id", table_name="customers")
    op.drop_table("customers")

    op.drop_table("profiles")
    op.drop_table("users")
