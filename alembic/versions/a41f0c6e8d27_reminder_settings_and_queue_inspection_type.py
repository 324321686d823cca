"""per-tenant reminder offsets; inspection_type on notification_queue

Revision ID: a41f0c6e8d27
Revises: 7c1e2a9d4b10
Create Date: 2026-10-19 14:00:00
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "a41f0c6e8d27"
down_revision = "7c1e2a9d4b10"
branch_labels = None
depends_on = None


def _has_table(name: str) -> bool:
    return name in sa.inspect(op.get_bind()).get_table_names()


def _has_column(table: str, column: str) -> bool:
    return column in {c["name"] for c in sa.inspect(op.get_bind()).get_columns(table)}


def upgrade():
    if not _has_column("notification_queue", "inspection_type"):
        # batch mode: SQLite rebuilds the table
        with op.batch_alter_table("notification_queue") as batch:
            batch.add_column(sa.Column("inspection_type", sa.String(length=30), nullable=True))
            batch.drop_index("ix_notification_queue_facility_type")
            batch.create_index(
                "ix_notification_queue_facility_type",
                ["facility_id", "notification_type", "inspection_type"],
            )

    if not _has_table("tenant_reminder_settings"):
        op.create_table(
            "tenant_reminder_settings",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("tenant_id", sa.Integer, nullable=False),
            sa.Column("spcc_initial_reminders", sa.JSON, nullable=False),
            sa.Column("spcc_renewal_reminders", sa.JSON, nullable=False),
            sa.Column("inspection_reminders", sa.JSON, nullable=False),
            sa.Column("created_at", sa.DateTime, nullable=False),
            sa.Column("updated_at", sa.DateTime, nullable=False),
        )
        op.create_index(
            "ix_tenant_reminder_settings_tenant_id", "tenant_reminder_settings", ["tenant_id"], unique=True
        )


def downgrade():
    if _has_table("tenant_reminder_settings"):
        op.drop_table("tenant_reminder_settings")

    if _has_column("notification_queue", "inspection_type"):
        with op.batch_alter_table("notification_queue") as batch:
            batch.drop_index("ix_notification_queue_facility_type")
            batch.create_index("ix_notification_queue_facility_type", ["facility_id", "notification_type"])
            batch.drop_column("inspection_type")
