"""create facilities, compliance records, inspection schedules and notification tables

Revision ID: 7c1e2a9d4b10
Revises:
Create Date: 2026-10-19 09:00:00
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

from facility_compliance.models.enums import (
    COMPLIANCE_STATUSES,
    INSPECTION_TYPES,
    NOTIFICATION_STATUSES,
    NOTIFICATION_TYPES,
)


# revision identifiers, used by Alembic.
revision = "7c1e2a9d4b10"
down_revision = None
branch_labels = None
depends_on = None


def _has_table(name: str) -> bool:
    return name in sa.inspect(op.get_bind()).get_table_names()


def upgrade():
    if not _has_table("facilities"):
        op.create_table(
            "facilities",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("tenant_id", sa.Integer, nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("production_start_date", sa.Date, nullable=True),
            sa.Column("plan_completed_date", sa.Date, nullable=True),
            sa.Column("pe_stamp_date", sa.Date, nullable=True),
            sa.Column("inspection_frequency_days", sa.Integer, nullable=False, server_default="365"),
            sa.Column("last_inspection_date", sa.Date, nullable=True),
            sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
            sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
            sa.CheckConstraint("inspection_frequency_days > 0", name="ck_facilities_frequency_positive"),
        )
        op.create_index("ix_facilities_id", "facilities", ["id"])
        op.create_index("ix_facilities_tenant_id", "facilities", ["tenant_id"])
        op.create_index("ix_facilities_name", "facilities", ["name"])
        op.create_index("ix_facilities_tenant_name", "facilities", ["tenant_id", "name"])

    if not _has_table("compliance_records"):
        op.create_table(
            "compliance_records",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("facility_id", sa.Integer, sa.ForeignKey("facilities.id", ondelete="CASCADE"), nullable=False),
            sa.Column("tenant_id", sa.Integer, nullable=False),
            sa.Column("production_start_date", sa.Date, nullable=True),
            sa.Column("completion_date", sa.Date, nullable=True),
            sa.Column("calculated_for", sa.Date, nullable=False),
            sa.Column("initial_due_date", sa.Date, nullable=True),
            sa.Column("renewal_cycle_number", sa.Integer, nullable=False, server_default="0"),
            sa.Column("current_renewal_due_date", sa.Date, nullable=True),
            sa.Column("status", sa.String(length=30), nullable=False, server_default="not_started"),
            sa.Column("is_compliant", sa.Boolean, nullable=False, server_default=sa.false()),
            sa.Column("days_until_due", sa.Integer, nullable=True),
            sa.Column("last_notified_at", sa.DateTime, nullable=True),
            sa.UniqueConstraint("facility_id", name="uq_compliance_records_facility"),
            sa.CheckConstraint(f"status IN {COMPLIANCE_STATUSES}", name="ck_compliance_records_status_allowed"),
            sa.CheckConstraint("renewal_cycle_number >= 0", name="ck_compliance_records_cycle_nonneg"),
        )
        op.create_index("ix_compliance_records_id", "compliance_records", ["id"])
        op.create_index("ix_compliance_records_tenant_id", "compliance_records", ["tenant_id"])
        op.create_index("ix_compliance_records_status", "compliance_records", ["status"])
        op.create_index(
            "ix_compliance_records_current_renewal_due_date", "compliance_records", ["current_renewal_due_date"]
        )
        op.create_index(
            "ix_compliance_records_tenant_due", "compliance_records", ["tenant_id", "current_renewal_due_date"]
        )

    if not _has_table("inspection_schedules"):
        op.create_table(
            "inspection_schedules",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("facility_id", sa.Integer, sa.ForeignKey("facilities.id", ondelete="CASCADE"), nullable=False),
            sa.Column("tenant_id", sa.Integer, nullable=False),
            sa.Column("inspection_type", sa.String(length=30), nullable=False, server_default="spcc"),
            sa.Column("frequency_days", sa.Integer, nullable=False, server_default="365"),
            sa.Column("last_inspection_date", sa.Date, nullable=True),
            sa.Column("next_due_date", sa.Date, nullable=True),
            sa.Column("is_overdue", sa.Boolean, nullable=False, server_default=sa.false()),
            sa.Column("reminder_sent_at", sa.DateTime, nullable=True),
            sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("1")),
            sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
            sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
            sa.UniqueConstraint("facility_id", "inspection_type", name="uq_inspection_schedules_facility_type"),
            sa.CheckConstraint(f"inspection_type IN {INSPECTION_TYPES}", name="ck_inspection_schedules_type_allowed"),
            sa.CheckConstraint("frequency_days > 0", name="ck_inspection_schedules_frequency_positive"),
        )
        op.create_index("ix_inspection_schedules_id", "inspection_schedules", ["id"])
        op.create_index("ix_inspection_schedules_facility_id", "inspection_schedules", ["facility_id"])
        op.create_index("ix_inspection_schedules_tenant_id", "inspection_schedules", ["tenant_id"])
        op.create_index("ix_inspection_schedules_next_due_date", "inspection_schedules", ["next_due_date"])
        op.create_index("ix_inspection_schedules_tenant_due", "inspection_schedules", ["tenant_id", "next_due_date"])

    if not _has_table("notification_queue"):
        op.create_table(
            "notification_queue",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("tenant_id", sa.Integer, nullable=False),
            sa.Column("facility_id", sa.Integer, sa.ForeignKey("facilities.id", ondelete="CASCADE"), nullable=True),
            sa.Column("notification_type", sa.String(length=30), nullable=False),
            sa.Column("subject", sa.String(length=255), nullable=False),
            sa.Column("message", sa.Text, nullable=False),
            sa.Column("payload", sa.JSON, nullable=False),
            sa.Column("due_date", sa.Date, nullable=True),
            sa.Column("scheduled_for", sa.DateTime, nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("retry_count", sa.Integer, nullable=False, server_default="0"),
            sa.Column("sent_at", sa.DateTime, nullable=True),
            sa.Column("error_message", sa.Text, nullable=True),
            sa.Column("dedupe_key", sa.String(length=120), nullable=True, unique=True),
            sa.Column("locked_until", sa.DateTime, nullable=True),
            sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
            sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
            sa.CheckConstraint(f"status IN {NOTIFICATION_STATUSES}", name="ck_notification_queue_status_allowed"),
            sa.CheckConstraint(f"notification_type IN {NOTIFICATION_TYPES}", name="ck_notification_queue_type_allowed"),
            sa.CheckConstraint("retry_count >= 0", name="ck_notification_queue_retry_nonneg"),
        )
        op.create_index("ix_notification_queue_tenant_id", "notification_queue", ["tenant_id"])
        op.create_index("ix_notification_queue_facility_id", "notification_queue", ["facility_id"])
        op.create_index("ix_notification_queue_notification_type", "notification_queue", ["notification_type"])
        op.create_index("ix_notification_queue_status_scheduled", "notification_queue", ["status", "scheduled_for"])
        op.create_index("ix_notification_queue_facility_type", "notification_queue", ["facility_id", "notification_type"])

    if not _has_table("notification_history"):
        op.create_table(
            "notification_history",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("tenant_id", sa.Integer, nullable=False),
            sa.Column("facility_id", sa.Integer, sa.ForeignKey("facilities.id", ondelete="SET NULL"), nullable=True),
            sa.Column(
                "queue_entry_id",
                sa.Integer,
                sa.ForeignKey("notification_queue.id", ondelete="SET NULL"),
                nullable=True,
                unique=True,
            ),
            sa.Column("notification_type", sa.String(length=30), nullable=False),
            sa.Column("subject", sa.String(length=255), nullable=False),
            sa.Column("message", sa.Text, nullable=False),
            sa.Column("payload", sa.JSON, nullable=False),
            sa.Column("sent_at", sa.DateTime, nullable=False),
            sa.Column("read_at", sa.DateTime, nullable=True),
            sa.Column("dismissed_at", sa.DateTime, nullable=True),
            sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
            sa.CheckConstraint(f"notification_type IN {NOTIFICATION_TYPES}", name="ck_notification_history_type_allowed"),
        )
        op.create_index("ix_notification_history_tenant_id", "notification_history", ["tenant_id"])
        op.create_index("ix_notification_history_facility_id", "notification_history", ["facility_id"])
        op.create_index("ix_notification_history_notification_type", "notification_history", ["notification_type"])
        op.create_index("ix_notification_history_tenant_sent", "notification_history", ["tenant_id", "sent_at"])
        op.create_index("ix_notification_history_unread", "notification_history", ["tenant_id", "read_at"])


def downgrade():
    for name in (
        "notification_history",
        "notification_queue",
        "inspection_schedules",
        "compliance_records",
        "facilities",
    ):
        if _has_table(name):
            op.drop_table(name)
