# facility_compliance/models/notification.py
from sqlalchemy import (
    Column, Integer, String, Date, DateTime, ForeignKey, Text, JSON,
    CheckConstraint, Index,
)

from facility_compliance.db.base import Base
from facility_compliance.models.enums import (
    NOTIFICATION_STATUSES,
    NOTIFICATION_TYPES,
    NotificationStatus,
)
from facility_compliance.utils.dates import utcnow


class NotificationQueueEntry(Base):
    __tablename__ = "notification_queue"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    facility_id = Column(
        Integer, ForeignKey("facilities.id", ondelete="CASCADE"), nullable=True, index=True
    )  # NULL for tenant-wide digests

    notification_type = Column(String(30), nullable=False, index=True)
    # Set for inspection reminders: one facility can carry several schedules
    inspection_type = Column(String(30), nullable=True)
    subject = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    payload = Column(JSON, nullable=False, default=dict)

    due_date = Column(Date, nullable=True)
    scheduled_for = Column(DateTime, nullable=False)

    # pending | sent | failed
    status = Column(String(20), nullable=False, default=NotificationStatus.PENDING.value)
    retry_count = Column(Integer, nullable=False, default=0)
    sent_at = Column(DateTime, nullable=True)
    error_message = Column(Text, nullable=True)

    # "<subject>:<type>[:<inspection type>]:<cooldown bucket>" claim; unique while set, released on terminal failure
    dedupe_key = Column(String(120), nullable=True, unique=True)
    # Delivery lease taken by a worker (atomic claim)
    locked_until = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint(
            f"status IN {NOTIFICATION_STATUSES}",
            name="ck_notification_queue_status_allowed",
        ),
        CheckConstraint(
            f"notification_type IN {NOTIFICATION_TYPES}",
            name="ck_notification_queue_type_allowed",
        ),
        CheckConstraint("retry_count >= 0", name="ck_notification_queue_retry_nonneg"),
        Index("ix_notification_queue_status_scheduled", "status", "scheduled_for"),
        Index(
            "ix_notification_queue_facility_type",
            "facility_id",
            "notification_type",
            "inspection_type",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<NotificationQueueEntry id={self.id} type={self.notification_type} "
            f"status={self.status} retries={self.retry_count}>"
        )


class NotificationHistoryEntry(Base):
    """Append-only record of a delivered notification (in-app bell + audit trail)."""

    __tablename__ = "notification_history"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    facility_id = Column(
        Integer, ForeignKey("facilities.id", ondelete="SET NULL"), nullable=True, index=True
    )
    queue_entry_id = Column(
        Integer, ForeignKey("notification_queue.id", ondelete="SET NULL"), nullable=True, unique=True
    )

    notification_type = Column(String(30), nullable=False, index=True)
    subject = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    payload = Column(JSON, nullable=False, default=dict)

    sent_at = Column(DateTime, nullable=False)
    read_at = Column(DateTime, nullable=True)
    dismissed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint(
            f"notification_type IN {NOTIFICATION_TYPES}",
            name="ck_notification_history_type_allowed",
        ),
        Index("ix_notification_history_tenant_sent", "tenant_id", "sent_at"),
        Index("ix_notification_history_unread", "tenant_id", "read_at"),
    )
