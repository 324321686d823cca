# facility_compliance/models/inspection_schedule.py
from sqlalchemy import (
    Column, Integer, String, Date, DateTime, Boolean, ForeignKey,
    CheckConstraint, Index, UniqueConstraint, text,
)
from sqlalchemy.orm import relationship

from facility_compliance.db.base import Base
from facility_compliance.models.enums import INSPECTION_TYPES, InspectionType
from facility_compliance.models.facility import Facility
from facility_compliance.utils.dates import utcnow


class InspectionSchedule(Base):
    __tablename__ = "inspection_schedules"

    id = Column(Integer, primary_key=True, index=True)

    facility_id = Column(
        Integer, ForeignKey("facilities.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tenant_id = Column(Integer, nullable=False, index=True)

    # spcc | safety | environmental | general | custom
    inspection_type = Column(String(30), nullable=False, default=InspectionType.SPCC.value)
    frequency_days = Column(Integer, nullable=False, default=365)

    last_inspection_date = Column(Date, nullable=True)
    next_due_date = Column(Date, nullable=True, index=True)  # last + frequency, NULL if never inspected
    is_overdue = Column(Boolean, nullable=False, default=False)

    # Per-type "last notified" marker used by the cooldown filter
    reminder_sent_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, server_default=text("1"), default=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    facility = relationship(Facility)

    __table_args__ = (
        UniqueConstraint("facility_id", "inspection_type", name="uq_inspection_schedules_facility_type"),
        CheckConstraint(
            f"inspection_type IN {INSPECTION_TYPES}",
            name="ck_inspection_schedules_type_allowed",
        ),
        CheckConstraint("frequency_days > 0", name="ck_inspection_schedules_frequency_positive"),
        Index("ix_inspection_schedules_tenant_due", "tenant_id", "next_due_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<InspectionSchedule facility={self.facility_id} type={self.inspection_type} "
            f"next={self.next_due_date} overdue={self.is_overdue}>"
        )
