# facility_compliance/models/compliance_record.py
from sqlalchemy import (
    Column, Integer, String, Date, DateTime, Boolean, ForeignKey,
    CheckConstraint, Index, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from facility_compliance.db.base import Base
from facility_compliance.models.enums import COMPLIANCE_STATUSES, ComplianceStatus
from facility_compliance.models.facility import Facility


class ComplianceRecord(Base):
    """
    Derived compliance state, one row per facility. Written only by the
    recalculation hook; every write replaces all derived fields at once.
    """

    __tablename__ = "compliance_records"

    id = Column(Integer, primary_key=True, index=True)

    facility_id = Column(
        Integer, ForeignKey("facilities.id", ondelete="CASCADE"), nullable=False
    )
    tenant_id = Column(Integer, nullable=False, index=True)

    # Inputs the row was derived from (lets read-side projections re-derive for a later day)
    production_start_date = Column(Date, nullable=True)
    completion_date = Column(Date, nullable=True)
    calculated_for = Column(Date, nullable=False)

    # Derived fields
    initial_due_date = Column(Date, nullable=True)
    renewal_cycle_number = Column(Integer, nullable=False, default=0)
    current_renewal_due_date = Column(Date, nullable=True, index=True)
    status = Column(String(30), nullable=False, default=ComplianceStatus.NOT_STARTED.value, index=True)
    is_compliant = Column(Boolean, nullable=False, default=False)
    days_until_due = Column(Integer, nullable=True)

    # Stamped by the queue on successful SPCC delivery, preserved across recalculation
    last_notified_at = Column(DateTime, nullable=True)

    facility = relationship(Facility)

    __table_args__ = (
        UniqueConstraint("facility_id", name="uq_compliance_records_facility"),
        CheckConstraint(
            f"status IN {COMPLIANCE_STATUSES}",
            name="ck_compliance_records_status_allowed",
        ),
        CheckConstraint("renewal_cycle_number >= 0", name="ck_compliance_records_cycle_nonneg"),
        Index("ix_compliance_records_tenant_due", "tenant_id", "current_renewal_due_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<ComplianceRecord facility={self.facility_id} status={self.status} "
            f"due={self.current_renewal_due_date} cycle={self.renewal_cycle_number}>"
        )
