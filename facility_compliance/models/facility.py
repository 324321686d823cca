# facility_compliance/models/facility.py
from sqlalchemy import Column, Integer, String, Date, DateTime, CheckConstraint, Index

from facility_compliance.db.base import Base
from facility_compliance.utils.dates import utcnow


class Facility(Base):
    """
    Input boundary for the engine. Rows arrive already scoped to a tenant;
    identity/permission checks live outside this service.
    """

    __tablename__ = "facilities"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, nullable=False, index=True)

    name = Column(String(255), nullable=False, index=True)

    # Starts the compliance clock; absent => tracking inactive
    production_start_date = Column(Date, nullable=True)

    # Informal completion date and the certified (PE-stamped) plan date.
    # The stamped date wins when both are present.
    plan_completed_date = Column(Date, nullable=True)
    pe_stamp_date = Column(Date, nullable=True)

    # Default (spcc) inspection cadence
    inspection_frequency_days = Column(Integer, nullable=False, default=365)
    last_inspection_date = Column(Date, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("inspection_frequency_days > 0", name="ck_facilities_frequency_positive"),
        Index("ix_facilities_tenant_name", "tenant_id", "name"),
    )

    @property
    def effective_completion_date(self):
        return self.pe_stamp_date or self.plan_completed_date

    def __repr__(self) -> str:
        return f"<Facility id={self.id} tenant={self.tenant_id} name={self.name!r}>"
