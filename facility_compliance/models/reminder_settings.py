# facility_compliance/models/reminder_settings.py
from sqlalchemy import Column, DateTime, Integer, JSON

from facility_compliance.db.base import Base
from facility_compliance.utils.dates import utcnow


class TenantReminderSettings(Base):
    """
    Per-tenant override of the reminder offsets (days before due). A tenant
    without a row uses the NOTIFY_*_REMINDERS defaults.
    """

    __tablename__ = "tenant_reminder_settings"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, nullable=False, unique=True, index=True)

    # JSON lists of non-negative day counts, stored sorted descending
    spcc_initial_reminders = Column(JSON, nullable=False)
    spcc_renewal_reminders = Column(JSON, nullable=False)
    inspection_reminders = Column(JSON, nullable=False)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<TenantReminderSettings tenant={self.tenant_id}>"
