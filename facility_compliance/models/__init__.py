# facility_compliance/models/__init__.py
from facility_compliance.db.base import Base  # noqa: F401

# Order matters for FKs
from .facility import Facility  # noqa: F401
from .compliance_record import ComplianceRecord  # noqa: F401
from .inspection_schedule import InspectionSchedule  # noqa: F401
from .notification import NotificationQueueEntry, NotificationHistoryEntry  # noqa: F401
from .reminder_settings import TenantReminderSettings  # noqa: F401
