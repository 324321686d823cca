# facility_compliance/models/enums.py
from enum import Enum


class ComplianceStatus(str, Enum):
    NOT_STARTED = "not_started"
    INITIAL_DUE = "initial_due"
    INITIAL_COMPLETE = "initial_complete"
    RENEWAL_DUE = "renewal_due"
    RENEWAL_COMPLETE = "renewal_complete"
    EXPIRING = "expiring"
    OVERDUE = "overdue"


class NotificationType(str, Enum):
    SPCC_INITIAL_DUE = "spcc_initial_due"
    SPCC_RENEWAL_DUE = "spcc_renewal_due"
    SPCC_OVERDUE = "spcc_overdue"
    INSPECTION_DUE = "inspection_due"
    INSPECTION_OVERDUE = "inspection_overdue"
    DAILY_DIGEST = "daily_digest"

    @property
    def is_spcc(self) -> bool:
        return self.value.startswith("spcc_")

    @property
    def is_inspection(self) -> bool:
        return self.value.startswith("inspection_")


class NotificationStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class InspectionType(str, Enum):
    SPCC = "spcc"
    SAFETY = "safety"
    ENVIRONMENTAL = "environmental"
    GENERAL = "general"
    CUSTOM = "custom"


# Plain tuples for CheckConstraints (portable across SQLite/Postgres)
COMPLIANCE_STATUSES = tuple(s.value for s in ComplianceStatus)
NOTIFICATION_TYPES = tuple(t.value for t in NotificationType)
NOTIFICATION_STATUSES = tuple(s.value for s in NotificationStatus)
INSPECTION_TYPES = tuple(t.value for t in InspectionType)
