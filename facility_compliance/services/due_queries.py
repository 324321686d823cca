# facility_compliance/services/due_queries.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterator, List, Optional, Tuple

from sqlalchemy.orm import Session

from facility_compliance.models.compliance_record import ComplianceRecord
from facility_compliance.models.enums import ComplianceStatus, NotificationType
from facility_compliance.models.facility import Facility
from facility_compliance.models.inspection_schedule import InspectionSchedule
from facility_compliance.services.compliance_calculator import ComplianceResult, calculate
from facility_compliance.utils.dates import add_days, days_between, utcnow

SOURCE_SPCC = "spcc"
SOURCE_INSPECTION = "inspection"
SOURCES = (SOURCE_SPCC, SOURCE_INSPECTION)

DEFAULT_COOLDOWN_HOURS = 24

# SPCC states that still need action for the current due date
_SPCC_ACTION_STATUSES = {
    ComplianceStatus.INITIAL_DUE,
    ComplianceStatus.RENEWAL_DUE,
    ComplianceStatus.EXPIRING,
}


@dataclass
class DueItem:
    facility_id: int
    facility_name: str
    tenant_id: int
    source: str
    notification_type: NotificationType
    due_date: date
    days_until_due: int
    status: str
    inspection_type: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def days_overdue(self) -> int:
        return max(0, -self.days_until_due)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "facility_id": self.facility_id,
            "facility_name": self.facility_name,
            "tenant_id": self.tenant_id,
            "source": self.source,
            "inspection_type": self.inspection_type,
            "notification_type": self.notification_type.value,
            "due_date": self.due_date,
            "days_until_due": self.days_until_due,
            "days_overdue": self.days_overdue,
            "status": self.status,
            "metadata": dict(self.metadata),
        }


def notification_type_for(source: str, status: str) -> NotificationType:
    if source == SOURCE_SPCC:
        if status == ComplianceStatus.OVERDUE.value:
            return NotificationType.SPCC_OVERDUE
        if status == ComplianceStatus.INITIAL_DUE.value:
            return NotificationType.SPCC_INITIAL_DUE
        return NotificationType.SPCC_RENEWAL_DUE
    if status == "overdue":
        return NotificationType.INSPECTION_OVERDUE
    return NotificationType.INSPECTION_DUE


def _validate_filter(type_filter: Optional[str]) -> Optional[str]:
    if type_filter is None:
        return None
    v = type_filter.strip().lower()
    if v not in SOURCES:
        raise ValueError(f"Invalid type filter {type_filter!r} (must be 'spcc' or 'inspection').")
    return v


def _recently_notified(ts: Optional[datetime], now: datetime, cooldown_hours: int) -> bool:
    return ts is not None and ts > now - timedelta(hours=cooldown_hours)


def _derive(record: ComplianceRecord, today: date) -> ComplianceResult:
    # Records computed on an earlier day are re-derived from their stored inputs (read-only).
    return calculate(record.production_start_date, record.completion_date, today)


# ---- Row producers -------------------------------------------------------------
def _spcc_rows(
    db: Session, tenant_id: int, today: date
) -> Iterator[Tuple[ComplianceRecord, Facility, ComplianceResult]]:
    rows = (
        db.query(ComplianceRecord, Facility)
        .join(Facility, Facility.id == ComplianceRecord.facility_id)
        .filter(
            ComplianceRecord.tenant_id == tenant_id,
            ComplianceRecord.production_start_date.isnot(None),
        )
        .all()
    )
    for record, facility in rows:
        result = _derive(record, today)
        if result.current_renewal_due_date is None:
            continue
        yield record, facility, result


def _spcc_item(record: ComplianceRecord, facility: Facility, result: ComplianceResult, today: date) -> DueItem:
    status = result.status.value
    return DueItem(
        facility_id=int(facility.id),
        facility_name=facility.name,
        tenant_id=int(record.tenant_id),
        source=SOURCE_SPCC,
        notification_type=notification_type_for(SOURCE_SPCC, status),
        due_date=result.current_renewal_due_date,
        days_until_due=days_between(today, result.current_renewal_due_date),
        status=status,
        metadata={
            "initial_due_date": result.initial_due_date.isoformat() if result.initial_due_date else None,
            "renewal_cycle_number": result.renewal_cycle_number,
            "is_initial_plan": result.renewal_cycle_number == 0,
            "last_notified_at": record.last_notified_at.isoformat() if record.last_notified_at else None,
        },
    )


def _inspection_query(db: Session, tenant_id: int):
    return (
        db.query(InspectionSchedule, Facility)
        .join(Facility, Facility.id == InspectionSchedule.facility_id)
        .filter(
            InspectionSchedule.tenant_id == tenant_id,
            InspectionSchedule.is_active.is_(True),
            InspectionSchedule.next_due_date.isnot(None),
        )
    )


def _inspection_item(sched: InspectionSchedule, facility: Facility, today: date) -> DueItem:
    days = days_between(today, sched.next_due_date)
    status = "overdue" if days < 0 else ("due_soon" if days <= 7 else "upcoming")
    return DueItem(
        facility_id=int(facility.id),
        facility_name=facility.name,
        tenant_id=int(sched.tenant_id),
        source=SOURCE_INSPECTION,
        notification_type=notification_type_for(SOURCE_INSPECTION, status),
        due_date=sched.next_due_date,
        days_until_due=days,
        status=status,
        inspection_type=sched.inspection_type,
        metadata={
            "last_inspection_date": sched.last_inspection_date.isoformat() if sched.last_inspection_date else None,
            "frequency_days": sched.frequency_days,
            "last_notified_at": sched.reminder_sent_at.isoformat() if sched.reminder_sent_at else None,
        },
    )


# ---- Public read projections ---------------------------------------------------
def upcoming_due(
    db: Session,
    tenant_id: int,
    horizon_days: int,
    type_filter: Optional[str] = None,
    *,
    today: date,
    now: Optional[datetime] = None,
    cooldown_hours: int = DEFAULT_COOLDOWN_HOURS,
) -> List[DueItem]:
    """
    Items due within [today, today + horizon_days]:
      - SPCC records still awaiting action for their current due date
        (initial plan in grace period, renewal expiring, or not compliant)
      - active inspection schedules with next_due_date in the window
    Facilities notified (per source/type) within the cooldown are left out.
    Sorted by due date, then facility name. Never mutates state.
    """
    if horizon_days < 0:
        raise ValueError("horizon_days must be >= 0")
    source = _validate_filter(type_filter)
    now = now or utcnow()
    window_end = add_days(today, horizon_days)

    items: List[DueItem] = []

    if source in (None, SOURCE_SPCC):
        for record, facility, result in _spcc_rows(db, tenant_id, today):
            due = result.current_renewal_due_date
            if not (today <= due <= window_end):
                continue
            if result.is_compliant and result.status not in _SPCC_ACTION_STATUSES:
                continue
            if _recently_notified(record.last_notified_at, now, cooldown_hours):
                continue
            items.append(_spcc_item(record, facility, result, today))

    if source in (None, SOURCE_INSPECTION):
        rows = (
            _inspection_query(db, tenant_id)
            .filter(
                InspectionSchedule.next_due_date >= today,
                InspectionSchedule.next_due_date <= window_end,
            )
            .all()
        )
        for sched, facility in rows:
            if _recently_notified(sched.reminder_sent_at, now, cooldown_hours):
                continue
            items.append(_inspection_item(sched, facility, today))

    items.sort(key=lambda i: (i.due_date, i.facility_name or "", i.facility_id, i.source))
    return items


def overdue(
    db: Session,
    tenant_id: int,
    type_filter: Optional[str] = None,
    *,
    today: date,
) -> List[DueItem]:
    """
    Overdue SPCC plans and overdue inspections, most days overdue first.
    No cooldown filtering here: this backs dashboards as well as the scan.
    """
    source = _validate_filter(type_filter)
    items: List[DueItem] = []

    if source in (None, SOURCE_SPCC):
        for record, facility, result in _spcc_rows(db, tenant_id, today):
            if result.status != ComplianceStatus.OVERDUE:
                continue
            items.append(_spcc_item(record, facility, result, today))

    if source in (None, SOURCE_INSPECTION):
        rows = _inspection_query(db, tenant_id).filter(InspectionSchedule.next_due_date < today).all()
        for sched, facility in rows:
            items.append(_inspection_item(sched, facility, today))

    items.sort(key=lambda i: (-i.days_overdue, i.facility_name or "", i.facility_id, i.source))
    return items
