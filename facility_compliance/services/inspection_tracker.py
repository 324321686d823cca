# facility_compliance/services/inspection_tracker.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from facility_compliance.core.errors import FacilityNotFound
from facility_compliance.models.enums import InspectionType
from facility_compliance.models.facility import Facility
from facility_compliance.models.inspection_schedule import InspectionSchedule
from facility_compliance.utils.dates import add_days

log = logging.getLogger("facility_compliance.inspections")

DEFAULT_FREQUENCY_DAYS = 365
DEFAULT_INSPECTION_TYPE = InspectionType.SPCC


@dataclass(frozen=True)
class ScheduleState:
    next_due_date: Optional[date]
    is_overdue: bool


def compute_schedule(
    last_inspection_date: Optional[date],
    frequency_days: int,
    today: date,
) -> ScheduleState:
    """
    next_due = last + frequency (fixed day count, not calendar months).
    No renewal rollover: a missed inspection stays overdue until a new one is recorded.
    """
    if frequency_days is None or int(frequency_days) <= 0:
        raise ValueError("frequency_days must be a positive integer")
    if last_inspection_date is None:
        return ScheduleState(next_due_date=None, is_overdue=False)
    next_due = add_days(last_inspection_date, int(frequency_days))
    return ScheduleState(next_due_date=next_due, is_overdue=next_due < today)


def _apply(schedule: InspectionSchedule, today: date) -> bool:
    """Recompute derived fields in place; returns True if anything changed."""
    state = compute_schedule(schedule.last_inspection_date, schedule.frequency_days, today)
    changed = (
        schedule.next_due_date != state.next_due_date
        or bool(schedule.is_overdue) != state.is_overdue
    )
    schedule.next_due_date = state.next_due_date
    schedule.is_overdue = state.is_overdue
    return changed


def get_schedule(
    db: Session, facility_id: int, inspection_type: InspectionType | str
) -> Optional[InspectionSchedule]:
    itype = InspectionType(inspection_type).value
    return (
        db.query(InspectionSchedule)
        .filter(
            InspectionSchedule.facility_id == facility_id,
            InspectionSchedule.inspection_type == itype,
        )
        .first()
    )


def _get_or_create(
    db: Session,
    facility: Facility,
    inspection_type: InspectionType | str,
    frequency_days: Optional[int] = None,
) -> InspectionSchedule:
    sched = get_schedule(db, facility.id, inspection_type)
    if sched is None:
        sched = InspectionSchedule(
            facility_id=facility.id,
            tenant_id=facility.tenant_id,
            inspection_type=InspectionType(inspection_type).value,
            frequency_days=int(frequency_days or DEFAULT_FREQUENCY_DAYS),
            is_overdue=False,
            is_active=True,
        )
        db.add(sched)
    return sched


def sync_default_schedule(db: Session, facility: Facility, today: date) -> InspectionSchedule:
    """
    Mirror the facility's own cadence fields (frequency + last inspection) into its
    default schedule. Caller commits.
    """
    sched = _get_or_create(db, facility, DEFAULT_INSPECTION_TYPE, facility.inspection_frequency_days)
    sched.tenant_id = facility.tenant_id
    sched.frequency_days = int(facility.inspection_frequency_days or DEFAULT_FREQUENCY_DAYS)
    if sched.last_inspection_date != facility.last_inspection_date:
        sched.last_inspection_date = facility.last_inspection_date
        sched.reminder_sent_at = None
    _apply(sched, today)
    return sched


def record_inspection(
    db: Session,
    facility_id: int,
    inspection_date: date,
    *,
    today: date,
    inspection_type: InspectionType | str = DEFAULT_INSPECTION_TYPE,
) -> InspectionSchedule:
    """
    Inspection completed: advance last_inspection_date and recompute the schedule.
    An older inspection than the one on file never moves the schedule backwards.
    """
    facility = db.get(Facility, facility_id)
    if facility is None:
        raise FacilityNotFound(facility_id)

    itype = InspectionType(inspection_type)
    freq = facility.inspection_frequency_days if itype == DEFAULT_INSPECTION_TYPE else None
    sched = _get_or_create(db, facility, itype, freq)

    if sched.last_inspection_date is None or inspection_date >= sched.last_inspection_date:
        sched.last_inspection_date = inspection_date
        sched.reminder_sent_at = None
        if itype == DEFAULT_INSPECTION_TYPE:
            facility.last_inspection_date = inspection_date
    else:
        log.info(
            "Ignoring out-of-order inspection facility=%s type=%s date=%s (on file: %s)",
            facility_id,
            itype.value,
            inspection_date,
            sched.last_inspection_date,
        )

    _apply(sched, today)
    db.commit()
    db.refresh(sched)
    return sched


def set_frequency(
    db: Session,
    facility_id: int,
    frequency_days: int,
    *,
    today: date,
    inspection_type: InspectionType | str = DEFAULT_INSPECTION_TYPE,
    is_active: Optional[bool] = None,
) -> InspectionSchedule:
    if int(frequency_days) <= 0:
        raise ValueError("frequency_days must be a positive integer")

    facility = db.get(Facility, facility_id)
    if facility is None:
        raise FacilityNotFound(facility_id)

    itype = InspectionType(inspection_type)
    sched = _get_or_create(db, facility, itype, frequency_days)
    sched.frequency_days = int(frequency_days)
    if is_active is not None:
        sched.is_active = bool(is_active)
    if itype == DEFAULT_INSPECTION_TYPE:
        facility.inspection_frequency_days = int(frequency_days)

    _apply(sched, today)
    db.commit()
    db.refresh(sched)
    return sched


def refresh_overdue_flags(db: Session, today: date, *, tenant_id: Optional[int] = None) -> int:
    """Batch refresh of is_overdue for active schedules; returns number of rows changed."""
    q = db.query(InspectionSchedule).filter(
        InspectionSchedule.is_active.is_(True),
        InspectionSchedule.next_due_date.isnot(None),
    )
    if tenant_id is not None:
        q = q.filter(InspectionSchedule.tenant_id == tenant_id)

    changed = 0
    for sched in q.all():
        is_overdue = sched.next_due_date < today
        if bool(sched.is_overdue) != is_overdue:
            sched.is_overdue = is_overdue
            changed += 1
    if changed:
        db.commit()
    return changed
