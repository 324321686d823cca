# facility_compliance/services/recalculation.py
from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from facility_compliance.models.compliance_record import ComplianceRecord
from facility_compliance.models.enums import ComplianceStatus, NotificationStatus
from facility_compliance.models.facility import Facility
from facility_compliance.models.inspection_schedule import InspectionSchedule
from facility_compliance.models.notification import NotificationQueueEntry
from facility_compliance.services.compliance_calculator import ComplianceResult, calculate
from facility_compliance.services.inspection_tracker import (
    get_schedule,
    refresh_overdue_flags,
    sync_default_schedule,
    DEFAULT_INSPECTION_TYPE,
)

log = logging.getLogger("facility_compliance.recalc")

# Facility fields that feed the compliance calculator (tenant is copied through)
COMPLIANCE_FIELDS = frozenset(
    {"production_start_date", "plan_completed_date", "pe_stamp_date", "tenant_id"}
)
# Facility fields that feed the default inspection schedule
SCHEDULE_FIELDS = frozenset({"inspection_frequency_days", "last_inspection_date", "tenant_id"})

_DERIVED = (
    "tenant_id",
    "production_start_date",
    "completion_date",
    "calculated_for",
    "initial_due_date",
    "renewal_cycle_number",
    "current_renewal_due_date",
    "status",
    "is_compliant",
    "days_until_due",
)


def _snapshot(record: ComplianceRecord) -> tuple:
    return tuple(getattr(record, f) for f in _DERIVED)


def _write_record(
    record: ComplianceRecord,
    facility: Facility,
    result: ComplianceResult,
    today: date,
) -> bool:
    """Replace every derived field at once (never patched); returns True if anything changed."""
    before = _snapshot(record)

    record.tenant_id = facility.tenant_id
    record.production_start_date = facility.production_start_date
    record.completion_date = facility.effective_completion_date
    record.calculated_for = today
    record.initial_due_date = result.initial_due_date
    record.renewal_cycle_number = result.renewal_cycle_number
    record.current_renewal_due_date = result.current_renewal_due_date
    record.status = result.status.value
    record.is_compliant = result.is_compliant
    record.days_until_due = result.days_until_due

    return _snapshot(record) != before


def get_record(db: Session, facility_id: int) -> Optional[ComplianceRecord]:
    return (
        db.query(ComplianceRecord)
        .filter(ComplianceRecord.facility_id == facility_id)
        .first()
    )


def recalculate_facility(
    db: Session,
    facility_id: int,
    today: date,
    *,
    _retry: bool = True,
) -> Optional[ComplianceRecord]:
    """
    Recompute and persist the compliance record for one facility.

    - facility gone            -> no-op (returns None)
    - no record + not started  -> nothing is created (records appear once the clock starts)
    - unchanged inputs         -> no write; the stored row stays identical
    Concurrent first-time creation for the same facility collides on the unique
    facility_id; the loser retries once as an update (last write wins).
    """
    facility = db.get(Facility, facility_id)
    if facility is None:
        log.debug("recalculate skipped: facility %s no longer exists", facility_id)
        return None

    completion = facility.effective_completion_date
    if (
        facility.production_start_date is not None
        and completion is not None
        and completion < facility.production_start_date
    ):
        log.warning(
            "data quality: facility %s completion date %s precedes production start %s",
            facility_id,
            completion,
            facility.production_start_date,
        )

    result = calculate(facility.production_start_date, completion, today)

    record = (
        db.query(ComplianceRecord)
        .filter(ComplianceRecord.facility_id == facility_id)
        .with_for_update()
        .first()
    )
    if record is None:
        if result.status == ComplianceStatus.NOT_STARTED:
            db.commit()  # ends the locking read
            return None
        record = ComplianceRecord(facility_id=facility_id)
        db.add(record)

    if not _write_record(record, facility, result, today):
        # nothing to write, but the row lock from with_for_update must still be released
        db.commit()
        return record

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        if not _retry:
            raise
        log.info("compliance record for facility %s created concurrently; retrying as update", facility_id)
        return recalculate_facility(db, facility_id, today, _retry=False)

    db.refresh(record)
    return record


def on_facility_written(
    db: Session,
    facility: Facility,
    *,
    today: date,
    changed_fields: Optional[Iterable[str]] = None,
    created: bool = False,
) -> Optional[ComplianceRecord]:
    """
    Explicit step of every facility write path (create/update).

    Runs the compliance recalculation when a calculator input (or the tenant)
    changed, or on creation when either date is already present, and keeps the
    default inspection schedule in step with the facility's cadence fields.
    """
    changed = set(changed_fields or ())

    if "tenant_id" in changed:
        db.query(InspectionSchedule).filter(
            InspectionSchedule.facility_id == facility.id
        ).update({InspectionSchedule.tenant_id: facility.tenant_id}, synchronize_session="fetch")
        # undelivered reminders follow the facility; sent history stays with the old tenant
        db.query(NotificationQueueEntry).filter(
            NotificationQueueEntry.facility_id == facility.id,
            NotificationQueueEntry.status == NotificationStatus.PENDING.value,
        ).update({NotificationQueueEntry.tenant_id: facility.tenant_id}, synchronize_session="fetch")
        db.commit()

    touch_schedule = False
    if created:
        touch_schedule = facility.last_inspection_date is not None
    elif changed & SCHEDULE_FIELDS:
        touch_schedule = (
            facility.last_inspection_date is not None
            or get_schedule(db, facility.id, DEFAULT_INSPECTION_TYPE) is not None
        )
    if touch_schedule:
        sync_default_schedule(db, facility, today)
        db.commit()

    if created:
        needs_recalc = (
            facility.production_start_date is not None
            or facility.effective_completion_date is not None
        )
    else:
        needs_recalc = bool(changed & COMPLIANCE_FIELDS)

    if not needs_recalc:
        return get_record(db, facility.id)
    return recalculate_facility(db, facility.id, today)


def recalculate_all(db: Session, today: date, *, tenant_id: Optional[int] = None) -> int:
    """
    Backfill / daily refresh: recompute every facility's record (optionally one tenant)
    and refresh inspection overdue flags. Returns the number of compliance records held.
    """
    q = db.query(Facility.id)
    if tenant_id is not None:
        q = q.filter(Facility.tenant_id == tenant_id)
    ids = [int(fid) for (fid,) in q.order_by(Facility.id.asc()).all()]

    written = 0
    for fid in ids:
        if recalculate_facility(db, fid, today) is not None:
            written += 1

    refresh_overdue_flags(db, today, tenant_id=tenant_id)
    return written
