# facility_compliance/services/notification_queue.py
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Protocol

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from facility_compliance.core.errors import InvalidTransition, NotificationNotFound
from facility_compliance.core.settings import NotificationQueueConfig
from facility_compliance.models.compliance_record import ComplianceRecord
from facility_compliance.models.enums import NotificationStatus, NotificationType
from facility_compliance.models.inspection_schedule import InspectionSchedule
from facility_compliance.models.notification import NotificationHistoryEntry, NotificationQueueEntry
from facility_compliance.services.messages import render_message

log = logging.getLogger("facility_compliance.queue")

_EPOCH = datetime(1970, 1, 1)

PENDING = NotificationStatus.PENDING.value
SENT = NotificationStatus.SENT.value
FAILED = NotificationStatus.FAILED.value


# ---------------------------------
# Dedup helpers
# ---------------------------------
def cooldown_bucket(ts: datetime, cooldown_hours: int) -> int:
    """Index of the fixed cooldown-sized window that contains ts."""
    return int((ts - _EPOCH).total_seconds() // (cooldown_hours * 3600))


def dedupe_key(
    *,
    tenant_id: int,
    facility_id: Optional[int],
    notification_type: NotificationType,
    bucket: int,
    inspection_type: Optional[str] = None,
) -> str:
    subject = f"f{facility_id}" if facility_id is not None else f"t{tenant_id}"
    kind = f"{notification_type.value}:{inspection_type}" if inspection_type else notification_type.value
    return f"{subject}:{kind}:{bucket}"


def _subject_filter(
    q,
    *,
    tenant_id: int,
    facility_id: Optional[int],
    inspection_type: Optional[str] = None,
):
    if facility_id is None:
        return q.filter(
            NotificationQueueEntry.tenant_id == tenant_id,
            NotificationQueueEntry.facility_id.is_(None),
        )
    q = q.filter(NotificationQueueEntry.facility_id == facility_id)
    if inspection_type is None:
        return q.filter(NotificationQueueEntry.inspection_type.is_(None))
    return q.filter(NotificationQueueEntry.inspection_type == inspection_type)


def in_cooldown(
    db: Session,
    *,
    tenant_id: int,
    facility_id: Optional[int],
    notification_type: NotificationType,
    now: datetime,
    cooldown_hours: int,
    inspection_type: Optional[str] = None,
) -> bool:
    """
    True if the (facility, type) pair already has a pending entry, or one that was
    sent within the cooldown window. Inspection reminders are tracked per
    schedule, i.e. per (facility, type, inspection type).
    """
    since = now - timedelta(hours=cooldown_hours)
    q = db.query(NotificationQueueEntry.id).filter(
        NotificationQueueEntry.notification_type == notification_type.value,
        or_(
            NotificationQueueEntry.status == PENDING,
            (NotificationQueueEntry.status == SENT) & (NotificationQueueEntry.sent_at > since),
        ),
    )
    q = _subject_filter(q, tenant_id=tenant_id, facility_id=facility_id)
    return q.first() is not None


# ---------------------------------
# Enqueue
# ---------------------------------
def enqueue(
    db: Session,
    *,
    tenant_id: int,
    facility_id: Optional[int],
    notification_type: NotificationType | str,
    payload: Dict[str, Any],
    now: datetime,
    config: NotificationQueueConfig,
    due_date: Optional[date] = None,
    inspection_type: Optional[str] = None,
) -> Optional[NotificationQueueEntry]:
    """
    Insert a pending entry unless the pair is cooling down.

    The cooldown check is backed by the unique dedupe_key
    (subject, type, inspection type, bucket):
    a concurrent scan that passes the check at the same moment loses on insert
    and is reported as skipped (None), never as an error.
    """
    ntype = NotificationType(notification_type)
    itype = (inspection_type or (payload or {}).get("inspection_type")) if ntype.is_inspection else None

    if in_cooldown(
        db,
        tenant_id=tenant_id,
        facility_id=facility_id,
        notification_type=ntype,
        now=now,
        cooldown_hours=config.cooldown_hours,
        inspection_type=itype,
    ):
        log.debug(
            "enqueue skipped (cooldown) tenant=%s facility=%s type=%s inspection=%s",
            tenant_id,
            facility_id,
            ntype.value,
            itype,
        )
        return None

    rendered = render_message(ntype, payload)
    entry = NotificationQueueEntry(
        tenant_id=tenant_id,
        facility_id=facility_id,
        notification_type=ntype.value,
        inspection_type=itype,
        subject=rendered["subject"],
        message=rendered["message"],
        payload=payload,
        due_date=due_date,
        scheduled_for=now + timedelta(minutes=config.lead_minutes),
        status=PENDING,
        retry_count=0,
        dedupe_key=dedupe_key(
            tenant_id=tenant_id,
            facility_id=facility_id,
            notification_type=ntype,
            bucket=cooldown_bucket(now, config.cooldown_hours),
            inspection_type=itype,
        ),
        created_at=now,
        updated_at=now,
    )
    db.add(entry)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        log.info(
            "enqueue lost race on dedupe key tenant=%s facility=%s type=%s",
            tenant_id,
            facility_id,
            ntype.value,
        )
        return None

    db.refresh(entry)
    return entry


# ---------------------------------
# Delivery-side transitions
# ---------------------------------
def _get_entry(db: Session, entry_id: int) -> NotificationQueueEntry:
    entry = db.get(NotificationQueueEntry, entry_id)
    if entry is None:
        raise NotificationNotFound("Notification", entry_id)
    return entry


def due_entries(
    db: Session,
    *,
    now: datetime,
    limit: int,
    tenant_id: Optional[int] = None,
) -> List[NotificationQueueEntry]:
    """Pending entries whose scheduled_for has arrived and that no worker currently holds."""
    q = db.query(NotificationQueueEntry).filter(
        NotificationQueueEntry.status == PENDING,
        NotificationQueueEntry.scheduled_for <= now,
        or_(
            NotificationQueueEntry.locked_until.is_(None),
            NotificationQueueEntry.locked_until <= now,
        ),
    )
    if tenant_id is not None:
        q = q.filter(NotificationQueueEntry.tenant_id == tenant_id)
    return (
        q.order_by(NotificationQueueEntry.scheduled_for.asc(), NotificationQueueEntry.id.asc())
        .limit(limit)
        .all()
    )


def claim_entry(db: Session, entry_id: int, *, now: datetime, config: NotificationQueueConfig) -> bool:
    """
    Atomic compare-and-set lease: only one worker's UPDATE matches a pending,
    unleased row. Returns True if this caller owns the entry until the lease ends.
    """
    res = db.execute(
        update(NotificationQueueEntry)
        .where(
            NotificationQueueEntry.id == entry_id,
            NotificationQueueEntry.status == PENDING,
            or_(
                NotificationQueueEntry.locked_until.is_(None),
                NotificationQueueEntry.locked_until <= now,
            ),
        )
        .values(locked_until=now + timedelta(seconds=config.claim_lease_seconds))
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return res.rowcount == 1


def _stamp_last_notified(db: Session, entry: NotificationQueueEntry, now: datetime) -> None:
    if entry.facility_id is None:
        return
    ntype = NotificationType(entry.notification_type)
    if ntype.is_spcc:
        db.query(ComplianceRecord).filter(
            ComplianceRecord.facility_id == entry.facility_id
        ).update({ComplianceRecord.last_notified_at: now}, synchronize_session="fetch")
    elif ntype.is_inspection:
        itype = entry.inspection_type or (entry.payload or {}).get("inspection_type")
        q = db.query(InspectionSchedule).filter(InspectionSchedule.facility_id == entry.facility_id)
        if itype:
            q = q.filter(InspectionSchedule.inspection_type == itype)
        q.update({InspectionSchedule.reminder_sent_at: now}, synchronize_session="fetch")


def mark_sent(db: Session, entry_id: int, *, now: datetime) -> NotificationHistoryEntry:
    """
    pending -> sent (terminal). Appends exactly one history row and stamps the
    per-source "last notified" marker used by the due queries.
    """
    entry = _get_entry(db, entry_id)
    if entry.status != PENDING:
        raise InvalidTransition(entry.id, entry.status, SENT)

    entry.status = SENT
    entry.sent_at = now
    entry.locked_until = None
    entry.updated_at = now

    hist = NotificationHistoryEntry(
        tenant_id=entry.tenant_id,
        facility_id=entry.facility_id,
        queue_entry_id=entry.id,
        notification_type=entry.notification_type,
        subject=entry.subject,
        message=entry.message,
        payload=dict(entry.payload or {}),
        sent_at=now,
        created_at=now,
    )
    db.add(hist)
    _stamp_last_notified(db, entry, now)
    db.commit()
    db.refresh(hist)
    return hist


def retry_backoff(retry_count: int, config: NotificationQueueConfig) -> timedelta:
    """Exponential: base, 2*base, 4*base, ..."""
    return timedelta(minutes=config.retry_backoff_minutes * (2 ** max(0, retry_count - 1)))


def mark_failed(
    db: Session,
    entry_id: int,
    error: str,
    *,
    now: datetime,
    config: NotificationQueueConfig,
) -> NotificationQueueEntry:
    """
    Failed attempt: retry_count += 1 and the error is recorded. While retries
    remain the entry stays pending and is rescheduled with backoff; once
    retry_count exceeds max_retries it becomes terminal 'failed' and releases
    its dedupe claim.
    """
    entry = _get_entry(db, entry_id)
    if entry.status != PENDING:
        raise InvalidTransition(entry.id, entry.status, FAILED)

    entry.retry_count = int(entry.retry_count or 0) + 1
    entry.error_message = (error or "delivery failed")[:2000]
    entry.locked_until = None
    entry.updated_at = now

    if entry.retry_count > config.max_retries:
        entry.status = FAILED
        entry.dedupe_key = None
        log.error(
            "notification %s failed permanently after %s attempts: %s",
            entry.id,
            entry.retry_count,
            entry.error_message,
        )
    else:
        entry.scheduled_for = now + retry_backoff(entry.retry_count, config)
        log.warning(
            "notification %s delivery failed (attempt %s, retry at %s): %s",
            entry.id,
            entry.retry_count,
            entry.scheduled_for.isoformat(),
            entry.error_message,
        )

    db.commit()
    db.refresh(entry)
    return entry


# ---------------------------------
# Delivery collaborator
# ---------------------------------
class DeliveryError(Exception):
    """Raised by a deliverer when a message could not be handed off."""


class Deliverer(Protocol):
    def deliver(self, entry: NotificationQueueEntry) -> None:
        ...


class LogDeliverer:
    """Transport-agnostic placeholder channel: writes the rendered message to the log."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.log = logger or logging.getLogger("facility_compliance.delivery")

    def deliver(self, entry: NotificationQueueEntry) -> None:
        self.log.info(
            "deliver notification=%s tenant=%s facility=%s type=%s subject=%r",
            entry.id,
            entry.tenant_id,
            entry.facility_id,
            entry.notification_type,
            entry.subject,
        )


def process_pending(
    db: Session,
    deliverer: Deliverer,
    *,
    now: datetime,
    config: NotificationQueueConfig,
    tenant_id: Optional[int] = None,
) -> Dict[str, int]:
    """One worker pass: claim due entries, hand them to the deliverer, record outcomes."""
    counters = {"claimed": 0, "sent": 0, "retrying": 0, "failed": 0}

    candidates = [e.id for e in due_entries(db, now=now, limit=config.batch_size, tenant_id=tenant_id)]
    for entry_id in candidates:
        if not claim_entry(db, entry_id, now=now, config=config):
            continue
        counters["claimed"] += 1
        entry = _get_entry(db, entry_id)
        try:
            deliverer.deliver(entry)
        except Exception as exc:
            updated = mark_failed(db, entry_id, str(exc) or type(exc).__name__, now=now, config=config)
            counters["failed" if updated.status == FAILED else "retrying"] += 1
        else:
            mark_sent(db, entry_id, now=now)
            counters["sent"] += 1
    return counters


# ---------------------------------
# Operator view
# ---------------------------------
def list_queue(
    db: Session,
    *,
    tenant_id: Optional[int] = None,
    status: Optional[str] = None,
    notification_type: Optional[str] = None,
    facility_id: Optional[int] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[NotificationQueueEntry]:
    q = db.query(NotificationQueueEntry)
    if tenant_id is not None:
        q = q.filter(NotificationQueueEntry.tenant_id == tenant_id)
    if status:
        q = q.filter(NotificationQueueEntry.status == NotificationStatus(status.lower()).value)
    if notification_type:
        q = q.filter(NotificationQueueEntry.notification_type == NotificationType(notification_type).value)
    if facility_id is not None:
        q = q.filter(NotificationQueueEntry.facility_id == facility_id)
    return (
        q.order_by(NotificationQueueEntry.created_at.desc(), NotificationQueueEntry.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
