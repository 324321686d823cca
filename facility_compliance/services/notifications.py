# facility_compliance/services/notifications.py
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from facility_compliance.core.settings import NotificationQueueConfig
from facility_compliance.models.enums import NotificationType
from facility_compliance.models.facility import Facility
from facility_compliance.services.due_queries import DueItem, overdue, upcoming_due
from facility_compliance.services.notification_queue import (
    Deliverer,
    LogDeliverer,
    enqueue,
    process_pending,
)
from facility_compliance.services.recalculation import recalculate_all
from facility_compliance.services.reminder_settings import ReminderOffsets, reminder_offsets

log = logging.getLogger("facility_compliance.queue")


# ---------------------------------
# Helpers
# ---------------------------------
def _payload_for(item: DueItem) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "facility_id": item.facility_id,
        "facility_name": item.facility_name,
        "source": item.source,
        "status": item.status,
        "due_date": item.due_date.isoformat(),
        "days_until_due": item.days_until_due,
    }
    if item.inspection_type:
        payload["inspection_type"] = item.inspection_type
    if "renewal_cycle_number" in item.metadata:
        payload["renewal_cycle_number"] = item.metadata["renewal_cycle_number"]
    return payload


def is_reminder_day(item: DueItem, offsets: ReminderOffsets) -> bool:
    return item.days_until_due in offsets.for_type(item.notification_type)


def tenant_ids(db: Session) -> List[int]:
    rows = db.query(Facility.tenant_id).distinct().order_by(Facility.tenant_id.asc()).all()
    return [int(tid) for (tid,) in rows]


# ---------------------------------
# Producers
# ---------------------------------
def enqueue_candidates(
    db: Session,
    items: Iterable[DueItem],
    *,
    now: datetime,
    config: NotificationQueueConfig,
) -> int:
    """Enqueue one pending entry per due item; cooldown-blocked items are skipped."""
    created = 0
    for item in items:
        entry = enqueue(
            db,
            tenant_id=item.tenant_id,
            facility_id=item.facility_id,
            notification_type=item.notification_type,
            payload=_payload_for(item),
            due_date=item.due_date,
            inspection_type=item.inspection_type,
            now=now,
            config=config,
        )
        if entry is not None:
            created += 1
    return created


def enqueue_daily_digest(
    db: Session,
    tenant_id: int,
    *,
    today: date,
    now: datetime,
    config: NotificationQueueConfig,
) -> bool:
    """
    One tenant-wide summary per cooldown window. Skipped when nothing is overdue
    or upcoming. Counts ignore per-facility cooldowns so the digest reflects the
    whole picture.
    """
    n_over = len(overdue(db, tenant_id, today=today))
    n_up = len(
        upcoming_due(db, tenant_id, config.horizon_days, today=today, now=now, cooldown_hours=0)
    )
    if n_over == 0 and n_up == 0:
        return False

    entry = enqueue(
        db,
        tenant_id=tenant_id,
        facility_id=None,
        notification_type=NotificationType.DAILY_DIGEST,
        payload={
            "overdue_count": n_over,
            "upcoming_count": n_up,
            "horizon_days": config.horizon_days,
            "as_of": today.isoformat(),
        },
        now=now,
        config=config,
    )
    return entry is not None


# ---------------------------------
# Cycles
# ---------------------------------
def run_scan_cycle(
    db: Session,
    tenant_id: int,
    *,
    today: date,
    now: datetime,
    config: NotificationQueueConfig,
    include_digest: bool = False,
) -> Dict[str, int]:
    """
    Daily scan for one tenant: refresh derived records, collect overdue and
    upcoming items and enqueue reminders for them. Returns counters.
    """
    recalculated = recalculate_all(db, today, tenant_id=tenant_id)
    offsets = reminder_offsets(db, tenant_id, config)

    overdue_items = overdue(db, tenant_id, today=today)
    # Upcoming reminders only go out on the tenant's offset days.
    upcoming_items = [
        item
        for item in upcoming_due(
            db,
            tenant_id,
            max(config.horizon_days, offsets.max_lookahead),
            today=today,
            now=now,
            cooldown_hours=config.cooldown_hours,
        )
        if is_reminder_day(item, offsets)
    ]

    created_overdue = enqueue_candidates(db, overdue_items, now=now, config=config)
    created_upcoming = enqueue_candidates(db, upcoming_items, now=now, config=config)
    created_digest = 0
    if include_digest and enqueue_daily_digest(db, tenant_id, today=today, now=now, config=config):
        created_digest = 1

    candidates = len(overdue_items) + len(upcoming_items)
    created = created_overdue + created_upcoming
    log.info(
        "scan tenant=%s today=%s candidates=%s enqueued=%s skipped=%s",
        tenant_id,
        today.isoformat(),
        candidates,
        created,
        candidates - created,
    )
    return {
        "recalculated": recalculated,
        "overdue_candidates": len(overdue_items),
        "upcoming_candidates": len(upcoming_items),
        "created_overdue": created_overdue,
        "created_upcoming": created_upcoming,
        "created_digest": created_digest,
        "created": created + created_digest,
        "skipped": candidates - created,
    }


def run_delivery_cycle(
    db: Session,
    *,
    now: datetime,
    config: NotificationQueueConfig,
    deliverer: Optional[Deliverer] = None,
    tenant_id: Optional[int] = None,
) -> Dict[str, int]:
    """Deliver due pending entries through `deliverer` (log channel by default)."""
    return process_pending(
        db,
        deliverer or LogDeliverer(),
        now=now,
        config=config,
        tenant_id=tenant_id,
    )
