# facility_compliance/api/v1/notifications.py
from __future__ import annotations

from datetime import date
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from facility_compliance.api.deps import get_db, get_queue_config, resolve_today
from facility_compliance.core.settings import NotificationQueueConfig
from facility_compliance.schemas.notification import (
    DeliveryFailureIn,
    HistoryEntryOut,
    HistoryListOut,
    QueueEntryOut,
    QueueListOut,
    ReminderSettingsIn,
    ReminderSettingsOut,
)
from facility_compliance.services.notification_history import (
    dismiss,
    list_history,
    mark_read,
    unread_count,
)
from facility_compliance.services.notification_queue import list_queue, mark_failed, mark_sent
from facility_compliance.services.notifications import run_delivery_cycle, run_scan_cycle
from facility_compliance.services.reminder_settings import (
    ReminderOffsets,
    reminder_offsets,
    reset_reminder_offsets,
    save_reminder_offsets,
)
from facility_compliance.utils.dates import utcnow

router = APIRouter(tags=["notifications"])


# -----------------------------
# Queue (operator view + delivery callbacks)
# -----------------------------
@router.get("/tenants/{tenant_id}/notifications/queue", response_model=QueueListOut)
def list_queue_endpoint(
    tenant_id: int,
    status: Optional[str] = Query(None, description="pending | sent | failed"),
    type: Optional[str] = Query(None, description="Filter by notification type"),
    facility_id: Optional[int] = Query(None, ge=1),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    try:
        rows = list_queue(
            db,
            tenant_id=tenant_id,
            status=status,
            notification_type=type,
            facility_id=facility_id,
            limit=limit,
            offset=offset,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    items = [QueueEntryOut.model_validate(r) for r in rows]
    return QueueListOut(items=items, count=len(items))


@router.post("/notifications/queue/{entry_id}/sent", response_model=HistoryEntryOut)
def report_sent(entry_id: int, db: Session = Depends(get_db)):
    """Delivery succeeded: pending -> sent, one history row appended."""
    return mark_sent(db, entry_id, now=utcnow())


@router.post("/notifications/queue/{entry_id}/failed", response_model=QueueEntryOut)
def report_failed(
    entry_id: int,
    payload: DeliveryFailureIn,
    config: NotificationQueueConfig = Depends(get_queue_config),
    db: Session = Depends(get_db),
):
    """Delivery failed: rescheduled with backoff, or terminal once retries are exhausted."""
    return mark_failed(db, entry_id, payload.error, now=utcnow(), config=config)


# -----------------------------
# Manual cycles
# -----------------------------
@router.post("/tenants/{tenant_id}/notifications/run-scan")
def run_scan(
    tenant_id: int,
    include_digest: bool = Query(False),
    today: date = Depends(resolve_today),
    config: NotificationQueueConfig = Depends(get_queue_config),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    counters = run_scan_cycle(
        db,
        tenant_id,
        today=today,
        now=utcnow(),
        config=config,
        include_digest=include_digest,
    )
    return {"ok": True, "tenant_id": tenant_id, "as_of": today.isoformat(), **counters}


@router.post("/notifications/run-delivery")
def run_delivery(
    tenant_id: Optional[int] = Query(None, ge=1),
    config: NotificationQueueConfig = Depends(get_queue_config),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    counters = run_delivery_cycle(db, now=utcnow(), config=config, tenant_id=tenant_id)
    return {"ok": True, **counters}


# -----------------------------
# History (in-app feed)
# -----------------------------
@router.get("/tenants/{tenant_id}/notifications/history", response_model=HistoryListOut)
def list_history_endpoint(
    tenant_id: int,
    unread_only: bool = Query(False),
    include_dismissed: bool = Query(False),
    facility_id: Optional[int] = Query(None, ge=1),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    rows = list_history(
        db,
        tenant_id,
        unread_only=unread_only,
        include_dismissed=include_dismissed,
        facility_id=facility_id,
        limit=limit,
        offset=offset,
    )
    items = [HistoryEntryOut.model_validate(r) for r in rows]
    return HistoryListOut(items=items, count=len(items), unread=unread_count(db, tenant_id))


@router.get("/tenants/{tenant_id}/notifications/history/unread-count")
def unread_count_endpoint(tenant_id: int, db: Session = Depends(get_db)) -> Dict[str, int]:
    return {"unread": unread_count(db, tenant_id)}


@router.post("/notifications/history/{history_id}/read", response_model=HistoryEntryOut)
def mark_read_endpoint(history_id: int, db: Session = Depends(get_db)):
    return mark_read(db, history_id, now=utcnow())


@router.post("/notifications/history/{history_id}/dismiss", response_model=HistoryEntryOut)
def dismiss_endpoint(history_id: int, db: Session = Depends(get_db)):
    return dismiss(db, history_id, now=utcnow())


# -----------------------------
# Reminder settings (per tenant)
# -----------------------------
def _settings_out(tenant_id: int, offsets: ReminderOffsets) -> ReminderSettingsOut:
    return ReminderSettingsOut(
        tenant_id=tenant_id,
        spcc_initial_reminders=list(offsets.spcc_initial),
        spcc_renewal_reminders=list(offsets.spcc_renewal),
        inspection_reminders=list(offsets.inspection),
        is_default=offsets.is_default,
    )


@router.get("/tenants/{tenant_id}/notifications/reminder-settings", response_model=ReminderSettingsOut)
def get_reminder_settings(
    tenant_id: int,
    config: NotificationQueueConfig = Depends(get_queue_config),
    db: Session = Depends(get_db),
):
    return _settings_out(tenant_id, reminder_offsets(db, tenant_id, config))


@router.put("/tenants/{tenant_id}/notifications/reminder-settings", response_model=ReminderSettingsOut)
def put_reminder_settings(
    tenant_id: int,
    payload: ReminderSettingsIn,
    config: NotificationQueueConfig = Depends(get_queue_config),
    db: Session = Depends(get_db),
):
    offsets = save_reminder_offsets(
        db,
        tenant_id,
        config=config,
        now=utcnow(),
        spcc_initial=payload.spcc_initial_reminders,
        spcc_renewal=payload.spcc_renewal_reminders,
        inspection=payload.inspection_reminders,
    )
    return _settings_out(tenant_id, offsets)


@router.delete("/tenants/{tenant_id}/notifications/reminder-settings", response_model=ReminderSettingsOut)
def reset_reminder_settings(
    tenant_id: int,
    config: NotificationQueueConfig = Depends(get_queue_config),
    db: Session = Depends(get_db),
):
    """Drop the tenant override and fall back to the configured defaults."""
    reset_reminder_offsets(db, tenant_id)
    return _settings_out(tenant_id, reminder_offsets(db, tenant_id, config))
