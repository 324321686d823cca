# facility_compliance/api/v1/due.py
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from facility_compliance.api.deps import get_db, get_queue_config, resolve_today
from facility_compliance.core.settings import NotificationQueueConfig
from facility_compliance.schemas.compliance import DueItemOut, DueListOut
from facility_compliance.services.due_queries import overdue, upcoming_due
from facility_compliance.utils.dates import utcnow

router = APIRouter(prefix="/tenants/{tenant_id}/due", tags=["due"])


def _as_list(items, today: date) -> DueListOut:
    out = [DueItemOut(**i.as_dict()) for i in items]
    return DueListOut(as_of=today, items=out, count=len(out))


@router.get("/upcoming", response_model=DueListOut)
def upcoming_endpoint(
    tenant_id: int,
    horizon_days: Optional[int] = Query(None, ge=0, le=3650, description="Window length; defaults to NOTIFY_HORIZON_DAYS"),
    type: Optional[str] = Query(None, description="spcc | inspection"),
    today: date = Depends(resolve_today),
    config: NotificationQueueConfig = Depends(get_queue_config),
    db: Session = Depends(get_db),
):
    """Items due in [today, today + horizon_days], skipping ones notified within the cooldown."""
    try:
        items = upcoming_due(
            db,
            tenant_id,
            config.horizon_days if horizon_days is None else horizon_days,
            type,
            today=today,
            now=utcnow(),
            cooldown_hours=config.cooldown_hours,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _as_list(items, today)


@router.get("/overdue", response_model=DueListOut)
def overdue_endpoint(
    tenant_id: int,
    type: Optional[str] = Query(None, description="spcc | inspection"),
    today: date = Depends(resolve_today),
    db: Session = Depends(get_db),
):
    """Overdue SPCC plans and inspections, most overdue first."""
    try:
        items = overdue(db, tenant_id, type, today=today)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _as_list(items, today)
