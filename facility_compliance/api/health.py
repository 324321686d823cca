# facility_compliance/api/health.py
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from facility_compliance import __version__
from facility_compliance.api.deps import get_db
from facility_compliance.models.notification import NotificationQueueEntry

router = APIRouter(tags=["health"])

_NO_STORE = {"Cache-Control": "no-store"}


@router.get("/healthz")
def healthz() -> dict:
    return {
        "ok": True,
        "service": "facility_compliance",
        "version": __version__,
        "ts": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/readyz")
def readyz(db: Session = Depends(get_db)):
    """DB round trip plus queue depth by status, so a stuck delivery loop is visible."""
    t0 = time.perf_counter()
    try:
        db.execute(text("SELECT 1"))
        depth = dict(
            db.query(NotificationQueueEntry.status, func.count(NotificationQueueEntry.id))
            .group_by(NotificationQueueEntry.status)
            .all()
        )
    except SQLAlchemyError as e:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"ok": False, "db": "down", "error": str(e)},
            headers=_NO_STORE,
        )

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={
            "ok": True,
            "db": "up",
            "db_latency_ms": round((time.perf_counter() - t0) * 1000.0, 2),
            "queue": {s: int(depth.get(s, 0)) for s in ("pending", "sent", "failed")},
        },
        headers=_NO_STORE,
    )
