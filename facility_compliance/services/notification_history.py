# facility_compliance/services/notification_history.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from facility_compliance.core.errors import HistoryStateError, NotificationNotFound
from facility_compliance.models.notification import NotificationHistoryEntry


def _get(db: Session, history_id: int) -> NotificationHistoryEntry:
    row = db.get(NotificationHistoryEntry, history_id)
    if row is None:
        raise NotificationNotFound("History entry", history_id)
    return row


def list_history(
    db: Session,
    tenant_id: int,
    *,
    unread_only: bool = False,
    include_dismissed: bool = False,
    facility_id: Optional[int] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[NotificationHistoryEntry]:
    """Delivered notifications for a tenant, newest first."""
    q = db.query(NotificationHistoryEntry).filter(NotificationHistoryEntry.tenant_id == tenant_id)
    if unread_only:
        q = q.filter(NotificationHistoryEntry.read_at.is_(None))
    if not include_dismissed:
        q = q.filter(NotificationHistoryEntry.dismissed_at.is_(None))
    if facility_id is not None:
        q = q.filter(NotificationHistoryEntry.facility_id == facility_id)
    return (
        q.order_by(NotificationHistoryEntry.sent_at.desc(), NotificationHistoryEntry.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def unread_count(db: Session, tenant_id: int) -> int:
    # Dismissed-but-unread entries still count; dismissal only hides them from the feed.
    return (
        db.query(NotificationHistoryEntry)
        .filter(
            NotificationHistoryEntry.tenant_id == tenant_id,
            NotificationHistoryEntry.read_at.is_(None),
        )
        .count()
    )


def mark_read(db: Session, history_id: int, *, now: datetime) -> NotificationHistoryEntry:
    row = _get(db, history_id)
    if row.read_at is not None:
        raise HistoryStateError(f"History entry {history_id} is already read.")
    row.read_at = now
    db.commit()
    db.refresh(row)
    return row


def dismiss(db: Session, history_id: int, *, now: datetime) -> NotificationHistoryEntry:
    row = _get(db, history_id)
    if row.dismissed_at is not None:
        raise HistoryStateError(f"History entry {history_id} is already dismissed.")
    row.dismissed_at = now
    db.commit()
    db.refresh(row)
    return row
