# facility_compliance/services/reminder_settings.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from facility_compliance.core.settings import NotificationQueueConfig
from facility_compliance.models.enums import NotificationType
from facility_compliance.models.reminder_settings import TenantReminderSettings

log = logging.getLogger("facility_compliance.queue")

MAX_OFFSET_DAYS = 3650


@dataclass(frozen=True)
class ReminderOffsets:
    """Days before the due date on which an upcoming reminder is enqueued, per reminder kind."""

    spcc_initial: Tuple[int, ...]
    spcc_renewal: Tuple[int, ...]
    inspection: Tuple[int, ...]
    is_default: bool = True

    @classmethod
    def from_config(cls, config: NotificationQueueConfig) -> "ReminderOffsets":
        return cls(
            spcc_initial=normalize_offsets(config.spcc_initial_reminders),
            spcc_renewal=normalize_offsets(config.spcc_renewal_reminders),
            inspection=normalize_offsets(config.inspection_reminders),
        )

    def for_type(self, notification_type: NotificationType) -> Tuple[int, ...]:
        # Overdue reminders and digests follow the cooldown only.
        if notification_type == NotificationType.SPCC_INITIAL_DUE:
            return self.spcc_initial
        if notification_type == NotificationType.SPCC_RENEWAL_DUE:
            return self.spcc_renewal
        if notification_type == NotificationType.INSPECTION_DUE:
            return self.inspection
        return ()

    @property
    def max_lookahead(self) -> int:
        return max(self.spcc_initial + self.spcc_renewal + self.inspection, default=0)


def normalize_offsets(values: Iterable[int]) -> Tuple[int, ...]:
    """Unique, descending; each offset must be within 0..MAX_OFFSET_DAYS."""
    out = set()
    for v in values:
        v = int(v)
        if v < 0 or v > MAX_OFFSET_DAYS:
            raise ValueError(f"reminder offset {v} out of range (0..{MAX_OFFSET_DAYS})")
        out.add(v)
    return tuple(sorted(out, reverse=True))


def _row(db: Session, tenant_id: int) -> Optional[TenantReminderSettings]:
    return db.query(TenantReminderSettings).filter(TenantReminderSettings.tenant_id == tenant_id).first()


def reminder_offsets(db: Session, tenant_id: int, config: NotificationQueueConfig) -> ReminderOffsets:
    row = _row(db, tenant_id)
    if row is None:
        return ReminderOffsets.from_config(config)
    return ReminderOffsets(
        spcc_initial=normalize_offsets(row.spcc_initial_reminders or ()),
        spcc_renewal=normalize_offsets(row.spcc_renewal_reminders or ()),
        inspection=normalize_offsets(row.inspection_reminders or ()),
        is_default=False,
    )


def save_reminder_offsets(
    db: Session,
    tenant_id: int,
    *,
    config: NotificationQueueConfig,
    now: datetime,
    spcc_initial: Optional[Iterable[int]] = None,
    spcc_renewal: Optional[Iterable[int]] = None,
    inspection: Optional[Iterable[int]] = None,
    _retry: bool = True,
) -> ReminderOffsets:
    """
    Upsert the tenant's offsets. A list left as None keeps its current value
    (the default when the tenant has no row yet); an empty list switches that
    reminder kind off.
    """
    current = reminder_offsets(db, tenant_id, config)
    merged = ReminderOffsets(
        spcc_initial=normalize_offsets(current.spcc_initial if spcc_initial is None else spcc_initial),
        spcc_renewal=normalize_offsets(current.spcc_renewal if spcc_renewal is None else spcc_renewal),
        inspection=normalize_offsets(current.inspection if inspection is None else inspection),
        is_default=False,
    )

    row = _row(db, tenant_id)
    if row is None:
        row = TenantReminderSettings(tenant_id=tenant_id, created_at=now)
        db.add(row)
    row.spcc_initial_reminders = list(merged.spcc_initial)
    row.spcc_renewal_reminders = list(merged.spcc_renewal)
    row.inspection_reminders = list(merged.inspection)
    row.updated_at = now

    try:
        db.commit()
    except IntegrityError:
        # another writer created the row first; apply on top of theirs
        db.rollback()
        if not _retry:
            raise
        log.info("reminder settings for tenant %s created concurrently; retrying", tenant_id)
        return save_reminder_offsets(
            db,
            tenant_id,
            config=config,
            now=now,
            spcc_initial=merged.spcc_initial,
            spcc_renewal=merged.spcc_renewal,
            inspection=merged.inspection,
            _retry=False,
        )
    return merged


def reset_reminder_offsets(db: Session, tenant_id: int) -> bool:
    """Drop the tenant override; returns False if there was none."""
    row = _row(db, tenant_id)
    if row is None:
        return False
    db.delete(row)
    db.commit()
    return True
