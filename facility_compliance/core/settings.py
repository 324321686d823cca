# facility_compliance/core/settings.py
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Tuple

# Days before the due date on which an upcoming reminder goes out
DEFAULT_SPCC_REMINDERS: Tuple[int, ...] = (90, 60, 30, 15, 1)
DEFAULT_INSPECTION_REMINDERS: Tuple[int, ...] = (30, 14, 7, 1)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_int_list(name: str, default: Tuple[int, ...]) -> Tuple[int, ...]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        values = {int(part) for part in raw.split(",") if part.strip()}
    except ValueError:
        raise ValueError(f"{name} must be a comma-separated list of integers, got {raw!r}")
    return tuple(sorted(values, reverse=True))


@dataclass(frozen=True)
class NotificationQueueConfig:
    """
    Knobs for enqueue dedup, retry and delivery. Every queue operation takes one
    explicitly; `from_env()` is only used at the app/scheduler edge.
    """

    cooldown_hours: int = 24
    max_retries: int = 3
    retry_backoff_minutes: int = 15
    lead_minutes: int = 0
    claim_lease_seconds: int = 300
    batch_size: int = 200
    horizon_days: int = 30
    spcc_initial_reminders: Tuple[int, ...] = DEFAULT_SPCC_REMINDERS
    spcc_renewal_reminders: Tuple[int, ...] = DEFAULT_SPCC_REMINDERS
    inspection_reminders: Tuple[int, ...] = DEFAULT_INSPECTION_REMINDERS

    @classmethod
    def from_env(cls) -> "NotificationQueueConfig":
        return cls(
            cooldown_hours=_env_int("NOTIFY_COOLDOWN_HOURS", 24),
            max_retries=_env_int("NOTIFY_MAX_RETRIES", 3),
            retry_backoff_minutes=_env_int("NOTIFY_RETRY_BACKOFF_MINUTES", 15),
            lead_minutes=_env_int("NOTIFY_LEAD_MINUTES", 0),
            claim_lease_seconds=_env_int("NOTIFY_CLAIM_LEASE_SECONDS", 300),
            batch_size=_env_int("NOTIFY_BATCH_SIZE", 200),
            horizon_days=_env_int("NOTIFY_HORIZON_DAYS", 30),
            spcc_initial_reminders=_env_int_list("NOTIFY_SPCC_INITIAL_REMINDERS", DEFAULT_SPCC_REMINDERS),
            spcc_renewal_reminders=_env_int_list("NOTIFY_SPCC_RENEWAL_REMINDERS", DEFAULT_SPCC_REMINDERS),
            inspection_reminders=_env_int_list("NOTIFY_INSPECTION_REMINDERS", DEFAULT_INSPECTION_REMINDERS),
        )


@dataclass(frozen=True)
class SchedulerConfig:
    timezone: str
    scan_hour: int = 6
    scan_minute: int = 0
    delivery_interval_seconds: int = 60

    @classmethod
    def from_env(cls) -> "SchedulerConfig":
        from tzlocal import get_localzone

        return cls(
            timezone=os.getenv("APP_TIMEZONE") or str(get_localzone()),
            scan_hour=_env_int("SCAN_HOUR", 6),
            scan_minute=_env_int("SCAN_MINUTE", 0),
            delivery_interval_seconds=_env_int("DELIVERY_INTERVAL_SECONDS", 60),
        )
