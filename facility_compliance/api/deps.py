# facility_compliance/api/deps.py
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import Query

from facility_compliance.core.settings import NotificationQueueConfig
from facility_compliance.db.session import get_db  # noqa: F401  (re-exported for routers)
from facility_compliance.utils.dates import utc_today


def resolve_today(
    today: Optional[date] = Query(None, description="Evaluation date (YYYY-MM-DD); defaults to the UTC date"),
) -> date:
    return today or utc_today()


def get_queue_config() -> NotificationQueueConfig:
    return NotificationQueueConfig.from_env()
