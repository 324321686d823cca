# facility_compliance/worker/scheduler.py
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from facility_compliance.core.settings import NotificationQueueConfig, SchedulerConfig
from facility_compliance.db.session import SessionLocal
from facility_compliance.services.notifications import (
    run_delivery_cycle,
    run_scan_cycle,
    tenant_ids,
)
from facility_compliance.utils.dates import utc_today, utcnow

log = logging.getLogger("facility_compliance.worker")


def _with_db(fn: Callable[..., Any], *args, **kwargs) -> Optional[Any]:
    """Run fn with a fresh session. Any failure is logged and rolled back, never raised."""
    db = SessionLocal()
    try:
        return fn(db, *args, **kwargs)
    except Exception:
        db.rollback()
        log.exception("job %s failed args=%r", getattr(fn, "__name__", fn), args)
        return None
    finally:
        db.close()


def run_daily_scan(config: Optional[NotificationQueueConfig] = None) -> Dict[int, Optional[dict]]:
    """
    Scan every tenant that has facilities. Each tenant gets its own session so
    one failing tenant does not stop the rest.
    """
    config = config or NotificationQueueConfig.from_env()
    today = utc_today()
    results: Dict[int, Optional[dict]] = {}
    for tid in _with_db(tenant_ids) or []:
        results[tid] = _with_db(
            run_scan_cycle,
            tid,
            today=today,
            now=utcnow(),
            config=config,
            include_digest=True,
        )
    return results


def run_delivery(config: Optional[NotificationQueueConfig] = None) -> Optional[dict]:
    config = config or NotificationQueueConfig.from_env()
    return _with_db(run_delivery_cycle, now=utcnow(), config=config)


def make_scheduler(config: Optional[SchedulerConfig] = None) -> BackgroundScheduler:
    """
    BackgroundScheduler with two jobs:
      - daily scan at SCAN_HOUR:SCAN_MINUTE (APP_TIMEZONE, default system tz)
      - delivery worker every DELIVERY_INTERVAL_SECONDS
    """
    config = config or SchedulerConfig.from_env()
    sched = BackgroundScheduler(timezone=config.timezone)

    sched.add_job(
        run_daily_scan,
        CronTrigger(hour=config.scan_hour, minute=config.scan_minute),
        id="daily_compliance_scan",
        replace_existing=True,
    )
    sched.add_job(
        run_delivery,
        IntervalTrigger(seconds=config.delivery_interval_seconds),
        id="notification_delivery",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    return sched
