#!/usr/bin/env python3
"""
Backfill derived compliance state:
- Recomputes every facility's compliance record and inspection overdue flags.
- Optionally limited to one tenant (BACKFILL_TENANT_ID) and evaluated for a
  given day (BACKFILL_TODAY=YYYY-MM-DD, default: UTC today).
- Safe to run multiple times (unchanged inputs produce no writes).
"""
import logging
import os
import sys

# enable 'facility_compliance.' imports when run from the project root
sys.path.append(os.getcwd())

from dotenv import load_dotenv

load_dotenv()

from facility_compliance.db.session import SessionLocal  # noqa: E402
from facility_compliance.services.recalculation import recalculate_all  # noqa: E402
from facility_compliance.utils.dates import parse_date, utc_today  # noqa: E402


def main():
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
    tenant_env = os.environ.get("BACKFILL_TENANT_ID")
    tenant_id = int(tenant_env) if tenant_env and tenant_env.isdigit() else None
    today = parse_date(os.environ.get("BACKFILL_TODAY")) or utc_today()

    db = SessionLocal()
    try:
        n = recalculate_all(db, today, tenant_id=tenant_id)
        scope = f"tenant {tenant_id}" if tenant_id is not None else "all tenants"
        print(f"OK: {n} compliance record(s) held for {scope} as of {today.isoformat()}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
