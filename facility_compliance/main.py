# facility_compliance/main.py
from __future__ import annotations

import logging
import os

from dotenv import find_dotenv, load_dotenv

# env first: DATABASE_URL is read when the session module is imported
load_dotenv(find_dotenv(usecwd=True))

from fastapi import FastAPI  # noqa: E402

from facility_compliance import __version__  # noqa: E402
from facility_compliance.api import health  # noqa: E402
from facility_compliance.api.v1 import due, facilities, notifications  # noqa: E402
from facility_compliance.core.errors import register_exception_handlers  # noqa: E402
from facility_compliance.db.session import engine  # noqa: E402
from facility_compliance.middleware.request_logging import RequestLoggingMiddleware  # noqa: E402
from facility_compliance.models import Base  # noqa: E402
from facility_compliance.worker.scheduler import make_scheduler  # noqa: E402

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger("facility_compliance")

# ---------------------------
# CREATE TABLES (dev-only; production uses alembic)
# ---------------------------
if os.getenv("ENABLE_CREATE_ALL", "1") == "1":
    Base.metadata.create_all(bind=engine)

# ---------------------------
# APP
# ---------------------------
app = FastAPI(title="Facility Compliance", version=__version__)
app.add_middleware(RequestLoggingMiddleware)
register_exception_handlers(app)

app.include_router(facilities.router, prefix="/api/v1")
app.include_router(due.router, prefix="/api/v1")
app.include_router(notifications.router, prefix="/api/v1")
app.include_router(health.router, prefix="/api")


# ---------------------------
# Scheduler (daily scan + delivery worker)
# ---------------------------
@app.on_event("startup")
def _start_scheduler():
    app.state.scheduler = None
    if os.getenv("ENABLE_SCHEDULER", "1") != "1":
        return
    app.state.scheduler = make_scheduler()
    app.state.scheduler.start()
    log.info("scheduler started")


@app.on_event("shutdown")
def _stop_scheduler():
    sched = getattr(app.state, "scheduler", None)
    if sched:
        sched.shutdown(wait=False)
