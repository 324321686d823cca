# facility_compliance/middleware/request_logging.py
from __future__ import annotations

import logging
import re
import time
import uuid
from typing import Iterable, Optional, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("facility_compliance.request")

QUIET_PATHS: Tuple[str, ...] = (
    "/api/healthz",
    "/api/readyz",
    "/docs",
    "/redoc",
    "/openapi.json",
)

_TENANT_RE = re.compile(r"/tenants/(\d+)(?:/|$)")


def _tenant_of(path: str) -> Optional[str]:
    m = _TENANT_RE.search(path)
    return m.group(1) if m else None


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    One line per request with tenant, evaluation date (`today` override) and
    duration. Every response carries X-Request-ID; an inbound one is reused so
    scheduler-triggered calls can be correlated with queue log lines.
    """

    def __init__(self, app, quiet_paths: Iterable[str] = QUIET_PATHS):
        super().__init__(app)
        self.quiet_paths = tuple(quiet_paths)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        trace_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.trace_id = trace_id

        path = request.url.path
        quiet = request.method.upper() == "OPTIONS" or path.startswith(self.quiet_paths)
        tenant = _tenant_of(path) or "-"
        as_of = request.query_params.get("today") or "now"

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            if not quiet:
                logger.exception(
                    "request CRASH %s %s tenant=%s as_of=%s dur_ms=%s trace_id=%s",
                    request.method,
                    path,
                    tenant,
                    as_of,
                    int((time.perf_counter() - started) * 1000),
                    trace_id,
                )
            raise

        response.headers["X-Request-ID"] = trace_id
        if not quiet:
            logger.log(
                _level_for(response.status_code),
                "%s %s -> %s tenant=%s as_of=%s dur_ms=%s trace_id=%s",
                request.method,
                path,
                response.status_code,
                tenant,
                as_of,
                int((time.perf_counter() - started) * 1000),
                trace_id,
            )
        return response
