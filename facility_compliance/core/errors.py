# facility_compliance/core/errors.py
from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

log = logging.getLogger("facility_compliance.errors")


# -----------------------------
# Domain errors
# -----------------------------
class ComplianceError(Exception):
    """Base class for errors raised by the engine's write paths."""

    status_code = 400
    error_type = "compliance_error"

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class FacilityNotFound(ComplianceError):
    status_code = 404
    error_type = "facility_not_found"

    def __init__(self, facility_id: int):
        super().__init__(f"Facility {facility_id} not found", details={"facility_id": facility_id})
        self.facility_id = facility_id


class NotificationNotFound(ComplianceError):
    status_code = 404
    error_type = "notification_not_found"

    def __init__(self, kind: str, entry_id: int):
        super().__init__(f"{kind} {entry_id} not found", details={"id": entry_id})
        self.entry_id = entry_id


class InvalidTransition(ComplianceError):
    """Queue entry is not in a state that allows the requested transition."""

    status_code = 409
    error_type = "invalid_transition"

    def __init__(self, entry_id: int, current: str, requested: str):
        super().__init__(
            f"Notification {entry_id} is '{current}', cannot transition to '{requested}'",
            details={"id": entry_id, "status": current, "requested": requested},
        )
        self.entry_id = entry_id
        self.current = current
        self.requested = requested


class HistoryStateError(ComplianceError):
    """read_at / dismissed_at may each be set exactly once."""

    status_code = 409
    error_type = "history_state_error"


# -----------------------------
# Envelope
# -----------------------------
def _trace_id(request: Request) -> str:
    # Set by RequestLoggingMiddleware; fall back for errors raised outside it.
    trace_id = getattr(request.state, "trace_id", None)
    if not trace_id:
        trace_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.trace_id = trace_id
    return str(trace_id)


def _respond(
    request: Request,
    *,
    status: int,
    typ: str,
    message: str,
    details: Optional[Any] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    trace_id = _trace_id(request)
    error: Dict[str, Any] = {
        "type": typ,
        "message": message,
        "status": status,
        "trace_id": trace_id,
    }
    if details is not None:
        error["details"] = details

    out_headers = dict(headers or {})
    out_headers["X-Request-ID"] = trace_id
    log.log(
        logging.ERROR if status >= 500 else logging.WARNING,
        "%s %s %s -> %s trace_id=%s | %s",
        typ,
        request.method,
        request.url.path,
        status,
        trace_id,
        message,
    )
    return JSONResponse(status_code=status, headers=out_headers, content={"ok": False, "error": error})


def register_exception_handlers(app: FastAPI) -> None:
    """Every error leaves the API as {"ok": false, "error": {type, message, status, trace_id}}."""

    @app.exception_handler(ComplianceError)
    async def compliance_exc_handler(request: Request, exc: ComplianceError):
        return _respond(
            request,
            status=exc.status_code,
            typ=exc.error_type,
            message=exc.message,
            details=exc.details,
        )

    @app.exception_handler(HTTPException)
    async def http_exc_handler(request: Request, exc: HTTPException):
        return _respond(
            request,
            status=int(exc.status_code),
            typ="http_error",
            message=exc.detail if isinstance(exc.detail, str) else "HTTP error",
            details=exc.detail if isinstance(exc.detail, dict) else None,
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):
        return _respond(
            request,
            status=422,
            typ="validation_error",
            message="Validation failed.",
            details=[{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in exc.errors()],
        )

    @app.exception_handler(IntegrityError)
    async def integrity_exc_handler(request: Request, exc: IntegrityError):
        # e.g. a second schedule row for the same (facility, inspection_type)
        return _respond(
            request,
            status=409,
            typ="conflict",
            message="Write conflicts with existing data.",
        )

    @app.exception_handler(Exception)
    async def unhandled_exc_handler(request: Request, exc: Exception):
        log.exception("unhandled %s %s", request.method, request.url.path)
        return _respond(request, status=500, typ="internal_error", message="Internal server error.")
