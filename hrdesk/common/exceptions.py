"""Custom exceptions and RFC 7807 Problem Detail error handlers."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

BASE_ERROR_URI = "https://hrdesk.local/errors"

logger = logging.getLogger(__name__)


# ── Exception hierarchy ─────────────────────────────────────────────

class AppException(Exception):
    """Base for all application exceptions → RFC 7807 JSON."""

    def __init__(
        self,
        status_code: int,
        error_type: str,
        title: str,
        detail: str,
        errors: Optional[dict[str, Any]] = None,
    ) -> None:
        self.status_code = status_code
        self.error_type = error_type
        self.title = title
        self.detail = detail
        self.errors = errors
        super().__init__(detail)


class NotFoundException(AppException):
    """404: entity not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            status_code=404,
            error_type="not-found",
            title=f"{entity_type} Not Found",
            detail=f"{entity_type} with id '{entity_id}' does not exist.",
        )


class ForbiddenException(AppException):
    """403: insufficient permissions."""

    def __init__(
        self,
        detail: str = "You do not have permission to perform this action.",
    ) -> None:
        super().__init__(
            status_code=403,
            error_type="forbidden",
            title="Forbidden",
            detail=detail,
        )


class ValidationException(AppException):
    """422: business-logic validation failures."""

    def __init__(self, errors: dict[str, list[str]]) -> None:
        super().__init__(
            status_code=422,
            error_type="validation-error",
            title="Validation Error",
            detail="One or more fields failed validation.",
            errors=errors,
        )


class InvalidRangeException(AppException):
    """422: malformed or inverted date range."""

    def __init__(self, start: Any, end: Any, reason: str) -> None:
        self.start = start
        self.end = end
        super().__init__(
            status_code=422,
            error_type="invalid-range",
            title="Invalid Date Range",
            detail=f"Date range {start!s} → {end!s} is invalid: {reason}",
            errors={"dates": [reason]},
        )


class OverlapConflictException(AppException):
    """409: leave range collides with a pending/approved request."""

    def __init__(
        self,
        employee_id: Any,
        conflicting_id: Any,
        start: date,
        end: date,
    ) -> None:
        self.employee_id = employee_id
        self.conflicting_id = conflicting_id
        super().__init__(
            status_code=409,
            error_type="overlap-conflict",
            title="Overlapping Leave Request",
            detail=(
                f"Employee '{employee_id}' already has a pending or approved "
                f"leave request ('{conflicting_id}') overlapping {start} → {end}."
            ),
            errors={"dates": ["Overlaps an existing pending or approved leave request."]},
        )


class InsufficientCreditsException(AppException):
    """409: explicit paid request exceeds the employee's credit balance."""

    def __init__(
        self,
        employee_id: Any,
        available: Decimal,
        requested: Decimal,
    ) -> None:
        self.employee_id = employee_id
        self.available = available
        self.requested = requested
        super().__init__(
            status_code=409,
            error_type="insufficient-credits",
            title="Insufficient Leave Credits",
            detail=(
                f"Employee '{employee_id}' has {available} leave credit(s); "
                f"a paid leave of {requested} day(s) was requested."
            ),
            errors={"pay_type": [
                f"Insufficient credits. Available: {available}, Requested: {requested}."
            ]},
        )


class InvalidTransitionException(AppException):
    """409: action attempted on an entity whose state forbids it."""

    def __init__(self, entity_type: str, entity_id: Any, detail: str) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            status_code=409,
            error_type="invalid-transition",
            title="Invalid State Transition",
            detail=f"{entity_type} '{entity_id}': {detail}",
        )


class RuleExpiredException(AppException):
    """409: automation rule is past its end date; its state is frozen."""

    def __init__(self, rule_id: Any, end_date: date) -> None:
        self.rule_id = rule_id
        self.end_date = end_date
        super().__init__(
            status_code=409,
            error_type="rule-expired",
            title="Automation Rule Expired",
            detail=f"Automation rule '{rule_id}' expired on {end_date} and can no longer change state.",
        )


# ── RFC 7807 builder ────────────────────────────────────────────────

def _build_problem_detail(exc: AppException, request: Request) -> dict[str, Any]:
    body: dict[str, Any] = {
        "type": f"{BASE_ERROR_URI}/{exc.error_type}",
        "title": exc.title,
        "status": exc.status_code,
        "detail": exc.detail,
        "instance": str(request.url.path),
    }
    if exc.errors:
        body["errors"] = exc.errors
    return body


# ── FastAPI handlers ────────────────────────────────────────────────

async def _handle_app_exception(
    request: Request,
    exc: AppException,
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_build_problem_detail(exc, request),
        media_type="application/problem+json",
    )


async def _handle_validation_error(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    field_errors: dict[str, list[str]] = {}
    for err in exc.errors():
        loc = err.get("loc", ())
        name = (
            ".".join(str(p) for p in loc[1:])
            if len(loc) > 1
            else str(loc[0]) if loc else "unknown"
        )
        field_errors.setdefault(name, []).append(err.get("msg", "Invalid value"))

    return JSONResponse(
        status_code=422,
        content={
            "type": f"{BASE_ERROR_URI}/validation-error",
            "title": "Validation Error",
            "status": 422,
            "detail": "Request validation failed.",
            "instance": str(request.url.path),
            "errors": field_errors,
        },
        media_type="application/problem+json",
    )


async def _handle_database_error(
    request: Request,
    exc: SQLAlchemyError,
) -> JSONResponse:
    # Storage details stay in the log, never in the response body.
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "type": f"{BASE_ERROR_URI}/internal-error",
            "title": "Internal Server Error",
            "status": 500,
            "detail": "The operation could not be completed. No changes were saved.",
            "instance": str(request.url.path),
        },
        media_type="application/problem+json",
    )


# ── Registration helper (called from main.py) ──────────────────────

def register_exception_handlers(app: FastAPI) -> None:
    """Attach all custom exception handlers to the FastAPI app."""
    app.add_exception_handler(AppException, _handle_app_exception)          # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _handle_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, _handle_database_error)      # type: ignore[arg-type]
