"""Map core errors onto HTTP responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from caseflow.core.errors import (
    AuthorizationError,
    BusinessRuleError,
    CaseRoutingError,
    ConcurrencyConflictError,
    ConfigurationError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# First match wins; subclasses before their bases
ERROR_STATUS_CODES: list[tuple[type[CaseRoutingError], int]] = [
    (NotFoundError, 404),
    (AuthorizationError, 403),
    (InvalidTransitionError, 409),
    (ValidationError, 422),
    (ConcurrencyConflictError, 409),
    (BusinessRuleError, 409),
    (ConfigurationError, 400),
    (PersistenceError, 503),
]


def status_code_for(exc: CaseRoutingError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 400


async def case_routing_error_handler(request: Request, exc: CaseRoutingError) -> JSONResponse:
    status_code = status_code_for(exc)
    body: dict = {
        "detail": str(exc),
        "error": exc.__class__.__name__,
        "retryable": exc.retryable,
    }
    if isinstance(exc, ValidationError):
        body["errors"] = exc.errors
    if isinstance(exc, ConcurrencyConflictError):
        body["expected_version"] = exc.expected_version
        body["actual_version"] = exc.actual_version
    if status_code >= 500:
        logger.error("Request failed: %s %s -> %s", request.method, request.url.path, exc.__class__.__name__)
    return JSONResponse(status_code=status_code, content=body)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CaseRoutingError, case_routing_error_handler)
