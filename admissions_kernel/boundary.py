"""
Boundary mapping: failure kind -> HTTP status code.

The engines never format user-visible responses.  The thin HTTP layer
calls ``http_status_for`` with an OperationResult (or a bare kernel error)
and this module is the only place that decides the status code.

    success                      200
    UnauthorizedError            403
    NotFoundError                404
    LifecycleError               422
    PaymentError                 422
    ImmutabilityViolationError   422
    ValueError (bad input)       400
    GatewayUnavailableError      503
    GatewayError                 502
"""

from __future__ import annotations

from typing import Any

from admissions_kernel.exceptions import (
    AuthorizationError,
    GatewayError,
    GatewayUnavailableError,
    ImmutabilityError,
    LifecycleError,
    NotFoundError,
    PaymentError,
)
from admissions_kernel.services.admissions_orchestrator import OperationResult

HTTP_OK = 200
HTTP_BAD_REQUEST = 400
HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404
HTTP_UNPROCESSABLE = 422
HTTP_INTERNAL_ERROR = 500
HTTP_BAD_GATEWAY = 502
HTTP_SERVICE_UNAVAILABLE = 503

# Checked in order; subclasses before their bases
_ERROR_STATUS: tuple[tuple[type[Exception], int], ...] = (
    (AuthorizationError, HTTP_FORBIDDEN),
    (NotFoundError, HTTP_NOT_FOUND),
    (LifecycleError, HTTP_UNPROCESSABLE),
    (PaymentError, HTTP_UNPROCESSABLE),
    (ImmutabilityError, HTTP_UNPROCESSABLE),
    (GatewayUnavailableError, HTTP_SERVICE_UNAVAILABLE),
    (GatewayError, HTTP_BAD_GATEWAY),
    (ValueError, HTTP_BAD_REQUEST),
)


def http_status_for(outcome: OperationResult | Exception | None) -> int:
    """HTTP status code for an operation result or a raised error."""
    if isinstance(outcome, OperationResult):
        if outcome.is_success:
            return HTTP_OK
        outcome = outcome.error
    if outcome is None:
        return HTTP_OK
    for error_type, status in _ERROR_STATUS:
        if isinstance(outcome, error_type):
            return status
    return HTTP_INTERNAL_ERROR


def error_body(outcome: OperationResult | Exception) -> dict[str, Any]:
    """Machine-readable error payload: the code plus the error's public attributes."""
    error = outcome.error if isinstance(outcome, OperationResult) else outcome
    if error is None:
        return {}
    body: dict[str, Any] = {"code": getattr(error, "code", "INVALID_INPUT")}
    for key, value in vars(error).items():
        if not key.startswith("_"):
            body[key] = value if isinstance(value, (int, bool, type(None))) else str(value)
    return body
