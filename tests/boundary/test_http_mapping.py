"""Failure kind -> HTTP status mapping (admissions_kernel/boundary.py)."""

from decimal import Decimal

import pytest

from admissions_kernel.boundary import error_body, http_status_for
from admissions_kernel.exceptions import (
    AcceptanceFeeUnpaidError,
    AlreadySatisfiedError,
    AmountMismatchError,
    ApplicationNotFoundError,
    DuplicateOfferError,
    GatewayError,
    GatewayUnavailableError,
    ImmutabilityViolationError,
    InvalidStateError,
    OfferExpiredError,
    StateConflictError,
    UnauthorizedError,
)
from admissions_kernel.services.admissions_orchestrator import (
    OperationResult,
    OperationStatus,
)


@pytest.mark.parametrize("error, status", [
    (UnauthorizedError("actor-1", "application.review", "Application"), 403),
    (ApplicationNotFoundError("app-1"), 404),
    (StateConflictError("Application", "app-1", "submitted", "not editable"), 422),
    (InvalidStateError("Admission", "adm-1", "accepted", "not payable"), 422),
    (AcceptanceFeeUnpaidError("adm-1"), 422),
    (OfferExpiredError("adm-1", None), 422),
    (DuplicateOfferError("app-1", "adm-1"), 422),
    (AlreadySatisfiedError(payer_id="p", target_id="t", payment_type="form_purchase"), 422),
    (AmountMismatchError("PAY1", Decimal("5000"), "NGN", Decimal("1"), "NGN"), 422),
    (ImmutabilityViolationError("Payment", "pay-1", "terminal"), 422),
    (GatewayUnavailableError("verify", "timeout"), 503),
    (GatewayError("verify", "bad key", status_code=401), 502),
    (ValueError("acceptance_fee requires an admission_id"), 400),
    (RuntimeError("boom"), 500),
])
def test_error_status(error, status):
    assert http_status_for(error) == status
    assert http_status_for(OperationResult(OperationStatus.REJECTED, error=error)) == status


def test_success_is_ok():
    assert http_status_for(OperationResult(OperationStatus.SUCCESS, value=object())) == 200


def test_error_body_carries_code_and_fields():
    error = AmountMismatchError("PAY1", Decimal("5000.00"), "NGN", Decimal("4999.99"), "NGN")
    body = error_body(OperationResult(OperationStatus.REJECTED, error=error))
    assert body["code"] == "AMOUNT_MISMATCH"
    assert body["reference"] == "PAY1"
    assert body["reported_amount"] == "4999.99"


def test_error_body_for_plain_value_error():
    assert error_body(ValueError("bad")) == {"code": "INVALID_INPUT"}


def test_error_body_empty_on_success():
    assert error_body(OperationResult(OperationStatus.SUCCESS)) == {}
