"""
Typed Exception Hierarchy for the Admissions Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers must be able to tell an authorization denial from an expired offer
without parsing message strings.  Every error therefore:
  1. Has its own class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (not just a message string)

Engines raise these; the orchestrator turns them into typed results and
``admissions_kernel.boundary`` is the only place that maps them to HTTP
status codes.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    AdmissionsKernelError (base)
    |
    +-- AuthorizationError
    |   +-- UnauthorizedError
    |
    +-- LifecycleError
    |   +-- StateConflictError
    |   |   +-- InvalidTransitionError
    |   |   +-- IncompleteApplicationError
    |   |   +-- DuplicateApplicationError
    |   +-- InvalidStateError
    |   |   +-- ApplicationWindowClosedError
    |   |   +-- AcceptanceFeeUnpaidError
    |   +-- OfferExpiredError
    |   +-- DuplicateOfferError
    |
    +-- PaymentError
    |   +-- AlreadySatisfiedError
    |   +-- AmountMismatchError
    |   +-- PaymentFailedError
    |
    +-- GatewayError
    |   +-- GatewayUnavailableError
    |
    +-- NotFoundError
    |   +-- ApplicationNotFoundError
    |   +-- AdmissionNotFoundError
    |   +-- PaymentNotFoundError
    |   +-- ProgramNotFoundError
    |   +-- AdmissionSessionNotFoundError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Authorization   | UNAUTHORIZED                | Authorization gate returned DENY
----------------|-----------------------------|-----------------------------------------
Lifecycle       | STATE_CONFLICT              | Edit/submit in the wrong status
                | INVALID_TRANSITION          | Transition not in the transition table
                | INCOMPLETE_APPLICATION      | Mandatory fields missing on submit
                | DUPLICATE_APPLICATION       | Second application for one session
                | INVALID_STATE               | Target does not require this payment
                | APPLICATION_WINDOW_CLOSED   | Program not accepting applications
                | ACCEPTANCE_FEE_UNPAID       | Accept before acceptance fee cleared
                | OFFER_EXPIRED               | Accept/pay after acceptance deadline
                | DUPLICATE_OFFER             | Application already has a live offer
----------------|-----------------------------|-----------------------------------------
Payment         | ALREADY_SATISFIED           | Obligation already paid
                | AMOUNT_MISMATCH             | Gateway amount/currency differs
                | PAYMENT_FAILED              | Gateway reported failure/unknown ref
----------------|-----------------------------|-----------------------------------------
Gateway         | GATEWAY_ERROR               | Gateway rejected the request
                | GATEWAY_UNAVAILABLE         | Timeout, connection error, 5xx
----------------|-----------------------------|-----------------------------------------
Not found       | *_NOT_FOUND                 | Entity id/reference does not exist
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Modifying a terminal Payment

===============================================================================
HANDLING PATTERNS
===============================================================================

1. GATEWAY FAILURES ARE RETRYABLE:

    try:
        engine.reconcile(reference)
    except GatewayUnavailableError:
        # Payment is still pending; poll again later
        schedule_retry(reference)

2. AMOUNT MISMATCH IS NEVER SILENTLY ACCEPTED:

    if result.status is ReconciliationStatus.AMOUNT_MISMATCH:
        alert_finance_team(result.payment.reference)
"""


class AdmissionsKernelError(Exception):
    """
    Base exception for all admissions kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "ADMISSIONS_KERNEL_ERROR"


# Authorization


class AuthorizationError(AdmissionsKernelError):
    """Base exception for authorization errors."""

    code: str = "AUTHORIZATION_ERROR"


class UnauthorizedError(AuthorizationError):
    """The authorization gate denied the action."""

    code: str = "UNAUTHORIZED"

    def __init__(
        self,
        actor_id: str,
        action: str,
        entity_type: str,
        entity_id: str | None = None,
    ):
        self.actor_id = actor_id
        self.action = action
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Actor {actor_id} may not perform {action} on {entity_type} {entity_id}"
        )


# Lifecycle


class LifecycleError(AdmissionsKernelError):
    """Base exception for Application/Admission business-rule violations."""

    code: str = "LIFECYCLE_ERROR"


class StateConflictError(LifecycleError):
    """The entity's current status does not permit the operation."""

    code: str = "STATE_CONFLICT"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_status: str,
        reason: str,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.current_status = current_status
        self.reason = reason
        super().__init__(
            f"{entity_type} {entity_id} in status '{current_status}': {reason}"
        )


class InvalidTransitionError(StateConflictError):
    """Requested status change is not in the transition table."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_status: str,
        target_status: str,
    ):
        self.target_status = target_status
        super().__init__(
            entity_type,
            entity_id,
            current_status,
            f"cannot transition to '{target_status}'",
        )


class IncompleteApplicationError(StateConflictError):
    """Submission attempted with mandatory fields missing."""

    code: str = "INCOMPLETE_APPLICATION"

    def __init__(self, application_id: str, missing_fields: tuple[str, ...]):
        self.application_id = application_id
        self.missing_fields = missing_fields
        super().__init__(
            "Application",
            application_id,
            "draft",
            f"missing mandatory fields: {', '.join(missing_fields)}",
        )


class DuplicateApplicationError(StateConflictError):
    """The applicant already has an application for this admission session."""

    code: str = "DUPLICATE_APPLICATION"

    def __init__(
        self,
        applicant_id: str,
        admission_session_id: str,
        existing_application_id: str | None = None,
    ):
        self.applicant_id = applicant_id
        self.admission_session_id = admission_session_id
        self.existing_application_id = existing_application_id
        super().__init__(
            "Application",
            str(existing_application_id),
            "exists",
            f"applicant {applicant_id} already applied for session {admission_session_id}",
        )


class InvalidStateError(LifecycleError):
    """The target's lifecycle state does not currently allow the operation."""

    code: str = "INVALID_STATE"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_status: str,
        reason: str,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.current_status = current_status
        self.reason = reason
        super().__init__(
            f"{entity_type} {entity_id} in status '{current_status}': {reason}"
        )


class ApplicationWindowClosedError(InvalidStateError):
    """The program is not inside its application period."""

    code: str = "APPLICATION_WINDOW_CLOSED"

    def __init__(self, program_id: str, opens_at, closes_at):
        self.program_id = program_id
        self.opens_at = opens_at
        self.closes_at = closes_at
        super().__init__(
            "Program",
            program_id,
            "closed",
            f"application period {opens_at} - {closes_at} is not open",
        )


class AcceptanceFeeUnpaidError(InvalidStateError):
    """Accept attempted before the acceptance fee cleared."""

    code: str = "ACCEPTANCE_FEE_UNPAID"

    def __init__(self, admission_id: str):
        self.admission_id = admission_id
        super().__init__(
            "Admission",
            admission_id,
            "offered",
            "acceptance fee has not been paid",
        )


class OfferExpiredError(LifecycleError):
    """The acceptance deadline of the offer has passed."""

    code: str = "OFFER_EXPIRED"

    def __init__(self, admission_id: str, acceptance_deadline):
        self.admission_id = admission_id
        self.acceptance_deadline = acceptance_deadline
        super().__init__(
            f"Admission {admission_id} expired at {acceptance_deadline}"
        )


class DuplicateOfferError(LifecycleError):
    """The application already has a non-expired admission offer."""

    code: str = "DUPLICATE_OFFER"

    def __init__(self, application_id: str, existing_admission_id: str | None = None):
        self.application_id = application_id
        self.existing_admission_id = existing_admission_id
        super().__init__(
            f"Application {application_id} already has live offer {existing_admission_id}"
        )


# Payment


class PaymentError(AdmissionsKernelError):
    """Base exception for payment errors."""

    code: str = "PAYMENT_ERROR"


class AlreadySatisfiedError(PaymentError):
    """A successful payment already exists for this obligation."""

    code: str = "ALREADY_SATISFIED"

    def __init__(
        self,
        payer_id: str,
        target_id: str,
        payment_type: str,
        existing_reference: str | None = None,
    ):
        self.payer_id = payer_id
        self.target_id = target_id
        self.payment_type = payment_type
        self.existing_reference = existing_reference
        super().__init__(
            f"{payment_type} for {target_id} already paid by {payer_id}"
        )


class AmountMismatchError(PaymentError):
    """
    Gateway-reported amount or currency differs from the recorded payment.

    This is an integrity violation: the payment is forced to failed and
    the discrepancy is logged at CRITICAL.
    """

    code: str = "AMOUNT_MISMATCH"

    def __init__(
        self,
        reference: str,
        expected_amount,
        expected_currency: str,
        reported_amount,
        reported_currency: str | None,
    ):
        self.reference = reference
        self.expected_amount = expected_amount
        self.expected_currency = expected_currency
        self.reported_amount = reported_amount
        self.reported_currency = reported_currency
        super().__init__(
            f"Payment {reference}: expected {expected_amount} {expected_currency}, "
            f"gateway reported {reported_amount} {reported_currency}"
        )


class PaymentFailedError(PaymentError):
    """Gateway reported the charge failed, or does not know the reference."""

    code: str = "PAYMENT_FAILED"

    def __init__(self, reference: str, reason: str):
        self.reference = reference
        self.reason = reason
        super().__init__(f"Payment {reference} failed: {reason}")


# Gateway


class GatewayError(AdmissionsKernelError):
    """The payment gateway rejected or could not process a request."""

    code: str = "GATEWAY_ERROR"

    def __init__(self, operation: str, reason: str, status_code: int | None = None):
        self.operation = operation
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"Gateway {operation} failed: {reason}")


class GatewayUnavailableError(GatewayError):
    """
    Transient gateway failure (timeout, connection error, 5xx).

    Safe to retry with backoff.  Payment state is never advanced.
    """

    code: str = "GATEWAY_UNAVAILABLE"


# Not found


class NotFoundError(AdmissionsKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"
    entity_type: str = "Entity"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"{self.entity_type} not found: {entity_id}")


class ApplicationNotFoundError(NotFoundError):
    code: str = "APPLICATION_NOT_FOUND"
    entity_type: str = "Application"


class AdmissionNotFoundError(NotFoundError):
    code: str = "ADMISSION_NOT_FOUND"
    entity_type: str = "Admission"


class PaymentNotFoundError(NotFoundError):
    code: str = "PAYMENT_NOT_FOUND"
    entity_type: str = "Payment"


class ProgramNotFoundError(NotFoundError):
    code: str = "PROGRAM_NOT_FOUND"
    entity_type: str = "Program"


class AdmissionSessionNotFoundError(NotFoundError):
    code: str = "ADMISSION_SESSION_NOT_FOUND"
    entity_type: str = "AdmissionSession"


# Immutability


class ImmutabilityError(AdmissionsKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete a payment that is already terminal."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
