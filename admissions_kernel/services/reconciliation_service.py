"""
ReconciliationService -- payment initialization and gateway reconciliation.

Responsibility:
    Opens charges for the three payment obligations and reconciles the
    gateway's authoritative verdict into Payment status, flipping the
    owning Application/Admission flag in the same transaction.

Architecture position:
    Kernel > Services -- imperative shell.  Consults the obligation table
    in ``domain.payment_rules`` for both initialize and reconcile, and the
    pure fee functions for amounts.  Calls the PaymentGateway for network
    I/O.  Never commits; AdmissionsOrchestrator owns the transaction.

Invariants enforced:
    - At most one successful Payment per (payer, target, type): checked
      before a charge is opened and backstopped by the partial unique
      index ``uq_payment_successful_obligation`` at confirmation time.
    - The amount is always computed here, never taken from the caller.
    - No Payment row exists unless the gateway accepted the charge.
    - pending -> successful | failed happens once, through a
      compare-and-swap ``UPDATE ... WHERE status = 'pending'``; a losing
      racer replays the stored outcome.
    - Payment status and the owning entity's flag are written inside one
      savepoint, so neither is ever visible without the other.
    - A transient gateway failure leaves the Payment pending.

Failure modes:
    - AlreadySatisfiedError, InvalidStateError, OfferExpiredError on initialize.
    - GatewayUnavailableError / GatewayError propagate unchanged.
    - PaymentNotFoundError for an unknown local reference.
    - Gateway-reported failure and amount mismatch are *results*, not
      exceptions, so the failed mark is committed by the caller.  The
      result carries the matching PaymentError in ``error``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from admissions_kernel.db.types import money_equal
from admissions_kernel.domain.clock import Clock
from admissions_kernel.domain.fees import (
    FeeDefaults,
    compute_admission_fee,
    compute_form_fee,
)
from admissions_kernel.domain.lifecycle import PaymentStatus, is_offer_expired
from admissions_kernel.domain.payment_rules import (
    PaymentObligation,
    PaymentType,
    TargetKind,
    obligation_for,
)
from admissions_kernel.exceptions import (
    AlreadySatisfiedError,
    AmountMismatchError,
    InvalidStateError,
    OfferExpiredError,
    PaymentError,
    PaymentFailedError,
    PaymentNotFoundError,
)
from admissions_kernel.gateway.base import GatewayStatus, GatewayVerification, PaymentGateway
from admissions_kernel.logging_config import LogContext, get_logger
from admissions_kernel.models.admission import Admission
from admissions_kernel.models.application import Application
from admissions_kernel.models.payment import Payment, PaymentFailureReason
from admissions_kernel.services.base import BaseService
from admissions_kernel.services.lifecycle_service import snapshot_fees

logger = get_logger("services.reconciliation")

REFERENCE_PREFIX = "PAY"


class ReconciliationStatus(str, Enum):
    """Outcome of one reconcile call."""

    CONFIRMED = "confirmed"
    FAILED = "failed"
    AMOUNT_MISMATCH = "amount_mismatch"
    ALREADY_SATISFIED = "already_satisfied"
    PENDING = "pending"


@dataclass(frozen=True)
class ReconciliationResult:
    """
    Result of reconciling one reference.

    ``replayed`` is True when the payment was already terminal and nothing
    was written.  ``error`` is set for every failed outcome.
    """

    status: ReconciliationStatus
    payment: Payment
    replayed: bool = False
    error: PaymentError | None = None

    @property
    def is_confirmed(self) -> bool:
        return self.status is ReconciliationStatus.CONFIRMED


@dataclass(frozen=True)
class PaymentInitialization:
    """What the payer needs to complete a freshly opened charge."""

    payment_id: UUID
    reference: str
    gateway_reference: str
    payment_type: PaymentType
    amount: Decimal
    currency: str
    authorization_url: str | None = None
    access_code: str | None = None


def new_reference() -> str:
    """Local payment reference: ``PAY`` + 12 uppercase hex digits."""
    return f"{REFERENCE_PREFIX}{uuid4().hex[:12].upper()}"


class ReconciliationService(BaseService):
    """
    Payment reconciliation engine.

    Args:
        session: SQLAlchemy session (caller owns the transaction).
        gateway: Payment processor client.
        fee_defaults: Configured fee fallbacks and currency.
        clock: Time source; SystemClock when omitted.
    """

    def __init__(
        self,
        session: Session,
        gateway: PaymentGateway,
        fee_defaults: FeeDefaults,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._gateway = gateway
        self._fee_defaults = fee_defaults

    # =========================================================================
    # Initialize
    # =========================================================================

    def initialize(
        self,
        payer_id: UUID,
        payment_type: PaymentType | str,
        application: Application,
        admission: Admission | None = None,
        email: str | None = None,
    ) -> PaymentInitialization:
        """
        Open a charge for one payment obligation and persist it as pending.

        ``admission`` is required for acceptance fees.  ``email`` defaults
        to the application's contact email.

        Raises:
            AlreadySatisfiedError: The obligation has already been paid.
            InvalidStateError: The target does not currently owe this payment.
            OfferExpiredError: Acceptance fee requested after the deadline.
            GatewayUnavailableError: Gateway timeout or outage; nothing persisted.
            GatewayError: Gateway rejected the charge; nothing persisted.
        """
        obligation = obligation_for(payment_type)
        target = self._target_for(obligation, application, admission)

        existing = self.session.execute(
            select(Payment).where(
                Payment.payer_id == payer_id,
                Payment.target_id == target.id,
                Payment.type == obligation.payment_type,
                Payment.status == PaymentStatus.SUCCESSFUL,
            )
        ).scalars().first()
        if existing is not None or getattr(target, obligation.flag_field):
            raise AlreadySatisfiedError(
                payer_id=str(payer_id),
                target_id=str(target.id),
                payment_type=obligation.payment_type.value,
                existing_reference=existing.reference if existing else None,
            )

        if target.status != obligation.required_status:
            raise InvalidStateError(
                type(target).__name__,
                str(target.id),
                target.status.value,
                f"{obligation.payment_type.value} is payable only while "
                f"{obligation.required_status.value}",
            )

        if obligation.payment_type is PaymentType.ACCEPTANCE_FEE and is_offer_expired(
            self.clock.now(), admission.acceptance_deadline,
        ):
            raise OfferExpiredError(str(admission.id), admission.acceptance_deadline)

        amount, currency = self._amount_for(obligation, application, admission)

        payer_email = email or application.email
        if not payer_email:
            raise InvalidStateError(
                "Application",
                str(application.id),
                application.status.value,
                "a contact email is required to open a charge",
            )

        reference = new_reference()
        metadata: dict[str, Any] = {
            "application_id": str(application.id),
            "admission_id": str(admission.id) if admission is not None else None,
            "user_id": str(payer_id),
            "type": obligation.payment_type.value,
        }

        with LogContext.bind(payment_reference=reference):
            charge = self._gateway.initialize(
                reference=reference,
                amount=amount,
                currency=currency,
                email=payer_email,
                metadata=metadata,
            )

            payment = Payment(
                payer_id=payer_id,
                application_id=application.id,
                admission_id=admission.id if admission is not None else None,
                target_id=target.id,
                type=obligation.payment_type,
                status=PaymentStatus.PENDING,
                reference=reference,
                paystack_reference=charge.gateway_reference,
                amount=amount,
                currency=currency,
                description=obligation.description,
                gateway_metadata=metadata,
                authorization_url=charge.authorization_url,
                initialized_at=self.clock.now(),
                created_by_id=payer_id,
            )
            savepoint = self.session.begin_nested()
            try:
                self.session.add(payment)
                self.session.flush()
                savepoint.commit()
            except IntegrityError as exc:
                savepoint.rollback()
                logger.warning(
                    "payment_reference_conflict",
                    extra={"payment_type": obligation.payment_type.value},
                )
                raise AlreadySatisfiedError(
                    payer_id=str(payer_id),
                    target_id=str(target.id),
                    payment_type=obligation.payment_type.value,
                ) from exc

            logger.info(
                "payment_initialized",
                extra={
                    "payment_type": obligation.payment_type.value,
                    "amount": amount,
                    "currency": currency,
                    "target_id": str(target.id),
                },
            )

        return PaymentInitialization(
            payment_id=payment.id,
            reference=reference,
            gateway_reference=charge.gateway_reference,
            payment_type=obligation.payment_type,
            amount=amount,
            currency=currency,
            authorization_url=charge.authorization_url,
            access_code=charge.access_code,
        )

    # =========================================================================
    # Reconcile
    # =========================================================================

    def get_payment(self, reference: str) -> Payment:
        """
        Load a payment by local reference.

        Raises:
            PaymentNotFoundError: No payment carries this reference.
        """
        payment = self.session.execute(
            select(Payment).where(Payment.reference == reference)
        ).scalar_one_or_none()
        if payment is None:
            raise PaymentNotFoundError(reference)
        return payment

    def reconcile(self, reference: str) -> ReconciliationResult:
        """
        Apply the gateway's verdict for ``reference``.

        Idempotent: a terminal payment is returned as stored with
        ``replayed=True`` and the gateway is not called.

        Raises:
            PaymentNotFoundError: Unknown reference.
            GatewayUnavailableError: Verification could not be fetched; the
                payment stays pending.
        """
        payment = self.get_payment(reference)
        if payment.is_terminal:
            logger.info(
                "payment_reconcile_replayed",
                extra={"reference": reference, "status": payment.status.value},
            )
            return self._result_for(payment, replayed=True)

        verification = self._gateway.verify(payment.paystack_reference)
        now = self.clock.now()

        if verification.status is GatewayStatus.PENDING:
            logger.info("payment_still_pending", extra={"reference": reference})
            return ReconciliationResult(ReconciliationStatus.PENDING, payment)

        if verification.status is GatewayStatus.SUCCESS:
            if self._matches(payment, verification):
                return self._confirm(payment, verification, now)
            logger.critical(
                "payment_amount_mismatch",
                extra={
                    "reference": reference,
                    "expected_amount": payment.amount,
                    "expected_currency": payment.currency,
                    "reported_amount": verification.amount,
                    "reported_currency": verification.currency,
                },
            )
            return self._fail(payment, verification, now, PaymentFailureReason.AMOUNT_MISMATCH)

        reason = (
            PaymentFailureReason.UNKNOWN_REFERENCE
            if verification.status is GatewayStatus.UNKNOWN
            else PaymentFailureReason.GATEWAY_FAILED
        )
        return self._fail(payment, verification, now, reason)

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _target_for(
        obligation: PaymentObligation,
        application: Application,
        admission: Admission | None,
    ) -> Application | Admission:
        if obligation.target_kind is TargetKind.ADMISSION:
            if admission is None:
                raise ValueError(f"{obligation.payment_type.value} requires an admission")
            if admission.application_id != application.id:
                raise ValueError("admission does not belong to the application")
            return admission
        return application

    def _amount_for(
        self,
        obligation: PaymentObligation,
        application: Application,
        admission: Admission | None,
    ) -> tuple[Decimal, str]:
        if obligation.payment_type is PaymentType.ACCEPTANCE_FEE:
            return admission.acceptance_fee_amount, admission.currency

        schedule = snapshot_fees(
            application.program, application.admission_session, self._fee_defaults,
        )
        if obligation.payment_type is PaymentType.FORM_PURCHASE:
            return compute_form_fee(schedule), schedule.currency

        amount = compute_admission_fee(schedule)
        if amount <= 0:
            raise InvalidStateError(
                "Application",
                str(application.id),
                application.status.value,
                "this admission session charges no admission fee",
            )
        return amount, schedule.currency

    @staticmethod
    def _matches(payment: Payment, verification: GatewayVerification) -> bool:
        if verification.amount is None or not verification.currency:
            return False
        return (
            money_equal(payment.amount, verification.amount)
            and payment.currency.upper() == verification.currency.upper()
        )

    def _claim(self, payment: Payment, values: dict[str, Any]) -> bool:
        """Compare-and-swap pending -> terminal.  True if this call won."""
        result = self.session.execute(
            update(Payment)
            .where(Payment.id == payment.id, Payment.status == PaymentStatus.PENDING)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def _verdict(verification: GatewayVerification, now: datetime) -> dict[str, Any]:
        return {
            "verified_at": now,
            "gateway_amount": verification.amount,
            "gateway_currency": verification.currency,
            "gateway_response": dict(verification.raw),
        }

    def _confirm(
        self,
        payment: Payment,
        verification: GatewayVerification,
        now: datetime,
    ) -> ReconciliationResult:
        obligation = obligation_for(payment.type)

        savepoint = self.session.begin_nested()
        try:
            claimed = self._claim(
                payment,
                {
                    "status": PaymentStatus.SUCCESSFUL,
                    "paid_at": now,
                    **self._verdict(verification, now),
                },
            )
            if claimed:
                target = self._load_target(payment, obligation)
                setattr(target, obligation.flag_field, True)
                self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.warning(
                "payment_obligation_already_satisfied",
                extra={
                    "reference": payment.reference,
                    "payment_type": payment.type.value,
                    "target_id": str(payment.target_id),
                },
            )
            return self._fail(
                payment, verification, now, PaymentFailureReason.ALREADY_SATISFIED,
            )

        self.session.refresh(payment)
        if not claimed:
            logger.info("payment_reconcile_lost_race", extra={"reference": payment.reference})
            return self._result_for(payment, replayed=True)

        logger.info(
            "payment_reconciled",
            extra={
                "reference": payment.reference,
                "payment_type": payment.type.value,
                "flag_field": obligation.flag_field,
                "target_id": str(payment.target_id),
            },
        )
        return ReconciliationResult(ReconciliationStatus.CONFIRMED, payment)

    def _fail(
        self,
        payment: Payment,
        verification: GatewayVerification,
        now: datetime,
        reason: PaymentFailureReason,
    ) -> ReconciliationResult:
        claimed = self._claim(
            payment,
            {
                "status": PaymentStatus.FAILED,
                "failure_reason": reason,
                **self._verdict(verification, now),
            },
        )
        self.session.refresh(payment)
        if not claimed:
            logger.info("payment_reconcile_lost_race", extra={"reference": payment.reference})
            return self._result_for(payment, replayed=True)

        logger.warning(
            "payment_failed",
            extra={"reference": payment.reference, "failure_reason": reason.value},
        )
        return self._result_for(payment, replayed=False)

    def _load_target(
        self,
        payment: Payment,
        obligation: PaymentObligation,
    ) -> Application | Admission:
        if obligation.target_kind is TargetKind.ADMISSION:
            return self.session.get(Admission, payment.admission_id)
        return self.session.get(Application, payment.application_id)

    @staticmethod
    def _result_for(payment: Payment, replayed: bool) -> ReconciliationResult:
        """Rebuild the outcome of a terminal payment from its stored fields."""
        if payment.status is PaymentStatus.SUCCESSFUL:
            return ReconciliationResult(ReconciliationStatus.CONFIRMED, payment, replayed)

        reason = payment.failure_reason
        if reason is PaymentFailureReason.AMOUNT_MISMATCH:
            return ReconciliationResult(
                ReconciliationStatus.AMOUNT_MISMATCH,
                payment,
                replayed,
                AmountMismatchError(
                    payment.reference,
                    payment.amount,
                    payment.currency,
                    payment.gateway_amount,
                    payment.gateway_currency,
                ),
            )
        if reason is PaymentFailureReason.ALREADY_SATISFIED:
            return ReconciliationResult(
                ReconciliationStatus.ALREADY_SATISFIED,
                payment,
                replayed,
                AlreadySatisfiedError(
                    payer_id=str(payment.payer_id),
                    target_id=str(payment.target_id),
                    payment_type=payment.type.value,
                ),
            )
        return ReconciliationResult(
            ReconciliationStatus.FAILED,
            payment,
            replayed,
            PaymentFailedError(
                payment.reference,
                reason.value if reason is not None else "failed",
            ),
        )
