"""
Admissions Orchestrator - the per-request entry point.

Ties together:
- Authorization gate (``domain.authorization``)
- LifecycleService: Application and Admission state machines
- ReconciliationService: payments
- PaymentSelector: payment reads

Every operation loads its entities, asks the authorization gate, calls
one engine and then commits (or rolls back) as a unit.  Engine errors are
returned as a typed OperationResult; the boundary module maps them to
HTTP status codes.

Manages its own transaction boundary.  Set ``auto_commit=False`` to
delegate commit/rollback to the caller (tests, batch jobs).
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID
from uuid import uuid4 as _uuid4

from sqlalchemy.orm import Session

from admissions_kernel.domain.authorization import (
    Action,
    Actor,
    ActorKind,
    EntityRef,
    PermissionResolver,
    authorize,
    resolve_actor,
)
from admissions_kernel.domain.clock import Clock, SystemClock
from admissions_kernel.domain.fees import FeeDefaults
from admissions_kernel.domain.payment_rules import PaymentType, TargetKind, obligation_for
from admissions_kernel.exceptions import (
    AdmissionNotFoundError,
    AdmissionSessionNotFoundError,
    AdmissionsKernelError,
    ApplicationNotFoundError,
    AuthorizationError,
    GatewayError,
    GatewayUnavailableError,
    NotFoundError,
    PaymentNotFoundError,
    ProgramNotFoundError,
)
from admissions_kernel.gateway.base import PaymentGateway
from admissions_kernel.logging_config import LogContext, get_logger
from admissions_kernel.models.admission import Admission
from admissions_kernel.models.application import Application
from admissions_kernel.models.program import AdmissionSession, Program
from admissions_kernel.selectors.payment_selector import PaymentSelector
from admissions_kernel.services.lifecycle_service import (
    LifecycleService,
    OfferImportRow,
)
from admissions_kernel.services.reconciliation_service import (
    ReconciliationResult,
    ReconciliationService,
)

logger = get_logger("services.admissions_orchestrator")


class OperationStatus(str, Enum):
    """Outcome category of one orchestrated operation."""

    SUCCESS = "success"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    REJECTED = "rejected"  # business rule or payment failure
    INVALID_INPUT = "invalid_input"
    GATEWAY_UNAVAILABLE = "gateway_unavailable"
    GATEWAY_ERROR = "gateway_error"


@dataclass(frozen=True)
class OperationResult:
    """Result of an orchestrated operation."""

    status: OperationStatus
    value: Any = None
    error: Exception | None = None

    @property
    def is_success(self) -> bool:
        return self.status is OperationStatus.SUCCESS

    @property
    def error_code(self) -> str | None:
        if self.error is None:
            return None
        return getattr(self.error, "code", "INVALID_INPUT")


def _status_for(exc: Exception) -> OperationStatus:
    if isinstance(exc, AuthorizationError):
        return OperationStatus.UNAUTHORIZED
    if isinstance(exc, NotFoundError):
        return OperationStatus.NOT_FOUND
    if isinstance(exc, GatewayUnavailableError):
        return OperationStatus.GATEWAY_UNAVAILABLE
    if isinstance(exc, GatewayError):
        return OperationStatus.GATEWAY_ERROR
    if isinstance(exc, AdmissionsKernelError):
        return OperationStatus.REJECTED
    return OperationStatus.INVALID_INPUT


class AdmissionsOrchestrator:
    """
    Orchestrates every admissions operation for one request.

    Args:
        session: SQLAlchemy session.
        gateway: Payment processor client.
        fee_defaults: Configured fee fallbacks and currency.
        permission_resolver: Supplies actor permission snapshots.
        acceptance_deadline_days: Default offer validity.
        clock: Clock for timestamps.  Defaults to SystemClock.
        auto_commit: If True (default), commits on success and rolls back
            on failure.  If False, the caller manages the transaction.
    """

    def __init__(
        self,
        session: Session,
        gateway: PaymentGateway,
        fee_defaults: FeeDefaults,
        permission_resolver: PermissionResolver,
        acceptance_deadline_days: int = 14,
        clock: Clock | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._auto_commit = auto_commit
        self._resolver = permission_resolver

        self._lifecycle = LifecycleService(
            session, fee_defaults, acceptance_deadline_days, self._clock,
        )
        self._reconciliation = ReconciliationService(
            session, gateway, fee_defaults, self._clock,
        )
        self._payments = PaymentSelector(session)

    def actor(self, actor_id: UUID, kind: ActorKind) -> Actor:
        """Resolve the permission snapshot for one request."""
        return resolve_actor(self._resolver, actor_id, kind)

    # =========================================================================
    # Applications
    # =========================================================================

    def create_application(
        self,
        actor: Actor,
        admission_session_id: UUID,
        program_id: UUID,
        fields: Mapping[str, Any] | None = None,
        academic_backgrounds: Sequence[Mapping[str, Any]] | None = None,
    ) -> OperationResult:
        def work():
            authorize(
                actor,
                Action.APPLICATION_CREATE,
                EntityRef("Application", None, actor.actor_id),
            )
            admission_session = self._load(
                AdmissionSession, admission_session_id, AdmissionSessionNotFoundError,
            )
            program = self._load(Program, program_id, ProgramNotFoundError)
            return self._lifecycle.create_application(
                actor.actor_id, admission_session, program, fields, academic_backgrounds,
            )

        return self._run("create_application", actor, work)

    def get_application(self, actor: Actor, application_id: UUID) -> OperationResult:
        def work():
            application = self._application(application_id)
            authorize(actor, Action.APPLICATION_VIEW, self._ref(application))
            return application

        return self._run("get_application", actor, work, application_id=application_id)

    def update_application(
        self,
        actor: Actor,
        application_id: UUID,
        fields: Mapping[str, Any],
        academic_backgrounds: Sequence[Mapping[str, Any]] | None = None,
    ) -> OperationResult:
        def work():
            application = self._application(application_id)
            authorize(actor, Action.APPLICATION_UPDATE, self._ref(application))
            return self._lifecycle.update_application(
                application, fields, academic_backgrounds, actor.actor_id,
            )

        return self._run("update_application", actor, work, application_id=application_id)

    def submit_application(self, actor: Actor, application_id: UUID) -> OperationResult:
        def work():
            application = self._application(application_id)
            authorize(actor, Action.APPLICATION_SUBMIT, self._ref(application))
            return self._lifecycle.submit(application, actor.actor_id)

        return self._run("submit_application", actor, work, application_id=application_id)

    def start_review(self, actor: Actor, application_id: UUID) -> OperationResult:
        def work():
            application = self._application(application_id)
            authorize(actor, Action.APPLICATION_REVIEW, self._ref(application))
            return self._lifecycle.start_review(application, actor.actor_id)

        return self._run("start_review", actor, work, application_id=application_id)

    def approve_application(
        self,
        actor: Actor,
        application_id: UUID,
        admin_notes: str | None = None,
        acceptance_fee_override: Decimal | None = None,
        deadline_days: int | None = None,
    ) -> OperationResult:
        """Approve and make the offer.  ``value`` is the new Admission."""

        def work():
            application = self._application(application_id)
            authorize(actor, Action.APPLICATION_REVIEW, self._ref(application))
            return self._lifecycle.approve(
                application,
                actor.actor_id,
                admin_notes=admin_notes,
                acceptance_fee_override=acceptance_fee_override,
                deadline_days=deadline_days,
            )

        return self._run("approve_application", actor, work, application_id=application_id)

    def reject_application(
        self,
        actor: Actor,
        application_id: UUID,
        admin_notes: str | None = None,
    ) -> OperationResult:
        def work():
            application = self._application(application_id)
            authorize(actor, Action.APPLICATION_REVIEW, self._ref(application))
            return self._lifecycle.reject(application, actor.actor_id, admin_notes)

        return self._run("reject_application", actor, work, application_id=application_id)

    # =========================================================================
    # Admissions
    # =========================================================================

    def get_admission(self, actor: Actor, admission_id: UUID) -> OperationResult:
        def work():
            admission = self._admission(admission_id)
            authorize(actor, Action.ADMISSION_VIEW, self._ref(admission))
            return admission

        return self._run("get_admission", actor, work, admission_id=admission_id)

    def accept_offer(self, actor: Actor, admission_id: UUID) -> OperationResult:
        def work():
            admission = self._admission(admission_id)
            authorize(actor, Action.ADMISSION_ACCEPT, self._ref(admission))
            return self._lifecycle.accept(admission, actor.actor_id)

        return self._run("accept_offer", actor, work, admission_id=admission_id)

    def decline_offer(self, actor: Actor, admission_id: UUID) -> OperationResult:
        def work():
            admission = self._admission(admission_id)
            authorize(actor, Action.ADMISSION_DECLINE, self._ref(admission))
            return self._lifecycle.decline(admission, actor.actor_id)

        return self._run("decline_offer", actor, work, admission_id=admission_id)

    def expire_overdue_offers(
        self,
        actor: Actor,
        now: datetime | None = None,
    ) -> OperationResult:
        """Scheduled sweep entry point.  ``value`` is the number expired."""

        def work():
            authorize(actor, Action.ADMISSION_EXPIRE, EntityRef("Admission", None, None))
            return self._lifecycle.expire_overdue_offers(now, actor.actor_id)

        return self._run("expire_overdue_offers", actor, work)

    def import_offers(
        self,
        actor: Actor,
        admission_session_id: UUID,
        rows: Iterable[OfferImportRow],
        acceptance_fee_amount: Decimal | None = None,
        deadline_days: int | None = None,
        program_id: UUID | None = None,
    ) -> OperationResult:
        """Bulk offer upload.  ``value`` is an OfferImportReport."""

        def work():
            authorize(actor, Action.ADMISSION_IMPORT, EntityRef("Admission", None, None))
            admission_session = self._load(
                AdmissionSession, admission_session_id, AdmissionSessionNotFoundError,
            )
            program = (
                self._load(Program, program_id, ProgramNotFoundError)
                if program_id is not None
                else None
            )
            return self._lifecycle.import_offers(
                admission_session,
                rows,
                actor.actor_id,
                acceptance_fee_amount=acceptance_fee_amount,
                deadline_days=deadline_days,
                program=program,
            )

        return self._run("import_offers", actor, work)

    # =========================================================================
    # Payments
    # =========================================================================

    def initialize_payment(
        self,
        actor: Actor,
        payment_type: PaymentType | str,
        application_id: UUID,
        admission_id: UUID | None = None,
        email: str | None = None,
    ) -> OperationResult:
        """Open a charge.  ``value`` is a PaymentInitialization."""

        def work():
            obligation = obligation_for(payment_type)
            application = self._application(application_id)
            admission = None
            if admission_id is not None:
                admission = self._admission(admission_id)
            target = admission if obligation.target_kind is TargetKind.ADMISSION else application
            if target is None:
                raise ValueError(f"{obligation.payment_type.value} requires an admission_id")
            authorize(actor, Action.PAYMENT_INITIALIZE, self._ref(target))
            return self._reconciliation.initialize(
                target.applicant_id,
                obligation.payment_type,
                application,
                admission,
                email,
            )

        return self._run(
            "initialize_payment",
            actor,
            work,
            application_id=application_id,
            admission_id=admission_id,
        )

    def reconcile_payment(self, actor: Actor, reference: str) -> OperationResult:
        """
        Apply the gateway verdict for ``reference``.

        ``value`` is the ReconciliationResult.  A failed or mismatched
        payment is committed as failed and returned with status REJECTED
        and the matching PaymentError.
        """

        def work():
            payment = self._reconciliation.get_payment(reference)
            authorize(
                actor,
                Action.PAYMENT_RECONCILE,
                EntityRef("Payment", payment.id, payment.payer_id),
            )
            return self._reconciliation.reconcile(reference)

        result = self._run("reconcile_payment", actor, work, payment_reference=reference)
        if result.is_success:
            outcome: ReconciliationResult = result.value
            if outcome.error is not None:
                return OperationResult(OperationStatus.REJECTED, outcome, outcome.error)
        return result

    def get_payment(self, actor: Actor, reference: str) -> OperationResult:
        def work():
            payment = self._payments.get_by_reference(reference)
            if payment is None:
                raise PaymentNotFoundError(reference)
            authorize(actor, Action.PAYMENT_VIEW, EntityRef("Payment", payment.id, payment.payer_id))
            return payment

        return self._run("get_payment", actor, work, payment_reference=reference)

    def payment_history(
        self,
        actor: Actor,
        payer_id: UUID | None = None,
        payment_type: PaymentType | None = None,
    ) -> OperationResult:
        """A payer's payments, newest first.  Defaults to the actor's own."""
        payer_id = payer_id or actor.actor_id

        def work():
            authorize(actor, Action.PAYMENT_VIEW, EntityRef("Payment", None, payer_id))
            return self._payments.history_for_payer(payer_id, payment_type)

        return self._run("payment_history", actor, work)

    def payment_summary(self, actor: Actor) -> OperationResult:
        def work():
            authorize(actor, Action.PAYMENT_SUMMARY, EntityRef("Payment", None, None))
            return self._payments.summary()

        return self._run("payment_summary", actor, work)

    # =========================================================================
    # Internals
    # =========================================================================

    def _load(self, model, entity_id: UUID, not_found: type[NotFoundError]):
        entity = self._session.get(model, entity_id)
        if entity is None:
            raise not_found(str(entity_id))
        return entity

    def _application(self, application_id: UUID) -> Application:
        return self._load(Application, application_id, ApplicationNotFoundError)

    def _admission(self, admission_id: UUID) -> Admission:
        return self._load(Admission, admission_id, AdmissionNotFoundError)

    @staticmethod
    def _ref(entity: Application | Admission) -> EntityRef:
        return EntityRef(type(entity).__name__, entity.id, entity.applicant_id)

    def _run(
        self,
        operation: str,
        actor: Actor,
        work: Callable[[], Any],
        **context: Any,
    ) -> OperationResult:
        correlation_id = str(_uuid4())
        with LogContext.bind(
            correlation_id=correlation_id,
            actor_id=str(actor.actor_id),
            **{key: value for key, value in context.items() if value is not None},
        ):
            logger.info(
                "operation_started",
                extra={"operation": operation, "actor_kind": actor.kind.value},
            )
            t0 = time.monotonic()
            try:
                value = work()
            except (AdmissionsKernelError, ValueError) as exc:
                self._rollback()
                status = _status_for(exc)
                level = logging.WARNING if status in (
                    OperationStatus.UNAUTHORIZED,
                    OperationStatus.GATEWAY_UNAVAILABLE,
                    OperationStatus.GATEWAY_ERROR,
                ) else logging.INFO
                logger.log(
                    level,
                    "operation_failed",
                    extra={
                        "operation": operation,
                        "status": status.value,
                        "error_code": getattr(exc, "code", "INVALID_INPUT"),
                        "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                    },
                )
                return OperationResult(status, error=exc)
            except Exception:
                self._rollback()
                logger.error(
                    "operation_error",
                    extra={"operation": operation},
                    exc_info=True,
                )
                raise

            if self._auto_commit:
                self._session.commit()

            logger.info(
                "operation_completed",
                extra={
                    "operation": operation,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
            return OperationResult(OperationStatus.SUCCESS, value=value)

    def _rollback(self) -> None:
        if self._auto_commit:
            self._session.rollback()
