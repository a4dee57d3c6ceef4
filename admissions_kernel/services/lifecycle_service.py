"""
LifecycleService -- the Application and Admission state machines.

Responsibility:
    Creates and edits draft applications, moves them through submission
    and staff review, makes admission offers (one at a time on approval or
    in bulk from a roster), and applies applicant accept/decline and the
    offer-expiry sweep.  Every status change is checked against the
    transition tables in ``domain.lifecycle``.

Architecture position:
    Kernel > Services -- imperative shell.  Reads Program/AdmissionSession
    rows, snapshots them into pure ``FeeSchedule`` values and calls the
    pure fee functions.  Never commits; AdmissionsOrchestrator owns the
    transaction.

Invariants enforced:
    - ``submitted`` requires ``form_paid`` and every mandatory field.
    - Applicant edits are allowed only while ``draft``.
    - An Admission is created only from an ``approved`` Application, and
      at most one non-expired Admission exists per Application
      (checked here, backstopped by ``uq_admission_live_offer``).
    - Accept fails with OfferExpiredError once the deadline has passed,
      whether or not the acceptance fee was paid.
    - The expiry sweep is a single conditional UPDATE; re-running it is
      a no-op.
    - Application numbers come from a locked per-session counter inside
      the creating transaction; a collision is retried.

Failure modes:
    - StateConflictError / InvalidTransitionError / IncompleteApplicationError
    - DuplicateApplicationError, ApplicationWindowClosedError, InvalidStateError
    - DuplicateOfferError, OfferExpiredError, AcceptanceFeeUnpaidError
    - ValueError for unknown field names or out-of-range parameters.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from admissions_kernel.db.types import round_money
from admissions_kernel.domain.clock import Clock
from admissions_kernel.domain.fees import (
    FeeDefaults,
    FeeSchedule,
    compute_acceptance_fee,
)
from admissions_kernel.domain.lifecycle import (
    ADMISSION_TRANSITIONS,
    APPLICATION_TRANSITIONS,
    BACKGROUND_FIELDS,
    EDITABLE_APPLICATION_FIELDS,
    LIVE_ADMISSION_STATUSES,
    AdmissionStatus,
    ApplicationStatus,
    acceptance_deadline,
    is_application_window_open,
    is_offer_expired,
    missing_application_fields,
    require_transition,
)
from admissions_kernel.exceptions import (
    AcceptanceFeeUnpaidError,
    ApplicationWindowClosedError,
    DuplicateApplicationError,
    DuplicateOfferError,
    IncompleteApplicationError,
    InvalidStateError,
    OfferExpiredError,
    StateConflictError,
)
from admissions_kernel.logging_config import get_logger
from admissions_kernel.models.admission import Admission
from admissions_kernel.models.application import AcademicBackground, Application
from admissions_kernel.models.program import AdmissionSession, Program
from admissions_kernel.services.base import BaseService
from admissions_kernel.services.sequence_service import SequenceService

logger = get_logger("services.lifecycle")

MIN_DEADLINE_DAYS = 1
MAX_DEADLINE_DAYS = 365


def snapshot_fees(
    program: Program,
    admission_session: AdmissionSession,
    defaults: FeeDefaults,
) -> FeeSchedule:
    """
    Freeze the fee inputs of one program in one session.

    Session fees left NULL fall back to the configured defaults.
    """

    def _or_default(value: Decimal | None, fallback: Decimal) -> Decimal:
        return fallback if value is None else value

    return FeeSchedule(
        currency=defaults.currency,
        use_default_form_fee=program.use_default_form_fee,
        session_form_fee=_or_default(admission_session.form_price, defaults.form_fee),
        session_acceptance_fee=_or_default(
            admission_session.acceptance_fee, defaults.acceptance_fee,
        ),
        session_admission_fee=_or_default(
            admission_session.admission_fee, defaults.admission_fee,
        ),
        program_form_fee=program.form_fee,
        program_acceptance_fee=program.acceptance_fee,
    )


@dataclass(frozen=True)
class OfferImportRow:
    """One line of an admission-offer roster."""

    application_number: str
    email: str | None = None


@dataclass(frozen=True)
class ImportedOffer:
    application_number: str
    email: str | None
    admission_id: UUID


@dataclass(frozen=True)
class OfferImportReport:
    """Outcome of a bulk offer upload."""

    created: tuple[ImportedOffer, ...] = ()
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()


def _violates(exc: IntegrityError, constraint: str, *columns: str) -> bool:
    """Best-effort match of an IntegrityError against a named constraint."""
    message = str(exc.orig)
    if constraint in message:
        return True
    return bool(columns) and all(column in message for column in columns)


class LifecycleService(BaseService):
    """
    Application and Admission lifecycle engine.

    Args:
        session: SQLAlchemy session (caller owns the transaction).
        fee_defaults: Configured fee fallbacks and currency.
        acceptance_deadline_days: Default offer validity in days.
        clock: Time source; SystemClock when omitted.
    """

    MAX_NUMBER_ATTEMPTS = 5

    def __init__(
        self,
        session: Session,
        fee_defaults: FeeDefaults,
        acceptance_deadline_days: int = 14,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._fee_defaults = fee_defaults
        self._deadline_days = self._check_deadline_days(acceptance_deadline_days)
        self._sequences = SequenceService(session)

    # =========================================================================
    # Drafting
    # =========================================================================

    def create_application(
        self,
        applicant_id: UUID,
        admission_session: AdmissionSession,
        program: Program,
        fields: Mapping[str, Any] | None = None,
        academic_backgrounds: Sequence[Mapping[str, Any]] | None = None,
    ) -> Application:
        """
        Open a draft application for ``program`` in ``admission_session``.

        Raises:
            DuplicateApplicationError: Applicant already applied this session.
            InvalidStateError: The admission session is not active.
            ApplicationWindowClosedError: Program inactive or outside its window.
            ValueError: Unknown field names.
        """
        existing = self.session.execute(
            select(Application).where(
                Application.applicant_id == applicant_id,
                Application.admission_session_id == admission_session.id,
            )
        ).scalar_one_or_none()
        if existing is not None:
            raise DuplicateApplicationError(
                applicant_id=str(applicant_id),
                admission_session_id=str(admission_session.id),
                existing_application_id=str(existing.id),
            )

        if not admission_session.is_active:
            raise InvalidStateError(
                "AdmissionSession",
                str(admission_session.id),
                admission_session.status.value,
                "admission session is not accepting applications",
            )

        now = self.clock.now()
        if not program.is_active or not is_application_window_open(
            now, program.application_opens_at, program.application_closes_at,
        ):
            raise ApplicationWindowClosedError(
                str(program.id),
                program.application_opens_at,
                program.application_closes_at,
            )

        values = self._checked_fields(fields or {})
        backgrounds = self._build_backgrounds(academic_backgrounds or ())

        sequence_name = SequenceService.application_sequence(admission_session.academic_year)
        attempt = 0
        while True:
            attempt += 1
            number = self._format_application_number(
                admission_session.academic_year,
                self._sequences.next_value(sequence_name),
            )
            application = Application(
                applicant_id=applicant_id,
                admission_session_id=admission_session.id,
                program_id=program.id,
                application_number=number,
                status=ApplicationStatus.DRAFT,
                form_paid=False,
                admission_fee_paid=False,
                created_by_id=applicant_id,
                **values,
            )
            application.academic_backgrounds = list(backgrounds)

            savepoint = self.session.begin_nested()
            try:
                self.session.add(application)
                self.session.flush()
                savepoint.commit()
            except IntegrityError as exc:
                savepoint.rollback()
                if _violates(
                    exc,
                    "uq_application_applicant_session",
                    "applicant_id",
                    "admission_session_id",
                ):
                    raise DuplicateApplicationError(
                        applicant_id=str(applicant_id),
                        admission_session_id=str(admission_session.id),
                    ) from exc
                logger.warning(
                    "application_number_collision",
                    extra={"application_number": number, "attempt": attempt},
                )
                if attempt >= self.MAX_NUMBER_ATTEMPTS:
                    raise
                backgrounds = self._build_backgrounds(academic_backgrounds or ())
                continue

            logger.info(
                "application_created",
                extra={
                    "application_id": str(application.id),
                    "application_number": number,
                    "program_id": str(program.id),
                    "admission_session_id": str(admission_session.id),
                },
            )
            return application

    def update_application(
        self,
        application: Application,
        fields: Mapping[str, Any],
        academic_backgrounds: Sequence[Mapping[str, Any]] | None = None,
        actor_id: UUID | None = None,
    ) -> Application:
        """
        Applicant edit of a draft.

        ``academic_backgrounds``, when given, replaces the whole list.

        Raises:
            StateConflictError: Application is no longer a draft.
            ValueError: Unknown field names.
        """
        if application.status is not ApplicationStatus.DRAFT:
            raise StateConflictError(
                "Application",
                str(application.id),
                application.status.value,
                "only draft applications can be edited",
            )

        for name, value in self._checked_fields(fields).items():
            setattr(application, name, value)
        if academic_backgrounds is not None:
            application.academic_backgrounds = self._build_backgrounds(academic_backgrounds)
        application.updated_by_id = actor_id or application.applicant_id
        self.session.flush()

        logger.info(
            "application_updated",
            extra={
                "application_id": str(application.id),
                "fields": sorted(fields),
            },
        )
        return application

    def submit(self, application: Application, actor_id: UUID | None = None) -> Application:
        """
        draft -> submitted.

        Raises:
            InvalidTransitionError: Not a draft.
            StateConflictError: The form fee has not cleared.
            IncompleteApplicationError: Mandatory fields missing.
        """
        require_transition(
            "Application",
            application.id,
            APPLICATION_TRANSITIONS,
            application.status,
            ApplicationStatus.SUBMITTED,
        )
        if not application.form_paid:
            raise StateConflictError(
                "Application",
                str(application.id),
                application.status.value,
                "application form has not been paid for",
            )

        missing = missing_application_fields(
            application.identity_fields(), application.background_records(),
        )
        if missing:
            raise IncompleteApplicationError(str(application.id), missing)

        application.status = ApplicationStatus.SUBMITTED
        application.submitted_at = self.clock.now()
        application.updated_by_id = actor_id or application.applicant_id
        self.session.flush()

        logger.info(
            "application_submitted",
            extra={
                "application_id": str(application.id),
                "application_number": application.application_number,
            },
        )
        return application

    # =========================================================================
    # Review
    # =========================================================================

    def start_review(self, application: Application, reviewer_id: UUID) -> Application:
        """submitted -> under_review."""
        require_transition(
            "Application",
            application.id,
            APPLICATION_TRANSITIONS,
            application.status,
            ApplicationStatus.UNDER_REVIEW,
        )
        application.status = ApplicationStatus.UNDER_REVIEW
        application.reviewed_by_id = reviewer_id
        application.updated_by_id = reviewer_id
        self.session.flush()

        logger.info(
            "application_review_started",
            extra={"application_id": str(application.id)},
        )
        return application

    def approve(
        self,
        application: Application,
        reviewer_id: UUID,
        admin_notes: str | None = None,
        acceptance_fee_override: Decimal | None = None,
        deadline_days: int | None = None,
    ) -> Admission:
        """
        under_review -> approved, creating the offer in the same transaction.

        The acceptance fee is the program's (or the session default) unless
        ``acceptance_fee_override`` is given.

        Raises:
            DuplicateOfferError: A non-expired offer already exists.
            InvalidTransitionError: Not under review.
        """
        live = self._live_admission(application.id)
        if live is not None:
            raise DuplicateOfferError(str(application.id), str(live.id))

        require_transition(
            "Application",
            application.id,
            APPLICATION_TRANSITIONS,
            application.status,
            ApplicationStatus.APPROVED,
        )

        if acceptance_fee_override is not None:
            fee = self._checked_fee(acceptance_fee_override)
        else:
            fee = compute_acceptance_fee(
                snapshot_fees(
                    application.program, application.admission_session, self._fee_defaults,
                )
            )

        application.status = ApplicationStatus.APPROVED
        application.admin_notes = admin_notes
        application.reviewed_at = self.clock.now()
        application.reviewed_by_id = reviewer_id
        application.updated_by_id = reviewer_id
        self.session.flush()

        admission = self._create_offer(
            application,
            program_id=application.program_id,
            fee=fee,
            deadline_days=deadline_days,
            actor_id=reviewer_id,
        )
        logger.info(
            "application_approved",
            extra={
                "application_id": str(application.id),
                "admission_id": str(admission.id),
                "acceptance_fee_amount": admission.acceptance_fee_amount,
            },
        )
        return admission

    def reject(
        self,
        application: Application,
        reviewer_id: UUID,
        admin_notes: str | None = None,
    ) -> Application:
        """under_review -> rejected."""
        require_transition(
            "Application",
            application.id,
            APPLICATION_TRANSITIONS,
            application.status,
            ApplicationStatus.REJECTED,
        )
        application.status = ApplicationStatus.REJECTED
        application.admin_notes = admin_notes
        application.reviewed_at = self.clock.now()
        application.reviewed_by_id = reviewer_id
        application.updated_by_id = reviewer_id
        self.session.flush()

        logger.info(
            "application_rejected",
            extra={"application_id": str(application.id)},
        )
        return application

    # =========================================================================
    # Offers
    # =========================================================================

    def accept(self, admission: Admission, actor_id: UUID | None = None) -> Admission:
        """
        offered -> accepted.

        The deadline is checked before anything else.

        Raises:
            OfferExpiredError: Past the deadline, or already swept to expired.
            InvalidTransitionError: Already accepted or declined.
            AcceptanceFeeUnpaidError: The acceptance fee has not cleared.
        """
        now = self.clock.now()
        if admission.status is AdmissionStatus.EXPIRED or (
            admission.status is AdmissionStatus.OFFERED
            and is_offer_expired(now, admission.acceptance_deadline)
        ):
            logger.info(
                "admission_accept_after_deadline",
                extra={
                    "admission_id": str(admission.id),
                    "acceptance_deadline": admission.acceptance_deadline,
                },
            )
            raise OfferExpiredError(str(admission.id), admission.acceptance_deadline)

        require_transition(
            "Admission",
            admission.id,
            ADMISSION_TRANSITIONS,
            admission.status,
            AdmissionStatus.ACCEPTED,
        )
        if not admission.acceptance_fee_paid:
            raise AcceptanceFeeUnpaidError(str(admission.id))

        admission.status = AdmissionStatus.ACCEPTED
        admission.accepted_at = now
        admission.updated_by_id = actor_id or admission.applicant_id
        self.session.flush()

        logger.info("admission_accepted", extra={"admission_id": str(admission.id)})
        return admission

    def decline(self, admission: Admission, actor_id: UUID | None = None) -> Admission:
        """offered -> declined."""
        require_transition(
            "Admission",
            admission.id,
            ADMISSION_TRANSITIONS,
            admission.status,
            AdmissionStatus.DECLINED,
        )
        admission.status = AdmissionStatus.DECLINED
        admission.admission_rejected = True
        admission.rejection_date = self.clock.now()
        admission.updated_by_id = actor_id or admission.applicant_id
        self.session.flush()

        logger.info("admission_declined", extra={"admission_id": str(admission.id)})
        return admission

    def expire_overdue_offers(
        self,
        now: datetime | None = None,
        actor_id: UUID | None = None,
    ) -> int:
        """
        Move every ``offered`` Admission past its deadline to ``expired``.

        One conditional UPDATE, so concurrent or repeated sweeps converge on
        the same end state.  Returns the number of offers expired by this run.
        """
        now = now or self.clock.now()
        values: dict[str, Any] = {"status": AdmissionStatus.EXPIRED, "expired_at": now}
        if actor_id is not None:
            values["updated_by_id"] = actor_id

        overdue = (
            Admission.status == AdmissionStatus.OFFERED,
            Admission.acceptance_deadline < now,
        )
        ids = set(self.session.scalars(select(Admission.id).where(*overdue)))
        if not ids:
            logger.info("offers_expired", extra={"expired_count": 0, "as_of": now})
            return 0

        result = self.session.execute(
            update(Admission)
            .where(Admission.id.in_(ids), *overdue)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        expired = result.rowcount or 0

        # Reload offers already in the identity map on next access
        for instance in list(self.session.identity_map.values()):
            if isinstance(instance, Admission) and instance.id in ids:
                self.session.expire(instance)

        logger.info("offers_expired", extra={"expired_count": expired, "as_of": now})
        return expired

    def import_offers(
        self,
        admission_session: AdmissionSession,
        rows: Iterable[OfferImportRow],
        actor_id: UUID,
        acceptance_fee_amount: Decimal | None = None,
        deadline_days: int | None = None,
        program: Program | None = None,
    ) -> OfferImportReport:
        """
        Bulk-create offers from a roster.

        Every row is validated before any offer is written.  Rows that fail
        validation are reported in ``errors`` and skipped; a program
        mismatch only produces a warning.  The admitted program, when
        given, becomes the offer's program.
        """
        if acceptance_fee_amount is not None:
            acceptance_fee_amount = self._checked_fee(acceptance_fee_amount)
        if deadline_days is not None:
            self._check_deadline_days(deadline_days)

        errors: list[str] = []
        warnings: list[str] = []
        accepted: list[tuple[OfferImportRow, Application]] = []
        seen: set[str] = set()

        for row in rows:
            number = (row.application_number or "").strip()
            if not number:
                errors.append("Row is missing an application number")
                continue
            if number in seen:
                errors.append(f"Duplicate application number in upload: {number}")
                continue
            seen.add(number)

            application = self.session.execute(
                select(Application).where(
                    Application.application_number == number,
                    Application.admission_session_id == admission_session.id,
                )
            ).scalar_one_or_none()
            if application is None:
                errors.append(f"Application not found for application number: {number}")
                continue
            if application.status is not ApplicationStatus.APPROVED:
                errors.append(
                    f"Application {number} is {application.status.value}, not approved"
                )
                continue
            if self._live_admission(application.id) is not None:
                errors.append(f"Admission offer already exists for application: {number}")
                continue
            if program is not None and application.program_id != program.id:
                warnings.append(
                    f"Program mismatch for {row.email or 'N/A'} (App#: {number}): "
                    f"applied to {application.program.code}, admitted to {program.code}"
                )
            accepted.append((row, application))

        created: list[ImportedOffer] = []
        for row, application in accepted:
            offer_program = program or application.program
            if acceptance_fee_amount is not None:
                fee = acceptance_fee_amount
            else:
                fee = compute_acceptance_fee(
                    snapshot_fees(offer_program, admission_session, self._fee_defaults)
                )
            try:
                admission = self._create_offer(
                    application,
                    program_id=offer_program.id,
                    fee=fee,
                    deadline_days=deadline_days,
                    actor_id=actor_id,
                )
            except DuplicateOfferError:
                errors.append(
                    f"Admission offer already exists for application: "
                    f"{application.application_number}"
                )
                continue
            created.append(
                ImportedOffer(
                    application_number=application.application_number,
                    email=row.email or application.email,
                    admission_id=admission.id,
                )
            )

        logger.info(
            "offers_imported",
            extra={
                "admission_session_id": str(admission_session.id),
                "created_count": len(created),
                "error_count": len(errors),
                "warning_count": len(warnings),
            },
        )
        return OfferImportReport(
            created=tuple(created),
            errors=tuple(errors),
            warnings=tuple(warnings),
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _live_admission(self, application_id: UUID) -> Admission | None:
        return self.session.execute(
            select(Admission).where(
                Admission.application_id == application_id,
                Admission.status.in_(list(LIVE_ADMISSION_STATUSES)),
            )
        ).scalars().first()

    def _create_offer(
        self,
        application: Application,
        program_id: UUID,
        fee: Decimal,
        deadline_days: int | None,
        actor_id: UUID,
    ) -> Admission:
        if application.status is not ApplicationStatus.APPROVED:
            raise InvalidStateError(
                "Application",
                str(application.id),
                application.status.value,
                "offers are made only from approved applications",
            )

        now = self.clock.now()
        days = self._deadline_days if deadline_days is None else self._check_deadline_days(deadline_days)
        admission = Admission(
            application_id=application.id,
            applicant_id=application.applicant_id,
            admission_session_id=application.admission_session_id,
            program_id=program_id,
            status=AdmissionStatus.OFFERED,
            acceptance_fee_amount=round_money(fee),
            currency=self._fee_defaults.currency,
            offer_date=now,
            acceptance_deadline=acceptance_deadline(now, days),
            acceptance_fee_paid=False,
            admission_rejected=False,
            created_by_id=actor_id,
        )

        savepoint = self.session.begin_nested()
        try:
            self.session.add(admission)
            self.session.flush()
            savepoint.commit()
        except IntegrityError as exc:
            savepoint.rollback()
            raise DuplicateOfferError(str(application.id)) from exc

        logger.info(
            "admission_offered",
            extra={
                "admission_id": str(admission.id),
                "application_id": str(application.id),
                "acceptance_deadline": admission.acceptance_deadline,
            },
        )
        return admission

    @staticmethod
    def _format_application_number(academic_year: str, sequence: int) -> str:
        digits = re.sub(r"\D", "", academic_year)
        return f"APP{digits}{sequence:05d}"

    @staticmethod
    def _checked_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
        unknown = set(fields) - EDITABLE_APPLICATION_FIELDS
        if unknown:
            raise ValueError(f"Unknown application fields: {', '.join(sorted(unknown))}")
        return dict(fields)

    @staticmethod
    def _build_backgrounds(records: Sequence[Mapping[str, Any]]) -> list[AcademicBackground]:
        backgrounds = []
        for position, record in enumerate(records):
            unknown = set(record) - BACKGROUND_FIELDS
            if unknown:
                raise ValueError(
                    f"Unknown academic background fields: {', '.join(sorted(unknown))}"
                )
            backgrounds.append(AcademicBackground(position=position, **record))
        return backgrounds

    @staticmethod
    def _checked_fee(amount: Decimal) -> Decimal:
        amount = round_money(Decimal(amount))
        if amount < 0:
            raise ValueError(f"Acceptance fee cannot be negative: {amount}")
        return amount

    @staticmethod
    def _check_deadline_days(days: int) -> int:
        if not MIN_DEADLINE_DAYS <= days <= MAX_DEADLINE_DAYS:
            raise ValueError(
                f"Acceptance deadline must be {MIN_DEADLINE_DAYS}-{MAX_DEADLINE_DAYS} days, got {days}"
            )
        return days
