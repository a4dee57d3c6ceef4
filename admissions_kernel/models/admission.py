"""
Module: admissions_kernel.models.admission
Responsibility: ORM persistence for admission offers.
Architecture position: Kernel > Models.  May import from db/ and domain/ only.

Invariants enforced:
    - At most one non-expired Admission per Application: partial UNIQUE
      index on application_id WHERE status <> 'expired'
      (uq_admission_live_offer).  Expired offers do not block a re-offer.
    - status is a closed AdmissionStatus value.

Failure modes:
    - IntegrityError when a second live offer is inserted for the same
      application (translated to DuplicateOfferError by LifecycleService).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from admissions_kernel.db.base import TrackedBase, UUIDString
from admissions_kernel.db.types import status_column
from admissions_kernel.domain.lifecycle import AdmissionStatus
from admissions_kernel.models.application import Application

_LIVE_OFFER = text("status <> 'expired'")


class Admission(TrackedBase):
    """
    One admission offer made from an approved Application.

    ``acceptance_fee_paid`` is written only by ReconciliationService;
    status moves only through LifecycleService (and its expiry sweep).
    """

    __tablename__ = "admissions"

    __table_args__ = (
        Index(
            "uq_admission_live_offer",
            "application_id",
            unique=True,
            postgresql_where=_LIVE_OFFER,
            sqlite_where=_LIVE_OFFER,
        ),
        Index("idx_admission_status_deadline", "status", "acceptance_deadline"),
        Index("idx_admission_applicant", "applicant_id"),
    )

    application_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
    )

    applicant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    admission_session_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("admission_sessions.id"),
        nullable=False,
    )

    program_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("programs.id"),
        nullable=False,
    )

    status: Mapped[AdmissionStatus] = mapped_column(
        status_column(AdmissionStatus),
        nullable=False,
        default=AdmissionStatus.OFFERED,
    )

    acceptance_fee_amount: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    offer_date: Mapped[datetime] = mapped_column(nullable=False)

    acceptance_deadline: Mapped[datetime] = mapped_column(nullable=False)

    accepted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    acceptance_fee_paid: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    admission_rejected: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    rejection_date: Mapped[datetime | None] = mapped_column(nullable=True)

    expired_at: Mapped[datetime | None] = mapped_column(nullable=True)

    application: Mapped[Application] = relationship()

    def __repr__(self) -> str:
        return f"<Admission {self.id} ({self.status.value})>"
