"""
Module: admissions_kernel.models.payment
Responsibility: ORM persistence for payment attempts.
Architecture position: Kernel > Models.  May import from db/ and domain/ only.

Invariants enforced:
    - UNIQUE(reference) and UNIQUE(paystack_reference).
    - At most one successful Payment per (payer, target, type): partial
      UNIQUE index WHERE status = 'successful'
      (uq_payment_successful_obligation).  This is the storage-level
      backstop against duplicate-payment races.
    - status moves pending -> successful | failed, never back.  Rows are
      claimed with a compare-and-swap UPDATE ... WHERE status = 'pending';
      ORM writes to terminal rows are blocked by db/immutability.py.

Failure modes:
    - IntegrityError on a duplicate reference, or on a second successful
      payment for one obligation (translated by ReconciliationService).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from admissions_kernel.db.base import TrackedBase, UUIDString
from admissions_kernel.db.types import status_column
from admissions_kernel.domain.lifecycle import TERMINAL_PAYMENT_STATUSES, PaymentStatus
from admissions_kernel.domain.payment_rules import PaymentType

_SUCCESSFUL = text("status = 'successful'")


class PaymentFailureReason(str, Enum):
    """Why a payment ended ``failed``."""

    GATEWAY_FAILED = "gateway_failed"
    UNKNOWN_REFERENCE = "unknown_reference"
    AMOUNT_MISMATCH = "amount_mismatch"
    ALREADY_SATISFIED = "already_satisfied"


class Payment(TrackedBase):
    """
    One payment attempt.

    ``target_id`` is the Application or Admission the payment is for (see
    ``domain.payment_rules``); ``application_id`` is always set and
    ``admission_id`` only for acceptance fees.
    """

    __tablename__ = "payments"

    __table_args__ = (
        Index(
            "uq_payment_successful_obligation",
            "payer_id",
            "target_id",
            "type",
            unique=True,
            postgresql_where=_SUCCESSFUL,
            sqlite_where=_SUCCESSFUL,
        ),
        Index("idx_payment_payer", "payer_id", "initialized_at"),
        Index("idx_payment_status", "status"),
    )

    payer_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    application_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
    )

    admission_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("admissions.id", ondelete="CASCADE"),
        nullable=True,
    )

    target_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    type: Mapped[PaymentType] = mapped_column(status_column(PaymentType), nullable=False)

    status: Mapped[PaymentStatus] = mapped_column(
        status_column(PaymentStatus),
        nullable=False,
        default=PaymentStatus.PENDING,
    )

    reference: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    paystack_reference: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    description: Mapped[str | None] = mapped_column(String(255))

    # "metadata" is reserved on declarative classes
    gateway_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata",
        JSON,
        nullable=True,
    )

    authorization_url: Mapped[str | None] = mapped_column(String(500))

    initialized_at: Mapped[datetime] = mapped_column(nullable=False)

    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)

    verified_at: Mapped[datetime | None] = mapped_column(nullable=True)

    failure_reason: Mapped[PaymentFailureReason | None] = mapped_column(
        status_column(PaymentFailureReason, length=30),
        nullable=True,
    )

    # What the gateway reported at reconciliation
    gateway_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    gateway_currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    gateway_response: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_PAYMENT_STATUSES

    def __repr__(self) -> str:
        return f"<Payment {self.reference} {self.type.value} ({self.status.value})>"
