"""
Module: admissions_kernel.selectors.payment_selector
Responsibility: Read-only access to payments: a payer's history, a single
    payment by reference, and the accountant's summary of counts and
    cleared totals.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - History is ordered newest first by ``initialized_at`` (then
      reference, for a stable order).
    - Summary totals count successful payments only.

Failure modes:
    - Returns None / empty results when nothing matches; never raises on
      absence of data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select

from admissions_kernel.domain.lifecycle import PaymentStatus
from admissions_kernel.domain.payment_rules import PaymentType
from admissions_kernel.models.payment import Payment, PaymentFailureReason
from admissions_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class PaymentDTO:
    """Data transfer object for a payment."""

    id: UUID
    reference: str
    paystack_reference: str
    payer_id: UUID
    application_id: UUID
    admission_id: UUID | None
    target_id: UUID
    type: PaymentType
    status: PaymentStatus
    amount: Decimal
    currency: str
    description: str | None
    metadata: dict[str, Any] | None
    authorization_url: str | None
    initialized_at: datetime
    paid_at: datetime | None
    failure_reason: PaymentFailureReason | None

    @classmethod
    def from_model(cls, payment: Payment) -> PaymentDTO:
        return cls(
            id=payment.id,
            reference=payment.reference,
            paystack_reference=payment.paystack_reference,
            payer_id=payment.payer_id,
            application_id=payment.application_id,
            admission_id=payment.admission_id,
            target_id=payment.target_id,
            type=payment.type,
            status=payment.status,
            amount=payment.amount,
            currency=payment.currency,
            description=payment.description,
            metadata=payment.gateway_metadata,
            authorization_url=payment.authorization_url,
            initialized_at=payment.initialized_at,
            paid_at=payment.paid_at,
            failure_reason=payment.failure_reason,
        )


@dataclass(frozen=True)
class PaymentSummary:
    """Counts by status and type, and cleared totals by type."""

    total_count: int
    count_by_status: dict[PaymentStatus, int] = field(default_factory=dict)
    count_by_type: dict[PaymentType, int] = field(default_factory=dict)
    successful_total_by_type: dict[PaymentType, Decimal] = field(default_factory=dict)

    @property
    def successful_total(self) -> Decimal:
        return sum(self.successful_total_by_type.values(), Decimal("0"))


class PaymentSelector(BaseSelector):
    """Selector for payment queries."""

    def get_by_reference(self, reference: str) -> PaymentDTO | None:
        payment = self.session.execute(
            select(Payment).where(Payment.reference == reference)
        ).scalar_one_or_none()
        return PaymentDTO.from_model(payment) if payment is not None else None

    def history_for_payer(
        self,
        payer_id: UUID,
        payment_type: PaymentType | None = None,
        limit: int | None = None,
    ) -> list[PaymentDTO]:
        """A payer's payments, newest first."""
        query = (
            select(Payment)
            .where(Payment.payer_id == payer_id)
            .order_by(Payment.initialized_at.desc(), Payment.reference.desc())
        )
        if payment_type is not None:
            query = query.where(Payment.type == payment_type)
        if limit is not None:
            query = query.limit(limit)
        return [PaymentDTO.from_model(p) for p in self.session.execute(query).scalars()]

    def summary(self) -> PaymentSummary:
        """Counts and cleared totals across all payments."""
        count_by_status = {status: 0 for status in PaymentStatus}
        count_by_type = {payment_type: 0 for payment_type in PaymentType}
        totals = {payment_type: Decimal("0") for payment_type in PaymentType}

        rows = self.session.execute(
            select(Payment.status, Payment.type, func.count(Payment.id))
            .group_by(Payment.status, Payment.type)
        ).all()
        for status, payment_type, count in rows:
            count_by_status[status] += count
            count_by_type[payment_type] += count

        cleared = self.session.execute(
            select(Payment.type, func.sum(Payment.amount))
            .where(Payment.status == PaymentStatus.SUCCESSFUL)
            .group_by(Payment.type)
        ).all()
        for payment_type, amount in cleared:
            totals[payment_type] = Decimal(amount or 0)

        return PaymentSummary(
            total_count=sum(count_by_status.values()),
            count_by_status=count_by_status,
            count_by_type=count_by_type,
            successful_total_by_type=totals,
        )
