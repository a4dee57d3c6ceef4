"""
Payment obligations -- which payment type unlocks which lifecycle flag.

Responsibility:
    A single table ``{type -> (target kind, flag to set, required state)}``
    consulted by both Initialize and Reconcile, so the rule for what a
    payment pays for is defined exactly once.

Architecture position:
    Kernel > Domain -- pure value objects, zero I/O.
"""

from dataclasses import dataclass
from enum import Enum

from admissions_kernel.domain.lifecycle import AdmissionStatus, ApplicationStatus


class PaymentType(str, Enum):
    """What a payment is for."""

    FORM_PURCHASE = "form_purchase"
    ADMISSION_FEE = "admission_fee"
    ACCEPTANCE_FEE = "acceptance_fee"


class TargetKind(str, Enum):
    """Entity whose flag a payment sets."""

    APPLICATION = "application"
    ADMISSION = "admission"


@dataclass(frozen=True)
class PaymentObligation:
    """
    The lifecycle effect of one payment type.

    Attributes:
        payment_type: The payment type this row describes.
        target_kind: Entity the payment is made against.
        flag_field: Boolean attribute set on the target when the payment clears.
        required_status: Target status in which the payment may be initialized.
        description: Human-readable charge description sent to the gateway.
    """

    payment_type: PaymentType
    target_kind: TargetKind
    flag_field: str
    required_status: ApplicationStatus | AdmissionStatus
    description: str


PAYMENT_OBLIGATIONS: dict[PaymentType, PaymentObligation] = {
    PaymentType.FORM_PURCHASE: PaymentObligation(
        payment_type=PaymentType.FORM_PURCHASE,
        target_kind=TargetKind.APPLICATION,
        flag_field="form_paid",
        required_status=ApplicationStatus.DRAFT,
        description="Application Form Payment",
    ),
    PaymentType.ADMISSION_FEE: PaymentObligation(
        payment_type=PaymentType.ADMISSION_FEE,
        target_kind=TargetKind.APPLICATION,
        flag_field="admission_fee_paid",
        required_status=ApplicationStatus.APPROVED,
        description="Admission Fee Payment",
    ),
    PaymentType.ACCEPTANCE_FEE: PaymentObligation(
        payment_type=PaymentType.ACCEPTANCE_FEE,
        target_kind=TargetKind.ADMISSION,
        flag_field="acceptance_fee_paid",
        required_status=AdmissionStatus.OFFERED,
        description="Admission Acceptance Fee",
    ),
}


def obligation_for(payment_type: PaymentType | str) -> PaymentObligation:
    """
    Look up the obligation for a payment type.

    Raises:
        ValueError: ``payment_type`` is not a known PaymentType value.
    """
    return PAYMENT_OBLIGATIONS[PaymentType(payment_type)]
