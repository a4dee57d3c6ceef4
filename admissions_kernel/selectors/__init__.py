"""Read-only selectors."""

from admissions_kernel.selectors.payment_selector import (
    PaymentDTO,
    PaymentSelector,
    PaymentSummary,
)

__all__ = ["PaymentDTO", "PaymentSelector", "PaymentSummary"]
