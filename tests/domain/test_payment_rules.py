"""Tests for the payment obligation table (admissions_kernel/domain/payment_rules.py)."""

import pytest

from admissions_kernel.domain.lifecycle import AdmissionStatus, ApplicationStatus
from admissions_kernel.domain.payment_rules import (
    PAYMENT_OBLIGATIONS,
    PaymentType,
    TargetKind,
    obligation_for,
)


class TestObligations:

    def test_every_payment_type_has_one_obligation(self):
        assert set(PAYMENT_OBLIGATIONS) == set(PaymentType)

    @pytest.mark.parametrize("payment_type, target_kind, flag, required", [
        (PaymentType.FORM_PURCHASE, TargetKind.APPLICATION, "form_paid", ApplicationStatus.DRAFT),
        (
            PaymentType.ADMISSION_FEE,
            TargetKind.APPLICATION,
            "admission_fee_paid",
            ApplicationStatus.APPROVED,
        ),
        (
            PaymentType.ACCEPTANCE_FEE,
            TargetKind.ADMISSION,
            "acceptance_fee_paid",
            AdmissionStatus.OFFERED,
        ),
    ])
    def test_obligation_row(self, payment_type, target_kind, flag, required):
        obligation = obligation_for(payment_type)
        assert obligation.target_kind is target_kind
        assert obligation.flag_field == flag
        assert obligation.required_status == required

    def test_lookup_by_string_value(self):
        assert obligation_for("acceptance_fee").payment_type is PaymentType.ACCEPTANCE_FEE

    def test_unknown_type_is_rejected(self):
        with pytest.raises(ValueError):
            obligation_for("tuition")
