"""ORM models for the admissions kernel."""

from admissions_kernel.models.admission import Admission
from admissions_kernel.models.application import AcademicBackground, Application
from admissions_kernel.models.payment import Payment, PaymentFailureReason
from admissions_kernel.models.program import AdmissionSession, Program

__all__ = [
    "AcademicBackground",
    "Admission",
    "AdmissionSession",
    "Application",
    "Payment",
    "PaymentFailureReason",
    "Program",
]
