"""
Admissions kernel services.

Services flush within the caller's transaction; AdmissionsOrchestrator
owns commit/rollback for one request.
"""

from admissions_kernel.services.admissions_orchestrator import (
    AdmissionsOrchestrator,
    OperationResult,
    OperationStatus,
)
from admissions_kernel.services.lifecycle_service import (
    ImportedOffer,
    LifecycleService,
    OfferImportReport,
    OfferImportRow,
    snapshot_fees,
)
from admissions_kernel.services.reconciliation_service import (
    PaymentInitialization,
    ReconciliationResult,
    ReconciliationService,
    ReconciliationStatus,
)
from admissions_kernel.services.sequence_service import SequenceService

__all__ = [
    "AdmissionsOrchestrator",
    "ImportedOffer",
    "LifecycleService",
    "OfferImportReport",
    "OfferImportRow",
    "OperationResult",
    "OperationStatus",
    "PaymentInitialization",
    "ReconciliationResult",
    "ReconciliationService",
    "ReconciliationStatus",
    "SequenceService",
    "snapshot_fees",
]
