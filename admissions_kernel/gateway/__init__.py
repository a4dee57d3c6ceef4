"""Payment gateway clients (network I/O only, no DB)."""

from admissions_kernel.gateway.base import (
    GatewayInitialization,
    GatewayStatus,
    GatewayVerification,
    PaymentGateway,
)
from admissions_kernel.gateway.paystack import PaystackGateway

__all__ = [
    "GatewayInitialization",
    "GatewayStatus",
    "GatewayVerification",
    "PaymentGateway",
    "PaystackGateway",
]
