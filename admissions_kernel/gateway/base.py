"""
Payment gateway protocol and its value objects.

Contract:
    PaymentGateway.initialize() opens a charge and returns the gateway-side
    reference plus the redirect payload.  PaymentGateway.verify() fetches the
    authoritative status of a charge.  Both raise GatewayUnavailableError on
    transient failure and GatewayError when the gateway rejects the call.

Architecture: admissions_kernel/gateway.  Network I/O only, no DB imports.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Protocol, runtime_checkable


class GatewayStatus(str, Enum):
    """Authoritative charge status as reported by the gateway."""

    SUCCESS = "success"
    FAILED = "failed"
    UNKNOWN = "unknown"  # gateway does not know the reference
    PENDING = "pending"  # charge not finished yet; try again later


@dataclass(frozen=True)
class GatewayInitialization:
    """Result of opening a charge."""

    gateway_reference: str
    authorization_url: str | None = None
    access_code: str | None = None


@dataclass(frozen=True)
class GatewayVerification:
    """Result of verifying a charge.  Amount is in major units."""

    status: GatewayStatus
    gateway_reference: str
    amount: Decimal | None = None
    currency: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class PaymentGateway(Protocol):
    """Outbound payment processor client."""

    def initialize(
        self,
        *,
        reference: str,
        amount: Decimal,
        currency: str,
        email: str,
        metadata: dict[str, Any],
    ) -> GatewayInitialization:
        """Open a charge for ``amount`` (major units)."""
        ...

    def verify(self, gateway_reference: str) -> GatewayVerification:
        """Fetch the authoritative status of a charge."""
        ...
