"""
Admissions settings schema.

Frozen dataclasses parsed from YAML by ``admissions_config.loader``.  These
are the runtime artifact: callers receive an ``AdmissionsSettings`` from
``admissions_config.get_settings()`` and hand it to the bridges, which
translate it into kernel inputs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

DEFAULT_CURRENCY = "NGN"
DEFAULT_FORM_FEE = Decimal("5000")
DEFAULT_ACCEPTANCE_FEE = Decimal("50000")
DEFAULT_ADMISSION_FEE = Decimal("0")
DEFAULT_DEADLINE_DAYS = 14
DEFAULT_GATEWAY_URL = "https://api.paystack.co"
DEFAULT_GATEWAY_TIMEOUT = 10.0


@dataclass(frozen=True)
class FeeSettings:
    """Fallback fees for sessions that leave a fee unset."""

    default_form_fee: Decimal = DEFAULT_FORM_FEE
    default_acceptance_fee: Decimal = DEFAULT_ACCEPTANCE_FEE
    # 0 means "use the session's fee"; a session without one charges nothing
    default_admission_fee: Decimal = DEFAULT_ADMISSION_FEE


@dataclass(frozen=True)
class OfferSettings:
    acceptance_deadline_days: int = DEFAULT_DEADLINE_DAYS


@dataclass(frozen=True)
class GatewaySettings:
    """Paystack connection settings."""

    base_url: str = DEFAULT_GATEWAY_URL
    secret_key: str = field(default="", repr=False)
    timeout_seconds: float = DEFAULT_GATEWAY_TIMEOUT
    callback_url: str | None = None


@dataclass(frozen=True)
class RoleDefinition:
    """A named role and the permissions it grants."""

    name: str
    permissions: frozenset[str] = frozenset()


@dataclass(frozen=True)
class AdmissionsSettings:
    """Complete, validated admissions configuration."""

    currency: str = DEFAULT_CURRENCY
    fees: FeeSettings = field(default_factory=FeeSettings)
    offers: OfferSettings = field(default_factory=OfferSettings)
    gateway: GatewaySettings = field(default_factory=GatewaySettings)
    roles: tuple[RoleDefinition, ...] = ()
    checksum: str = ""

    def role_table(self) -> dict[str, frozenset[str]]:
        """Role name -> permission set."""
        return {role.name: role.permissions for role in self.roles}
