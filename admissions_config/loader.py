"""
Configuration Loader (``admissions_config.loader``).

Responsibility
--------------
Loads the settings YAML file and parses it into the frozen dataclasses of
``admissions_config.schema``.  Runtime callers use
``admissions_config.get_settings()``, not this module.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Invalid values fail at load time with ``ConfigValidationError``; there
  are no silent corrections.
* ``compute_checksum`` is deterministic for the same parsed content.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Out-of-range or unknown values  -> ``ConfigValidationError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from admissions_config.schema import (
    DEFAULT_CURRENCY,
    AdmissionsSettings,
    FeeSettings,
    GatewaySettings,
    OfferSettings,
    RoleDefinition,
)
from admissions_kernel.db.types import SUPPORTED_CURRENCIES, normalize_currency
from admissions_kernel.domain.authorization import KNOWN_PERMISSIONS
from admissions_kernel.services.lifecycle_service import MAX_DEADLINE_DAYS, MIN_DEADLINE_DAYS

ALL_PERMISSIONS = "*"


class ConfigValidationError(ValueError):
    """A configuration value is missing, malformed or out of range."""

    code: str = "CONFIG_INVALID"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid configuration '{key}': {reason}")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_amount(value: Any, key: str) -> Decimal:
    """Parse a non-negative fee amount.  Floats go through str() first."""
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ConfigValidationError(key, f"not a number: {value!r}") from exc
    if not amount.is_finite() or amount < 0:
        raise ConfigValidationError(key, f"must be a non-negative amount, got {value!r}")
    return amount


def parse_currency(value: Any) -> str:
    try:
        currency = normalize_currency(str(value or ""))
    except ValueError as exc:
        raise ConfigValidationError("currency", str(exc)) from exc
    if currency not in SUPPORTED_CURRENCIES:
        raise ConfigValidationError(
            "currency",
            f"{value!r} is not one of {', '.join(sorted(SUPPORTED_CURRENCIES))}",
        )
    return currency


def parse_fees(data: dict[str, Any]) -> FeeSettings:
    defaults = FeeSettings()
    return FeeSettings(
        default_form_fee=parse_amount(
            data.get("default_form_fee", defaults.default_form_fee), "fees.default_form_fee",
        ),
        default_acceptance_fee=parse_amount(
            data.get("default_acceptance_fee", defaults.default_acceptance_fee),
            "fees.default_acceptance_fee",
        ),
        default_admission_fee=parse_amount(
            data.get("default_admission_fee", defaults.default_admission_fee),
            "fees.default_admission_fee",
        ),
    )


def parse_offers(data: dict[str, Any]) -> OfferSettings:
    key = "offers.acceptance_deadline_days"
    raw = data.get("acceptance_deadline_days", OfferSettings().acceptance_deadline_days)
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ConfigValidationError(key, f"must be an integer, got {raw!r}")
    if not MIN_DEADLINE_DAYS <= raw <= MAX_DEADLINE_DAYS:
        raise ConfigValidationError(
            key, f"must be between {MIN_DEADLINE_DAYS} and {MAX_DEADLINE_DAYS}, got {raw}",
        )
    return OfferSettings(acceptance_deadline_days=raw)


def parse_gateway(data: dict[str, Any], secret_key_override: str | None = None) -> GatewaySettings:
    defaults = GatewaySettings()
    try:
        timeout = float(data.get("timeout_seconds", defaults.timeout_seconds))
    except (TypeError, ValueError) as exc:
        raise ConfigValidationError("gateway.timeout_seconds", "not a number") from exc
    if timeout <= 0:
        raise ConfigValidationError("gateway.timeout_seconds", f"must be positive, got {timeout}")

    base_url = str(data.get("base_url") or defaults.base_url)
    if not base_url.startswith(("http://", "https://")):
        raise ConfigValidationError("gateway.base_url", f"not an http(s) URL: {base_url!r}")

    return GatewaySettings(
        base_url=base_url.rstrip("/"),
        secret_key=secret_key_override or str(data.get("secret_key") or ""),
        timeout_seconds=timeout,
        callback_url=data.get("callback_url") or None,
    )


def parse_roles(data: dict[str, Any]) -> tuple[RoleDefinition, ...]:
    """Parse ``roles``: role name -> list of permissions, or ``"*"`` for all."""
    roles = []
    for name, permissions in sorted((data or {}).items()):
        if permissions == ALL_PERMISSIONS:
            granted = KNOWN_PERMISSIONS
        else:
            granted = frozenset(permissions or ())
            unknown = granted - KNOWN_PERMISSIONS
            if unknown:
                raise ConfigValidationError(
                    f"roles.{name}", f"unknown permissions: {', '.join(sorted(unknown))}",
                )
        roles.append(RoleDefinition(name=str(name), permissions=frozenset(granted)))
    return tuple(roles)


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 over the parsed YAML content."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_settings(
    data: dict[str, Any],
    secret_key_override: str | None = None,
) -> AdmissionsSettings:
    """
    Parse a complete settings document.

    Raises:
        ConfigValidationError: if any value is invalid.
    """
    return AdmissionsSettings(
        currency=parse_currency(data.get("currency", DEFAULT_CURRENCY)),
        fees=parse_fees(data.get("fees") or {}),
        offers=parse_offers(data.get("offers") or {}),
        gateway=parse_gateway(data.get("gateway") or {}, secret_key_override),
        roles=parse_roles(data.get("roles") or {}),
        checksum=compute_checksum(data),
    )
