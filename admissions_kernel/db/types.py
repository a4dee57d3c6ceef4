"""
Module: admissions_kernel.db.types
Responsibility: Utility functions for fee amounts, currency codes and closed
    status columns.  Centralizes precision, rounding and minor-unit conversion
    so that the engines and the gateway client agree on the exact value of a
    charge.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, selectors/ and gateway/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats anywhere in fee handling.  All amounts are Decimal.
    - round_money() is the only sanctioned rounding function.
    - to_minor_units()/from_minor_units() are exact inverses for amounts
      already rounded to the currency's minor unit.
    - Status columns are closed: a value outside the enum is rejected when
      bound, never stored.
"""

from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from sqlalchemy import Enum as SAEnum

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

# Currencies the gateway settles in; all use 2 minor-unit digits
SUPPORTED_CURRENCIES: frozenset[str] = frozenset({"NGN", "GHS", "ZAR", "KES", "USD"})


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to specified decimal places.

    This is the ONLY sanctioned rounding function for fee amounts.
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places else "1"
    return Decimal(value).quantize(Decimal(quantize_str), rounding=rounding)


def to_minor_units(value: Decimal, decimal_places: int = MONEY_DECIMAL_PLACES) -> int:
    """
    Convert a major-unit amount to integer minor units (e.g. naira -> kobo).

    Example:
        to_minor_units(Decimal("5000.00")) -> 500000
    """
    scaled = round_money(value, decimal_places) * (Decimal(10) ** decimal_places)
    return int(scaled.to_integral_value())


def from_minor_units(value: int, decimal_places: int = MONEY_DECIMAL_PLACES) -> Decimal:
    """
    Convert integer minor units back to a major-unit Decimal.

    Example:
        from_minor_units(1050) -> Decimal("10.50")
    """
    divisor = Decimal(10) ** decimal_places
    return round_money(Decimal(int(value)) / divisor, decimal_places)


def money_equal(left: Decimal, right: Decimal) -> bool:
    """Exact comparison at minor-unit precision."""
    return round_money(left) == round_money(right)


def normalize_currency(currency: str) -> str:
    """
    Return the uppercase currency code.

    Raises:
        ValueError: If the code is not 3 letters.
    """
    if not currency or not isinstance(currency, str):
        raise ValueError(f"Invalid currency code: {currency!r}")
    normalized = currency.strip().upper()
    if len(normalized) != 3 or not normalized.isalpha():
        raise ValueError(f"Invalid currency code: {currency!r}")
    return normalized


def _enum_values(enum_cls: type[Enum]) -> list[str]:
    return [member.value for member in enum_cls]


def status_column(enum_cls: type[Enum], length: int = 20) -> SAEnum:
    """
    Column type for a closed status set.

    Stores the enum's string value, loads the enum member, and rejects any
    string outside the set at bind time.
    """
    return SAEnum(
        enum_cls,
        native_enum=False,
        create_constraint=False,
        length=length,
        values_callable=_enum_values,
        validate_strings=True,
    )
