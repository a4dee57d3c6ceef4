"""
Fee computation -- pure and deterministic.

Responsibility:
    Given an immutable snapshot of a Program's fee fields, its admission
    session's defaults and the configured fallbacks, compute the exact
    amount owed for each payment type.  Payment initialization uses these
    amounts; a client-supplied amount is never trusted.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Same FeeSchedule in, same Decimal out.  No clock, no storage.
    - All amounts are rounded to minor-unit precision via round_money().
"""

from dataclasses import dataclass
from decimal import Decimal

from admissions_kernel.db.types import round_money


@dataclass(frozen=True)
class FeeDefaults:
    """Configured fallbacks for sessions that leave a fee unset."""

    currency: str
    form_fee: Decimal
    acceptance_fee: Decimal
    admission_fee: Decimal


@dataclass(frozen=True)
class FeeSchedule:
    """
    Fee inputs for one program in one admission session.

    ``session_form_fee`` / ``session_acceptance_fee`` / ``session_admission_fee``
    are the session-wide defaults, already resolved against configuration
    (the session value if set, otherwise the configured default).
    """

    currency: str
    use_default_form_fee: bool
    session_form_fee: Decimal
    session_acceptance_fee: Decimal
    session_admission_fee: Decimal
    program_form_fee: Decimal | None = None
    program_acceptance_fee: Decimal | None = None


def compute_form_fee(schedule: FeeSchedule) -> Decimal:
    """
    Application form price.

    The program's own fee when ``use_default_form_fee`` is false and the
    program has one; the session-wide default otherwise.
    """
    if not schedule.use_default_form_fee and schedule.program_form_fee is not None:
        return round_money(schedule.program_form_fee)
    return round_money(schedule.session_form_fee)


def compute_acceptance_fee(schedule: FeeSchedule) -> Decimal:
    """Acceptance fee: the program's fee, defaulting to the session-wide fee."""
    if schedule.program_acceptance_fee is not None:
        return round_money(schedule.program_acceptance_fee)
    return round_money(schedule.session_acceptance_fee)


def compute_admission_fee(schedule: FeeSchedule) -> Decimal:
    """Admission fee: session-wide, zero when the session charges none."""
    return round_money(schedule.session_admission_fee)
