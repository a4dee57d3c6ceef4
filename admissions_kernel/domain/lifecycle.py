"""
Lifecycle domain types (``admissions_kernel.domain.lifecycle``).

Responsibility
--------------
Closed status sets for Application, Admission and Payment, their explicit
transition tables, the mandatory-field rule for submission, and the
deadline and application-window predicates.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects and functions.  ZERO I/O.
No imports from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Every status change is checked against its transition table; terminal
  states have no outgoing edges.
* ``submitted`` is reachable only from ``draft``; the engine additionally
  requires ``form_paid`` before asking this table.
* Offer expiry is strict: an offer is expired only when ``now`` is past
  the deadline (accepting exactly at the deadline is allowed).
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from admissions_kernel.exceptions import InvalidTransitionError


# =========================================================================
# Application
# =========================================================================


class ApplicationStatus(str, Enum):
    """Application lifecycle states."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"


APPLICATION_TRANSITIONS: dict[ApplicationStatus, frozenset[ApplicationStatus]] = {
    ApplicationStatus.DRAFT: frozenset({ApplicationStatus.SUBMITTED}),
    ApplicationStatus.SUBMITTED: frozenset({ApplicationStatus.UNDER_REVIEW}),
    ApplicationStatus.UNDER_REVIEW: frozenset({
        ApplicationStatus.APPROVED,
        ApplicationStatus.REJECTED,
    }),
    ApplicationStatus.APPROVED: frozenset(),
    ApplicationStatus.REJECTED: frozenset(),
}


# =========================================================================
# Admission
# =========================================================================


class AdmissionStatus(str, Enum):
    """Admission offer lifecycle states."""

    OFFERED = "offered"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"


ADMISSION_TRANSITIONS: dict[AdmissionStatus, frozenset[AdmissionStatus]] = {
    AdmissionStatus.OFFERED: frozenset({
        AdmissionStatus.ACCEPTED,
        AdmissionStatus.DECLINED,
        AdmissionStatus.EXPIRED,
    }),
    AdmissionStatus.ACCEPTED: frozenset(),
    AdmissionStatus.DECLINED: frozenset(),
    AdmissionStatus.EXPIRED: frozenset(),
}

# Statuses that count toward "one non-expired Admission per Application"
LIVE_ADMISSION_STATUSES: frozenset[AdmissionStatus] = frozenset({
    AdmissionStatus.OFFERED,
    AdmissionStatus.ACCEPTED,
    AdmissionStatus.DECLINED,
})


# =========================================================================
# Payment
# =========================================================================


class PaymentStatus(str, Enum):
    """Payment attempt states.  Both outcomes are terminal."""

    PENDING = "pending"
    SUCCESSFUL = "successful"
    FAILED = "failed"


PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.SUCCESSFUL, PaymentStatus.FAILED}),
    PaymentStatus.SUCCESSFUL: frozenset(),
    PaymentStatus.FAILED: frozenset(),
}

TERMINAL_PAYMENT_STATUSES: frozenset[PaymentStatus] = frozenset({
    PaymentStatus.SUCCESSFUL,
    PaymentStatus.FAILED,
})


class AdmissionSessionStatus(str, Enum):
    """Admission session (academic intake) states."""

    ACTIVE = "active"
    INACTIVE = "inactive"


# =========================================================================
# Transition checks
# =========================================================================


def can_transition(table: Mapping[Any, frozenset], current: Enum, target: Enum) -> bool:
    """True if ``current -> target`` is an edge in ``table``."""
    return target in table.get(current, frozenset())


def require_transition(
    entity_type: str,
    entity_id: Any,
    table: Mapping[Any, frozenset],
    current: Enum,
    target: Enum,
) -> None:
    """
    Raise InvalidTransitionError unless ``current -> target`` is legal.

    Raises:
        InvalidTransitionError: The edge is not in the table.
    """
    if not can_transition(table, current, target):
        raise InvalidTransitionError(
            entity_type=entity_type,
            entity_id=str(entity_id),
            current_status=current.value,
            target_status=target.value,
        )


# =========================================================================
# Mandatory fields
# =========================================================================

GENDERS: frozenset[str] = frozenset({"male", "female", "other"})

REQUIRED_APPLICATION_FIELDS: tuple[str, ...] = (
    "first_name",
    "last_name",
    "date_of_birth",
    "gender",
    "nationality",
    "state_of_origin",
    "local_government",
    "address",
    "phone",
    "email",
    "emergency_contact_name",
    "emergency_contact_phone",
    "emergency_contact_relationship",
)

OPTIONAL_APPLICATION_FIELDS: tuple[str, ...] = (
    "middle_name",
    "jamb_registration_number",
    "jamb_score",
    "jamb_year",
    "is_first_choice",
)

EDITABLE_APPLICATION_FIELDS: frozenset[str] = frozenset(
    REQUIRED_APPLICATION_FIELDS + OPTIONAL_APPLICATION_FIELDS
)

REQUIRED_BACKGROUND_FIELDS: tuple[str, ...] = (
    "school_name",
    "qualification",
    "graduation_year",
)

BACKGROUND_FIELDS: frozenset[str] = frozenset(REQUIRED_BACKGROUND_FIELDS + ("cgpa",))


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def missing_application_fields(
    fields: Mapping[str, Any],
    academic_backgrounds: Sequence[Mapping[str, Any]],
) -> tuple[str, ...]:
    """
    Names of every mandatory field that is absent, blank or invalid.

    Returns an empty tuple when the application is complete.  Background
    records are reported as ``academic_backgrounds[i].<field>``.
    """
    missing = [name for name in REQUIRED_APPLICATION_FIELDS if _is_blank(fields.get(name))]

    gender = fields.get("gender")
    if not _is_blank(gender) and str(gender).lower() not in GENDERS:
        missing.append("gender")

    if not academic_backgrounds:
        missing.append("academic_backgrounds")
    for index, record in enumerate(academic_backgrounds):
        for name in REQUIRED_BACKGROUND_FIELDS:
            if _is_blank(record.get(name)):
                missing.append(f"academic_backgrounds[{index}].{name}")

    return tuple(missing)


# =========================================================================
# Time predicates
# =========================================================================


def is_application_window_open(
    now: datetime,
    opens_at: datetime | None,
    closes_at: datetime | None,
) -> bool:
    """
    Whether a program is accepting applications at ``now``.

    Either bound may be missing; with neither set the window is always open.
    Both bounds are inclusive.
    """
    if opens_at is not None and now < opens_at:
        return False
    if closes_at is not None and now > closes_at:
        return False
    return True


def acceptance_deadline(offered_at: datetime, deadline_days: int) -> datetime:
    """Deadline for an offer made at ``offered_at``."""
    return offered_at + timedelta(days=deadline_days)


def is_offer_expired(now: datetime, deadline: datetime) -> bool:
    """True once ``now`` is strictly past the acceptance deadline."""
    return now > deadline
