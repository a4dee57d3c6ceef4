"""
ORM-Level Immutability Enforcement for terminal payments.

===============================================================================
WHY THIS EXISTS
===============================================================================

A payment that reached ``successful`` or ``failed`` never changes again.
The reconciliation engine claims pending rows with a compare-and-swap
``UPDATE ... WHERE status = 'pending'`` (a Core statement, which these
listeners do not see).  Everything that goes through the ORM unit of work
is checked here, so an accidental ``payment.status = ...`` on a terminal
row fails loudly instead of rewriting history.

    session.flush()
         |
         v
    [before_update] --> _check_payment_immutability() --> ImmutabilityViolationError
         |
    [before_delete] --> _check_payment_delete() --------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity    | When Immutable                       | Allowed to change
----------|--------------------------------------|---------------------------
Payment   | persisted status is successful/failed | updated_at, updated_by_id

Usage:
    from admissions_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from admissions_kernel.domain.lifecycle import TERMINAL_PAYMENT_STATUSES, PaymentStatus
from admissions_kernel.exceptions import ImmutabilityViolationError
from admissions_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})


def _persisted_status(target) -> PaymentStatus | None:
    """Status as it was loaded from the database, before this flush."""
    history = get_history(target, "status")
    if history.deleted:
        return PaymentStatus(history.deleted[0])
    if history.unchanged:
        return PaymentStatus(history.unchanged[0])
    return None


def _check_payment_immutability(mapper, connection, target):
    """Block any field change on a payment whose stored status is terminal."""
    status = _persisted_status(target)
    if status not in TERMINAL_PAYMENT_STATUSES:
        return

    for attr in inspect(target).attrs:
        if attr.key in _AUDIT_FIELDS:
            continue
        if attr.history.has_changes():
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "Payment",
                    "entity_id": str(target.id),
                    "operation": "UPDATE",
                    "field": attr.key,
                },
            )
            raise ImmutabilityViolationError(
                entity_type="Payment",
                entity_id=str(target.id),
                reason=f"Cannot modify field '{attr.key}' on {status.value} payment",
            )


def _check_payment_delete(mapper, connection, target):
    """Terminal payments are never deleted through the ORM."""
    status = _persisted_status(target)
    if status not in TERMINAL_PAYMENT_STATUSES:
        return
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "Payment",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="Payment",
        entity_id=str(target.id),
        reason=f"Cannot delete {status.value} payment",
    )


def register_immutability_listeners():
    """
    Register immutability enforcement event listeners.

    Call this after models are imported but before any database
    operations begin.  Idempotent.
    """
    from admissions_kernel.models.payment import Payment

    if not event.contains(Payment, "before_update", _check_payment_immutability):
        event.listen(Payment, "before_update", _check_payment_immutability)
    if not event.contains(Payment, "before_delete", _check_payment_delete):
        event.listen(Payment, "before_delete", _check_payment_delete)


def _safe_remove_listener(target, event_name, listener_fn):
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests.
    """
    from admissions_kernel.models.payment import Payment

    _safe_remove_listener(Payment, "before_update", _check_payment_immutability)
    _safe_remove_listener(Payment, "before_delete", _check_payment_delete)
