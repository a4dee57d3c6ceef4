"""
Authorization gate (``admissions_kernel.domain.authorization``).

Responsibility
--------------
A pure decision function ``decide(actor, action, entity) -> Decision``
consulted before every mutation.  The actor carries an immutable snapshot
of permission names resolved once per request by a ``PermissionResolver``;
this module never reads roles from storage.

Architecture position
---------------------
**Kernel domain layer** -- pure.  ZERO I/O.  ``authorize()`` only adds a
log line and the typed failure on top of ``decide()``.

Invariants enforced
-------------------
* Every ``Action`` has exactly one ``AccessRule`` in ``ACCESS_RULES``;
  an action without a rule is denied.
* A rule grants access to the entity's owner, to holders of any listed
  permission, or to either.
* A ``Deny`` always surfaces as ``UnauthorizedError``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol
from uuid import UUID

from admissions_kernel.exceptions import UnauthorizedError
from admissions_kernel.logging_config import get_logger

logger = get_logger("domain.authorization")


# =========================================================================
# Permissions
# =========================================================================

MANAGE_USERS = "manage-users"
MANAGE_PAYMENTS = "manage-payments"
VIEW_PAYMENTS = "view-payments"
MANAGE_ADMISSIONS = "manage-admissions"
VIEW_APPLICATIONS = "view-applications"
MANAGE_DEPARTMENTS = "manage-departments"
MANAGE_FACULTIES = "manage-faculties"
VIEW_FACULTIES = "view-faculties"
MANAGE_SETTINGS = "manage-settings"
VERIFY_PAYMENTS = "verify-payments"
EXPIRE_OFFERS = "expire-offers"

KNOWN_PERMISSIONS: frozenset[str] = frozenset({
    MANAGE_USERS,
    MANAGE_PAYMENTS,
    VIEW_PAYMENTS,
    MANAGE_ADMISSIONS,
    VIEW_APPLICATIONS,
    MANAGE_DEPARTMENTS,
    MANAGE_FACULTIES,
    VIEW_FACULTIES,
    MANAGE_SETTINGS,
    VERIFY_PAYMENTS,
    EXPIRE_OFFERS,
})


# =========================================================================
# Actors and entities
# =========================================================================


class ActorKind(str, Enum):
    """Who is acting."""

    APPLICANT = "applicant"
    STAFF = "staff"
    SYSTEM = "system"


@dataclass(frozen=True)
class Actor:
    """An authenticated caller with a permission snapshot for one request."""

    actor_id: UUID
    kind: ActorKind
    permissions: frozenset[str] = field(default_factory=frozenset)

    def holds_any(self, permissions: Iterable[str]) -> bool:
        return not self.permissions.isdisjoint(permissions)


@dataclass(frozen=True)
class EntityRef:
    """The thing being acted on: its type, id (if it exists yet) and owner."""

    entity_type: str
    entity_id: UUID | None
    owner_id: UUID | None


class Action(str, Enum):
    """Every operation the engines expose."""

    APPLICATION_CREATE = "application.create"
    APPLICATION_VIEW = "application.view"
    APPLICATION_UPDATE = "application.update"
    APPLICATION_SUBMIT = "application.submit"
    APPLICATION_REVIEW = "application.review"
    ADMISSION_VIEW = "admission.view"
    ADMISSION_ACCEPT = "admission.accept"
    ADMISSION_DECLINE = "admission.decline"
    ADMISSION_IMPORT = "admission.import"
    ADMISSION_EXPIRE = "admission.expire"
    PAYMENT_INITIALIZE = "payment.initialize"
    PAYMENT_RECONCILE = "payment.reconcile"
    PAYMENT_VIEW = "payment.view"
    PAYMENT_SUMMARY = "payment.summary"


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


@dataclass(frozen=True)
class AccessRule:
    """Owner OR any of ``permissions`` (either side may be disabled)."""

    owner: bool = False
    permissions: frozenset[str] = frozenset()


ACCESS_RULES: dict[Action, AccessRule] = {
    Action.APPLICATION_CREATE: AccessRule(owner=True),
    Action.APPLICATION_VIEW: AccessRule(
        owner=True, permissions=frozenset({VIEW_APPLICATIONS, MANAGE_ADMISSIONS}),
    ),
    Action.APPLICATION_UPDATE: AccessRule(owner=True),
    Action.APPLICATION_SUBMIT: AccessRule(owner=True),
    Action.APPLICATION_REVIEW: AccessRule(permissions=frozenset({MANAGE_ADMISSIONS})),
    Action.ADMISSION_VIEW: AccessRule(
        owner=True, permissions=frozenset({VIEW_APPLICATIONS, MANAGE_ADMISSIONS}),
    ),
    Action.ADMISSION_ACCEPT: AccessRule(owner=True),
    Action.ADMISSION_DECLINE: AccessRule(owner=True),
    Action.ADMISSION_IMPORT: AccessRule(permissions=frozenset({MANAGE_ADMISSIONS})),
    Action.ADMISSION_EXPIRE: AccessRule(
        permissions=frozenset({EXPIRE_OFFERS, MANAGE_ADMISSIONS}),
    ),
    Action.PAYMENT_INITIALIZE: AccessRule(owner=True),
    Action.PAYMENT_RECONCILE: AccessRule(
        owner=True, permissions=frozenset({VERIFY_PAYMENTS, MANAGE_PAYMENTS}),
    ),
    Action.PAYMENT_VIEW: AccessRule(
        owner=True, permissions=frozenset({VIEW_PAYMENTS, MANAGE_PAYMENTS}),
    ),
    Action.PAYMENT_SUMMARY: AccessRule(
        permissions=frozenset({VIEW_PAYMENTS, MANAGE_PAYMENTS}),
    ),
}


def decide(actor: Actor, action: Action, entity: EntityRef) -> Decision:
    """Pure authorization decision.  No side effects."""
    rule = ACCESS_RULES.get(action)
    if rule is None:
        return Decision.DENY
    if rule.owner and entity.owner_id is not None and entity.owner_id == actor.actor_id:
        return Decision.ALLOW
    if rule.permissions and actor.holds_any(rule.permissions):
        return Decision.ALLOW
    return Decision.DENY


def authorize(actor: Actor, action: Action, entity: EntityRef) -> None:
    """
    Raise unless ``decide`` allows the action.

    Raises:
        UnauthorizedError: The decision was DENY.
    """
    if decide(actor, action, entity) is Decision.ALLOW:
        return
    logger.warning(
        "authorization_denied",
        extra={
            "action": action.value,
            "actor_kind": actor.kind.value,
            "entity_type": entity.entity_type,
            "entity_id": str(entity.entity_id) if entity.entity_id else None,
        },
    )
    raise UnauthorizedError(
        actor_id=str(actor.actor_id),
        action=action.value,
        entity_type=entity.entity_type,
        entity_id=str(entity.entity_id) if entity.entity_id else None,
    )


# =========================================================================
# Permission resolution (external input)
# =========================================================================


class PermissionResolver(Protocol):
    """Supplies the permission snapshot for one request."""

    def resolve_permissions(self, actor_id: UUID, actor_kind: ActorKind) -> frozenset[str]:
        ...


class RoleTablePermissionResolver:
    """
    Resolve permissions from a role -> permissions table.

    ``role_lookup`` returns the role names assigned to an actor; the
    permission set is the union of those roles' permissions.  System
    actors always receive the ``system`` role.
    """

    SYSTEM_ROLE = "system"

    def __init__(
        self,
        role_permissions: Mapping[str, Iterable[str]],
        role_lookup: Callable[[UUID, ActorKind], Iterable[str]],
    ):
        self._role_permissions = {
            role: frozenset(perms) for role, perms in role_permissions.items()
        }
        self._role_lookup = role_lookup

    def resolve_permissions(self, actor_id: UUID, actor_kind: ActorKind) -> frozenset[str]:
        roles = set(self._role_lookup(actor_id, actor_kind))
        if actor_kind is ActorKind.SYSTEM:
            roles.add(self.SYSTEM_ROLE)
        granted: set[str] = set()
        for role in roles:
            granted |= self._role_permissions.get(role, frozenset())
        return frozenset(granted)


def resolve_actor(
    resolver: PermissionResolver,
    actor_id: UUID,
    actor_kind: ActorKind,
) -> Actor:
    """Build the per-request Actor snapshot."""
    return Actor(
        actor_id=actor_id,
        kind=actor_kind,
        permissions=frozenset(resolver.resolve_permissions(actor_id, actor_kind)),
    )
