"""
Tests for the authorization gate (admissions_kernel/domain/authorization.py).

The gate is a pure decision over an actor's permission snapshot; these
tests never touch the database.
"""

from uuid import uuid4

import pytest

from admissions_kernel.domain.authorization import (
    ACCESS_RULES,
    KNOWN_PERMISSIONS,
    MANAGE_ADMISSIONS,
    MANAGE_PAYMENTS,
    VERIFY_PAYMENTS,
    VIEW_PAYMENTS,
    Action,
    Actor,
    ActorKind,
    Decision,
    EntityRef,
    RoleTablePermissionResolver,
    authorize,
    decide,
    resolve_actor,
)
from admissions_kernel.exceptions import UnauthorizedError


def actor(kind=ActorKind.STAFF, *permissions):
    return Actor(actor_id=uuid4(), kind=kind, permissions=frozenset(permissions))


def owned_by(owner_id, entity_type="Application"):
    return EntityRef(entity_type, uuid4(), owner_id)


class TestDecide:

    def test_every_action_has_a_rule(self):
        assert set(ACCESS_RULES) == set(Action)

    def test_rules_only_name_known_permissions(self):
        for rule in ACCESS_RULES.values():
            assert rule.permissions <= KNOWN_PERMISSIONS

    def test_owner_may_submit(self):
        applicant = actor(ActorKind.APPLICANT)
        entity = owned_by(applicant.actor_id)
        assert decide(applicant, Action.APPLICATION_SUBMIT, entity) is Decision.ALLOW

    def test_stranger_may_not_submit(self):
        applicant = actor(ActorKind.APPLICANT)
        entity = owned_by(uuid4())
        assert decide(applicant, Action.APPLICATION_SUBMIT, entity) is Decision.DENY

    def test_staff_cannot_submit_on_behalf_of_applicant(self):
        staff = actor(ActorKind.STAFF, *KNOWN_PERMISSIONS)
        entity = owned_by(uuid4())
        assert decide(staff, Action.APPLICATION_SUBMIT, entity) is Decision.DENY

    def test_owner_cannot_review_own_application(self):
        applicant = actor(ActorKind.APPLICANT)
        entity = owned_by(applicant.actor_id)
        assert decide(applicant, Action.APPLICATION_REVIEW, entity) is Decision.DENY

    def test_manage_admissions_may_review(self):
        staff = actor(ActorKind.STAFF, MANAGE_ADMISSIONS)
        assert decide(staff, Action.APPLICATION_REVIEW, owned_by(uuid4())) is Decision.ALLOW

    @pytest.mark.parametrize("permission", [VERIFY_PAYMENTS, MANAGE_PAYMENTS])
    def test_payment_staff_may_reconcile_any_payment(self, permission):
        staff = actor(ActorKind.STAFF, permission)
        entity = owned_by(uuid4(), "Payment")
        assert decide(staff, Action.PAYMENT_RECONCILE, entity) is Decision.ALLOW

    def test_summary_requires_payment_permission(self):
        entity = EntityRef("Payment", None, None)
        assert decide(actor(ActorKind.STAFF), Action.PAYMENT_SUMMARY, entity) is Decision.DENY
        assert decide(
            actor(ActorKind.STAFF, VIEW_PAYMENTS), Action.PAYMENT_SUMMARY, entity,
        ) is Decision.ALLOW

    def test_entity_without_owner_never_matches_owner_rule(self):
        applicant = actor(ActorKind.APPLICANT)
        entity = EntityRef("Payment", None, None)
        assert decide(applicant, Action.PAYMENT_VIEW, entity) is Decision.DENY


class TestAuthorize:

    def test_deny_raises_unauthorized(self):
        applicant = actor(ActorKind.APPLICANT)
        with pytest.raises(UnauthorizedError) as exc_info:
            authorize(applicant, Action.ADMISSION_IMPORT, EntityRef("Admission", None, None))
        assert exc_info.value.code == "UNAUTHORIZED"
        assert exc_info.value.action == "admission.import"

    def test_denial_is_logged(self, captured_logs):
        applicant = actor(ActorKind.APPLICANT)
        with pytest.raises(UnauthorizedError):
            authorize(applicant, Action.ADMISSION_EXPIRE, EntityRef("Admission", None, None))
        denied = [r for r in captured_logs() if r["message"] == "authorization_denied"]
        assert denied and denied[0]["action"] == "admission.expire"

    def test_allow_returns_none(self):
        staff = actor(ActorKind.STAFF, MANAGE_ADMISSIONS)
        assert authorize(staff, Action.ADMISSION_IMPORT, EntityRef("Admission", None, None)) is None


class TestRoleTablePermissionResolver:

    def test_union_of_role_permissions(self):
        roles = {"accountant": [VIEW_PAYMENTS], "verifier": [VERIFY_PAYMENTS]}
        resolver = RoleTablePermissionResolver(roles, lambda _id, _kind: ["accountant", "verifier"])
        assert resolver.resolve_permissions(uuid4(), ActorKind.STAFF) == {
            VIEW_PAYMENTS, VERIFY_PAYMENTS,
        }

    def test_unknown_role_grants_nothing(self):
        resolver = RoleTablePermissionResolver({}, lambda _id, _kind: ["ghost"])
        assert resolver.resolve_permissions(uuid4(), ActorKind.STAFF) == frozenset()

    def test_system_actor_always_gets_system_role(self):
        roles = {"system": ["expire-offers"]}
        resolver = RoleTablePermissionResolver(roles, lambda _id, _kind: [])
        assert resolver.resolve_permissions(uuid4(), ActorKind.SYSTEM) == {"expire-offers"}

    def test_resolve_actor_snapshots_permissions(self):
        resolver = RoleTablePermissionResolver(
            {"admin": [MANAGE_ADMISSIONS]}, lambda _id, _kind: ["admin"],
        )
        actor_id = uuid4()
        resolved = resolve_actor(resolver, actor_id, ActorKind.STAFF)
        assert resolved.actor_id == actor_id
        assert resolved.permissions == frozenset({MANAGE_ADMISSIONS})
        with pytest.raises(AttributeError):
            resolved.permissions = frozenset()
