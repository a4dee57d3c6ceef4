"""
Config -> Kernel Bridges.

Functions that convert AdmissionsSettings into kernel inputs.  They live
in admissions_config (the producer) because the kernel must NEVER import
admissions_config.

Usage:
    from admissions_config import get_settings
    from admissions_config.bridges import build_orchestrator

    settings = get_settings()
    with session_scope() as session:
        orchestrator = build_orchestrator(session, settings, role_lookup)
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from uuid import UUID

import requests
from sqlalchemy.orm import Session

from admissions_config.schema import AdmissionsSettings
from admissions_kernel.db.immutability import register_immutability_listeners
from admissions_kernel.domain.authorization import ActorKind, RoleTablePermissionResolver
from admissions_kernel.domain.clock import Clock
from admissions_kernel.domain.fees import FeeDefaults
from admissions_kernel.gateway.base import PaymentGateway
from admissions_kernel.gateway.paystack import PaystackGateway
from admissions_kernel.services.admissions_orchestrator import AdmissionsOrchestrator

RoleLookup = Callable[[UUID, ActorKind], Iterable[str]]


def build_fee_defaults(settings: AdmissionsSettings) -> FeeDefaults:
    return FeeDefaults(
        currency=settings.currency,
        form_fee=settings.fees.default_form_fee,
        acceptance_fee=settings.fees.default_acceptance_fee,
        admission_fee=settings.fees.default_admission_fee,
    )


def build_gateway(
    settings: AdmissionsSettings,
    http: requests.Session | None = None,
) -> PaystackGateway:
    """Paystack client from ``settings.gateway``."""
    gateway = settings.gateway
    return PaystackGateway(
        base_url=gateway.base_url,
        secret_key=gateway.secret_key,
        timeout_seconds=gateway.timeout_seconds,
        callback_url=gateway.callback_url,
        http=http,
    )


def build_permission_resolver(
    settings: AdmissionsSettings,
    role_lookup: RoleLookup,
) -> RoleTablePermissionResolver:
    """Resolver over the configured role table.  ``role_lookup`` names an actor's roles."""
    return RoleTablePermissionResolver(settings.role_table(), role_lookup)


def build_orchestrator(
    session: Session,
    settings: AdmissionsSettings,
    role_lookup: RoleLookup,
    gateway: PaymentGateway | None = None,
    clock: Clock | None = None,
    auto_commit: bool = True,
) -> AdmissionsOrchestrator:
    """
    Wire a per-request orchestrator from settings.

    Also registers the payment immutability listeners, for callers that
    bring their own engine instead of ``init_engine_from_url``.
    """
    register_immutability_listeners()
    return AdmissionsOrchestrator(
        session,
        gateway if gateway is not None else build_gateway(settings),
        build_fee_defaults(settings),
        build_permission_resolver(settings, role_lookup),
        acceptance_deadline_days=settings.offers.acceptance_deadline_days,
        clock=clock,
        auto_commit=auto_commit,
    )
