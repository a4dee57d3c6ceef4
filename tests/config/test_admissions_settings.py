"""
Tests for admissions_config: loading, validation and the kernel bridges.
"""

from decimal import Decimal
from pathlib import Path
from uuid import uuid4

import pytest
import yaml

from admissions_config import ConfigValidationError, get_settings
from admissions_config.bridges import (
    build_fee_defaults,
    build_gateway,
    build_permission_resolver,
)
from admissions_config.loader import compute_checksum, parse_settings
from admissions_kernel.domain.authorization import (
    KNOWN_PERMISSIONS,
    MANAGE_ADMISSIONS,
    ActorKind,
)


def write_config(tmp_path: Path, data: dict) -> Path:
    path = tmp_path / "admissions.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


class TestPackagedDefaults:

    def test_fee_defaults(self, settings):
        assert settings.currency == "NGN"
        assert settings.fees.default_form_fee == Decimal("5000")
        assert settings.fees.default_acceptance_fee == Decimal("50000")
        assert settings.fees.default_admission_fee == Decimal("0")
        assert settings.offers.acceptance_deadline_days == 14

    def test_role_table(self, settings):
        roles = settings.role_table()
        assert roles["super-admin"] == KNOWN_PERMISSIONS
        assert roles["user"] == frozenset()
        assert "manage-settings" not in roles["admin"]
        assert roles["system"] == {"verify-payments", "expire-offers"}

    def test_secret_key_not_in_repr(self):
        settings = get_settings(environ={"PAYSTACK_SECRET_KEY": "sk_live_secret"})
        assert settings.gateway.secret_key == "sk_live_secret"
        assert "sk_live_secret" not in repr(settings)


class TestOverrides:

    def test_config_path_from_environment(self, tmp_path):
        path = write_config(tmp_path, {"currency": "ghs", "fees": {"default_form_fee": 120}})
        settings = get_settings(environ={"ADMISSIONS_CONFIG": str(path)})
        assert settings.currency == "GHS"
        assert settings.fees.default_form_fee == Decimal("120")
        assert settings.fees.default_acceptance_fee == Decimal("50000")

    def test_explicit_path_wins(self, tmp_path):
        path = write_config(tmp_path, {"offers": {"acceptance_deadline_days": 30}})
        settings = get_settings(path, environ={"ADMISSIONS_CONFIG": "/does/not/exist.yaml"})
        assert settings.offers.acceptance_deadline_days == 30

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_settings(tmp_path / "absent.yaml", environ={})

    def test_float_fee_is_exact(self):
        settings = parse_settings({"fees": {"default_form_fee": 2500.5}})
        assert settings.fees.default_form_fee == Decimal("2500.5")


class TestValidation:

    @pytest.mark.parametrize("data, key", [
        ({"currency": "XYZ"}, "currency"),
        ({"currency": "naira"}, "currency"),
        ({"fees": {"default_form_fee": -1}}, "fees.default_form_fee"),
        ({"fees": {"default_acceptance_fee": "lots"}}, "fees.default_acceptance_fee"),
        ({"offers": {"acceptance_deadline_days": 0}}, "offers.acceptance_deadline_days"),
        ({"offers": {"acceptance_deadline_days": "14"}}, "offers.acceptance_deadline_days"),
        ({"gateway": {"timeout_seconds": 0}}, "gateway.timeout_seconds"),
        ({"gateway": {"base_url": "ftp://paystack"}}, "gateway.base_url"),
        ({"roles": {"clerk": ["launch-missiles"]}}, "roles.clerk"),
    ])
    def test_invalid_values_fail_at_load(self, data, key):
        with pytest.raises(ConfigValidationError) as exc_info:
            parse_settings(data)
        assert exc_info.value.key == key

    def test_currency_code_is_normalized(self):
        assert parse_settings({"currency": " ngn "}).currency == "NGN"

    def test_checksum_is_deterministic(self):
        first = {"currency": "NGN", "fees": {"default_form_fee": 1}}
        second = {"fees": {"default_form_fee": 1}, "currency": "NGN"}
        assert compute_checksum(first) == compute_checksum(second)
        assert compute_checksum(first) != compute_checksum({"currency": "GHS"})


class TestBridges:

    def test_fee_defaults(self, settings):
        defaults = build_fee_defaults(settings)
        assert defaults.currency == "NGN"
        assert defaults.form_fee == Decimal("5000")
        assert defaults.acceptance_fee == Decimal("50000")

    def test_permission_resolver_uses_role_table(self, settings):
        resolver = build_permission_resolver(settings, lambda _id, _kind: ["admission-manager"])
        granted = resolver.resolve_permissions(uuid4(), ActorKind.STAFF)
        assert MANAGE_ADMISSIONS in granted

    def test_gateway_from_settings(self):
        settings = parse_settings(
            {"gateway": {"base_url": "https://api.paystack.test/", "timeout_seconds": 3}},
            secret_key_override="sk_test",
        )
        gateway = build_gateway(settings)
        assert gateway._base_url == "https://api.paystack.test"
        assert gateway._timeout == 3.0
