"""
admissions_config -- single public entrypoint for admissions settings.

Responsibility:
    ``get_settings()`` is the only way to obtain configuration at runtime.
    It reads the packaged ``defaults.yaml`` (or the file named by the
    ``ADMISSIONS_CONFIG`` environment variable), applies the
    ``PAYSTACK_SECRET_KEY`` override and returns a validated, frozen
    ``AdmissionsSettings``.

Architecture position:
    Configuration -- sits above ``admissions_kernel``.  The kernel MUST
    NEVER import from ``admissions_config``; ``admissions_config.bridges``
    translates settings into kernel inputs.

Failure modes:
    - ``FileNotFoundError`` -- the configured file does not exist.
    - ``ConfigValidationError`` -- a value is invalid.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from admissions_config.loader import ConfigValidationError, load_yaml_file, parse_settings
from admissions_config.schema import (
    AdmissionsSettings,
    FeeSettings,
    GatewaySettings,
    OfferSettings,
    RoleDefinition,
)

_logger = logging.getLogger("admissions_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"

CONFIG_PATH_ENV = "ADMISSIONS_CONFIG"
SECRET_KEY_ENV = "PAYSTACK_SECRET_KEY"


def get_settings(
    config_path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> AdmissionsSettings:
    """
    The ONLY public configuration entrypoint.

    Args:
        config_path: Explicit settings file.  Falls back to
            ``$ADMISSIONS_CONFIG``, then the packaged defaults.
        environ: Environment mapping (defaults to ``os.environ``).

    Raises:
        FileNotFoundError: The settings file does not exist.
        ConfigValidationError: A value is invalid.
    """
    env = os.environ if environ is None else environ
    path = Path(config_path or env.get(CONFIG_PATH_ENV) or _DEFAULT_CONFIG_PATH)

    settings = parse_settings(
        load_yaml_file(path),
        secret_key_override=env.get(SECRET_KEY_ENV) or None,
    )

    _logger.info(
        "ADMISSIONS_CONFIG_TRACE",
        extra={
            "config_path": str(path),
            "checksum": settings.checksum,
            "currency": settings.currency,
            "role_count": len(settings.roles),
        },
    )
    return settings


__all__ = [
    "AdmissionsSettings",
    "ConfigValidationError",
    "FeeSettings",
    "GatewaySettings",
    "OfferSettings",
    "RoleDefinition",
    "get_settings",
]
