"""
Paystack client.

Implements PaymentGateway over the Paystack REST API with ``requests``.
Amounts cross the wire in minor units (kobo for NGN).  Every call carries
a bounded timeout; timeouts, connection errors and 5xx responses raise
GatewayUnavailableError so the caller leaves the payment pending.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any
from urllib.parse import quote

import requests

from admissions_kernel.db.types import from_minor_units, to_minor_units
from admissions_kernel.exceptions import GatewayError, GatewayUnavailableError
from admissions_kernel.gateway.base import (
    GatewayInitialization,
    GatewayStatus,
    GatewayVerification,
)
from admissions_kernel.logging_config import get_logger

logger = get_logger("gateway.paystack")

_STATUS_MAP: dict[str, GatewayStatus] = {
    "success": GatewayStatus.SUCCESS,
    "failed": GatewayStatus.FAILED,
    "reversed": GatewayStatus.FAILED,
    "abandoned": GatewayStatus.PENDING,
    "ongoing": GatewayStatus.PENDING,
    "pending": GatewayStatus.PENDING,
    "processing": GatewayStatus.PENDING,
    "queued": GatewayStatus.PENDING,
}


class PaystackGateway:
    """
    Paystack transaction API client.

    Args:
        base_url: API root, e.g. ``https://api.paystack.co``.
        secret_key: Bearer secret key.
        timeout_seconds: Per-request timeout (connect and read).
        callback_url: Where Paystack redirects the payer after checkout.
        http: Optional ``requests.Session`` (shared connection pool).
    """

    def __init__(
        self,
        base_url: str,
        secret_key: str,
        timeout_seconds: float = 10,
        callback_url: str | None = None,
        http: requests.Session | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._secret_key = secret_key
        self._timeout = timeout_seconds
        self._callback_url = callback_url
        self._http = http or requests.Session()

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._secret_key}",
            "Content-Type": "application/json",
        }

    def _request(
        self,
        method: str,
        path: str,
        operation: str,
        **kwargs: Any,
    ) -> tuple[int, dict[str, Any]]:
        url = f"{self._base_url}{path}"
        try:
            response = self._http.request(
                method,
                url,
                headers=self._headers,
                timeout=self._timeout,
                **kwargs,
            )
        except requests.exceptions.Timeout as exc:
            logger.warning(
                "gateway_timeout",
                extra={"operation": operation, "timeout_seconds": self._timeout},
            )
            raise GatewayUnavailableError(operation, "timeout") from exc
        except requests.exceptions.RequestException as exc:
            logger.warning(
                "gateway_transport_error",
                extra={"operation": operation},
                exc_info=True,
            )
            raise GatewayUnavailableError(operation, f"transport error: {exc}") from exc

        if response.status_code >= 500:
            logger.warning(
                "gateway_server_error",
                extra={"operation": operation, "status_code": response.status_code},
            )
            raise GatewayUnavailableError(
                operation,
                f"HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        return response.status_code, body

    def initialize(
        self,
        *,
        reference: str,
        amount: Decimal,
        currency: str,
        email: str,
        metadata: dict[str, Any],
    ) -> GatewayInitialization:
        payload: dict[str, Any] = {
            "amount": to_minor_units(amount),
            "currency": currency,
            "email": email,
            "reference": reference,
            "metadata": metadata,
        }
        if self._callback_url:
            payload["callback_url"] = self._callback_url

        status_code, body = self._request(
            "POST", "/transaction/initialize", "initialize", json=payload,
        )
        if status_code >= 400 or not body.get("status"):
            raise GatewayError(
                "initialize",
                str(body.get("message") or f"HTTP {status_code}"),
                status_code=status_code,
            )

        data = body.get("data") or {}
        logger.info(
            "gateway_charge_initialized",
            extra={"reference": reference, "amount_minor": payload["amount"]},
        )
        return GatewayInitialization(
            gateway_reference=data.get("reference") or reference,
            authorization_url=data.get("authorization_url"),
            access_code=data.get("access_code"),
        )

    def verify(self, gateway_reference: str) -> GatewayVerification:
        status_code, body = self._request(
            "GET",
            f"/transaction/verify/{quote(gateway_reference, safe='')}",
            "verify",
        )
        message = str(body.get("message") or "")
        if status_code == 404 or (not body.get("status") and "not found" in message.lower()):
            return GatewayVerification(
                status=GatewayStatus.UNKNOWN,
                gateway_reference=gateway_reference,
                raw=body,
            )
        if status_code >= 400 or not body.get("status"):
            raise GatewayError("verify", message or f"HTTP {status_code}", status_code=status_code)

        data = body.get("data") or {}
        reported = str(data.get("status") or "").lower()
        status = _STATUS_MAP.get(reported)
        if status is None:
            logger.warning(
                "gateway_unrecognized_status",
                extra={"gateway_reference": gateway_reference, "reported_status": reported},
            )
            status = GatewayStatus.PENDING

        amount = data.get("amount")
        currency = data.get("currency")
        return GatewayVerification(
            status=status,
            gateway_reference=gateway_reference,
            amount=from_minor_units(amount) if amount is not None else None,
            currency=str(currency).upper() if currency else None,
            raw=data,
        )
