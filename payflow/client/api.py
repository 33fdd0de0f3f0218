"""
HTTP client for the payments API.

Raises the same error taxonomy the server uses so callers can tell a
transport problem (NetworkError) apart from a definitive answer.
"""
import os
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx

from payflow.core.errors import AppError
from payflow.features.billing.provider import NetworkError, ProviderRejected, ProviderUnavailable

CLIENT_TIMEOUT_SECONDS = float(os.getenv("PAYFLOW_CLIENT_TIMEOUT_SECONDS", "20"))

_ERRORS_BY_CODE = {
    "network_error": NetworkError,
    "provider_unavailable": ProviderUnavailable,
    "provider_rejected": ProviderRejected,
}


@dataclass
class InitPaymentResult:
    payment_url: str
    reference: str
    provider: str


@dataclass
class VerifyPaymentResult:
    success: bool
    plan: Optional[str] = None
    message: Optional[str] = None
    flagged: bool = False


class PaymentsClient:
    """
    Thin wrapper over /api/payments.

    Args:
        client: An httpx.Client (or fastapi TestClient) with base_url set
        user_id: Sent as X-User-Id when no token is given
        token: Bearer token
    """

    def __init__(self, client: httpx.Client, user_id: Optional[str] = None, token: Optional[str] = None):
        self.client = client
        self.user_id = user_id
        self.token = token

    @classmethod
    def from_base_url(cls, base_url: str, **kwargs) -> "PaymentsClient":
        return cls(httpx.Client(base_url=base_url, timeout=CLIENT_TIMEOUT_SECONDS), **kwargs)

    def _headers(self) -> Dict[str, str]:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        if self.user_id:
            return {"X-User-Id": self.user_id}
        return {}

    def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        try:
            response = self.client.request(method, path, json=json, headers=self._headers())
        except httpx.TimeoutException as e:
            raise NetworkError(f"Payments API timed out: {e}")
        except httpx.HTTPError as e:
            raise NetworkError(f"Payments API unreachable: {e}")

        if response.status_code < 400:
            try:
                return response.json()
            except ValueError:
                # Captive portals and proxies answer 200 with an HTML page
                raise NetworkError(f"Payments API returned a non-JSON response ({response.status_code})")

        try:
            body = response.json()
        except ValueError:
            body = None
        error = (body.get("error") if isinstance(body, dict) else None) or {}
        code = error.get("code")
        message = error.get("message") or f"Payments API returned {response.status_code}"

        error_cls = _ERRORS_BY_CODE.get(code)
        if error_cls is not None:
            raise error_cls(message)
        if response.status_code >= 500:
            raise NetworkError(message)
        raise AppError(message, code=code or "http_error", status_code=response.status_code)

    def init_payment(
        self,
        email: str,
        user_id: str,
        amount: Decimal,
        currency: str,
        plan_id: str,
        callback_url: str,
        provider: Optional[str] = None,
    ) -> InitPaymentResult:
        body = {
            "email": email,
            "userId": user_id,
            "amount": str(amount),
            "currency": currency,
            "planId": plan_id,
            "callbackUrl": callback_url,
        }
        if provider:
            body["provider"] = provider
        data = self._request("POST", "/api/payments/init-payment", json=body)
        return InitPaymentResult(
            payment_url=data["paymentUrl"],
            reference=data["reference"],
            provider=data["provider"],
        )

    def verify_payment(self, reference: str, provider: str, transaction_id: Optional[str] = None) -> VerifyPaymentResult:
        body = {"reference": reference, "provider": provider}
        if transaction_id:
            body["transactionId"] = transaction_id
        data = self._request("POST", "/api/payments/verify-payment", json=body)
        return VerifyPaymentResult(
            success=bool(data.get("success")),
            plan=data.get("plan"),
            message=data.get("message"),
            flagged=bool(data.get("flagged")),
        )

    def list_plans(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/payments/plans")

    def get_provider(self) -> Dict[str, Any]:
        return self._request("GET", "/api/payments/provider")

    def get_status(self) -> Dict[str, Any]:
        return self._request("GET", "/api/payments/status")
