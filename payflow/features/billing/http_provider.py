"""
Shared transport for JSON/bearer-token gateways (Paystack, Flutterwave).

Maps transport and HTTP failures onto the provider error taxonomy:
- timeout / connection failure / 5xx -> NetworkError
- 401 / 403                          -> ProviderUnavailable (bad credentials)
- other 4xx                          -> ProviderRejected
"""
from typing import Any, Dict, Optional

import httpx

from payflow.core.config import settings
from payflow.core.logging import log_event
from payflow.features.billing.provider import (
    NetworkError,
    ProviderRejected,
    ProviderUnavailable,
)


class JsonGatewayClient:
    """Thin httpx wrapper bound to one gateway base URL and secret key."""

    def __init__(
        self,
        provider_name: str,
        base_url: str,
        secret_key: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        if not secret_key:
            raise ProviderUnavailable(f"{provider_name} secret key not configured")
        self.provider_name = provider_name
        self.base_url = base_url.rstrip("/")
        self._secret_key = secret_key
        self.timeout = timeout if timeout is not None else settings.PAYMENT_HTTP_TIMEOUT_SECONDS
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._secret_key}",
            "Content-Type": "application/json",
        }

    def request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.request(method, url, json=json, params=params, headers=self._headers())
        except httpx.TimeoutException as e:
            raise NetworkError(f"{self.provider_name} request timed out: {e}")
        except httpx.TransportError as e:
            raise NetworkError(f"{self.provider_name} unreachable: {e}")

        body = self._decode(response)

        if response.status_code >= 500:
            raise NetworkError(f"{self.provider_name} returned {response.status_code}")
        if response.status_code in (401, 403):
            log_event(
                "error",
                "provider.auth_failed",
                provider=self.provider_name,
                error_code="provider_unavailable",
                extra={"status": response.status_code},
            )
            raise ProviderUnavailable(f"{self.provider_name} rejected the configured credentials")
        if response.status_code >= 400:
            message = body.get("message") or f"{self.provider_name} returned {response.status_code}"
            raise ProviderRejected(message)

        return body

    def _decode(self, response: httpx.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            if response.status_code >= 500:
                return {}
            raise ProviderRejected(f"{self.provider_name} returned a non-JSON response")
        if not isinstance(body, dict):
            raise ProviderRejected(f"{self.provider_name} returned an unexpected payload")
        return body
