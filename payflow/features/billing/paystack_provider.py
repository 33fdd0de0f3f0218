"""
Paystack provider implementation.

Implements PaymentProvider using the Paystack transaction API.
Amounts are sent in minor units (kobo for NGN).
"""
from decimal import Decimal
from typing import Dict, Optional

import httpx

from payflow.features.billing.http_provider import JsonGatewayClient
from payflow.features.billing.money import from_minor_units, to_minor_units
from payflow.features.billing.provider import (
    ProviderRejected,
    ProviderSession,
    ProviderTransaction,
    TRANSACTION_FAILED,
    TRANSACTION_PENDING,
    TRANSACTION_SUCCESS,
)

# Paystack statuses that may still settle
_PENDING_STATUSES = {"ongoing", "pending", "processing", "queued"}


class PaystackProvider:
    """Paystack implementation of PaymentProvider protocol."""

    name = "paystack"

    def __init__(
        self,
        secret_key: str,
        base_url: str = "https://api.paystack.co",
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.client = JsonGatewayClient(self.name, base_url, secret_key, timeout=timeout, transport=transport)

    def initiate(
        self,
        reference: str,
        email: str,
        amount: Decimal,
        currency: str,
        callback_url: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> ProviderSession:
        """Initialize a Paystack transaction and return its authorization URL."""
        body = self.client.request(
            "POST",
            "/transaction/initialize",
            json={
                "email": email,
                "amount": to_minor_units(amount, currency),
                "currency": currency.upper(),
                "reference": reference,
                "callback_url": callback_url,
                "metadata": metadata or {},
            },
        )
        if not body.get("status"):
            raise ProviderRejected(body.get("message") or "Paystack initialization failed")

        data = body.get("data") or {}
        url = data.get("authorization_url")
        if not url:
            raise ProviderRejected("Paystack did not return an authorization URL")
        return ProviderSession(payment_url=url, session_id=data.get("access_code"))

    def verify(
        self,
        reference: str,
        transaction_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> ProviderTransaction:
        """Verify a Paystack transaction by reference."""
        body = self.client.request("GET", f"/transaction/verify/{reference}")
        data = body.get("data") or {}
        gateway_status = (data.get("status") or "").lower()

        if body.get("status") and gateway_status == TRANSACTION_SUCCESS:
            status = TRANSACTION_SUCCESS
        elif gateway_status in _PENDING_STATUSES:
            status = TRANSACTION_PENDING
        else:
            status = TRANSACTION_FAILED

        if data.get("reference") and data["reference"] != reference:
            status = TRANSACTION_FAILED

        currency = (data.get("currency") or "").upper() or None
        amount = None
        if data.get("amount") is not None and currency:
            amount = from_minor_units(data["amount"], currency)

        return ProviderTransaction(
            status=status,
            amount=amount,
            currency=currency,
            transaction_id=str(data["id"]) if data.get("id") is not None else None,
            message=data.get("gateway_response") or body.get("message"),
            raw=data,
        )
