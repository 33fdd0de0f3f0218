"""
Flutterwave provider implementation.

Implements PaymentProvider using the Flutterwave v3 API.
Amounts are sent in major units.
"""
from decimal import Decimal
from typing import Dict, Optional
from urllib.parse import quote

import httpx

from payflow.core.config import settings
from payflow.features.billing.http_provider import JsonGatewayClient
from payflow.features.billing.money import to_decimal
from payflow.features.billing.provider import (
    ProviderRejected,
    ProviderSession,
    ProviderTransaction,
    TRANSACTION_FAILED,
    TRANSACTION_PENDING,
    TRANSACTION_SUCCESS,
)


class FlutterwaveProvider:
    """Flutterwave implementation of PaymentProvider protocol."""

    name = "flutterwave"

    def __init__(
        self,
        secret_key: str,
        base_url: str = "https://api.flutterwave.com/v3",
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
        """Create a Flutterwave standard payment link."""
        body = self.client.request(
            "POST",
            "/payments",
            json={
                "tx_ref": reference,
                "amount": str(to_decimal(amount)),
                "currency": currency.upper(),
                "redirect_url": callback_url,
                "customer": {"email": email},
                "meta": metadata or {},
                "customizations": {
                    "title": settings.CHECKOUT_PRODUCT_NAME,
                    "description": settings.CHECKOUT_PRODUCT_DESCRIPTION,
                },
            },
        )
        if body.get("status") != "success":
            raise ProviderRejected(body.get("message") or "Flutterwave initialization failed")

        link = (body.get("data") or {}).get("link")
        if not link:
            raise ProviderRejected("Flutterwave did not return a payment link")
        return ProviderSession(payment_url=link)

    def verify(
        self,
        reference: str,
        transaction_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> ProviderTransaction:
        """
        Verify a Flutterwave transaction.

        Uses the transaction id from the redirect when present, otherwise
        looks the transaction up by tx_ref. Either way the returned tx_ref
        must equal the reference being verified.
        """
        if transaction_id:
            body = self.client.request("GET", f"/transactions/{quote(str(transaction_id), safe='')}/verify")
        else:
            body = self.client.request(
                "GET",
                "/transactions/verify_by_reference",
                params={"tx_ref": reference},
            )

        data = body.get("data") or {}
        gateway_status = (data.get("status") or "").lower()

        if body.get("status") == "success" and gateway_status == "successful":
            status = TRANSACTION_SUCCESS
        elif gateway_status == "pending":
            status = TRANSACTION_PENDING
        else:
            status = TRANSACTION_FAILED

        # A transaction id from the URL could belong to another checkout
        if data.get("tx_ref") != reference:
            status = TRANSACTION_FAILED

        currency = (data.get("currency") or "").upper() or None
        amount = to_decimal(data["amount"]) if data.get("amount") is not None else None

        return ProviderTransaction(
            status=status,
            amount=amount,
            currency=currency,
            transaction_id=str(data["id"]) if data.get("id") is not None else transaction_id,
            message=data.get("processor_response") or body.get("message"),
            raw=data,
        )
