"""
Stripe provider implementation.

Implements PaymentProvider using Stripe Checkout in one-time payment mode.
The checkout session id is stored on the intent and used for verification;
the reference travels in session metadata and the success URL.
"""
from decimal import Decimal
from typing import Dict, Optional
from urllib.parse import urlencode

import stripe

from payflow.core.config import settings
from payflow.features.billing.money import from_minor_units, to_minor_units
from payflow.features.billing.provider import (
    NetworkError,
    ProviderRejected,
    ProviderSession,
    ProviderTransaction,
    ProviderUnavailable,
    TRANSACTION_FAILED,
    TRANSACTION_PENDING,
    TRANSACTION_SUCCESS,
)


def _field(obj, key: str):
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def _with_query(url: str, params: Dict[str, str]) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{urlencode(params)}"


class StripeProvider:
    """Stripe implementation of PaymentProvider protocol."""

    name = "stripe"

    def __init__(self, secret_key: Optional[str] = None):
        self.secret_key = secret_key or settings.STRIPE_SECRET_KEY
        if not self.secret_key:
            raise ProviderUnavailable("STRIPE_SECRET_KEY not configured")

    def _translate(self, e: stripe.StripeError, action: str):
        if isinstance(e, stripe.APIConnectionError):
            return NetworkError(f"Stripe {action} failed: {e.user_message or e}")
        if isinstance(e, (stripe.AuthenticationError, stripe.PermissionError)):
            return ProviderUnavailable(f"Stripe {action} failed: credentials rejected")
        if isinstance(e, (stripe.APIError, stripe.RateLimitError)):
            return NetworkError(f"Stripe {action} failed: {e.user_message or e}")
        return ProviderRejected(f"Stripe {action} failed: {e.user_message or e}")

    def initiate(
        self,
        reference: str,
        email: str,
        amount: Decimal,
        currency: str,
        callback_url: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> ProviderSession:
        """Create a Stripe Checkout session for a single charge."""
        session_metadata = dict(metadata or {})
        session_metadata["reference"] = reference
        try:
            session = stripe.checkout.Session.create(
                api_key=self.secret_key,
                mode="payment",
                payment_method_types=["card"],
                customer_email=email,
                client_reference_id=reference,
                line_items=[{
                    "price_data": {
                        "currency": currency.lower(),
                        "unit_amount": to_minor_units(amount, currency),
                        "product_data": {
                            "name": settings.CHECKOUT_PRODUCT_NAME,
                            "description": settings.CHECKOUT_PRODUCT_DESCRIPTION,
                        },
                    },
                    "quantity": 1,
                }],
                success_url=_with_query(callback_url, {"reference": reference, "provider": self.name}),
                cancel_url=_with_query(callback_url, {"cancelled": "true"}),
                metadata=session_metadata,
            )
        except stripe.StripeError as e:
            raise self._translate(e, "checkout session creation")

        url = _field(session, "url")
        if not url:
            raise ProviderRejected("Stripe did not return a checkout URL")
        return ProviderSession(payment_url=url, session_id=_field(session, "id"))

    def verify(
        self,
        reference: str,
        transaction_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> ProviderTransaction:
        """Retrieve the checkout session stored for this reference."""
        if not session_id:
            raise ProviderRejected("No Stripe checkout session recorded for this reference")
        try:
            session = stripe.checkout.Session.retrieve(session_id, api_key=self.secret_key)
        except stripe.StripeError as e:
            raise self._translate(e, "session lookup")

        payment_status = _field(session, "payment_status")
        session_status = _field(session, "status")
        session_reference = _field(_field(session, "metadata"), "reference") or _field(session, "client_reference_id")

        if payment_status == "paid" and session_status == "complete":
            status = TRANSACTION_SUCCESS
        elif session_status == "open" or (session_status == "complete" and payment_status == "unpaid"):
            # async payment methods complete the session before funds settle
            status = TRANSACTION_PENDING
        else:
            status = TRANSACTION_FAILED

        if session_reference != reference:
            status = TRANSACTION_FAILED

        currency = (_field(session, "currency") or "").upper() or None
        amount = None
        amount_total = _field(session, "amount_total")
        if amount_total is not None and currency:
            amount = from_minor_units(amount_total, currency)

        return ProviderTransaction(
            status=status,
            amount=amount,
            currency=currency,
            transaction_id=_field(session, "payment_intent") or _field(session, "id"),
            message=payment_status,
            raw={"id": _field(session, "id"), "status": session_status, "payment_status": payment_status},
        )
