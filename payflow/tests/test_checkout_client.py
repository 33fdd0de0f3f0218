"""Client checkout starter."""
from decimal import Decimal

import pytest

from payflow.client.api import InitPaymentResult
from payflow.client.checkout import start_checkout
from payflow.client.ledger import PendingPaymentLedger
from payflow.features.billing.provider import NetworkError
from payflow.features.plans.service import get_plan

CALLBACK = "https://app.example.com/payment/callback"


class StubPaymentsApi:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def init_payment(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return InitPaymentResult(
            payment_url="https://checkout.paystack.com/ps_1",
            reference="ps_1",
            provider="paystack",
        )


def test_free_plan_bypasses_payment_api():
    api = StubPaymentsApi()
    ledger = PendingPaymentLedger()

    start = start_checkout(api, ledger, get_plan("free"), "user_1", "ada@example.com", CALLBACK)

    assert start.free is True
    assert start.plan_id == "free"
    assert api.calls == []
    assert ledger.consume() is None


def test_paid_plan_records_ledger_before_redirect():
    api = StubPaymentsApi()
    ledger = PendingPaymentLedger()

    start = start_checkout(api, ledger, get_plan("pro"), "user_1", "ada@example.com", CALLBACK)

    assert start.redirect_url == "https://checkout.paystack.com/ps_1"
    assert start.free is False
    pending = ledger.consume()
    assert (pending.reference, pending.provider, pending.plan_id) == ("ps_1", "paystack", "pro")
    assert api.calls[0]["amount"] == Decimal("5000.00")
    assert api.calls[0]["currency"] == "NGN"
    assert api.calls[0]["provider"] is None


def test_plan_given_as_api_dict():
    api = StubPaymentsApi()
    plan = {"planId": "pro", "price": "5000.00", "currency": "NGN"}

    start = start_checkout(api, PendingPaymentLedger(), plan, "user_1", "ada@example.com", CALLBACK, provider="paystack")

    assert start.reference == "ps_1"
    assert api.calls[0]["plan_id"] == "pro"
    assert api.calls[0]["provider"] == "paystack"


def test_init_failure_leaves_ledger_untouched():
    api = StubPaymentsApi(error=NetworkError("timed out"))
    ledger = PendingPaymentLedger()

    with pytest.raises(NetworkError):
        start_checkout(api, ledger, get_plan("pro"), "user_1", "ada@example.com", CALLBACK)

    assert ledger.consume() is None
