"""Paystack adapter against a mocked HTTP transport."""
import json
from decimal import Decimal

import httpx
import pytest

from payflow.features.billing.paystack_provider import PaystackProvider
from payflow.features.billing.provider import (
    NetworkError,
    ProviderRejected,
    ProviderUnavailable,
    TRANSACTION_FAILED,
    TRANSACTION_PENDING,
    TRANSACTION_SUCCESS,
)
from payflow.tests.mocks import FakePaystackGateway

SECRET = "sk_test_paystack"


def _provider(handler):
    return PaystackProvider(SECRET, transport=httpx.MockTransport(handler))


def test_initiate_sends_kobo_and_returns_authorization_url():
    gateway = FakePaystackGateway(SECRET)
    provider = PaystackProvider(SECRET, transport=gateway.transport())

    session = provider.initiate(
        reference="ps_1_user_ab",
        email="ada@example.com",
        amount=Decimal("5000"),
        currency="NGN",
        callback_url="https://app.example.com/payment/callback",
        metadata={"planId": "pro"},
    )

    assert session.payment_url == "https://checkout.paystack.com/ps_1_user_ab"
    sent = json.loads(gateway.requests[0].content)
    assert sent["amount"] == 500000
    assert sent["reference"] == "ps_1_user_ab"
    assert sent["callback_url"] == "https://app.example.com/payment/callback"
    assert gateway.requests[0].headers["Authorization"] == f"Bearer {SECRET}"


def test_verify_success_reports_major_units():
    gateway = FakePaystackGateway(SECRET)
    provider = PaystackProvider(SECRET, transport=gateway.transport())
    provider.initiate("ps_2", "ada@example.com", Decimal("5000"), "NGN", "https://cb")

    txn = provider.verify("ps_2")

    assert txn.status == TRANSACTION_SUCCESS
    assert txn.amount == Decimal("5000.00")
    assert txn.currency == "NGN"
    assert txn.transaction_id == "4099260516"


def test_verify_abandoned_is_failed():
    def handler(request):
        return httpx.Response(200, json={
            "status": True,
            "data": {"status": "abandoned", "reference": "ps_3", "amount": 500000, "currency": "NGN"},
        })

    txn = _provider(handler).verify("ps_3")
    assert txn.status == TRANSACTION_FAILED
    assert not txn.succeeded


def test_verify_ongoing_is_pending():
    def handler(request):
        return httpx.Response(200, json={
            "status": True,
            "data": {"status": "ongoing", "reference": "ps_4", "amount": 500000, "currency": "NGN"},
        })

    assert _provider(handler).verify("ps_4").status == TRANSACTION_PENDING


def test_verify_other_reference_is_failed():
    def handler(request):
        return httpx.Response(200, json={
            "status": True,
            "data": {"status": "success", "reference": "ps_other", "amount": 500000, "currency": "NGN"},
        })

    assert _provider(handler).verify("ps_5").status == TRANSACTION_FAILED


def test_timeout_is_network_error():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(NetworkError):
        _provider(handler).verify("ps_6")


def test_server_error_is_network_error():
    def handler(request):
        return httpx.Response(502, text="Bad Gateway")

    with pytest.raises(NetworkError) as exc:
        _provider(handler).initiate("ps_7", "a@b.c", Decimal("5000"), "NGN", "https://cb")
    assert exc.value.code == "network_error"


def test_bad_credentials_are_provider_unavailable():
    gateway = FakePaystackGateway("sk_other")
    provider = PaystackProvider(SECRET, transport=gateway.transport())

    with pytest.raises(ProviderUnavailable):
        provider.initiate("ps_8", "a@b.c", Decimal("5000"), "NGN", "https://cb")


def test_client_error_is_rejected():
    def handler(request):
        return httpx.Response(400, json={"status": False, "message": "Invalid Email Address Passed"})

    with pytest.raises(ProviderRejected) as exc:
        _provider(handler).initiate("ps_9", "not-an-email", Decimal("5000"), "NGN", "https://cb")
    assert "Invalid Email" in exc.value.message


def test_missing_secret_key_is_unavailable():
    with pytest.raises(ProviderUnavailable):
        PaystackProvider("")
