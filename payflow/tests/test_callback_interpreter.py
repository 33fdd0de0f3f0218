"""Callback interpreter: classifying returns from the gateway."""
from types import SimpleNamespace

import httpx
import pytest

from payflow.client.api import PaymentsClient
from payflow.client.callback import CallbackInterpreter, CallbackState, parse_callback
from payflow.client.ledger import PendingPayment, PendingPaymentLedger
from payflow.core.errors import AppError, NotFoundError
from payflow.features.billing.provider import NetworkError, ProviderUnavailable

PRO = "pro"


class ScriptedVerifier:
    """Returns (or raises) queued outcomes and records every call."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def __call__(self, reference, provider, transaction_id=None):
        self.calls.append((reference, provider, transaction_id))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def ok(plan=PRO):
    return SimpleNamespace(success=True, plan=plan, message="Payment verified", flagged=False)


def failed(message="Declined", flagged=False):
    return SimpleNamespace(success=False, plan=None, message=message, flagged=flagged)


@pytest.fixture
def ledger():
    ledger = PendingPaymentLedger()
    ledger.record(PendingPayment(reference="ps_1", provider="paystack", plan_id="pro"))
    return ledger


def test_success_clears_ledger_and_surfaces_plan(ledger):
    verifier = ScriptedVerifier(ok())
    interpreter = CallbackInterpreter(verifier, ledger, support_email="help@example.com")

    outcome = interpreter.interpret("https://app.example.com/payment/callback?reference=ps_1&provider=paystack")

    assert outcome.state == CallbackState.SUCCESS
    assert outcome.plan == PRO
    assert verifier.calls == [("ps_1", "paystack", None)]
    assert ledger.consume() is None
    assert outcome.can_retry is False
    assert outcome.catalog_link is None
    assert outcome.support_contact is None


@pytest.mark.parametrize("query", ["cancelled=true&reference=ps_1", "status=cancelled", "?cancelled=TRUE"])
def test_cancellation_never_calls_verifier(ledger, query):
    verifier = ScriptedVerifier()
    interpreter = CallbackInterpreter(verifier, ledger)

    outcome = interpreter.interpret(query)

    assert outcome.state == CallbackState.CANCELLED
    assert verifier.calls == []
    assert ledger.consume() is None
    assert outcome.catalog_link == "/pricing"
    assert outcome.can_retry is False


def test_reference_aliases_resolved_in_order(ledger):
    verifier = ScriptedVerifier(ok())
    CallbackInterpreter(verifier, ledger).interpret("tx_ref=fw_9&trxref=ps_8&provider=flutterwave&transaction_id=123")
    assert verifier.calls == [("fw_9", "flutterwave", "123")]


def test_missing_parameters_fall_back_to_ledger(ledger):
    verifier = ScriptedVerifier(ok())
    outcome = CallbackInterpreter(verifier, ledger).interpret("https://app.example.com/payment/callback")

    assert outcome.state == CallbackState.SUCCESS
    assert verifier.calls == [("ps_1", "paystack", None)]


def test_paystack_trxref_with_provider_from_ledger(ledger):
    verifier = ScriptedVerifier(ok())
    CallbackInterpreter(verifier, ledger).interpret("trxref=ps_1&reference=ps_1")
    assert verifier.calls == [("ps_1", "paystack", None)]


def test_nothing_resolvable_is_missing_info():
    ledger = PendingPaymentLedger()
    verifier = ScriptedVerifier()

    outcome = CallbackInterpreter(verifier, ledger).interpret("https://app.example.com/payment/callback")

    assert outcome.state == CallbackState.MISSING_INFO
    assert verifier.calls == []
    assert outcome.can_retry is True
    assert outcome.catalog_link == "/pricing"


def test_reference_without_provider_is_missing_info():
    ledger = PendingPaymentLedger()
    outcome = CallbackInterpreter(ScriptedVerifier(), ledger).interpret("reference=ps_1")
    assert outcome.state == CallbackState.MISSING_INFO


def test_missing_info_keeps_ledger():
    storage = {"pending_payment": "{broken"}
    ledger = PendingPaymentLedger(storage)

    CallbackInterpreter(ScriptedVerifier(), ledger).interpret("")

    assert "pending_payment" in storage


@pytest.mark.parametrize("error", [NetworkError("timed out"), ProviderUnavailable("gateway down")])
def test_transport_failure_is_network_issue_and_keeps_ledger(ledger, error):
    interpreter = CallbackInterpreter(ScriptedVerifier(error), ledger, support_email="help@example.com")

    outcome = interpreter.interpret("reference=ps_1&provider=paystack")

    assert outcome.state == CallbackState.NETWORK_ISSUE
    assert ledger.consume() is not None
    assert outcome.can_retry is True
    assert outcome.support_contact == "mailto:help@example.com?subject=Payment%20reference%20ps_1"


def test_network_issue_then_retry_succeeds(ledger):
    verifier = ScriptedVerifier(NetworkError("timed out"), ok())
    interpreter = CallbackInterpreter(verifier, ledger)

    first = interpreter.interpret("reference=ps_1&provider=paystack")
    second = interpreter.retry()

    assert first.state == CallbackState.NETWORK_ISSUE
    assert second.state == CallbackState.SUCCESS
    assert verifier.calls == [("ps_1", "paystack", None), ("ps_1", "paystack", None)]
    assert ledger.consume() is None


def test_failed_verification_clears_ledger_and_offers_support(ledger):
    interpreter = CallbackInterpreter(ScriptedVerifier(failed()), ledger, support_email="help@example.com")

    outcome = interpreter.interpret("reference=ps_1&provider=paystack")

    assert outcome.state == CallbackState.VERIFICATION_FAILED
    assert outcome.message == "Declined"
    assert ledger.consume() is None
    assert "ps_1" in outcome.support_contact
    assert outcome.catalog_link == "/pricing"


def test_flagged_result_is_propagated(ledger):
    outcome = CallbackInterpreter(ScriptedVerifier(failed(flagged=True)), ledger).interpret(
        "reference=ps_1&provider=paystack"
    )
    assert outcome.state == CallbackState.VERIFICATION_FAILED
    assert outcome.flagged is True


def test_unknown_reference_is_definitive_failure(ledger):
    outcome = CallbackInterpreter(ScriptedVerifier(NotFoundError("no checkout")), ledger).interpret(
        "reference=ps_1&provider=paystack"
    )
    assert outcome.state == CallbackState.VERIFICATION_FAILED
    assert ledger.consume() is None


def test_auth_failure_keeps_ledger(ledger):
    error = AppError("Invalid token", code="unauthorized", status_code=401)
    outcome = CallbackInterpreter(ScriptedVerifier(error), ledger).interpret("reference=ps_1&provider=paystack")
    assert outcome.state == CallbackState.VERIFICATION_FAILED
    assert ledger.consume() is not None


def test_terminal_states_ignore_retry(ledger):
    verifier = ScriptedVerifier(ok())
    interpreter = CallbackInterpreter(verifier, ledger)
    first = interpreter.interpret("reference=ps_1&provider=paystack")

    again = interpreter.retry()

    assert again is first
    assert len(verifier.calls) == 1


def test_cancelled_retry_has_no_side_effects(ledger):
    verifier = ScriptedVerifier()
    interpreter = CallbackInterpreter(verifier, ledger)
    interpreter.interpret("cancelled=true")

    assert interpreter.retry().state == CallbackState.CANCELLED
    assert verifier.calls == []


def test_interpret_enters_verifying_first(ledger):
    states = []

    def verify(reference, provider, transaction_id=None):
        states.append(interpreter.state)
        return ok()

    interpreter = CallbackInterpreter(verify, ledger)
    interpreter.interpret("reference=ps_1&provider=paystack")

    assert states == [CallbackState.VERIFYING]
    assert interpreter.state == CallbackState.SUCCESS


def test_parse_callback_accepts_urls_queries_and_mappings():
    assert parse_callback("https://x.test/cb?reference=a&provider=b") == {"reference": "a", "provider": "b"}
    assert parse_callback("reference=a") == {"reference": "a"}
    assert parse_callback({"reference": "a", "provider": None}) == {"reference": "a"}


def test_non_json_api_response_is_network_issue(ledger):
    portal = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>captive portal</html>"))
    api = PaymentsClient(httpx.Client(transport=portal, base_url="http://payments.test"), user_id="user_1")
    interpreter = CallbackInterpreter(api.verify_payment, ledger)

    outcome = interpreter.interpret("https://app.example.com/payment/callback?reference=ps_1&provider=paystack")

    assert outcome.state == CallbackState.NETWORK_ISSUE
    assert outcome.can_retry is True
    assert ledger.consume() is not None


def test_stale_callback_keeps_live_ledger_entry():
    ledger = PendingPaymentLedger()
    ledger.record(PendingPayment(reference="ps_live", provider="paystack", plan_id="pro"))
    interpreter = CallbackInterpreter(ScriptedVerifier(NotFoundError("no checkout")), ledger)

    outcome = interpreter.interpret("reference=ps_old_bookmark&provider=paystack")

    assert outcome.state == CallbackState.VERIFICATION_FAILED
    assert outcome.reference == "ps_old_bookmark"
    assert ledger.consume().reference == "ps_live"


def test_stale_failed_or_cancelled_callback_keeps_live_ledger_entry():
    ledger = PendingPaymentLedger()
    ledger.record(PendingPayment(reference="ps_live", provider="paystack", plan_id="pro"))

    CallbackInterpreter(ScriptedVerifier(failed()), ledger).interpret("reference=ps_old&provider=paystack")
    CallbackInterpreter(ScriptedVerifier(), ledger).interpret("cancelled=true&reference=ps_old")

    assert ledger.consume().reference == "ps_live"
