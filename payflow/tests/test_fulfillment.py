"""Fulfillment writer: one record and one plan change per reference."""
from decimal import Decimal

from sqlalchemy import func, select

from payflow.core.database import get_db_session, payment_records
from payflow.features.billing import intents
from payflow.features.billing.fulfillment import apply_fulfillment, list_payment_records
from payflow.features.plans.service import get_user_plan
from payflow.models.payment import IntentStatus, ProviderName


def _record_count(reference):
    with get_db_session() as session:
        return session.execute(
            select(func.count()).select_from(payment_records).where(payment_records.c.reference == reference)
        ).scalar()


def test_fulfillment_records_payment_and_upgrades_plan():
    intents.record_intent("ps_1", ProviderName.PAYSTACK, "pro", "user_1", "a@b.c", Decimal("5000"), "NGN")

    record = apply_fulfillment("user_1", "pro", "ps_1", Decimal("5000"), "NGN", ProviderName.PAYSTACK, "txn_1")

    assert record.reference == "ps_1"
    assert record.status == "success"
    assert record.provider_transaction_id == "txn_1"
    state = get_user_plan("user_1")
    assert (state.plan_id, state.status) == ("pro", "active")
    assert intents.get_intent("ps_1", ProviderName.PAYSTACK).status == IntentStatus.FULFILLED


def test_duplicate_reference_returns_existing_record():
    first = apply_fulfillment("user_1", "pro", "ps_2", Decimal("5000"), "NGN", ProviderName.PAYSTACK, "txn_a")
    second = apply_fulfillment("user_1", "pro", "ps_2", Decimal("5000"), "NGN", ProviderName.PAYSTACK, "txn_b")

    assert second.id == first.id
    assert second.provider_transaction_id == "txn_a"
    assert _record_count("ps_2") == 1


def test_existing_user_plan_row_is_updated():
    apply_fulfillment("user_1", "free", "ps_3", Decimal("0"), "NGN", ProviderName.PAYSTACK)
    apply_fulfillment("user_1", "pro", "ps_4", Decimal("5000"), "NGN", ProviderName.PAYSTACK)

    assert get_user_plan("user_1").plan_id == "pro"


def test_history_is_scoped_to_user_and_newest_first():
    apply_fulfillment("user_1", "pro", "ps_5", Decimal("5000"), "NGN", ProviderName.PAYSTACK)
    apply_fulfillment("user_2", "pro", "ps_6", Decimal("5000"), "NGN", ProviderName.PAYSTACK)
    apply_fulfillment("user_1", "pro", "ps_7", Decimal("5000"), "NGN", ProviderName.PAYSTACK)

    history = list_payment_records("user_1")
    assert [r.reference for r in history] == ["ps_7", "ps_5"]
