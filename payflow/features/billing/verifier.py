"""
Payment verifier.

Confirms a returned checkout with the provider using the secret key,
cross-checks amount and currency against the server-side intent and hands
validated payments to the fulfillment writer.

Order of checks:
1. Unknown provider name -> ValidationError
2. Existing payment record -> idempotent success, no provider call
3. Intent missing or owned by someone else -> NotFoundError
4. Flagged intent -> failure, no provider call
5. Provider status lookup (NetworkError / ProviderUnavailable propagate)
6. Amount/currency cross-check -> flag on mismatch
7. Fulfillment
"""
from dataclasses import dataclass
from typing import Optional, Union

from payflow.core.errors import NotFoundError
from payflow.core.logging import log_event
from payflow.features.billing import fulfillment, intents, registry
from payflow.features.billing.money import amounts_match
from payflow.features.billing.provider import (
    AmountMismatch,
    PaymentProvider,
    ProviderTransaction,
    TRANSACTION_PENDING,
)
from payflow.features.plans.service import get_plan
from payflow.models.payment import IntentStatus, PaymentIntent, ProviderName
from payflow.models.plan import Plan


@dataclass
class VerificationResult:
    success: bool
    plan: Optional[Plan] = None
    message: Optional[str] = None
    flagged: bool = False


def _check_amount(intent: PaymentIntent, txn: ProviderTransaction) -> None:
    if not amounts_match(intent.amount, intent.currency, txn.amount, txn.currency):
        raise AmountMismatch(
            f"Provider reported {txn.amount} {txn.currency}, expected {intent.amount} {intent.currency}"
        )


def verify_payment(
    reference: str,
    provider: Union[str, ProviderName],
    transaction_id: Optional[str] = None,
    user_id: Optional[str] = None,
    provider_impl: Optional[PaymentProvider] = None,
) -> VerificationResult:
    """
    Verify a checkout by (reference, provider).

    Args:
        reference: Reference issued at initiation
        provider: Provider the checkout was issued with
        transaction_id: Optional provider transaction id from the callback URL
        user_id: Authenticated caller; the intent must belong to them
        provider_impl: Adapter override (tests)

    Raises:
        ValidationError: Unknown provider
        NotFoundError: No intent for this reference and caller
        NetworkError: Provider unreachable, retry later
        ProviderUnavailable: Provider credentials missing
    """
    provider_name = registry.parse_provider_name(provider)

    existing = fulfillment.get_payment_record(reference)
    if existing is not None and existing.provider == provider_name and (user_id is None or existing.user_id == user_id):
        log_event(
            "info",
            "verify.already_fulfilled",
            user_id=existing.user_id,
            reference=reference,
            provider=provider_name.value,
            event_type="verify",
        )
        return VerificationResult(success=True, plan=get_plan(existing.plan_id), message="Payment already verified")

    intent = intents.get_intent(reference, provider_name)
    if intent is None or (user_id is not None and intent.user_id != user_id):
        log_event(
            "warning",
            "verify.unknown_reference",
            user_id=user_id,
            reference=reference,
            provider=provider_name.value,
            event_type="verify",
            error_code="not_found",
        )
        raise NotFoundError(f"No checkout found for reference {reference}")

    if intent.status == IntentStatus.FLAGGED:
        return VerificationResult(
            success=False,
            message="Payment is under review",
            flagged=True,
        )

    gateway = provider_impl or registry.get_provider(provider_name, require_enabled=False)
    txn = gateway.verify(
        reference,
        transaction_id=transaction_id,
        session_id=intent.provider_session_id,
    )

    if not txn.succeeded:
        log_event(
            "info",
            "verify.not_successful",
            user_id=intent.user_id,
            reference=reference,
            provider=provider_name.value,
            event_type="verify",
            extra={"status": txn.status, "gateway_message": txn.message},
        )
        if txn.status == TRANSACTION_PENDING:
            message = "Payment is still processing"
        else:
            message = txn.message or "Payment was not successful"
        return VerificationResult(success=False, message=message)

    try:
        _check_amount(intent, txn)
    except AmountMismatch as e:
        log_event(
            "error",
            "verify.amount_mismatch",
            user_id=intent.user_id,
            reference=reference,
            provider=provider_name.value,
            event_type="verify",
            error_code=e.code,
            extra={
                "expected_amount": str(intent.amount),
                "expected_currency": intent.currency,
                "actual_amount": str(txn.amount),
                "actual_currency": txn.currency,
            },
        )
        intents.flag_for_review(reference, e.message)
        return VerificationResult(
            success=False,
            message="Payment amount did not match. Our team will review it.",
            flagged=True,
        )

    record = fulfillment.apply_fulfillment(
        user_id=intent.user_id,
        plan_id=intent.plan_id,
        reference=reference,
        amount=intent.amount,
        currency=intent.currency,
        provider=provider_name,
        provider_transaction_id=txn.transaction_id,
    )

    return VerificationResult(success=True, plan=get_plan(record.plan_id), message="Payment verified")
