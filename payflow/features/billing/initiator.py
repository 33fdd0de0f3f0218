"""
Payment initiator.

Creates a hosted checkout with the selected provider and records the
server-side intent. The caller gets back the provider URL and the reference
it must keep (client ledger) before redirecting.
"""
import secrets
import time
from dataclasses import dataclass
from typing import Optional, Union

from payflow.core.errors import ValidationError
from payflow.core.logging import log_event
from payflow.features.billing import intents, registry
from payflow.features.billing.provider import BillingProviderError, PaymentProvider
from payflow.models.payment import ProviderName
from payflow.models.plan import Plan


@dataclass
class CheckoutSession:
    payment_url: str
    reference: str
    provider: ProviderName


def make_reference(provider: Union[str, ProviderName], user_id: str, now_ms: Optional[int] = None) -> str:
    """
    Build a provider-namespaced reference.

    Format: <prefix>_<epoch-ms>_<first 8 chars of user id>_<random hex>
    """
    prefix = registry.reference_prefix(provider)
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{prefix}_{stamp}_{user_id[:8]}_{secrets.token_hex(4)}"


def initiate(
    user_id: str,
    email: str,
    plan: Plan,
    provider: Optional[Union[str, ProviderName]],
    callback_url: str,
    provider_impl: Optional[PaymentProvider] = None,
) -> CheckoutSession:
    """
    Start a checkout for a paid plan.

    Raises:
        ValidationError: Free or inactive plan, missing callback URL
        ProviderUnavailable: No usable provider
        ProviderRejected: Gateway refused the session
        NetworkError: Gateway unreachable or timed out
    """
    if plan.is_free:
        raise ValidationError(f"Plan {plan.plan_id} is free and does not need checkout")
    if not plan.is_active:
        raise ValidationError(f"Plan {plan.plan_id} is not available")
    if not callback_url:
        raise ValidationError("callbackUrl is required")
    if not user_id:
        raise ValidationError("userId is required")

    gateway = provider_impl or registry.get_provider(provider)
    provider_name = registry.parse_provider_name(gateway.name)

    reference = make_reference(provider_name, user_id)
    metadata = {"userId": user_id, "planId": plan.plan_id, "reference": reference}

    log_event(
        "info",
        "checkout.initiate",
        user_id=user_id,
        reference=reference,
        provider=provider_name.value,
        event_type="initiate",
        extra={"plan_id": plan.plan_id, "amount": str(plan.price), "currency": plan.currency},
    )

    try:
        session = gateway.initiate(
            reference=reference,
            email=email,
            amount=plan.price,
            currency=plan.currency,
            callback_url=callback_url,
            metadata=metadata,
        )
    except BillingProviderError as e:
        log_event(
            "warning",
            "checkout.initiate_failed",
            user_id=user_id,
            reference=reference,
            provider=provider_name.value,
            event_type="initiate",
            error_code=e.code,
            extra={"error_message": e.message},
        )
        raise

    intents.record_intent(
        reference=reference,
        provider=provider_name,
        plan_id=plan.plan_id,
        user_id=user_id,
        email=email,
        amount=plan.price,
        currency=plan.currency,
        provider_session_id=session.session_id,
    )

    return CheckoutSession(payment_url=session.payment_url, reference=reference, provider=provider_name)
