"""
Client-side checkout starter.

Free plans never reach the payment API. For paid plans the ledger entry is
written after init-payment succeeds and before the redirect URL is handed
back, so the return trip can always be matched to this checkout.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping, Optional, Union

from payflow.client.api import PaymentsClient
from payflow.client.ledger import PendingPayment, PendingPaymentLedger
from payflow.models.plan import Plan


@dataclass(frozen=True)
class CheckoutStart:
    plan_id: str
    redirect_url: Optional[str] = None
    reference: Optional[str] = None
    provider: Optional[str] = None

    @property
    def free(self) -> bool:
        return self.redirect_url is None


def _plan_fields(plan: Union[Plan, Mapping[str, Any]]):
    if isinstance(plan, Plan):
        return plan.plan_id, plan.price, plan.currency
    plan_id = plan.get("planId") or plan.get("plan_id")
    return plan_id, Decimal(str(plan["price"])), plan["currency"]


def start_checkout(
    api: PaymentsClient,
    ledger: PendingPaymentLedger,
    plan: Union[Plan, Mapping[str, Any]],
    user_id: str,
    email: str,
    callback_url: str,
    provider: Optional[str] = None,
) -> CheckoutStart:
    """
    Begin checkout for a plan.

    Raises whatever init-payment raises (NetworkError, ProviderUnavailable,
    ProviderRejected, AppError); in that case the ledger is left untouched
    and no redirect URL exists.
    """
    plan_id, price, currency = _plan_fields(plan)
    if price <= 0:
        return CheckoutStart(plan_id=plan_id)

    result = api.init_payment(
        email=email,
        user_id=user_id,
        amount=price,
        currency=currency,
        plan_id=plan_id,
        callback_url=callback_url,
        provider=provider,
    )
    ledger.record(PendingPayment(reference=result.reference, provider=result.provider, plan_id=plan_id))
    return CheckoutStart(
        plan_id=plan_id,
        redirect_url=result.payment_url,
        reference=result.reference,
        provider=result.provider,
    )
