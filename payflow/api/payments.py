"""
Payments API routes.

Surface:
- POST /api/payments/init-payment: Start a hosted checkout
- POST /api/payments/verify-payment: Confirm a returned checkout and fulfill it
- GET  /api/payments/plans: Active catalog plans
- GET  /api/payments/provider: The usable provider and its public key
- GET  /api/payments/status: Caller's current plan
- GET  /api/payments/history: Caller's payment records

Errors use the normalized payload from core/errors.py; provider failures keep
distinct codes (provider_unavailable, provider_rejected, network_error) so the
client can tell "retry later" apart from "contact support".
"""
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field, field_validator

from payflow.core.auth import get_current_user_id
from payflow.core.errors import PermissionError, ValidationError
from payflow.features.billing import registry
from payflow.features.billing.fulfillment import list_payment_records
from payflow.features.billing.initiator import initiate
from payflow.features.billing.money import to_decimal
from payflow.features.billing.verifier import verify_payment
from payflow.features.plans.service import get_user_plan, list_plans, require_active_plan
from payflow.models.plan import Plan


router = APIRouter(prefix="/api/payments", tags=["payments"])


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class InitPaymentRequest(CamelModel):
    email: str
    user_id: str = Field(alias="userId")
    amount: Decimal
    currency: str
    plan_id: str = Field(alias="planId")
    provider: Optional[str] = None
    callback_url: str = Field(alias="callbackUrl")

    @field_validator("amount", mode="before")
    @classmethod
    def _parse_amount(cls, value):
        try:
            return Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise ValueError("amount must be a number")


class InitPaymentResponse(CamelModel):
    payment_url: str = Field(alias="paymentUrl")
    reference: str
    provider: str


class VerifyPaymentRequest(CamelModel):
    reference: str
    provider: str
    transaction_id: Optional[str] = Field(default=None, alias="transactionId")


class PlanResponse(CamelModel):
    plan_id: str = Field(alias="planId")
    name: str
    price: Decimal
    currency: str
    interval: str
    features: List[str]

    @classmethod
    def from_plan(cls, plan: Plan) -> "PlanResponse":
        return cls(
            plan_id=plan.plan_id,
            name=plan.name,
            price=plan.price,
            currency=plan.currency,
            interval=plan.interval,
            features=plan.features,
        )


class VerifyPaymentResponse(CamelModel):
    success: bool
    plan: Optional[str] = None  # plan id; details come from /plans
    message: Optional[str] = None
    flagged: bool = False


class ProviderResponse(CamelModel):
    enabled: bool
    provider: Optional[str] = None
    public_key: Optional[str] = Field(default=None, alias="publicKey")


class PlanStatusResponse(CamelModel):
    user_id: str = Field(alias="userId")
    plan_id: str = Field(alias="planId")
    status: str
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")


class PaymentRecordResponse(CamelModel):
    reference: str
    provider: str
    plan_id: str = Field(alias="planId")
    amount: Decimal
    currency: str
    status: str
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")


@router.post("/init-payment", response_model=InitPaymentResponse)
def init_payment(body: InitPaymentRequest, user_id: str = Depends(get_current_user_id)):
    """
    Start a checkout for a paid plan.

    The amount and currency sent by the client must match the catalog; the
    catalog price is what gets charged.

    Errors:
        400 validation_error: Free plan, amount/currency mismatch, unknown provider
        403 forbidden: userId is not the authenticated user
        404 not_found: Unknown or inactive plan
        502 provider_rejected / 503 provider_unavailable / 503 network_error
    """
    if body.user_id != user_id:
        raise PermissionError("userId does not match the authenticated user")

    plan = require_active_plan(body.plan_id)
    if plan.is_free:
        raise ValidationError(f"Plan {plan.plan_id} is free and does not require payment")

    if body.currency.upper() != plan.currency.upper() or to_decimal(body.amount) != to_decimal(plan.price):
        raise ValidationError(
            f"Amount {body.amount} {body.currency.upper()} does not match plan price {plan.price} {plan.currency}"
        )

    provider = registry.parse_provider_name(body.provider) if body.provider else None

    session = initiate(
        user_id=user_id,
        email=body.email,
        plan=plan,
        provider=provider,
        callback_url=body.callback_url,
    )
    return InitPaymentResponse(
        payment_url=session.payment_url,
        reference=session.reference,
        provider=session.provider.value,
    )


@router.post("/verify-payment", response_model=VerifyPaymentResponse)
def verify(body: VerifyPaymentRequest, user_id: str = Depends(get_current_user_id)):
    """
    Verify a returned checkout.

    Safe to call repeatedly: once a reference is fulfilled every later call
    returns the same success without contacting the provider.
    """
    result = verify_payment(
        reference=body.reference,
        provider=body.provider,
        transaction_id=body.transaction_id,
        user_id=user_id,
    )
    return VerifyPaymentResponse(
        success=result.success,
        plan=result.plan.plan_id if result.plan else None,
        message=result.message,
        flagged=result.flagged,
    )


@router.get("/plans", response_model=List[PlanResponse])
def get_plans():
    return [PlanResponse.from_plan(plan) for plan in list_plans()]


@router.get("/provider", response_model=ProviderResponse)
def get_enabled_provider():
    """Which provider checkout will use. Never exposes the secret key."""
    info = registry.describe_enabled_provider()
    return ProviderResponse(
        enabled=info["enabled"],
        provider=info["provider"],
        public_key=info["public_key"],
    )


@router.get("/status", response_model=PlanStatusResponse)
def get_status(user_id: str = Depends(get_current_user_id)):
    state = get_user_plan(user_id)
    return PlanStatusResponse(
        user_id=state.user_id,
        plan_id=state.plan_id,
        status=state.status,
        updated_at=state.updated_at,
    )


@router.get("/history", response_model=List[PaymentRecordResponse])
def get_history(user_id: str = Depends(get_current_user_id)):
    return [
        PaymentRecordResponse(
            reference=record.reference,
            provider=record.provider.value,
            plan_id=record.plan_id,
            amount=record.amount,
            currency=record.currency,
            status=record.status,
            created_at=record.created_at,
        )
        for record in list_payment_records(user_id)
    ]
