"""
payflow/models/payment.py

Payment intent and payment record models.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict


class ProviderName(str, Enum):
    """Closed set of supported gateways, in registry resolution order."""
    PAYSTACK = "paystack"
    FLUTTERWAVE = "flutterwave"
    STRIPE = "stripe"


class IntentStatus(str, Enum):
    PENDING = "pending"
    FULFILLED = "fulfilled"
    FLAGGED = "flagged"
    EXPIRED = "expired"


class PaymentIntent(BaseModel):
    """Server-side record of an issued checkout, keyed by reference."""
    model_config = ConfigDict(frozen=True)

    reference: str
    provider: ProviderName
    plan_id: str
    user_id: str
    email: Optional[str] = None
    amount: Decimal
    currency: str
    provider_session_id: Optional[str] = None
    status: IntentStatus = IntentStatus.PENDING
    review_reason: Optional[str] = None
    created_at: datetime
    expires_at: datetime


class PaymentRecord(BaseModel):
    """
    A completed payment. Created once per reference and never mutated.
    """
    model_config = ConfigDict(frozen=True)

    id: int
    reference: str
    user_id: str
    provider: ProviderName
    plan_id: str
    amount: Decimal
    currency: str
    status: str  # success, failed
    provider_transaction_id: Optional[str] = None
    created_at: Optional[datetime] = None
