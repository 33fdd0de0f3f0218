"""
payflow/models/plan.py

Plan model for the purchasable catalog.
"""

from decimal import Decimal
from typing import List
from pydantic import BaseModel, ConfigDict, Field


class Plan(BaseModel):
    """
    Plan represents a purchasable tier.

    Examples:
    - free (price 0, never goes through checkout)
    - pro

    Plans are immutable at checkout time: the price and currency charged
    are copied from the plan into the payment intent.
    """
    model_config = ConfigDict(frozen=True)

    plan_id: str
    name: str
    price: Decimal
    currency: str
    interval: str = "month"
    features: List[str] = Field(default_factory=list)
    is_active: bool = True

    @property
    def is_free(self) -> bool:
        return self.price <= 0
