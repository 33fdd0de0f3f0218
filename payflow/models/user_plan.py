"""
payflow/models/user_plan.py

UserPlanState links users to their current plan.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict


class UserPlanState(BaseModel):
    """
    UserPlanState represents a user's current plan.

    Constraint: each user has exactly one row, written only by a
    successful fulfillment. Users without a row are on the free plan.
    """
    model_config = ConfigDict(frozen=True)

    user_id: str
    plan_id: str
    status: str  # active, suspended
    updated_at: Optional[datetime] = None
