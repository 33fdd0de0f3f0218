"""
payflow/features/plans/service.py

Plan catalog and user plan state.

Handles:
- Plan seeding (free, pro)
- Read-only catalog lookups used by checkout
- User plan state reads (writes belong to the fulfillment writer)
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional
from sqlalchemy import select, insert

from payflow.core.database import get_db_session, plans, user_plans
from payflow.core.errors import NotFoundError
from payflow.models.plan import Plan
from payflow.models.user_plan import UserPlanState


FREE_PLAN_ID = "free"

# Default catalog
DEFAULT_PLANS = {
    "free": {
        "name": "Free",
        "price": Decimal("0"),
        "currency": "NGN",
        "interval": "month",
        "features": ["Core planner", "Up to 3 savings goals"],
        "sort_order": 0,
    },
    "pro": {
        "name": "Pro",
        "price": Decimal("5000"),
        "currency": "NGN",
        "interval": "month",
        "features": [
            "Unlimited savings goals",
            "Bank statement import",
            "AI assistant",
            "Priority support",
        ],
        "sort_order": 1,
    },
}


def _row_to_plan(row) -> Plan:
    return Plan(
        plan_id=row.plan_id,
        name=row.name,
        price=Decimal(str(row.price)),
        currency=row.currency,
        interval=row.interval,
        features=list(row.features or []),
        is_active=bool(row.is_active),
    )


def seed_plans() -> None:
    """
    Seed default plans into database (idempotent).

    Existing plans are left untouched so catalog edits survive restarts.
    """
    now = datetime.now(timezone.utc)

    with get_db_session() as session:
        for plan_id, config in DEFAULT_PLANS.items():
            existing = session.execute(
                select(plans.c.plan_id).where(plans.c.plan_id == plan_id)
            ).first()

            if not existing:
                session.execute(
                    insert(plans).values(
                        plan_id=plan_id,
                        name=config["name"],
                        price=config["price"],
                        currency=config["currency"],
                        interval=config["interval"],
                        features=config["features"],
                        is_active=True,
                        sort_order=config["sort_order"],
                        created_at=now,
                    )
                )


def list_plans(include_inactive: bool = False) -> List[Plan]:
    """List catalog plans ordered for display."""
    query = select(plans).order_by(plans.c.sort_order.asc(), plans.c.plan_id.asc())
    if not include_inactive:
        query = query.where(plans.c.is_active == True)

    with get_db_session() as session:
        rows = session.execute(query).fetchall()
    return [_row_to_plan(row) for row in rows]


def get_plan(plan_id: str) -> Optional[Plan]:
    """Get plan by ID."""
    with get_db_session() as session:
        row = session.execute(
            select(plans).where(plans.c.plan_id == plan_id)
        ).first()

    if not row:
        return None
    return _row_to_plan(row)


def require_active_plan(plan_id: str) -> Plan:
    """
    Get an active plan or raise.

    Raises:
        NotFoundError: If the plan does not exist or is inactive
    """
    plan = get_plan(plan_id)
    if not plan or not plan.is_active:
        raise NotFoundError(f"Plan {plan_id} not found")
    return plan


def get_user_plan(user_id: str) -> UserPlanState:
    """Current plan state for a user; users without a row are on the free plan."""
    with get_db_session() as session:
        row = session.execute(
            select(user_plans).where(user_plans.c.user_id == user_id)
        ).first()

    if not row:
        return UserPlanState(user_id=user_id, plan_id=FREE_PLAN_ID, status="active", updated_at=None)

    return UserPlanState(
        user_id=row.user_id,
        plan_id=row.plan_id,
        status=row.status,
        updated_at=row.updated_at,
    )
