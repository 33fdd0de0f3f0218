"""
Fulfillment writer.

Applies a purchased plan exactly once per reference. The payment record
insert and the user plan upsert share one transaction; the unique
constraint on payment_records.reference decides which of two concurrent
verifications wins.
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError

from payflow.core.database import get_db_session, payment_records, user_plans
from payflow.core.logging import log_event
from payflow.features.billing import intents
from payflow.models.payment import PaymentRecord, ProviderName


def _row_to_record(row) -> PaymentRecord:
    return PaymentRecord(
        id=row.id,
        reference=row.reference,
        user_id=row.user_id,
        provider=ProviderName(row.provider),
        plan_id=row.plan_id,
        amount=Decimal(str(row.amount)),
        currency=row.currency,
        status=row.status,
        provider_transaction_id=row.provider_transaction_id,
        created_at=intents.utc(row.created_at),
    )


def get_payment_record(reference: str) -> Optional[PaymentRecord]:
    with get_db_session() as session:
        row = session.execute(
            select(payment_records).where(payment_records.c.reference == reference)
        ).first()
    if not row:
        return None
    return _row_to_record(row)


def list_payment_records(user_id: str, limit: int = 50) -> List[PaymentRecord]:
    """Payment history for a user, newest first."""
    with get_db_session() as session:
        rows = session.execute(
            select(payment_records)
            .where(payment_records.c.user_id == user_id)
            .order_by(payment_records.c.created_at.desc(), payment_records.c.id.desc())
            .limit(limit)
        ).fetchall()
    return [_row_to_record(row) for row in rows]


def _upsert_user_plan(session, user_id: str, plan_id: str, now: datetime) -> None:
    existing = session.execute(
        select(user_plans.c.user_id).where(user_plans.c.user_id == user_id)
    ).fetchone()

    if existing:
        session.execute(
            update(user_plans)
            .where(user_plans.c.user_id == user_id)
            .values(plan_id=plan_id, status="active", updated_at=now)
        )
    else:
        session.execute(
            insert(user_plans).values(
                user_id=user_id,
                plan_id=plan_id,
                status="active",
                updated_at=now,
            )
        )


def apply_fulfillment(
    user_id: str,
    plan_id: str,
    reference: str,
    amount: Decimal,
    currency: str,
    provider: ProviderName,
    provider_transaction_id: Optional[str] = None,
) -> PaymentRecord:
    """
    Record a successful payment and upgrade the user's plan (idempotent).

    A duplicate reference is not an error: the existing record is returned
    and the plan is left as the first fulfillment set it.
    """
    now = datetime.now(timezone.utc)
    provider_value = ProviderName(provider).value

    try:
        with get_db_session() as session:
            session.execute(
                insert(payment_records).values(
                    reference=reference,
                    user_id=user_id,
                    provider=provider_value,
                    plan_id=plan_id,
                    amount=amount,
                    currency=currency.upper(),
                    status="success",
                    provider_transaction_id=provider_transaction_id,
                    created_at=now,
                )
            )
            _upsert_user_plan(session, user_id, plan_id, now)
            intents.mark_fulfilled(reference, session=session)
    except IntegrityError:
        # Another verification already fulfilled this reference
        existing = get_payment_record(reference)
        if existing is None:
            raise
        log_event(
            "info",
            "fulfillment.duplicate",
            user_id=user_id,
            reference=reference,
            provider=provider_value,
            event_type="fulfillment",
        )
        return existing

    record = get_payment_record(reference)
    log_event(
        "info",
        "fulfillment.applied",
        user_id=user_id,
        reference=reference,
        provider=provider_value,
        event_type="fulfillment",
        extra={"plan_id": plan_id},
    )
    return record
