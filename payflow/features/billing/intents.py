"""
Server-side payment intents.

One row per issued checkout, keyed by reference. The row is the authoritative
copy of provider, plan, user, amount and currency: nothing from the callback
URL can change them.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import and_, insert, select, update

from payflow.core.config import settings
from payflow.core.database import get_db_session, payment_intents
from payflow.models.payment import IntentStatus, PaymentIntent, ProviderName


def utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything is stored as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _row_to_intent(row) -> PaymentIntent:
    return PaymentIntent(
        reference=row.reference,
        provider=ProviderName(row.provider),
        plan_id=row.plan_id,
        user_id=row.user_id,
        email=row.email,
        amount=Decimal(str(row.amount)),
        currency=row.currency,
        provider_session_id=row.provider_session_id,
        status=IntentStatus(row.status),
        review_reason=row.review_reason,
        created_at=utc(row.created_at),
        expires_at=utc(row.expires_at),
    )


def record_intent(
    reference: str,
    provider: ProviderName,
    plan_id: str,
    user_id: str,
    email: Optional[str],
    amount: Decimal,
    currency: str,
    provider_session_id: Optional[str] = None,
    now: Optional[datetime] = None,
    ttl_minutes: Optional[int] = None,
) -> PaymentIntent:
    """Persist a freshly issued checkout."""
    created = utc(now) or datetime.now(timezone.utc)
    ttl = ttl_minutes if ttl_minutes is not None else settings.PAYMENT_INTENT_TTL_MINUTES
    expires = created + timedelta(minutes=ttl)

    with get_db_session() as session:
        session.execute(
            insert(payment_intents).values(
                reference=reference,
                provider=ProviderName(provider).value,
                plan_id=plan_id,
                user_id=user_id,
                email=email,
                amount=amount,
                currency=currency.upper(),
                provider_session_id=provider_session_id,
                status=IntentStatus.PENDING.value,
                created_at=created,
                expires_at=expires,
                updated_at=created,
            )
        )

    return PaymentIntent(
        reference=reference,
        provider=ProviderName(provider),
        plan_id=plan_id,
        user_id=user_id,
        email=email,
        amount=amount,
        currency=currency.upper(),
        provider_session_id=provider_session_id,
        status=IntentStatus.PENDING,
        created_at=created,
        expires_at=expires,
    )


def get_intent(reference: str, provider: ProviderName) -> Optional[PaymentIntent]:
    """Look up an intent by its (reference, provider) pair."""
    with get_db_session() as session:
        row = session.execute(
            select(payment_intents).where(
                and_(
                    payment_intents.c.reference == reference,
                    payment_intents.c.provider == ProviderName(provider).value,
                )
            )
        ).first()

    if not row:
        return None
    return _row_to_intent(row)


def _set_status(reference: str, status: IntentStatus, review_reason: Optional[str] = None, session=None) -> None:
    values = {"status": status.value, "updated_at": datetime.now(timezone.utc)}
    if review_reason is not None:
        values["review_reason"] = review_reason
    stmt = update(payment_intents).where(payment_intents.c.reference == reference).values(**values)
    if session is not None:
        session.execute(stmt)
        return
    with get_db_session() as own_session:
        own_session.execute(stmt)


def mark_fulfilled(reference: str, session=None) -> None:
    _set_status(reference, IntentStatus.FULFILLED, session=session)


def flag_for_review(reference: str, reason: str) -> None:
    """Hold an intent for manual review. It will not be fulfilled automatically."""
    _set_status(reference, IntentStatus.FLAGGED, review_reason=reason)


def list_unreturned(now: Optional[datetime] = None, limit: int = 100) -> List[PaymentIntent]:
    """Pending intents past their expiry: users who never came back from the gateway."""
    cutoff = utc(now) or datetime.now(timezone.utc)
    with get_db_session() as session:
        rows = session.execute(
            select(payment_intents)
            .where(
                and_(
                    payment_intents.c.status == IntentStatus.PENDING.value,
                    payment_intents.c.expires_at <= cutoff,
                )
            )
            .order_by(payment_intents.c.created_at.asc())
            .limit(limit)
        ).fetchall()
    return [_row_to_intent(row) for row in rows]


def expire(reference: str) -> None:
    _set_status(reference, IntentStatus.EXPIRED)
