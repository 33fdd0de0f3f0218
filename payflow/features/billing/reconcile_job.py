"""
Unreturned payment report.

Users who pay and never come back from the gateway leave a pending intent
behind. Without push webhooks nothing verifies those checkouts, so this job
lists them for manual follow-up and can mark them expired. Support can still
run verify-payment on an expired intent; fulfillment stays idempotent.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from payflow.core.logging import log_event
from payflow.features.billing import intents


def run_unreturned_report(now: Optional[datetime] = None, expire: bool = False, limit: int = 100) -> Dict[str, Any]:
    now = intents.utc(now) or datetime.now(timezone.utc)
    stale = intents.list_unreturned(now=now, limit=limit)

    rows = []
    for intent in stale:
        rows.append({
            "reference": intent.reference,
            "provider": intent.provider.value,
            "user_id": intent.user_id,
            "plan_id": intent.plan_id,
            "amount": str(intent.amount),
            "currency": intent.currency,
            "created_at": intent.created_at.isoformat(),
            "expires_at": intent.expires_at.isoformat(),
        })
        if expire:
            intents.expire(intent.reference)

    log_event(
        "info",
        "reconcile.unreturned",
        event_type="reconcile",
        extra={"found": len(rows), "expired": len(rows) if expire else 0},
    )

    return {
        "found": len(rows),
        "expired": len(rows) if expire else 0,
        "intents": rows,
        "timestamp": now.isoformat(),
    }
