#!/usr/bin/env python3
"""
List checkouts whose users never returned from the payment gateway.

Usage:
    python -m payflow.scripts.report_unreturned_payments [--expire] [--limit 100] [--json]

Each listed reference can be checked in the provider dashboard, or verified
on the user's behalf through POST /api/payments/verify-payment.
"""
import argparse
import json
import sys

from payflow.core.logging import configure_logging
from payflow.features.billing.reconcile_job import run_unreturned_report


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Report pending payment intents past their expiry")
    parser.add_argument("--expire", action="store_true", help="Mark listed intents as expired")
    parser.add_argument("--limit", type=int, default=100, help="Maximum intents to list")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    args = parser.parse_args(argv)

    configure_logging()
    report = run_unreturned_report(expire=args.expire, limit=args.limit)

    if args.json:
        print(json.dumps(report, indent=2))
        return 0

    print(f"Unreturned payments: {report['found']} (expired now: {report['expired']})")
    for row in report["intents"]:
        print(
            f"  {row['reference']}  {row['provider']:<12} user={row['user_id']} "
            f"plan={row['plan_id']} {row['amount']} {row['currency']} created={row['created_at']}"
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
