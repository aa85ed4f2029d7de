"""Scheduled jobs: `python -m doorstep.jobs reconcile|penalties`."""
import argparse
import asyncio
import logging
import sys
from datetime import date
from typing import List, Optional

from doorstep.core.config import settings
from doorstep.db.mongo import close_mongo_connection, connect_to_mongo, mongodb
from doorstep.services.delivery_service import DeliveryReconciler
from doorstep.services.penalty_service import PenaltyEngine


def parse_args(argv: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run doorstep ledger jobs")
    sub = parser.add_subparsers(dest="job", required=True)

    reconcile = sub.add_parser("reconcile", help="Ensure delivery rows for every delivery person")
    reconcile.add_argument("--date", type=date.fromisoformat, help="Target date (YYYY-MM-DD), default today")

    penalties = sub.add_parser("penalties", help="Fine customers with overdue containers")
    penalties.add_argument("--threshold-days", type=int, help="Override the overdue threshold")
    return parser.parse_args(argv)


async def run_reconcile(day: Optional[date]) -> int:
    reports = await DeliveryReconciler(mongodb.db).reconcile_all(day)
    print("Reconciliation Summary")
    print("======================")
    for report in reports:
        print(
            f"{report.delivery_person_id} {report.date}: created {report.created}, "
            f"existing {report.existing}, repaired {report.repaired}, skipped {report.skipped}"
        )
    if not reports:
        print("No assigned delivery persons.")
    return 0


async def run_penalties(threshold_days: Optional[int]) -> int:
    results = await PenaltyEngine(mongodb.db).run(threshold_days)
    print("Penalty Run")
    print("===========")
    for result in results:
        if result.success:
            print(f"- {result.customer_id}: fined {result.fine_amount}, balance {result.wallet_balance}")
        else:
            print(f"- {result.customer_id}: FAILED {result.error}")
    if not results:
        print("No overdue containers.")
    return 1 if any(not r.success for r in results) else 0


async def _main(args: argparse.Namespace) -> int:
    await connect_to_mongo()
    try:
        if args.job == "reconcile":
            return await run_reconcile(args.date)
        return await run_penalties(args.threshold_days)
    finally:
        await close_mongo_connection()


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    logging.basicConfig(level=settings.LOG_LEVEL)
    return asyncio.run(_main(args))


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
