#!/usr/bin/env python3
"""
Apply held free-hours bookings to tenant balances.

Meant to run from cron once a day. With --reset, starts a new billing period
once the held bookings have been applied.

Usage:
    python scripts/reconcile_free_hours.py
    python scripts/reconcile_free_hours.py --as-of 2025-02-01
    python scripts/reconcile_free_hours.py --reset --allowance 10
"""
import argparse
import asyncio
import logging
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

# Add project root to the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from boardroom.core.config import settings
from boardroom.core.database import AsyncSessionLocal, engine
from boardroom.billing.free_hours import ReconciliationError, get_free_hours_policy


logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("reconcile_free_hours")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--as-of", type=date.fromisoformat, default=None,
                        help="count bookings before this date (default: today)")
    parser.add_argument("--reset", action="store_true",
                        help="zero all tenant usage after reconciling")
    parser.add_argument("--allowance", type=Decimal, default=None,
                        help="new monthly allowance to assign with --reset")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    async with AsyncSessionLocal() as session:
        policy = get_free_hours_policy(session)
        try:
            result = await policy.reconcile(as_of=args.as_of)
        except ReconciliationError as e:
            logger.error(f"{e}: {e.__cause__}")
            return 1

        for name, hours in sorted(result.hours_by_organization.items()):
            logger.info(f"  {name}: +{hours}h")
        logger.info(f"Reconciled {result.updated} bookings")

        if args.reset:
            count = await policy.reset_usage(allowance=args.allowance)
            logger.info(f"Reset usage for {count} tenant organizations")
    return 0


async def main() -> int:
    args = parse_args()
    try:
        return await run(args)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
