#!/usr/bin/env python3
"""Inspect a principal's usage or mint a development bearer token."""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path

# Ensure project root is on the path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from src.api.deps import close_store, get_store, get_tiers
from src.api.middleware import create_token
from src.core.logging import get_logger, setup_logging
from src.metering.rate_limit import bucket_key
from src.metering.tiers import render_limit
from src.metering.usage import UsageAccountant

log = get_logger(__name__)


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Tollgate usage admin")
    sub = parser.add_subparsers(dest="command", required=True)

    show = sub.add_parser("show", help="Print current-period usage for a principal")
    show.add_argument("principal", type=str)
    show.add_argument("--tier", type=str, default="free", help="Tier to evaluate against")

    token = sub.add_parser("token", help="Issue a development bearer token")
    token.add_argument("principal", type=str)
    token.add_argument("--tier", type=str, default="free", help="Value of the plan claim")
    return parser.parse_args()


async def show_usage(principal: str, tier: str) -> None:
    now = datetime.now(timezone.utc)
    accountant = UsageAccountant(get_store(), get_tiers())
    try:
        snapshot = await accountant.peek(principal, tier, now)
        minute_count = await get_store().get(bucket_key(principal, now))
    finally:
        await close_store()

    print(f"principal:      {snapshot.principal}")
    print(f"plan:           {snapshot.plan}")
    print(f"period:         {snapshot.period_start} .. {snapshot.period_end}")
    print(f"usage:          {snapshot.usage_count} / {render_limit(snapshot.limit)}")
    print(f"remaining:      {render_limit(snapshot.remaining)}")
    print(f"this minute:    {minute_count or 0}")


async def main() -> None:
    """Entry point."""
    setup_logging(json_output=False)
    args = parse_args()

    if args.command == "token":
        print(create_token(args.principal, datetime.now(timezone.utc), plan=args.tier))
        return

    await show_usage(args.principal, args.tier)


if __name__ == "__main__":
    asyncio.run(main())
