#!/usr/bin/env python3
"""Retry photographer payouts that did not reach Stripe.

Picks up gallery payments whose ledger row has a positive payout, no
transfer id and a "Transfer failed" or "Payout pending" note, and runs them
through the same transfer path the webhook uses. A transfer Stripe already
holds for the payment's transfer group is recorded rather than recreated, and
each new attempt uses its own idempotency key so a cached decline is not
replayed.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Sequence

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from photovault.db import pool  # noqa: E402
from photovault.logging_utils import setup_logging  # noqa: E402
from photovault.services import payouts  # noqa: E402

logger = logging.getLogger("photovault.scripts.retry_gallery_transfers")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Retry pending photographer payout transfers.")
    parser.add_argument(
        "--limit",
        type=int,
        default=50,
        help="Maximum number of transactions to retry (default: %(default)s).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List pending transactions without calling Stripe.",
    )
    return parser.parse_args(argv)


async def _run(limit: int, dry_run: bool) -> list[payouts.PayoutResult]:
    await pool.open(wait=True)
    try:
        return await payouts.retry_pending_transfers(limit=limit, dry_run=dry_run)
    finally:
        await pool.close()


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    if args.limit <= 0:
        print("Error: --limit must be positive", file=sys.stderr)
        return 1

    setup_logging()
    results = asyncio.run(_run(args.limit, args.dry_run))

    failed = 0
    for result in results:
        if result.transferred:
            print(f"{result.transaction_id}: transferred ({result.transfer_id})")
        else:
            if not args.dry_run:
                failed += 1
            print(f"{result.transaction_id}: {result.note or 'pending'}")

    print(f"{len(results)} transaction(s) processed, {failed} still pending")
    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
