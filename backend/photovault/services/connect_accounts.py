from __future__ import annotations

import logging
from typing import Any, Mapping

from .. import repositories
from ..schemas import HandlerResult

logger = logging.getLogger(__name__)

# Only "enabled" and "pending" are looked up while the key comes from details_submitted.
CONNECT_STATUS_MAP = {
    "enabled": "active",
    "disabled": "disabled",
    "restricted": "restricted",
    "pending": "pending",
}


def connect_status_for(account: Mapping[str, Any]) -> str:
    status_key = "enabled" if account.get("details_submitted") else "pending"
    return CONNECT_STATUS_MAP.get(status_key, "pending")


async def handle_account_updated(account: Mapping[str, Any]) -> HandlerResult:
    account_id = account.get("id")
    if not isinstance(account_id, str):
        return HandlerResult.skipped("Account event without account id")

    photographer = await repositories.get_photographer_by_account(account_id)
    if not photographer:
        logger.info("No photographer found for Stripe account %s", account_id)
        return HandlerResult.skipped(f"No photographer for account {account_id}")

    await repositories.update_photographer(
        str(photographer["id"]),
        {
            "stripe_connect_status": connect_status_for(account),
            "can_receive_payouts": bool(account.get("payouts_enabled")),
            "bank_account_verified": bool(account.get("details_submitted")),
        },
    )
    logger.info("Stripe Connect account %s synced", account_id)
    return HandlerResult.applied(f"Account {account_id} updated")
