from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping

from .. import metrics, repositories
from ..config import settings
from . import stripe_gateway

logger = logging.getLogger(__name__)

PAYOUT_PENDING_NOTE = (
    f"{repositories.PAYOUT_PENDING_NOTE_PREFIX} photographer has not completed Stripe Connect setup."
)


def transfer_failed_note(exc: Exception) -> str:
    return f"{repositories.TRANSFER_FAILED_NOTE_PREFIX} {exc}. Retry required."


def transfer_group_for(transaction: Mapping[str, Any]) -> str:
    reference = transaction.get("stripe_payment_intent_id") or transaction["id"]
    return f"gallery-payment-{reference}"


def payout_idempotency_key(transaction: Mapping[str, Any], *, retry: bool = False) -> str:
    """
    Idempotency key for a payout transfer.

    The webhook always uses the same key, so a redelivered event cannot pay
    twice. Stripe replays the stored response for a key, errors included, so
    each retry is keyed on the row's ``updated_at``, which moves every time an
    attempt writes its outcome.
    """
    reference = transaction.get("stripe_payment_intent_id") or transaction["id"]
    key = f"gallery-payout-{reference}"
    if not retry:
        return key
    updated_at = transaction.get("updated_at")
    if isinstance(updated_at, datetime):
        attempt = str(int(updated_at.timestamp() * 1_000_000))
    elif updated_at:
        attempt = str(updated_at)
    else:
        attempt = uuid.uuid4().hex
    return f"{key}-retry-{attempt}"


@dataclass(frozen=True)
class PayoutResult:
    transaction_id: str
    transfer_id: str | None = None
    note: str | None = None

    @property
    def transferred(self) -> bool:
        return self.transfer_id is not None


async def _record_transfer(transaction_id: str, transfer_id: str) -> PayoutResult:
    await repositories.update_transaction(transaction_id, {"stripe_transfer_id": transfer_id})
    return PayoutResult(transaction_id=transaction_id, transfer_id=transfer_id)


async def pay_out_transaction(transaction: Mapping[str, Any], *, retry: bool = False) -> PayoutResult:
    """
    Move the photographer's share of a gallery payment to their connected
    account and record the outcome on the ledger row.

    A refused transfer is written to the row's notes instead of raised: the
    client's payment already succeeded and the transfer is retried later.
    On retry, a transfer Stripe already holds for the payment is recorded
    rather than created again.
    """
    transaction_id = str(transaction["id"])
    payout_cents = int(transaction.get("photographer_payout_cents") or 0)
    photographer_id = transaction.get("photographer_id")

    account_id = None
    if photographer_id:
        account_id = await repositories.get_connect_account_id(str(photographer_id))

    if not account_id:
        logger.info(
            "Photographer %s has no connected account; payout for %s left pending",
            photographer_id,
            transaction_id,
        )
        await repositories.update_transaction(transaction_id, {"notes": PAYOUT_PENDING_NOTE})
        return PayoutResult(transaction_id=transaction_id, note=PAYOUT_PENDING_NOTE)

    payment_intent_id = str(transaction.get("stripe_payment_intent_id") or "")
    transfer_group = transfer_group_for(transaction)
    try:
        if retry:
            previous = await stripe_gateway.find_transfer(transfer_group)
            if previous and previous.get("id"):
                logger.info(
                    "Transaction %s already has transfer %s at Stripe",
                    transaction_id,
                    previous["id"],
                )
                return await _record_transfer(transaction_id, previous["id"])
        transfer = await stripe_gateway.create_transfer(
            amount_cents=payout_cents,
            destination=account_id,
            currency=transaction.get("currency") or settings.stripe_currency,
            metadata={
                "transaction_id": transaction_id,
                "gallery_id": str(transaction.get("gallery_id") or ""),
                "photographer_id": str(photographer_id),
                "payment_intent_id": payment_intent_id,
                "payout_type": "gallery_payment",
            },
            transfer_group=transfer_group,
            idempotency_key=payout_idempotency_key(transaction, retry=retry),
        )
    except Exception as exc:
        metrics.stripe_transfer_failures_total.inc()
        logger.warning(
            "Transfer to %s for transaction %s failed: %s",
            account_id,
            transaction_id,
            exc,
        )
        note = transfer_failed_note(exc)
        await repositories.update_transaction(transaction_id, {"notes": note})
        return PayoutResult(transaction_id=transaction_id, note=note)

    transfer_id = transfer.get("id")
    logger.info(
        "Transferred %s cents to %s (transfer=%s, transaction=%s)",
        payout_cents,
        account_id,
        transfer_id,
        transaction_id,
    )
    return await _record_transfer(transaction_id, transfer_id)


async def retry_pending_transfers(*, limit: int = 50, dry_run: bool = False) -> list[PayoutResult]:
    pending = await repositories.list_transactions_awaiting_transfer(limit=limit)
    logger.info("Found %s gallery payments awaiting a transfer", len(pending))
    if dry_run:
        return [
            PayoutResult(transaction_id=str(row["id"]), note=row.get("notes"))
            for row in pending
        ]

    results = []
    for row in pending:
        results.append(await pay_out_transaction(row, retry=True))
    return results


__all__ = [
    "PAYOUT_PENDING_NOTE",
    "PayoutResult",
    "pay_out_transaction",
    "payout_idempotency_key",
    "retry_pending_transfers",
    "transfer_failed_note",
    "transfer_group_for",
]
