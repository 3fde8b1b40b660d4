from __future__ import annotations

from typing import Any

from ..db import assignment_clause, get_conn

TRANSACTION_COLUMNS = """
    id, gallery_id, photographer_id, client_id,
    stripe_payment_intent_id, payment_option_id,
    shoot_fee_cents, storage_fee_cents, total_amount_cents,
    commission_cents, photovault_revenue_cents,
    photographer_payout_cents, stripe_fee_cents, currency,
    stripe_transfer_id, status, notes, created_at, updated_at
"""

_UPDATABLE_COLUMNS = {"stripe_transfer_id", "notes"}

TRANSFER_FAILED_NOTE_PREFIX = "Transfer failed:"
PAYOUT_PENDING_NOTE_PREFIX = "Payout pending:"


async def get_transaction_by_payment_intent(payment_intent_id: str) -> dict[str, Any] | None:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT {cols}
              FROM gallery_payment_transactions
             WHERE stripe_payment_intent_id = %s
             LIMIT 1
            """.format(cols=TRANSACTION_COLUMNS),
            (payment_intent_id,),
        )
        row = await cur.fetchone()
    return dict(row) if row else None


async def insert_transaction(
    *,
    gallery_id: str,
    photographer_id: str | None,
    client_id: str | None,
    stripe_payment_intent_id: str,
    payment_option_id: str | None,
    shoot_fee_cents: int,
    storage_fee_cents: int,
    total_amount_cents: int,
    commission_cents: int,
    photovault_revenue_cents: int,
    photographer_payout_cents: int,
    stripe_fee_cents: int,
    currency: str,
    status: str = "completed",
    notes: str | None = None,
) -> dict[str, Any]:
    async with get_conn() as cur:
        await cur.execute(
            """
            INSERT INTO gallery_payment_transactions (
                gallery_id,
                photographer_id,
                client_id,
                stripe_payment_intent_id,
                payment_option_id,
                shoot_fee_cents,
                storage_fee_cents,
                total_amount_cents,
                commission_cents,
                photovault_revenue_cents,
                photographer_payout_cents,
                stripe_fee_cents,
                currency,
                status,
                notes,
                created_at,
                updated_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, now(), now())
            RETURNING {cols}
            """.format(cols=TRANSACTION_COLUMNS),
            (
                gallery_id,
                photographer_id,
                client_id,
                stripe_payment_intent_id,
                payment_option_id,
                shoot_fee_cents,
                storage_fee_cents,
                total_amount_cents,
                commission_cents,
                photovault_revenue_cents,
                photographer_payout_cents,
                stripe_fee_cents,
                currency,
                status,
                notes,
            ),
        )
        row = await cur.fetchone()
    return dict(row)


async def update_transaction(transaction_id: str, fields: dict[str, Any]) -> dict[str, Any] | None:
    if not fields:
        return None

    assignments = assignment_clause(fields, _UPDATABLE_COLUMNS)
    params = {**fields, "transaction_id": transaction_id}
    async with get_conn() as cur:
        await cur.execute(
            f"""
            UPDATE gallery_payment_transactions
               SET {assignments},
                   updated_at = now()
             WHERE id = %(transaction_id)s
            RETURNING {TRANSACTION_COLUMNS}
            """,
            params,
        )
        row = await cur.fetchone()
    return dict(row) if row else None


async def list_transactions_awaiting_transfer(limit: int = 50) -> list[dict[str, Any]]:
    """Transactions owed a payout whose transfer never went through."""
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT {cols}
              FROM gallery_payment_transactions
             WHERE stripe_transfer_id IS NULL
               AND photographer_payout_cents > 0
               AND (notes LIKE %s OR notes LIKE %s)
             ORDER BY created_at ASC
             LIMIT %s
            """.format(cols=TRANSACTION_COLUMNS),
            (
                f"{TRANSFER_FAILED_NOTE_PREFIX}%",
                f"{PAYOUT_PENDING_NOTE_PREFIX}%",
                limit,
            ),
        )
        rows = await cur.fetchall()
    return [dict(row) for row in rows]


__all__ = [
    "TRANSFER_FAILED_NOTE_PREFIX",
    "PAYOUT_PENDING_NOTE_PREFIX",
    "get_transaction_by_payment_intent",
    "insert_transaction",
    "update_transaction",
    "list_transactions_awaiting_transfer",
]
