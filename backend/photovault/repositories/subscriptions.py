from __future__ import annotations

from datetime import datetime
from typing import Any

from ..db import assignment_clause, get_conn

SubscriptionRow = dict[str, Any]

SUBSCRIPTION_COLUMNS = """
    id, client_id, photographer_id, gallery_id,
    stripe_subscription_id, stripe_customer_id, status,
    current_period_start, current_period_end, trial_end,
    created_at, updated_at
"""

_UPDATABLE_COLUMNS = {
    "status",
    "stripe_customer_id",
    "current_period_start",
    "current_period_end",
    "trial_end",
}


async def get_subscription_by_stripe_id(stripe_subscription_id: str) -> SubscriptionRow | None:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT {cols}
              FROM subscriptions
             WHERE stripe_subscription_id = %s
             LIMIT 1
            """.format(cols=SUBSCRIPTION_COLUMNS),
            (stripe_subscription_id,),
        )
        row = await cur.fetchone()
    return dict(row) if row else None


async def insert_subscription(
    *,
    client_id: str,
    gallery_id: str,
    stripe_subscription_id: str,
    photographer_id: str | None = None,
    stripe_customer_id: str | None = None,
    status: str | None = None,
    current_period_start: datetime | None = None,
    current_period_end: datetime | None = None,
    trial_end: datetime | None = None,
) -> SubscriptionRow:
    """
    Insert the row for a Stripe subscription. A concurrent delivery that
    already created the row turns this into an update of the mirrored fields.
    """
    async with get_conn() as cur:
        await cur.execute(
            """
            INSERT INTO subscriptions (
                client_id,
                photographer_id,
                gallery_id,
                stripe_subscription_id,
                stripe_customer_id,
                status,
                current_period_start,
                current_period_end,
                trial_end,
                created_at,
                updated_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, now(), now())
            ON CONFLICT (stripe_subscription_id) DO UPDATE
               SET status = EXCLUDED.status,
                   stripe_customer_id = COALESCE(EXCLUDED.stripe_customer_id, subscriptions.stripe_customer_id),
                   current_period_start = EXCLUDED.current_period_start,
                   current_period_end = EXCLUDED.current_period_end,
                   trial_end = EXCLUDED.trial_end,
                   updated_at = now()
            RETURNING {cols}
            """.format(cols=SUBSCRIPTION_COLUMNS),
            (
                client_id,
                photographer_id,
                gallery_id,
                stripe_subscription_id,
                stripe_customer_id,
                status,
                current_period_start,
                current_period_end,
                trial_end,
            ),
        )
        row = await cur.fetchone()
    return dict(row)


async def update_subscription(
    stripe_subscription_id: str,
    fields: dict[str, Any],
) -> SubscriptionRow | None:
    if not fields:
        return await get_subscription_by_stripe_id(stripe_subscription_id)

    assignments = assignment_clause(fields, _UPDATABLE_COLUMNS)
    params = {**fields, "stripe_subscription_id": stripe_subscription_id}
    async with get_conn() as cur:
        await cur.execute(
            f"""
            UPDATE subscriptions
               SET {assignments},
                   updated_at = now()
             WHERE stripe_subscription_id = %(stripe_subscription_id)s
            RETURNING {SUBSCRIPTION_COLUMNS}
            """,
            params,
        )
        row = await cur.fetchone()
    return dict(row) if row else None


__all__ = [
    "get_subscription_by_stripe_id",
    "insert_subscription",
    "update_subscription",
]
