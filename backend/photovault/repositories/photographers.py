from __future__ import annotations

from typing import Any

from ..db import assignment_clause, get_conn

PHOTOGRAPHER_COLUMNS = """
    id, platform_subscription_id, platform_subscription_status,
    platform_subscription_start, platform_subscription_end,
    platform_subscription_trial_end, stripe_connect_account_id,
    stripe_connect_status, can_receive_payouts, bank_account_verified,
    updated_at
"""

_UPDATABLE_COLUMNS = {
    "platform_subscription_id",
    "platform_subscription_status",
    "platform_subscription_start",
    "platform_subscription_end",
    "platform_subscription_trial_end",
    "stripe_connect_status",
    "can_receive_payouts",
    "bank_account_verified",
}


async def get_photographer(photographer_id: str) -> dict[str, Any] | None:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT {cols}
              FROM photographers
             WHERE id = %s
             LIMIT 1
            """.format(cols=PHOTOGRAPHER_COLUMNS),
            (photographer_id,),
        )
        row = await cur.fetchone()
    return dict(row) if row else None


async def get_photographer_by_account(account_id: str) -> dict[str, Any] | None:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT {cols}
              FROM photographers
             WHERE stripe_connect_account_id = %s
             LIMIT 1
            """.format(cols=PHOTOGRAPHER_COLUMNS),
            (account_id,),
        )
        row = await cur.fetchone()
    return dict(row) if row else None


async def update_photographer(
    photographer_id: str,
    fields: dict[str, Any],
) -> dict[str, Any] | None:
    if not fields:
        return await get_photographer(photographer_id)

    assignments = assignment_clause(fields, _UPDATABLE_COLUMNS)
    params = {**fields, "photographer_id": photographer_id}
    async with get_conn() as cur:
        await cur.execute(
            f"""
            UPDATE photographers
               SET {assignments},
                   updated_at = now()
             WHERE id = %(photographer_id)s
            RETURNING {PHOTOGRAPHER_COLUMNS}
            """,
            params,
        )
        row = await cur.fetchone()
    return dict(row) if row else None


__all__ = [
    "get_photographer",
    "get_photographer_by_account",
    "update_photographer",
]
