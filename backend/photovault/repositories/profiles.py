from __future__ import annotations

import logging
from typing import Any

from ..db import assignment_clause, get_conn, relation_exists

logger = logging.getLogger(__name__)

PROFILE_COLUMNS = """
    id, payment_status, last_payment_date,
    subscription_start_date, subscription_end_date,
    stripe_customer_id, stripe_connect_account_id,
    updated_at
"""

_UPDATABLE_COLUMNS = {
    "payment_status",
    "last_payment_date",
    "subscription_start_date",
    "subscription_end_date",
    "stripe_customer_id",
}

_users_table_available: bool | None = None


async def get_user_profile(profile_id: str) -> dict[str, Any] | None:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT {cols}
              FROM user_profiles
             WHERE id = %s
             LIMIT 1
            """.format(cols=PROFILE_COLUMNS),
            (profile_id,),
        )
        row = await cur.fetchone()
    return dict(row) if row else None


async def get_connect_account_id(profile_id: str) -> str | None:
    profile = await get_user_profile(profile_id)
    account_id = (profile or {}).get("stripe_connect_account_id")
    return account_id or None


async def update_user_profile(profile_id: str, fields: dict[str, Any]) -> dict[str, Any] | None:
    if not fields:
        return await get_user_profile(profile_id)

    assignments = assignment_clause(fields, _UPDATABLE_COLUMNS)
    params = {**fields, "profile_id": profile_id}
    async with get_conn() as cur:
        await cur.execute(
            f"""
            UPDATE user_profiles
               SET {assignments},
                   updated_at = now()
             WHERE id = %(profile_id)s
            RETURNING {PROFILE_COLUMNS}
            """,
            params,
        )
        row = await cur.fetchone()
    if row is None:
        logger.info("No user profile %s to update", profile_id)
    return dict(row) if row else None


async def users_table_available() -> bool:
    """Whether the legacy ``users`` table exists; resolved once per process."""
    global _users_table_available
    if _users_table_available is None:
        _users_table_available = await relation_exists("users")
    return _users_table_available


async def set_user_customer_id(user_id: str, customer_id: str) -> None:
    async with get_conn() as cur:
        await cur.execute(
            """
            UPDATE users
               SET stripe_customer_id = %s
             WHERE id = %s
            """,
            (customer_id, user_id),
        )


__all__ = [
    "get_user_profile",
    "get_connect_account_id",
    "update_user_profile",
    "users_table_available",
    "set_user_customer_id",
]
