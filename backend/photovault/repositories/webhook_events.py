from __future__ import annotations

from psycopg import errors

from ..db import get_conn


async def is_event_processed(event_id: str) -> bool:
    async with get_conn() as cur:
        try:
            await cur.execute(
                """
                SELECT 1
                  FROM processed_webhook_events
                 WHERE stripe_event_id = %s
                 LIMIT 1
                """,
                (event_id,),
            )
        except errors.UndefinedTable:
            return False
        row = await cur.fetchone()
    return row is not None


async def mark_event_processed(event_id: str, event_type: str) -> None:
    async with get_conn() as cur:
        try:
            await cur.execute(
                """
                INSERT INTO processed_webhook_events (stripe_event_id, event_type, processed_at)
                VALUES (%s, %s, now())
                ON CONFLICT (stripe_event_id) DO NOTHING
                """,
                (event_id, event_type),
            )
        except errors.UndefinedTable:
            return


async def insert_webhook_log(
    *,
    event_id: str | None,
    event_type: str | None,
    status: str,
    processing_time_ms: int,
    result_message: str | None = None,
    error_message: str | None = None,
) -> None:
    async with get_conn() as cur:
        try:
            await cur.execute(
                """
                INSERT INTO webhook_logs (
                    event_id,
                    event_type,
                    status,
                    processing_time_ms,
                    result_message,
                    error_message,
                    processed_at
                )
                VALUES (%s, %s, %s, %s, %s, %s, now())
                """,
                (
                    event_id,
                    event_type,
                    status,
                    processing_time_ms,
                    result_message,
                    error_message,
                ),
            )
        except errors.UndefinedTable:
            return


__all__ = ["is_event_processed", "mark_event_processed", "insert_webhook_log"]
