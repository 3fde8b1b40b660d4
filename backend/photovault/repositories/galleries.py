from __future__ import annotations

from typing import Any

from ..db import assignment_clause, get_conn

GALLERY_COLUMNS = """
    id, photographer_id, client_id, payment_status, paid_at,
    stripe_payment_intent_id, photo_count, download_tracking_enabled,
    total_photos_to_download, photos_downloaded, updated_at
"""

_UPDATABLE_COLUMNS = {
    "payment_status",
    "paid_at",
    "stripe_payment_intent_id",
    "download_tracking_enabled",
    "total_photos_to_download",
    "photos_downloaded",
}


async def get_gallery(gallery_id: str) -> dict[str, Any] | None:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT {cols}
              FROM photo_galleries
             WHERE id = %s
             LIMIT 1
            """.format(cols=GALLERY_COLUMNS),
            (gallery_id,),
        )
        row = await cur.fetchone()
    return dict(row) if row else None


async def update_gallery(gallery_id: str, fields: dict[str, Any]) -> dict[str, Any] | None:
    if not fields:
        return await get_gallery(gallery_id)

    assignments = assignment_clause(fields, _UPDATABLE_COLUMNS)
    params = {**fields, "gallery_id": gallery_id}
    async with get_conn() as cur:
        await cur.execute(
            f"""
            UPDATE photo_galleries
               SET {assignments},
                   updated_at = now()
             WHERE id = %(gallery_id)s
            RETURNING {GALLERY_COLUMNS}
            """,
            params,
        )
        row = await cur.fetchone()
    return dict(row) if row else None


__all__ = ["get_gallery", "update_gallery"]
