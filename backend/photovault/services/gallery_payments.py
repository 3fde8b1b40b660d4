from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Mapping

from .. import repositories
from ..config import settings
from ..schemas import GalleryPaymentMetadata, HandlerResult
from . import payouts
from .commission import calculate_commission, estimate_stripe_fee

logger = logging.getLogger(__name__)


def _payout_unattempted(transaction: Mapping[str, Any]) -> bool:
    """A ledger row whose payout step never ran: owed money, no transfer, no note."""
    return (
        int(transaction.get("photographer_payout_cents") or 0) > 0
        and not transaction.get("stripe_transfer_id")
        and not transaction.get("notes")
    )


async def _enable_download_tracking(gallery_id: str) -> None:
    gallery = await repositories.get_gallery(gallery_id)
    if (gallery or {}).get("download_tracking_enabled"):
        return
    photo_count = int((gallery or {}).get("photo_count") or 0)
    await repositories.update_gallery(
        gallery_id,
        {
            "download_tracking_enabled": True,
            "total_photos_to_download": photo_count,
            "photos_downloaded": 0,
        },
    )


async def _resume_recorded_payment(
    transaction: Mapping[str, Any],
    metadata: GalleryPaymentMetadata,
) -> HandlerResult:
    # A redelivery after a failure past the insert finishes the remaining steps.
    payment_intent_id = transaction.get("stripe_payment_intent_id")
    resumed = False
    if _payout_unattempted(transaction):
        logger.info(
            "Resuming payout for gallery payment %s (transaction %s)",
            payment_intent_id,
            transaction.get("id"),
        )
        await payouts.pay_out_transaction(transaction)
        resumed = True

    if metadata.is_shoot_only and metadata.gallery_id:
        await _enable_download_tracking(metadata.gallery_id)

    if resumed:
        return HandlerResult.applied(f"Gallery payment {payment_intent_id} payout resumed")
    logger.info(
        "Gallery payment %s already recorded as transaction %s",
        payment_intent_id,
        transaction.get("id"),
    )
    return HandlerResult.skipped(f"Gallery payment {payment_intent_id} already recorded")


async def handle_payment_intent_succeeded(payment_intent: Mapping[str, Any]) -> HandlerResult:
    metadata = GalleryPaymentMetadata.model_validate(payment_intent.get("metadata") or {})
    payment_intent_id = payment_intent.get("id")
    if not metadata.is_gallery_payment:
        return HandlerResult.skipped(f"Payment intent {payment_intent_id} is not a gallery payment")
    if not metadata.gallery_id or not isinstance(payment_intent_id, str):
        logger.info("Gallery payment %s missing gallery id", payment_intent_id)
        return HandlerResult.skipped(f"Gallery payment {payment_intent_id} missing gallery id")

    existing = await repositories.get_transaction_by_payment_intent(payment_intent_id)
    if existing:
        return await _resume_recorded_payment(existing, metadata)

    gallery_id = metadata.gallery_id
    await repositories.update_gallery(
        gallery_id,
        {
            "payment_status": "paid",
            "paid_at": datetime.now(timezone.utc),
            "stripe_payment_intent_id": payment_intent_id,
        },
    )

    total_cents = int(payment_intent.get("amount") or 0) or metadata.total_amount_cents
    transaction = await repositories.insert_transaction(
        gallery_id=gallery_id,
        photographer_id=metadata.photographer_id,
        client_id=metadata.client_id,
        stripe_payment_intent_id=payment_intent_id,
        payment_option_id=metadata.payment_option_id,
        shoot_fee_cents=metadata.shoot_fee_cents,
        storage_fee_cents=metadata.storage_fee_cents,
        total_amount_cents=total_cents,
        commission_cents=calculate_commission(metadata.storage_fee_cents),
        photovault_revenue_cents=metadata.photovault_revenue_cents,
        photographer_payout_cents=metadata.photographer_payout_cents,
        stripe_fee_cents=estimate_stripe_fee(total_cents),
        currency=(payment_intent.get("currency") or settings.stripe_currency).lower(),
    )

    if metadata.photographer_payout_cents > 0:
        await payouts.pay_out_transaction(transaction)

    if metadata.is_shoot_only:
        await _enable_download_tracking(gallery_id)

    logger.info("Gallery %s paid via %s", gallery_id, payment_intent_id)
    return HandlerResult.applied(f"Gallery {gallery_id} paid")
