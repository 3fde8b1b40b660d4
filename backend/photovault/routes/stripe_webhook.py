from __future__ import annotations

import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from ..services import stripe_webhooks

router = APIRouter(tags=["stripe-webhooks"])
logger = logging.getLogger(__name__)


@router.post("/api/stripe/webhook", status_code=status.HTTP_200_OK)
@router.post("/api/webhooks/stripe", status_code=status.HTTP_200_OK)
async def stripe_webhook(request: Request):
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    try:
        event = stripe_webhooks.verify_event(payload, signature)
    except stripe_webhooks.WebhookError as exc:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    try:
        await stripe_webhooks.process_event(event)
    except Exception as exc:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Webhook processing failed", "message": str(exc)},
        )
    return {"received": True}
