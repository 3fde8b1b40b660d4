from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable, Mapping

import sentry_sdk
import stripe
from pydantic import ValidationError

from .. import metrics, repositories
from ..config import settings
from ..logging_context import set_event_context
from ..schemas import HandlerResult, StripeEvent, StripeEventType
from . import connect_accounts, gallery_payments, subscription_reconciliation

logger = logging.getLogger(__name__)

Handler = Callable[[Mapping[str, Any]], Awaitable[HandlerResult]]


class WebhookError(Exception):
    status_code = 400

    def __init__(self, detail: str, status_code: int | None = None) -> None:
        super().__init__(detail)
        if status_code is not None:
            self.status_code = status_code
        self.detail = detail


class WebhookConfigError(WebhookError):
    def __init__(self, detail: str) -> None:
        super().__init__(detail, status_code=500)


class WebhookSignatureError(WebhookError):
    def __init__(self, detail: str) -> None:
        super().__init__(detail, status_code=400)


_HANDLERS: dict[StripeEventType, Handler] = {
    StripeEventType.checkout_session_completed: subscription_reconciliation.handle_checkout_session_completed,
    StripeEventType.subscription_created: subscription_reconciliation.handle_subscription_updated,
    StripeEventType.subscription_updated: subscription_reconciliation.handle_subscription_updated,
    StripeEventType.subscription_deleted: subscription_reconciliation.handle_subscription_deleted,
    StripeEventType.invoice_paid: subscription_reconciliation.handle_invoice_paid,
    StripeEventType.invoice_payment_failed: subscription_reconciliation.handle_invoice_payment_failed,
    StripeEventType.payment_intent_succeeded: gallery_payments.handle_payment_intent_succeeded,
    StripeEventType.account_updated: connect_accounts.handle_account_updated,
}


def _reject(reason: str, detail: str) -> WebhookSignatureError:
    metrics.stripe_webhook_rejections_total.labels(reason=reason).inc()
    if sentry_sdk.get_client().is_active():
        sentry_sdk.capture_message(f"Stripe webhook rejected: {detail}", level="warning")
    return WebhookSignatureError(detail)


def verify_event(payload: bytes, signature: str | None) -> StripeEvent:
    """
    Authenticate a webhook delivery and decode its envelope.

    The signature header is checked before the secret so an unsigned request
    never reveals whether the service is configured.
    """
    if not signature:
        raise _reject("missing_signature", "Missing signature")

    secret = settings.stripe_webhook_secret
    if not secret:
        metrics.stripe_webhook_rejections_total.labels(reason="missing_secret").inc()
        logger.error("STRIPE_WEBHOOK_SECRET is not configured")
        raise WebhookConfigError("Webhook secret not configured")

    try:
        stripe.Webhook.construct_event(
            payload=payload.decode("utf-8"),
            sig_header=signature,
            secret=secret,
        )
    except stripe.SignatureVerificationError as exc:
        logger.warning("Invalid Stripe signature: %s", exc)
        raise _reject("invalid_signature", "Invalid signature") from exc
    except ValueError as exc:
        logger.warning("Invalid Stripe payload: %s", exc)
        raise _reject("invalid_payload", "Invalid payload") from exc

    try:
        return StripeEvent.model_validate_json(payload)
    except ValidationError as exc:
        logger.warning("Stripe event envelope did not validate: %s", exc)
        raise _reject("invalid_payload", "Invalid payload") from exc


async def _record_failure(event: StripeEvent, started: float, exc: Exception) -> None:
    try:
        await repositories.insert_webhook_log(
            event_id=event.id,
            event_type=event.type,
            status="failed",
            processing_time_ms=_elapsed_ms(started),
            error_message=str(exc),
        )
    except Exception:  # pragma: no cover - logging must not mask the handler error
        logger.exception("Failed to write webhook log for %s", event.id)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


async def process_event(event: StripeEvent) -> HandlerResult:
    set_event_context(event.id, event.type)
    event_type = StripeEventType.parse(event.type)
    if event_type is None:
        logger.info("Ignoring unhandled Stripe event type %s", event.type)
        metrics.stripe_webhook_events_total.labels(event_type="unhandled", outcome="skipped").inc()
        return HandlerResult.skipped(f"Unhandled event type {event.type}")

    if await repositories.is_event_processed(event.id):
        logger.info("Stripe event %s already processed", event.id)
        metrics.stripe_webhook_events_total.labels(event_type=event.type, outcome="duplicate").inc()
        return HandlerResult.skipped(f"Event {event.id} already processed")

    started = time.perf_counter()
    handler = _HANDLERS[event_type]
    try:
        result = await handler(event.data_object)
    except Exception as exc:
        logger.exception("Stripe event %s (%s) failed", event.id, event.type)
        metrics.stripe_webhook_events_total.labels(event_type=event.type, outcome="failed").inc()
        with sentry_sdk.new_scope() as scope:
            scope.set_tag("stripe.event_type", event.type)
            scope.set_tag("stripe.event_id", event.id)
            sentry_sdk.capture_exception(exc)
        await _record_failure(event, started, exc)
        raise

    await repositories.mark_event_processed(event.id, event.type)
    await repositories.insert_webhook_log(
        event_id=event.id,
        event_type=event.type,
        status="success" if result.was_applied else "skipped",
        processing_time_ms=_elapsed_ms(started),
        result_message=result.message,
    )
    metrics.stripe_webhook_events_total.labels(
        event_type=event.type, outcome=result.outcome.value
    ).inc()
    logger.info("Stripe event %s %s: %s", event.id, result.outcome.value, result.message)
    return result


__all__ = [
    "WebhookConfigError",
    "WebhookError",
    "WebhookSignatureError",
    "process_event",
    "verify_event",
]
