from __future__ import annotations

from prometheus_client import Counter

stripe_webhook_events_total = Counter(
    "stripe_webhook_events_total",
    "Stripe webhook events handled, by event type and outcome.",
    ["event_type", "outcome"],
)
stripe_webhook_rejections_total = Counter(
    "stripe_webhook_rejections_total",
    "Stripe webhook deliveries rejected before dispatch.",
    ["reason"],
)
stripe_transfer_failures_total = Counter(
    "stripe_transfer_failures_total",
    "Photographer payout transfers that Stripe refused.",
)
