from .webhooks import (
    ClientSubscription,
    GalleryPaymentMetadata,
    HandlerOutcome,
    HandlerResult,
    PlatformSubscription,
    StripeEvent,
    StripeEventType,
    SubscriptionKind,
    subscription_kind_from_metadata,
)

__all__ = [
    "ClientSubscription",
    "GalleryPaymentMetadata",
    "HandlerOutcome",
    "HandlerResult",
    "PlatformSubscription",
    "StripeEvent",
    "StripeEventType",
    "SubscriptionKind",
    "subscription_kind_from_metadata",
]
