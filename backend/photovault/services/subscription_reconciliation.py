"""
Mirror Stripe subscription state into PhotoVault.

Two kinds of subscription flow through the same Stripe events: photographers
paying for platform access and clients paying for gallery storage. The kind
is decided once per event from the subscription metadata and each handler
applies the matching write path.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Mapping

from .. import repositories
from ..schemas import (
    ClientSubscription,
    HandlerResult,
    PlatformSubscription,
    SubscriptionKind,
    subscription_kind_from_metadata,
)
from . import stripe_gateway

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = frozenset({"active", "trialing"})


# ---------------------------------------------------------------------------
# Payload helpers


def _to_datetime(value: Any) -> datetime | None:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _stripe_id(value: Any) -> str | None:
    """Stripe fields hold either an id or the expanded object."""
    if isinstance(value, str) and value:
        return value
    if isinstance(value, Mapping):
        object_id = value.get("id")
        return object_id if isinstance(object_id, str) and object_id else None
    return None


def normalize_status(status: Any) -> str | None:
    if not isinstance(status, str) or not status:
        return None
    return "cancelled" if status == "canceled" else status


def _period_bounds(subscription: Mapping[str, Any]) -> tuple[datetime | None, datetime | None]:
    start = subscription.get("current_period_start")
    end = subscription.get("current_period_end")
    if start is None or end is None:
        items = subscription.get("items")
        data = items.get("data") if isinstance(items, Mapping) else None
        if isinstance(data, list) and data and isinstance(data[0], Mapping):
            start = start if start is not None else data[0].get("current_period_start")
            end = end if end is not None else data[0].get("current_period_end")
    return _to_datetime(start), _to_datetime(end)


def _mirrored_fields(subscription: Mapping[str, Any]) -> dict[str, Any]:
    start, end = _period_bounds(subscription)
    fields: dict[str, Any] = {
        "status": normalize_status(subscription.get("status")),
        "trial_end": _to_datetime(subscription.get("trial_end")),
    }
    if start is not None:
        fields["current_period_start"] = start
    if end is not None:
        fields["current_period_end"] = end
    return fields


def _invoice_subscription_id(invoice: Mapping[str, Any]) -> str | None:
    subscription_id = _stripe_id(invoice.get("subscription"))
    if subscription_id:
        return subscription_id
    parent = invoice.get("parent")
    details = parent.get("subscription_details") if isinstance(parent, Mapping) else None
    if isinstance(details, Mapping):
        return _stripe_id(details.get("subscription"))
    return None


def _invoice_subscription_metadata(invoice: Mapping[str, Any]) -> Mapping[str, Any] | None:
    details = invoice.get("subscription_details")
    if not isinstance(details, Mapping):
        parent = invoice.get("parent")
        details = parent.get("subscription_details") if isinstance(parent, Mapping) else None
    if isinstance(details, Mapping) and isinstance(details.get("metadata"), Mapping):
        return details["metadata"]
    return None


def _missing_owner(subscription_id: Any) -> HandlerResult:
    logger.info("Platform subscription %s has no photographer_id", subscription_id)
    return HandlerResult.skipped(f"Platform subscription {subscription_id} missing photographer_id")


# ---------------------------------------------------------------------------
# Shared write paths


async def _upsert_client_subscription(
    subscription: Mapping[str, Any],
    kind: ClientSubscription,
) -> dict[str, Any] | None:
    subscription_id = subscription["id"]
    fields = _mirrored_fields(subscription)
    existing = await repositories.get_subscription_by_stripe_id(subscription_id)
    if existing:
        return await repositories.update_subscription(subscription_id, fields)

    if not kind.can_insert:
        logger.info(
            "Subscription %s is new but metadata lacks client_id/gallery_id; not recorded",
            subscription_id,
        )
        return None

    return await repositories.insert_subscription(
        client_id=kind.client_id,
        gallery_id=kind.gallery_id,
        photographer_id=kind.photographer_id,
        stripe_subscription_id=subscription_id,
        stripe_customer_id=_stripe_id(subscription.get("customer")),
        **fields,
    )


async def _sync_platform_subscription(
    subscription: Mapping[str, Any],
    kind: PlatformSubscription,
) -> HandlerResult:
    status = normalize_status(subscription.get("status"))
    start, end = _period_bounds(subscription)
    photographer_fields: dict[str, Any] = {
        "platform_subscription_id": subscription.get("id"),
        "platform_subscription_status": status,
        "platform_subscription_trial_end": _to_datetime(subscription.get("trial_end")),
    }
    if start is not None:
        photographer_fields["platform_subscription_start"] = start
    if end is not None:
        photographer_fields["platform_subscription_end"] = end
    await repositories.update_photographer(kind.photographer_id, photographer_fields)

    if status in ACTIVE_STATUSES:
        profile_fields: dict[str, Any] = {"payment_status": "active"}
        if start is not None:
            profile_fields["subscription_start_date"] = start
        if end is not None:
            profile_fields["subscription_end_date"] = end
        await repositories.update_user_profile(kind.photographer_id, profile_fields)

    return HandlerResult.applied(
        f"Platform subscription {subscription.get('id')} {status} for photographer {kind.photographer_id}"
    )


async def _sync_client_subscription(
    subscription: Mapping[str, Any],
    kind: ClientSubscription,
) -> HandlerResult:
    subscription_id = subscription["id"]
    row = await _upsert_client_subscription(subscription, kind)
    if row is None:
        return HandlerResult.skipped(
            f"Subscription {subscription_id} unknown and metadata lacks client_id/gallery_id"
        )

    status = row.get("status")
    client_id = row.get("client_id")
    if status in ACTIVE_STATUSES and client_id:
        _, end = _period_bounds(subscription)
        profile_fields: dict[str, Any] = {"payment_status": "active"}
        if end is not None:
            profile_fields["subscription_end_date"] = end
        await repositories.update_user_profile(str(client_id), profile_fields)

    return HandlerResult.applied(f"Subscription {subscription_id} {status}")


# ---------------------------------------------------------------------------
# Event handlers


async def handle_checkout_session_completed(session: Mapping[str, Any]) -> HandlerResult:
    session_id = session.get("id")
    kind = subscription_kind_from_metadata(session.get("metadata"))
    if not isinstance(kind, ClientSubscription) or not kind.can_insert:
        logger.info("Checkout session %s missing client/gallery metadata", session_id)
        return HandlerResult.skipped(f"Checkout session {session_id} missing client/gallery metadata")

    subscription_id = _stripe_id(session.get("subscription"))
    if not subscription_id:
        logger.info("Checkout session %s has no subscription", session_id)
        return HandlerResult.skipped(f"Checkout session {session_id} has no subscription")

    subscription = await stripe_gateway.retrieve_subscription(subscription_id)
    await _upsert_client_subscription(subscription, kind)

    start, end = _period_bounds(subscription)
    profile_fields: dict[str, Any] = {
        "payment_status": "active",
        "last_payment_date": _now(),
        "subscription_start_date": start,
        "subscription_end_date": end,
    }
    customer_id = _stripe_id(session.get("customer"))
    if customer_id:
        profile_fields["stripe_customer_id"] = customer_id
    await repositories.update_user_profile(kind.client_id, profile_fields)

    if customer_id and await repositories.users_table_available():
        await repositories.set_user_customer_id(kind.client_id, customer_id)

    logger.info("Checkout completed for client %s, gallery %s", kind.client_id, kind.gallery_id)
    return HandlerResult.applied(
        f"Checkout completed for client {kind.client_id}, gallery {kind.gallery_id}"
    )


async def handle_subscription_updated(subscription: Mapping[str, Any]) -> HandlerResult:
    """Handles both ``customer.subscription.created`` and ``.updated``."""
    kind: SubscriptionKind | None = subscription_kind_from_metadata(subscription.get("metadata"))
    if kind is None:
        return _missing_owner(subscription.get("id"))
    if isinstance(kind, PlatformSubscription):
        return await _sync_platform_subscription(subscription, kind)
    return await _sync_client_subscription(subscription, kind)


async def handle_subscription_deleted(subscription: Mapping[str, Any]) -> HandlerResult:
    subscription_id = subscription.get("id")
    kind = subscription_kind_from_metadata(subscription.get("metadata"))
    if kind is None:
        return _missing_owner(subscription_id)

    if isinstance(kind, PlatformSubscription):
        await repositories.update_photographer(
            kind.photographer_id, {"platform_subscription_status": "cancelled"}
        )
        await repositories.update_user_profile(kind.photographer_id, {"payment_status": "inactive"})
        return HandlerResult.applied(f"Platform subscription {subscription_id} cancelled")

    row = await repositories.update_subscription(str(subscription_id), {"status": "cancelled"})
    if row is None:
        logger.info("Deleted subscription %s has no local row", subscription_id)
        return HandlerResult.skipped(f"Subscription {subscription_id} not found")
    if row.get("client_id"):
        await repositories.update_user_profile(str(row["client_id"]), {"payment_status": "inactive"})
    return HandlerResult.applied(f"Subscription {subscription_id} cancelled")


async def handle_invoice_paid(invoice: Mapping[str, Any]) -> HandlerResult:
    invoice_id = invoice.get("id")
    subscription_id = _invoice_subscription_id(invoice)
    if not subscription_id:
        return HandlerResult.skipped(f"Invoice {invoice_id} is not for a subscription")

    subscription = await stripe_gateway.retrieve_subscription(subscription_id)
    kind = subscription_kind_from_metadata(subscription.get("metadata"))
    if kind is None:
        return _missing_owner(subscription_id)

    start, end = _period_bounds(subscription)
    paid_at = _now()

    if isinstance(kind, PlatformSubscription):
        stripe_status = normalize_status(subscription.get("status"))
        photographer_fields: dict[str, Any] = {
            "platform_subscription_status": "trialing" if stripe_status == "trialing" else "active",
        }
        if start is not None:
            photographer_fields["platform_subscription_start"] = start
        if end is not None:
            photographer_fields["platform_subscription_end"] = end
        await repositories.update_photographer(kind.photographer_id, photographer_fields)
        await repositories.update_user_profile(
            kind.photographer_id,
            {
                "payment_status": "active",
                "last_payment_date": paid_at,
                "subscription_end_date": end,
            },
        )
        return HandlerResult.applied(f"Invoice {invoice_id} paid for platform subscription")

    row = await _upsert_client_subscription(subscription, kind)
    if row is None:
        return HandlerResult.skipped(f"Invoice {invoice_id} references unknown subscription {subscription_id}")
    if row.get("client_id"):
        await repositories.update_user_profile(
            str(row["client_id"]),
            {
                "payment_status": "active",
                "last_payment_date": paid_at,
                "subscription_end_date": end,
            },
        )
    return HandlerResult.applied(f"Invoice {invoice_id} paid")


async def handle_invoice_payment_failed(invoice: Mapping[str, Any]) -> HandlerResult:
    invoice_id = invoice.get("id")
    subscription_id = _invoice_subscription_id(invoice)
    if not subscription_id:
        return HandlerResult.skipped(f"Invoice {invoice_id} is not for a subscription")

    metadata = _invoice_subscription_metadata(invoice)
    if metadata is None:
        subscription = await stripe_gateway.retrieve_subscription(subscription_id)
        metadata = subscription.get("metadata")
    kind = subscription_kind_from_metadata(metadata)
    if kind is None:
        return _missing_owner(subscription_id)

    if isinstance(kind, PlatformSubscription):
        await repositories.update_photographer(
            kind.photographer_id, {"platform_subscription_status": "past_due"}
        )
        await repositories.update_user_profile(kind.photographer_id, {"payment_status": "grace_period"})
        return HandlerResult.applied(f"Invoice {invoice_id} failed for platform subscription")

    row = await repositories.update_subscription(subscription_id, {"status": "past_due"})
    if row is None:
        logger.info("Failed invoice %s references unknown subscription %s", invoice_id, subscription_id)
        return HandlerResult.skipped(f"Invoice {invoice_id} references unknown subscription {subscription_id}")
    if row.get("client_id"):
        await repositories.update_user_profile(str(row["client_id"]), {"payment_status": "grace_period"})
    return HandlerResult.applied(f"Invoice {invoice_id} payment failed")
