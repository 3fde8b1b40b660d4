from __future__ import annotations

from typing import Any, Mapping

import stripe
from starlette.concurrency import run_in_threadpool

from ..config import settings


class StripeGatewayError(RuntimeError):
    """Raised when the Stripe client cannot be used (missing configuration)."""


def _configure() -> None:
    if not settings.stripe_secret_key:
        raise StripeGatewayError("Stripe secret key is missing (set STRIPE_SECRET_KEY)")
    stripe.api_key = settings.stripe_secret_key


def _to_plain(obj: Any) -> dict[str, Any]:
    for attr in ("to_dict_recursive", "to_dict"):
        converter = getattr(obj, attr, None)
        if callable(converter):
            return converter()
    if isinstance(obj, Mapping):
        return dict(obj)
    raise StripeGatewayError(f"Unexpected Stripe response type: {type(obj).__name__}")


async def retrieve_subscription(subscription_id: str) -> dict[str, Any]:
    _configure()
    subscription = await run_in_threadpool(lambda: stripe.Subscription.retrieve(subscription_id))
    return _to_plain(subscription)


async def create_transfer(
    *,
    amount_cents: int,
    destination: str,
    metadata: dict[str, str],
    currency: str | None = None,
    transfer_group: str | None = None,
    idempotency_key: str | None = None,
) -> dict[str, Any]:
    _configure()

    def _create() -> Any:
        params: dict[str, Any] = {
            "amount": amount_cents,
            "currency": currency or settings.stripe_currency,
            "destination": destination,
            "metadata": metadata,
            "idempotency_key": idempotency_key,
        }
        if transfer_group:
            params["transfer_group"] = transfer_group
        return stripe.Transfer.create(**params)

    transfer = await run_in_threadpool(_create)
    return _to_plain(transfer)


async def find_transfer(transfer_group: str) -> dict[str, Any] | None:
    """Most recent transfer Stripe holds for ``transfer_group``, if any."""
    _configure()
    listing = await run_in_threadpool(
        lambda: stripe.Transfer.list(transfer_group=transfer_group, limit=1)
    )
    data = _to_plain(listing).get("data") or []
    return _to_plain(data[0]) if data else None


__all__ = ["StripeGatewayError", "retrieve_subscription", "create_transfer", "find_transfer"]
