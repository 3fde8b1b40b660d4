from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class StripeEventType(str, Enum):
    checkout_session_completed = "checkout.session.completed"
    subscription_created = "customer.subscription.created"
    subscription_updated = "customer.subscription.updated"
    subscription_deleted = "customer.subscription.deleted"
    invoice_paid = "invoice.paid"
    invoice_payment_failed = "invoice.payment_failed"
    payment_intent_succeeded = "payment_intent.succeeded"
    account_updated = "account.updated"

    @classmethod
    def parse(cls, value: Any) -> Optional["StripeEventType"]:
        try:
            return cls(value)
        except ValueError:
            return None


class StripeEventData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    object: dict[str, Any] = Field(default_factory=dict)


class StripeEvent(BaseModel):
    """The parts of a Stripe event envelope the reconciliation handlers read."""

    model_config = ConfigDict(extra="ignore")

    id: str
    type: str
    account: str | None = None
    livemode: bool = False
    data: StripeEventData = Field(default_factory=StripeEventData)

    @property
    def data_object(self) -> dict[str, Any]:
        return self.data.object


class HandlerOutcome(str, Enum):
    applied = "applied"
    skipped = "skipped"


@dataclass(frozen=True)
class HandlerResult:
    outcome: HandlerOutcome
    message: str

    @classmethod
    def applied(cls, message: str) -> "HandlerResult":
        return cls(HandlerOutcome.applied, message)

    @classmethod
    def skipped(cls, message: str) -> "HandlerResult":
        return cls(HandlerOutcome.skipped, message)

    @property
    def was_applied(self) -> bool:
        return self.outcome is HandlerOutcome.applied


@dataclass(frozen=True)
class PlatformSubscription:
    """A photographer paying for platform access."""

    photographer_id: str


@dataclass(frozen=True)
class ClientSubscription:
    """A family paying for gallery storage."""

    client_id: str | None = None
    gallery_id: str | None = None
    photographer_id: str | None = None

    @property
    def can_insert(self) -> bool:
        return bool(self.client_id and self.gallery_id)


SubscriptionKind = Union[PlatformSubscription, ClientSubscription]

PLATFORM_SUBSCRIPTION_TAG = "platform"


def _first_str(metadata: Mapping[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = metadata.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def subscription_kind_from_metadata(metadata: Mapping[str, Any] | None) -> SubscriptionKind | None:
    """
    Decide whether a subscription belongs to a photographer (platform access)
    or a client (gallery storage).

    Returns ``None`` for a platform-tagged subscription that carries no
    photographer id; there is no row to reconcile in that case.
    """
    metadata = metadata if isinstance(metadata, Mapping) else {}
    photographer_id = _first_str(metadata, "photographer_id", "photographerId")
    if metadata.get("subscription_type") == PLATFORM_SUBSCRIPTION_TAG:
        if not photographer_id:
            return None
        return PlatformSubscription(photographer_id=photographer_id)
    return ClientSubscription(
        client_id=_first_str(metadata, "client_id", "clientId", "userId"),
        gallery_id=_first_str(metadata, "gallery_id", "galleryId"),
        photographer_id=photographer_id,
    )


GALLERY_PAYMENT_TYPE = "gallery_payment"
SHOOT_ONLY_PAYMENT_OPTION = "shoot_only"


def _parse_cents(value: Any) -> int:
    if value is None or value == "":
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        pass
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


class GalleryPaymentMetadata(BaseModel):
    """Metadata attached to a one-time gallery payment intent at checkout."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    type: str | None = None
    gallery_id: str | None = Field(
        default=None, validation_alias=AliasChoices("galleryId", "gallery_id")
    )
    photographer_id: str | None = Field(
        default=None, validation_alias=AliasChoices("photographerId", "photographer_id")
    )
    client_id: str | None = Field(
        default=None, validation_alias=AliasChoices("clientId", "client_id", "userId")
    )
    payment_option_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("paymentOptionId", "payment_option_id"),
    )
    shoot_fee_cents: int = Field(
        default=0, validation_alias=AliasChoices("shootFeeCents", "shoot_fee_cents")
    )
    storage_fee_cents: int = Field(
        default=0, validation_alias=AliasChoices("storageFeeCents", "storage_fee_cents")
    )
    total_amount_cents: int = Field(
        default=0, validation_alias=AliasChoices("totalAmountCents", "total_amount_cents")
    )
    photovault_revenue_cents: int = Field(
        default=0,
        validation_alias=AliasChoices("photovaultRevenueCents", "photovault_revenue_cents"),
    )
    photographer_payout_cents: int = Field(
        default=0,
        validation_alias=AliasChoices("photographerPayoutCents", "photographer_payout_cents"),
    )

    @field_validator(
        "shoot_fee_cents",
        "storage_fee_cents",
        "total_amount_cents",
        "photovault_revenue_cents",
        "photographer_payout_cents",
        mode="before",
    )
    @classmethod
    def _coerce_cents(cls, value):
        return _parse_cents(value)

    @field_validator("gallery_id", "photographer_id", "client_id", "payment_option_id", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def is_gallery_payment(self) -> bool:
        return self.type == GALLERY_PAYMENT_TYPE

    @property
    def is_shoot_only(self) -> bool:
        return self.payment_option_id == SHOOT_ONLY_PAYMENT_OPTION
