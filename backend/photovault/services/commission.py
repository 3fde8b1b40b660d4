"""Commission and fee arithmetic for gallery payments, in integer cents."""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from ..config import settings

STRIPE_PERCENT_FEE = Decimal("0.029")
STRIPE_FIXED_FEE_CENTS = 30


def round_half_up(value: Decimal | float | int) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_commission(amount_cents: int, rate: float | None = None) -> int:
    """PhotoVault's fee on the storage portion of a gallery payment (50% by default)."""
    commission_rate = settings.platform_commission_rate if rate is None else rate
    return round_half_up(Decimal(amount_cents) * Decimal(str(commission_rate)))


def estimate_stripe_fee(amount_cents: int) -> int:
    """
    Approximate Stripe's card fee (2.9% + 30c). This is an estimate for
    reporting; Stripe's balance transaction holds the real figure.
    """
    return round_half_up(Decimal(amount_cents) * STRIPE_PERCENT_FEE + STRIPE_FIXED_FEE_CENTS)


__all__ = ["round_half_up", "calculate_commission", "estimate_stripe_fee"]
