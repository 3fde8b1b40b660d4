from decimal import Decimal

import pytest

from photovault.config import Settings, settings
from photovault.services.commission import (
    calculate_commission,
    estimate_stripe_fee,
    round_half_up,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (Decimal("0.5"), 1),
        (Decimal("1.5"), 2),
        (Decimal("2.5"), 3),
        (Decimal("2.49"), 2),
        (0, 0),
    ],
)
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected


def test_commission_is_half_of_storage_fee_by_default():
    assert calculate_commission(10000) == 5000
    assert calculate_commission(0) == 0


def test_commission_rounds_half_up_on_odd_cents():
    assert calculate_commission(1) == 1
    assert calculate_commission(333) == 167


def test_commission_rate_follows_settings(monkeypatch):
    monkeypatch.setattr(settings, "platform_commission_rate", 0.25)
    assert calculate_commission(1000) == 250
    assert calculate_commission(1000, rate=0.1) == 100


@pytest.mark.parametrize(
    ("amount", "expected"),
    [
        (10000, 320),
        (25000, 755),
        (1500, 74),  # 43.5 + 30 rounds up
        (0, 30),
    ],
)
def test_estimate_stripe_fee(amount, expected):
    assert estimate_stripe_fee(amount) == expected


@pytest.mark.parametrize("env_name", ["PLATFORM_COMMISSION_RATE", "PHOTOGRAPHER_COMMISSION_RATE"])
def test_commission_rate_env_names(monkeypatch, env_name):
    monkeypatch.setenv(env_name, "0.4")
    assert Settings().platform_commission_rate == 0.4


def test_settings_no_longer_carry_supabase_api_fields():
    assert "supabase_url" not in Settings.model_fields
    assert "supabase_service_role_key" not in Settings.model_fields
