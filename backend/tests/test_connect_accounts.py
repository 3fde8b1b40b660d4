import pytest

from photovault.schemas import HandlerOutcome
from photovault.services import connect_accounts

pytestmark = pytest.mark.anyio("asyncio")


async def test_account_updated_marks_photographer_active(store):
    store.add_photographer("ph_1", stripe_connect_account_id="acct_1", stripe_connect_status="pending")

    result = await connect_accounts.handle_account_updated(
        {"id": "acct_1", "details_submitted": True, "payouts_enabled": True}
    )

    assert result.was_applied
    photographer = store.photographers["ph_1"]
    assert photographer["stripe_connect_status"] == "active"
    assert photographer["can_receive_payouts"] is True
    assert photographer["bank_account_verified"] is True


async def test_account_without_details_stays_pending(store):
    store.add_photographer("ph_1", stripe_connect_account_id="acct_1", stripe_connect_status="active")

    await connect_accounts.handle_account_updated(
        {"id": "acct_1", "details_submitted": False, "payouts_enabled": False}
    )

    photographer = store.photographers["ph_1"]
    assert photographer["stripe_connect_status"] == "pending"
    assert photographer["can_receive_payouts"] is False
    assert photographer["bank_account_verified"] is False


async def test_unknown_account_is_skipped(store):
    store.add_photographer("ph_1", stripe_connect_account_id="acct_1", stripe_connect_status="pending")

    result = await connect_accounts.handle_account_updated({"id": "acct_other", "details_submitted": True})

    assert result.outcome is HandlerOutcome.skipped
    assert store.photographers["ph_1"]["stripe_connect_status"] == "pending"


def test_connect_status_lookup_never_reaches_disabled_or_restricted():
    assert connect_accounts.connect_status_for({"details_submitted": True}) == "active"
    assert connect_accounts.connect_status_for({"details_submitted": False}) == "pending"
    assert connect_accounts.connect_status_for({"charges_enabled": False}) == "pending"
    assert connect_accounts.CONNECT_STATUS_MAP["restricted"] == "restricted"
