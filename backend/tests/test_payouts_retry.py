from datetime import datetime, timezone

import pytest
import stripe

from photovault.config import settings
from photovault.services import payouts

pytestmark = pytest.mark.anyio("asyncio")

SEEDED_AT = datetime(2024, 12, 31, tzinfo=timezone.utc)


def _seed_transaction(store, *, notes, payout=2000, transfer_id=None, pi="pi_retry"):
    store.transactions.append(
        {
            "id": f"txn_{pi}",
            "gallery_id": "gal_1",
            "photographer_id": "ph_1",
            "stripe_payment_intent_id": pi,
            "photographer_payout_cents": payout,
            "currency": "usd",
            "stripe_transfer_id": transfer_id,
            "notes": notes,
            "updated_at": SEEDED_AT,
        }
    )


@pytest.fixture
def stripe_transfers(monkeypatch, stripe_keys):
    calls: list[dict] = []
    existing: dict[str, dict] = {}

    def fake_create(**kwargs):
        calls.append(kwargs)
        return {"id": f"tr_retry_{len(calls)}"}

    def fake_list(transfer_group=None, limit=None, **kwargs):
        found = existing.get(transfer_group)
        return {"object": "list", "data": [found] if found else []}

    monkeypatch.setattr("stripe.Transfer.create", fake_create)
    monkeypatch.setattr("stripe.Transfer.list", fake_list)
    return calls, existing


@pytest.fixture
def transfers(stripe_transfers):
    calls, _ = stripe_transfers
    return calls


async def test_retry_transfers_pending_payouts(store, transfers):
    store.add_profile("ph_1", stripe_connect_account_id="acct_ph")
    _seed_transaction(store, notes=payouts.PAYOUT_PENDING_NOTE, pi="pi_pending")
    _seed_transaction(store, notes="Transfer failed: card declined. Retry required.", pi="pi_failed")
    _seed_transaction(store, notes=None, transfer_id="tr_done", pi="pi_done")

    results = await payouts.retry_pending_transfers()

    assert [result.transaction_id for result in results] == ["txn_pi_pending", "txn_pi_failed"]
    assert all(result.transferred for result in results)
    assert [call["transfer_group"] for call in transfers] == [
        "gallery-payment-pi_pending",
        "gallery-payment-pi_failed",
    ]
    assert store.transactions[0]["stripe_transfer_id"] == "tr_retry_1"


async def test_retry_uses_a_fresh_idempotency_key_per_attempt(store, monkeypatch, stripe_transfers):
    calls, _ = stripe_transfers
    store.add_profile("ph_1", stripe_connect_account_id="acct_ph")
    store.transactions.append(
        {
            "id": "txn_1",
            "gallery_id": "gal_1",
            "photographer_id": "ph_1",
            "stripe_payment_intent_id": "pi_1",
            "photographer_payout_cents": 2000,
            "currency": "usd",
            "stripe_transfer_id": None,
            "notes": None,
            "updated_at": SEEDED_AT,
        }
    )
    keys: list[str] = []

    def declined(**kwargs):
        keys.append(kwargs["idempotency_key"])
        raise stripe.InvalidRequestError("Insufficient available balance", param="amount")

    monkeypatch.setattr("stripe.Transfer.create", declined)
    await payouts.pay_out_transaction(store.transactions[0])
    await payouts.retry_pending_transfers()
    await payouts.retry_pending_transfers()

    assert keys[0] == "gallery-payout-pi_1"
    assert len(set(keys)) == 3
    assert all(key.startswith("gallery-payout-pi_1-retry-") for key in keys[1:])
    assert store.transactions[0]["notes"].startswith("Transfer failed:")
    assert calls == []


async def test_retry_records_transfer_already_at_stripe(store, stripe_transfers):
    calls, existing = stripe_transfers
    store.add_profile("ph_1", stripe_connect_account_id="acct_ph")
    _seed_transaction(store, notes="Transfer failed: Read timed out. Retry required.", pi="pi_timeout")
    existing["gallery-payment-pi_timeout"] = {"id": "tr_landed"}

    (result,) = await payouts.retry_pending_transfers()

    assert result.transfer_id == "tr_landed"
    assert calls == []
    assert store.transactions[0]["stripe_transfer_id"] == "tr_landed"


def test_idempotency_key_is_stable_for_the_same_attempt():
    row = {"id": "txn_1", "stripe_payment_intent_id": "pi_1", "updated_at": SEEDED_AT}
    assert payouts.payout_idempotency_key(row) == "gallery-payout-pi_1"
    assert payouts.payout_idempotency_key(row, retry=True) == payouts.payout_idempotency_key(
        dict(row), retry=True
    )


async def test_retry_respects_limit(store, transfers):
    store.add_profile("ph_1", stripe_connect_account_id="acct_ph")
    for index in range(3):
        _seed_transaction(store, notes=payouts.PAYOUT_PENDING_NOTE, pi=f"pi_{index}")

    results = await payouts.retry_pending_transfers(limit=2)

    assert len(results) == 2
    assert len(transfers) == 2


async def test_dry_run_does_not_call_stripe(store, transfers):
    store.add_profile("ph_1", stripe_connect_account_id="acct_ph")
    _seed_transaction(store, notes=payouts.PAYOUT_PENDING_NOTE)

    results = await payouts.retry_pending_transfers(dry_run=True)

    assert len(results) == 1
    assert not results[0].transferred
    assert transfers == []
    assert store.transactions[0]["stripe_transfer_id"] is None


async def test_retry_without_connect_account_keeps_pending_note(store, transfers):
    store.add_profile("ph_1")
    _seed_transaction(store, notes=payouts.PAYOUT_PENDING_NOTE)

    (result,) = await payouts.retry_pending_transfers()

    assert result.note == payouts.PAYOUT_PENDING_NOTE
    assert transfers == []


async def test_missing_secret_key_becomes_failed_note(store, monkeypatch):
    monkeypatch.setattr(settings, "stripe_secret_key", None)
    store.add_profile("ph_1", stripe_connect_account_id="acct_ph")
    _seed_transaction(store, notes=payouts.PAYOUT_PENDING_NOTE)

    (result,) = await payouts.retry_pending_transfers()

    assert not result.transferred
    assert result.note.startswith("Transfer failed: Stripe secret key is missing")
    assert store.transactions[0]["notes"] == result.note
