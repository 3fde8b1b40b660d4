from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone
from typing import Any

from photovault import repositories


class FakeStore:
    """In-memory stand-in for the repositories package."""

    def __init__(self) -> None:
        self.profiles: dict[str, dict[str, Any]] = {}
        self.photographers: dict[str, dict[str, Any]] = {}
        self.galleries: dict[str, dict[str, Any]] = {}
        self.subscriptions: dict[str, dict[str, Any]] = {}
        self.transactions: list[dict[str, Any]] = []
        self.users: dict[str, dict[str, Any]] = {}
        self.users_table = True
        self.processed: dict[str, str] = {}
        self.webhook_logs: list[dict[str, Any]] = []
        self._ids = itertools.count(1)
        self._clock = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def _now(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    def install(self, monkeypatch) -> "FakeStore":
        for name in (
            "get_connect_account_id",
            "get_gallery",
            "get_photographer",
            "get_photographer_by_account",
            "get_subscription_by_stripe_id",
            "get_transaction_by_payment_intent",
            "get_user_profile",
            "insert_subscription",
            "insert_transaction",
            "insert_webhook_log",
            "is_event_processed",
            "list_transactions_awaiting_transfer",
            "mark_event_processed",
            "set_user_customer_id",
            "update_gallery",
            "update_photographer",
            "update_subscription",
            "update_transaction",
            "update_user_profile",
            "users_table_available",
        ):
            monkeypatch.setattr(repositories, name, getattr(self, name))
        return self

    # seed helpers

    def add_profile(self, profile_id: str, **fields: Any) -> dict[str, Any]:
        row = {"id": profile_id, "payment_status": None, "stripe_connect_account_id": None}
        row.update(fields)
        self.profiles[profile_id] = row
        return row

    def add_photographer(self, photographer_id: str, **fields: Any) -> dict[str, Any]:
        row = {"id": photographer_id, "platform_subscription_status": None}
        row.update(fields)
        self.photographers[photographer_id] = row
        return row

    def add_gallery(self, gallery_id: str, **fields: Any) -> dict[str, Any]:
        row = {"id": gallery_id, "payment_status": "pending", "photo_count": 0}
        row.update(fields)
        self.galleries[gallery_id] = row
        return row

    def add_subscription(self, stripe_subscription_id: str, **fields: Any) -> dict[str, Any]:
        row = {"id": f"row_{next(self._ids)}", "stripe_subscription_id": stripe_subscription_id}
        row.update(fields)
        self.subscriptions[stripe_subscription_id] = row
        return row

    # profiles

    async def get_user_profile(self, profile_id: str):
        row = self.profiles.get(profile_id)
        return dict(row) if row else None

    async def get_connect_account_id(self, profile_id: str):
        return (self.profiles.get(profile_id) or {}).get("stripe_connect_account_id") or None

    async def update_user_profile(self, profile_id: str, fields: dict[str, Any]):
        row = self.profiles.get(profile_id)
        if row is None:
            return None
        row.update(fields)
        return dict(row)

    async def users_table_available(self) -> bool:
        return self.users_table

    async def set_user_customer_id(self, user_id: str, customer_id: str) -> None:
        self.users.setdefault(user_id, {"id": user_id})["stripe_customer_id"] = customer_id

    # photographers

    async def get_photographer(self, photographer_id: str):
        row = self.photographers.get(photographer_id)
        return dict(row) if row else None

    async def get_photographer_by_account(self, account_id: str):
        for row in self.photographers.values():
            if row.get("stripe_connect_account_id") == account_id:
                return dict(row)
        return None

    async def update_photographer(self, photographer_id: str, fields: dict[str, Any]):
        row = self.photographers.get(photographer_id)
        if row is None:
            return None
        row.update(fields)
        return dict(row)

    # galleries

    async def get_gallery(self, gallery_id: str):
        row = self.galleries.get(gallery_id)
        return dict(row) if row else None

    async def update_gallery(self, gallery_id: str, fields: dict[str, Any]):
        row = self.galleries.get(gallery_id)
        if row is None:
            return None
        row.update(fields)
        return dict(row)

    # subscriptions

    async def get_subscription_by_stripe_id(self, stripe_subscription_id: str):
        row = self.subscriptions.get(stripe_subscription_id)
        return dict(row) if row else None

    async def insert_subscription(self, *, stripe_subscription_id: str, **fields: Any):
        row = self.subscriptions.get(stripe_subscription_id)
        if row is None:
            return dict(self.add_subscription(stripe_subscription_id, **fields))
        row.update(fields)
        return dict(row)

    async def update_subscription(self, stripe_subscription_id: str, fields: dict[str, Any]):
        row = self.subscriptions.get(stripe_subscription_id)
        if row is None:
            return None
        row.update(fields)
        return dict(row)

    # gallery transactions

    async def get_transaction_by_payment_intent(self, payment_intent_id: str):
        for row in self.transactions:
            if row["stripe_payment_intent_id"] == payment_intent_id:
                return dict(row)
        return None

    async def insert_transaction(self, **fields: Any):
        row = {
            "id": f"txn_{next(self._ids)}",
            "status": "completed",
            "notes": None,
            "stripe_transfer_id": None,
        }
        row.update(fields)
        row["updated_at"] = self._now()
        self.transactions.append(row)
        return dict(row)

    async def update_transaction(self, transaction_id: str, fields: dict[str, Any]):
        for row in self.transactions:
            if row["id"] == transaction_id:
                row.update(fields)
                row["updated_at"] = self._now()
                return dict(row)
        return None

    async def list_transactions_awaiting_transfer(self, limit: int = 50):
        pending = [
            dict(row)
            for row in self.transactions
            if row.get("stripe_transfer_id") is None
            and int(row.get("photographer_payout_cents") or 0) > 0
            and (row.get("notes") or "").startswith(
                (repositories.TRANSFER_FAILED_NOTE_PREFIX, repositories.PAYOUT_PENDING_NOTE_PREFIX)
            )
        ]
        return pending[:limit]

    # webhook ledger

    async def is_event_processed(self, event_id: str) -> bool:
        return event_id in self.processed

    async def mark_event_processed(self, event_id: str, event_type: str) -> None:
        self.processed.setdefault(event_id, event_type)

    async def insert_webhook_log(self, **fields: Any) -> None:
        self.webhook_logs.append(fields)
