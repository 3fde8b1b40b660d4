from .galleries import get_gallery, update_gallery
from .gallery_transactions import (
    PAYOUT_PENDING_NOTE_PREFIX,
    TRANSFER_FAILED_NOTE_PREFIX,
    get_transaction_by_payment_intent,
    insert_transaction,
    list_transactions_awaiting_transfer,
    update_transaction,
)
from .photographers import get_photographer, get_photographer_by_account, update_photographer
from .profiles import (
    get_connect_account_id,
    get_user_profile,
    set_user_customer_id,
    update_user_profile,
    users_table_available,
)
from .subscriptions import (
    get_subscription_by_stripe_id,
    insert_subscription,
    update_subscription,
)
from .webhook_events import insert_webhook_log, is_event_processed, mark_event_processed

__all__ = [
    "PAYOUT_PENDING_NOTE_PREFIX",
    "TRANSFER_FAILED_NOTE_PREFIX",
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
]
