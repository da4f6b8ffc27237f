"""JSON backups of a user's journal."""

from datetime import datetime, timezone
from typing import Optional

from coredrift.db.store import DataStore


def create_backup(store: DataStore, user_id: str, now: Optional[datetime] = None) -> dict:
    """Snapshot a user's accounts, active trades and setups.

    Args:
        store: Data store to read from.
        user_id: User whose data is exported.
        now: Backup timestamp; defaults to the current time.

    Returns:
        JSON-serializable backup document.
    """
    accounts = store.list_accounts(user_id)
    trades = []
    for account in accounts:
        trades.extend(trade.to_document() for trade in store.list_trades(account.id))
    return {
        "timestamp": (now or datetime.now(timezone.utc)).isoformat(),
        "userId": user_id,
        "accounts": [account.to_document() for account in accounts],
        "trades": trades,
        "setups": [setup.to_document() for setup in store.list_setups(user_id)],
    }
