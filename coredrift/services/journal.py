"""Trade journal service for CoreDrift.

``TradeJournal`` is the single entry point for writing trades. Every
write recomputes the derived fields from the raw inputs, the account's
initial balance and the symbol catalog before the record reaches the
store.
"""

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Optional

from coredrift.calculations.stats import summarize
from coredrift.calculations.trade_fields import derive_trade_fields
from coredrift.db.store import DataStore
from coredrift.exceptions import InvalidTradeError, NotFoundError
from coredrift.models import Account, Trade
from coredrift.services.importer import parse_trades_csv
from coredrift.services.merge import merge_trades

logger = logging.getLogger(__name__)

_SYMBOL_FIELDS = ("pipSize", "pipValuePerLot", "contractSize")


class TradeJournal:
    """User-scoped facade over the data store."""

    def __init__(self, store: DataStore, user_id: str):
        """Initialize the journal.

        Args:
            store: Data store holding the user's documents.
            user_id: ID of the user all operations act for.
        """
        self.store = store
        self.user_id = user_id

    # ==================== Accounts ====================

    def account(self, account_id: str) -> Account:
        """Get one of the user's accounts.

        Raises:
            NotFoundError: If the account does not exist or belongs to someone else.
        """
        account = self.store.get_account(account_id)
        if account.user_id != self.user_id:
            raise NotFoundError(f"Account {account_id} not found")
        return account

    def accounts(self) -> list[Account]:
        """Get all of the user's accounts."""
        return self.store.list_accounts(self.user_id)

    def initial_balance(self, account: Account) -> float:
        """Balance used for percentage calculations.

        A zero balance leaves percent risk and percent P&L empty.
        """
        return account.initial_balance

    def set_initial_balance(self, account_id: str, initial_balance: float) -> int:
        """Change an account's initial balance and recompute its trades.

        Returns:
            Number of trades recalculated.
        """
        self.account(account_id)
        self.store.update_account(account_id, initial_balance=initial_balance)
        return self.recalculate_account(account_id)

    # ==================== Derivation ====================

    def _with_symbol(self, raw: Mapping) -> dict:
        """Attach catalog metadata to a record that has none cached."""
        record = dict(raw)
        symbol = record.get("symbol")
        if not symbol or record.get("pipSize"):
            return record
        try:
            metadata = self.store.get_symbol(str(symbol).strip().upper())
        except NotFoundError:
            logger.debug("Symbol %s not in catalog, using default pip metadata", symbol)
            return record
        record["pipSize"] = metadata.pip_size
        record["pipValuePerLot"] = metadata.pip_value_per_lot
        record["contractSize"] = metadata.contract_size
        return record

    def _check_rules(self, record: Mapping) -> None:
        """Selected rules must belong to the trade's setup."""
        rules = record.get("selectedRules") or []
        if not rules:
            return
        setup_id = record.get("setups")
        if not setup_id:
            raise InvalidTradeError("Rules can only be selected for a trade with a setup")
        setup = self.store.get_setup(setup_id)
        unknown = set(rules) - setup.rule_ids()
        if unknown:
            raise InvalidTradeError(
                f"Rules {sorted(unknown)} are not part of setup '{setup.name}'"
            )

    def prepare(self, account: Account, raw: Mapping) -> Trade:
        """Derive fields for a raw record and validate it as a Trade.

        Args:
            account: Owning account.
            raw: Raw trade record with camelCase field names.

        Returns:
            Trade ready to be stored.
        """
        record = self._with_symbol(raw)
        self._check_rules(record)
        derived = derive_trade_fields(record, self.initial_balance(account))
        derived["accountId"] = account.id
        derived["userId"] = self.user_id
        return Trade.model_validate(derived)

    # ==================== Trades ====================

    def record_trade(self, account_id: str, raw: Mapping) -> Trade:
        """Journal a manually entered trade."""
        account = self.account(account_id)
        return self.store.create_trade(account_id, self.prepare(account, raw))

    def edit_trade(self, account_id: str, trade_id: str, changes: Mapping) -> Trade:
        """Apply raw field changes to a trade and recompute everything.

        Args:
            account_id: Owning account ID.
            trade_id: Trade to edit.
            changes: Raw fields to change, camelCase.

        Returns:
            The updated trade.
        """
        account = self.account(account_id)
        existing = self.store.get_trade(account_id, trade_id)
        record = existing.raw_fields()
        symbol_changed = (
            "symbol" in changes and str(changes["symbol"] or "").strip().upper() != existing.symbol
        )
        if symbol_changed:
            for field in _SYMBOL_FIELDS:
                record.pop(field, None)
        record.update(changes)
        return self.store.update_trade(account_id, trade_id, self.prepare(account, record))

    def get_trade(self, trade_id: str) -> Trade:
        """Find one of the user's active trades by ID."""
        return self.store.find_trade(self.user_id, trade_id)

    def list_trades(self, account_ids: Optional[list[str]] = None) -> list[Trade]:
        """Active trades across the given accounts (all accounts if None)."""
        if account_ids is None:
            account_ids = [account.id for account in self.accounts()]
        trades = []
        for account_id in account_ids:
            self.account(account_id)
            trades.extend(self.store.list_trades(account_id))
        return sorted(
            trades,
            key=lambda t: (t.entry_timestamp is None, t.entry_timestamp or datetime.min, t.id),
        )

    def import_trades(self, account_id: str, rows: list[Mapping]) -> list[Trade]:
        """Journal raw rows produced by the CSV importer."""
        account = self.account(account_id)
        prepared = [self.prepare(account, row) for row in rows]
        return [self.store.create_trade(account_id, trade) for trade in prepared]

    def import_csv(self, account_id: str, text: str) -> list[Trade]:
        """Parse a CSV export and journal every complete row."""
        rows = parse_trades_csv(text)
        trades = self.import_trades(account_id, rows)
        logger.info("Imported %d trades into account %s", len(trades), account_id)
        return trades

    def merge_trades(self, account_id: str, trade_ids: list[str]) -> Trade:
        """Replace several trades with a single merged trade.

        Raises:
            MergeError: If the trades are not on the same symbol and day.
        """
        account = self.account(account_id)
        trades = [self.store.get_trade(account_id, trade_id) for trade_id in trade_ids]
        symbol = None
        if trades and trades[0].symbol:
            try:
                symbol = self.store.get_symbol(trades[0].symbol)
            except NotFoundError:
                logger.debug("Merging %s without catalog metadata", trades[0].symbol)
        merged = self.prepare(account, merge_trades(trades, symbol))
        return self.store.replace_trades(account_id, trade_ids, merged)

    def recalculate_account(self, account_id: str) -> int:
        """Recompute derived fields of every trade in an account.

        Returns:
            Number of trades recalculated.
        """
        account = self.account(account_id)
        trades = self.store.list_trades(account_id)
        for trade in trades:
            self.store.update_trade(
                account_id, trade.id, self.prepare(account, trade.raw_fields())
            )
        return len(trades)

    # ==================== Recycle bin ====================

    def delete_trade(self, account_id: str, trade_id: str) -> Trade:
        """Move a trade to the recycle bin."""
        self.account(account_id)
        return self.store.delete_trade(account_id, trade_id)

    def recycle_bin(self, account_ids: Optional[list[str]] = None) -> list[Trade]:
        """Restorable trades deleted within the last 7 days."""
        if account_ids is None:
            account_ids = [account.id for account in self.accounts()]
        trades = []
        for account_id in account_ids:
            self.account(account_id)
            trades.extend(self.store.list_deleted_trades(account_id))
        return trades

    def restore_trade(self, account_id: str, trade_id: str) -> Trade:
        """Restore a trade from the recycle bin.

        Derived fields are recomputed against the account's current
        initial balance.
        """
        account = self.account(account_id)
        restored = self.store.restore_trade(account_id, trade_id)
        return self.store.update_trade(
            account_id, trade_id, self.prepare(account, restored.raw_fields())
        )

    def purge_trade(self, account_id: str, trade_id: str) -> None:
        """Permanently delete a trade from the recycle bin."""
        self.account(account_id)
        self.store.purge_trade(account_id, trade_id)

    # ==================== Stats ====================

    def summary(self, account_ids: Optional[list[str]] = None) -> dict:
        """Aggregate statistics over the active trades of the given accounts."""
        return summarize(self.list_trades(account_ids))
