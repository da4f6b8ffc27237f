"""SQLite document store for CoreDrift.

Trades, setups and notes are stored as JSON documents alongside the
columns used for lookups. Every entity is scoped to a user.
"""

import json
import logging
import sqlite3
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from coredrift.calculations.trade_fields import parse_number
from coredrift.exceptions import DuplicateError, NotFoundError
from coredrift.models import (
    DEFAULT_SYMBOLS,
    Account,
    Note,
    Setup,
    Symbol,
    Tag,
    Trade,
)

logger = logging.getLogger(__name__)

# How long a soft-deleted trade stays restorable.
RECYCLE_BIN_RETENTION = timedelta(days=7)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(moment: Optional[datetime]) -> datetime:
    """Return ``moment`` as aware UTC, defaulting to now. Naive values are UTC."""
    if moment is None:
        return _now()
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


class DataStore:
    """SQLite-based document store for CoreDrift."""

    REQUIRED_TABLES = [
        "accounts",
        "trades",
        "deleted_trades",
        "symbols",
        "setups",
        "tags",
        "notes",
    ]

    def __init__(self, db_path: Path):
        """Initialize the data store.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = Path(db_path)
        self._ensure_db_dir()
        self._init_schema()

    def _ensure_db_dir(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        """Initialize database schema on first run."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS accounts (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    initial_balance REAL NOT NULL,
                    current_balance REAL,
                    account_type TEXT NOT NULL DEFAULT 'Live',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            # Active trades; ``data`` holds the full camelCase document
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS trades (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    account_id TEXT NOT NULL,
                    entry_timestamp TEXT,
                    data TEXT NOT NULL
                )
            """)

            # Recycle bin
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS deleted_trades (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    account_id TEXT NOT NULL,
                    deleted_at TEXT NOT NULL,
                    data TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS symbols (
                    id TEXT PRIMARY KEY,
                    pip_size REAL NOT NULL,
                    pip_value_per_lot REAL NOT NULL,
                    contract_size REAL,
                    updated_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS setups (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    is_deleted INTEGER NOT NULL DEFAULT 0,
                    data TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS tags (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    color TEXT,
                    UNIQUE(user_id, name)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS notes (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    data TEXT NOT NULL
                )
            """)

            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_trades_account ON trades(account_id, entry_timestamp)"
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_deleted_account ON deleted_trades(account_id, deleted_at)"
            )

            conn.commit()
        finally:
            conn.close()

    def get_tables(self) -> list[str]:
        """Get list of all tables in the database."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
            )
            return [row["name"] for row in cursor.fetchall()]
        finally:
            conn.close()

    # ==================== Accounts ====================

    @staticmethod
    def _row_to_account(row: sqlite3.Row) -> Account:
        return Account(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            initial_balance=row["initial_balance"],
            current_balance=row["current_balance"],
            account_type=row["account_type"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def create_account(self, account: Account) -> Account:
        """Create an account.

        Args:
            account: Account to create. Its ID is assigned here.

        Returns:
            The stored account.
        """
        now = _now()
        stored = account.model_copy(update={
            "id": _new_id(),
            "current_balance": account.initial_balance,
            "created_at": now,
            "updated_at": now,
        })
        conn = self._get_connection()
        try:
            conn.execute(
                """
                INSERT INTO accounts
                (id, user_id, name, initial_balance, current_balance, account_type, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    stored.id,
                    stored.user_id,
                    stored.name,
                    stored.initial_balance,
                    stored.current_balance,
                    stored.account_type,
                    now.isoformat(),
                    now.isoformat(),
                ),
            )
            conn.commit()
        finally:
            conn.close()
        logger.debug("Created account %s for user %s", stored.id, stored.user_id)
        return stored

    def get_account(self, account_id: str) -> Account:
        """Get an account by ID.

        Raises:
            NotFoundError: If the account does not exist.
        """
        conn = self._get_connection()
        try:
            row = conn.execute(
                "SELECT * FROM accounts WHERE id = ?", (account_id,)
            ).fetchone()
            if row is None:
                raise NotFoundError(f"Account {account_id} not found")
            return self._row_to_account(row)
        finally:
            conn.close()

    def list_accounts(self, user_id: str) -> list[Account]:
        """Get all accounts of a user, oldest first."""
        conn = self._get_connection()
        try:
            rows = conn.execute(
                "SELECT * FROM accounts WHERE user_id = ? ORDER BY created_at",
                (user_id,),
            ).fetchall()
            return [self._row_to_account(row) for row in rows]
        finally:
            conn.close()

    def update_account(
        self,
        account_id: str,
        name: Optional[str] = None,
        initial_balance: Optional[float] = None,
        account_type: Optional[str] = None,
    ) -> Account:
        """Update account details.

        Changing the initial balance shifts the current balance by the
        same amount.
        """
        account = self.get_account(account_id)
        changes = {"updated_at": _now()}
        if name is not None:
            changes["name"] = name
        if account_type is not None:
            changes["account_type"] = account_type
        if initial_balance is not None:
            changes["initial_balance"] = initial_balance
            current = account.current_balance if account.current_balance is not None else account.initial_balance
            changes["current_balance"] = current + initial_balance - account.initial_balance
        # Revalidate so a bad account type is rejected
        updated = Account.model_validate({**account.model_dump(), **changes})

        conn = self._get_connection()
        try:
            conn.execute(
                """
                UPDATE accounts
                SET name = ?, initial_balance = ?, current_balance = ?, account_type = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    updated.name,
                    updated.initial_balance,
                    updated.current_balance,
                    updated.account_type,
                    updated.updated_at.isoformat(),
                    account_id,
                ),
            )
            conn.commit()
        finally:
            conn.close()
        return updated

    def delete_account(self, account_id: str) -> None:
        """Delete an account together with its trades and recycle bin."""
        self.get_account(account_id)
        conn = self._get_connection()
        try:
            conn.execute("DELETE FROM trades WHERE account_id = ?", (account_id,))
            conn.execute("DELETE FROM deleted_trades WHERE account_id = ?", (account_id,))
            conn.execute("DELETE FROM accounts WHERE id = ?", (account_id,))
            conn.commit()
        finally:
            conn.close()
        logger.debug("Deleted account %s", account_id)

    @staticmethod
    def _adjust_balance(conn: sqlite3.Connection, account_id: str, delta: float) -> None:
        """Shift an account's current balance inside an open transaction."""
        if not delta:
            return
        conn.execute(
            """
            UPDATE accounts
            SET current_balance = COALESCE(current_balance, initial_balance) + ?, updated_at = ?
            WHERE id = ?
            """,
            (delta, _now().isoformat(), account_id),
        )

    # ==================== Trades ====================

    @staticmethod
    def _pnl(trade: Trade) -> float:
        return parse_number(trade.net_pnl) or 0.0

    @staticmethod
    def _row_to_trade(row: sqlite3.Row) -> Trade:
        return Trade.model_validate(json.loads(row["data"]))

    def _insert_trade(self, conn: sqlite3.Connection, trade: Trade) -> None:
        conn.execute(
            """
            INSERT INTO trades (id, user_id, account_id, entry_timestamp, data)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                trade.id,
                trade.user_id,
                trade.account_id,
                trade.entry_timestamp.isoformat() if trade.entry_timestamp else None,
                json.dumps(trade.to_document()),
            ),
        )

    def create_trade(self, account_id: str, trade: Trade) -> Trade:
        """Store a new trade and credit its P&L to the account balance.

        Args:
            account_id: Owning account ID.
            trade: Trade with derived fields already computed.

        Returns:
            The stored trade with its assigned ID.
        """
        now = _now()
        stored = trade.model_copy(update={
            "id": _new_id(),
            "account_id": account_id,
            "is_deleted": False,
            "deleted_at": None,
            "created_at": now,
            "updated_at": now,
        })
        conn = self._get_connection()
        try:
            self._insert_trade(conn, stored)
            self._adjust_balance(conn, account_id, self._pnl(stored))
            conn.commit()
        finally:
            conn.close()
        logger.debug("Created trade %s in account %s", stored.id, account_id)
        return stored

    def get_trade(self, account_id: str, trade_id: str) -> Trade:
        """Get an active trade.

        Raises:
            NotFoundError: If the trade is not in the account.
        """
        conn = self._get_connection()
        try:
            row = conn.execute(
                "SELECT data FROM trades WHERE id = ? AND account_id = ?",
                (trade_id, account_id),
            ).fetchone()
            if row is None:
                raise NotFoundError(f"Trade {trade_id} not found")
            return self._row_to_trade(row)
        finally:
            conn.close()

    def find_trade(self, user_id: str, trade_id: str) -> Trade:
        """Get an active trade of a user without knowing its account."""
        conn = self._get_connection()
        try:
            row = conn.execute(
                "SELECT data FROM trades WHERE id = ? AND user_id = ?",
                (trade_id, user_id),
            ).fetchone()
            if row is None:
                raise NotFoundError(f"Trade {trade_id} not found")
            return self._row_to_trade(row)
        finally:
            conn.close()

    def update_trade(self, account_id: str, trade_id: str, trade: Trade) -> Trade:
        """Replace a trade's document and apply the P&L difference to the balance."""
        old = self.get_trade(account_id, trade_id)
        stored = trade.model_copy(update={
            "id": trade_id,
            "account_id": account_id,
            "created_at": old.created_at,
            "updated_at": _now(),
        })
        conn = self._get_connection()
        try:
            conn.execute(
                "UPDATE trades SET entry_timestamp = ?, data = ? WHERE id = ?",
                (
                    stored.entry_timestamp.isoformat() if stored.entry_timestamp else None,
                    json.dumps(stored.to_document()),
                    trade_id,
                ),
            )
            self._adjust_balance(conn, account_id, self._pnl(stored) - self._pnl(old))
            conn.commit()
        finally:
            conn.close()
        return stored

    def list_trades(self, account_id: str) -> list[Trade]:
        """Get active trades of an account ordered by entry time."""
        conn = self._get_connection()
        try:
            rows = conn.execute(
                """
                SELECT data FROM trades
                WHERE account_id = ?
                ORDER BY entry_timestamp IS NULL, entry_timestamp, id
                """,
                (account_id,),
            ).fetchall()
            return [self._row_to_trade(row) for row in rows]
        finally:
            conn.close()

    def delete_trade(self, account_id: str, trade_id: str, now: Optional[datetime] = None) -> Trade:
        """Soft-delete a trade into the recycle bin.

        The trade's P&L is removed from the account balance until it is
        restored.
        """
        trade = self.get_trade(account_id, trade_id)
        deleted_at = _as_utc(now)
        binned = trade.model_copy(update={
            "is_deleted": True,
            "deleted_at": deleted_at,
            "updated_at": deleted_at,
        })
        conn = self._get_connection()
        try:
            conn.execute("DELETE FROM trades WHERE id = ?", (trade_id,))
            conn.execute(
                """
                INSERT OR REPLACE INTO deleted_trades (id, user_id, account_id, deleted_at, data)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    trade_id,
                    binned.user_id,
                    account_id,
                    deleted_at.isoformat(),
                    json.dumps(binned.to_document()),
                ),
            )
            self._adjust_balance(conn, account_id, -self._pnl(trade))
            conn.commit()
        finally:
            conn.close()
        logger.debug("Moved trade %s to the recycle bin", trade_id)
        return binned

    def list_deleted_trades(self, account_id: str, now: Optional[datetime] = None) -> list[Trade]:
        """Get recycle-bin trades deleted within the retention window."""
        cutoff = _as_utc(now) - RECYCLE_BIN_RETENTION
        conn = self._get_connection()
        try:
            rows = conn.execute(
                """
                SELECT data FROM deleted_trades
                WHERE account_id = ? AND deleted_at >= ?
                ORDER BY deleted_at DESC
                """,
                (account_id, cutoff.isoformat()),
            ).fetchall()
            return [self._row_to_trade(row) for row in rows]
        finally:
            conn.close()

    def _get_deleted_trade(self, conn: sqlite3.Connection, account_id: str, trade_id: str) -> Trade:
        row = conn.execute(
            "SELECT data FROM deleted_trades WHERE id = ? AND account_id = ?",
            (trade_id, account_id),
        ).fetchone()
        if row is None:
            raise NotFoundError(f"Trade {trade_id} is not in the recycle bin")
        return self._row_to_trade(row)

    def restore_trade(self, account_id: str, trade_id: str) -> Trade:
        """Move a trade from the recycle bin back to the account."""
        conn = self._get_connection()
        try:
            trade = self._get_deleted_trade(conn, account_id, trade_id)
            restored = trade.model_copy(update={
                "is_deleted": False,
                "deleted_at": None,
                "updated_at": _now(),
            })
            conn.execute("DELETE FROM deleted_trades WHERE id = ?", (trade_id,))
            self._insert_trade(conn, restored)
            self._adjust_balance(conn, account_id, self._pnl(restored))
            conn.commit()
        finally:
            conn.close()
        logger.debug("Restored trade %s", trade_id)
        return restored

    def purge_trade(self, account_id: str, trade_id: str) -> None:
        """Permanently delete a trade from the recycle bin."""
        conn = self._get_connection()
        try:
            self._get_deleted_trade(conn, account_id, trade_id)
            conn.execute("DELETE FROM deleted_trades WHERE id = ?", (trade_id,))
            conn.commit()
        finally:
            conn.close()

    def purge_expired_trades(self, now: Optional[datetime] = None) -> int:
        """Permanently delete recycle-bin trades past the retention window.

        Returns:
            Number of trades purged.
        """
        cutoff = _as_utc(now) - RECYCLE_BIN_RETENTION
        conn = self._get_connection()
        try:
            cursor = conn.execute(
                "DELETE FROM deleted_trades WHERE deleted_at < ?", (cutoff.isoformat(),)
            )
            conn.commit()
            purged = cursor.rowcount
        finally:
            conn.close()
        if purged:
            logger.info("Purged %d expired trades from the recycle bin", purged)
        return purged

    def replace_trades(self, account_id: str, old_ids: list[str], trade: Trade) -> Trade:
        """Atomically replace several trades with one (used by merges).

        The replaced trades are removed permanently, not binned.
        """
        old_trades = [self.get_trade(account_id, trade_id) for trade_id in old_ids]
        now = _now()
        stored = trade.model_copy(update={
            "id": _new_id(),
            "account_id": account_id,
            "is_deleted": False,
            "deleted_at": None,
            "created_at": now,
            "updated_at": now,
        })
        conn = self._get_connection()
        try:
            conn.executemany(
                "DELETE FROM trades WHERE id = ?", [(trade_id,) for trade_id in old_ids]
            )
            self._insert_trade(conn, stored)
            delta = self._pnl(stored) - sum(self._pnl(old) for old in old_trades)
            self._adjust_balance(conn, account_id, delta)
            conn.commit()
        except sqlite3.Error:
            conn.rollback()
            logger.exception("Failed to replace trades %s", old_ids)
            raise
        finally:
            conn.close()
        return stored

    # ==================== Symbols ====================

    @staticmethod
    def _row_to_symbol(row: sqlite3.Row) -> Symbol:
        return Symbol(
            id=row["id"],
            pip_size=row["pip_size"],
            pip_value_per_lot=row["pip_value_per_lot"],
            contract_size=row["contract_size"],
        )

    def save_symbol(self, symbol: Symbol) -> None:
        """Add or update a symbol in the catalog."""
        conn = self._get_connection()
        try:
            conn.execute(
                """
                INSERT OR REPLACE INTO symbols (id, pip_size, pip_value_per_lot, contract_size, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    symbol.id,
                    symbol.pip_size,
                    symbol.pip_value_per_lot,
                    symbol.contract_size,
                    _now().isoformat(),
                ),
            )
            conn.commit()
        finally:
            conn.close()

    def seed_symbols(self) -> bool:
        """Insert the default symbols if the catalog is empty.

        Returns:
            True if the catalog was seeded.
        """
        if self.list_symbols():
            return False
        for symbol in DEFAULT_SYMBOLS:
            self.save_symbol(symbol)
        logger.info("Initialized symbol catalog with %d symbols", len(DEFAULT_SYMBOLS))
        return True

    def get_symbol(self, symbol_id: str) -> Symbol:
        """Get symbol metadata.

        Raises:
            NotFoundError: If the symbol is not in the catalog.
        """
        conn = self._get_connection()
        try:
            row = conn.execute(
                "SELECT * FROM symbols WHERE id = ?", (symbol_id,)
            ).fetchone()
            if row is None:
                raise NotFoundError(f"Symbol {symbol_id} not found")
            return self._row_to_symbol(row)
        finally:
            conn.close()

    def list_symbols(self) -> list[Symbol]:
        """Get all symbols in the catalog."""
        conn = self._get_connection()
        try:
            rows = conn.execute("SELECT * FROM symbols ORDER BY id").fetchall()
            return [self._row_to_symbol(row) for row in rows]
        finally:
            conn.close()

    # ==================== Setups ====================

    def create_setup(self, setup: Setup) -> Setup:
        """Create a setup."""
        now = _now()
        stored = setup.model_copy(update={
            "id": _new_id(),
            "is_deleted": False,
            "created_at": now,
            "updated_at": now,
        })
        conn = self._get_connection()
        try:
            conn.execute(
                "INSERT INTO setups (id, user_id, is_deleted, data) VALUES (?, ?, 0, ?)",
                (stored.id, stored.user_id, json.dumps(stored.to_document())),
            )
            conn.commit()
        finally:
            conn.close()
        return stored

    def get_setup(self, setup_id: str) -> Setup:
        """Get a setup by ID, including soft-deleted ones."""
        conn = self._get_connection()
        try:
            row = conn.execute(
                "SELECT data FROM setups WHERE id = ?", (setup_id,)
            ).fetchone()
            if row is None:
                raise NotFoundError(f"Setup {setup_id} not found")
            return Setup.model_validate(json.loads(row["data"]))
        finally:
            conn.close()

    def list_setups(self, user_id: str) -> list[Setup]:
        """Get the active setups of a user."""
        conn = self._get_connection()
        try:
            rows = conn.execute(
                "SELECT data FROM setups WHERE user_id = ? AND is_deleted = 0",
                (user_id,),
            ).fetchall()
            setups = [Setup.model_validate(json.loads(row["data"])) for row in rows]
            return sorted(setups, key=lambda s: s.created_at)
        finally:
            conn.close()

    def update_setup(self, setup: Setup) -> Setup:
        """Save changes to an existing setup."""
        self.get_setup(setup.id)
        stored = setup.model_copy(update={"updated_at": _now()})
        conn = self._get_connection()
        try:
            conn.execute(
                "UPDATE setups SET is_deleted = ?, data = ? WHERE id = ?",
                (1 if stored.is_deleted else 0, json.dumps(stored.to_document()), stored.id),
            )
            conn.commit()
        finally:
            conn.close()
        return stored

    def soft_delete_setup(self, setup_id: str) -> None:
        """Hide a setup; trades keep their reference to it."""
        setup = self.get_setup(setup_id)
        self.update_setup(setup.model_copy(update={"is_deleted": True}))

    # ==================== Tags ====================

    def create_tag(self, tag: Tag) -> Tag:
        """Create a tag.

        Raises:
            DuplicateError: If the user already has a tag with this name.
        """
        stored = tag.model_copy(update={"id": _new_id(), "name": tag.name.strip()})
        conn = self._get_connection()
        try:
            conn.execute(
                "INSERT INTO tags (id, user_id, name, color) VALUES (?, ?, ?, ?)",
                (stored.id, stored.user_id, stored.name, stored.color),
            )
            conn.commit()
        except sqlite3.IntegrityError as e:
            raise DuplicateError(f"Tag '{stored.name}' already exists") from e
        finally:
            conn.close()
        return stored

    def list_tags(self, user_id: str) -> list[Tag]:
        """Get all tags of a user sorted by name."""
        conn = self._get_connection()
        try:
            rows = conn.execute(
                "SELECT id, user_id, name, color FROM tags WHERE user_id = ? ORDER BY name",
                (user_id,),
            ).fetchall()
            return [
                Tag(id=row["id"], user_id=row["user_id"], name=row["name"], color=row["color"])
                for row in rows
            ]
        finally:
            conn.close()

    def delete_tag(self, user_id: str, name: str) -> int:
        """Delete a tag and remove it from the user's trades and notes.

        Returns:
            Number of trades and notes that referenced the tag.
        """
        conn = self._get_connection()
        try:
            cursor = conn.execute(
                "DELETE FROM tags WHERE user_id = ? AND name = ?", (user_id, name)
            )
            if cursor.rowcount == 0:
                raise NotFoundError(f"Tag '{name}' not found")

            cleaned = 0
            for table in ("trades", "deleted_trades", "notes"):
                rows = conn.execute(
                    f"SELECT id, data FROM {table} WHERE user_id = ?", (user_id,)
                ).fetchall()
                for row in rows:
                    document = json.loads(row["data"])
                    tags = document.get("tags") or []
                    if name in tags:
                        document["tags"] = [t for t in tags if t != name]
                        conn.execute(
                            f"UPDATE {table} SET data = ? WHERE id = ?",
                            (json.dumps(document), row["id"]),
                        )
                        cleaned += 1
            conn.commit()
            return cleaned
        finally:
            conn.close()

    # ==================== Notes ====================

    def create_note(self, note: Note) -> Note:
        """Create a note."""
        now = _now()
        stored = note.model_copy(update={"id": _new_id(), "created_at": now, "updated_at": now})
        conn = self._get_connection()
        try:
            conn.execute(
                "INSERT INTO notes (id, user_id, data) VALUES (?, ?, ?)",
                (stored.id, stored.user_id, json.dumps(stored.to_document())),
            )
            conn.commit()
        finally:
            conn.close()
        return stored

    def get_note(self, note_id: str) -> Note:
        """Get a note by ID."""
        conn = self._get_connection()
        try:
            row = conn.execute("SELECT data FROM notes WHERE id = ?", (note_id,)).fetchone()
            if row is None:
                raise NotFoundError(f"Note {note_id} not found")
            return Note.model_validate(json.loads(row["data"]))
        finally:
            conn.close()

    def list_notes(self, user_id: str, tag: Optional[str] = None) -> list[Note]:
        """Get a user's notes, newest first, optionally filtered by tag."""
        conn = self._get_connection()
        try:
            rows = conn.execute(
                "SELECT data FROM notes WHERE user_id = ?", (user_id,)
            ).fetchall()
        finally:
            conn.close()
        notes = [Note.model_validate(json.loads(row["data"])) for row in rows]
        if tag is not None:
            notes = [note for note in notes if tag in note.tags]
        return sorted(notes, key=lambda n: n.updated_at, reverse=True)

    def update_note(self, note: Note) -> Note:
        """Save changes to an existing note."""
        self.get_note(note.id)
        stored = note.model_copy(update={"updated_at": _now()})
        conn = self._get_connection()
        try:
            conn.execute(
                "UPDATE notes SET data = ? WHERE id = ?",
                (json.dumps(stored.to_document()), stored.id),
            )
            conn.commit()
        finally:
            conn.close()
        return stored

    def delete_note(self, note_id: str) -> None:
        """Permanently delete a note."""
        conn = self._get_connection()
        try:
            cursor = conn.execute("DELETE FROM notes WHERE id = ?", (note_id,))
            if cursor.rowcount == 0:
                raise NotFoundError(f"Note {note_id} not found")
            conn.commit()
        finally:
            conn.close()

    # ==================== Stats ====================

    def get_stats(self) -> dict:
        """Get database statistics.

        Returns:
            Dictionary with table record counts.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            stats = {}
            for table in self.REQUIRED_TABLES:
                cursor.execute(f"SELECT COUNT(*) as count FROM {table}")
                stats[table] = cursor.fetchone()["count"]
            return stats
        finally:
            conn.close()
