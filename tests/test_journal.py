"""Tests for the trade journal service.

**Feature: coredrift-journal**
"""

import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from coredrift.db.store import DataStore
from coredrift.exceptions import InvalidTradeError, MergeError, NotFoundError
from coredrift.models import Account, Rule, RuleGroup, Setup
from coredrift.services import TradeJournal
from coredrift.services.backup import create_backup

UTC = timezone.utc
USER = "trader"


@pytest.fixture
def journal():
    """Journal over a fresh database with the default symbols."""
    with tempfile.TemporaryDirectory() as tmpdir:
        store = DataStore(Path(tmpdir) / "test.db")
        store.seed_symbols()
        yield TradeJournal(store, USER)


@pytest.fixture
def account(journal: TradeJournal) -> Account:
    return journal.store.create_account(Account(user_id=USER, name="Main", initial_balance=100000))


def eurusd_raw(**overrides) -> dict:
    raw = {
        "symbol": "EURUSD",
        "direction": "Buy",
        "volume": 1,
        "entryPrice": 1.1000,
        "exitPrice": 1.1010,
        "sl": 1.0950,
        "netPnL": 100,
        "entryTimestamp": "2024-05-02T13:05:00Z",
        "exitTimestamp": "2024-05-02T14:35:00Z",
    }
    raw.update(overrides)
    return raw


class TestRecordTrade:
    """Manual entry always stores freshly derived fields."""

    def test_record_derives_fields(self, journal: TradeJournal, account: Account):
        trade = journal.record_trade(account.id, eurusd_raw())
        assert trade.risk_amount == 500.0
        assert trade.risk_to_reward == 0.2
        assert trade.status == "WIN"
        assert trade.session == "NY"
        assert trade.duration == 90
        assert trade.percent_risk == 0.5
        assert trade.percent_pnl == 0.1
        assert trade.pip_size == 0.0001
        assert trade.user_id == USER
        assert journal.account(account.id).current_balance == 100100

    def test_catalog_metadata_is_attached(self, journal: TradeJournal, account: Account):
        trade = journal.record_trade(
            account.id, eurusd_raw(symbol="xauusd", entryPrice=2000.0, sl=1995.0, exitPrice=2001.0)
        )
        assert trade.symbol == "XAUUSD"
        assert trade.pip_size == 0.1
        assert trade.contract_size == 100
        assert trade.risk_amount == 500.0

    def test_stale_derived_input_is_ignored(self, journal: TradeJournal, account: Account):
        trade = journal.record_trade(account.id, eurusd_raw(status="LOSS", riskAmount=1))
        assert trade.status == "WIN"
        assert trade.risk_amount == 500.0

    def test_unknown_account(self, journal: TradeJournal):
        with pytest.raises(NotFoundError):
            journal.record_trade("missing", eurusd_raw())

    def test_other_users_account(self, journal: TradeJournal):
        other = journal.store.create_account(
            Account(user_id="someone-else", name="Theirs", initial_balance=1000)
        )
        with pytest.raises(NotFoundError):
            journal.record_trade(other.id, eurusd_raw())

    def test_zero_balance_has_no_percentages(self, journal: TradeJournal):
        empty = journal.store.create_account(Account(user_id=USER, name="Empty", initial_balance=0))
        trade = journal.record_trade(empty.id, eurusd_raw())
        assert trade.percent_risk is None
        assert trade.percent_pnl is None
        assert trade.risk_to_reward == 0.2
        assert trade.status == "WIN"


class TestRules:
    """Selected rules must belong to the trade's setup."""

    @pytest.fixture
    def breakout(self, journal: TradeJournal) -> Setup:
        return journal.store.create_setup(Setup(
            user_id=USER,
            name="Breakout",
            rule_groups=[RuleGroup(name="Entry", rules=[
                Rule(id="r1", text="Range defined"),
                Rule(id="r2", text="Volume spike"),
            ])],
        ))

    def test_valid_rules(self, journal: TradeJournal, account: Account, breakout: Setup):
        trade = journal.record_trade(
            account.id, eurusd_raw(setups=breakout.id, selectedRules=["r1", "r2"])
        )
        assert trade.selected_rules == ["r1", "r2"]

    def test_foreign_rule(self, journal: TradeJournal, account: Account, breakout: Setup):
        with pytest.raises(InvalidTradeError):
            journal.record_trade(account.id, eurusd_raw(setups=breakout.id, selectedRules=["r9"]))

    def test_rules_without_setup(self, journal: TradeJournal, account: Account):
        with pytest.raises(InvalidTradeError):
            journal.record_trade(account.id, eurusd_raw(selectedRules=["r1"]))


class TestEditAndRecalculate:
    """Edits and balance changes recompute derived fields."""

    def test_edit_recomputes(self, journal: TradeJournal, account: Account):
        trade = journal.record_trade(account.id, eurusd_raw())
        edited = journal.edit_trade(account.id, trade.id, {"netPnL": -500})
        assert edited.status == "LOSS"
        assert edited.risk_to_reward == -1.0
        assert edited.id == trade.id
        assert journal.account(account.id).current_balance == 99500

    def test_edit_symbol_refreshes_metadata(self, journal: TradeJournal, account: Account):
        trade = journal.record_trade(account.id, eurusd_raw())
        edited = journal.edit_trade(
            account.id, trade.id, {"symbol": "XAUUSD", "entryPrice": 2000.0, "sl": 1995.0}
        )
        assert edited.pip_size == 0.1
        assert edited.risk_amount == 500.0

    def test_edit_keeps_unchanged_fields(self, journal: TradeJournal, account: Account):
        trade = journal.record_trade(account.id, eurusd_raw(tags=["london"], notes="clean"))
        edited = journal.edit_trade(account.id, trade.id, {"commission": -7})
        assert edited.tags == ["london"]
        assert edited.notes == "clean"
        assert edited.commission == -7
        assert edited.created_at == trade.created_at

    def test_set_initial_balance(self, journal: TradeJournal, account: Account):
        journal.record_trade(account.id, eurusd_raw())
        journal.record_trade(
            account.id,
            eurusd_raw(
                netPnL=-250,
                entryTimestamp="2024-05-02T15:00:00Z",
                exitTimestamp="2024-05-02T16:00:00Z",
            ),
        )
        assert journal.set_initial_balance(account.id, 50000) == 2

        trades = journal.list_trades([account.id])
        assert [t.percent_pnl for t in trades] == [0.2, -0.5]
        assert [t.percent_risk for t in trades] == [1.0, 1.0]
        assert journal.account(account.id).current_balance == 49850

    @given(st.lists(st.floats(min_value=-2000, max_value=2000, allow_nan=False), min_size=1, max_size=5))
    @settings(max_examples=15, deadline=None)
    def test_recalculate_is_stable(self, pnls: list[float]):
        """
        *For any* set of trades, recalculating an account leaves every
        derived field unchanged.
        """
        with tempfile.TemporaryDirectory() as tmpdir:
            store = DataStore(Path(tmpdir) / "test.db")
            store.seed_symbols()
            journal = TradeJournal(store, USER)
            acc = store.create_account(Account(user_id=USER, name="Main", initial_balance=25000))
            for pnl in pnls:
                journal.record_trade(acc.id, eurusd_raw(netPnL=pnl))
            before = [t.to_document() for t in journal.list_trades([acc.id])]
            journal.recalculate_account(acc.id)
            after = [t.to_document() for t in journal.list_trades([acc.id])]
            for old, new in zip(before, after):
                for field in ("riskAmount", "riskToReward", "status", "percentPnL", "session"):
                    assert old[field] == new[field]


class TestMergeAndImport:
    """Merging partial fills and importing CSV exports."""

    def test_merge_replaces_trades(self, journal: TradeJournal, account: Account):
        first = journal.record_trade(account.id, eurusd_raw(netPnL=100, tags=["a"]))
        second = journal.record_trade(
            account.id,
            eurusd_raw(
                entryPrice=1.1010,
                netPnL=50,
                entryTimestamp="2024-05-02T15:00:00Z",
                exitTimestamp="2024-05-02T16:00:00Z",
                tags=["b", "a"],
            ),
        )
        merged = journal.merge_trades(account.id, [first.id, second.id])

        assert merged.volume == 2
        assert merged.entry_price == pytest.approx(1.1005)
        assert merged.net_pnl == 150
        assert merged.tags == ["a", "b"]
        assert merged.entry_timestamp == datetime(2024, 5, 2, 13, 5, tzinfo=UTC)
        assert merged.exit_timestamp == datetime(2024, 5, 2, 16, 0, tzinfo=UTC)
        assert merged.risk_amount is not None
        assert [t.id for t in journal.list_trades()] == [merged.id]
        assert journal.account(account.id).current_balance == 100150

    def test_merge_rejects_mixed_symbols(self, journal: TradeJournal, account: Account):
        first = journal.record_trade(account.id, eurusd_raw())
        second = journal.record_trade(account.id, eurusd_raw(symbol="XAUUSD"))
        with pytest.raises(MergeError):
            journal.merge_trades(account.id, [first.id, second.id])
        assert len(journal.list_trades()) == 2

    def test_import_csv(self, journal: TradeJournal, account: Account):
        text = (
            "entryTimestamp,exitTimestamp,direction,symbol,volume,entryPrice,exitPrice,sl,netPnL,tags\n"
            "2024-05-02T08:00:00Z,2024-05-02T09:00:00Z,buy,EURUSD,1,1.1,1.101,1.095,100,london;a+\n"
            "2024-05-03T08:00:00Z,,sell,EURUSD,1,1.1,1.099,1.105,100,\n"
        )
        imported = journal.import_csv(account.id, text)
        assert len(imported) == 1
        assert imported[0].session == "LN"
        assert imported[0].tags == ["london", "a+"]
        assert imported[0].status == "WIN"


class TestRecycleBinAndSummary:
    """Recycle bin and statistics through the journal."""

    def test_delete_restore_purge(self, journal: TradeJournal, account: Account):
        trade = journal.record_trade(account.id, eurusd_raw())
        journal.delete_trade(account.id, trade.id)
        assert journal.list_trades() == []
        assert [t.id for t in journal.recycle_bin()] == [trade.id]

        journal.restore_trade(account.id, trade.id)
        assert [t.id for t in journal.list_trades()] == [trade.id]

        journal.delete_trade(account.id, trade.id)
        journal.purge_trade(account.id, trade.id)
        assert journal.recycle_bin() == []

    def test_restore_recomputes_against_current_balance(
        self, journal: TradeJournal, account: Account
    ):
        trade = journal.record_trade(account.id, eurusd_raw())
        assert trade.percent_risk == 0.5
        assert trade.percent_pnl == 0.1
        journal.delete_trade(account.id, trade.id)
        journal.set_initial_balance(account.id, 50000)

        restored = journal.restore_trade(account.id, trade.id)
        assert restored.percent_risk == 1.0
        assert restored.percent_pnl == 0.2
        stored = journal.store.get_trade(account.id, trade.id)
        assert stored.percent_risk == 1.0
        assert stored.percent_pnl == 0.2
        assert journal.store.get_account(account.id).current_balance == 50100

    def test_summary_excludes_binned_trades(self, journal: TradeJournal, account: Account):
        journal.record_trade(account.id, eurusd_raw(netPnL=200))
        journal.record_trade(account.id, eurusd_raw(netPnL=-100))
        binned = journal.record_trade(account.id, eurusd_raw(netPnL=-400))
        journal.delete_trade(account.id, binned.id)

        summary = journal.summary()
        assert summary["total_trades"] == 2
        assert summary["profit_factor"] == "2.00"
        assert summary["win_percentage"] == "50.00%"
        assert summary["net_pnl"] == 100

    def test_backup(self, journal: TradeJournal, account: Account):
        journal.record_trade(account.id, eurusd_raw())
        backup = create_backup(journal.store, USER, now=datetime(2024, 6, 1, tzinfo=UTC))
        assert backup["timestamp"] == "2024-06-01T00:00:00+00:00"
        assert backup["userId"] == USER
        assert [a["name"] for a in backup["accounts"]] == ["Main"]
        assert backup["trades"][0]["netPnL"] == 100
        assert backup["trades"][0]["status"] == "WIN"
        assert backup["setups"] == []
