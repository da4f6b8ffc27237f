"""Shared helpers for CoreDrift CLI commands."""

from typing import NoReturn, Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from coredrift.models import Account, Trade

console = Console()


def fail(message: str, title: str = "Error") -> NoReturn:
    """Print an error panel and exit with status 1."""
    console.print(Panel(
        f"[red]{message}[/red]",
        title=f"[bold red]{title}[/bold red]",
        border_style="red",
    ))
    raise SystemExit(1)


def get_journal(ctx: click.Context):
    """Build the journal service from the loaded config."""
    from coredrift.config import db_path
    from coredrift.db.store import DataStore
    from coredrift.services.journal import TradeJournal

    config = ctx.find_root().obj["config"]
    journal_config = config["journal"]
    store = DataStore(db_path(config))
    store.seed_symbols()
    return TradeJournal(store, user_id=journal_config["user_id"])


def resolve_account(ctx: click.Context, journal, ref: Optional[str]) -> Account:
    """Find an account by ID, ID prefix or name.

    Falls back to the configured default account, then to the only
    account if there is exactly one.
    """
    accounts = journal.accounts()
    if not ref:
        ref = ctx.find_root().obj["config"]["journal"].get("default_account") or None
    if not ref:
        if len(accounts) == 1:
            return accounts[0]
        if not accounts:
            fail("No accounts yet. Create one with [cyan]coredrift account add[/cyan].")
        fail("Several accounts exist; choose one with [cyan]--account[/cyan].")

    by_name = [a for a in accounts if a.name.lower() == ref.lower()]
    if len(by_name) == 1:
        return by_name[0]
    by_id = [a for a in accounts if a.id.startswith(ref)]
    if len(by_id) == 1:
        return by_id[0]
    fail(f"Account '{ref}' not found or ambiguous")


def resolve_trade(trades: list[Trade], ref: str) -> Trade:
    """Find a trade by ID or unique ID prefix."""
    matches = [t for t in trades if t.id == ref] or [t for t in trades if t.id.startswith(ref)]
    if len(matches) != 1:
        fail(f"Trade '{ref}' not found or ambiguous")
    return matches[0]


def format_money(value: Optional[float]) -> str:
    """Colored, signed currency amount."""
    if value is None:
        return "[dim]-[/dim]"
    color = "green" if value >= 0 else "red"
    sign = "+" if value >= 0 else ""
    return f"[{color}]{sign}{value:,.2f}[/{color}]"


def format_value(value, suffix: str = "") -> str:
    if value is None or value == "":
        return "[dim]-[/dim]"
    if isinstance(value, float):
        return f"{value:g}{suffix}"
    return f"{value}{suffix}"


STATUS_STYLES = {"WIN": "green", "LOSS": "red", "BE": "yellow"}


def trades_table(trades: list[Trade], title: str = "Trades") -> Table:
    """Render trades as a rich table."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Opened")
    table.add_column("Symbol", style="bold")
    table.add_column("Side")
    table.add_column("Vol", justify="right")
    table.add_column("Entry", justify="right")
    table.add_column("Exit", justify="right")
    table.add_column("SL", justify="right")
    table.add_column("P&L", justify="right")
    table.add_column("R", justify="right")
    table.add_column("Risk %", justify="right")
    table.add_column("Session")
    table.add_column("Min", justify="right")
    table.add_column("Status")

    for trade in trades:
        style = STATUS_STYLES.get(trade.status, "dim")
        table.add_row(
            trade.id[:8] if trade.id else "-",
            trade.entry_timestamp.strftime("%Y-%m-%d %H:%M") if trade.entry_timestamp else "-",
            trade.symbol or "-",
            trade.direction or "-",
            format_value(trade.volume),
            format_value(trade.entry_price),
            format_value(trade.exit_price),
            format_value(trade.sl),
            format_money(trade.net_pnl),
            format_value(trade.risk_to_reward),
            format_value(trade.percent_risk, "%"),
            trade.session or "-",
            format_value(trade.duration),
            f"[{style}]{trade.status or '-'}[/{style}]",
        )
    return table
