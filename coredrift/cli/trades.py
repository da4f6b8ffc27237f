"""Trade commands for CoreDrift CLI.

Handles manual trade entry, edits, listing, deletion and merging of
partial fills. Derived fields are always recomputed by the journal.
"""

from typing import Optional

import click
from rich.panel import Panel

from coredrift.cli.common import (
    console,
    fail,
    format_money,
    format_value,
    get_journal,
    resolve_account,
    resolve_trade,
    trades_table,
)
from coredrift.exceptions import CoreDriftError

# CLI option name -> trade field
OPTION_FIELDS = {
    "symbol": "symbol",
    "direction": "direction",
    "volume": "volume",
    "entry": "entryPrice",
    "exit_price": "exitPrice",
    "sl": "sl",
    "pnl": "netPnL",
    "commission": "commission",
    "swap": "swap",
    "opened": "entryTimestamp",
    "closed": "exitTimestamp",
    "setup": "setups",
    "rules": "selectedRules",
    "tags": "tags",
    "notes": "notes",
    "image": "imageUrl",
}


def trade_options(func):
    """Options shared by ``trade add`` and ``trade edit``."""
    options = [
        click.option("-s", "--symbol", default=None, help="Symbol, e.g. EURUSD."),
        click.option(
            "-d", "--direction",
            type=click.Choice(["Buy", "Sell"], case_sensitive=False),
            default=None,
            help="Trade direction.",
        ),
        click.option("-v", "--volume", type=float, default=None, help="Volume in lots."),
        click.option("--entry", type=float, default=None, help="Entry price."),
        click.option("--exit", "exit_price", type=float, default=None, help="Exit price."),
        click.option("--sl", type=float, default=None, help="Stop-loss price."),
        click.option("--pnl", type=float, default=None, help="Net P&L in account currency."),
        click.option("--commission", type=float, default=None, help="Commission paid."),
        click.option("--swap", type=float, default=None, help="Swap charged."),
        click.option("--opened", default=None, help="Entry time, ISO-8601 (UTC if no offset)."),
        click.option("--closed", default=None, help="Exit time, ISO-8601 (UTC if no offset)."),
        click.option("--setup", default=None, help="Setup ID."),
        click.option("--rule", "rules", multiple=True, help="Followed rule ID (repeatable)."),
        click.option("--tag", "tags", multiple=True, help="Tag name (repeatable)."),
        click.option("--notes", default=None, help="Notes text."),
        click.option("--image", default=None, help="Chart screenshot URL."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def options_to_fields(options: dict) -> dict:
    """Map provided CLI options to raw trade fields, skipping unset ones."""
    fields = {}
    for option, field in OPTION_FIELDS.items():
        value = options.get(option)
        if value is None or value == ():
            continue
        if isinstance(value, tuple):
            value = list(value)
        fields[field] = value
    return fields


@click.group()
def trade() -> None:
    """Journal and manage trades.

    \b
    Examples:
      coredrift trade add -s EURUSD -d buy -v 1 --entry 1.1 --exit 1.102 \\
          --sl 1.095 --pnl 200 --opened 2024-05-02T13:05 --closed 2024-05-02T14:10
      coredrift trade list --account Main
      coredrift trade edit 3f2a --pnl 180
      coredrift trade merge 3f2a 9c1d
    """
    pass


@trade.command("add")
@click.option("-a", "--account", "account_ref", default=None, help="Account name or ID.")
@trade_options
@click.pass_context
def add_trade(ctx: click.Context, account_ref: Optional[str], **options) -> None:
    """Journal a new trade."""
    journal = get_journal(ctx)
    acc = resolve_account(ctx, journal, account_ref)
    raw = options_to_fields(options)
    if not raw.get("symbol"):
        fail("A trade needs at least a --symbol")
    try:
        created = journal.record_trade(acc.id, raw)
    except (CoreDriftError, ValueError) as e:
        fail(f"Failed to record trade:\n\n{e}")
    console.print(trades_table([created], title=f"Recorded in {acc.name}"))


@trade.command("edit")
@click.argument("trade_ref")
@trade_options
@click.pass_context
def edit_trade(ctx: click.Context, trade_ref: str, **options) -> None:
    """Change raw fields of trade TRADE_REF and recompute it."""
    journal = get_journal(ctx)
    existing = resolve_trade(journal.list_trades(), trade_ref)
    changes = options_to_fields(options)
    if not changes:
        console.print("[yellow]Nothing to change[/yellow]")
        return
    try:
        updated = journal.edit_trade(existing.account_id, existing.id, changes)
    except (CoreDriftError, ValueError) as e:
        fail(f"Failed to update trade:\n\n{e}")
    console.print(trades_table([updated], title="Updated"))


@trade.command("show")
@click.argument("trade_ref")
@click.pass_context
def show_trade(ctx: click.Context, trade_ref: str) -> None:
    """Show every field of trade TRADE_REF."""
    journal = get_journal(ctx)
    t = resolve_trade(journal.list_trades(), trade_ref)

    lines = [
        f"[bold]{t.symbol}[/bold] {t.direction or ''}  [dim]{t.id}[/dim]",
        "",
        f"Opened:      {t.entry_timestamp.isoformat() if t.entry_timestamp else '-'}",
        f"Closed:      {t.exit_timestamp.isoformat() if t.exit_timestamp else '-'}",
        f"Volume:      {format_value(t.volume)}",
        f"Entry/Exit:  {format_value(t.entry_price)} → {format_value(t.exit_price)}",
        f"Stop loss:   {format_value(t.sl)}",
        f"Commission:  {format_value(t.commission)}   Swap: {format_value(t.swap)}",
        f"Net P&L:     {format_money(t.net_pnl)}",
        "",
        f"Risk:        {format_money(t.risk_amount)} ({format_value(t.percent_risk, '%')})",
        f"R multiple:  {format_value(t.risk_to_reward)}",
        f"P&L %:       {format_value(t.percent_pnl, '%')}",
        f"Duration:    {format_value(t.duration, ' min')}",
        f"Session:     {t.session or '-'}",
        f"Status:      {t.status or '-'}",
    ]
    if t.setups:
        lines.append(f"Setup:       {t.setups} ({len(t.selected_rules)} rules followed)")
    if t.tags:
        lines.append(f"Tags:        {', '.join(t.tags)}")
    if t.notes:
        lines.append(f"\n{t.notes}")

    console.print(Panel("\n".join(lines), title="[bold cyan]Trade[/bold cyan]", border_style="cyan"))


@trade.command("list")
@click.option("-a", "--account", "account_refs", multiple=True, help="Account name or ID (repeatable).")
@click.option("--symbol", default=None, help="Only trades on this symbol.")
@click.option("--status", type=click.Choice(["WIN", "LOSS", "BE"], case_sensitive=False), default=None)
@click.pass_context
def list_trades(
    ctx: click.Context,
    account_refs: tuple[str, ...],
    symbol: Optional[str],
    status: Optional[str],
) -> None:
    """List active trades."""
    journal = get_journal(ctx)
    account_ids = [resolve_account(ctx, journal, ref).id for ref in account_refs] or None
    trades = journal.list_trades(account_ids)
    if symbol:
        trades = [t for t in trades if t.symbol == symbol.upper()]
    if status:
        trades = [t for t in trades if t.status == status.upper()]

    if not trades:
        console.print("[dim]No trades found[/dim]")
        return
    console.print(trades_table(trades))


@trade.command("delete")
@click.argument("trade_ref")
@click.pass_context
def delete_trade(ctx: click.Context, trade_ref: str) -> None:
    """Move trade TRADE_REF to the recycle bin (restorable for 7 days)."""
    journal = get_journal(ctx)
    t = resolve_trade(journal.list_trades(), trade_ref)
    journal.delete_trade(t.account_id, t.id)
    console.print(f"[green]✓ Moved {t.symbol} trade {t.id[:8]} to the recycle bin[/green]")


@trade.command("merge")
@click.argument("trade_refs", nargs=-1, required=True)
@click.pass_context
def merge(ctx: click.Context, trade_refs: tuple[str, ...]) -> None:
    """Merge partial fills TRADE_REFS into one trade.

    All trades must be in the same account, on the same symbol and
    entered on the same day.
    """
    journal = get_journal(ctx)
    all_trades = journal.list_trades()
    selected = [resolve_trade(all_trades, ref) for ref in trade_refs]
    account_ids = {t.account_id for t in selected}
    if len(account_ids) != 1:
        fail("Trades from different accounts cannot be merged")
    try:
        merged = journal.merge_trades(account_ids.pop(), [t.id for t in selected])
    except (CoreDriftError, ValueError) as e:
        fail(f"Failed to merge trades:\n\n{e}")
    console.print(trades_table([merged], title=f"Merged {len(selected)} trades"))
