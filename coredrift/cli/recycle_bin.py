"""Recycle bin commands for CoreDrift CLI.

Deleted trades stay restorable for 7 days; after that they are hidden
and purged by ``coredrift bin purge --expired``.
"""

from typing import Optional

import click
from rich.table import Table

from coredrift.cli.common import console, fail, format_money, get_journal, resolve_trade
from coredrift.exceptions import CoreDriftError


@click.group("bin")
def bin_group() -> None:
    """Inspect, restore and purge deleted trades.

    \b
    Examples:
      coredrift bin list
      coredrift bin restore 3f2a
      coredrift bin purge 3f2a
      coredrift bin purge --expired
    """
    pass


@bin_group.command("list")
@click.pass_context
def list_bin(ctx: click.Context) -> None:
    """List trades deleted in the last 7 days."""
    journal = get_journal(ctx)
    trades = journal.recycle_bin()
    if not trades:
        console.print("[dim]Recycle bin is empty[/dim]")
        return

    table = Table(title="Recycle Bin", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Deleted")
    table.add_column("Symbol", style="bold")
    table.add_column("Opened")
    table.add_column("P&L", justify="right")
    for t in trades:
        table.add_row(
            t.id[:8],
            t.deleted_at.strftime("%Y-%m-%d %H:%M") if t.deleted_at else "-",
            t.symbol or "-",
            t.entry_timestamp.strftime("%Y-%m-%d %H:%M") if t.entry_timestamp else "-",
            format_money(t.net_pnl),
        )
    console.print(table)


@bin_group.command("restore")
@click.argument("trade_ref")
@click.pass_context
def restore(ctx: click.Context, trade_ref: str) -> None:
    """Restore trade TRADE_REF from the recycle bin."""
    journal = get_journal(ctx)
    t = resolve_trade(journal.recycle_bin(), trade_ref)
    try:
        journal.restore_trade(t.account_id, t.id)
    except CoreDriftError as e:
        fail(f"Failed to restore trade:\n\n{e}")
    console.print(f"[green]✓ Restored {t.symbol} trade {t.id[:8]}[/green]")


@bin_group.command("purge")
@click.argument("trade_ref", required=False)
@click.option("--expired", is_flag=True, default=False, help="Purge every trade older than 7 days.")
@click.pass_context
def purge(ctx: click.Context, trade_ref: Optional[str], expired: bool) -> None:
    """Permanently delete TRADE_REF, or all expired trades with --expired."""
    journal = get_journal(ctx)
    if expired:
        count = journal.store.purge_expired_trades()
        console.print(f"[green]✓ Purged {count} expired trades[/green]")
        return
    if not trade_ref:
        fail("Give a trade ID or use --expired")

    t = resolve_trade(journal.recycle_bin(), trade_ref)
    click.confirm(f"Permanently delete {t.symbol} trade {t.id[:8]}?", abort=True)
    journal.purge_trade(t.account_id, t.id)
    console.print(f"[green]✓ Permanently deleted trade {t.id[:8]}[/green]")
