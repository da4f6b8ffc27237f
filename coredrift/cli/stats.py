"""Performance statistics command for CoreDrift CLI."""

import click
from rich.panel import Panel

from coredrift.cli.common import console, format_money, get_journal, resolve_account


@click.command()
@click.option("-a", "--account", "account_refs", multiple=True, help="Account name or ID (repeatable).")
@click.pass_context
def stats(ctx: click.Context, account_refs: tuple[str, ...]) -> None:
    """Show net P&L, profit factor, win rate and average win/loss.

    \b
    Examples:
      coredrift stats                 # All accounts
      coredrift stats --account Main  # One account
    """
    journal = get_journal(ctx)
    account_ids = [resolve_account(ctx, journal, ref).id for ref in account_refs] or None
    summary = journal.summary(account_ids)

    text = (
        f"Net P&L:           {format_money(summary['net_pnl'])}\n"
        f"Profit factor:     {summary['profit_factor']}\n"
        f"Win %:             {summary['win_percentage']}\n"
        f"Avg win / loss:    {summary['avg_win_loss_ratio']}\n\n"
        f"[dim]Trades: {summary['total_trades']} | "
        f"Wins: {summary['winning_trades']} | "
        f"Losses: {summary['losing_trades']} | "
        f"Break-even: {summary['breakeven_trades']}[/dim]"
    )
    console.print(Panel(text, title="[bold cyan]Performance[/bold cyan]", border_style="cyan"))
