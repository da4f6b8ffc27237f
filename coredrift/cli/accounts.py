"""Account commands for CoreDrift CLI."""

from typing import Optional

import click
from rich.table import Table

from coredrift.cli.common import console, fail, format_money, get_journal, resolve_account
from coredrift.exceptions import CoreDriftError
from coredrift.models import ACCOUNT_TYPES, Account


@click.group()
def account() -> None:
    """Manage trading accounts.

    \b
    Examples:
      coredrift account add "FTMO 100k" --balance 100000 --type "Prop Evaluation"
      coredrift account list
      coredrift account balance "FTMO 100k" 200000
      coredrift account remove "FTMO 100k"
    """
    pass


@account.command("add")
@click.argument("name")
@click.option("-b", "--balance", type=float, required=True, help="Initial balance.")
@click.option(
    "-t", "--type", "account_type",
    type=click.Choice(ACCOUNT_TYPES, case_sensitive=False),
    default="Live",
    help="Account type.",
)
@click.pass_context
def add_account(ctx: click.Context, name: str, balance: float, account_type: str) -> None:
    """Create an account named NAME."""
    journal = get_journal(ctx)
    # click.Choice returns the input casing; map back to the canonical label
    account_type = next(t for t in ACCOUNT_TYPES if t.lower() == account_type.lower())
    try:
        created = journal.store.create_account(Account(
            user_id=journal.user_id,
            name=name,
            initial_balance=balance,
            account_type=account_type,
        ))
    except (CoreDriftError, ValueError) as e:
        fail(f"Failed to create account:\n\n{e}")
    console.print(f"[green]✓ Created account '{created.name}'[/green] [dim]({created.id[:8]})[/dim]")


@account.command("list")
@click.pass_context
def list_accounts(ctx: click.Context) -> None:
    """List accounts with their balances."""
    journal = get_journal(ctx)
    accounts = journal.accounts()
    if not accounts:
        console.print("[dim]No accounts yet[/dim]")
        return

    table = Table(title="Accounts", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Type")
    table.add_column("Initial", justify="right")
    table.add_column("Current", justify="right")
    table.add_column("Change", justify="right")

    for acc in accounts:
        current = acc.current_balance if acc.current_balance is not None else acc.initial_balance
        table.add_row(
            acc.id[:8],
            acc.name,
            acc.account_type,
            f"{acc.initial_balance:,.2f}",
            f"{current:,.2f}",
            format_money(current - acc.initial_balance),
        )
    console.print(table)


@account.command("balance")
@click.argument("ref")
@click.argument("initial_balance", type=float)
@click.pass_context
def set_balance(ctx: click.Context, ref: str, initial_balance: float) -> None:
    """Change the initial balance of account REF and recompute its trades."""
    journal = get_journal(ctx)
    acc = resolve_account(ctx, journal, ref)
    try:
        count = journal.set_initial_balance(acc.id, initial_balance)
    except (CoreDriftError, ValueError) as e:
        fail(f"Failed to update balance:\n\n{e}")
    console.print(
        f"[green]✓ Initial balance of '{acc.name}' set to {initial_balance:,.2f}[/green] "
        f"[dim]({count} trades recalculated)[/dim]"
    )


@account.command("remove")
@click.argument("ref")
@click.option("-y", "--yes", is_flag=True, default=False, help="Do not ask for confirmation.")
@click.pass_context
def remove_account(ctx: click.Context, ref: Optional[str], yes: bool) -> None:
    """Delete account REF together with all of its trades."""
    journal = get_journal(ctx)
    acc = resolve_account(ctx, journal, ref)
    if not yes:
        click.confirm(f"Delete '{acc.name}' and all of its trades?", abort=True)
    journal.store.delete_account(acc.id)
    console.print(f"[green]✓ Deleted account '{acc.name}'[/green]")
