"""Import and backup commands for CoreDrift CLI."""

import json
from pathlib import Path
from typing import Optional

import click

from coredrift.cli.common import console, fail, get_journal, resolve_account, trades_table
from coredrift.exceptions import CoreDriftError


@click.command("import")
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("-a", "--account", "account_ref", default=None, help="Account name or ID.")
@click.option("-n", "--dry-run", is_flag=True, default=False, help="Preview without saving.")
@click.pass_context
def import_trades(ctx: click.Context, csv_file: Path, account_ref: Optional[str], dry_run: bool) -> None:
    """Import trades from CSV_FILE.

    Accepts MetaTrader 5 history reports (Positions section) and flat
    CSV files with trade field names as headers. Incomplete rows are
    skipped.

    \b
    Examples:
      coredrift import ReportHistory.csv --account Main
      coredrift import trades.csv --dry-run
    """
    from coredrift.services.importer import parse_trades_csv

    journal = get_journal(ctx)
    acc = resolve_account(ctx, journal, account_ref)
    text = csv_file.read_text(encoding="utf-8-sig")

    try:
        if dry_run:
            rows = parse_trades_csv(text)
            trades = [journal.prepare(acc, row) for row in rows]
        else:
            trades = journal.import_csv(acc.id, text)
    except (CoreDriftError, ValueError) as e:
        fail(f"Failed to import trades:\n\n{e}")

    if not trades:
        console.print("[yellow]No complete trades found in the file[/yellow]")
        return
    title = "Preview" if dry_run else f"Imported into {acc.name}"
    console.print(trades_table(trades, title=f"{title} ({len(trades)} trades)"))


@click.command()
@click.argument("output", type=click.Path(dir_okay=False, path_type=Path))
@click.pass_context
def backup(ctx: click.Context, output: Path) -> None:
    """Write a JSON backup of accounts, trades and setups to OUTPUT."""
    from coredrift.services.backup import create_backup

    journal = get_journal(ctx)
    document = create_backup(journal.store, journal.user_id)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(document, indent=2, ensure_ascii=False))
    console.print(
        f"[green]✓ Backed up {len(document['accounts'])} accounts and "
        f"{len(document['trades'])} trades to {output}[/green]"
    )
