"""Symbol, setup, tag and note commands for CoreDrift CLI."""

import uuid
from typing import Optional

import click
from rich.table import Table

from coredrift.cli.common import console, fail, get_journal
from coredrift.exceptions import CoreDriftError
from coredrift.models import Note, Rule, RuleGroup, Setup, Symbol, Tag

# ==================== Symbols ====================


@click.group()
def symbol() -> None:
    """Manage symbol pip metadata.

    \b
    Examples:
      coredrift symbol list
      coredrift symbol set GBPUSD --pip-size 0.0001 --pip-value 10 --contract-size 100000
    """
    pass


@symbol.command("list")
@click.pass_context
def list_symbols(ctx: click.Context) -> None:
    """List symbols in the catalog."""
    journal = get_journal(ctx)
    table = Table(title="Symbols", show_header=True, header_style="bold cyan")
    table.add_column("Symbol", style="bold")
    table.add_column("Pip size", justify="right")
    table.add_column("Pip value / lot", justify="right")
    table.add_column("Contract size", justify="right")
    for s in journal.store.list_symbols():
        table.add_row(
            s.id,
            f"{s.pip_size:g}",
            f"{s.pip_value_per_lot:g}",
            f"{s.contract_size:g}" if s.contract_size else "-",
        )
    console.print(table)


@symbol.command("set")
@click.argument("symbol_id")
@click.option("--pip-size", type=float, required=True, help="Price distance of one pip.")
@click.option("--pip-value", type=float, required=True, help="Value of one pip at one lot.")
@click.option("--contract-size", type=float, default=None, help="Units per lot.")
@click.pass_context
def set_symbol(
    ctx: click.Context,
    symbol_id: str,
    pip_size: float,
    pip_value: float,
    contract_size: Optional[float],
) -> None:
    """Add or update SYMBOL_ID in the catalog."""
    journal = get_journal(ctx)
    try:
        journal.store.save_symbol(Symbol(
            id=symbol_id.upper(),
            pip_size=pip_size,
            pip_value_per_lot=pip_value,
            contract_size=contract_size,
        ))
    except ValueError as e:
        fail(f"Invalid symbol:\n\n{e}")
    console.print(f"[green]✓ Saved {symbol_id.upper()}[/green]")


# ==================== Setups ====================


def parse_rules(rules: tuple[str, ...]) -> list[RuleGroup]:
    """Group ``"Group: rule text"`` strings into rule groups, keeping order.

    Rules without a group prefix go into a "General" group.
    """
    groups: dict[str, list[Rule]] = {}
    for entry in rules:
        group, sep, text = entry.partition(":")
        if not sep:
            group, text = "General", entry
        groups.setdefault(group.strip(), []).append(
            Rule(id=uuid.uuid4().hex[:8], text=text.strip())
        )
    return [RuleGroup(name=name, rules=items) for name, items in groups.items()]


@click.group()
def setup() -> None:
    """Manage setups (strategy playbooks).

    \b
    Examples:
      coredrift setup add "London breakout" --rule "Entry: Asian range defined" \\
          --rule "Risk: 1% max"
      coredrift setup list
    """
    pass


@setup.command("add")
@click.argument("name")
@click.option("--description", default="", help="What the setup is about.")
@click.option("--color", default=None, help="Display color.")
@click.option("--rule", "rules", multiple=True, help="'Group: rule text' (repeatable).")
@click.pass_context
def add_setup(
    ctx: click.Context,
    name: str,
    description: str,
    color: Optional[str],
    rules: tuple[str, ...],
) -> None:
    """Create setup NAME."""
    journal = get_journal(ctx)
    try:
        created = journal.store.create_setup(Setup(
            user_id=journal.user_id,
            name=name,
            description=description,
            color=color,
            rule_groups=parse_rules(rules),
        ))
    except ValueError as e:
        fail(f"Invalid setup:\n\n{e}")
    console.print(f"[green]✓ Created setup '{created.name}'[/green] [dim]({created.id})[/dim]")


@setup.command("list")
@click.pass_context
def list_setups(ctx: click.Context) -> None:
    """List setups with their rules."""
    journal = get_journal(ctx)
    setups = journal.store.list_setups(journal.user_id)
    if not setups:
        console.print("[dim]No setups yet[/dim]")
        return

    table = Table(title="Setups", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Rules")
    for s in setups:
        rules = "\n".join(
            f"[dim]{group.name}:[/dim] {rule.text} [dim]({rule.id})[/dim]"
            for group in s.rule_groups
            for rule in group.rules
        )
        table.add_row(s.id, s.name, rules or "-")
    console.print(table)


@setup.command("remove")
@click.argument("setup_id")
@click.pass_context
def remove_setup(ctx: click.Context, setup_id: str) -> None:
    """Remove setup SETUP_ID. Trades keep their reference."""
    journal = get_journal(ctx)
    try:
        journal.store.soft_delete_setup(setup_id)
    except CoreDriftError as e:
        fail(str(e))
    console.print(f"[green]✓ Removed setup {setup_id}[/green]")


# ==================== Tags ====================


@click.group()
def tag() -> None:
    """Manage tags."""
    pass


@tag.command("add")
@click.argument("name")
@click.option("--color", default=None, help="Display color.")
@click.pass_context
def add_tag(ctx: click.Context, name: str, color: Optional[str]) -> None:
    """Create tag NAME."""
    journal = get_journal(ctx)
    try:
        journal.store.create_tag(Tag(user_id=journal.user_id, name=name, color=color))
    except (CoreDriftError, ValueError) as e:
        fail(str(e))
    console.print(f"[green]✓ Created tag '{name}'[/green]")


@tag.command("list")
@click.pass_context
def list_tags(ctx: click.Context) -> None:
    """List tags."""
    journal = get_journal(ctx)
    tags = journal.store.list_tags(journal.user_id)
    if not tags:
        console.print("[dim]No tags yet[/dim]")
        return
    for t in tags:
        console.print(f"• {t.name}" + (f" [dim]({t.color})[/dim]" if t.color else ""))


@tag.command("remove")
@click.argument("name")
@click.pass_context
def remove_tag(ctx: click.Context, name: str) -> None:
    """Delete tag NAME and remove it from trades and notes."""
    journal = get_journal(ctx)
    try:
        cleaned = journal.store.delete_tag(journal.user_id, name)
    except CoreDriftError as e:
        fail(str(e))
    console.print(f"[green]✓ Deleted tag '{name}'[/green] [dim](removed from {cleaned} items)[/dim]")


# ==================== Notes ====================


@click.group()
def note() -> None:
    """Write and browse journal notes."""
    pass


@note.command("add")
@click.argument("title")
@click.option("-m", "--message", "content", default=None, help="Note text (opens an editor if omitted).")
@click.option("--tag", "tags", multiple=True, help="Tag name (repeatable).")
@click.option("--trade", "trade_id", default=None, help="ID of the trade the note is about.")
@click.pass_context
def add_note(
    ctx: click.Context,
    title: str,
    content: Optional[str],
    tags: tuple[str, ...],
    trade_id: Optional[str],
) -> None:
    """Create a note titled TITLE."""
    journal = get_journal(ctx)
    if content is None:
        content = click.edit() or ""
    created = journal.store.create_note(Note(
        user_id=journal.user_id,
        title=title,
        content=content,
        tags=list(tags),
        trade_id=trade_id,
    ))
    console.print(f"[green]✓ Saved note '{created.title}'[/green] [dim]({created.id[:8]})[/dim]")


@note.command("list")
@click.option("--tag", default=None, help="Only notes with this tag.")
@click.pass_context
def list_notes(ctx: click.Context, tag: Optional[str]) -> None:
    """List notes, newest first."""
    journal = get_journal(ctx)
    notes = journal.store.list_notes(journal.user_id, tag=tag)
    if not notes:
        console.print("[dim]No notes found[/dim]")
        return

    table = Table(title="Notes", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Updated")
    table.add_column("Title", style="bold")
    table.add_column("Tags")
    table.add_column("Preview", max_width=40)
    for n in notes:
        text = n.content if isinstance(n.content, str) else ""
        table.add_row(
            n.id[:8],
            n.updated_at.strftime("%Y-%m-%d") if n.updated_at else "-",
            n.title or "-",
            ", ".join(n.tags) or "-",
            (text[:37] + "...") if len(text) > 40 else (text or "-"),
        )
    console.print(table)


@note.command("remove")
@click.argument("note_ref")
@click.pass_context
def remove_note(ctx: click.Context, note_ref: str) -> None:
    """Delete note NOTE_REF (ID or unique prefix)."""
    journal = get_journal(ctx)
    matches = [n for n in journal.store.list_notes(journal.user_id) if n.id.startswith(note_ref)]
    if len(matches) != 1:
        fail(f"Note '{note_ref}' not found or ambiguous")
    journal.store.delete_note(matches[0].id)
    console.print(f"[green]✓ Deleted note '{matches[0].title}'[/green]")
