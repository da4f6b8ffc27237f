"""Main CLI entry point for CoreDrift.

This module provides the main click group and lazy loading
of the command modules to keep startup fast.
"""

import importlib
import logging
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler

from coredrift.config import load_config


class LazyGroup(click.Group):
    """A click Group that lazily loads commands.

    Command modules are only imported when one of their commands is
    invoked.
    """

    def __init__(self, *args, lazy_subcommands: dict[str, str] | None = None, **kwargs):
        """Initialize the lazy group.

        Args:
            lazy_subcommands: Mapping of command names to module paths.
        """
        super().__init__(*args, **kwargs)
        self._lazy_subcommands = lazy_subcommands or {}

    def list_commands(self, ctx: click.Context) -> list[str]:
        """List all available commands."""
        base = super().list_commands(ctx)
        lazy = list(self._lazy_subcommands.keys())
        return sorted(set(base + lazy))

    def get_command(self, ctx: click.Context, cmd_name: str) -> click.Command | None:
        """Get a command by name, lazily loading if needed."""
        if cmd_name in self.commands:
            return self.commands[cmd_name]

        if cmd_name in self._lazy_subcommands:
            return self._lazy_load(cmd_name)

        return None

    def _lazy_load(self, cmd_name: str) -> click.Command:
        """Import the command's module and register the command."""
        module_path = self._lazy_subcommands[cmd_name]
        module = importlib.import_module(module_path)

        for attr in vars(module).values():
            if isinstance(attr, click.Command) and attr.name == cmd_name:
                self.add_command(attr)
                return attr
        raise click.ClickException(f"Could not find command '{cmd_name}' in {module_path}")


LAZY_SUBCOMMANDS = {
    "account": "coredrift.cli.accounts",
    "trade": "coredrift.cli.trades",
    "bin": "coredrift.cli.recycle_bin",
    "import": "coredrift.cli.data",
    "backup": "coredrift.cli.data",
    "stats": "coredrift.cli.stats",
    "symbol": "coredrift.cli.catalog",
    "setup": "coredrift.cli.catalog",
    "tag": "coredrift.cli.catalog",
    "note": "coredrift.cli.catalog",
}


CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


def configure_logging(level: str) -> None:
    """Send log records to stderr through rich."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


@click.group(cls=LazyGroup, lazy_subcommands=LAZY_SUBCOMMANDS, context_settings=CONTEXT_SETTINGS)
@click.version_option(package_name="coredrift")
@click.option(
    "--config", "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to config.toml (default: ~/.config/coredrift/config.toml).",
)
@click.option("-v", "--verbose", is_flag=True, default=False, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, config_file: Optional[Path], verbose: bool) -> None:
    """CoreDrift - a personal trading journal.

    Log trades into accounts, annotate them with setups, tags and notes,
    and review performance statistics.

    \b
    Quick Start:
      coredrift account add "Main" --balance 100000
      coredrift trade add --symbol EURUSD --direction buy ...
      coredrift import statement.csv --account Main
      coredrift stats
    """
    ctx.ensure_object(dict)
    config = load_config(config_file)
    configure_logging("DEBUG" if verbose else config["logging"]["level"])
    ctx.obj["config"] = config


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
