"""Main Typer application. Registers all CLI commands.

Entry point: ``revstore`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from revstore.cli.commands.content import delete_cmd, get_cmd, put_cmd, update_cmd
from revstore.cli.commands.history import history_cmd
from revstore.cli.commands.transfer import export_cmd, import_cmd
from revstore.cli.commands.tree import merge_cmd, tree_cmd
from revstore.cli.common import configure_logging, settings
from revstore.config import StoreConfig

app = typer.Typer(
    name="revstore",
    help="revstore: content-addressed storage with mergeable revision histories.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    data_path: Optional[Path] = typer.Option(
        None, "--data-path", "-d", help="Repository directory (overrides REVSTORE_DATA_PATH)."
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Logging level (overrides REVSTORE_LOG_LEVEL)."
    ),
) -> None:
    """Load settings and configure logging for every command."""
    updates: dict[str, object] = {}
    if data_path is not None:
        updates["data_path"] = data_path
    if log_level is not None:
        updates["log_level"] = log_level
    store_config = StoreConfig().model_copy(update=updates)
    configure_logging(store_config.log_level)
    ctx.obj = store_config


# Register subcommands
app.command(name="put", help="Store a file and its metadata.")(put_cmd)
app.command(name="get", help="Show head metadata or fetch content bytes.")(get_cmd)
app.command(name="update", help="Replace the metadata of a content.")(update_cmd)
app.command(name="delete", help="Delete a content, keeping its history.")(delete_cmd)
app.command(name="tree", help="Show the revision tree of a content.")(tree_cmd)
app.command(name="merge", help="Merge the heads of a content.")(merge_cmd)
app.command(name="export", help="Export a revision tree as JSON.")(export_cmd)
app.command(name="import", help="Merge a revision tree document.")(import_cmd)
app.command(name="history", help="Show the history of writes.")(history_cmd)


@app.command(name="config", help="Show the effective configuration.")
def config_cmd(ctx: typer.Context) -> None:
    """Print the effective settings, after environment overrides."""
    store_config = settings(ctx)
    table = Table(title="revstore configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for name, value in store_config.model_dump().items():
        table.add_row(name, str(value))
    table.add_row("content_path", str(store_config.content_path))
    table.add_row("revision_db_path", str(store_config.revision_db_path))
    Console().print(table)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
