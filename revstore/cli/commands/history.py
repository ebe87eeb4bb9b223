"""``revstore history``: list the writes recorded by the repository."""

from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from revstore.cli.common import open_repository
from revstore.display.tree_renderer import short

console = Console()

_OPERATION_STYLES = {
    "create": "green",
    "update": "cyan",
    "delete": "red",
}


def history_cmd(
    ctx: typer.Context,
    first: Optional[int] = typer.Option(
        None, "--first", "-f", help="Sequence number to start from."
    ),
    number: int = typer.Option(20, "--number", "-n", min=1, help="Maximum events shown."),
    reverse: bool = typer.Option(False, "--reverse", "-r", help="Newest first."),
) -> None:
    """Show the history of writes, oldest first unless --reverse."""
    repository = open_repository(ctx)
    events = repository.history(chronological=not reverse, first=first, number=number)
    if not events:
        console.print("[dim]No events[/dim]")
        return

    table = Table(title="revstore history")
    table.add_column("Seq", justify="right")
    table.add_column("Timestamp (UTC)")
    table.add_column("Operation")
    table.add_column("Content", style="cyan")
    table.add_column("Head")
    for event in events:
        style = _OPERATION_STYLES.get(event.operation.value, "white")
        table.add_row(
            str(event.seq),
            event.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            f"[{style}]{event.operation.value}[/{style}]",
            str(event.content),
            ", ".join(short(r) for r in event.revisions),
        )
    console.print(table)
