"""``revstore export|import``: move revision trees between repositories.

Trees travel as JSON documents.  Importing merges the document into the
local tree; content bytes are not part of the document.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from revstore.cli.common import open_repository, parse_hash
from revstore.codec import CodecError, dumps_tree, loads_tree
from revstore.core.repository import (
    ConflictError,
    UnknownContentError,
    UnknownRevisionError,
)
from revstore.core.revision_tree import EmptyTreeError

console = Console()


def export_cmd(
    ctx: typer.Context,
    content: str = typer.Argument(..., help="Content hash."),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Output file (default: stdout)."),
) -> None:
    """Write the revision tree of a content as JSON."""
    repository = open_repository(ctx)
    try:
        tree = repository.get_tree(parse_hash(content))
    except UnknownContentError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)

    document = dumps_tree(tree)
    if out is None:
        typer.echo(document.decode("utf-8"))
    else:
        out.write_bytes(document)
        console.print(f"Exported {len(tree)} revisions to {out}")


def import_cmd(
    ctx: typer.Context,
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Tree document."),
) -> None:
    """Merge a revision tree document into the repository."""
    repository = open_repository(ctx)
    try:
        tree = loads_tree(file.read_bytes())
        result = repository.put_tree(tree)
    except (CodecError, EmptyTreeError) as exc:
        console.print(f"[red]Invalid tree document:[/red] {exc}")
        raise typer.Exit(code=1)
    except (ConflictError, UnknownContentError, UnknownRevisionError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)

    if result.is_no_op:
        console.print(f"[dim]No change[/dim] {result.content}")
    else:
        console.print(f"[bold green]{result.operation.value}[/bold green] {result.content}")
