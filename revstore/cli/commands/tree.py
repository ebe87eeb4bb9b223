"""``revstore tree|merge``: inspect and reconcile a revision tree."""

from __future__ import annotations

import typer
from rich.console import Console

from revstore.cli.common import open_repository, parse_hash
from revstore.core.repository import UnknownContentError
from revstore.display import TreeRenderer

console = Console()


def tree_cmd(
    ctx: typer.Context,
    content: str = typer.Argument(..., help="Content hash."),
) -> None:
    """Show the revision tree of a content."""
    repository = open_repository(ctx)
    content_hash = parse_hash(content)
    try:
        tree = repository.get_tree(content_hash)
    except UnknownContentError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)

    renderer = TreeRenderer(console)
    renderer.print_tree(tree)
    if tree.unknown_parents:
        console.print(
            f"[yellow]{len(tree.unknown_parents)} unknown parent(s):[/yellow] "
            + ", ".join(str(p) for p in tree.unknown_parents)
        )


def merge_cmd(
    ctx: typer.Context,
    content: str = typer.Argument(..., help="Content hash."),
) -> None:
    """Merge the heads of a content.

    Exits with code 2 when the heads cannot be reconciled.
    """
    repository = open_repository(ctx)
    content_hash = parse_hash(content)
    try:
        result = repository.merge(content_hash)
    except UnknownContentError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)

    if len(result.head) > 1:
        console.print(
            f"[yellow]Unresolved:[/yellow] {content_hash} still has "
            f"{len(result.head)} heads"
        )
        raise typer.Exit(code=2)
    if result.is_no_op:
        console.print(f"[dim]Already converged[/dim] {content_hash}")
    else:
        console.print(f"[bold green]merged[/bold green] {content_hash} -> {result.head[0]}")
