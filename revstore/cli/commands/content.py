"""``revstore put|get|update|delete``: content and metadata writes.

Writes based on a head (update, delete) default to the current head of the
content; pass ``--head`` to make the write conditional on an expected head.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from revstore.cli.common import open_repository, parse_hash, parse_metadata
from revstore.core.content_store import ContentNotFoundError
from revstore.core.repository import ConflictError, Repository, UnknownContentError
from revstore.display import TreeRenderer
from revstore.models.keys import Hash
from revstore.models.results import CommandResult

console = Console()


def _print_result(result: CommandResult) -> None:
    if result.is_no_op:
        console.print(f"[dim]No change[/dim] {result.content}")
    else:
        console.print(f"[bold green]{result.operation.value}[/bold green] {result.content}")
    for head in result.head:
        console.print(f"  head {head}")


def _resolve_head(repository: Repository, content: Hash, head: list[str] | None) -> list[Hash]:
    if head:
        return [parse_hash(h) for h in head]
    return list(repository.get_tree(content).head)


def put_cmd(
    ctx: typer.Context,
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="File to store."),
    meta: Optional[str] = typer.Option(None, "--meta", "-m", help="Metadata as a YAML mapping."),
) -> None:
    """Store a file and its metadata."""
    repository = open_repository(ctx)
    try:
        result = repository.add_content(file.read_bytes(), parse_metadata(meta))
    except ConflictError as exc:
        console.print(f"[red]Conflict:[/red] {exc}")
        raise typer.Exit(code=1)
    _print_result(result)


def get_cmd(
    ctx: typer.Context,
    content: str = typer.Argument(..., help="Content hash."),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write bytes to this file."),
) -> None:
    """Print the head metadata of a content, or save its bytes with --out."""
    repository = open_repository(ctx)
    content_hash = parse_hash(content)
    try:
        if out is not None:
            out.write_bytes(repository.get_content(content_hash))
            console.print(f"Wrote {content_hash} to {out}")
            return
        console.print(TreeRenderer(console).render_heads(repository.get_tree(content_hash)))
    except (UnknownContentError, ContentNotFoundError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)


def update_cmd(
    ctx: typer.Context,
    content: str = typer.Argument(..., help="Content hash."),
    meta: str = typer.Option(..., "--meta", "-m", help="New metadata as a YAML mapping."),
    head: Optional[list[str]] = typer.Option(None, "--head", help="Expected head revision(s)."),
) -> None:
    """Replace the metadata of a content."""
    repository = open_repository(ctx)
    content_hash = parse_hash(content)
    try:
        result = repository.update(
            content_hash, _resolve_head(repository, content_hash, head), parse_metadata(meta)
        )
    except (ConflictError, UnknownContentError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    _print_result(result)


def delete_cmd(
    ctx: typer.Context,
    content: str = typer.Argument(..., help="Content hash."),
    head: Optional[list[str]] = typer.Option(None, "--head", help="Expected head revision(s)."),
) -> None:
    """Delete a content, keeping its revision history."""
    repository = open_repository(ctx)
    content_hash = parse_hash(content)
    try:
        result = repository.delete(content_hash, _resolve_head(repository, content_hash, head))
    except (ConflictError, UnknownContentError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    _print_result(result)
