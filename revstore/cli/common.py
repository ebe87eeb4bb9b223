"""Helpers shared by CLI commands."""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from revstore.codec import CodecError, load_metadata
from revstore.config import StoreConfig
from revstore.core.repository import Repository
from revstore.models.keys import Hash
from revstore.models.value import Value


def configure_logging(level: str) -> None:
    """Route library logging through Rich on stderr."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def settings(ctx: typer.Context) -> StoreConfig:
    if isinstance(ctx.obj, StoreConfig):
        return ctx.obj
    return StoreConfig()


def open_repository(ctx: typer.Context) -> Repository:
    return Repository(settings(ctx))


def parse_hash(text: str) -> Hash:
    if not Hash.is_valid(text):
        raise typer.BadParameter(f"Not a 40-character hexadecimal hash: {text!r}")
    return Hash.from_hex(text)


def parse_metadata(text: str | None) -> dict[str, Value]:
    if not text:
        return {}
    try:
        return load_metadata(text)
    except CodecError as exc:
        raise typer.BadParameter(str(exc)) from exc
