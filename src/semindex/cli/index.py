"""CLI entry points for managing a persisted semantic index."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

import typer

from semindex import archive as codec
from semindex.container import build_container
from semindex.errors import SemIndexError
from semindex.models import IndexMetadata
from semindex.search.index import META_BLOCK

if TYPE_CHECKING:
    from semindex.archive import Archive
    from semindex.container import Container

app = typer.Typer(help="Add, remove, and search documents in a semantic index archive.")


def _open_container() -> Container:
    """Build the container and load the configured archive when it exists."""
    try:
        container = build_container()
    except ValueError as exc:
        typer.echo(f"Configuration error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    path = container.settings.index_path
    if path.exists():
        try:
            container.searchable.load_file(path)
        except SemIndexError as exc:
            typer.echo(f"Failed to load index {path}: {exc}", err=True)
            raise typer.Exit(code=1) from exc
    return container


def _persist(container: Container) -> None:
    """Save the index back to the configured archive."""
    container.searchable.save_file(container.settings.index_path)


@app.command()
def add(
    text: str = typer.Option(..., "--text", "-t", help="Document text to index."),
    split: int | None = typer.Option(None, "--split", "-s", help="Split to add the document to."),
) -> None:
    """Embed and store a document."""
    container = _open_container()
    split_id = container.settings.default_split if split is None else split
    try:
        key = asyncio.run(container.searchable.add(text, split_id))
    except SemIndexError as exc:
        typer.echo(f"Add failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    _persist(container)
    typer.echo(json.dumps({"key": key, "split": split_id}))


@app.command()
def remove(
    key: int | None = typer.Option(None, "--key", "-k", help="Key of the document to remove."),
    text: str | None = typer.Option(None, "--text", "-t", help="Remove documents with exactly this text."),
    split: int | None = typer.Option(None, "--split", "-s", help="Split searched when removing by text."),
) -> None:
    """Remove a document by key, or every document of a split with the given text."""
    if (key is None) == (text is None):
        typer.echo("Pass exactly one of --key or --text.", err=True)
        raise typer.Exit(code=2)
    container = _open_container()
    if key is not None:
        existed = container.searchable.get(key) is not None
        container.searchable.remove(key)
        removed = int(existed)
    else:
        split_id = container.settings.default_split if split is None else split
        removed = container.searchable.remove_text(text or "", split_id)
    _persist(container)
    typer.echo(json.dumps({"removed": removed}))


@app.command()
def search(
    query: str = typer.Option(..., "--query", "-q", help="Search query text."),
    topk: int = typer.Option(10, "--topk", "-k", help="Number of results to return."),
    split: int | None = typer.Option(None, "--split", "-s", help="Split to search."),
    all_splits: bool = typer.Option(False, "--all", help="Search every split."),
) -> None:
    """Print the nearest documents to ``query``."""
    if topk <= 0:
        typer.echo(f"topk must be positive, received {topk}", err=True)
        raise typer.Exit(code=2)
    container = _open_container()
    split_id = None if all_splits else (container.settings.default_split if split is None else split)
    try:
        texts, distances = asyncio.run(container.searchable.search(query, topk, split_id))
    except SemIndexError as exc:
        typer.echo(f"Search failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    hits = [{"text": text, "distance": distance} for text, distance in zip(texts, distances, strict=True)]
    typer.echo(json.dumps({"hits": hits}, indent=2, ensure_ascii=False))


@app.command()
def count(
    split: int | None = typer.Option(None, "--split", "-s", help="Only count documents in this split."),
) -> None:
    """Print the number of stored documents."""
    container = _open_container()
    typer.echo(json.dumps({"count": container.searchable.count(split), "split": split}))


@app.command()
def clear() -> None:
    """Remove every document from the index."""
    container = _open_container()
    container.searchable.clear()
    _persist(container)
    typer.echo(json.dumps({"count": 0}))


@app.command()
def inspect(
    path: Path = typer.Argument(..., help="Archive to inspect."),
) -> None:
    """Print the blocks and metadata stored in an archive."""
    report: dict[str, Any] = {}

    def _read(archive: Archive) -> None:
        report["blocks"] = codec.block_names(archive)
        report["metadata"] = codec.read_model(archive, META_BLOCK, IndexMetadata).model_dump()

    try:
        codec.load_file(path, _read)
    except SemIndexError as exc:
        typer.echo(f"Failed to inspect {path}: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(json.dumps(report, indent=2))
