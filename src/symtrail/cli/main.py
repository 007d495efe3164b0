"""Symtrail CLI: create, inspect and feed symbol-graph databases."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, NoReturn, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from symtrail import __version__
from symtrail.config.languages import is_supported
from symtrail.config.storage import DEFAULT_BACKEND
from symtrail.core.database import SymbolDB
from symtrail.core.graph.hierarchy import NameHierarchy
from symtrail.core.graph.model import NodeType
from symtrail.errors import DecodeError, SymtrailError

logger = logging.getLogger(__name__)

console = Console()

# Backends that persist to disk.
_CLI_BACKENDS = ("sqlite", "kuzu")

app = typer.Typer(
    name="symtrail",
    help="Symtrail: symbol-graph writer for code-navigation databases.",
    no_args_is_help=True,
)

_BACKEND_OPTION = typer.Option(
    DEFAULT_BACKEND, "--backend", "-b", help="Storage backend (sqlite | kuzu)."
)

def _version_callback(value: bool) -> None:
    """Print the version and exit."""
    if value:
        console.print(f"Symtrail v{__version__}")
        raise typer.Exit()

def _fail(exc: Exception) -> NoReturn:
    console.print(f"[red]Error:[/red] {escape(str(exc))}")
    raise typer.Exit(code=1) from exc

def _check_backend(backend: str) -> None:
    if backend not in _CLI_BACKENDS:
        console.print(f"[red]Error:[/red] unknown backend {backend!r}.")
        raise typer.Exit(code=1)

def _collect_files(paths: list[Path]) -> list[Path]:
    """Expand directories into their supported source files, sorted by path."""
    files: list[Path] = []
    for path in paths:
        if path.is_dir():
            files.extend(
                sorted(p for p in path.rglob("*") if p.is_file() and is_supported(p))
            )
        else:
            files.append(path)
    return files

@app.callback()
def main(
    version: Optional[bool] = typer.Option(  # noqa: N803
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
) -> None:
    """Symtrail: symbol-graph writer for code-navigation databases."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)

@app.command()
def init(
    database: Path = typer.Argument(..., help="Database to create."),
    clear: bool = typer.Option(False, "--clear", help="Empty the database if it already exists."),
    backend: str = _BACKEND_OPTION,
) -> None:
    """Create a new, empty database."""
    _check_backend(backend)
    try:
        if clear:
            db = SymbolDB.open(database, clear=True, backend=backend)
        else:
            db = SymbolDB.create(database, backend=backend)
    except SymtrailError as exc:
        _fail(exc)

    with db:
        console.print(f"[bold green]Initialised[/bold green] {db.path}")
        console.print(f"  Storage version:  {db.storage_version()}")

@app.command()
def status(
    database: Path = typer.Argument(..., help="Database to inspect."),
    backend: str = _BACKEND_OPTION,
) -> None:
    """Show record counts of a database."""
    _check_backend(backend)
    try:
        db = SymbolDB.open(database, backend=backend)
    except SymtrailError as exc:
        _fail(exc)

    with db:
        stats = db.backend.stats()
        console.print(f"[bold]Database status for[/bold] {db.path}")
        console.print(f"  Storage version:  {db.storage_version() or '?'}")
        console.print(f"  Files:            {stats['files']}")
        console.print(f"  Nodes:            {stats['nodes']}")
        console.print(f"  Edges:            {stats['edges']}")
        console.print(f"  Source locations: {stats['source_locations']}")
        console.print(f"  Local symbols:    {stats['local_symbols']}")
        console.print(f"  Errors:           {stats['errors']}")

@app.command("add-files")
def add_files(
    database: Path = typer.Argument(..., help="Database to record into."),
    paths: List[Path] = typer.Argument(..., help="Files or directories to record."),
    language: Optional[str] = typer.Option(
        None, "--language", "-l", help="Language to store instead of the detected one."
    ),
    backend: str = _BACKEND_OPTION,
) -> None:
    """Record source files and their content."""
    _check_backend(backend)
    try:
        db = SymbolDB.open(database, backend=backend)
    except SymtrailError as exc:
        _fail(exc)

    recorded = 0
    with db:
        for path in _collect_files(paths):
            try:
                file_id = db.record_file().commit_from_disk(path)
                if language is not None:
                    db.record_file_language(file_id, language)
            except SymtrailError as exc:
                _fail(exc)
            logger.info("Recorded %s as file %d", path, file_id)
            recorded += 1

    console.print(f"[bold green]Recorded[/bold green] {recorded} file(s) into {db.path}")

@app.command()
def nodes(
    database: Path = typer.Argument(..., help="Database to list."),
    limit: int = typer.Option(50, "--limit", "-n", help="Maximum number of nodes to show."),
    backend: str = _BACKEND_OPTION,
) -> None:
    """List nodes with their decoded qualified names."""
    _check_backend(backend)
    try:
        db = SymbolDB.open(database, backend=backend)
    except SymtrailError as exc:
        _fail(exc)

    with db:
        records = sorted(db.backend.list_nodes(), key=lambda n: n.id)

    table = Table(title=f"Nodes in {db.path}")
    table.add_column("ID", justify="right")
    table.add_column("Type")
    table.add_column("Name")
    for node in records[:limit]:
        try:
            name = NameHierarchy.deserialize_name(node.serialized_name).qualified_name()
        except DecodeError:
            name = node.serialized_name
        table.add_row(str(node.id), NodeType(node.type).name.lower(), name)

    console.print(table)
    if len(records) > limit:
        console.print(f"... {len(records) - limit} more")
