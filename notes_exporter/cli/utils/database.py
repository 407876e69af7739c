"""Shared helpers for CLI commands that read the Notes database."""

from pathlib import Path
from typing import List, Optional, Set

import typer
from rich.console import Console

from notes_exporter.database import NotesDatabase
from notes_exporter.errors import NotesExportError
from notes_exporter.models import Folder
from notes_exporter.resolver import default_container

console = Console()

DATABASE_FILENAME = "NoteStore.sqlite"


def database_path(database: Optional[Path], container: Optional[Path]) -> Path:
    if database is not None:
        return database.expanduser()
    root = container.expanduser() if container else default_container()
    return root / DATABASE_FILENAME


def get_database(
    database: Optional[Path] = None, container: Optional[Path] = None
) -> NotesDatabase:
    """Open the Notes database or exit with an error."""
    path = database_path(database, container)
    try:
        return NotesDatabase(path)
    except NotesExportError as e:
        console.print(f"[bold red]Error:[/bold red] {str(e)}")
        raise typer.Exit(1)


def folder_ids_named(folders: List[Folder], name: str) -> Set[int]:
    """Ids of folders called `name` and everything nested below them."""
    wanted = {f.id for f in folders if f.name.casefold() == name.casefold()}
    changed = True
    while changed:
        children = {f.id for f in folders if f.parent_id in wanted} - wanted
        wanted |= children
        changed = bool(children)
    return wanted
