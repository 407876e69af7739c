"""Read-only views over the Notes database."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from notes_exporter.cli.utils.database import folder_ids_named, get_database

app = typer.Typer(help="Browse accounts, folders and notes")
console = Console()

DatabaseOption = typer.Option(None, "--database", help="Path to NoteStore.sqlite")
ContainerOption = typer.Option(None, "--container", help="Notes group container")


@app.command("accounts")
def list_accounts(
    database: Optional[Path] = DatabaseOption,
    container: Optional[Path] = ContainerOption,
):
    """List accounts."""
    db = get_database(database, container)
    try:
        accounts = db.fetch_accounts()
        if not accounts:
            console.print("No accounts found")
            return

        table = Table("ID", "Name", "Type", "Identifier")
        for account in accounts:
            table.add_row(
                str(account.id), account.name, account.kind, account.identifier or ""
            )
        console.print(table)
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {str(e)}")
        raise typer.Exit(1)
    finally:
        db.close()


@app.command("folders")
def list_folders(
    database: Optional[Path] = DatabaseOption,
    container: Optional[Path] = ContainerOption,
):
    """List folders with their account."""
    db = get_database(database, container)
    try:
        accounts = {a.id: a.name for a in db.fetch_accounts()}
        folders = db.fetch_folders()
        if not folders:
            console.print("No folders found")
            return

        names = {f.id: f.name for f in folders}
        table = Table("ID", "Name", "Account", "Parent")
        for folder in folders:
            table.add_row(
                str(folder.id),
                folder.name,
                accounts.get(folder.account_id, ""),
                names.get(folder.parent_id, ""),
            )
        console.print(table)
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {str(e)}")
        raise typer.Exit(1)
    finally:
        db.close()


@app.command("notes")
def list_notes(
    folder: Optional[str] = typer.Option(None, "--folder", help="Only this folder"),
    limit: int = typer.Option(50, "--limit", help="Maximum notes to show"),
    database: Optional[Path] = DatabaseOption,
    container: Optional[Path] = ContainerOption,
):
    """List the most recently modified notes."""
    db = get_database(database, container)
    try:
        folders = db.fetch_folders()
        notes = db.fetch_notes()
        if folder:
            ids = folder_ids_named(folders, folder)
            notes = [n for n in notes if n.folder_id in ids]
        notes.sort(key=lambda n: n.modified_at, reverse=True)
        if not notes:
            console.print("No notes found")
            return

        names = {f.id: f.name for f in folders}
        table = Table("ID", "Title", "Folder", "Modified")
        for note in notes[:limit]:
            table.add_row(
                str(note.id),
                note.title,
                names.get(note.folder_id, ""),
                note.modified_at.strftime("%Y-%m-%d %H:%M"),
            )
        console.print(table)
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {str(e)}")
        raise typer.Exit(1)
    finally:
        db.close()
