"""Export commands for the notes-exporter CLI."""

import asyncio
import signal
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, TextColumn, TimeElapsedColumn
from rich.table import Table

from notes_exporter.cli.utils.database import (
    database_path,
    folder_ids_named,
    get_database,
)
from notes_exporter.export import ExportOrchestrator, ExportPhase, ExportState
from notes_exporter.rendering.options import (
    ExportFormat,
    ExportOptions,
    FontFamily,
    HtmlOptions,
    MarginUnit,
    PageSize,
    PdfOptions,
    RtfOptions,
)
from notes_exporter.resolver import AttachmentResolver

app = typer.Typer(help="Export notes to disk")
console = Console()


def _build_options(
    font_size: float,
    font_family: FontFamily,
    margin: float,
    margin_unit: MarginUnit,
    page_size: PageSize,
    embed_images: bool,
    link_images: bool,
) -> ExportOptions:
    html = HtmlOptions(
        font_size_points=font_size,
        font_family=font_family,
        margin_size=margin,
        margin_unit=margin_unit,
        embed_images_inline=embed_images,
        link_embedded_images=link_images,
    )
    return ExportOptions(
        html=html,
        pdf=PdfOptions(html=html, page_size=page_size),
        rtf=RtfOptions(font_family=font_family),
    )


async def _export(orchestrator: ExportOrchestrator, **kwargs) -> ExportState:
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, orchestrator.cancel)
    except (NotImplementedError, RuntimeError, ValueError):
        pass
    try:
        return await orchestrator.export(**kwargs)
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError, ValueError):
            pass


@app.command("run")
def run_export(
    dest: Path = typer.Argument(..., help="Output directory"),
    fmt: ExportFormat = typer.Option(ExportFormat.HTML, "--format", "-f", help="Output format"),
    database: Optional[Path] = typer.Option(None, "--database", help="Path to NoteStore.sqlite"),
    container: Optional[Path] = typer.Option(None, "--container", help="Notes group container"),
    attachments: bool = typer.Option(True, "--attachments/--no-attachments", help="Export attachments"),
    incremental: bool = typer.Option(False, "--incremental", help="Only export changed notes"),
    workers: Optional[int] = typer.Option(None, "--workers", min=1, max=16, help="Concurrent notes"),
    pdf_timeout: float = typer.Option(60.0, "--pdf-timeout", min=1, help="Seconds per PDF render"),
    folder: Optional[str] = typer.Option(None, "--folder", help="Only export this folder"),
    font_size: float = typer.Option(14, "--font-size", help="Font size in points"),
    font_family: FontFamily = typer.Option(FontFamily.SYSTEM, "--font-family"),
    margin: float = typer.Option(36, "--margin", help="Page margin"),
    margin_unit: MarginUnit = typer.Option(MarginUnit.PT, "--margin-unit"),
    page_size: PageSize = typer.Option(PageSize.A4, "--page-size"),
    embed_images: bool = typer.Option(True, "--embed-images/--no-embed-images", help="Inline images as data URIs"),
    link_images: bool = typer.Option(False, "--link-images", help="Wrap images in links to their files"),
):
    """Export notes to DEST."""
    db = get_database(database, container)
    try:
        options = _build_options(
            font_size, font_family, margin, margin_unit, page_size, embed_images, link_images
        )
        resolver = AttachmentResolver(
            db, container or database_path(database, container).parent
        )

        notes = None
        if folder:
            ids = folder_ids_named(db.fetch_folders(), folder)
            if not ids:
                console.print(f"[bold red]Error:[/bold red] Folder '{folder}' not found")
                raise typer.Exit(1)
            notes = [n for n in db.fetch_notes() if n.folder_id in ids]

        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            TimeElapsedColumn(),
            console=console,
        ) as progress:
            task = progress.add_task("Preparing export", total=None)

            def on_state(state: ExportState) -> None:
                if state.progress is not None:
                    progress.update(
                        task,
                        description=state.message,
                        completed=state.progress.completed,
                        total=state.progress.total,
                    )

            orchestrator = ExportOrchestrator(
                db,
                resolver,
                options=options,
                workers=workers,
                pdf_timeout=pdf_timeout,
                on_state=on_state,
            )
            state = asyncio.run(
                _export(
                    orchestrator,
                    output_dir=dest,
                    fmt=fmt,
                    notes=notes,
                    include_attachments=attachments,
                    incremental=incremental,
                )
            )
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {str(e)}")
        raise typer.Exit(1)
    finally:
        db.close()

    if state.phase is ExportPhase.ERROR:
        console.print(f"[bold red]Error:[/bold red] {state.message}")
        raise typer.Exit(1)
    if state.phase is ExportPhase.CANCELLED:
        console.print("[yellow]Export cancelled[/yellow]; files already written were kept")
        raise typer.Exit(130)

    stats = state.statistics
    table = Table("Total", "Exported", "Failed notes", "Failed attachments")
    table.add_row(
        str(stats.total),
        str(stats.successful),
        str(stats.failed_notes),
        str(stats.failed_attachments),
    )
    console.print(table)
    for line in orchestrator.log:
        console.print(line, style="yellow", markup=False)
