"""
Export orchestration.

`ExportOrchestrator.export` walks accounts, folders and notes, pre-creates the
output tree, then runs a bounded pool of note workers on the event loop.
Blocking work (sqlite, decoding, disk) runs through `asyncio.to_thread`.
Per-note and per-attachment failures are logged and counted; only setup
failures put the run into the error state.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import math
import mimetypes
import os
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Set, Tuple, Union
from urllib.parse import quote

from ..database import NotesDatabase
from ..domain import NoteBody
from ..errors import ExportCancelledError, NotesExportError, RenderTimeoutError
from ..models import ExportJob, NoteRecord
from ..rendering.datasource import DatabaseNoteDataSource
from ..rendering.formats import convert_fragment
from ..rendering.options import ExportFormat, ExportOptions, RenderConfig
from ..rendering.renderer import NoteRenderer, render_note_page
from ..resolver import AttachmentResolver
from .filesystem import FileSystem, LocalFileSystem
from .manifest import SyncManifest
from .naming import (
    ExportHierarchy,
    build_hierarchy,
    sanitize_component,
    unique_attachment_name,
    unique_filename,
)
from .pdf import PdfRenderer, WkhtmltopdfRenderer
from .progress import ExportStatistics, ProgressState, ProgressTracker

LOGGER = logging.getLogger(__name__)

WORKERS_ENV = "NOTES_EXPORTER_WORKERS"
MAX_WORKERS = 16
GIB = 1024**3
DEFAULT_PDF_TIMEOUT = 60.0


class ExportPhase(str, Enum):
    IDLE = "idle"
    EXPORTING = "exporting"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ExportPhase.COMPLETED, ExportPhase.CANCELLED, ExportPhase.ERROR)


@dataclass(frozen=True)
class ExportState:
    phase: ExportPhase = ExportPhase.IDLE
    progress: Optional[ProgressState] = None
    message: str = ""
    statistics: Optional[ExportStatistics] = None
    error: Optional[str] = None


def _total_memory() -> int:
    try:
        return os.sysconf("SC_PAGE_SIZE") * os.sysconf("SC_PHYS_PAGES")
    except (AttributeError, ValueError, OSError):
        return 0


def default_worker_count() -> int:
    """Workers for this machine: half a worker per GiB, capped by cores."""
    env = os.getenv(WORKERS_ENV)
    if env:
        try:
            return max(1, min(MAX_WORKERS, int(env)))
        except ValueError:
            LOGGER.warning("Ignoring invalid %s=%r", WORKERS_ENV, env)
    cores = os.cpu_count() or 1
    ram = _total_memory()
    by_memory = max(1, math.ceil(ram / GIB) / 2) if ram else cores
    return max(1, min(MAX_WORKERS, int(min(cores, by_memory))))


@dataclass
class _Run:
    root: Path
    format: ExportFormat
    tracker: ProgressTracker
    manifest: Optional[SyncManifest] = None
    reserved: Set[str] = field(default_factory=set)


class ExportOrchestrator:
    def __init__(
        self,
        database: NotesDatabase,
        resolver: Optional[AttachmentResolver] = None,
        filesystem: Optional[FileSystem] = None,
        pdf_renderer: Optional[PdfRenderer] = None,
        options: Optional[ExportOptions] = None,
        render_config: Optional[RenderConfig] = None,
        workers: Optional[int] = None,
        pdf_timeout: float = DEFAULT_PDF_TIMEOUT,
        on_state: Optional[Callable[[ExportState], None]] = None,
    ):
        self.database = database
        self.resolver = resolver or AttachmentResolver(database)
        self.fs: FileSystem = filesystem or LocalFileSystem()
        self.pdf_renderer: PdfRenderer = pdf_renderer or WkhtmltopdfRenderer()
        self.options = options or ExportOptions()
        self.render_config = render_config or RenderConfig()
        self.renderer = NoteRenderer(self.render_config)
        self.workers = max(1, min(MAX_WORKERS, workers or default_worker_count()))
        self.pdf_timeout = pdf_timeout
        self.on_state = on_state
        self.state = ExportState()
        self.log: List[str] = []
        self._cancel_requested = threading.Event()
        self._cancel_event: Optional[asyncio.Event] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    # ------------------------------------------------------------------ control

    @property
    def cancelled(self) -> bool:
        return self._cancel_requested.is_set()

    def cancel(self) -> None:
        """Request cancellation; safe to call from any thread."""
        self._cancel_requested.set()
        loop, event = self._loop, self._cancel_event
        if loop is not None and event is not None and not loop.is_closed():
            loop.call_soon_threadsafe(event.set)

    def reset(self) -> None:
        if self.state.phase is ExportPhase.EXPORTING:
            raise NotesExportError("Cannot reset while an export is running")
        self._cancel_requested.clear()
        self.log = []
        self._set_state(ExportState())

    def _set_state(self, state: ExportState) -> None:
        self.state = state
        if self.on_state is not None:
            self.on_state(state)

    def _publish(self, tracker: ProgressTracker) -> None:
        if self.state.phase is ExportPhase.EXPORTING:
            self._set_state(
                ExportState(ExportPhase.EXPORTING, tracker.snapshot(), tracker.message())
            )

    def _checkpoint(self) -> None:
        if self.cancelled:
            raise ExportCancelledError("Export cancelled")

    def _record_failure(self, message: str) -> None:
        LOGGER.warning(message)
        self.log.append(message)

    # ------------------------------------------------------------------ run

    async def export(
        self,
        output_dir: Union[str, Path],
        fmt: Union[ExportFormat, str],
        notes: Optional[Iterable[NoteRecord]] = None,
        include_attachments: bool = True,
        incremental: bool = False,
    ) -> ExportState:
        if self.state.phase is ExportPhase.EXPORTING:
            raise NotesExportError("An export is already running")
        fmt = ExportFormat(fmt)
        root = Path(output_dir)
        self._loop = asyncio.get_running_loop()
        self._cancel_event = asyncio.Event()
        if self.cancelled:
            self._cancel_event.set()
        LOGGER.info("Starting %s export to %s with %d workers", fmt.value, root, self.workers)

        try:
            await asyncio.to_thread(self.fs.create_dir, root)
            hierarchy, manifest = await asyncio.to_thread(
                self._prepare, root, notes, incremental
            )
            for parts in hierarchy.directories():
                await asyncio.to_thread(self.fs.create_dir, root.joinpath(*parts))
        except (NotesExportError, OSError) as e:
            message = f"Export setup failed: {e}"
            LOGGER.error(message)
            self._set_state(ExportState(ExportPhase.ERROR, message=message, error=str(e)))
            return self.state

        jobs = [
            ExportJob(note, root.joinpath(*parts), fmt.value, include_attachments)
            for note, parts in hierarchy.pairs()
        ]
        tracker = ProgressTracker(len(jobs))
        run = _Run(root=root, format=fmt, tracker=tracker, manifest=manifest)
        self._set_state(
            ExportState(ExportPhase.EXPORTING, tracker.snapshot(), tracker.message())
        )

        try:
            await self._run_pool(jobs, run)
        finally:
            if manifest is not None:
                try:
                    await asyncio.to_thread(manifest.save, root)
                except OSError as e:
                    LOGGER.warning("Cannot save sync manifest in %s: %s", root, e)

        if self.cancelled:
            LOGGER.info("Export cancelled after %d notes", tracker.snapshot().completed)
            self._set_state(
                ExportState(ExportPhase.CANCELLED, tracker.snapshot(), "Export cancelled")
            )
            return self.state

        await self._backfill(root, hierarchy)
        stats = ExportStatistics.from_state(tracker.snapshot())
        LOGGER.info(
            "Export complete: %d of %d notes, %d failed attachments",
            stats.successful,
            stats.total,
            stats.failed_attachments,
        )
        self._set_state(
            ExportState(
                ExportPhase.COMPLETED, tracker.snapshot(), "Export complete", stats
            )
        )
        return self.state

    def _prepare(
        self, root: Path, notes: Optional[Iterable[NoteRecord]], incremental: bool
    ) -> Tuple[ExportHierarchy, Optional[SyncManifest]]:
        accounts = self.database.fetch_accounts()
        folders = self.database.fetch_folders()
        selected = list(notes) if notes is not None else self.database.fetch_notes()
        manifest = None
        if incremental:
            manifest = SyncManifest.load(root)
            before = len(selected)
            selected = manifest.notes_needing_export(selected)
            LOGGER.info("Incremental export: %d of %d notes changed", len(selected), before)
        return build_hierarchy(accounts, folders, selected), manifest

    async def _wait_cancelled(self) -> None:
        assert self._cancel_event is not None
        await self._cancel_event.wait()

    async def _run_pool(self, jobs: List[ExportJob], run: _Run) -> None:
        pending = iter(jobs)
        running: Set[asyncio.Task] = set()
        cancel_waiter = asyncio.ensure_future(self._wait_cancelled())

        def admit() -> None:
            while len(running) < self.workers and not self.cancelled:
                job = next(pending, None)
                if job is None:
                    return
                running.add(asyncio.create_task(self._process(job, run)))

        try:
            admit()
            while running:
                done, _ = await asyncio.wait(
                    running | {cancel_waiter}, return_when=asyncio.FIRST_COMPLETED
                )
                running -= done
                for task in done:
                    if task is not cancel_waiter and not task.cancelled() and task.exception():
                        LOGGER.error("Note worker crashed: %s", task.exception())
                if self.cancelled:
                    for task in running:
                        task.cancel()
                    await asyncio.gather(*running, return_exceptions=True)
                    running.clear()
                    break
                admit()
        finally:
            cancel_waiter.cancel()

    # ------------------------------------------------------------------ per note

    async def _process(self, job: ExportJob, run: _Run) -> None:
        note = job.note
        try:
            self._checkpoint()
            body = await asyncio.to_thread(self.database.load_note_body, note)
            filename = self._reserve_filename(run, job.destination, note)
            stem = filename[: -(len(run.format.extension) + 1)]
            datasource = DatabaseNoteDataSource(self.database)
            attachments: List[Path] = []
            if job.include_attachments and body.attachment_ids:
                self._checkpoint()
                attachments = await self._export_attachments(
                    note, body, job.destination, stem, datasource, run
                )
            self._checkpoint()
            target = job.destination / filename
            await self._render(note, body, datasource, target, run)
            await asyncio.to_thread(
                self.fs.set_timestamps, target, note.created_at, note.modified_at
            )
            if run.manifest is not None:
                run.manifest.record_export(
                    note,
                    self._relative(run, target),
                    [self._relative(run, p) for p in attachments],
                )
            await run.tracker.note_completed()
        except ExportCancelledError:
            return
        except Exception as e:
            self._record_failure(
                f"Failed to export note {note.id} '{note.title}' as "
                f"{run.format.value}: {e}"
            )
            await run.tracker.note_failed()
        self._publish(run.tracker)

    @staticmethod
    def _relative(run: _Run, path: Path) -> str:
        return path.relative_to(run.root).as_posix()

    def _reserve_filename(self, run: _Run, directory: Path, note: NoteRecord) -> str:
        """Pick and reserve the note's file name; no await between check and claim."""
        extension = run.format.extension
        if run.manifest is not None:
            previous = run.manifest.existing_path(note)
            if previous:
                path = run.root / previous
                if (
                    path.parent == directory
                    and path.suffix == "." + extension
                    and str(path) not in run.reserved
                ):
                    run.reserved.add(str(path))
                    return path.name

        def taken(candidate: str) -> bool:
            path = directory / candidate
            return str(path) in run.reserved or self.fs.file_exists(path)

        name = unique_filename(sanitize_component(note.title), extension, taken)
        run.reserved.add(str(directory / name))
        return name

    async def _export_attachments(
        self,
        note: NoteRecord,
        body: NoteBody,
        directory: Path,
        stem: str,
        datasource: DatabaseNoteDataSource,
        run: _Run,
    ) -> List[Path]:
        descriptors = [d for d in body.attachment_ids if d.is_file]
        if not descriptors:
            return []
        folder_name = f"{stem} (Attachments)"
        folder = directory / folder_name
        html_options = (
            self.options.pdf.html if run.format is ExportFormat.PDF else self.options.html
        )
        embed = (
            run.format in (ExportFormat.HTML, ExportFormat.PDF)
            and html_options.embed_images_inline
        )
        taken: Set[str] = set()
        written: List[Path] = []
        for descriptor in descriptors:
            try:
                resolved = await asyncio.to_thread(self.resolver.require, descriptor)
                data = await asyncio.to_thread(self.resolver.read, resolved)
                if not written:
                    await asyncio.to_thread(self.fs.create_dir, folder)
                name = unique_attachment_name(resolved.filename, taken)
                target = folder / name
                await asyncio.to_thread(self.fs.write_file, target, data)
                await asyncio.to_thread(
                    self.fs.set_timestamps, target, note.created_at, note.modified_at
                )
            except (NotesExportError, OSError) as e:
                self._record_failure(
                    f"Failed to export attachment {descriptor.identifier} "
                    f"({descriptor.type_uti or 'unknown type'}) of note {note.id} "
                    f"'{note.title}' as {run.format.value}: {e}"
                )
                await run.tracker.attachment_failed()
                continue
            written.append(target)
            if run.format.is_paged:
                link = target.resolve().as_uri()
            else:
                link = quote(f"{folder_name}/{name}")
            data_uri = None
            if embed and self.render_config.is_image_uti(resolved.descriptor.type_uti):
                mime = mimetypes.guess_type(name)[0] or "application/octet-stream"
                data_uri = f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"
            datasource.set_exported_asset(descriptor.identifier, link, data_uri)
        if written:
            await asyncio.to_thread(
                self.fs.set_timestamps, folder, note.created_at, note.modified_at
            )
        return written

    async def _render(
        self,
        note: NoteRecord,
        body: NoteBody,
        datasource: DatabaseNoteDataSource,
        target: Path,
        run: _Run,
    ) -> None:
        fmt = run.format
        html_options = self.options.pdf.html if fmt is ExportFormat.PDF else self.options.html
        fragment = await asyncio.to_thread(
            self.renderer.render_body,
            body,
            datasource,
            link_images=html_options.link_embedded_images,
        )
        if fmt.is_paged:
            page = render_note_page(
                note.title,
                fragment,
                html_options,
                created=note.created_at,
                modified=note.modified_at,
                for_pdf=True,
            )
            try:
                await asyncio.wait_for(
                    self.pdf_renderer.render(
                        page,
                        target,
                        self.options.pdf.page_size,
                        html_options.margin_points(),
                    ),
                    timeout=self.pdf_timeout,
                )
            except asyncio.TimeoutError:
                raise RenderTimeoutError(self.pdf_timeout) from None
            return
        text = await asyncio.to_thread(
            convert_fragment,
            fmt,
            fragment,
            title=note.title,
            created=note.created_at,
            modified=note.modified_at,
            options=self.options,
        )
        await asyncio.to_thread(self.fs.write_file, target, text.encode("utf-8"))

    # ------------------------------------------------------------------ finish

    async def _backfill(self, root: Path, hierarchy: ExportHierarchy) -> None:
        """Give each directory the date range of the notes below it."""
        for parts in reversed(hierarchy.directories()):
            notes = hierarchy.notes_under(parts)
            if not notes:
                continue
            created = min(n.created_at for n in notes)
            modified = max(n.modified_at for n in notes)
            try:
                await asyncio.to_thread(
                    self.fs.set_timestamps, root.joinpath(*parts), created, modified
                )
            except (NotesExportError, OSError) as e:
                LOGGER.warning("Cannot set timestamps on %s: %s", root.joinpath(*parts), e)
