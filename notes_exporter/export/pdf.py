"""
PDF rendering boundary.

The exporter only needs `render(html, destination, page_size, margins)`; the
default implementation shells out to wkhtmltopdf. The orchestrator bounds
each call with a timeout and cancels the coroutine when it expires.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional, Protocol

from ..errors import NotesExportError
from ..rendering.options import PageSize

LOGGER = logging.getLogger(__name__)

_PAGE_NAMES = {
    PageSize.LETTER: "Letter",
    PageSize.A4: "A4",
    PageSize.A5: "A5",
    PageSize.LEGAL: "Legal",
    PageSize.TABLOID: "Tabloid",
}


class PdfRenderer(Protocol):
    async def render(
        self, html: str, destination: Path, page_size: PageSize, margins: float
    ) -> None: ...


def _mm(points: float) -> str:
    return f"{points * 25.4 / 72:.2f}mm"


class WkhtmltopdfRenderer:
    def __init__(self, executable: Optional[str] = None):
        self.executable = executable or shutil.which("wkhtmltopdf") or "wkhtmltopdf"

    async def render(
        self, html: str, destination: Path, page_size: PageSize, margins: float
    ) -> None:
        fd, source = tempfile.mkstemp(suffix=".html")
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(html)
        margin = _mm(margins)
        args = [
            "--quiet",
            "--enable-local-file-access",
            "--page-size", _PAGE_NAMES[page_size],
            "--margin-top", margin,
            "--margin-bottom", margin,
            "--margin-left", margin,
            "--margin-right", margin,
            source,
            str(destination),
        ]
        try:
            try:
                proc = await asyncio.create_subprocess_exec(
                    self.executable,
                    *args,
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as e:
                raise NotesExportError(f"Cannot run {self.executable}: {e}") from e
            try:
                _, stderr = await proc.communicate()
            except asyncio.CancelledError:
                proc.kill()
                await proc.wait()
                raise
            if proc.returncode != 0:
                detail = stderr.decode("utf-8", "replace").strip()
                raise NotesExportError(
                    f"wkhtmltopdf exited with {proc.returncode}: {detail}"
                )
        finally:
            os.unlink(source)
