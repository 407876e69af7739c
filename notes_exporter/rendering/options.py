"""
Render and export configuration.

`RenderConfig` holds renderer behavior flags (a plain frozen dataclass, no
validation needed). The per-format option models are pydantic so values coming
from the CLI or a config file are validated and coerced.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class RenderConfig:
    image_uti_prefixes: Tuple[str, ...] = ("public.image",)
    image_uti_exacts: Tuple[str, ...] = (
        "public.jpeg",
        "public.jpg",
        "public.png",
        "public.heic",
        "public.heif",
        "public.tiff",
        "public.gif",
        "public.bmp",
        "public.webp",
        # Sketches and drawings export as their fallback image
        "com.apple.paper",
        "com.apple.drawing",
        "com.apple.drawing.2",
    )

    # Link behavior
    link_target_blank: bool = True
    link_rel: str = "noopener noreferrer"
    referrer_policy: str = "no-referrer"

    # Default <object> height for embedded PDFs
    pdf_object_height: int = 600

    def is_image_uti(self, uti: Optional[str]) -> bool:
        if not uti:
            return False
        u = uti.lower()
        for p in self.image_uti_prefixes:
            if u.startswith(p):
                return True
        return u in self.image_uti_exacts


class ExportFormat(str, Enum):
    HTML = "html"
    PDF = "pdf"
    MARKDOWN = "md"
    TEXT = "txt"
    RTF = "rtf"
    LATEX = "tex"

    @property
    def extension(self) -> str:
        return self.value

    @property
    def is_paged(self) -> bool:
        return self is ExportFormat.PDF


class FontFamily(str, Enum):
    SYSTEM = "system"
    SERIF = "serif"
    SANS_SERIF = "sans-serif"
    MONOSPACE = "monospace"

    @property
    def css_stack(self) -> str:
        return _CSS_STACKS[self]

    @property
    def rtf_name(self) -> str:
        return _RTF_FONTS[self]


_CSS_STACKS = {
    FontFamily.SYSTEM: "-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,Helvetica,Arial,sans-serif",
    FontFamily.SERIF: "'Times New Roman',Times,Georgia,serif",
    FontFamily.SANS_SERIF: "'Helvetica Neue',Helvetica,Arial,sans-serif",
    FontFamily.MONOSPACE: "Menlo,Monaco,'Courier New',monospace",
}

_RTF_FONTS = {
    FontFamily.SYSTEM: "Helvetica",
    FontFamily.SERIF: "Times New Roman",
    FontFamily.SANS_SERIF: "Helvetica",
    FontFamily.MONOSPACE: "Courier New",
}


class MarginUnit(str, Enum):
    PX = "px"
    PT = "pt"
    EM = "em"
    REM = "rem"
    PERCENT = "%"


class PageSize(str, Enum):
    LETTER = "letter"
    A4 = "a4"
    A5 = "a5"
    LEGAL = "legal"
    TABLOID = "tabloid"

    @property
    def points(self) -> Tuple[int, int]:
        return _PAGE_POINTS[self]


_PAGE_POINTS = {
    PageSize.LETTER: (612, 792),
    PageSize.A4: (595, 842),
    PageSize.A5: (420, 595),
    PageSize.LEGAL: (612, 1008),
    PageSize.TABLOID: (792, 1224),
}


class _Options(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class HtmlOptions(_Options):
    font_size_points: float = Field(default=14, gt=0, le=96)
    font_family: FontFamily = FontFamily.SYSTEM
    margin_size: float = Field(default=36, ge=0)
    margin_unit: MarginUnit = MarginUnit.PT
    embed_images_inline: bool = True
    link_embedded_images: bool = False

    @property
    def margin_css(self) -> str:
        size = f"{self.margin_size:g}"
        return f"{size}{self.margin_unit.value}"

    def margin_points(self) -> float:
        unit = self.margin_unit
        if unit is MarginUnit.PT:
            return self.margin_size
        if unit is MarginUnit.PX:
            return self.margin_size * 0.75
        if unit in (MarginUnit.EM, MarginUnit.REM):
            return self.margin_size * self.font_size_points
        # Percentages depend on the page; use the default margin.
        return 36.0


class PdfOptions(_Options):
    html: HtmlOptions = HtmlOptions()
    page_size: PageSize = PageSize.A4


class RtfOptions(_Options):
    font_family: FontFamily = FontFamily.SYSTEM
    font_size_points: float = Field(default=12, gt=0, le=96)


DEFAULT_LATEX_TEMPLATE = r"""\documentclass[11pt]{article}
\usepackage[utf8]{inputenc}
\usepackage[T1]{fontenc}
\usepackage{geometry}
\geometry{margin=1in}
\usepackage{hyperref}
\usepackage{graphicx}
\usepackage[normalem]{ulem}

\title{APPLE_NOTES_EXPORTER_NOTE_TITLE}
\author{APPLE_NOTES_EXPORTER_USER_FULL_NAME}
\date{Created: APPLE_NOTES_EXPORTER_NOTE_CREATION_DATE \\ Modified: APPLE_NOTES_EXPORTER_NOTE_MODIFICATION_DATE}

\begin{document}

\maketitle

APPLE_NOTES_EXPORTER_NOTE_CONTENT

\end{document}
"""


class LatexOptions(_Options):
    template: str = DEFAULT_LATEX_TEMPLATE
    author: Optional[str] = None


class ExportOptions(_Options):
    html: HtmlOptions = HtmlOptions()
    pdf: PdfOptions = PdfOptions()
    rtf: RtfOptions = RtfOptions()
    latex: LatexOptions = LatexOptions()
