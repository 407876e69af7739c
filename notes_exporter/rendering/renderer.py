"""
Pure renderer for Apple Notes.

Converts a parsed pb.Note (plain text plus attribute runs) into HTML. No I/O:
attachment metadata comes from a NoteDataSource. Attachments that depend on
exported files are left as placeholders by `render_note_fragment` and
resolved by `NoteRenderer.render`.

Run lengths are UTF-16 code units, so all slicing goes through `Utf16Text`.
"""

from __future__ import annotations

import html
from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from typing import Iterable, List, Optional

from ..domain import NoteBody
from ..protobuf import notes_pb2 as pb
from .attachments import (
    TABLE_UTI,
    URL_UTI,
    context_for,
    file_label,
    is_inline_text_uti,
    placeholder,
    render_attachment,
    resolve_placeholders,
)
from .options import HtmlOptions, RenderConfig
from .renderer_iface import AttachmentRef, NoteDataSource


class StyleType(IntEnum):
    DEFAULT = -1
    TITLE = 0
    HEADING = 1
    SUBHEADING = 2
    BODY = 3
    MONOSPACED = 4
    DOTTED_LIST = 100
    DASHED_LIST = 101
    NUMBERED_LIST = 102
    CHECKBOX = 103


LIST_STYLES = frozenset(
    {
        StyleType.DOTTED_LIST,
        StyleType.DASHED_LIST,
        StyleType.NUMBERED_LIST,
        StyleType.CHECKBOX,
    }
)

BLOCK_TAGS = {
    StyleType.TITLE: "h1",
    StyleType.HEADING: "h2",
    StyleType.SUBHEADING: "h3",
    StyleType.MONOSPACED: "pre",
}

PRE_STYLE = (
    "font-family:Menlo,Monaco,'Courier New',monospace;white-space:pre-wrap;"
    "background:#f5f5f5;padding:8px;border-radius:4px"
)

CHECKED_GLYPH = "☑"
UNCHECKED_GLYPH = "☐"

_ALIGN_CSS = {1: "center", 2: "right", 3: "justify"}


def _color_hex(color: pb.Color) -> str:
    r8 = max(0, min(255, round(color.red * 255)))
    g8 = max(0, min(255, round(color.green * 255)))
    b8 = max(0, min(255, round(color.blue * 255)))
    return f"#{r8:02X}{g8:02X}{b8:02X}"


@dataclass(frozen=True)
class StyleSig:
    # Paragraph
    style_type: int
    alignment: int
    indent: int
    checklist_done: Optional[bool]
    start_number: Optional[int]
    # Inline
    font_name: Optional[str]
    font_size: Optional[float]
    font_weight: int
    underlined: bool
    strikethrough: bool
    superscript: int
    link: Optional[str]
    color_hex: Optional[str]
    emphasis: Optional[int]

    @staticmethod
    def from_run(run: pb.AttributeRun) -> "StyleSig":
        style_type = int(StyleType.DEFAULT)
        alignment = indent = 0
        done: Optional[bool] = None
        start: Optional[int] = None
        if run.HasField("paragraph_style"):
            ps = run.paragraph_style
            # Presence matters: an absent style_type is not TITLE (0).
            if ps.HasField("style_type"):
                style_type = ps.style_type
            alignment = ps.alignment
            indent = max(0, ps.indent_amount)
            if ps.HasField("checklist"):
                done = bool(ps.checklist.done)
            if ps.HasField("starting_list_item_number"):
                start = ps.starting_list_item_number
        font_name = font_size = None
        if run.HasField("font"):
            font_name = run.font.font_name or None
            font_size = run.font.point_size or None
        return StyleSig(
            style_type=style_type,
            alignment=alignment,
            indent=indent,
            checklist_done=done,
            start_number=start,
            font_name=font_name,
            font_size=font_size,
            font_weight=run.font_weight,
            underlined=bool(run.underlined),
            strikethrough=bool(run.strikethrough),
            superscript=run.superscript,
            link=run.link or None,
            color_hex=_color_hex(run.color) if run.HasField("color") else None,
            emphasis=(run.emphasis_style or run.highlight_color) or None,
        )

    @property
    def is_list(self) -> bool:
        return self.style_type in LIST_STYLES

    @property
    def bold(self) -> bool:
        return self.font_weight in (1, 3)

    @property
    def italic(self) -> bool:
        return self.font_weight in (2, 3)

    @property
    def item_key(self):
        return (self.style_type, self.indent, self.checklist_done)


@dataclass(frozen=True)
class MergedRun:
    length: int
    sig: StyleSig
    attachment: Optional[AttachmentRef] = None


def runs_from_note(note: pb.Note) -> List[MergedRun]:
    out: List[MergedRun] = []
    for r in note.attribute_run:
        attachment = None
        if r.HasField("attachment_info"):
            ai = r.attachment_info
            attachment = AttachmentRef(
                identifier=ai.attachment_identifier or None,
                type_uti=ai.type_uti or None,
            )
        out.append(
            MergedRun(length=max(0, r.length), sig=StyleSig.from_run(r), attachment=attachment)
        )
    return out


def merge_runs(runs: Iterable[MergedRun]) -> List[MergedRun]:
    """Coalesce adjacent runs with identical styling and no attachment."""
    out: List[MergedRun] = []
    for r in runs:
        if (
            out
            and r.attachment is None
            and out[-1].attachment is None
            and out[-1].sig == r.sig
        ):
            out[-1] = MergedRun(length=out[-1].length + r.length, sig=r.sig)
        else:
            out.append(r)
    return out


class Utf16Text:
    """A string addressed by UTF-16 code-unit offsets.

    Offsets past the end are clamped. An offset that lands between the two
    halves of a surrogate pair is moved past the pair, so adjacent slices
    never split a character.
    """

    def __init__(self, text: str):
        self._units = text.encode("utf-16-le", "surrogatepass")

    def __len__(self) -> int:
        return len(self._units) // 2

    def _align(self, pos: int) -> int:
        pos = min(max(pos, 0), len(self))
        if 0 < pos < len(self):
            unit = int.from_bytes(self._units[pos * 2 : pos * 2 + 2], "little")
            if 0xDC00 <= unit <= 0xDFFF:
                return pos + 1
        return pos

    def slice(self, start: int, length: int) -> str:
        begin = self._align(start)
        end = max(begin, self._align(start + max(length, 0)))
        return self._units[begin * 2 : end * 2].decode("utf-16-le", "surrogatepass")


@dataclass
class ListLevel:
    kind: int
    indent: int
    tag: str
    li_open: bool = False


class ListStack:
    """Open <ul>/<ol> levels. Indents strictly increase from bottom to top."""

    def __init__(self, out: List[str]):
        self._out = out
        self.levels: List[ListLevel] = []

    def __len__(self) -> int:
        return len(self.levels)

    @property
    def indents(self) -> List[int]:
        return [lvl.indent for lvl in self.levels]

    def close_top(self) -> None:
        level = self.levels.pop()
        if level.li_open:
            self._out.append("</li>")
        self._out.append(f"</{level.tag}>")

    def close_all(self) -> None:
        while self.levels:
            self.close_top()

    def enter(self, kind: int, indent: int, start: Optional[int] = None) -> None:
        """Make the top level a `kind` list at `indent`, one level per step."""
        while self.levels and (
            self.levels[-1].indent > indent
            or (self.levels[-1].indent == indent and self.levels[-1].kind != kind)
        ):
            self.close_top()
        while not self.levels or self.levels[-1].indent < indent:
            parent = self.levels[-1] if self.levels else None
            level_indent = parent.indent + 1 if parent else 0
            if parent is not None and not parent.li_open:
                self._out.append("<li>")
                parent.li_open = True
            tag = "ol" if kind == StyleType.NUMBERED_LIST else "ul"
            attrs = ""
            if kind == StyleType.DASHED_LIST:
                attrs = ' class="dashed"'
            elif kind == StyleType.CHECKBOX:
                attrs = ' class="checklist"'
            elif start and start > 1 and level_indent == indent:
                attrs = f' start="{int(start)}"'
            self._out.append(f"<{tag}{attrs}>")
            self.levels.append(ListLevel(kind=kind, indent=level_indent, tag=tag))

    def add_item(self, content: str) -> None:
        top = self.levels[-1]
        if top.li_open:
            self._out.append("</li>")
        self._out.append(f"<li>{content}")
        top.li_open = True


def render_note_fragment(
    note: pb.Note,
    datasource: Optional[NoteDataSource] = None,
    config: Optional[RenderConfig] = None,
) -> str:
    cfg = config or RenderConfig()
    text = Utf16Text(note.note_text or "")
    runs = merge_runs(runs_from_note(note))

    out: List[str] = []
    lists = ListStack(out)
    block: Optional[str] = None
    pending_pre_breaks = 0
    item_parts: List[str] = []
    item_sig: Optional[StyleSig] = None
    item_has_content = False

    def open_block(tag: str, sig: StyleSig) -> None:
        nonlocal block
        if block == tag:
            return
        close_block()
        styles: List[str] = []
        if tag == "pre":
            styles.append(PRE_STYLE)
        if sig.alignment in _ALIGN_CSS:
            styles.append(f"text-align:{_ALIGN_CSS[sig.alignment]}")
        style_attr = f' style="{";".join(styles)}"' if styles else ""
        out.append(f"<{tag}{style_attr}>")
        block = tag

    def close_block() -> None:
        nonlocal block, pending_pre_breaks
        if block:
            out.append(f"</{block}>")
        block = None
        pending_pre_breaks = 0

    def flush_item() -> None:
        nonlocal item_parts, item_sig, item_has_content
        if item_sig is not None and item_has_content:
            glyph = ""
            if item_sig.style_type == StyleType.CHECKBOX:
                glyph = (CHECKED_GLYPH if item_sig.checklist_done else UNCHECKED_GLYPH) + " "
            lists.enter(item_sig.style_type, item_sig.indent, item_sig.start_number)
            lists.add_item(glyph + "".join(item_parts))
        item_parts = []
        item_sig = None
        item_has_content = False

    def ensure_item(sig: StyleSig) -> None:
        nonlocal item_sig
        if item_sig is not None and item_sig.item_key != sig.item_key:
            flush_item()
        if item_sig is None:
            close_block()
            item_sig = sig

    def wrap_inline(sig: StyleSig, inner: str) -> str:
        if not inner:
            return ""
        opens: List[str] = []
        closes: List[str] = []

        def push(open_tag: str, close_tag: str) -> None:
            opens.append(open_tag)
            closes.insert(0, close_tag)

        if sig.bold:
            push("<b>", "</b>")
        if sig.italic:
            push("<i>", "</i>")
        if sig.underlined:
            push("<u>", "</u>")
        if sig.strikethrough:
            push("<s>", "</s>")
        if sig.superscript > 0:
            push("<sup>", "</sup>")
        elif sig.superscript < 0:
            push("<sub>", "</sub>")
        styles: List[str] = []
        if sig.color_hex:
            styles.append(f"color:{sig.color_hex}")
        if sig.emphasis in (1, 2, 3, 4, 5):
            styles.append(f"background-color:var(--hl{sig.emphasis}-bg)")
        if styles:
            push(f'<span style="{";".join(styles)}">', "</span>")
        if sig.link:
            attrs = [f'href="{html.escape(sig.link)}"']
            if cfg.link_target_blank:
                attrs.append('target="_blank"')
            if cfg.link_rel:
                attrs.append(f'rel="{html.escape(cfg.link_rel)}"')
            push(f"<a {' '.join(attrs)}>", "</a>")
        return "".join(opens) + inner + "".join(closes)

    def attachment_html(ref: AttachmentRef) -> str:
        ident = ref.identifier or ""
        uti = ref.lookup_uti(datasource) or ""
        lowered = uti.lower()
        if is_inline_text_uti(lowered) or lowered == URL_UTI:
            ctx = context_for(ident, uti, datasource, cfg)
            return render_attachment(
                ctx, lambda n: render_note_fragment(n, datasource, cfg), cfg
            )
        if lowered == TABLE_UTI:
            return placeholder(ident, uti)
        return placeholder(ident, uti, file_label(uti))

    offset = 0
    for run in runs:
        sig = run.sig
        if run.attachment is not None:
            offset += run.length
            fragment = attachment_html(run.attachment)
            if sig.is_list:
                ensure_item(sig)
                item_parts.append(fragment)
                item_has_content = item_has_content or bool(fragment)
            else:
                flush_item()
                lists.close_all()
                if block != BLOCK_TAGS.get(sig.style_type):
                    close_block()
                out.append(fragment)
            continue

        segment = text.slice(offset, run.length)
        offset += run.length
        segment = segment.replace("\x00", "\u2400").replace("\ufffc", "")
        pieces = segment.split("\n")
        last = len(pieces) - 1

        if sig.is_list:
            for k, piece in enumerate(pieces):
                if piece:
                    ensure_item(sig)
                    item_parts.append(wrap_inline(sig, html.escape(piece)))
                    if piece.strip():
                        item_has_content = True
                if k < last:
                    flush_item()
            continue

        flush_item()
        lists.close_all()
        tag = BLOCK_TAGS.get(sig.style_type)
        if tag is None:
            close_block()
            for k, piece in enumerate(pieces):
                out.append(wrap_inline(sig, html.escape(piece)))
                if k < last:
                    out.append("<br>")
            continue

        for k, piece in enumerate(pieces):
            if piece:
                open_block(tag, sig)
                if pending_pre_breaks:
                    out.append("\n" * pending_pre_breaks)
                    pending_pre_breaks = 0
                out.append(wrap_inline(sig, html.escape(piece)))
            if k < last:
                if tag == "pre" and block == "pre":
                    pending_pre_breaks += 1
                else:
                    close_block()

    flush_item()
    lists.close_all()
    close_block()
    while out and out[-1] in ("<br>", ""):
        out.pop()
    return "".join(out)


_PAGE_CSS = (
    ":root{--hl1-bg:#BA55D333;--hl2-bg:#D5000044;--hl3-bg:#FF6F0022;--hl4-bg:#289C8ECC;--hl5-bg:#2196F333}"
    "body{line-height:1.4;background:#fff;color:#000}"
    "blockquote{margin:.5em 0 .5em 1em;padding-left:.8em;border-left:3px solid #ddd}"
    "a{text-decoration:underline}"
    "img{max-width:100%;height:auto}"
    "table{border-collapse:collapse;margin:.5rem 0}"
    "td,th{border:1px solid #ccc;padding:.25rem .5rem;vertical-align:top}"
    "ul.dashed{list-style:none;padding-left:1.2em}"
    "ul.dashed>li::before{content:'\\2013  ';position:relative;left:-0.6em}"
    "ul.checklist{list-style:none;padding-left:1.2em}"
)


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt is not None else None


def render_note_page(
    title: str,
    html_fragment: str,
    options: Optional[HtmlOptions] = None,
    *,
    created: Optional[datetime] = None,
    modified: Optional[datetime] = None,
    for_pdf: bool = False,
    extra_css: str = "",
) -> str:
    opts = options or HtmlOptions()
    # The PDF renderer applies page margins itself.
    margin = "0" if for_pdf else opts.margin_css
    meta = ""
    for name, value in (("created", _iso(created)), ("modified", _iso(modified))):
        if value:
            meta += f'<meta name="{name}" content="{html.escape(value)}">'
    return (
        '<!doctype html><html><head><meta charset="utf-8">'
        f"{meta}<title>{html.escape(title)}</title>"
        "<style>"
        f"{_PAGE_CSS}"
        f"body{{font-family:{opts.font_family.css_stack};"
        f"font-size:{opts.font_size_points:g}pt;margin:{margin}}}"
        f'{extra_css}</style></head><body><div class="note-content">'
        f"{html_fragment}</div></body></html>"
    )


class NoteRenderer:
    """Class-based interface for note rendering."""

    def __init__(self, config: Optional[RenderConfig] = None):
        self.config = config or RenderConfig()

    def render(
        self,
        note: pb.Note,
        datasource: Optional[NoteDataSource] = None,
        *,
        link_images: bool = False,
    ) -> str:
        """Render the note body to an HTML fragment with attachments resolved."""
        fragment = render_note_fragment(note, datasource, config=self.config)
        return resolve_placeholders(
            fragment,
            datasource,
            lambda cell: self.render(cell, datasource, link_images=link_images),
            self.config,
            link_images=link_images,
        )

    def render_body(
        self,
        body: NoteBody,
        datasource: Optional[NoteDataSource] = None,
        *,
        link_images: bool = False,
    ) -> str:
        if body.note is not None:
            return self.render(body.note, datasource, link_images=link_images)
        # Unstructured bodies carry only plain text.
        return "<br>".join(html.escape(line) for line in (body.text or "").split("\n"))
