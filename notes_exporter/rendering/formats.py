"""
Derived output formats.

HTML is the canonical rendering; Markdown, plain text, RTF and LaTeX are
produced by walking the HTML with BeautifulSoup. Each writer dispatches on tag
name to ``convert_<tag>(el, text)`` where ``text`` is the already-converted
content of the element's children. Lists, tables and preformatted blocks need
their structure and are handled top-down instead.
"""

from __future__ import annotations

import getpass
import logging
import re
from datetime import datetime
from typing import List, Optional

from bs4 import BeautifulSoup
from bs4.element import Comment, Declaration, Doctype, NavigableString, Tag

from .options import (
    ExportFormat,
    ExportOptions,
    LatexOptions,
    RtfOptions,
)
from .renderer import CHECKED_GLYPH, UNCHECKED_GLYPH, render_note_page

LOGGER = logging.getLogger(__name__)

_SKIPPED_TAGS = {"head", "style", "script", "title", "meta"}
_NEWLINES = re.compile(r"\n{3,}")


# ---------------------------------------------------------------------- escaping

_LATEX_ESCAPES = str.maketrans(
    {
        "\\": r"\textbackslash{}",
        "&": r"\&",
        "%": r"\%",
        "$": r"\$",
        "#": r"\#",
        "_": r"\_",
        "{": r"\{",
        "}": r"\}",
        "~": r"\textasciitilde{}",
        "^": r"\textasciicircum{}",
    }
)


def escape_latex(text: str) -> str:
    """Escape the ten LaTeX specials in a single pass."""
    return text.translate(_LATEX_ESCAPES)


def escape_rtf(text: str) -> str:
    out: List[str] = []
    for ch in text:
        code = ord(ch)
        if ch in "\\{}":
            out.append("\\" + ch)
        elif ch == "\n":
            out.append("\\line ")
        elif ch == "\t":
            out.append("\\tab ")
        elif code < 0x80:
            out.append(ch)
        else:
            # \uN takes a signed 16-bit value; astral characters become a
            # surrogate pair.
            units = ch.encode("utf-16-le", "surrogatepass")
            for i in range(0, len(units), 2):
                unit = int.from_bytes(units[i : i + 2], "little")
                if unit > 0x7FFF:
                    unit -= 0x10000
                out.append(f"\\u{unit}?")
    return "".join(out)


_MD_SPECIALS = re.compile(r"([\\`*_\[\]])")


def escape_markdown(text: str) -> str:
    return _MD_SPECIALS.sub(r"\\\1", text)


# ---------------------------------------------------------------------- walker


class HtmlFormatWriter:
    """Base HTML tree walker."""

    def convert(self, fragment: str) -> str:
        soup = BeautifulSoup(fragment or "", "html.parser")
        root = soup.find("div", class_="note-content") or soup
        return self.finish(self.process_children(root, 0))

    def finish(self, text: str) -> str:
        return _NEWLINES.sub("\n\n", text).strip()

    def escape(self, text: str) -> str:
        return text

    def process_children(self, node: Tag, depth: int) -> str:
        return "".join(self.process(child, depth) for child in node.children)

    def process(self, node, depth: int) -> str:
        if isinstance(node, (Comment, Declaration, Doctype)):
            return ""
        if isinstance(node, NavigableString):
            return self.escape(str(node))
        if not isinstance(node, Tag) or node.name in _SKIPPED_TAGS:
            return ""
        if node.name in ("ul", "ol"):
            return self.convert_list(node, depth)
        if node.name == "table":
            return self.convert_table(node)
        if node.name == "pre":
            return self.convert_pre(node)
        text = self.process_children(node, depth)
        handler = getattr(self, f"convert_{node.name}", None)
        return handler(node, text) if handler else text

    def list_items(self, el: Tag, depth: int):
        """Yield (index, inline text, nested list output) for each <li>."""
        start = int(el.get("start", 1) or 1) if el.name == "ol" else 1
        for i, li in enumerate(el.find_all("li", recursive=False)):
            inline: List[str] = []
            nested: List[str] = []
            for child in li.children:
                if isinstance(child, Tag) and child.name in ("ul", "ol"):
                    nested.append(self.convert_list(child, depth + 1))
                else:
                    inline.append(self.process(child, depth))
            yield start + i, "".join(inline).strip(), "".join(nested)

    def table_rows(self, el: Tag) -> List[List[str]]:
        rows: List[List[str]] = []
        for tr in el.find_all("tr"):
            cells = [
                self.process_children(td, 0).strip()
                for td in tr.find_all(["td", "th"], recursive=False)
            ]
            rows.append(cells)
        return rows

    def convert_list(self, el: Tag, depth: int) -> str:
        return "".join(
            f"{inline}\n{nested}" for _, inline, nested in self.list_items(el, depth)
        )

    def convert_table(self, el: Tag) -> str:
        return "".join(" ".join(r) + "\n" for r in self.table_rows(el))

    def convert_pre(self, el: Tag) -> str:
        return self.escape(el.get_text()) + "\n"


# ---------------------------------------------------------------------- writers


class PlainTextWriter(HtmlFormatWriter):
    def convert_br(self, el, text):
        return "\n"

    def _block(self, el, text):
        return f"{text.strip()}\n"

    convert_h1 = convert_h2 = convert_h3 = convert_p = convert_blockquote = _block

    def convert_a(self, el, text):
        href = el.get("href")
        if href and href != text:
            return f"{text} ({href})"
        return text

    def convert_img(self, el, text):
        alt = el.get("alt")
        return f"[Image: {alt}]" if alt else ""

    def convert_list(self, el, depth):
        ordered = el.name == "ol"
        lines = [
            f"{'  ' * depth}{f'{n}. ' if ordered else '• '}{inline}\n{nested}"
            for n, inline, nested in self.list_items(el, depth)
        ]
        return ("\n" if depth == 0 else "") + "".join(lines)

    def convert_table(self, el):
        return "\n" + "".join("\t".join(r) + "\n" for r in self.table_rows(el)) + "\n"

    def finish(self, text):
        text = "\n".join(line.rstrip() for line in text.split("\n"))
        return super().finish(text)


class MarkdownWriter(HtmlFormatWriter):
    def escape(self, text):
        return escape_markdown(text)

    def convert_h1(self, el, text):
        return f"\n# {text.strip()}\n\n"

    def convert_h2(self, el, text):
        return f"\n## {text.strip()}\n\n"

    def convert_h3(self, el, text):
        return f"\n### {text.strip()}\n\n"

    def convert_p(self, el, text):
        return f"{text.strip()}\n\n"

    def convert_br(self, el, text):
        return "\n"

    def _wrap(marker: str):
        def convert(self, el, text):
            if not text.strip():
                return text
            return f"{marker}{text}{marker}"

        return convert

    convert_b = convert_strong = _wrap("**")
    convert_i = convert_em = _wrap("*")
    convert_u = _wrap("_")
    convert_s = convert_del = convert_strike = _wrap("~~")
    del _wrap

    def convert_a(self, el, text):
        href = el.get("href")
        return f"[{text}]({href})" if href else text

    def convert_img(self, el, text):
        src = el.get("src") or ""
        if not src or src.startswith("data:"):
            return ""
        return f"![{el.get('alt') or ''}]({src})"

    def convert_list(self, el, depth):
        ordered = el.name == "ol"
        lines: List[str] = []
        for n, inline, nested in self.list_items(el, depth):
            marker = f"{n}. " if ordered else "- "
            if inline.startswith(CHECKED_GLYPH):
                marker, inline = "- [x] ", inline[len(CHECKED_GLYPH) :].lstrip()
            elif inline.startswith(UNCHECKED_GLYPH):
                marker, inline = "- [ ] ", inline[len(UNCHECKED_GLYPH) :].lstrip()
            lines.append(f"{'  ' * depth}{marker}{inline}\n{nested}")
        return ("\n" if depth == 0 else "") + "".join(lines) + ("\n" if depth == 0 else "")

    def convert_table(self, el):
        rows = self.table_rows(el)
        if not rows:
            return ""
        width = max(len(r) for r in rows)
        rows = [r + [""] * (width - len(r)) for r in rows]

        def line(cells: List[str]) -> str:
            return "| " + " | ".join(c.replace("|", "\\|") for c in cells) + " |\n"

        return (
            "\n"
            + line(rows[0])
            + "| " + " | ".join("---" for _ in range(width)) + " |\n"
            + "".join(line(r) for r in rows[1:])
            + "\n"
        )

    def convert_pre(self, el):
        return f"\n```\n{el.get_text()}\n```\n\n"


class RtfWriter(HtmlFormatWriter):
    def __init__(self, options: Optional[RtfOptions] = None):
        self.options = options or RtfOptions()

    @property
    def size(self) -> float:
        return self.options.font_size_points

    def escape(self, text):
        return escape_rtf(text)

    def _heading(scale: float):
        def convert(self, el, text):
            return f"{{\\b\\fs{int(self.size * scale)} {text.strip()}}}\\par\n"

        return convert

    convert_h1 = _heading(2.67)
    convert_h2 = _heading(2.33)
    convert_h3 = _heading(2.0)
    del _heading

    def _group(control: str):
        def convert(self, el, text):
            return f"{{\\{control} {text}}}" if text else ""

        return convert

    convert_b = convert_strong = _group("b")
    convert_i = convert_em = _group("i")
    convert_u = _group("ul")
    convert_s = convert_del = convert_strike = _group("strike")
    convert_sup = _group("super")
    convert_sub = _group("sub")
    del _group

    def convert_br(self, el, text):
        return "\\par\n"

    def convert_p(self, el, text):
        return f"{text}\\par\n"

    def convert_a(self, el, text):
        href = el.get("href")
        if not href:
            return text
        return (
            f'{{\\field{{\\*\\fldinst{{HYPERLINK "{escape_rtf(href)}"}}}}'
            f"{{\\fldrslt{{\\ul {text}}}}}}}"
        )

    def convert_img(self, el, text):
        alt = el.get("alt")
        return escape_rtf(f"[Image: {alt}]") if alt else ""

    def convert_list(self, el, depth):
        ordered = el.name == "ol"
        out: List[str] = []
        for n, inline, nested in self.list_items(el, depth):
            bullet = f"{n}." if ordered else "\\'95"
            out.append(f"{{\\pard\\li{720 * (depth + 1)} {bullet} {inline}\\par}}\n{nested}")
        return "".join(out)

    def convert_table(self, el):
        return "".join("\\tab ".join(r) + "\\par\n" for r in self.table_rows(el))

    def convert_pre(self, el):
        return f"{{\\f0 {escape_rtf(el.get_text())}}}\\par\n"

    def finish(self, text):
        font = self.options.font_family.rtf_name
        header = (
            "{\\rtf1\\ansi\\ansicpg1252\\deff0\n"
            f"{{\\fonttbl{{\\f0\\fnil {font};}}}}\n"
        )
        return f"{header}\\f0\\fs{int(self.size * 2)} {text.strip()}\n}}"


class LatexWriter(HtmlFormatWriter):
    def escape(self, text):
        return escape_latex(text)

    def convert_h1(self, el, text):
        return f"\n\\section{{{text.strip()}}}\n\n"

    def convert_h2(self, el, text):
        return f"\n\\subsection{{{text.strip()}}}\n\n"

    def convert_h3(self, el, text):
        return f"\n\\subsubsection{{{text.strip()}}}\n\n"

    def convert_p(self, el, text):
        return f"{text.strip()}\n\n"

    def convert_br(self, el, text):
        return "\\\\\n"

    def _command(name: str):
        def convert(self, el, text):
            return f"\\{name}{{{text}}}" if text else ""

        return convert

    convert_b = convert_strong = _command("textbf")
    convert_i = convert_em = _command("textit")
    convert_u = _command("underline")
    convert_s = convert_del = convert_strike = _command("sout")
    convert_sup = _command("textsuperscript")
    convert_sub = _command("textsubscript")
    del _command

    def convert_a(self, el, text):
        href = el.get("href")
        if not href:
            return text
        url = href.replace("\\", "/").replace("%", "\\%").replace("#", "\\#")
        return f"\\href{{{url}}}{{{text}}}"

    def convert_img(self, el, text):
        src = el.get("src") or ""
        if not src or src.startswith("data:"):
            return ""
        return f"\\includegraphics[width=\\linewidth]{{{src}}}\n"

    def convert_list(self, el, depth):
        env = "enumerate" if el.name == "ol" else "itemize"
        items = "".join(
            f"\\item {inline}\n{nested}" for _, inline, nested in self.list_items(el, depth)
        )
        return f"\\begin{{{env}}}\n{items}\\end{{{env}}}\n"

    def convert_table(self, el):
        rows = self.table_rows(el)
        if not rows:
            return ""
        width = max(len(r) for r in rows)
        body = "".join(" & ".join(r + [""] * (width - len(r))) + " \\\\ \\hline\n" for r in rows)
        return f"\n\\begin{{tabular}}{{|{'l|' * width}}}\n\\hline\n{body}\\end{{tabular}}\n\n"

    def convert_pre(self, el):
        return f"\n\\begin{{verbatim}}\n{el.get_text()}\n\\end{{verbatim}}\n\n"


# ---------------------------------------------------------------------- documents


def _format_date(dt: Optional[datetime]) -> str:
    return dt.strftime("%B %d, %Y %H:%M") if dt else ""


def _login_name() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return ""


def render_latex_document(
    content: str,
    title: str,
    created: Optional[datetime] = None,
    modified: Optional[datetime] = None,
    options: Optional[LatexOptions] = None,
) -> str:
    opts = options or LatexOptions()
    author = opts.author or _login_name()
    replacements = {
        "APPLE_NOTES_EXPORTER_NOTE_TITLE": escape_latex(title),
        "APPLE_NOTES_EXPORTER_NOTE_CREATION_DATE": escape_latex(_format_date(created)),
        "APPLE_NOTES_EXPORTER_NOTE_MODIFICATION_DATE": escape_latex(
            _format_date(modified)
        ),
        "APPLE_NOTES_EXPORTER_USER_FULL_NAME": escape_latex(author),
    }
    doc = opts.template
    for key, value in replacements.items():
        doc = doc.replace(key, value)
    # Content last, so placeholder-like text inside the note stays literal.
    return doc.replace("APPLE_NOTES_EXPORTER_NOTE_CONTENT", content)


def convert_fragment(
    fmt: ExportFormat,
    fragment: str,
    *,
    title: str,
    created: Optional[datetime] = None,
    modified: Optional[datetime] = None,
    options: Optional[ExportOptions] = None,
) -> str:
    """Render an HTML note fragment into a textual export format."""
    opts = options or ExportOptions()
    if fmt is ExportFormat.HTML:
        return render_note_page(
            title, fragment, opts.html, created=created, modified=modified
        )
    if fmt is ExportFormat.MARKDOWN:
        return MarkdownWriter().convert(fragment) + "\n"
    if fmt is ExportFormat.TEXT:
        return PlainTextWriter().convert(fragment)
    if fmt is ExportFormat.RTF:
        return RtfWriter(opts.rtf).convert(fragment)
    if fmt is ExportFormat.LATEX:
        return render_latex_document(
            LatexWriter().convert(fragment), title, created, modified, opts.latex
        )
    raise ValueError(f"{fmt.value} is not a textual format")
