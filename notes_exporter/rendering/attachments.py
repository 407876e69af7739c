"""
UTI-based attachment rendering for Apple Notes.

Reconstruction leaves a placeholder span for every attachment whose HTML
depends on export-time state (an exported file path, a decoded table).
`resolve_placeholders` later swaps each placeholder for the HTML produced by
the dispatcher below:

  - AttachmentContext: immutable bundle of fields the strategies may use
  - Renderers: small classes implementing `render(ctx, render_note_cb)`
  - Dispatcher: exact UTI map, then prefix rules, then default fallback

Inline text attachments (hashtags, mentions, calculator results) have no
file and are rendered immediately from their display text.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from tinyhtml import h

from .options import RenderConfig
from .renderer_iface import NoteDataSource
from .table_builder import render_table_from_mergeable

TABLE_UTI = "com.apple.notes.table"
URL_UTI = "public.url"
INLINE_TEXT_PREFIX = "com.apple.notes.inlinetextattachment"

_PLACEHOLDER_RE = re.compile(
    r'<span class="attachment-placeholder" data-attachment-id="([^"]*)" '
    r'data-attachment-type="([^"]*)">(.*?)</span>'
)


def is_inline_text_uti(uti: Optional[str]) -> bool:
    return (uti or "").lower().startswith(INLINE_TEXT_PREFIX)


def file_label(uti: Optional[str]) -> str:
    return f"[File: {uti or 'unknown'}]"


def placeholder(identifier: str, uti: str, label: str = "") -> str:
    return (
        f'<span class="attachment-placeholder" data-attachment-id="{html.escape(identifier)}" '
        f'data-attachment-type="{html.escape(uti)}">{html.escape(label)}</span>'
    )


@dataclass(frozen=True)
class AttachmentContext:
    id: str
    uti: str
    title: Optional[str] = None
    url: Optional[str] = None
    data_uri: Optional[str] = None
    mergeable_gz: Optional[bytes] = None
    link_target: Optional[str] = None
    link_rel: Optional[str] = None
    link_referrerpolicy: Optional[str] = None
    link_images: bool = False
    pdf_object_height: int = 600

    def base_attrs(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        base = {
            "class": "attachment",
            "data-uti": self.uti,
            "data-id": self.id,
        }
        if extra:
            base.update(extra)
        return base

    def link_attrs(self, cls: str) -> Dict[str, str]:
        extra = {"class": cls}
        if self.link_rel:
            extra["rel"] = self.link_rel
        if self.link_referrerpolicy:
            extra["referrerpolicy"] = self.link_referrerpolicy
        if self.link_target:
            extra["target"] = self.link_target
        return self.base_attrs(extra)


def _attr_html(attrs: Dict[str, str]) -> str:
    return " ".join(f'{k}="{html.escape(v)}"' for k, v in attrs.items())


class _Renderer:
    def render(
        self, ctx: AttachmentContext, render_note_cb: Callable
    ) -> str:  # pragma: no cover - interface
        raise NotImplementedError


class _DefaultRenderer(_Renderer):
    def render(self, ctx: AttachmentContext, render_note_cb: Callable) -> str:
        if ctx.url:
            label = ctx.title or ctx.url.rsplit("/", 1)[-1]
            return h("a", href=ctx.url, **ctx.link_attrs("attachment file"))(
                label
            ).render()
        return h("span", **ctx.base_attrs({"class": "attachment missing"}))(
            file_label(ctx.uti)
        ).render()


class _TableRenderer(_Renderer):
    def render(self, ctx: AttachmentContext, render_note_cb: Callable) -> str:
        if ctx.mergeable_gz:
            html_tbl = render_table_from_mergeable(ctx.mergeable_gz, render_note_cb)
            if html_tbl:
                return html_tbl
        return h("span", **ctx.base_attrs({"class": "attachment missing"}))(
            "[Table]"
        ).render()


class _UrlRenderer(_Renderer):
    def render(self, ctx: AttachmentContext, render_note_cb: Callable) -> str:
        if not ctx.url:
            return html.escape(ctx.title or "")
        return h("a", href=ctx.url, **ctx.link_attrs("attachment link"))(
            ctx.title or ctx.url
        ).render()


class _ImageRenderer(_Renderer):
    def render(self, ctx: AttachmentContext, render_note_cb: Callable) -> str:
        src = ctx.data_uri or ctx.url
        if not src:
            return _DEFAULT.render(ctx, render_note_cb)
        alt = ctx.title or (ctx.url or "").rsplit("/", 1)[-1] or "image"
        attrs = ctx.base_attrs(
            {
                "src": src,
                "alt": alt,
                "class": "attachment image",
                "style": "max-width:100%;height:auto",
            }
        )
        img = f"<img {_attr_html(attrs)}>"
        if ctx.link_images and ctx.url:
            return f'<a href="{html.escape(ctx.url)}">{img}</a>'
        return img


class _AudioRenderer(_Renderer):
    def render(self, ctx: AttachmentContext, render_note_cb: Callable) -> str:
        if not ctx.url:
            return _DEFAULT.render(ctx, render_note_cb)
        attrs = ctx.base_attrs({"src": ctx.url, "class": "attachment audio"})
        return f"<audio controls {_attr_html(attrs)}></audio>"


class _VideoRenderer(_Renderer):
    def render(self, ctx: AttachmentContext, render_note_cb: Callable) -> str:
        if not ctx.url:
            return _DEFAULT.render(ctx, render_note_cb)
        attrs = ctx.base_attrs(
            {
                "src": ctx.url,
                "class": "attachment video",
                "controls": "controls",
                "style": "max-width:100%;height:auto",
            }
        )
        return f"<video {_attr_html(attrs)}></video>"


class _PdfRenderer(_Renderer):
    def render(self, ctx: AttachmentContext, render_note_cb: Callable) -> str:
        if not ctx.url:
            return _DEFAULT.render(ctx, render_note_cb)
        title = ctx.title or ctx.url.rsplit("/", 1)[-1]
        fallback = h("a", href=ctx.url, **ctx.link_attrs("attachment link"))(title)
        obj_attrs = ctx.base_attrs(
            {
                "data": ctx.url,
                "type": "application/pdf",
                "class": "attachment pdf",
                "style": f"width:100%;height:{ctx.pdf_object_height}px",
            }
        )
        return h("object", **obj_attrs)(fallback).render()


class _HashtagRenderer(_Renderer):
    def render(self, ctx: AttachmentContext, render_note_cb: Callable) -> str:
        if not ctx.title:
            return ""
        raw_tag = ctx.title.strip()
        text = raw_tag if raw_tag.startswith("#") else f"#{raw_tag}"
        attrs = ctx.base_attrs({"class": "attachment hashtag", "data-tag": text[1:]})
        return h("span", **attrs)(text).render()


class _InlineTextRenderer(_Renderer):
    def __init__(self, cls: str):
        self.cls = cls

    def render(self, ctx: AttachmentContext, render_note_cb: Callable) -> str:
        if not ctx.title:
            return ""
        return h("span", **ctx.base_attrs({"class": f"attachment {self.cls}"}))(
            ctx.title
        ).render()


# Singletons
_DEFAULT = _DefaultRenderer()
_TABLE = _TableRenderer()
_URL = _UrlRenderer()
_IMAGE = _ImageRenderer()
_AUDIO = _AudioRenderer()
_VIDEO = _VideoRenderer()
_PDF = _PdfRenderer()
_HASHTAG = _HashtagRenderer()
_MENTION = _InlineTextRenderer("mention")
_CALC = _InlineTextRenderer("calc")
_GRAPH = _InlineTextRenderer("calc-graph")
_INLINE = _InlineTextRenderer("inline")


_EXACT: Dict[str, _Renderer] = {
    TABLE_UTI: _TABLE,
    URL_UTI: _URL,
    "com.apple.m4a-audio": _AUDIO,
    "public.mp3": _AUDIO,
    "com.adobe.pdf": _PDF,
    "public.pdf": _PDF,
    "com.apple.paper.doc.pdf": _PDF,
    "com.apple.notes.inlinetextattachment.hashtag": _HASHTAG,
    "com.apple.notes.inlinetextattachment.mention": _MENTION,
    "com.apple.notes.inlinetextattachment.calculateresult": _CALC,
    "com.apple.notes.inlinetextattachment.calculategraphexpression": _GRAPH,
    "com.apple.notes.inlinetextattachment.link": _INLINE,
    "com.apple.quicktime-movie": _VIDEO,
    "public.movie": _VIDEO,
    "public.video": _VIDEO,
    "public.mpeg-4": _VIDEO,
}


_PREFIX: list[tuple[str, _Renderer]] = [
    (INLINE_TEXT_PREFIX, _INLINE),
    ("public.audio", _AUDIO),
]


def render_attachment(
    ctx: AttachmentContext,
    render_note_cb: Callable[[Any], str],
    config: Optional[RenderConfig] = None,
) -> str:
    uti = (ctx.uti or "").lower()
    r = _EXACT.get(uti)
    if r is not None:
        return r.render(ctx, render_note_cb)
    if (config or RenderConfig()).is_image_uti(uti):
        return _IMAGE.render(ctx, render_note_cb)
    for prefix, rr in _PREFIX:
        if uti.startswith(prefix):
            return rr.render(ctx, render_note_cb)
    return _DEFAULT.render(ctx, render_note_cb)


def context_for(
    identifier: str,
    uti: str,
    datasource: Optional[NoteDataSource],
    config: RenderConfig,
    *,
    link_images: bool = False,
) -> AttachmentContext:
    """Collect everything the dispatcher may need for one attachment."""
    title = url = data_uri = None
    gz = None
    lowered = uti.lower()
    if datasource is not None and identifier:
        if lowered == TABLE_UTI:
            gz = datasource.get_mergeable_gz(identifier)
        elif lowered == URL_UTI:
            card = datasource.get_url_card(identifier)
            if card:
                url, title = card
        elif is_inline_text_uti(lowered):
            title = datasource.get_inline_text(identifier)
        else:
            asset = datasource.get_exported_asset(identifier)
            if asset is not None:
                url = asset.relative_path
                data_uri = asset.data_uri
    return AttachmentContext(
        id=identifier,
        uti=uti,
        title=title,
        url=url,
        data_uri=data_uri,
        mergeable_gz=gz,
        link_target="_blank" if config.link_target_blank else None,
        link_rel=config.link_rel,
        link_referrerpolicy=config.referrer_policy,
        link_images=link_images,
        pdf_object_height=config.pdf_object_height,
    )


def resolve_placeholders(
    fragment: str,
    datasource: Optional[NoteDataSource],
    render_note_cb: Callable[[Any], str],
    config: Optional[RenderConfig] = None,
    *,
    link_images: bool = False,
) -> str:
    """Replace attachment placeholders with their final HTML.

    Placeholders whose attachment was not exported keep their readable label.
    """
    cfg = config or RenderConfig()

    def _swap(m: "re.Match[str]") -> str:
        identifier = html.unescape(m.group(1))
        uti = html.unescape(m.group(2))
        ctx = context_for(identifier, uti, datasource, cfg, link_images=link_images)
        if uti.lower() != TABLE_UTI and not (ctx.url or ctx.data_uri):
            return m.group(3)
        return render_attachment(ctx, render_note_cb, cfg)

    return _PLACEHOLDER_RE.sub(_swap, fragment)
