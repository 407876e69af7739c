"""Rendering support for Apple Notes, independent of where notes come from.

Contains:
- renderer_iface: the minimal datasource Protocol and AttachmentRef value type
- renderer: pure HTML renderer for note content (fragment + page)
- formats: Markdown, plain text, RTF and LaTeX derived from the HTML
- datasource: NoteStore-backed datasource for attachments
"""
