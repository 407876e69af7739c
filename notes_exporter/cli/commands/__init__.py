"""Command modules for the notes-exporter CLI."""

from notes_exporter.cli.commands import browse, export

__all__ = ["browse", "export"]
