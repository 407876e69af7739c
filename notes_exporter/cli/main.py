#!/usr/bin/env python
"""Command line entry point for notes-exporter."""

import typer

from notes_exporter.cli.commands import browse, export
from notes_exporter.cli.utils.logging import setup_logging

app = typer.Typer(help="Export Apple Notes to HTML, PDF, Markdown, text, RTF and LaTeX")

# Add command groups
app.add_typer(export.app, name="export")
app.add_typer(browse.app, name="browse")


@app.callback()
def callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logs"),
):
    """Export notes from a local Apple Notes database."""
    setup_logging(verbose)


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
