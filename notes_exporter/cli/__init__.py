"""Command line interface for notes-exporter."""
