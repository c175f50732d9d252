"""Command-line interface for ncctl."""
