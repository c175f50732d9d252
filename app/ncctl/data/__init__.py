"""Bundled data files: theme and configuration templates."""
