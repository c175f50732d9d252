"""ncctl - idempotent Nextcloud installation and maintenance for Ubuntu."""

__version__ = "0.4.0"
