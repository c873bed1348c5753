"""Grid sync scheduler: periodic query-to-grid refresh service."""

__version__ = "1.0.0"
