"""In-memory persistence, event log, subscription model and metrics for a publish/subscribe broker."""

__version__ = "0.1.0"