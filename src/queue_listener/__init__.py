"""Queue listener: supervise a queue worker subprocess and restart it forever."""

__version__ = "1.0.0"
