"""Incrementally mirrors a catalog feed into resolver blobs with a durable cursor."""

__version__ = "1.0.0"
