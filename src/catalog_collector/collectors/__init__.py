"""Collectors that read the catalog feed and emit derived artifacts."""

from .base import (
    CatalogCollector,
    Collector,
    CommitHandler,
    FeedEntry,
    read_entries
)

from .transport import (
    FeedTransport,
    HttpFeedTransport,
    LocalFeedTransport
)

from .mirror import MirrorCollector
from .factory import CollectorFactory

__all__ = [
    # Base classes
    "CatalogCollector",
    "Collector",
    "CommitHandler",
    "FeedEntry",
    "read_entries",

    # Transports
    "FeedTransport",
    "HttpFeedTransport",
    "LocalFeedTransport",

    # Implementations
    "MirrorCollector",

    # Factory
    "CollectorFactory"
]
