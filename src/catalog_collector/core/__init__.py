"""Core cursor protocol: cursor values, error taxonomy and classification.

The controller lives in :mod:`catalog_collector.core.sync_engine` and the job
wiring in :mod:`catalog_collector.core.job`; they import the storage and
collector packages, which in turn depend on this package.
"""

from .cursor import (
    UNSET,
    At,
    Cursor,
    CursorCodec,
    Unset,
    format_timestamp,
    is_after,
    parse_timestamp
)

from .errors import (
    CollectorError,
    CursorFormatError,
    FailureKind,
    FatalError,
    FeedFormatError,
    StorageError,
    TransientNetworkError,
    classify_error,
    is_transport_error
)

__all__ = [
    # Cursor
    "UNSET",
    "At",
    "Cursor",
    "CursorCodec",
    "Unset",
    "format_timestamp",
    "is_after",
    "parse_timestamp",

    # Errors
    "CollectorError",
    "CursorFormatError",
    "FailureKind",
    "FatalError",
    "FeedFormatError",
    "StorageError",
    "TransientNetworkError",
    "classify_error",
    "is_transport_error"
]
