"""Error taxonomy and classification of run failures."""

import socket
from enum import Enum
from typing import Optional

import aiohttp


class CollectorError(Exception):
    """Base exception for catalog collector errors."""
    pass


class FatalError(CollectorError):
    """An error that must halt the run and propagate, whatever its cause."""
    pass


class StorageError(FatalError):
    """Raised when loading or saving a blob fails."""

    def __init__(self, message: str, uri: Optional[str] = None):
        super().__init__(message)
        self.uri = uri


class CursorFormatError(FatalError):
    """Raised when a checkpoint document cannot be decoded."""
    pass


class FeedFormatError(FatalError):
    """Raised when a feed document is not shaped like a catalog index or page."""
    pass


class TransientNetworkError(CollectorError):
    """Raised when a request for a feed document fails at the transport level."""

    def __init__(self, message: str, uri: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.uri = uri
        self.status = status


class FailureKind(str, Enum):
    """How a failed run should be reported."""
    TRANSIENT = "transient"
    FATAL = "fatal"


TRANSPORT_ERRORS = (
    TransientNetworkError,
    aiohttp.ClientError,
    TimeoutError,
    ConnectionError,
    socket.gaierror,
)


def is_transport_error(error: BaseException) -> bool:
    """Whether ``error`` is a plain network or transport request failure."""
    if isinstance(error, FatalError):
        return False
    return isinstance(error, TRANSPORT_ERRORS)


def classify_error(error: BaseException) -> FailureKind:
    """Decide whether a failure is safe to retry on the next scheduled run.

    A failure is transient only when it is, or wraps as its sole cause, a
    single transport error. Storage and format errors, exception groups with
    more than one cause, and anything that is not a transport error are fatal.

    Args:
        error: The exception that ended the run

    Returns:
        FailureKind.TRANSIENT or FailureKind.FATAL
    """
    seen = set()
    current: Optional[BaseException] = error

    while current is not None and id(current) not in seen:
        seen.add(id(current))

        if isinstance(current, FatalError):
            return FailureKind.FATAL

        if isinstance(current, BaseExceptionGroup):
            if len(current.exceptions) != 1:
                return FailureKind.FATAL
            if is_transport_error(current.exceptions[0]):
                return FailureKind.TRANSIENT
            return FailureKind.FATAL

        if is_transport_error(current):
            return FailureKind.TRANSIENT

        current = current.__cause__

    return FailureKind.FATAL
