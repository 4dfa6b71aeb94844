"""Feed cursor values and the checkpoint document codec."""

import json
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from .errors import CursorFormatError


CURSOR_KEY = "http://schema.nuget.org/collectors/resolver#cursor"
SOURCE_KEY = "http://schema.nuget.org/collectors/resolver#source"
XSD_DATETIME = "http://www.w3.org/2001/XMLSchema#dateTime"

_FRACTION = re.compile(r"(\.\d{6})\d+")


@dataclass(frozen=True)
class Unset:
    """Cursor of a feed that has not been processed at all."""

    def __str__(self) -> str:
        return "unset"


@dataclass(frozen=True)
class At:
    """Cursor at a commit timestamp: everything up to it is processed."""

    timestamp: datetime

    def __post_init__(self):
        object.__setattr__(self, "timestamp", to_utc(self.timestamp))

    def __str__(self) -> str:
        return format_timestamp(self.timestamp)


Cursor = Union[Unset, At]

UNSET = Unset()


def to_utc(value: datetime) -> datetime:
    """Normalize a datetime to UTC, treating naive values as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(text: str) -> datetime:
    """Parse an ISO-8601 dateTime literal as used by the catalog feed.

    The feed writes seven fractional digits and a ``Z`` suffix; both are
    accepted. Digits past microseconds are dropped.

    Raises:
        ValueError: If ``text`` is not an ISO-8601 dateTime
    """
    if not isinstance(text, str):
        raise ValueError(f"Expected a dateTime string, got {type(text).__name__}")

    normalized = text.strip()
    if normalized.endswith(("Z", "z")):
        normalized = normalized[:-1] + "+00:00"
    normalized = _FRACTION.sub(r"\1", normalized)

    return to_utc(datetime.fromisoformat(normalized))


def format_timestamp(value: datetime) -> str:
    """Render a timestamp as a UTC dateTime literal with a ``Z`` suffix."""
    return to_utc(value).isoformat(timespec="microseconds").replace("+00:00", "Z")


def is_after(timestamp: datetime, cursor: Cursor) -> bool:
    """Whether a feed timestamp lies beyond the processed boundary."""
    if isinstance(cursor, At):
        return to_utc(timestamp) > cursor.timestamp
    return True


class CursorCodec:
    """Reads and writes the checkpoint document holding a cursor."""

    def decode(self, content: Optional[Union[bytes, str]]) -> Cursor:
        """Decode a checkpoint document.

        Args:
            content: Raw document, or None when the checkpoint does not exist

        Returns:
            The stored cursor, or UNSET for a missing document

        Raises:
            CursorFormatError: If the document is malformed
        """
        if content is None:
            return UNSET

        try:
            if isinstance(content, bytes):
                content = content.decode("utf-8")
            document = json.loads(content)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CursorFormatError(f"Checkpoint is not valid JSON: {e}") from e

        if not isinstance(document, dict):
            raise CursorFormatError("Checkpoint document must be a JSON object")

        literal = document.get(CURSOR_KEY)
        if not isinstance(literal, dict) or "@value" not in literal:
            raise CursorFormatError(f"Checkpoint document has no '{CURSOR_KEY}' literal")

        literal_type = literal.get("@type")
        if literal_type is not None and literal_type != XSD_DATETIME:
            raise CursorFormatError(f"Unexpected cursor literal type: {literal_type}")

        try:
            return At(parse_timestamp(literal["@value"]))
        except ValueError as e:
            raise CursorFormatError(f"Invalid cursor value {literal['@value']!r}: {e}") from e

    def encode(self, cursor: Cursor, source_uri: str) -> str:
        """Encode a cursor together with the feed root that produced it.

        Raises:
            ValueError: If ``cursor`` is UNSET
        """
        if not isinstance(cursor, At):
            raise ValueError("An unset cursor is never written to a checkpoint")

        document: Dict[str, Any] = {
            CURSOR_KEY: {
                "@value": format_timestamp(cursor.timestamp),
                "@type": XSD_DATETIME,
            },
            SOURCE_KEY: source_uri,
        }
        return json.dumps(document, indent=2)
