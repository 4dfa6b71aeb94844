"""Base storage interface shared by the local and cloud blob backends."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urljoin

from ..core.errors import StorageError
from ..utils.logging import get_logger


@dataclass
class StorageContent:
    """A blob together with the headers it is served with."""

    data: bytes
    content_type: str = "application/octet-stream"
    cache_control: Optional[str] = None

    @classmethod
    def from_text(
        cls,
        text: str,
        content_type: str = "application/json",
        cache_control: Optional[str] = None
    ) -> "StorageContent":
        """Create content from a string, encoded as UTF-8."""
        return cls(data=text.encode("utf-8"), content_type=content_type, cache_control=cache_control)

    def text(self) -> str:
        """Decode the blob as UTF-8."""
        return self.data.decode("utf-8")


class Storage(ABC):
    """Abstract blob storage addressed by absolute URIs under a base address."""

    def __init__(self, base_address: str):
        """Initialize the storage.

        Args:
            base_address: Public address the stored blobs are served from
        """
        if not base_address.endswith("/"):
            base_address += "/"
        self.base_address = base_address
        self.logger = get_logger(self.__class__.__name__)

    def resolve_uri(self, relative: str) -> str:
        """Resolve a blob name against the base address."""
        return urljoin(self.base_address, relative.lstrip("/"))

    def relative_name(self, uri: str) -> str:
        """Return the blob name of ``uri`` relative to the base address.

        Raises:
            StorageError: If ``uri`` is not under the base address
        """
        if not uri.startswith(self.base_address):
            raise StorageError(
                f"URI {uri} is outside the storage base address {self.base_address}",
                uri=uri
            )

        name = uri[len(self.base_address):].split("?", 1)[0].split("#", 1)[0]
        if not name or name.endswith("/"):
            raise StorageError(f"URI {uri} does not name a blob", uri=uri)
        if any(part in ("", ".", "..") for part in name.split("/")):
            raise StorageError(f"URI {uri} has an invalid blob path", uri=uri)
        return name

    @abstractmethod
    async def load(self, uri: str) -> Optional[StorageContent]:
        """Load a blob.

        Args:
            uri: Absolute URI of the blob

        Returns:
            The blob content, or None if it does not exist

        Raises:
            StorageError: If the backend fails
        """
        pass

    @abstractmethod
    async def save(self, uri: str, content: StorageContent) -> None:
        """Create or overwrite a blob.

        Args:
            uri: Absolute URI of the blob
            content: Blob data and headers

        Raises:
            StorageError: If the backend fails
        """
        pass

    def describe(self) -> str:
        """Human-readable destination for log messages."""
        return self.base_address
