"""Feed transports: HTTP via aiohttp and a disk-backed override for offline runs."""

import asyncio
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Union

import aiohttp

from ..core.errors import FeedFormatError, TransientNetworkError
from ..utils.logging import get_logger


class FeedTransport(ABC):
    """Fetches JSON documents of the feed."""

    def __init__(self):
        self.logger = get_logger(self.__class__.__name__)

    @abstractmethod
    async def fetch_json(self, uri: str) -> Dict[str, Any]:
        """Fetch and parse a feed document.

        Raises:
            TransientNetworkError: If the request fails at the transport level
            FeedFormatError: If the response is not a JSON object
        """
        pass

    async def close(self) -> None:
        """Release network resources."""
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


def _parse_document(uri: str, text: str) -> Dict[str, Any]:
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise FeedFormatError(f"Feed document {uri} is not valid JSON: {e}") from e

    if not isinstance(document, dict):
        raise FeedFormatError(f"Feed document {uri} is not a JSON object")
    return document


class HttpFeedTransport(FeedTransport):
    """Fetches feed documents over HTTP."""

    def __init__(
        self,
        timeout_seconds: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None
    ):
        """Initialize the HTTP transport.

        Args:
            timeout_seconds: Total timeout of a single request
            session: Optional session to reuse; it is not closed by this transport
        """
        super().__init__()
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.session = session
        self._owns_session = session is None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self.session

    async def fetch_json(self, uri: str) -> Dict[str, Any]:
        session = await self._ensure_session()
        self.logger.debug("GET", uri=uri)

        try:
            async with session.get(uri, timeout=self.timeout) as response:
                self.logger.debug("Response", status=response.status, uri=uri)
                if response.status != 200:
                    raise TransientNetworkError(
                        f"Request for {uri} failed with status {response.status}",
                        uri=uri,
                        status=response.status
                    )
                text = await response.text()
        except aiohttp.ClientError as e:
            self.logger.warning("HTTP request failed", uri=uri, error=str(e))
            raise TransientNetworkError(f"Network error fetching {uri}: {e}", uri=uri) from e
        except asyncio.TimeoutError as e:
            self.logger.warning("HTTP request timed out", uri=uri)
            raise TransientNetworkError(f"Timed out fetching {uri}", uri=uri) from e

        return _parse_document(uri, text)

    async def close(self) -> None:
        if self.session and self._owns_session and not self.session.closed:
            await self.session.close()


class LocalFeedTransport(FeedTransport):
    """Serves feed documents from a directory as if it were a web server root."""

    def __init__(self, base_address: str, root_folder: Union[str, Path]):
        """Initialize the local transport.

        Args:
            base_address: Address the directory stands in for
            root_folder: Directory holding the feed documents
        """
        super().__init__()
        if not base_address.endswith("/"):
            base_address += "/"
        self.base_address = base_address
        self.root_folder = Path(root_folder)

    def path_for(self, uri: str) -> Path:
        """Map a feed URI onto a file under the root folder."""
        if not uri.startswith(self.base_address):
            raise TransientNetworkError(f"No route to {uri} from {self.base_address}", uri=uri, status=404)

        relative = uri[len(self.base_address):].split("?", 1)[0].split("#", 1)[0]
        parts = [part for part in relative.split("/") if part]
        if any(part in (".", "..") for part in parts):
            raise TransientNetworkError(f"Invalid path in {uri}", uri=uri, status=400)
        return self.root_folder.joinpath(*parts)

    async def fetch_json(self, uri: str) -> Dict[str, Any]:
        path = self.path_for(uri)
        self.logger.debug("GET", uri=uri, path=str(path))

        try:
            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError as e:
            raise TransientNetworkError(f"{uri} not found under {self.root_folder}", uri=uri, status=404) from e
        except OSError as e:
            raise TransientNetworkError(f"Failed to read {path}: {e}", uri=uri, status=500) from e

        return _parse_document(uri, text)
