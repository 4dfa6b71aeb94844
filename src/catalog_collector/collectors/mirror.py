"""Collector that mirrors feed item documents into the target storage."""

import asyncio
import json
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin, urlparse

from .base import CatalogCollector, FeedEntry
from .transport import FeedTransport
from ..storage.base import StorageContent


class MirrorCollector(CatalogCollector):
    """Copies every new item document under the target base address.

    Links pointing at the feed's base address are rewritten to the target
    base address so the mirrored documents reference each other.
    """

    def __init__(
        self,
        storage,
        content_base_address: Optional[str] = None,
        gallery_base_address: Optional[str] = None,
        **kwargs
    ):
        super().__init__(storage, **kwargs)
        self.content_base_address = content_base_address
        self.gallery_base_address = gallery_base_address
        self.documents_written = 0

    @property
    def feed_base_address(self) -> str:
        """Directory address of the feed index."""
        return urljoin(self.feed_root or "", ".")

    def blob_name(self, entry: FeedEntry) -> str:
        """Name of the mirrored blob for a feed entry."""
        base = self.feed_base_address
        if base and entry.uri.startswith(base):
            return entry.uri[len(base):].split("?", 1)[0].split("#", 1)[0]
        return urlparse(entry.uri).path.lstrip("/")

    def rewrite(self, document: Dict[str, Any]) -> str:
        """Serialize a document with feed links pointing at the target."""
        text = json.dumps(document, indent=2)
        base = self.feed_base_address
        if base:
            text = text.replace(base, self.storage.base_address)
        return text

    async def process_batch(self, entries: List[FeedEntry], transport: FeedTransport) -> None:
        for start in range(0, len(entries), self.fetch_concurrency):
            window = entries[start:start + self.fetch_concurrency]
            async with asyncio.TaskGroup() as group:
                tasks = [group.create_task(transport.fetch_json(entry.uri)) for entry in window]

            for entry, task in zip(window, tasks):
                uri = self.storage.resolve_uri(self.blob_name(entry))
                await self.storage.save(uri, StorageContent.from_text(self.rewrite(task.result())))
                self.documents_written += 1
                self.logger.debug("Emitted blob", uri=uri, source=entry.uri)
