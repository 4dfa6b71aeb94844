"""Collector interface and the paging catalog collector."""

import asyncio
import itertools
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .transport import FeedTransport, HttpFeedTransport
from ..core.cursor import At, Cursor, is_after, parse_timestamp
from ..core.errors import FeedFormatError
from ..storage.base import Storage
from ..utils.logging import get_logger


CommitHandler = Callable[[At], Awaitable[None]]


@dataclass
class FeedEntry:
    """A page of the feed index, or an item of a page."""

    uri: str
    commit_timestamp: datetime
    entry_type: Optional[str] = None
    properties: Dict[str, Any] = field(default_factory=dict)


def read_entries(document: Dict[str, Any], source_uri: str) -> List[FeedEntry]:
    """Read the ``items`` of an index or page document.

    Raises:
        FeedFormatError: If an entry lacks an ``@id`` or a valid ``commitTimeStamp``
    """
    items = document.get("items", [])
    if not isinstance(items, list):
        raise FeedFormatError(f"'items' of {source_uri} is not a list")

    entries = []
    for item in items:
        if not isinstance(item, dict) or not isinstance(item.get("@id"), str):
            raise FeedFormatError(f"Entry without '@id' in {source_uri}")
        try:
            timestamp = parse_timestamp(item.get("commitTimeStamp"))
        except ValueError as e:
            raise FeedFormatError(f"Invalid commitTimeStamp for {item['@id']}: {e}") from e

        entry_type = item.get("@type")
        entries.append(FeedEntry(
            uri=item["@id"],
            commit_timestamp=timestamp,
            entry_type=entry_type if isinstance(entry_type, str) else None,
            properties=item
        ))
    return entries


class Collector(ABC):
    """Reads the feed forward from a cursor and reports commits."""

    def __init__(self, **kwargs):
        self.logger = get_logger(self.__class__.__name__)

    @abstractmethod
    async def run(
        self,
        feed_root: str,
        cursor: Cursor,
        on_commit: CommitHandler,
        transport: Optional[FeedTransport] = None
    ) -> Cursor:
        """Process everything in the feed after ``cursor``.

        ``on_commit`` is awaited once per committed batch, in non-decreasing
        cursor order, after the batch's artifacts are written and before the
        next batch is started.

        Args:
            feed_root: Address of the feed index
            cursor: Processed boundary to start after
            on_commit: Handler awaited for every commit
            transport: Transport override; HTTP is used when omitted

        Returns:
            The cursor of the last commit, or ``cursor`` if nothing was new
        """
        pass


class CatalogCollector(Collector):
    """Pages through a catalog feed and hands whole commits to ``process_batch``."""

    def __init__(
        self,
        storage: Storage,
        batch_size: int = 200,
        max_pages: Optional[int] = None,
        fetch_concurrency: int = 4,
        request_timeout_seconds: float = 30.0,
        **kwargs
    ):
        """Initialize the collector.

        Args:
            storage: Destination of the derived artifacts
            batch_size: Minimum entries per batch; commits are never split
            max_pages: Soft ceiling on pages fetched per run
            fetch_concurrency: Pages fetched at the same time
            request_timeout_seconds: Timeout of the default HTTP transport
        """
        super().__init__(**kwargs)
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if fetch_concurrency < 1:
            raise ValueError("fetch_concurrency must be at least 1")

        self.storage = storage
        self.batch_size = batch_size
        self.max_pages = max_pages
        self.fetch_concurrency = fetch_concurrency
        self.request_timeout_seconds = request_timeout_seconds
        self.feed_root: Optional[str] = None

    async def run(
        self,
        feed_root: str,
        cursor: Cursor,
        on_commit: CommitHandler,
        transport: Optional[FeedTransport] = None
    ) -> Cursor:
        if transport is not None:
            return await self._run(feed_root, cursor, on_commit, transport)

        async with HttpFeedTransport(timeout_seconds=self.request_timeout_seconds) as http:
            return await self._run(feed_root, cursor, on_commit, http)

    async def _run(
        self,
        feed_root: str,
        cursor: Cursor,
        on_commit: CommitHandler,
        transport: FeedTransport
    ) -> Cursor:
        self.feed_root = feed_root
        index = await transport.fetch_json(feed_root)
        pages = sorted(
            (page for page in read_entries(index, feed_root) if is_after(page.commit_timestamp, cursor)),
            key=lambda page: page.commit_timestamp
        )

        limit = len(pages)
        if self.max_pages is not None and len(pages) > self.max_pages:
            self.logger.info(
                "Page limit reached, remaining pages are left for the next run",
                pending_pages=len(pages),
                max_pages=self.max_pages
            )
            limit = self.max_pages

        self.logger.info("Collecting feed", feed_root=feed_root, cursor=str(cursor), pages=limit)

        # A commit may continue on the next page, so the newest commit stays
        # open until an entry with a later timestamp shows up.
        current = cursor
        batch: List[FeedEntry] = []
        open_commit: List[FeedEntry] = []
        position = 0
        while position < len(pages):
            if position >= limit:
                if not open_commit:
                    break
                window = pages[position:position + 1]
            else:
                window = pages[position:min(position + self.fetch_concurrency, limit)]
            documents = await self._fetch_pages(window, transport)

            closed = False
            for offset, (page, document) in enumerate(zip(window, documents)):
                entries = sorted(
                    (entry for entry in read_entries(document, page.uri) if is_after(entry.commit_timestamp, cursor)),
                    key=lambda entry: entry.commit_timestamp
                )

                if position + offset >= limit:
                    # Past the ceiling only the rest of the open commit is taken
                    timestamp = open_commit[0].commit_timestamp
                    continuation = [entry for entry in entries if entry.commit_timestamp == timestamp]
                    open_commit.extend(continuation)
                    closed = len(continuation) < len(entries)
                    break

                for timestamp, commit in itertools.groupby(entries, key=lambda entry: entry.commit_timestamp):
                    if open_commit and timestamp == open_commit[0].commit_timestamp:
                        open_commit.extend(commit)
                        continue
                    if open_commit:
                        batch.extend(open_commit)
                        if len(batch) >= self.batch_size:
                            current = await self._commit_batch(batch, on_commit, transport)
                            batch = []
                    open_commit = list(commit)

            if closed:
                break
            position += len(window)

        batch.extend(open_commit)
        if batch:
            current = await self._commit_batch(batch, on_commit, transport)
        return current

    async def _fetch_pages(self, pages: List[FeedEntry], transport: FeedTransport) -> List[Dict[str, Any]]:
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(transport.fetch_json(page.uri)) for page in pages]
        return [task.result() for task in tasks]

    async def _commit_batch(
        self,
        batch: List[FeedEntry],
        on_commit: CommitHandler,
        transport: FeedTransport
    ) -> At:
        await self.process_batch(batch, transport)
        committed = At(batch[-1].commit_timestamp)
        self.logger.debug("Batch committed", entries=len(batch), cursor=str(committed))
        await on_commit(committed)
        return committed

    @abstractmethod
    async def process_batch(self, entries: List[FeedEntry], transport: FeedTransport) -> None:
        """Write the artifacts for a batch of feed entries.

        Entries are in commit order and every commit in the batch is complete.
        """
        pass
