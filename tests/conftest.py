"""Shared fixtures: in-memory storage, scripted collectors and feed builders."""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pytest
import structlog

from catalog_collector.collectors.base import Collector, CommitHandler
from catalog_collector.core.cursor import At, Cursor, CursorCodec, format_timestamp
from catalog_collector.core.errors import StorageError
from catalog_collector.storage.base import Storage, StorageContent


BASE_ADDRESS = "https://resolver.example.org/v3/"
FEED_ROOT = "https://catalog.example.org/v3/catalog0/index.json"
CURSOR_URI = BASE_ADDRESS + "meta/cursor.json"


def ts(minutes: int) -> datetime:
    """A commit timestamp ``minutes`` after a fixed origin."""
    return datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=minutes)


class MemoryStorage(Storage):
    """Storage keeping blobs in a dictionary, with injectable failures."""

    def __init__(self, base_address: str = BASE_ADDRESS):
        super().__init__(base_address)
        self.blobs: Dict[str, StorageContent] = {}
        self.saves: List[str] = []
        self.loads: List[str] = []
        self.fail_load: Optional[Exception] = None
        self.fail_save_at: Optional[int] = None
        self.fail_save_error: Exception = StorageError("quota exceeded")

    async def load(self, uri: str) -> Optional[StorageContent]:
        self.loads.append(uri)
        if self.fail_load is not None:
            raise self.fail_load
        return self.blobs.get(uri)

    async def save(self, uri: str, content: StorageContent) -> None:
        attempt = len(self.saves) + 1
        self.saves.append(uri)
        if self.fail_save_at is not None and attempt == self.fail_save_at:
            raise self.fail_save_error
        self.blobs[uri] = content

    def cursor_saves(self) -> int:
        return self.saves.count(CURSOR_URI)

    def stored_cursor(self) -> Cursor:
        content = self.blobs.get(CURSOR_URI)
        return CursorCodec().decode(content.data if content else None)

    def put_cursor(self, cursor: At, source: str = FEED_ROOT) -> None:
        self.blobs[CURSOR_URI] = StorageContent.from_text(CursorCodec().encode(cursor, source))


class ScriptedCollector(Collector):
    """Collector replaying a fixed sequence of commits."""

    def __init__(self, commits: Sequence[datetime] = (), error: Optional[BaseException] = None, fail_after: int = 0):
        super().__init__()
        self.commits = list(commits)
        self.error = error
        self.fail_after = fail_after
        self.started_from: Optional[Cursor] = None
        self.transport = None

    async def run(self, feed_root, cursor, on_commit: CommitHandler, transport=None) -> Cursor:
        self.started_from = cursor
        self.transport = transport
        current = cursor
        for index, timestamp in enumerate(self.commits):
            if self.error is not None and index == self.fail_after:
                raise self.error
            current = At(timestamp)
            await on_commit(current)
        if self.error is not None and self.fail_after >= len(self.commits):
            raise self.error
        return current


def page_document(base: str, items: Sequence[Tuple[str, datetime]]) -> dict:
    return {
        "@id": base,
        "items": [
            {
                "@id": uri,
                "@type": "nuget:PackageDetails",
                "commitTimeStamp": format_timestamp(timestamp),
            }
            for uri, timestamp in items
        ],
    }


def index_document(feed_root: str, pages: Sequence[Tuple[str, datetime]]) -> dict:
    return {
        "@id": feed_root,
        "items": [
            {"@id": uri, "@type": "CatalogPage", "commitTimeStamp": format_timestamp(timestamp)}
            for uri, timestamp in pages
        ],
    }


class DictTransport:
    """Transport serving documents from a dictionary."""

    def __init__(self, documents: Dict[str, dict], failures: Optional[Dict[str, Exception]] = None):
        self.documents = documents
        self.failures = failures or {}
        self.requests: List[str] = []

    async def fetch_json(self, uri: str) -> dict:
        self.requests.append(uri)
        if uri in self.failures:
            raise self.failures[uri]
        return self.documents[uri]

    async def close(self) -> None:
        pass


def write_feed(root: Path, base_address: str, pages: Dict[str, List[Tuple[str, datetime]]]) -> str:
    """Write an index, its pages and item documents below ``root``.

    ``pages`` maps page names to ``(item name, commit timestamp)`` pairs.
    Returns the index path relative to ``root``.
    """
    catalog = root / "catalog0"
    catalog.mkdir(parents=True, exist_ok=True)

    page_entries = []
    for page_name, items in pages.items():
        item_entries = []
        for item_name, timestamp in items:
            item_uri = f"{base_address}catalog0/data/{item_name}.json"
            item_path = catalog / "data" / f"{item_name}.json"
            item_path.parent.mkdir(parents=True, exist_ok=True)
            item_path.write_text(json.dumps({
                "@id": item_uri,
                "id": item_name,
                "catalog": f"{base_address}catalog0/index.json",
            }))
            item_entries.append((item_uri, timestamp))

        page_uri = f"{base_address}catalog0/{page_name}.json"
        (catalog / f"{page_name}.json").write_text(json.dumps(page_document(page_uri, item_entries)))
        page_entries.append((page_uri, max(timestamp for _, timestamp in items)))

    index_uri = f"{base_address}catalog0/index.json"
    (catalog / "index.json").write_text(json.dumps(index_document(index_uri, page_entries)))
    return "catalog0/index.json"


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo any logging configuration a test applied."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()
