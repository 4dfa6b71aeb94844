"""Cursor-driven synchronization of the catalog feed into resolver storage."""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from .cursor import UNSET, At, Cursor, CursorCodec
from .errors import FailureKind, StorageError, TransientNetworkError, classify_error
from ..collectors.base import Collector
from ..collectors.transport import FeedTransport
from ..config.settings import CURSOR_BLOB_NAME
from ..storage.base import Storage, StorageContent
from ..utils.logging import get_logger, log_async_execution_time


CURSOR_CONTENT_TYPE = "application/json"
CURSOR_CACHE_CONTROL = "no-store"


class SyncState(str, Enum):
    """States of a synchronization run."""
    IDLE = "idle"
    CURSOR_LOADING = "cursor_loading"
    RUNNING = "running"
    CHECKPOINT_PENDING = "checkpoint_pending"
    DONE = "done"
    FAILED = "failed"


@dataclass
class SyncResult:
    """Result of a synchronization run that did not fail fatally."""

    success: bool
    cursor: Cursor = UNSET
    commits: int = 0
    checkpoints_written: int = 0
    error_message: Optional[str] = None
    error: Optional[TransientNetworkError] = None
    duration: Optional[float] = None


class SyncController:
    """Drives a collector from the stored cursor and checkpoints its commits.

    The checkpoint is written synchronously with each commit and only after
    the collector reports that the commit's artifacts are saved, so the stored
    cursor never runs ahead of the stored artifacts. Transient network failures
    end the run with an unsuccessful result; everything else propagates.
    """

    def __init__(
        self,
        storage: Storage,
        collector: Collector,
        feed_root: str,
        cursor_uri: Optional[str] = None,
        store_cursor: bool = True,
        transport: Optional[FeedTransport] = None,
        codec: Optional[CursorCodec] = None,
        logger: Optional[Any] = None
    ):
        """Initialize the controller.

        Args:
            storage: Storage holding the checkpoint document
            collector: Collector producing commits
            feed_root: Address of the feed index
            cursor_uri: Checkpoint location, ``meta/cursor.json`` under the storage by default
            store_cursor: False to never write the checkpoint
            transport: Transport override handed to the collector
            codec: Checkpoint document codec
            logger: Structured logger, a module logger by default
        """
        self.storage = storage
        self.collector = collector
        self.feed_root = feed_root
        self.cursor_uri = cursor_uri or storage.resolve_uri(CURSOR_BLOB_NAME)
        self.store_cursor = store_cursor
        self.transport = transport
        self.codec = codec or CursorCodec()
        self.logger = logger or get_logger(self.__class__.__name__)

        self.state = SyncState.IDLE
        self.persisted_cursor: Cursor = UNSET
        self.commits = 0
        self.checkpoints_written = 0
        self._checkpoint_error: Optional[BaseException] = None

    async def load_cursor(self) -> Cursor:
        """Load the stored cursor, UNSET if no checkpoint exists.

        Raises:
            StorageError: If the checkpoint cannot be read
            CursorFormatError: If the checkpoint is malformed
        """
        self.logger.info("Loading cursor", cursor_uri=self.cursor_uri)
        try:
            content = await self.storage.load(self.cursor_uri)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to load cursor from {self.cursor_uri}: {e}", uri=self.cursor_uri) from e

        cursor = self.codec.decode(content.data if content is not None else None)
        self.logger.info("Loaded cursor", cursor=str(cursor))
        return cursor

    async def store_checkpoint(self, cursor: At) -> None:
        """Overwrite the checkpoint with ``cursor``.

        Raises:
            StorageError: If the save fails
        """
        self.logger.info("Storing next cursor", cursor=str(cursor))
        content = StorageContent.from_text(
            self.codec.encode(cursor, self.feed_root),
            content_type=CURSOR_CONTENT_TYPE,
            cache_control=CURSOR_CACHE_CONTROL
        )
        try:
            await self.storage.save(self.cursor_uri, content)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to store cursor at {self.cursor_uri}: {e}", uri=self.cursor_uri) from e
        self.logger.info("Stored cursor")

    async def on_commit(self, cursor: At) -> None:
        """Checkpoint a commit reported by the collector."""
        self.commits += 1

        if cursor == self.persisted_cursor:
            return

        if not self.store_cursor:
            self.logger.debug("Not storing cursor as requested", cursor=str(cursor))
            return

        self.state = SyncState.CHECKPOINT_PENDING
        try:
            await self.store_checkpoint(cursor)
        except BaseException as e:
            self._checkpoint_error = e
            raise

        self.persisted_cursor = cursor
        self.checkpoints_written += 1
        self.state = SyncState.RUNNING

    @log_async_execution_time
    async def run(self) -> SyncResult:
        """Run one synchronization.

        Returns:
            A successful result with the final cursor, or an unsuccessful one
            for a transient network failure

        Raises:
            Exception: Any fatal failure, unchanged
        """
        start_time = time.monotonic()
        self.commits = 0
        self.checkpoints_written = 0
        self._checkpoint_error = None

        if not self.store_cursor:
            self.logger.warning("REMEMBER that you requested NOT to store cursor at the end")

        self.state = SyncState.CURSOR_LOADING
        try:
            self.persisted_cursor = await self.load_cursor()
        except BaseException:
            self.state = SyncState.FAILED
            raise

        self.state = SyncState.RUNNING
        try:
            final_cursor = await self.collector.run(
                self.feed_root,
                self.persisted_cursor,
                self.on_commit,
                transport=self.transport
            )
        except Exception as e:
            self.state = SyncState.FAILED

            if self._checkpoint_error is not None or classify_error(e) is FailureKind.FATAL:
                self.logger.error(
                    "Sync failed",
                    feed_root=self.feed_root,
                    commits=self.commits,
                    cursor=str(self.persisted_cursor),
                    error=str(e)
                )
                raise

            self.logger.warning(
                "Sync stopped by a transient network failure, retry on the next run",
                feed_root=self.feed_root,
                commits=self.commits,
                cursor=str(self.persisted_cursor),
                error=str(e),
                exc_info=True
            )
            if isinstance(e, TransientNetworkError):
                error = e
            else:
                error = TransientNetworkError(str(e))
                error.__cause__ = e
            return SyncResult(
                success=False,
                cursor=self.persisted_cursor,
                commits=self.commits,
                checkpoints_written=self.checkpoints_written,
                error_message=str(e),
                error=error,
                duration=time.monotonic() - start_time
            )
        except BaseException:
            self.state = SyncState.FAILED
            raise

        self.state = SyncState.DONE
        self.logger.info(
            "Sync completed",
            feed_root=self.feed_root,
            cursor=str(final_cursor),
            commits=self.commits,
            checkpoints_written=self.checkpoints_written
        )
        return SyncResult(
            success=True,
            cursor=final_cursor,
            commits=self.commits,
            checkpoints_written=self.checkpoints_written,
            duration=time.monotonic() - start_time
        )
