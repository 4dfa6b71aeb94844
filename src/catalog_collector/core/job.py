"""Resolver job: one synchronization of the catalog feed into resolver storage."""

from typing import Any, Optional, Type

from .sync_engine import SyncController, SyncResult
from ..collectors.factory import CollectorFactory
from ..collectors.transport import FeedTransport, LocalFeedTransport
from ..config.settings import JobSettings
from ..storage.base import Storage
from ..storage.factory import create_storage
from ..utils.logging import get_logger


class ResolverJob:
    """Builds the storage, collector and controller for a run and executes it."""

    def __init__(
        self,
        settings: JobSettings,
        storage: Optional[Storage] = None,
        collector_factory: Type[CollectorFactory] = CollectorFactory,
        logger: Optional[Any] = None
    ):
        """Initialize the job.

        Args:
            settings: Validated job settings
            storage: Storage to use instead of the one the settings select
            collector_factory: Factory resolving ``settings.collector``
            logger: Structured logger handed down to the controller
        """
        self.settings = settings
        self.storage = storage
        self.collector_factory = collector_factory
        self.logger = logger or get_logger(self.__class__.__name__)
        self.last_result: Optional[SyncResult] = None

    def create_transport(self) -> Optional[FeedTransport]:
        """Transport override for local feed mode, None to use HTTP."""
        if not self.settings.uses_local_feed:
            return None
        return LocalFeedTransport(
            self.settings.catalog_local_base_address,
            self.settings.catalog_local_root
        )

    async def run(self) -> bool:
        """Run one synchronization.

        Returns:
            True on success, False on a transient failure

        Raises:
            Exception: Fatal failures propagate unchanged
        """
        storage = self.storage or create_storage(self.settings)
        collector = self.collector_factory.create_collector(self.settings.collector, storage, self.settings)
        transport = self.create_transport()

        controller = SyncController(
            storage=storage,
            collector=collector,
            feed_root=self.settings.feed_root,
            cursor_uri=self.settings.cursor_uri,
            store_cursor=not self.settings.dont_store_cursor,
            transport=transport,
            logger=self.logger
        )

        self.logger.info(
            "Emitting resolver blobs",
            catalog=self.settings.feed_root,
            destination=storage.describe(),
            cdn_base=self.settings.cdn_base_address,
            gallery_base=self.settings.gallery_base_address
        )

        try:
            result = await controller.run()
        finally:
            if transport is not None:
                await transport.close()

        self.last_result = result
        if result.success:
            self.logger.info("Emitted resolver blobs", cursor=str(result.cursor), commits=result.commits)
        return result.success
