"""Collector factory for creating registered collector instances."""

from typing import Dict, List, Type

from .base import CatalogCollector
from .mirror import MirrorCollector
from ..config.settings import JobSettings
from ..storage.base import Storage


class CollectorFactory:
    """Factory for creating collector instances by name."""

    _collector_classes: Dict[str, Type[CatalogCollector]] = {
        "mirror": MirrorCollector,
    }

    @classmethod
    def create_collector(
        cls,
        name: str,
        storage: Storage,
        settings: JobSettings,
        **kwargs
    ) -> CatalogCollector:
        """Create a collector instance.

        Args:
            name: Registered collector name
            storage: Destination of the derived artifacts
            settings: Job settings supplying batch and paging limits
            **kwargs: Additional parameters

        Returns:
            Configured collector instance

        Raises:
            ValueError: If no collector is registered under ``name``
        """
        if name not in cls._collector_classes:
            raise ValueError(f"Unsupported collector: {name}")

        collector_class = cls._collector_classes[name]

        kwargs.setdefault("batch_size", settings.batch_size)
        kwargs.setdefault("max_pages", settings.max_pages)
        kwargs.setdefault("fetch_concurrency", settings.fetch_concurrency)
        kwargs.setdefault("request_timeout_seconds", settings.request_timeout_seconds)
        kwargs.setdefault("content_base_address", settings.cdn_base_address)
        kwargs.setdefault("gallery_base_address", settings.gallery_base_address)

        return collector_class(storage, **kwargs)

    @classmethod
    def get_supported_collectors(cls) -> List[str]:
        """Get names of registered collectors."""
        return list(cls._collector_classes.keys())

    @classmethod
    def register_collector(cls, name: str, collector_class: Type[CatalogCollector]):
        """Register a new collector type.

        Args:
            name: Name used in the ``collector`` setting
            collector_class: Collector class to register
        """
        cls._collector_classes = {**cls._collector_classes, name: collector_class}
