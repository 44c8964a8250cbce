"""Site-key lookup table for adapter classes."""

from typing import Dict, List, Optional, Type

import structlog

from restockradar.core.exceptions import ConfigurationError
from restockradar.scrapers.base import BaseAdapter, SiteConfig

logger = structlog.get_logger(__name__)


class AdapterFactory:
    """Maps site keys to adapter classes and builds configured instances.

    Adding a site means adding a SiteConfig and one registration; the
    orchestrator never changes.
    """

    def __init__(self):
        self._adapter_registry: Dict[str, Type[BaseAdapter]] = {}

    def register_adapter(self, site_key: str, adapter_class: Type[BaseAdapter]) -> None:
        """Register an adapter class for a site.

        Args:
            site_key: Site configuration key (e.g., "tokichi")
            adapter_class: Adapter class (must inherit from BaseAdapter)
        """
        if not issubclass(adapter_class, BaseAdapter):
            raise ValueError(f"Adapter class must inherit from BaseAdapter: {adapter_class}")

        self._adapter_registry[site_key] = adapter_class
        logger.debug("adapter_registered", site=site_key, adapter_class=adapter_class.__name__)

    def create_adapter(
        self,
        config: SiteConfig,
        fetcher,
        image_resolver=None,
    ) -> BaseAdapter:
        """Create an adapter instance for a site.

        Args:
            config: Site configuration
            fetcher: Fetch transport the adapter will use
            image_resolver: Optional ImageResolver shared by the crawl

        Returns:
            Configured adapter instance

        Raises:
            ConfigurationError: If no adapter is registered for the site key
        """
        adapter_class = self._adapter_registry.get(config.key)
        if not adapter_class:
            logger.warning("adapter_not_found", site=config.key)
            raise ConfigurationError(config.key)

        adapter = adapter_class(config, fetcher, image_resolver)
        logger.debug("adapter_created", site=config.key, adapter_class=adapter_class.__name__)
        return adapter

    def get_adapter_class(self, site_key: str) -> Optional[Type[BaseAdapter]]:
        return self._adapter_registry.get(site_key)

    def get_registered_sites(self) -> List[str]:
        """Get registered site keys in registration order."""
        return list(self._adapter_registry.keys())

    def has_adapter(self, site_key: str) -> bool:
        return site_key in self._adapter_registry


# Global factory instance
adapter_factory = AdapterFactory()


def get_adapter_factory() -> AdapterFactory:
    """Get the global adapter factory instance."""
    return adapter_factory
