"""Register every configured site with the adapter factory.

Call register_all_adapters() once at startup. A site flagged as specialized
must have a dedicated entry below; every other site uses GenericAdapter.
"""

from typing import Dict, Mapping, Optional, Type

import structlog

from restockradar.core.exceptions import ConfigurationError
from restockradar.scrapers.adapters import GenericAdapter, PoppateaAdapter, ProductPageAdapter
from restockradar.scrapers.base import BaseAdapter, SiteConfig
from restockradar.scrapers.factory import AdapterFactory, get_adapter_factory
from restockradar.scrapers.sites import SITE_CONFIGS

logger = structlog.get_logger(__name__)

# Sites whose listings carry no variant data
SPECIALIZED_ADAPTERS: Dict[str, Type[BaseAdapter]] = {
    "poppatea": PoppateaAdapter,
    "horiishichimeien": ProductPageAdapter,
    "sho-cha": ProductPageAdapter,
    "matcha-karu": ProductPageAdapter,
    "marukyu": ProductPageAdapter,
    "ippodo": ProductPageAdapter,
    "sazentea": ProductPageAdapter,
}


def adapter_class_for(
    config: SiteConfig,
    specialized_adapters: Mapping[str, Type[BaseAdapter]] = SPECIALIZED_ADAPTERS,
) -> Type[BaseAdapter]:
    """Pick the adapter class for a site from its specialized flag.

    Raises:
        ConfigurationError: If the flag and the specialized table disagree
    """
    adapter_class = specialized_adapters.get(config.key)
    if config.specialized and adapter_class is None:
        raise ConfigurationError(config.key, "flagged specialized but has no dedicated adapter")
    if not config.specialized and adapter_class is not None:
        raise ConfigurationError(
            config.key, f"{adapter_class.__name__} registered for a site not flagged specialized"
        )
    return adapter_class or GenericAdapter


def register_all_adapters(
    factory: Optional[AdapterFactory] = None,
    site_configs: Optional[Mapping[str, SiteConfig]] = None,
    specialized_adapters: Mapping[str, Type[BaseAdapter]] = SPECIALIZED_ADAPTERS,
) -> AdapterFactory:
    """Register an adapter for every site in the configuration table.

    Sites whose configuration is inconsistent are logged and left
    unregistered, so crawling them yields a ConfigurationError result.

    Args:
        factory: Factory to populate, the global one by default
        site_configs: Configuration table, SITE_CONFIGS by default
        specialized_adapters: Dedicated adapter classes by site key

    Returns:
        The populated factory
    """
    factory = factory or get_adapter_factory()
    site_configs = site_configs if site_configs is not None else SITE_CONFIGS

    for site_key, config in site_configs.items():
        try:
            factory.register_adapter(site_key, adapter_class_for(config, specialized_adapters))
        except (ConfigurationError, ValueError) as e:
            logger.error(
                "adapter_registration_failed",
                site=site_key,
                error=str(e),
            )

    logger.info(
        "all_adapters_registered",
        count=len(factory.get_registered_sites()),
        sites=factory.get_registered_sites(),
    )
    return factory
