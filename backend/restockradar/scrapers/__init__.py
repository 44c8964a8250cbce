"""Storefront crawling: site adapters, extraction utilities and orchestration.

This package provides:
- Records flowing through a crawl (SiteConfig, Variant, Product, SiteResult)
- The site configuration table and the adapter registry
- CrawlService, which runs adapters with bounded parallelism
"""

from .base import (
    BaseAdapter,
    ExtractedFields,
    Product,
    RawListingEntry,
    SiteConfig,
    SiteResult,
    Variant,
)
from .factory import AdapterFactory, adapter_factory, get_adapter_factory
from .sites import SITE_CONFIGS, get_site_config

__all__ = [
    # Base classes
    "BaseAdapter",
    # Data structures
    "SiteConfig",
    "RawListingEntry",
    "ExtractedFields",
    "Variant",
    "Product",
    "SiteResult",
    # Configuration and registry
    "SITE_CONFIGS",
    "get_site_config",
    "AdapterFactory",
    "adapter_factory",
    "get_adapter_factory",
]
