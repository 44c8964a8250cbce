"""Crawl orchestration.

CrawlService runs the registered adapter of each requested site with bounded
parallelism and a per-site timeout. A failing site becomes a failed
SiteResult; it never aborts the other sites, so crawl() always returns one
result per requested key, in request order.
"""

import asyncio
import time
from typing import Dict, Iterable, List, Mapping, Optional

import structlog

from restockradar.config import settings
from restockradar.core.exceptions import (
    ConfigurationError,
    CrawlTimeoutError,
    ErrorKind,
    RestockRadarException,
)
from restockradar.scrapers.base import SiteConfig, SiteResult
from restockradar.scrapers.factory import AdapterFactory, get_adapter_factory
from restockradar.scrapers.register_adapters import register_all_adapters
from restockradar.scrapers.sites import SITE_CONFIGS
from restockradar.scrapers.utils.browser_manager import BrowserManager, get_browser_manager
from restockradar.scrapers.utils.fetcher import BrowserFetcher, HttpFetcher
from restockradar.scrapers.utils.images import ImageResolver
from restockradar.services.asset_store import LocalAssetStore

logger = structlog.get_logger(__name__)


class CrawlService:
    """Fan-out/fan-in crawl over the configured storefronts.

    Use as an async context manager so owned transports are closed.
    """

    def __init__(
        self,
        factory: Optional[AdapterFactory] = None,
        site_configs: Optional[Mapping[str, SiteConfig]] = None,
        http_fetcher=None,
        browser_manager: Optional[BrowserManager] = None,
        image_resolver: Optional[ImageResolver] = None,
        concurrency: Optional[int] = None,
        site_timeout: Optional[float] = None,
    ):
        """Initialize the crawl service.

        Args:
            factory: Adapter registry; the global factory by default, populated
                on first use when nothing is registered yet
            site_configs: Site configuration table, SITE_CONFIGS by default
            http_fetcher: Shared HTTP transport, created on demand when omitted
            browser_manager: Browser used by "browser" fetch strategy sites
            image_resolver: Image pipeline; built from settings when omitted
            concurrency: Maximum number of sites crawled at once
            site_timeout: Per-site budget in seconds
        """
        if factory is None:
            factory = get_adapter_factory()
            if not factory.get_registered_sites():
                register_all_adapters(factory)
        self.factory = factory
        self.site_configs = site_configs if site_configs is not None else SITE_CONFIGS
        self.concurrency = concurrency or settings.CRAWL_CONCURRENCY
        self.site_timeout = site_timeout or settings.SITE_TIMEOUT_SECONDS
        self.logger = logger.bind(service="crawl_service")

        self._owns_http_fetcher = http_fetcher is None
        self._http_fetcher = http_fetcher
        self._browser_manager = browser_manager
        self._image_resolver = image_resolver

    async def __aenter__(self) -> "CrawlService":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def http_fetcher(self):
        if self._http_fetcher is None:
            self._http_fetcher = HttpFetcher()
        return self._http_fetcher

    @property
    def image_resolver(self) -> ImageResolver:
        if self._image_resolver is None:
            if settings.STORE_IMAGES:
                self._image_resolver = ImageResolver(
                    fetcher=self.http_fetcher,
                    asset_store=LocalAssetStore(),
                )
            else:
                self._image_resolver = ImageResolver()
        return self._image_resolver

    async def close(self) -> None:
        if self._owns_http_fetcher and self._http_fetcher is not None:
            await self._http_fetcher.close()
            self._http_fetcher = None
        if self._browser_manager is not None and self._browser_manager.is_running:
            await self._browser_manager.stop()

    def fetcher_for(self, config: SiteConfig):
        """Return the transport selected by the site's fetch strategy."""
        if config.fetch_strategy == "browser":
            if self._browser_manager is None:
                self._browser_manager = get_browser_manager()
            return BrowserFetcher(self._browser_manager, context_name=config.key)
        return self.http_fetcher

    def requested_keys(self, site_keys: Optional[Iterable[str]]) -> List[str]:
        """Collapse duplicates keeping first occurrence; empty means every registered site."""
        keys = list(dict.fromkeys(site_keys or ()))
        if not keys:
            keys = self.factory.get_registered_sites()
        return keys

    async def crawl(self, site_keys: Optional[Iterable[str]] = None) -> List[SiteResult]:
        """Crawl the requested sites.

        Args:
            site_keys: Site keys to crawl; all registered sites when empty

        Returns:
            One SiteResult per distinct key, in input order
        """
        keys = self.requested_keys(site_keys)
        semaphore = asyncio.Semaphore(self.concurrency)
        self.logger.info("crawl_started", sites=keys, concurrency=self.concurrency)

        async def bounded(site_key: str) -> SiteResult:
            async with semaphore:
                return await self.crawl_site(site_key)

        results = await asyncio.gather(*(bounded(key) for key in keys))

        summary: Dict[str, int] = {
            "succeeded": sum(1 for r in results if r.succeeded),
            "failed": sum(1 for r in results if not r.succeeded),
            "products": sum(len(r.products) for r in results),
        }
        self.logger.info("crawl_completed", **summary)
        return list(results)

    async def crawl_site(self, site_key: str) -> SiteResult:
        """Crawl one site and classify any failure. Never raises."""
        start = time.monotonic()

        try:
            config = self.site_configs.get(site_key)
            if config is None:
                raise ConfigurationError(site_key, "unknown site key")
            if not self.factory.has_adapter(site_key):
                raise ConfigurationError(site_key)
            adapter = self.factory.create_adapter(config, self.fetcher_for(config), self.image_resolver)
            try:
                products = await asyncio.wait_for(adapter.crawl(), timeout=self.site_timeout)
            except asyncio.TimeoutError as e:
                raise CrawlTimeoutError(site_key, self.site_timeout) from e
        except RestockRadarException as e:
            return self._failed(site_key, start, e.kind, e.message)
        except Exception as e:
            self.logger.error("site_crawl_crashed", site=site_key, error=str(e), exc_info=True)
            return self._failed(site_key, start, ErrorKind.EXTRACTION, f"{type(e).__name__}: {e}")

        elapsed = time.monotonic() - start
        self.logger.info(
            "site_crawl_completed",
            site=site_key,
            products=len(products),
            elapsed_seconds=round(elapsed, 2),
        )
        return SiteResult(
            site=site_key,
            status="success",
            products=products,
            elapsed_seconds=elapsed,
        )

    def _failed(self, site_key: str, start: float, kind: ErrorKind, message: str) -> SiteResult:
        elapsed = time.monotonic() - start
        self.logger.warning(
            "site_crawl_failed",
            site=site_key,
            kind=kind.value,
            error=message,
            elapsed_seconds=round(elapsed, 2),
        )
        return SiteResult(
            site=site_key,
            status="failed",
            elapsed_seconds=elapsed,
            error_kind=kind,
            error_message=message,
        )
