"""Playwright browser lifecycle manager.

Provides one shared browser with a named context per site, used by the
browser fetch strategy for storefronts that only render with JavaScript.
"""

import asyncio
import itertools
from typing import Dict, List, Optional

import structlog
from playwright.async_api import async_playwright, Browser, BrowserContext, Page, Playwright

from restockradar.config import settings

logger = structlog.get_logger(__name__)


class BrowserManager:
    """Manages the Playwright browser and per-site contexts.

    Contexts are created lazily, reuse the configured bot user agent, rotate
    through configured proxies, and block heavy resources (images and fonts).
    """

    def __init__(
        self,
        headless: bool = True,
        proxies: Optional[List[str]] = None,
        user_agent: Optional[str] = None,
        block_resources: bool = True,
    ):
        self._headless = headless
        self._proxies = itertools.cycle(proxies) if proxies else None
        self._user_agent = user_agent or settings.USER_AGENT
        self._block_resources = block_resources
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()
        self._contexts: Dict[str, BrowserContext] = {}

    @property
    def is_running(self) -> bool:
        return self._browser is not None

    async def start(self) -> None:
        """Launch the browser. Safe to call more than once."""
        async with self._lock:
            if self._browser:
                return
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self._headless,
                args=["--disable-dev-shm-usage", "--no-sandbox"],
            )
            logger.info("browser_started", headless=self._headless)

    async def stop(self) -> None:
        """Close all contexts and the browser."""
        async with self._lock:
            for name, ctx in self._contexts.items():
                await ctx.close()
                logger.debug("browser_context_closed", name=name)
            self._contexts.clear()

            if self._browser:
                await self._browser.close()
                self._browser = None
            if self._playwright:
                await self._playwright.stop()
                self._playwright = None
            logger.info("browser_stopped")

    async def get_context(self, name: str = "default") -> BrowserContext:
        """Get or create a named browser context.

        Adapters use their site key as the context name so cookies are kept
        within one storefront and isolated between storefronts.
        """
        if name in self._contexts:
            return self._contexts[name]

        if not self._browser:
            await self.start()

        proxy_url = next(self._proxies) if self._proxies else None
        context = await self._browser.new_context(
            user_agent=self._user_agent,
            viewport={"width": 1440, "height": 900},
            locale="en-US",
            proxy={"server": proxy_url} if proxy_url else None,
        )

        if self._block_resources:
            await context.route(
                "**/*.{png,jpg,jpeg,gif,webp,svg,woff,woff2,ttf,eot}",
                lambda route: route.abort(),
            )

        self._contexts[name] = context
        logger.info("browser_context_created", name=name, has_proxy=bool(proxy_url))
        return context

    async def new_page(self, name: str = "default") -> Page:
        """Convenience: get context and open a new page."""
        ctx = await self.get_context(name)
        return await ctx.new_page()


# Singleton instance
_browser_manager: Optional[BrowserManager] = None


def get_browser_manager() -> BrowserManager:
    """Get the global BrowserManager singleton."""
    global _browser_manager
    if _browser_manager is None:
        _browser_manager = BrowserManager(
            headless=settings.BROWSER_HEADLESS,
            proxies=settings.get_proxy_list(),
        )
    return _browser_manager
