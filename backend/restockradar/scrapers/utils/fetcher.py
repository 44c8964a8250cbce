"""Fetch transports: plain HTTP via httpx and rendered pages via Playwright.

Both expose the same coroutine, fetch(url, headers=None, timeout=None),
returning a FetchResponse. Any transport failure or non-2xx status is
raised as FetchError so the crawl treats them uniformly.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

import httpx
import structlog
from playwright.async_api import Error as PlaywrightError

from restockradar.config import settings
from restockradar.core.exceptions import FetchError
from restockradar.scrapers.utils.browser_manager import BrowserManager, get_browser_manager
from restockradar.scrapers.utils.retry import RETRYABLE_STATUS_CODES, http_retry, playwright_retry

logger = structlog.get_logger(__name__)


DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}


@dataclass
class FetchResponse:
    """A fetched document."""

    status: int
    text: str
    url: str
    content: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "").split(";")[0].strip().lower()


class HttpFetcher:
    """httpx-based transport with retry on transport errors, 429 and 5xx.

    Use as an async context manager, or call close() when done.
    """

    def __init__(
        self,
        user_agent: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.timeout = timeout or settings.REQUEST_TIMEOUT_SECONDS
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            headers={"User-Agent": user_agent or settings.USER_AGENT, **DEFAULT_HEADERS},
            timeout=self.timeout,
            follow_redirects=True,
        )

    async def __aenter__(self) -> "HttpFetcher":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @http_retry
    async def _get(self, url: str, headers: Optional[Dict[str, str]], timeout: float) -> httpx.Response:
        response = await self._client.get(url, headers=headers, timeout=timeout)
        if response.status_code in RETRYABLE_STATUS_CODES:
            response.raise_for_status()
        return response

    async def fetch(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> FetchResponse:
        """Fetch a URL.

        Args:
            url: Absolute URL
            headers: Extra request headers
            timeout: Per-request timeout in seconds

        Returns:
            FetchResponse for a 2xx answer

        Raises:
            FetchError: On transport failure or non-2xx status
        """
        try:
            response = await self._get(url, headers, timeout or self.timeout)
        except httpx.HTTPStatusError as e:
            raise FetchError(url, f"HTTP {e.response.status_code}", status=e.response.status_code) from e
        except httpx.HTTPError as e:
            raise FetchError(url, f"{type(e).__name__}: {e}") from e

        if not response.is_success:
            raise FetchError(url, f"HTTP {response.status_code}", status=response.status_code)

        logger.debug("fetched", url=url, status=response.status_code, bytes=len(response.content))
        return FetchResponse(
            status=response.status_code,
            text=response.text,
            url=str(response.url),
            content=response.content,
            headers={k.lower(): v for k, v in response.headers.items()},
        )


class BrowserFetcher:
    """Playwright transport for storefronts that need JavaScript to render.

    Rendering is opaque: the fetcher only returns the final HTML.
    """

    def __init__(
        self,
        browser_manager: Optional[BrowserManager] = None,
        context_name: str = "default",
        wait_selector: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.browser_manager = browser_manager or get_browser_manager()
        self.context_name = context_name
        self.wait_selector = wait_selector
        self.timeout = timeout or settings.REQUEST_TIMEOUT_SECONDS

    @playwright_retry
    async def _render(self, url: str, headers: Optional[Dict[str, str]], timeout: float):
        page = await self.browser_manager.new_page(self.context_name)
        try:
            if headers:
                await page.set_extra_http_headers(headers)
            response = await page.goto(url, wait_until="domcontentloaded", timeout=timeout * 1000)
            if self.wait_selector:
                await page.wait_for_selector(self.wait_selector, timeout=timeout * 1000)
            html = await page.content()
            status = response.status if response else 200
            response_headers = await response.all_headers() if response else {}
            return status, html, page.url, response_headers
        finally:
            await page.close()

    async def fetch(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> FetchResponse:
        """Render a URL in the shared browser and return its HTML.

        Raises:
            FetchError: On navigation failure or non-2xx status
        """
        try:
            status, html, final_url, response_headers = await self._render(
                url, headers, timeout or self.timeout
            )
        except PlaywrightError as e:
            raise FetchError(url, f"browser navigation failed: {e}") from e

        if not 200 <= status < 300:
            raise FetchError(url, f"HTTP {status}", status=status)

        logger.debug("rendered", url=url, status=status, context=self.context_name)
        return FetchResponse(
            status=status,
            text=html,
            url=final_url,
            content=html.encode("utf-8"),
            headers={k.lower(): v for k, v in response_headers.items()},
        )
