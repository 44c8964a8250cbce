"""Retry utilities with exponential backoff for fetch transports."""

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)
import logging

import httpx
from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError


# tenacity logs through a stdlib logger
logger = logging.getLogger(__name__)

# Statuses worth another attempt; other non-2xx answers fail immediately
RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


# Reusable retry decorator for HTTP requests (httpx). HTTPStatusError is only
# raised by the fetcher for RETRYABLE_STATUS_CODES.
http_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=30),
    retry=retry_if_exception_type(
        (
            httpx.HTTPStatusError,
            httpx.TransportError,
        )
    ),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)


# Reusable retry decorator for Playwright page loads
playwright_retry = retry(
    stop=stop_after_attempt(2),
    wait=wait_exponential(multiplier=1, min=2, max=30),
    retry=retry_if_exception_type((PlaywrightError, PlaywrightTimeoutError)),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
