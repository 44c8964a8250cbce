"""Custom exception classes and the crawl error taxonomy."""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Classification recorded on a failed site or skipped product."""

    CONFIGURATION = "ConfigurationError"
    FETCH = "FetchError"
    TIMEOUT = "TimeoutError"
    EXTRACTION = "ExtractionError"
    PARSE = "ParseError"


class RestockRadarException(Exception):
    """Base exception for all crawler errors."""

    kind: ErrorKind = ErrorKind.EXTRACTION

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class ConfigurationError(RestockRadarException):
    """Raised when a site key has no configuration or no registered adapter."""

    kind = ErrorKind.CONFIGURATION

    def __init__(self, site_key: str, message: str = "no adapter registered"):
        self.site_key = site_key
        super().__init__(f"Configuration error for {site_key}: {message}")


class FetchError(RestockRadarException):
    """Raised when the transport fails or answers with a non-2xx status."""

    kind = ErrorKind.FETCH

    def __init__(self, url: str, message: str, status: Optional[int] = None):
        self.url = url
        self.status = status
        super().__init__(f"Fetch failed for {url}: {message}")


class CrawlTimeoutError(RestockRadarException):
    """Raised when a site exceeds its crawl budget."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, site_key: str, timeout_seconds: float):
        self.site_key = site_key
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Crawl of {site_key} exceeded {timeout_seconds}s")


class ExtractionError(RestockRadarException):
    """Raised when a product container yields no usable name or link."""

    kind = ErrorKind.EXTRACTION


class ParseError(RestockRadarException):
    """Raised when an embedded JSON payload cannot be parsed."""

    kind = ErrorKind.PARSE


class AssetError(RestockRadarException):
    """Raised when a product image cannot be downloaded, decoded or stored."""

    kind = ErrorKind.FETCH
