"""Base site adapter interface and the records that flow through a crawl.

Every site adapter inherits from BaseAdapter and implements extract(),
turning one listing document into normalized Product records.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

import structlog
from bs4 import Tag

from restockradar.core.exceptions import ErrorKind


@dataclass(frozen=True)
class SiteConfig:
    """Static description of one storefront, immutable for the process lifetime."""

    key: str
    name: str
    base_url: str
    category_url: str
    currency: str = "EUR"
    product_selectors: Tuple[str, ...] = ()
    name_selectors: Tuple[str, ...] = ()
    price_selectors: Tuple[str, ...] = ()
    stock_selectors: Tuple[str, ...] = ()
    link_selectors: Tuple[str, ...] = ("a[href]",)
    image_selectors: Tuple[str, ...] = ("img",)
    stock_keywords: Tuple[str, ...] = ()
    out_of_stock_keywords: Tuple[str, ...] = ()
    specialized: bool = False
    category: str = "matcha"
    out_of_stock_selectors: Tuple[str, ...] = ()
    variant_selectors: Tuple[str, ...] = ()
    exchange_rate: Optional[Decimal] = None
    minor_unit_threshold: Optional[int] = None
    variant_catalog: Optional[str] = None
    fetch_strategy: str = "http"  # 'http' or 'browser'
    request_delay_seconds: Optional[float] = None
    image_exclusions: Tuple[str, ...] = ()

    def __post_init__(self):
        """Validate data after initialization."""
        if not self.key:
            raise ValueError("key is required")
        if not self.category_url.startswith("http"):
            raise ValueError(f"category_url must be absolute: {self.category_url}")
        if self.fetch_strategy not in ("http", "browser"):
            raise ValueError(f"Invalid fetch_strategy: {self.fetch_strategy}")


@dataclass
class RawListingEntry:
    """One product container found on a listing page."""

    container: Tag
    site_key: str


@dataclass
class ExtractedFields:
    """Raw field values read from a single container."""

    name: str
    price_text: str
    stock_text: str
    link: Optional[str]
    image_candidates: List[str] = field(default_factory=list)


@dataclass
class Variant:
    """One purchasable SKU of a product, priced in the source currency."""

    label: str
    price: Optional[Decimal]
    available: bool = True
    variant_id: Optional[str] = None
    currency: Optional[str] = None  # None means the site's currency


@dataclass
class Product:
    """Canonical product record handed to the document store."""

    site: str
    id: str
    name: str
    url: str
    category: str
    price: Optional[Decimal]
    in_stock: bool
    image_url: Optional[str]
    variants: List[Variant]
    last_seen: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    site_name: str = ""
    currency: str = "EUR"
    original_price_text: str = ""

    def __post_init__(self):
        """Validate data after initialization."""
        if not self.id:
            raise ValueError("id is required")
        if not self.name:
            raise ValueError("name is required")
        if not self.variants:
            raise ValueError("a product needs at least one variant")
        if self.price is not None and self.price < 0:
            raise ValueError("price must be a non-negative Decimal")


@dataclass
class SiteResult:
    """Outcome of crawling one site."""

    site: str
    status: str  # 'success' or 'failed'
    products: List[Product] = field(default_factory=list)
    elapsed_seconds: float = 0.0
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "success"


class BaseAdapter(ABC):
    """Abstract base class for all site adapters.

    An adapter owns one SiteConfig and a fetch transport. crawl() fetches
    the listing page and hands the document to extract().
    """

    def __init__(self, config: SiteConfig, fetcher, image_resolver=None):
        """Initialize the adapter.

        Args:
            config: Site configuration
            fetcher: Fetch transport exposing an async fetch(url) method
            image_resolver: Optional ImageResolver; the first candidate is used when absent
        """
        self.config = config
        self.fetcher = fetcher
        self.image_resolver = image_resolver
        self.logger = structlog.get_logger(__name__).bind(site=config.key)

    @property
    def site_key(self) -> str:
        return self.config.key

    async def crawl(self) -> List[Product]:
        """Fetch the category listing and extract its products.

        Raises:
            FetchError: If the listing page cannot be fetched
        """
        self.logger.info("fetching_listing", url=self.config.category_url)
        response = await self.fetcher.fetch(self.config.category_url)
        return await self.extract(response.text)

    @abstractmethod
    async def extract(self, document: str) -> List[Product]:
        """Extract normalized products from a listing document.

        Args:
            document: Listing page HTML

        Returns:
            List of Product records, one per distinct product id
        """
        pass
