"""Adapter for storefronts whose listing lacks variant data.

The listing supplies name, link, price and image; every product page is then
fetched for its variants. Pages are fetched in small batches with a pause in
between so the storefront does not rate limit the crawl.
"""

import asyncio
from dataclasses import dataclass
from typing import List, Optional

from bs4 import BeautifulSoup, Tag

from restockradar.config import settings
from restockradar.core.exceptions import ErrorKind, ExtractionError, FetchError
from restockradar.scrapers.adapters.generic import GenericAdapter
from restockradar.scrapers.base import ExtractedFields, Product, RawListingEntry
from restockradar.scrapers.utils.fields import extract_text, image_candidates
from restockradar.scrapers.utils.identity import generate_id
from restockradar.scrapers.utils.normalizer import ParsedPrice, detect_stock_status

PRODUCT_PAGE_BATCH_SIZE = 3

PAGE_IMAGE_SELECTORS = (
    ".product__media img",
    ".product-single__photos img",
    ".product__photo img",
    "img[src*='cdn/shop']",
)
PAGE_PRICE_SELECTORS = (".product__price", ".price__regular", ".price")
PAGE_STOCK_SELECTORS = ("button[name='add']", ".product-form__submit", ".product-form__buttons")


@dataclass
class ListingItem:
    """Listing-level data of one product, before its page is visited."""

    product_id: str
    container: Tag
    fields: ExtractedFields
    parsed: Optional[ParsedPrice]
    stock_status: Optional[bool]


class ProductPageAdapter(GenericAdapter):
    """Listing adapter that reads variants from each product page."""

    async def extract(self, document: str) -> List[Product]:
        soup = BeautifulSoup(document, "html.parser")
        items = self.collect_listing(soup)
        if not items:
            self.logger.warning("no_listing_items_found")
            return []

        delay = self.config.request_delay_seconds
        if delay is None:
            delay = settings.PRODUCT_PAGE_DELAY_SECONDS

        products: List[Product] = []
        for start in range(0, len(items), PRODUCT_PAGE_BATCH_SIZE):
            if start:
                await asyncio.sleep(delay)
            batch = items[start:start + PRODUCT_PAGE_BATCH_SIZE]
            results = await asyncio.gather(
                *(self.enrich(item) for item in batch), return_exceptions=True
            )
            for item, result in zip(batch, results):
                if isinstance(result, Exception):
                    self.logger.warning(
                        "product_skipped",
                        product_id=item.product_id,
                        kind=ErrorKind.EXTRACTION.value,
                        reason=f"{type(result).__name__}: {result}",
                        exc_info=result,
                    )
                    continue
                if isinstance(result, BaseException):
                    raise result
                products.append(result)

        self.logger.info("product_pages_processed", listing_items=len(items), products=len(products))
        return products

    def collect_listing(self, soup: Tag) -> List[ListingItem]:
        """Read listing items, skipping broken containers and duplicate ids."""
        items: List[ListingItem] = []
        seen_ids = set()
        for index, entry in enumerate(self.select_containers(soup)):
            try:
                item = self.listing_item(entry)
            except ExtractionError as e:
                self.logger.info(
                    "container_skipped",
                    index=index,
                    kind=ErrorKind.EXTRACTION.value,
                    reason=e.message,
                )
                continue
            except Exception as e:
                self.logger.warning(
                    "container_skipped",
                    index=index,
                    kind=ErrorKind.EXTRACTION.value,
                    reason=f"{type(e).__name__}: {e}",
                    exc_info=True,
                )
                continue
            if item.product_id in seen_ids:
                continue
            seen_ids.add(item.product_id)
            items.append(item)
        return items

    def listing_item(self, entry: RawListingEntry) -> ListingItem:
        fields = self.extract_fields(entry.container)
        parsed = self.parse_listing_price(fields.price_text)
        return ListingItem(
            product_id=generate_id(self.site_key, fields.name, fields.link),
            container=entry.container,
            fields=fields,
            parsed=parsed,
            stock_status=self.container_stock_status(entry.container, fields),
        )

    async def enrich(self, item: ListingItem) -> Product:
        """Build a Product from the item's page, or from the listing alone if the page fails."""
        try:
            response = await self.fetcher.fetch(
                item.fields.link, timeout=settings.PRODUCT_PAGE_TIMEOUT_SECONDS
            )
        except FetchError as e:
            self.logger.warning(
                "product_page_failed",
                url=item.fields.link,
                kind=ErrorKind.FETCH.value,
                error=e.message,
            )
            return await self.from_listing(item)

        page = BeautifulSoup(response.text, "html.parser")
        parsed = item.parsed
        if parsed is None:
            page_price_text = extract_text(page, (*self.config.price_selectors, *PAGE_PRICE_SELECTORS))
            parsed = self.parse_listing_price(page_price_text)
            if parsed is not None:
                item.fields.price_text = page_price_text
        stock_status = self.page_stock_status(page, item.stock_status)

        if not item.fields.image_candidates:
            item.fields.image_candidates = image_candidates(
                page,
                PAGE_IMAGE_SELECTORS,
                self.config.base_url,
                self.config.image_exclusions,
            )

        variants = self.reconcile_variants(page, parsed, stock_status)
        return await self.assemble(item.fields, variants, parsed)

    async def from_listing(self, item: ListingItem) -> Product:
        variants = self.reconcile_variants(item.container, item.parsed, item.stock_status)
        return await self.assemble(item.fields, variants, item.parsed)

    def page_stock_status(self, page: Tag, listing_status: Optional[bool]) -> Optional[bool]:
        """Availability stated by the page's purchase button, else the listing's."""
        for selector in PAGE_STOCK_SELECTORS:
            node = page.select_one(selector)
            if node is None:
                continue
            if node.has_attr("disabled"):
                return False
            status = detect_stock_status(
                node.get_text(" "), self.config.stock_keywords, self.config.out_of_stock_keywords
            )
            if status is not None:
                return status
        return listing_status
