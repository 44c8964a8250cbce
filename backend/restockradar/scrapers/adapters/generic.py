"""Configuration-driven listing adapter.

Works for any storefront whose category page lists products in repeated
containers. Everything site-specific lives in the SiteConfig; the algorithm
is the same for all of them:

1. select containers (first product selector yielding nodes wins)
2. read name, price, stock, link and images through selector chains
3. skip containers without a name or link
4. reconcile variants
5. normalize the price and derive the stable id
"""

from dataclasses import replace
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup, Tag

from restockradar.config import settings
from restockradar.core.exceptions import ErrorKind, ExtractionError
from restockradar.scrapers.base import (
    BaseAdapter,
    ExtractedFields,
    Product,
    RawListingEntry,
    SiteConfig,
    Variant,
)
from restockradar.scrapers.utils.fields import extract_link, extract_text, image_candidates
from restockradar.scrapers.utils.identity import generate_id
from restockradar.scrapers.utils.normalizer import (
    CategoryClassifier,
    CurrencyNormalizer,
    ParsedPrice,
    clean_product_title,
    detect_stock_status,
    parse_price,
)
from restockradar.scrapers.utils.variants import VariantReconciler


class GenericAdapter(BaseAdapter):
    """Listing adapter driven entirely by SiteConfig selectors."""

    def __init__(
        self,
        config: SiteConfig,
        fetcher,
        image_resolver=None,
        normalizer: Optional[CurrencyNormalizer] = None,
        reconciler: Optional[VariantReconciler] = None,
    ):
        super().__init__(config, fetcher, image_resolver)
        self.normalizer = normalizer or CurrencyNormalizer(canonical=settings.CANONICAL_CURRENCY)
        self.reconciler = reconciler or VariantReconciler()

    async def extract(self, document: str) -> List[Product]:
        soup = BeautifulSoup(document, "html.parser")
        entries = self.select_containers(soup)
        if not entries:
            self.logger.warning("no_containers_found", selectors=list(self.config.product_selectors))
            return []

        products: List[Product] = []
        seen_ids = set()
        for index, entry in enumerate(entries):
            try:
                product = await self.build_product(entry)
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
            if product.id in seen_ids:
                self.logger.debug("duplicate_product_skipped", product_id=product.id)
                continue
            seen_ids.add(product.id)
            products.append(product)

        self.logger.info("listing_extracted", containers=len(entries), products=len(products))
        return products

    def select_containers(self, soup: Tag) -> List[RawListingEntry]:
        """Return containers for the first product selector that matches anything."""
        for selector in self.config.product_selectors:
            nodes = soup.select(selector)
            if nodes:
                self.logger.debug("containers_selected", selector=selector, count=len(nodes))
                return [RawListingEntry(container=node, site_key=self.site_key) for node in nodes]
        return []

    def extract_fields(self, container: Tag) -> ExtractedFields:
        """Read the raw field values of one container.

        Raises:
            ExtractionError: If the name or the link cannot be read
        """
        name = clean_product_title(extract_text(container, self.config.name_selectors))
        if not name:
            raise ExtractionError("no product name")
        link = extract_link(container, self.config.link_selectors, self.config.base_url)
        if not link:
            raise ExtractionError(f"no product link for {name!r}")

        return ExtractedFields(
            name=name,
            price_text=extract_text(container, self.config.price_selectors),
            stock_text=extract_text(container, self.config.stock_selectors),
            link=link,
            image_candidates=image_candidates(
                container,
                self.config.image_selectors,
                self.config.base_url,
                self.config.image_exclusions,
            ),
        )

    def container_stock_status(self, container: Tag, fields: ExtractedFields) -> Optional[bool]:
        """Availability stated by the container, or None when it says nothing.

        A sold-out marker node wins, then the stock text, then the whole
        container text.
        """
        for selector in self.config.out_of_stock_selectors:
            if container.css.match(selector) or container.select_one(selector):
                return False

        for text in (fields.stock_text, container.get_text(" ")):
            status = detect_stock_status(
                text, self.config.stock_keywords, self.config.out_of_stock_keywords
            )
            if status is not None:
                return status
        return None

    def reconcile_variants(
        self,
        container: Tag,
        parsed: Optional[ParsedPrice],
        stock_status: Optional[bool],
    ) -> List[Variant]:
        """Reconcile variants under the container's stock state.

        A sold-out container makes every variant unavailable. When the
        container states nothing, a product without any price is treated as
        not purchasable.
        """
        variants = self.reconciler.reconcile(
            container,
            self.config,
            base_price=parsed.amount if parsed else None,
            default_available=stock_status is not False,
            base_currency=self._variant_currency(parsed),
        )
        if stock_status is None and all(variant.price is None for variant in variants):
            variants = [replace(variant, available=False) for variant in variants]
        return variants

    def parse_listing_price(self, text: str) -> Optional[ParsedPrice]:
        return parse_price(
            text,
            default_currency=self.config.currency,
            preferred_currency=self.normalizer.canonical,
        )

    async def build_product(self, entry: RawListingEntry) -> Product:
        """Turn one listing container into a Product.

        Raises:
            ExtractionError: If required fields are missing
        """
        fields = self.extract_fields(entry.container)
        parsed = self.parse_listing_price(fields.price_text)
        stock_status = self.container_stock_status(entry.container, fields)
        variants = self.reconcile_variants(entry.container, parsed, stock_status)
        return await self.assemble(fields, variants, parsed)

    async def assemble(
        self,
        fields: ExtractedFields,
        variants: Sequence[Variant],
        parsed: Optional[ParsedPrice],
    ) -> Product:
        """Normalize prices, resolve the image and build the Product record."""
        product_id = generate_id(self.site_key, fields.name, fields.link)
        if parsed is not None:
            price = self.to_canonical(parsed.amount, parsed.currency)
        else:
            price = self.lowest_variant_price(variants)

        image_url = None
        if self.image_resolver is not None:
            image_url = await self.image_resolver.resolve(
                fields.image_candidates, self.site_key, product_id
            )
        elif fields.image_candidates:
            image_url = fields.image_candidates[0]

        return Product(
            site=self.site_key,
            id=product_id,
            name=fields.name,
            url=fields.link,
            category=CategoryClassifier.classify(fields.name, default=self.config.category),
            price=price,
            in_stock=any(variant.available for variant in variants),
            image_url=image_url,
            variants=list(variants),
            site_name=self.config.name,
            currency=self.normalizer.canonical,
            original_price_text=fields.price_text,
        )

    def to_canonical(self, amount: Decimal, currency: Optional[str] = None) -> Decimal:
        """Convert a source amount; the site rate applies only to the site currency."""
        currency = currency or self.config.currency
        rate = self.config.exchange_rate if currency == self.config.currency else None
        return self.normalizer.normalize(amount, currency, rate=rate)

    def lowest_variant_price(self, variants: Sequence[Variant]) -> Optional[Decimal]:
        """Lowest canonical variant price, preferring available variants."""
        priced: List[Tuple[bool, Decimal]] = [
            (variant.available, self.to_canonical(variant.price, variant.currency))
            for variant in variants
            if variant.price is not None
        ]
        available = [price for is_available, price in priced if is_available]
        candidates = available or [price for _, price in priced]
        return min(candidates) if candidates else None

    def _variant_currency(self, parsed: Optional[ParsedPrice]) -> Optional[str]:
        if parsed is None or parsed.currency == self.config.currency:
            return None
        return parsed.currency
