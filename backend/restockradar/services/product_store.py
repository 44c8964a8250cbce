"""Product store: persists crawled products and reports what changed.

upsert_products() is the hand-off point between a crawl and downstream
consumers. It inserts or updates one row per product id, records stock and
price transitions in the history tables, and returns the changes so a
notifier can act on restocks and price moves.
"""

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from restockradar.models.price_history import PriceHistory
from restockradar.models.product import ProductRecord
from restockradar.models.stock_history import StockHistory
from restockradar.scrapers.base import Product, Variant

logger = structlog.get_logger(__name__)


@dataclass
class ProductChange:
    """A notable difference between a crawl and the stored state."""

    product_id: str
    site: str
    name: str
    change_type: str  # 'new', 'stock' or 'price'
    in_stock: bool
    previous_in_stock: Optional[bool] = None
    price: Optional[Decimal] = None
    previous_price: Optional[Decimal] = None

    @property
    def is_restock(self) -> bool:
        return self.change_type == "stock" and self.in_stock and self.previous_in_stock is False


def serialize_variants(variants: Sequence[Variant]) -> List[Dict[str, Any]]:
    """JSON-safe representation of variants, prices as strings."""
    serialized = []
    for variant in variants:
        data = asdict(variant)
        data["price"] = str(variant.price) if variant.price is not None else None
        serialized.append(data)
    return serialized


class ProductStore:
    """SQLAlchemy-backed document store for Product records."""

    def __init__(self, db: AsyncSession):
        """Initialize product store.

        Args:
            db: Async database session
        """
        self.db = db
        self.logger = logger.bind(service="product_store")

    async def get(self, product_id: str) -> Optional[ProductRecord]:
        return await self.db.get(ProductRecord, product_id)

    async def list_site_products(self, site: str, in_stock: Optional[bool] = None) -> List[ProductRecord]:
        """Stored products of one site, optionally filtered by stock state."""
        query = select(ProductRecord).where(ProductRecord.site == site)
        if in_stock is not None:
            query = query.where(ProductRecord.in_stock == in_stock)
        result = await self.db.execute(query.order_by(ProductRecord.name))
        return list(result.scalars().all())

    async def upsert_products(self, products: Iterable[Product]) -> List[ProductChange]:
        """Insert or update products and record their transitions.

        Args:
            products: Products from one or more SiteResults

        Returns:
            Changes in input order: new products, stock flips and price moves
        """
        changes: List[ProductChange] = []
        count = 0
        for product in products:
            changes.extend(await self._upsert(product))
            count += 1

        await self.db.commit()
        self.logger.info(
            "products_upserted",
            count=count,
            changes=len(changes),
            restocks=sum(1 for c in changes if c.is_restock),
        )
        return changes

    async def _upsert(self, product: Product) -> List[ProductChange]:
        record = await self.get(product.id)
        variants = serialize_variants(product.variants)

        if record is None:
            record = ProductRecord(
                id=product.id,
                site=product.site,
                site_name=product.site_name,
                name=product.name,
                url=product.url,
                category=product.category,
                image_url=product.image_url,
                price=product.price,
                currency=product.currency,
                original_price_text=product.original_price_text,
                in_stock=product.in_stock,
                variants=variants,
                first_seen=product.last_seen,
                last_seen=product.last_seen,
                missed_scans=0,
            )
            self.db.add(record)
            self.db.add(StockHistory(product_id=product.id, site=product.site, in_stock=product.in_stock))
            if product.price is not None:
                self.db.add(
                    PriceHistory(product_id=product.id, price=product.price, currency=product.currency)
                )
            await self.db.flush()
            self.logger.debug("product_created", product_id=product.id)
            return [
                ProductChange(
                    product_id=product.id,
                    site=product.site,
                    name=product.name,
                    change_type="new",
                    in_stock=product.in_stock,
                    price=product.price,
                )
            ]

        changes: List[ProductChange] = []
        if record.in_stock != product.in_stock:
            self.db.add(
                StockHistory(
                    product_id=product.id,
                    site=product.site,
                    in_stock=product.in_stock,
                    previous_in_stock=record.in_stock,
                )
            )
            changes.append(
                ProductChange(
                    product_id=product.id,
                    site=product.site,
                    name=product.name,
                    change_type="stock",
                    in_stock=product.in_stock,
                    previous_in_stock=record.in_stock,
                    price=product.price,
                    previous_price=record.price,
                )
            )

        previous_price = Decimal(record.price) if record.price is not None else None
        if product.price is not None and product.price != previous_price:
            self.db.add(
                PriceHistory(
                    product_id=product.id,
                    price=product.price,
                    previous_price=previous_price,
                    currency=product.currency,
                )
            )
            changes.append(
                ProductChange(
                    product_id=product.id,
                    site=product.site,
                    name=product.name,
                    change_type="price",
                    in_stock=product.in_stock,
                    previous_in_stock=record.in_stock,
                    price=product.price,
                    previous_price=previous_price,
                )
            )

        record.site_name = product.site_name
        record.name = product.name
        record.url = product.url
        record.category = product.category
        record.image_url = product.image_url
        record.price = product.price if product.price is not None else record.price
        record.currency = product.currency
        record.original_price_text = product.original_price_text
        record.in_stock = product.in_stock
        record.variants = variants
        record.last_seen = product.last_seen
        record.missed_scans = 0
        return changes

    async def mark_missed(self, site: str, seen_ids: Iterable[str]) -> int:
        """Count a missed scan for stored products a successful crawl did not list.

        Args:
            site: Site key that was crawled successfully
            seen_ids: Product ids the crawl returned

        Returns:
            Number of products marked
        """
        seen = set(seen_ids)
        result = await self.db.execute(select(ProductRecord).where(ProductRecord.site == site))
        missed = [record for record in result.scalars().all() if record.id not in seen]
        for record in missed:
            record.missed_scans += 1
        await self.db.commit()
        if missed:
            self.logger.info("products_missed", site=site, count=len(missed))
        return len(missed)
