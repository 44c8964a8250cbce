"""Stored product snapshot, one row per stable product id."""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import JSON, Boolean, DateTime, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from restockradar.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from restockradar.models.price_history import PriceHistory
    from restockradar.models.stock_history import StockHistory


class ProductRecord(TimestampMixin, Base):
    """Latest known state of a crawled product.

    The primary key is the crawler's deterministic product id, so repeated
    crawls update the same row.
    """

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(200), primary_key=True)
    site: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    site_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")

    name: Mapped[str] = mapped_column(String(500), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="matcha", index=True)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Pricing, canonical currency
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    currency: Mapped[str] = mapped_column(String(5), nullable=False, default="EUR")
    original_price_text: Mapped[str] = mapped_column(String(200), nullable=False, default="")

    in_stock: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    variants: Mapped[List[dict]] = mapped_column(JSON, nullable=False, default=list)

    first_seen: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_seen: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    missed_scans: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Consecutive site crawls that did not list this product",
    )

    __table_args__ = (
        Index("idx_products_site_in_stock", "site", "in_stock"),
    )

    stock_history: Mapped[List["StockHistory"]] = relationship(
        back_populates="product",
        cascade="all, delete-orphan",
    )
    price_history: Mapped[List["PriceHistory"]] = relationship(
        back_populates="product",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<ProductRecord(id={self.id}, site={self.site}, in_stock={self.in_stock}, price={self.price})>"
