"""Price history tracking for products."""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from restockradar.models.base import Base, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from restockradar.models.product import ProductRecord


class PriceHistory(UUIDPrimaryKeyMixin, Base):
    """Historical canonical prices of a product.

    A row is written on first sighting and whenever the price changes.
    """

    __tablename__ = "price_history"

    product_id: Mapped[str] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, comment="Price at this point in time")
    previous_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    currency: Mapped[str] = mapped_column(String(5), nullable=False, default="EUR")

    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        comment="When this price was recorded",
    )

    __table_args__ = (
        Index("idx_price_history_product_recorded", "product_id", "recorded_at"),
    )

    product: Mapped["ProductRecord"] = relationship(back_populates="price_history")

    def __repr__(self) -> str:
        return f"<PriceHistory(product_id={self.product_id}, price={self.price}, recorded_at={self.recorded_at})>"
