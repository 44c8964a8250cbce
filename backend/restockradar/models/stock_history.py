"""Stock status transitions for products."""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from restockradar.models.base import Base, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from restockradar.models.product import ProductRecord


class StockHistory(UUIDPrimaryKeyMixin, Base):
    """One row per observed stock status change.

    The first sighting of a product is recorded too, with previous_in_stock
    left empty.
    """

    __tablename__ = "stock_history"

    product_id: Mapped[str] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    site: Mapped[str] = mapped_column(String(50), nullable=False)

    in_stock: Mapped[bool] = mapped_column(Boolean, nullable=False)
    previous_in_stock: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)

    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("idx_stock_history_product_recorded", "product_id", "recorded_at"),
    )

    product: Mapped["ProductRecord"] = relationship(back_populates="stock_history")

    def __repr__(self) -> str:
        return f"<StockHistory(product_id={self.product_id}, in_stock={self.in_stock}, recorded_at={self.recorded_at})>"
