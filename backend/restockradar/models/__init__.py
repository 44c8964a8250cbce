"""SQLAlchemy models for the product store.

All models are imported here so metadata.create_all sees every table.
"""

from restockradar.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from restockradar.models.product import ProductRecord
from restockradar.models.stock_history import StockHistory
from restockradar.models.price_history import PriceHistory

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "ProductRecord",
    "StockHistory",
    "PriceHistory",
]
