"""Services for persistence and asset storage.

ProductStore keeps crawled products and their history; LocalAssetStore
holds processed product images.
"""

from restockradar.services.asset_store import LocalAssetStore
from restockradar.services.product_store import ProductChange, ProductStore

__all__ = [
    "LocalAssetStore",
    "ProductChange",
    "ProductStore",
]
