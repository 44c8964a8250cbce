"""Site adapter implementations.

GenericAdapter covers any storefront describable by SiteConfig selectors.
Specialized adapters subclass it for sites that need product-page visits or
custom listing handling.
"""

from .generic import GenericAdapter
from .product_page import ListingItem, ProductPageAdapter
from .poppatea import PoppateaAdapter

__all__ = [
    "GenericAdapter",
    "ListingItem",
    "ProductPageAdapter",
    "PoppateaAdapter",
]
