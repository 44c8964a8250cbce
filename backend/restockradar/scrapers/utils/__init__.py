"""Extraction, normalization and transport utilities used by site adapters."""

from .normalizer import (
    CategoryClassifier,
    CurrencyNormalizer,
    ParsedPrice,
    clean_product_title,
    clean_text,
    detect_stock_status,
    parse_price,
    DEFAULT_EXCHANGE_RATES,
)
from .identity import generate_id, url_slug
from .fields import SelectorChain, extract_link, extract_text, image_candidates
from .variants import VariantReconciler, minor_unit_price
from .retry import http_retry, playwright_retry


__all__ = [
    # Normalization
    "CategoryClassifier",
    "CurrencyNormalizer",
    "ParsedPrice",
    "clean_product_title",
    "clean_text",
    "detect_stock_status",
    "parse_price",
    "DEFAULT_EXCHANGE_RATES",
    # Identity
    "generate_id",
    "url_slug",
    # Field extraction
    "SelectorChain",
    "extract_link",
    "extract_text",
    "image_candidates",
    # Variants
    "VariantReconciler",
    "minor_unit_price",
    # Retry decorators
    "http_retry",
    "playwright_retry",
]
