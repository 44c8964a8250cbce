"""Variant reconciliation: expand one product container into purchasable SKUs.

Sources are tried in priority order and the first one yielding variants wins:
embedded JSON, DOM options, a declared packaging catalog, then a single
implicit default variant carrying the container-level price.
"""

import json
import re
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from functools import lru_cache
from importlib import resources
from types import MappingProxyType
from typing import Any, List, Mapping, Optional, Sequence, Tuple

import structlog
from bs4 import Tag

from restockradar.config import settings
from restockradar.core.exceptions import ErrorKind, ParseError
from restockradar.scrapers.base import SiteConfig, Variant
from restockradar.scrapers.utils.normalizer import (
    TWO_PLACES,
    clean_text,
    detect_stock_status,
    parse_amount,
    parse_price,
)

logger = structlog.get_logger(__name__)

DEFAULT_VARIANT_SELECTORS = (
    'select[name="id"] option',
    ".product-form__option select option",
    'input[type="radio"][name^="option"]',
    ".variant-option",
    ".size-variant",
    'input[name="Size"]',
)

DEFAULT_VARIANT_LABEL = "Default"

_PLACEHOLDER_LABELS = ("choose", "select", "pick", "wähle", "bitte", "auswählen", "--")
_VARIANTS_KEY = re.compile(r'"variants"\s*:\s*\[')
_LABEL_PRICE_SPLIT = re.compile(r"\s+[-–|/]\s+")


@dataclass(frozen=True)
class CatalogEntry:
    """One declared packaging option: label and multiplier on the base price."""

    label: str
    multiplier: Decimal


@lru_cache(maxsize=1)
def load_variant_catalogs() -> Mapping[str, Tuple[CatalogEntry, ...]]:
    """Load the versioned fallback catalogs shipped as package data."""
    raw = (
        resources.files("restockradar.scrapers.data")
        .joinpath("variant_catalogs.json")
        .read_text(encoding="utf-8")
    )
    payload = json.loads(raw)
    catalogs = {
        name: tuple(
            CatalogEntry(label=entry["label"], multiplier=Decimal(str(entry["multiplier"])))
            for entry in entries
        )
        for name, entries in payload["catalogs"].items()
    }
    logger.debug("variant_catalogs_loaded", version=payload.get("version"), names=list(catalogs))
    return MappingProxyType(catalogs)


def minor_unit_price(value: Any, threshold: int) -> Optional[Decimal]:
    """Convert a JSON price into major units.

    Integer-like values above the threshold are minor units and divided by
    100; a threshold of 0 treats every integer as minor units. Strings with
    a decimal point are already major units.

    Returns:
        Decimal price, or None if the value is not a positive finite number
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        amount = Decimal(value)
        integer_like = True
    elif isinstance(value, float):
        amount = Decimal(str(value))
        integer_like = False
    elif isinstance(value, str):
        text = value.strip()
        if re.fullmatch(r"\d+", text):
            amount = Decimal(text)
            integer_like = True
        else:
            amount = parse_amount(text)
            integer_like = False
        if amount is None:
            return None
    else:
        return None

    if not amount.is_finite() or amount <= 0:
        return None
    if integer_like and (threshold == 0 or amount > threshold):
        amount = amount / 100
    return amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


class VariantReconciler:
    """Merges embedded JSON, DOM and catalog variant sources for a container."""

    def __init__(
        self,
        catalogs: Optional[Mapping[str, Sequence[CatalogEntry]]] = None,
        default_threshold: Optional[int] = None,
    ):
        self._catalogs = catalogs
        self.default_threshold = (
            settings.MINOR_UNIT_THRESHOLD if default_threshold is None else default_threshold
        )

    @property
    def catalogs(self) -> Mapping[str, Sequence[CatalogEntry]]:
        if self._catalogs is None:
            self._catalogs = load_variant_catalogs()
        return self._catalogs

    def threshold_for(self, config: SiteConfig) -> int:
        if config.minor_unit_threshold is not None:
            return config.minor_unit_threshold
        return self.default_threshold

    def reconcile(
        self,
        container: Tag,
        config: SiteConfig,
        base_price: Optional[Decimal] = None,
        default_available: bool = True,
        base_currency: Optional[str] = None,
    ) -> List[Variant]:
        """Expand a container into at least one Variant.

        Args:
            container: Listing container or parsed product page
            config: Site configuration
            base_price: Container-level price in source currency
            default_available: Availability when a source does not state it
            base_currency: Currency of base_price when it differs from the site currency

        Returns:
            Non-empty list of variants, prices in source currency
        """
        variants = self.from_json(container, config, default_available)
        if variants:
            return variants

        variants = self.from_dom(container, config, base_price, base_currency, default_available)
        if variants:
            return variants

        variants = self.from_catalog(config, base_price, default_available, base_currency)
        if variants:
            return variants

        return [
            Variant(
                label=DEFAULT_VARIANT_LABEL,
                price=base_price,
                available=default_available,
                currency=base_currency,
            )
        ]

    def from_json(
        self, container: Tag, config: SiteConfig, default_available: bool = True
    ) -> List[Variant]:
        """Read the first usable "variants" array embedded in script tags."""
        threshold = self.threshold_for(config)
        decoder = json.JSONDecoder()

        for script in container.find_all("script"):
            text = script.string or script.get_text()
            if not text or '"variants"' not in text:
                continue
            for match in _VARIANTS_KEY.finditer(text):
                try:
                    candidate = self._decode_array(decoder, text, match.end() - 1)
                except ParseError as e:
                    logger.warning(
                        "variant_json_discarded",
                        site=config.key,
                        kind=ErrorKind.PARSE.value,
                        error=e.message,
                    )
                    continue
                variants = self._variants_from_entries(candidate, threshold, default_available)
                if variants:
                    return variants
                logger.debug("variant_json_empty", site=config.key, entries=len(candidate))
        return []

    @staticmethod
    def _decode_array(decoder: json.JSONDecoder, text: str, start: int) -> List[Any]:
        try:
            value, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError as e:
            raise ParseError(f"malformed variants array: {e.msg} at {e.pos}") from e
        if not isinstance(value, list):
            raise ParseError("variants value is not an array")
        return value

    @staticmethod
    def _variants_from_entries(
        entries: List[Any], threshold: int, default_available: bool
    ) -> List[Variant]:
        variants: List[Variant] = []
        for entry in entries:
            if not isinstance(entry, dict) or entry.get("id") is None or entry.get("price") is None:
                continue
            price = minor_unit_price(entry["price"], threshold)
            if price is None:
                continue
            label = clean_text(
                entry.get("title")
                or entry.get("public_title")
                or entry.get("name")
                or entry.get("option1")
                or ""
            ) or DEFAULT_VARIANT_LABEL
            if "available" in entry:
                available = entry["available"] is not False
            else:
                available = default_available
            variants.append(
                Variant(label=label, price=price, available=available, variant_id=str(entry["id"]))
            )
        return variants

    def from_dom(
        self,
        container: Tag,
        config: SiteConfig,
        base_price: Optional[Decimal] = None,
        base_currency: Optional[str] = None,
        default_available: bool = True,
    ) -> List[Variant]:
        """Read variants from select options and radio/swatch inputs.

        An option is available only when it is enabled, its label carries no
        sold-out marker and the container itself is not sold out.
        """
        threshold = self.threshold_for(config)
        for selector in config.variant_selectors or DEFAULT_VARIANT_SELECTORS:
            variants: List[Variant] = []
            seen = set()
            for node in container.select(selector):
                variant = self._variant_from_node(
                    node, container, config, base_price, base_currency, threshold, default_available
                )
                if variant and variant.label not in seen:
                    seen.add(variant.label)
                    variants.append(variant)
            if variants:
                return variants
        return []

    def _variant_from_node(
        self,
        node: Tag,
        container: Tag,
        config: SiteConfig,
        base_price: Optional[Decimal],
        base_currency: Optional[str],
        threshold: int,
        default_available: bool = True,
    ) -> Optional[Variant]:
        value = clean_text(node.get("value") or node.get("data-value") or node.get("data-variant-id"))
        label = self._node_label(node, container) or value
        if not value or not label:
            return None

        lowered = label.lower()
        if value == "0" or lowered.startswith(_PLACEHOLDER_LABELS):
            return None

        price = None
        currency = None
        if node.get("data-price"):
            price = minor_unit_price(node["data-price"], threshold)

        # "50g - €12,50 - Sold out": keep the description, consume price and stock parts
        parts = _LABEL_PRICE_SPLIT.split(label)
        descriptive = [parts[0]]
        for part in parts[1:]:
            parsed = parse_price(part, default_currency=config.currency, preferred_currency=config.currency)
            if parsed:
                if price is None:
                    price = parsed.amount
                    currency = parsed.currency
            elif detect_stock_status(part, config.stock_keywords, config.out_of_stock_keywords) is None:
                descriptive.append(part)
        label = clean_text(" - ".join(descriptive))
        if price is None:
            price = base_price
            currency = base_currency

        disabled = node.has_attr("disabled") or "disabled" in (node.get("class") or [])
        sold_out = detect_stock_status(lowered, out_of_stock_keywords=config.out_of_stock_keywords) is False

        variant_id = value if node.name in ("option", "input") else node.get("data-variant-id")
        return Variant(
            label=label,
            price=price,
            available=default_available and not (disabled or sold_out),
            variant_id=variant_id,
            currency=currency,
        )

    @staticmethod
    def _node_label(node: Tag, container: Tag) -> str:
        if node.name == "input":
            node_id = node.get("id")
            if node_id:
                label_node = container.find("label", attrs={"for": node_id})
                if label_node:
                    return clean_text(label_node.get_text(" "))
            return clean_text(node.get("value"))
        return clean_text(node.get_text(" ")) or clean_text(node.get("data-value"))

    def from_catalog(
        self,
        config: SiteConfig,
        base_price: Optional[Decimal] = None,
        default_available: bool = True,
        base_currency: Optional[str] = None,
    ) -> List[Variant]:
        """Synthesize variants from the site's declared packaging catalog."""
        if not config.variant_catalog:
            return []
        entries = self.catalogs.get(config.variant_catalog)
        if not entries:
            logger.warning("variant_catalog_missing", site=config.key, catalog=config.variant_catalog)
            return []

        variants = []
        for entry in entries:
            price = None
            if base_price is not None:
                price = (base_price * entry.multiplier).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
            variants.append(
                Variant(
                    label=entry.label,
                    price=price,
                    available=default_available,
                    currency=base_currency,
                )
            )
        return variants
