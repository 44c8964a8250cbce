"""Selector fallback chains for reading fields out of product containers.

A chain is an ordered list of strategies, each (Tag) -> Optional[str]. The
first strategy returning a non-empty value wins, so a listing redesign that
breaks the first selector degrades to the next one instead of failing.
"""

import re
from typing import Callable, Iterable, List, Optional, Sequence
from urllib.parse import urljoin, urlsplit, urlunsplit

from bs4 import Tag

from restockradar.scrapers.utils.normalizer import clean_text

Strategy = Callable[[Tag], Optional[str]]

IMAGE_ATTRIBUTES = ("src", "data-src", "data-original", "data-lazy")
SRCSET_ATTRIBUTES = ("data-srcset", "srcset")

DEFAULT_IMAGE_EXCLUSIONS = (
    "icon", "logo", "badge", "placeholder", "spacer", "pixel", "sprite", "loading",
)


class SelectorChain:
    """Prioritized list of extraction strategies."""

    def __init__(self, strategies: Iterable[Strategy]):
        self.strategies: List[Strategy] = list(strategies)

    @classmethod
    def text(cls, selectors: Sequence[str]) -> "SelectorChain":
        """Chain reading the cleaned text of the first node per selector."""
        return cls(css_text(selector) for selector in selectors)

    @classmethod
    def attribute(cls, selectors: Sequence[str], attr: str) -> "SelectorChain":
        """Chain reading one attribute of the first node per selector."""
        return cls(css_attr(selector, attr) for selector in selectors)

    def first(self, container: Tag) -> Optional[str]:
        """Run strategies in order and return the first non-empty value."""
        for strategy in self.strategies:
            value = strategy(container)
            if value:
                return value
        return None

    def __len__(self) -> int:
        return len(self.strategies)


def css_text(selector: str) -> Strategy:
    def strategy(container: Tag) -> Optional[str]:
        node = container.select_one(selector)
        return clean_text(node.get_text(" ")) if node else None
    return strategy


def css_attr(selector: str, attr: str) -> Strategy:
    def strategy(container: Tag) -> Optional[str]:
        node = container.select_one(selector)
        if node is None:
            return None
        value = node.get(attr)
        if isinstance(value, list):
            value = " ".join(value)
        return clean_text(value) if value else None
    return strategy


def extract_text(container: Tag, selectors: Sequence[str]) -> str:
    """Return the first non-empty text matched by the selector list.

    Never raises on a miss.

    Args:
        container: Product container node
        selectors: CSS selectors in priority order

    Returns:
        Cleaned text, or "" when nothing matched
    """
    return SelectorChain.text(selectors).first(container) or ""


def resolve_url(url: Optional[str], base_url: str) -> Optional[str]:
    """Make a URL absolute against the site base URL.

    "//host/path" gets the base scheme, "/path" and relative paths are joined
    to the base, absolute URLs are returned unchanged.
    """
    url = clean_text(url)
    if not url or url.startswith(("javascript:", "mailto:", "#")):
        return None
    if url.startswith("//"):
        scheme = urlsplit(base_url).scheme or "https"
        return f"{scheme}:{url}"
    if url.startswith(("http://", "https://")):
        return url
    return urljoin(base_url.rstrip("/") + "/", url)


def extract_link(container: Tag, selectors: Sequence[str], base_url: str) -> Optional[str]:
    """Return the first product link matched by the selector list.

    Falls back to the container itself when it is an anchor.

    Returns:
        Absolute URL, or None when nothing matched
    """
    strategies: List[Strategy] = [css_attr(selector, "href") for selector in selectors]
    strategies.append(lambda node: node.get("href") if node.name == "a" else None)
    href = SelectorChain(strategies).first(container)
    return resolve_url(href, base_url)


def _srcset_best(srcset: str) -> Optional[str]:
    """Pick the highest-resolution entry from a srcset list.

    Entries without a w/x descriptor rank by position, so the last one wins.
    """
    best_url = None
    best_score = -1.0
    for index, entry in enumerate(part.strip() for part in srcset.split(",")):
        if not entry:
            continue
        pieces = entry.split()
        url = pieces[0]
        score = float(index)
        if len(pieces) > 1:
            match = re.fullmatch(r"(\d+(?:\.\d+)?)([wx])", pieces[1])
            if match:
                value = float(match.group(1))
                score = value * 1000 if match.group(2) == "x" else value
        if score >= best_score:
            best_url = url
            best_score = score
    return best_url


def _usable_source(value: Optional[str]) -> bool:
    if not value:
        return False
    lowered = value.strip().lower()
    return bool(lowered) and not lowered.startswith("data:") and "placeholder" not in lowered


def image_source(node: Tag) -> Optional[str]:
    """Read an image URL using attribute precedence.

    src, then data-src, data-original, data-lazy, then the best srcset
    candidate. data: URIs and placeholders are skipped.
    """
    for attr in IMAGE_ATTRIBUTES:
        value = node.get(attr)
        if _usable_source(value):
            return value.strip()
    for attr in SRCSET_ATTRIBUTES:
        value = node.get(attr)
        if value:
            best = _srcset_best(value)
            if _usable_source(best):
                return best
    return None


def normalize_image_url(url: str, base_url: str, width: int = 800) -> Optional[str]:
    """Resolve an image URL: absolute, Shopify width template filled, no query."""
    url = url.replace("{width}", str(width)).replace("%7Bwidth%7D", str(width))
    absolute = resolve_url(url, base_url)
    if not absolute:
        return None
    parts = urlsplit(absolute)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def is_excluded_image(url: str, alt: str, exclusions: Sequence[str]) -> bool:
    url_lower = url.lower()
    alt_lower = (alt or "").lower()
    return any(
        token.lower() in url_lower or token.lower() in alt_lower
        for token in exclusions
    )


def image_candidates(
    container: Tag,
    selectors: Sequence[str],
    base_url: str,
    exclusions: Sequence[str] = (),
) -> List[str]:
    """Collect candidate image URLs from a container, best first.

    Args:
        container: Product container node
        selectors: Image selectors in priority order
        base_url: Site base URL for resolving relative sources
        exclusions: Extra URL/alt substrings rejected on top of the defaults

    Returns:
        De-duplicated absolute URLs in selector order
    """
    excluded = (*DEFAULT_IMAGE_EXCLUSIONS, *exclusions)
    found: List[str] = []
    for selector in selectors:
        for node in container.select(selector):
            source = image_source(node)
            if not source:
                continue
            url = normalize_image_url(source, base_url)
            if not url or is_excluded_image(url, node.get("alt", ""), excluded):
                continue
            if url not in found:
                found.append(url)
    return found
