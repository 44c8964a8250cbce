"""Stable product identifiers.

The id must stay identical across crawl runs so the store can upsert and
detect stock or price transitions on the same logical product.
"""

import re
from urllib.parse import urlsplit

NAME_FRAGMENT_LENGTH = 20

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_NON_ID = re.compile(r"[^a-z0-9_]")


def url_slug(url: str) -> str:
    """Last non-empty path segment of a URL, without query or fragment."""
    path = urlsplit(url or "").path
    segments = [segment for segment in path.split("/") if segment]
    return segments[-1] if segments else ""


def generate_id(site_key: str, name: str, url: str) -> str:
    """Build the deterministic product id.

    Args:
        site_key: Site configuration key
        name: Product title, already cleaned by the adapter
        url: Absolute product URL

    Returns:
        "{site_key}_{slug}_{name_fragment}" restricted to [a-z0-9_]
    """
    fragment = _NON_ALNUM.sub("", (name or "").lower())[:NAME_FRAGMENT_LENGTH]
    return _NON_ID.sub("", f"{site_key}_{url_slug(url)}_{fragment}")
