"""Poppatea adapter.

The collection grid renders every product as two sibling cards: an image
card without a title, and a title card carrying name and price. Cards are
paired by position. Title cards usually have no product link, so the URL is
derived from the German title.
"""

import re
from typing import List

from bs4 import Tag

from restockradar.scrapers.adapters.product_page import ListingItem, ProductPageAdapter
from restockradar.scrapers.base import ExtractedFields
from restockradar.scrapers.utils.fields import extract_link, extract_text, image_candidates
from restockradar.scrapers.utils.identity import generate_id
from restockradar.scrapers.utils.normalizer import clean_product_title

PRODUCT_URL_TEMPLATE = "https://poppatea.com/de-de/collections/all-teas/products/{slug}"
TITLE_SELECTOR = ".card__title"

# German listing titles to English product handles
_SLUG_REPLACEMENTS = (
    ("matcha tee", "matcha-tea"),
    ("zeremoniell", "ceremonial"),
    ("hojicha-teepulver", "hojicha-tea-powder"),
    ("mit chai", "with-chai"),
)


def product_slug(name: str) -> str:
    """Derive the product handle from a listing title."""
    slug = name.lower()
    for source, target in _SLUG_REPLACEMENTS:
        slug = slug.replace(source, target)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"[^a-z0-9-]", "", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


class PoppateaAdapter(ProductPageAdapter):
    """Pairs image and title cards, then reads variants from each product page."""

    def collect_listing(self, soup: Tag) -> List[ListingItem]:
        cards = [entry.container for entry in self.select_containers(soup)]
        title_cards = [card for card in cards if card.select_one(TITLE_SELECTOR)]
        image_cards = [
            card for card in cards
            if card.select_one("img") and not card.select_one(TITLE_SELECTOR)
        ]
        self.logger.debug("cards_paired", title_cards=len(title_cards), image_cards=len(image_cards))

        items: List[ListingItem] = []
        seen_names = set()
        for index, card in enumerate(title_cards):
            name = clean_product_title(extract_text(card, self.config.name_selectors))
            if len(name) < 2:
                self.logger.info("container_skipped", index=index, reason="no product name")
                continue
            if name in seen_names:
                continue
            seen_names.add(name)

            link = extract_link(card, self.config.link_selectors, self.config.base_url)
            if not link:
                link = PRODUCT_URL_TEMPLATE.format(slug=product_slug(name))

            image_source = image_cards[index] if index < len(image_cards) else card
            fields = ExtractedFields(
                name=name,
                price_text=extract_text(card, self.config.price_selectors),
                stock_text=extract_text(card, self.config.stock_selectors),
                link=link,
                image_candidates=image_candidates(
                    image_source,
                    self.config.image_selectors,
                    self.config.base_url,
                    self.config.image_exclusions,
                ),
            )
            parsed = self.parse_listing_price(fields.price_text)
            items.append(
                ListingItem(
                    product_id=generate_id(self.site_key, name, link),
                    container=card,
                    fields=fields,
                    parsed=parsed,
                    stock_status=self.container_stock_status(card, fields),
                )
            )
        return items
