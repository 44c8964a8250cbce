"""Static storefront configuration table, keyed by site key.

Selector tuples are ordered: earlier selectors win, later ones are fallbacks
for older or alternative markup.
"""

from decimal import Decimal
from types import MappingProxyType
from typing import Mapping

from restockradar.core.exceptions import ConfigurationError
from restockradar.scrapers.base import SiteConfig

_SHOPIFY_OUT_OF_STOCK = (".badge--sold-out", ".price--sold-out", ".product-card--sold-out")

_SITES = (
    SiteConfig(
        key="tokichi",
        name="Nakamura Tokichi",
        base_url="https://global.tokichi.jp",
        category_url="https://global.tokichi.jp/collections/matcha",
        currency="EUR",
        product_selectors=(".card-wrapper", ".card__content"),
        name_selectors=(".card__heading a", ".card__heading", ".product__title"),
        price_selectors=(".price__current .price-item--regular", ".price .price-item", ".product__price"),
        stock_selectors=(".btn--add-to-cart", ".product-form__buttons button", ".badge"),
        link_selectors=(".card__heading a", "a[href*='/products/']"),
        image_selectors=(".card__media img", "img"),
        stock_keywords=("add to cart", "add to bag", "buy now"),
        out_of_stock_keywords=("out of stock", "sold out"),
        out_of_stock_selectors=_SHOPIFY_OUT_OF_STOCK,
    ),
    SiteConfig(
        key="marukyu",
        name="Marukyu-Koyamaen",
        base_url="https://www.marukyu-koyamaen.co.jp",
        category_url="https://www.marukyu-koyamaen.co.jp/english/shop/products/catalog/matcha?currency=USD",
        currency="USD",
        product_selectors=(".item", ".product-item", ".product"),
        name_selectors=(".item-name", ".product-name", ".name", "h3"),
        price_selectors=(".price", ".item-price", ".cost"),
        stock_selectors=(".cart-form button:not([disabled])", ".add-to-cart:not(.disabled)", ".stock"),
        link_selectors=("a[href*='/products/']", "a[href]"),
        stock_keywords=("add to cart", "in stock", "available"),
        out_of_stock_keywords=("out of stock", "sold out", "unavailable"),
        out_of_stock_selectors=(".outofstock", ".soldout"),
        specialized=True,
    ),
    SiteConfig(
        key="ippodo",
        name="Ippodo Tea",
        base_url="https://global.ippodo-tea.co.jp",
        category_url="https://global.ippodo-tea.co.jp/collections/matcha",
        currency="JPY",
        product_selectors=(".m-product-card", ".product-card"),
        name_selectors=(".m-product-card__name", ".m-product-card__body a", ".product-card__title"),
        price_selectors=(".m-product-card__price", ".product__price", ".price"),
        stock_selectors=(".btn--add-to-cart", ".product-form__buttons", ".m-product-card__soldout"),
        link_selectors=("a.m-product-card__link", "a[href*='/products/']"),
        stock_keywords=("add to cart", "buy now", "purchase"),
        out_of_stock_keywords=("out of stock", "sold out"),
        out_of_stock_selectors=_SHOPIFY_OUT_OF_STOCK,
        specialized=True,
    ),
    SiteConfig(
        key="yoshien",
        name="Yoshi En",
        base_url="https://www.yoshien.com",
        category_url="https://www.yoshien.com/matcha/matcha-tee/",
        currency="EUR",
        product_selectors=(".cs-product-tile",),
        name_selectors=(".cs-product-tile__name", ".cs-product-tile__name-link"),
        price_selectors=(".cs-product-tile__price", ".product__price"),
        stock_selectors=(".cs-product-tile__stock", ".add-to-cart"),
        link_selectors=("a.cs-product-tile__name-link", "a.product-item-link", "a[href]"),
        image_selectors=("img.product-image-photo", "img"),
        stock_keywords=("add to cart", "in stock", "verfügbar", "in den warenkorb"),
        out_of_stock_keywords=("ausverkauft", "out of stock", "sold out", "nicht verfügbar"),
        out_of_stock_selectors=(".cs-product-tile--out-of-stock", ".stock.unavailable"),
    ),
    SiteConfig(
        key="matcha-karu",
        name="Matcha Kāru",
        base_url="https://matcha-karu.com",
        category_url="https://matcha-karu.com/collections/matcha-tee",
        currency="EUR",
        product_selectors=(".product-item",),
        name_selectors=(".product-item-meta__title", ".product-item__info a"),
        price_selectors=("span.price", ".price:not(.price--block)", ".product__price"),
        stock_selectors=(".product-item__label-list", ".add-to-cart"),
        link_selectors=("a.product-item-meta__title", ".product-item__info a", "a[href*='/products/']"),
        image_selectors=(".product-item__primary-image", "img"),
        stock_keywords=("add to cart", "in den warenkorb", "kaufen"),
        out_of_stock_keywords=("ausverkauft", "nicht verfügbar", "sold out"),
        out_of_stock_selectors=(".label--subdued",) + _SHOPIFY_OUT_OF_STOCK,
        specialized=True,
    ),
    SiteConfig(
        key="sho-cha",
        name="Sho-Cha",
        base_url="https://www.sho-cha.com",
        category_url="https://www.sho-cha.com/teeshop",
        currency="EUR",
        product_selectors=(".ProductList-item",),
        name_selectors=(".ProductList-title", ".ProductList-title a"),
        price_selectors=(".product-price", ".sqs-money-native", ".ProductList-price"),
        stock_selectors=(".ProductList-status", ".product-mark", ".add-to-cart"),
        link_selectors=("a.ProductList-item-link", "a[href]"),
        image_selectors=("img.ProductList-image", "img"),
        stock_keywords=("add to cart", "kaufen", "in den warenkorb"),
        out_of_stock_keywords=("ausverkauft", "sold out", "nicht verfügbar"),
        out_of_stock_selectors=(".sold-out", ".product-mark.sold-out"),
        specialized=True,
    ),
    SiteConfig(
        key="sazentea",
        name="Sazen Tea",
        base_url="https://www.sazentea.com",
        category_url="https://www.sazentea.com/en/products/c21-matcha",
        currency="USD",
        product_selectors=(".product",),
        name_selectors=(".product-name", "h3"),
        price_selectors=(".product-price",),
        stock_selectors=(".product-stock", ".add-to-cart"),
        link_selectors=(".product-name a", "a[href]"),
        stock_keywords=("add to cart", "in stock", "available"),
        out_of_stock_keywords=("out of stock", "sold out", "unavailable"),
        specialized=True,
    ),
    SiteConfig(
        key="mamecha",
        name="Mamecha",
        base_url="https://www.mamecha.de",
        category_url="https://www.mamecha.de/collections/alle-tees",
        currency="EUR",
        product_selectors=(".product-item",),
        name_selectors=(".product-item__title a", ".product-item__title"),
        price_selectors=(".price-item--sale", ".price-item--regular", ".product__price"),
        stock_selectors=(".product-item__badge", ".add-to-cart"),
        link_selectors=(".product-item__title a", "a[href*='/products/']"),
        stock_keywords=("add to cart", "in den warenkorb", "verfügbar"),
        out_of_stock_keywords=("ausverkauft", "nicht auf lager", "sold out"),
        out_of_stock_selectors=_SHOPIFY_OUT_OF_STOCK,
    ),
    SiteConfig(
        key="enjoyemeri",
        name="Emeri",
        base_url="https://www.enjoyemeri.com",
        category_url="https://www.enjoyemeri.com/collections/shop-all",
        currency="CAD",
        product_selectors=(".product-card",),
        name_selectors=("h3", ".product-card__title", ".product__title"),
        price_selectors=(".price", ".product__price"),
        stock_selectors=(".product-card__badge", ".add-to-cart"),
        link_selectors=("a.product-card__link", "a[href*='/products/']"),
        image_selectors=(".product-card__image img", "img"),
        stock_keywords=("add to cart", "buy now", "purchase"),
        out_of_stock_keywords=("out of stock", "sold out"),
        out_of_stock_selectors=_SHOPIFY_OUT_OF_STOCK,
        image_exclusions=("payment", "flag"),
    ),
    SiteConfig(
        key="poppatea",
        name="Poppatea",
        base_url="https://poppatea.com",
        category_url="https://poppatea.com/de-de/collections/all-teas?filter.p.m.custom.tea_type=Matcha",
        currency="EUR",
        product_selectors=(".card",),
        name_selectors=(".card__title", "h3", ".product__title"),
        price_selectors=(".price__regular", ".price", ".product__price"),
        stock_selectors=(".card__badge", ".add-to-cart"),
        link_selectors=(".card__title a", "a[href*='/products/']"),
        image_selectors=("img",),
        stock_keywords=("add to cart", "in den warenkorb", "kaufen"),
        out_of_stock_keywords=("ausverkauft", "nicht verfügbar", "sold out"),
        specialized=True,
        minor_unit_threshold=0,
        variant_catalog="poppatea-packaging",
        image_exclusions=("flag",),
    ),
    SiteConfig(
        key="horiishichimeien",
        name="Horiishichimeien",
        base_url="https://horiishichimeien.com",
        category_url="https://horiishichimeien.com/en/collections/all?selected=%E6%8A%B9%E8%8C%B6",
        currency="JPY",
        product_selectors=(".product-card", ".product-item", ".grid-product"),
        name_selectors=(".product-card__title", ".product__title", ".grid-product__title"),
        price_selectors=(".product-card__price", ".product__price", ".price", ".grid-product__price"),
        stock_selectors=(".btn--add-to-cart", ".add-to-cart", ".product-form__buttons", ".grid-product__tag"),
        link_selectors=("a.product-card", "a.grid-product__link", "a[href*='/products/']"),
        stock_keywords=("add to cart", "buy now", "purchase", "add to bag"),
        out_of_stock_keywords=("out of stock", "sold out", "unavailable", "売り切れ"),
        out_of_stock_selectors=(".grid-product__tag--sold-out",) + _SHOPIFY_OUT_OF_STOCK,
        specialized=True,
        exchange_rate=Decimal("0.0067"),
    ),
)

SITE_CONFIGS: Mapping[str, SiteConfig] = MappingProxyType({site.key: site for site in _SITES})


def get_site_config(site_key: str) -> SiteConfig:
    """Look up a site configuration.

    Raises:
        ConfigurationError: If the key is not configured
    """
    config = SITE_CONFIGS.get(site_key)
    if config is None:
        raise ConfigurationError(site_key, "unknown site key")
    return config
