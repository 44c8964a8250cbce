"""Data normalization utilities for price parsing, currency conversion and text cleanup."""

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from types import MappingProxyType
from typing import List, Mapping, Optional, Sequence, Tuple

import structlog

logger = structlog.get_logger(__name__)


# Static exchange rates to EUR. Monitoring-grade, not transactional.
DEFAULT_EXCHANGE_RATES: Mapping[str, Decimal] = MappingProxyType({
    "USD": Decimal("0.85"),
    "CAD": Decimal("0.63"),
    "JPY": Decimal("0.0058"),
    "GBP": Decimal("1.17"),
    "SEK": Decimal("0.086"),
    "DKK": Decimal("0.134"),
    "NOK": Decimal("0.085"),
})

TWO_PLACES = Decimal("0.01")

# Noise that storefronts print around the amount
_PRICE_NOISE = re.compile(
    r"\b(?:angebotspreis|normaler preis|verkaufspreis|regul[äa]rer preis|"
    r"regular price|sale price|unit price|sold out|ausverkauft|"
    r"ordinarie pris|f[öo]rs[äa]ljningspris|fr[åa]n|enhetspris|"
    r"ab|from|per|sale)\b",
    re.IGNORECASE,
)

_CURRENCY_TOKEN = (
    r"US\$|CA\$|C\$|€|£|¥|￥|円|\$|"
    r"EUR\b|USD\b|CAD\b|JPY\b|GBP\b|SEK\b|DKK\b|NOK\b|kr\b"
)
_NUMBER = r"\d+(?:[.,]\d+)*"

_PREFIXED = re.compile(rf"(?P<sym>{_CURRENCY_TOKEN})\s?(?P<num>{_NUMBER})", re.IGNORECASE)
_SUFFIXED = re.compile(rf"(?P<num>{_NUMBER})\s?(?P<sym>{_CURRENCY_TOKEN})", re.IGNORECASE)
_BARE = re.compile(_NUMBER)

_SYMBOL_CURRENCIES = {
    "€": "EUR",
    "eur": "EUR",
    "us$": "USD",
    "usd": "USD",
    "ca$": "CAD",
    "c$": "CAD",
    "cad": "CAD",
    "£": "GBP",
    "gbp": "GBP",
    "¥": "JPY",
    "￥": "JPY",
    "円": "JPY",
    "jpy": "JPY",
    "sek": "SEK",
    "dkk": "DKK",
    "nok": "NOK",
}

_DOLLAR_CURRENCIES = ("USD", "CAD")
_KRONA_CURRENCIES = ("SEK", "DKK", "NOK")


@dataclass(frozen=True)
class ParsedPrice:
    """An amount in a known source currency."""

    amount: Decimal
    currency: str


def clean_text(text: Optional[str]) -> str:
    """Collapse whitespace (including non-breaking spaces) and trim.

    Args:
        text: Raw text, may be None

    Returns:
        Cleaned single-line text, empty string for None
    """
    if not text:
        return ""
    text = text.replace(" ", " ").replace(" ", " ")
    return re.sub(r"\s+", " ", text).strip()


_TITLE_NOISE = (
    re.compile(r"\s*[-–]\s*(?:sold\s*out|out\s*of\s*stock|ausverkauft)\s*$", re.IGNORECASE),
    re.compile(r"^\s*(?:NEW|SALE|NEU)\s*[:!\-]?\s+"),
    re.compile(r"\s*\[[^\]]*\]\s*$"),
)


def clean_product_title(title: Optional[str]) -> str:
    """Normalize a product title before it is used for identity.

    Strips "- Sold Out" style suffixes, upper-case NEW/SALE prefixes and
    trailing bracketed tags.
    """
    result = clean_text(title)
    for pattern in _TITLE_NOISE:
        result = pattern.sub("", result)
    return clean_text(result)


def _resolve_symbol(symbol: str, default_currency: str) -> str:
    token = symbol.lower()
    if token == "$":
        return default_currency if default_currency in _DOLLAR_CURRENCIES else "USD"
    if token == "kr":
        return default_currency if default_currency in _KRONA_CURRENCIES else "SEK"
    return _SYMBOL_CURRENCIES[token]


def parse_amount(raw: str, currency: str = "EUR") -> Optional[Decimal]:
    """Parse a locale-formatted number into a Decimal.

    "12,50" -> 12.50, "1.234,56" -> 1234.56, "10,800" -> 10800,
    "10.800" -> 10800 for JPY only, "12.50" -> 12.50.

    Returns:
        Positive Decimal, or None if the text holds no usable amount
    """
    number = raw.strip().rstrip(".,")
    if not number:
        return None

    if "," in number and "." in number:
        decimal_sep = "," if number.rfind(",") > number.rfind(".") else "."
        thousands_sep = "." if decimal_sep == "," else ","
        number = number.replace(thousands_sep, "").replace(decimal_sep, ".")
    elif "," in number:
        if re.fullmatch(r"\d+,\d{2}", number):
            number = number.replace(",", ".")
        elif re.fullmatch(r"\d{1,3}(?:,\d{3})+", number):
            number = number.replace(",", "")
        else:
            number = number.replace(",", ".", 1).replace(",", "")
    elif number.count(".") > 1:
        number = number.replace(".", "")
    elif currency == "JPY" and re.fullmatch(r"\d{1,3}(?:\.\d{3})+", number):
        number = number.replace(".", "")

    try:
        amount = Decimal(number)
    except InvalidOperation:
        return None
    return amount if amount > 0 else None


def parse_price(
    text: Optional[str],
    default_currency: str = "EUR",
    preferred_currency: str = "EUR",
) -> Optional[ParsedPrice]:
    """Extract an amount and its currency from listing price text.

    Handles "€12,50", "12,50 €", "$12.50", "¥10,800", "160 kr", "CAD 15.00"
    and noise words such as "Ab" or "Regular price". When a string quotes
    several currencies, the preferred currency wins, then the first quote.

    Args:
        text: Raw price text
        default_currency: Currency assumed for bare numbers and ambiguous symbols
        preferred_currency: Currency to pick from multi-currency strings

    Returns:
        ParsedPrice, or None if no positive amount is present
    """
    cleaned = _PRICE_NOISE.sub(" ", clean_text(text))
    if not cleaned:
        return None

    default_currency = default_currency.upper()
    prefixed = list(_PREFIXED.finditer(cleaned))
    suffixed = list(_SUFFIXED.finditer(cleaned))

    # "19,00 € 50g" must not read as "€ 50": pick the notation with more
    # quotes, then the one whose first quote starts earlier
    matches = prefixed
    if suffixed and (
        not prefixed
        or len(suffixed) > len(prefixed)
        or (len(suffixed) == len(prefixed) and suffixed[0].start() < prefixed[0].start())
    ):
        matches = suffixed

    candidates: List[Tuple[str, str]] = [
        (m.group("num"), _resolve_symbol(m.group("sym"), default_currency))
        for m in matches
    ]
    if not candidates:
        candidates = [(m.group(0), default_currency) for m in _BARE.finditer(cleaned)]

    parsed: List[ParsedPrice] = []
    for number, currency in candidates:
        amount = parse_amount(number, currency)
        if amount is not None:
            parsed.append(ParsedPrice(amount=amount, currency=currency))

    if not parsed:
        return None
    for price in parsed:
        if price.currency == preferred_currency:
            return price
    return parsed[0]


class CurrencyNormalizer:
    """Converts source-currency amounts into the canonical currency.

    Rates are injected at construction and never mutated afterwards.
    """

    def __init__(
        self,
        rates: Optional[Mapping[str, Decimal]] = None,
        canonical: str = "EUR",
    ):
        source = DEFAULT_EXCHANGE_RATES if rates is None else rates
        self._rates: Mapping[str, Decimal] = MappingProxyType(
            {code.upper(): Decimal(str(rate)) for code, rate in source.items()}
        )
        self.canonical = canonical.upper()

    @property
    def rates(self) -> Mapping[str, Decimal]:
        return self._rates

    def normalize(
        self,
        amount,
        source_currency: Optional[str],
        rate: Optional[Decimal] = None,
    ) -> Decimal:
        """Convert an amount to the canonical currency.

        Args:
            amount: Amount in source currency (Decimal, int, float or str)
            source_currency: ISO code of the amount, None means canonical
            rate: Site-specific rate overriding the table

        Returns:
            Converted amount rounded half-up to two places. Unknown
            currencies pass through unconverted.
        """
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
        currency = (source_currency or self.canonical).upper()

        if currency == self.canonical:
            return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)

        effective_rate = Decimal(str(rate)) if rate is not None else self._rates.get(currency)
        if effective_rate is None:
            logger.warning("unknown_currency", currency=currency, amount=str(value))
            return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)

        return (value * effective_rate).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


# Ordered: accessories and sets before tea types, matcha grades last
CATEGORY_RULES: Sequence[Tuple[str, Tuple[str, ...]]] = (
    ("accessories", (
        "whisk", "chasen", "bowl", "chawan", "scoop", "chashaku",
        "schale", "becher", "tasse", "schüssel",
    )),
    ("tea-sets", (" set", "set ", " kit", "kit ")),
    ("genmaicha", ("genmaicha",)),
    ("hojicha", ("hojicha", "houjicha")),
    ("black-tea", ("black tea", "earl grey", "schwarztee")),
    ("ceremonial-matcha", ("ceremonial", "ceremony", "zeremon")),
    ("culinary-matcha", ("culinary", "cooking", "latte grade")),
)


class CategoryClassifier:
    """Keyword-based category tagging for product names."""

    @staticmethod
    def classify(name: str, default: str = "matcha") -> str:
        """Return the first matching category tag, or the site default.

        Args:
            name: Cleaned product name
            default: Category used when no rule matches
        """
        if not name:
            return default
        lower = f" {name.lower()} "
        for category, keywords in CATEGORY_RULES:
            if any(keyword in lower for keyword in keywords):
                return category
        return default


_DEFAULT_OUT_OF_STOCK = (
    "sold out", "out of stock", "unavailable", "ausverkauft",
    "nicht verfügbar", "nicht auf lager", "slutsåld", "slut i lager",
    "売り切れ", "在庫切れ", "完売",
)
_DEFAULT_IN_STOCK = (
    "add to cart", "add to bag", "buy now", "in den warenkorb",
    "kaufen", "köp nu", "lägg i varukorg", "カートに入れる",
)


def detect_stock_status(
    text: str,
    stock_keywords: Sequence[str] = (),
    out_of_stock_keywords: Sequence[str] = (),
) -> Optional[bool]:
    """Classify stock text against keyword lists.

    Out-of-stock keywords are checked first.

    Returns:
        False if sold out, True if purchasable, None if the text says neither
    """
    lowered = clean_text(text).lower()
    if not lowered:
        return None
    for keyword in (*out_of_stock_keywords, *_DEFAULT_OUT_OF_STOCK):
        if keyword.lower() in lowered:
            return False
    for keyword in (*stock_keywords, *_DEFAULT_IN_STOCK):
        if keyword.lower() in lowered:
            return True
    return None
