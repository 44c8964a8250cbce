"""Tests for price parsing, currency normalization, titles, categories and stock text."""

from decimal import Decimal

import pytest

from restockradar.scrapers.utils.normalizer import (
    DEFAULT_EXCHANGE_RATES,
    CategoryClassifier,
    CurrencyNormalizer,
    ParsedPrice,
    clean_product_title,
    clean_text,
    detect_stock_status,
    parse_amount,
    parse_price,
)


class TestParsePrice:
    """Test listing price text parsing."""

    @pytest.mark.parametrize(
        "text,default,expected",
        [
            ("€12,50", "EUR", ParsedPrice(Decimal("12.50"), "EUR")),
            ("12,50 €", "EUR", ParsedPrice(Decimal("12.50"), "EUR")),
            ("$12.50", "USD", ParsedPrice(Decimal("12.50"), "USD")),
            ("¥10,800", "JPY", ParsedPrice(Decimal("10800"), "JPY")),
            ("160 kr", "SEK", ParsedPrice(Decimal("160"), "SEK")),
            ("CAD 15.00", "CAD", ParsedPrice(Decimal("15.00"), "CAD")),
            ("€1.234,56", "EUR", ParsedPrice(Decimal("1234.56"), "EUR")),
        ],
    )
    def test_common_formats(self, text, default, expected):
        """Test symbol placement and locale separators."""
        assert parse_price(text, default_currency=default) == expected

    def test_noise_words_are_ignored(self):
        """Test that 'Ab', 'Angebotspreis' and 'Regular price' do not break parsing."""
        assert parse_price("Ab 19,00 €").amount == Decimal("19.00")
        assert parse_price("Angebotspreis €24,90").amount == Decimal("24.90")
        assert parse_price("Regular price $30.00", default_currency="USD").amount == Decimal("30.00")

    def test_canonical_currency_wins_in_multi_currency_text(self):
        """Test that the preferred currency is picked when several are quoted."""
        parsed = parse_price("$25.00 USD / €21,25 EUR", default_currency="USD", preferred_currency="EUR")
        assert parsed == ParsedPrice(Decimal("21.25"), "EUR")

    def test_dollar_sign_follows_site_currency(self):
        """Test that a bare '$' on a Canadian store means CAD."""
        assert parse_price("$18.00", default_currency="CAD").currency == "CAD"
        assert parse_price("$18.00", default_currency="EUR").currency == "USD"

    def test_bare_number_uses_default_currency(self):
        """Test that a number without symbol takes the site currency."""
        assert parse_price("3.240", default_currency="JPY") == ParsedPrice(Decimal("3240"), "JPY")

    def test_suffix_notation_beats_trailing_weight(self):
        """Test that '19,00 € 50g' is not read as '€ 50'."""
        assert parse_price("19,00 € 50g").amount == Decimal("19.00")

    @pytest.mark.parametrize("text", [None, "", "Ausverkauft", "Preis auf Anfrage", "€0,00"])
    def test_no_price(self, text):
        """Test that text without a positive amount yields None."""
        assert parse_price(text) is None


class TestParseAmount:
    """Test locale-aware number parsing."""

    @pytest.mark.parametrize(
        "raw,currency,expected",
        [
            ("12,50", "EUR", Decimal("12.50")),
            ("1.234,56", "EUR", Decimal("1234.56")),
            ("1,234.56", "USD", Decimal("1234.56")),
            ("10,800", "JPY", Decimal("10800")),
            ("10.800", "JPY", Decimal("10800")),
            ("10.80", "EUR", Decimal("10.80")),
            ("1.234.567", "EUR", Decimal("1234567")),
        ],
    )
    def test_separators(self, raw, currency, expected):
        assert parse_amount(raw, currency) == expected

    def test_dot_thousands_only_for_yen(self):
        """Test that '10.800' stays a decimal amount outside JPY."""
        assert parse_amount("10.800", "EUR") == Decimal("10.800")


class TestCurrencyNormalizer:
    """Test conversion into the canonical currency."""

    def test_default_rates(self):
        """Test the static rate table."""
        normalizer = CurrencyNormalizer()
        assert normalizer.normalize(Decimal("10"), "USD") == Decimal("8.50")
        assert normalizer.normalize(Decimal("20"), "CAD") == Decimal("12.60")
        assert normalizer.normalize(Decimal("10800"), "JPY") == Decimal("62.64")
        assert normalizer.normalize(Decimal("160"), "SEK") == Decimal("13.76")

    def test_canonical_passes_through_rounded(self):
        normalizer = CurrencyNormalizer()
        assert normalizer.normalize(Decimal("12.5"), "EUR") == Decimal("12.50")
        assert normalizer.normalize("12.345", None) == Decimal("12.35")

    def test_rounds_half_up(self):
        """Test ROUND_HALF_UP on the second decimal."""
        normalizer = CurrencyNormalizer(rates={"USD": Decimal("0.5")})
        assert normalizer.normalize(Decimal("0.05"), "USD") == Decimal("0.03")

    def test_site_rate_overrides_table(self):
        """Test that a site-specific rate wins over the default table."""
        normalizer = CurrencyNormalizer()
        assert normalizer.normalize(Decimal("648"), "JPY", rate=Decimal("0.0067")) == Decimal("4.34")

    def test_unknown_currency_passes_through(self):
        normalizer = CurrencyNormalizer()
        assert normalizer.normalize(Decimal("99.999"), "CHF") == Decimal("100.00")

    def test_injected_rates_are_immutable(self):
        """Test that the rate mapping cannot be changed after construction."""
        source = {"USD": Decimal("0.9")}
        normalizer = CurrencyNormalizer(rates=source)
        source["USD"] = Decimal("2")

        assert normalizer.normalize(Decimal("10"), "USD") == Decimal("9.00")
        with pytest.raises(TypeError):
            normalizer.rates["USD"] = Decimal("1")
        with pytest.raises(TypeError):
            DEFAULT_EXCHANGE_RATES["USD"] = Decimal("1")


class TestTextCleanup:
    """Test whitespace and title normalization."""

    def test_clean_text_collapses_whitespace_and_nbsp(self):
        assert clean_text("  Matcha  Uji\n\t50g ") == "Matcha Uji 50g"
        assert clean_text(None) == ""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("Matcha Uji - Sold Out", "Matcha Uji"),
            ("Matcha Uji – Ausverkauft", "Matcha Uji"),
            ("NEW Matcha Uji", "Matcha Uji"),
            ("SALE: Matcha Uji", "Matcha Uji"),
            ("Matcha Uji [Limited]", "Matcha Uji"),
            ("New Leaf Matcha", "New Leaf Matcha"),
        ],
    )
    def test_clean_product_title(self, raw, expected):
        assert clean_product_title(raw) == expected


class TestCategoryClassifier:
    """Test keyword category tagging."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Bamboo Whisk Chasen", "accessories"),
            ("Matcha Starter Set", "tea-sets"),
            ("Genmaicha Premium", "genmaicha"),
            ("Hojicha Pulver", "hojicha"),
            ("Earl Grey Black Tea", "black-tea"),
            ("Matcha Ceremonial 50g", "ceremonial-matcha"),
            ("Matcha Tee Zeremoniell", "ceremonial-matcha"),
            ("Culinary Matcha 100g", "culinary-matcha"),
            ("Uji Matcha", "matcha"),
        ],
    )
    def test_classify(self, name, expected):
        assert CategoryClassifier.classify(name) == expected

    def test_accessories_checked_before_matcha_grades(self):
        """Test that a ceremonial bowl is an accessory, not a matcha."""
        assert CategoryClassifier.classify("Ceremonial Matcha Bowl") == "accessories"

    def test_site_default(self):
        assert CategoryClassifier.classify("Sencha Asatsuyu", default="tea") == "tea"


class TestDetectStockStatus:
    """Test stock keyword classification."""

    def test_in_stock(self):
        assert detect_stock_status("In den Warenkorb") is True
        assert detect_stock_status("Add to cart") is True

    def test_out_of_stock(self):
        assert detect_stock_status("Ausverkauft") is False
        assert detect_stock_status("SOLD OUT") is False
        assert detect_stock_status("売り切れ") is False

    def test_out_of_stock_checked_first(self):
        """Test that a sold-out marker wins when both phrases appear."""
        assert detect_stock_status("Add to cart - Sold out") is False

    def test_site_keywords(self):
        assert detect_stock_status("Vorrätig", stock_keywords=("vorrätig",)) is True
        assert detect_stock_status("Vergriffen", out_of_stock_keywords=("vergriffen",)) is False

    def test_unknown(self):
        assert detect_stock_status("Matcha Uji 30g") is None
        assert detect_stock_status("") is None
