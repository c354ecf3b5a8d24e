"""Unit tests for formatting and text helpers."""

import pytest

from storefront.utils.helpers import (
    clean_text, normalize_query, is_valid_email, is_valid_phone, round_half_up,
    format_price, page_count, short_id, truncate_list, merge_unique_lists, retry_on_failure
)
from storefront.utils.parsing import html_to_text, description_excerpt, looks_like_html


class TestRoundHalfUp:
    """Test shop-till rounding."""

    def test_halves_round_up(self):
        """Should round .5 away from zero instead of to even."""
        assert round_half_up(2.5) == 3
        assert round_half_up(0.125, 2) == 0.13

    def test_float_representation_does_not_leak(self):
        """Should round 1.005 to 1.01 despite its binary representation."""
        assert round_half_up(1.005, 2) == 1.01

    def test_discount_percent(self):
        """Should turn a one-third discount into 33 percent."""
        assert round_half_up((30 - 20) / 30 * 100) == 33


class TestFormatPrice:
    """Test price display."""

    def test_indian_grouping(self):
        """Should group INR amounts as lakh and crore."""
        assert format_price(123456.5, "INR") == "₹1,23,456.5"
        assert format_price(12345678, "INR") == "₹1,23,45,678"

    def test_small_amounts(self):
        """Should leave amounts below a thousand ungrouped."""
        assert format_price(999, "INR") == "₹999"
        assert format_price(19.99, "INR") == "₹19.99"

    def test_western_grouping(self):
        """Should use thousands separators for other currencies."""
        assert format_price(1234567.25, "USD") == "$1,234,567.25"

    def test_unknown_currency_uses_code(self):
        """Should prefix the ISO code when no symbol is known."""
        assert format_price(10, "JPY") == "JPY 10"

    def test_none(self):
        """Should return None for a missing price."""
        assert format_price(None) is None


class TestTextHelpers:
    """Test small text utilities."""

    def test_clean_text_collapses_whitespace(self):
        assert clean_text("  a \n\t b  ") == "a b"

    def test_clean_text_truncates_on_word(self):
        assert clean_text("one two three", max_length=9) == "one two..."

    def test_normalize_query(self):
        assert normalize_query("  Red Shoes ") == "red shoes"
        assert normalize_query(None) == ""

    @pytest.mark.parametrize("email,expected", [
        ("owner@example.com", True),
        ("first.last+shop@mail.co.in", True),
        ("not-an-email", False),
        ("missing@tld", False),
    ])
    def test_is_valid_email(self, email, expected):
        assert is_valid_email(email) is expected

    def test_is_valid_phone(self):
        assert is_valid_phone("+91 98765-43210")
        assert not is_valid_phone("12345")

    def test_page_count(self):
        assert page_count(41, 20) == 3
        assert page_count(0, 20) == 0
        assert page_count(10, 0) == 0

    def test_short_id(self):
        assert short_id("0123456789abcdef") == "01234567"

    def test_list_helpers(self):
        assert truncate_list([1, 2, 3], 2) == [1, 2]
        assert merge_unique_lists([1, 2], None, [2, 3]) == [1, 2, 3]


class TestRetryOnFailure:
    """Test the retry decorator."""

    def test_retries_then_succeeds(self):
        """Should call again after a failure."""
        calls = []

        @retry_on_failure(retries=2, delay=0)
        def flaky():
            calls.append(1)
            if len(calls) < 2:
                raise ConnectionError("down")
            return "ok"

        assert flaky() == "ok"
        assert len(calls) == 2

    def test_raises_last_error(self):
        """Should re-raise once retries are exhausted."""

        @retry_on_failure(retries=1, delay=0)
        def broken():
            raise ValueError("always")

        with pytest.raises(ValueError):
            broken()


class TestDescriptionParsing:
    """Test markup stripping for product descriptions."""

    def test_plain_text_passes_through(self):
        assert html_to_text("Just   plain text") == "Just plain text"
        assert not looks_like_html("5 < 6 and 7 > 3")

    def test_markup_is_removed(self):
        """Should drop tags, scripts and styles."""
        text = html_to_text("<p>Soft <b>cotton</b></p><script>alert(1)</script><style>p{}</style>")
        assert "cotton" in text
        assert "<" not in text
        assert "alert" not in text

    def test_excerpt_cuts_on_word_boundary(self):
        excerpt = description_excerpt("<p>" + "word " * 100 + "</p>", limit=20)
        assert excerpt.endswith("...")
        assert len(excerpt) <= 23

    def test_empty_description(self):
        assert description_excerpt(None) == ""
