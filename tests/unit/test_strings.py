"""Tests for layergen.core.strings."""

import pytest

from layergen.core.strings import pluralize, split_words, to_kebab, to_pascal, to_snake


class TestSplitWords:
    """Tests for identifier splitting."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("AddItemToCart", ["Add", "Item", "To", "Cart"]),
            ("HTTPClient", ["HTTP", "Client"]),
            ("product_id", ["product", "id"]),
            ("productId", ["product", "Id"]),
            ("order-line", ["order", "line"]),
            ("", []),
        ],
    )
    def test_split(self, name, expected):
        """Test splitting on case transitions and separators."""
        assert split_words(name) == expected


class TestCaseConversion:
    """Tests for case conversions."""

    def test_to_snake(self):
        assert to_snake("CartItem") == "cart_item"
        assert to_snake("productId") == "product_id"
        assert to_snake("HTTPClient") == "http_client"
        assert to_snake("already_snake") == "already_snake"

    def test_to_pascal_keeps_acronyms(self):
        assert to_pascal("HTTPClient") == "HTTPClient"
        assert to_pascal("cart_item") == "CartItem"
        assert to_pascal("useCart") == "UseCart"

    def test_to_kebab(self):
        assert to_kebab("addToCart") == "add-to-cart"


class TestPluralize:
    """Tests for English pluralization."""

    @pytest.mark.parametrize(
        "word,expected",
        [
            ("order", "orders"),
            ("category", "categories"),
            ("key", "keys"),
            ("bus", "buses"),
            ("box", "boxes"),
            ("person", "people"),
            ("Person", "People"),
            ("status", "statuses"),
            ("data", "data"),
            ("order_line", "order_lines"),
            ("stock_ledger_entry", "stock_ledger_entries"),
            ("WorkOrder", "WorkOrders"),
        ],
    )
    def test_pluralize(self, word, expected):
        assert pluralize(word) == expected

    def test_empty_word(self):
        assert pluralize("") == ""
