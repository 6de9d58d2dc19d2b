"""Tests for the naming resolver."""

import pytest

from layergen.core.errors import NamingError
from layergen.core.naming import (
    interface_module_name,
    interface_name_for,
    is_interface_name,
    layer_base,
    resolve,
    strip_affixes,
)


class TestStripAffixes:
    """Tests for CRUD prefix and layer suffix stripping."""

    @pytest.mark.parametrize(
        "class_name,expected",
        [
            ("CreateProductUseCase", "Product"),
            ("GetCart", "Cart"),
            ("ListOrdersRequest", "Orders"),
            ("ProductRepository", "Product"),
            ("DeleteUserResponse", "User"),
            ("Getaway", "Getaway"),
            ("Cart", "Cart"),
        ],
    )
    def test_strip(self, class_name, expected):
        assert strip_affixes(class_name) == expected

    def test_strips_at_most_one_prefix_and_suffix(self):
        assert strip_affixes("CreateUpdateRequestResponse") == "UpdateRequest"


class TestResolve:
    """Tests for resolve()."""

    def test_resolves_all_forms(self):
        resolved = resolve("CreateOrderLineUseCase")
        assert resolved.base == "OrderLine"
        assert resolved.snake_base == "order_line"
        assert resolved.pascal_base == "OrderLine"
        assert resolved.plural_snake_base == "order_lines"

    @pytest.mark.parametrize(
        "class_name,plural",
        [("Category", "categories"), ("Order", "orders"), ("Person", "people")],
    )
    def test_pluralization(self, class_name, plural):
        assert resolve(class_name).plural_snake_base == plural

    def test_is_deterministic(self):
        """Test that resolving twice yields identical results."""
        assert resolve("GetProductResponse") == resolve("GetProductResponse")

    @pytest.mark.parametrize("class_name", ["Request", "CreateResponse", "UseCase"])
    def test_empty_base_raises(self, class_name):
        with pytest.raises(NamingError) as exc_info:
            resolve(class_name)
        assert class_name in str(exc_info.value)

    def test_result_is_frozen(self):
        resolved = resolve("Cart")
        with pytest.raises(Exception):
            resolved.base = "Other"


class TestLayerBase:
    """Tests for layer token handling."""

    def test_drops_layer_token(self):
        assert layer_base("CartModel", "Model").base == "Cart"
        assert layer_base("CartRouter", "Router", "Routes").plural_snake_base == "carts"

    def test_keeps_token_when_nothing_would_be_left(self):
        assert layer_base("Model", "Model").base == "Model"


class TestInterfaceNames:
    """Tests for port naming helpers."""

    @pytest.mark.parametrize(
        "name,expected",
        [("ICartRepository", True), ("IPaymentGateway", True), ("Item", False), ("I", False), ("CartRepo", False)],
    )
    def test_is_interface_name(self, name, expected):
        assert is_interface_name(name) is expected

    def test_interface_module_name(self):
        assert interface_module_name("ICartRepository") == "cart_repository"
        assert interface_module_name("Cart") == "cart"

    def test_interface_name_for(self):
        assert interface_name_for(resolve("Cart")) == "ICartRepository"
        assert interface_name_for(resolve("Payment"), "Gateway") == "IPaymentGateway"
