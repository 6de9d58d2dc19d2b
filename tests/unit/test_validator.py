"""Tests for the layer schema validator."""

import pytest

from layergen.core.errors import ItemContext, SchemaError
from layergen.core.spec import Layer
from layergen.core.validator import lint, parse_declaration, validate


def make_raw(**overrides):
    raw = {"class_name": "Cart", "layer": "domain/entity", "type": "aggregate"}
    raw.update(overrides)
    return raw


# =============================================================================
# Declarations
# =============================================================================


class TestParseDeclaration:
    """Tests for name: type parsing."""

    def test_string_form(self):
        decl = parse_declaration("quantity: number", "here")
        assert decl.name == "quantity"
        assert decl.type == "number"
        assert decl.default is None
        assert decl.optional is False

    def test_default_and_optional(self):
        decl = parse_declaration("note?: string = 'none'", "here")
        assert decl.optional is True
        assert decl.type == "string"
        assert decl.default == "'none'"

    def test_single_pair_object(self):
        decl = parse_declaration({"productId": "string"}, "here")
        assert decl.name == "productId"
        assert decl.py_name == "product_id"

    def test_name_type_object(self):
        decl = parse_declaration({"name": "qty", "type": "int", "default": 1}, "here")
        assert (decl.name, decl.type, decl.default) == ("qty", "int", "1")

    def test_complex_types_survive(self):
        assert parse_declaration("items: Array<CartItem>", "here").type == "Array<CartItem>"
        assert parse_declaration("cart: Cart | null", "here").type == "Cart | null"

    @pytest.mark.parametrize("raw", ["quantity", "1bad: int", 42, {"a": "int", "b": "str"}])
    def test_rejects_malformed(self, raw):
        with pytest.raises(SchemaError) as exc_info:
            parse_declaration(raw, "Cart.attributes[0]")
        assert "Cart.attributes[0]" in str(exc_info.value)


# =============================================================================
# validate()
# =============================================================================


class TestValidate:
    """Tests for validate()."""

    def test_minimal_spec_is_normalized(self):
        spec = validate({"class_name": "Cart", "layer": "domain/entity"})
        assert spec.layer == Layer.DOMAIN_ENTITY
        assert spec.type == "entity"
        assert spec.attributes == []
        assert spec.methods == []
        assert spec.dependencies == []
        assert spec.metadata == {}

    def test_full_spec(self):
        spec = validate(
            make_raw(
                description="A cart",
                attributes=["productId: string", "quantity: number"],
                methods=[{"method_name": "addItem", "parameters": ["productId: string"], "return_type": "void"}],
                metadata={"key": "productId"},
            )
        )
        assert spec.attribute_names() == ["product_id", "quantity"]
        assert spec.method("addItem").py_name == "add_item"
        assert spec.method("add_item") is spec.methods[0]
        assert spec.metadata == {"key": "productId"}

    def test_method_return_type_defaults_to_void(self):
        spec = validate(make_raw(methods=[{"method_name": "clear"}]))
        assert spec.methods[0].return_type == "void"

    @pytest.mark.parametrize("missing", ["class_name", "layer"])
    def test_missing_required_field(self, missing):
        raw = make_raw()
        del raw[missing]
        with pytest.raises(SchemaError, match=missing):
            validate(raw)

    def test_unknown_layer(self):
        with pytest.raises(SchemaError, match="Unknown layer 'domain/widget'"):
            validate(make_raw(layer="domain/widget"))

    def test_invalid_class_name(self):
        with pytest.raises(SchemaError, match="not a valid identifier"):
            validate(make_raw(class_name="Shopping Cart"))

    def test_not_an_object(self):
        with pytest.raises(SchemaError, match="must be an object"):
            validate(["Cart"])

    def test_non_list_attributes(self):
        with pytest.raises(SchemaError, match="'attributes' must be a list"):
            validate(make_raw(attributes="productId: string"))

    def test_invalid_method_name(self):
        with pytest.raises(SchemaError, match="invalid method_name"):
            validate(make_raw(methods=[{"method_name": "add item"}]))

    def test_metadata_must_be_object(self):
        with pytest.raises(SchemaError, match="metadata"):
            validate(make_raw(metadata=["x"]))

    @pytest.mark.parametrize(
        "metadata,message",
        [
            ({"key": 5}, "metadata 'key' must be a string"),
            ({"store": ["CartStore"]}, "metadata 'store' must be a string"),
            ({"use_cases": ["AddToCartUseCase"]}, "metadata 'use_cases' must map names to strings"),
            ({"handlers": {"onAdd": None}}, "metadata 'handlers' must map names to strings"),
            ({"endpoints": "/orders"}, "metadata 'endpoints' must map names to strings"),
            ({"allowed_values": ["a", "b"]}, "'allowed_values' must map field names to lists"),
            ({"allowed_values": {"status": "draft"}}, "'allowed_values' must map field names to lists"),
        ],
    )
    def test_metadata_shapes(self, metadata, message):
        with pytest.raises(SchemaError, match=message):
            validate(make_raw(metadata=metadata))

    def test_unknown_metadata_keys_pass_through(self):
        spec = validate(make_raw(metadata={"owner": {"team": 1}, "key": None}))
        assert spec.metadata == {"owner": {"team": 1}, "key": None}

    def test_description_must_be_a_string(self):
        with pytest.raises(SchemaError, match="field 'description' must be a string, got int"):
            validate(make_raw(description=42))

    def test_method_description_must_be_a_string(self):
        with pytest.raises(SchemaError, match=r"Cart.addItem: field 'description' must be a string"):
            validate(make_raw(methods=[{"method_name": "addItem", "description": ["x"]}]))


class TestDependencyNaming:
    """Tests for the I-prefix rule on dependencies."""

    def test_use_case_dependency_without_prefix_fails(self):
        raw = {"class_name": "AddToCartUseCase", "layer": "application/use_case", "dependencies": ["CartRepo"]}
        with pytest.raises(SchemaError, match="CartRepo"):
            validate(raw)

    def test_use_case_dependency_with_prefix_passes(self):
        raw = {"class_name": "AddToCartUseCase", "layer": "application/use_case", "dependencies": ["ICartRepo"]}
        assert validate(raw).dependencies == ["ICartRepo"]

    def test_adapter_dependencies_are_checked(self):
        raw = {"class_name": "StripeGateway", "layer": "infrastructure/adapter", "dependencies": ["Gateway"]}
        with pytest.raises(SchemaError):
            validate(raw)

    def test_other_layers_are_not_checked(self):
        raw = make_raw(dependencies=["Whatever"])
        assert validate(raw).dependencies == ["Whatever"]


# =============================================================================
# lint()
# =============================================================================


class TestLint:
    """Tests for lint warnings."""

    def test_clean_spec(self):
        raw = make_raw()
        assert lint(validate(raw), raw) == []

    def test_interface_without_prefix(self):
        raw = {"class_name": "CartRepository", "layer": "application/interface", "type": "port"}
        warnings = lint(validate(raw), raw)
        assert any("'I' prefix" in warning for warning in warnings)

    def test_ignored_dependencies(self):
        raw = make_raw(dependencies=["ICartRepository"])
        warnings = lint(validate(raw), raw)
        assert warnings == ["Cart: 'dependencies' is ignored for layer domain/entity"]

    def test_missing_type(self):
        raw = {"class_name": "Cart", "layer": "domain/entity"}
        assert lint(validate(raw), raw) == ["Cart: missing 'type', using 'entity'"]

    def test_use_case_without_method(self):
        raw = {"class_name": "ClearCartUseCase", "layer": "application/use_case", "type": "command"}
        assert any("no method declared" in warning for warning in lint(validate(raw), raw))


class TestItemContext:
    """Tests for error context formatting."""

    def test_with_context(self):
        error = SchemaError("Missing required field 'layer'").with_context(ItemContext(2, "CartStore"))
        assert str(error) == "item 2 (CartStore): Missing required field 'layer'"
        assert error.message == "Missing required field 'layer'"

    def test_without_class_name(self):
        assert ItemContext(0).format() == "item 0"
