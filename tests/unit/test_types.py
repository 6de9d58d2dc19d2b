"""Tests for type translation and rendering helpers."""

import pytest

from layergen.core.spec import Declaration
from layergen.core.validator import validate
from layergen.generate.builder import ModuleBuilder
from layergen.generate.generator import GenerationContext
from layergen.generate.render import (
    call_args,
    dataclass_fields,
    docstring,
    field_rule,
    invalid_value,
    render_params,
    sample_imports,
    sample_value,
)
from layergen.generate.types import python_default, translate


class TestTranslate:
    """Tests for translate()."""

    @pytest.mark.parametrize(
        "expr,annotation",
        [
            ("string", "str"),
            ("String", "str"),
            ("number", "float"),
            ("boolean", "bool"),
            ("decimal", "Decimal"),
            ("Array<CartItem>", "list[CartItem]"),
            ("CartItem[]", "list[CartItem]"),
            ("Record<string, number>", "dict[str, float]"),
            ("Promise<Cart>", "Cart"),
            ("Optional[int]", "int | None"),
            ("string?", "str | None"),
        ],
    )
    def test_annotation(self, expr, annotation):
        assert translate(expr).annotation == annotation

    def test_nullable_reference(self):
        ref = translate("Cart | null")
        assert ref.annotation == "Cart | None"
        assert ref.optional is True
        assert ref.references == ("Cart",)
        assert ref.kind is None

    def test_collection_of_references(self):
        ref = translate("CartItem[]")
        assert ref.references == ("CartItem",)
        assert ref.kind == "list"
        assert ref.is_collection

    def test_void(self):
        assert translate("Promise<void>").is_void
        assert translate("void").is_void

    def test_imports(self):
        assert translate("datetime").imports == frozenset({("datetime", "datetime")})
        assert translate("uuid").imports == frozenset({("uuid", "UUID")})

    def test_numeric(self):
        assert translate("int").is_numeric
        assert translate("number").is_numeric
        assert not translate("string").is_numeric

    def test_missing_expression_is_any(self):
        ref = translate(None)
        assert ref.annotation == "Any"
        assert ("typing", "Any") in ref.imports


class TestPythonDefault:
    """Tests for default value translation."""

    def test_literals(self):
        ref = translate("bool")
        assert python_default("true", ref) == "True"
        assert python_default("false", ref) == "False"

    def test_single_quoted_string(self):
        assert python_default("'usd'", translate("string")) == '"usd"'

    def test_missing_default(self):
        assert python_default(None, translate("string")) is None
        assert python_default(None, translate("string?")) == "None"

    def test_kept_as_written(self):
        assert python_default("3", translate("int")) == "3"


@pytest.fixture
def product():
    return validate(
        {
            "class_name": "Product",
            "layer": "domain/entity",
            "type": "entity",
            "attributes": ["name: string", "price: number", "status: string = 'draft'", "createdAt: datetime"],
            "metadata": {"allowed_values": {"status": ["draft", "active"]}},
        }
    )


@pytest.fixture
def builder(product):
    return ModuleBuilder(GenerationContext(specs={"Product": product}), product, "Product entity.")


class TestFieldRules:
    """Tests for validation rules and sample values."""

    def test_rules(self, product):
        name, price, status, created = product.attributes
        assert field_rule(product, name, translate(name.type)) == "require_non_empty(name, value)"
        assert field_rule(product, price, translate(price.type)) == "require_non_negative(name, value)"
        assert field_rule(product, status, translate(status.type)) == "require_member(name, value, ('draft', 'active'))"
        assert field_rule(product, created, translate(created.type)) == "require_instance(name, value, datetime)"

    def test_no_rule_for_references(self, product):
        decl = Declaration(name="owner", type="User")
        assert field_rule(product, decl, translate(decl.type)) is None

    def test_samples(self, product):
        name, price, status, created = product.attributes
        assert sample_value(product, name, translate(name.type)) == "'name-1'"
        assert sample_value(product, price, translate(price.type)) == "1.0"
        assert sample_value(product, status, translate(status.type)) == "'draft'"
        assert sample_value(product, created, translate(created.type)) == "datetime(2024, 1, 1)"

    def test_invalid_values(self, product):
        name, price, status, created = product.attributes
        assert invalid_value(product, name, translate(name.type)) == '""'
        assert invalid_value(product, price, translate(price.type)) == "-1"
        assert invalid_value(product, status, translate(status.type)) == '"__invalid__"'
        assert invalid_value(product, created, translate(created.type)) is None

    def test_sample_imports(self):
        refs = [translate("datetime"), translate("date"), translate("decimal"), translate("string")]
        assert sample_imports(refs) == ["from datetime import date, datetime", "from decimal import Decimal"]


class TestRenderParams:
    """Tests for signature rendering."""

    def test_plain(self, builder):
        params = [Declaration(name="userId", type="string"), Declaration(name="quantity", type="int")]
        assert render_params(builder, params) == "self, user_id: str, quantity: int"

    def test_required_after_default_becomes_keyword_only(self, builder):
        params = [
            Declaration(name="limit", type="int", default="10"),
            Declaration(name="userId", type="string"),
        ]
        assert render_params(builder, params, leading=None) == "limit: int = 10, *, user_id: str"

    def test_call_args(self):
        params = [Declaration(name="userId", type="string"), Declaration(name="quantity", type="int")]
        assert call_args(params) == "user_id=user_id, quantity=quantity"

    def test_docstring(self):
        assert docstring(None) == []
        assert docstring("Adds   an item") == ['    """Adds an item."""']


class TestDataclassFields:
    """Tests for dataclass field rendering."""

    def test_default_before_required_needs_kw_only(self, builder, product):
        lines, kw_only = dataclass_fields(builder, product, product.attributes)
        assert lines == [
            "name: str",
            "price: float",
            'status: str = "draft"',
            "created_at: datetime",
        ]
        assert kw_only is True

    def test_mutable_default(self, builder, product):
        decl = Declaration(name="tags", type="string[]", default="[]")
        lines, kw_only = dataclass_fields(builder, product, [decl])
        assert lines == ["tags: list[str] = field(default_factory=list)"]
        assert kw_only is False
