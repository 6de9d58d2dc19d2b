"""
Domain layer generator.

Generates:
- Entities as validated dataclasses, or as collection aggregates when the
  attributes describe the items of a keyed collection
- Domain services as stateless classes of pure operations
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from layergen.core.errors import SchemaError
from layergen.core.spec import ClassSpec, Declaration, Layer, LayerPrefix, MethodSpec
from layergen.core.strings import pluralize, split_words, to_pascal, to_snake

from .builder import ModuleBuilder
from .generator import GeneratorResult, LayerGenerator
from .render import (
    INDENT,
    dataclass_fields,
    docstring,
    field_rule,
    invalid_value,
    render_params,
    sample_imports,
    sample_value,
    stub_method,
)
from .types import python_default, translate

# A second distinct key literal per key kind, for merge tests
SECOND_KEYS = {"int": "2", "float": "2.0", "UUID": "UUID(int=2)"}


@dataclass(frozen=True)
class CollectionShape:
    """
    How an aggregate entity holds its items.

    Attributes:
        item: Item class name (``CartItem``)
        noun: Snake-case item noun used in method names (``item``)
        key: Item attribute the collection is keyed by
        accumulate: Numeric item attribute summed on merge, if any
    """

    item: str
    noun: str
    key: Declaration
    accumulate: Declaration | None

    @property
    def plural(self) -> str:
        return pluralize(self.noun)


def _add_noun(method: MethodSpec) -> str | None:
    words = split_words(method.method_name)
    if len(words) >= 2 and words[0].lower() == "add":
        return to_snake("".join(word.capitalize() for word in words[1:]))
    return None


def _find_attribute(spec: ClassSpec, name: str) -> Declaration:
    for attr in spec.attributes:
        if attr.name == name or attr.py_name == to_snake(name):
            return attr
    raise SchemaError(f"{spec.class_name}: metadata names unknown attribute '{name}'")


def collection_shape(spec: ClassSpec) -> CollectionShape | None:
    """
    Detect a collection aggregate.

    An entity is an aggregate when ``metadata.collection_of`` names the
    item type, or when it declares ``add<Noun>`` for a noun that is not
    one of its attributes. The attributes then describe the item.
    """
    item = spec.metadata.get("collection_of")
    noun = None
    for method in spec.methods:
        candidate = _add_noun(method)
        if candidate and candidate not in spec.attribute_names():
            noun = candidate
            break

    if not item and not noun:
        return None
    if not spec.attributes:
        raise SchemaError(f"{spec.class_name}: a collection entity needs item attributes")

    if not item:
        item = f"{spec.class_name}{to_pascal(noun)}"
    if not noun:
        rest = item[len(spec.class_name) :] if item.startswith(spec.class_name) else item
        noun = to_snake(rest or item)

    key_name = spec.metadata.get("key")
    key = _find_attribute(spec, key_name) if key_name else spec.attributes[0]

    accumulate_name = spec.metadata.get("accumulate")
    if accumulate_name:
        accumulate = _find_attribute(spec, accumulate_name)
    else:
        accumulate = next(
            (
                attr
                for attr in spec.attributes
                if attr is not key and translate(attr.type).is_numeric
            ),
            None,
        )
    return CollectionShape(item=item, noun=noun, key=key, accumulate=accumulate)


class DomainGenerator(LayerGenerator):
    """Generator for the domain layer."""

    prefix = LayerPrefix.DOMAIN

    def handlers(self) -> dict[Layer, Callable[[ClassSpec], GeneratorResult]]:
        return {
            Layer.DOMAIN_ENTITY: self.generate_entity,
            Layer.DOMAIN_SERVICE: self.generate_service,
        }

    # =========================================================================
    # Entities
    # =========================================================================

    def generate_entity(self, spec: ClassSpec) -> GeneratorResult:
        shape = collection_shape(spec)
        if shape is not None:
            return self._generate_aggregate(spec, shape)

        builder = ModuleBuilder(self.context, spec, f"{spec.class_name} entity.")
        block = self._record_class(builder, spec, spec.class_name, spec.description)
        methods = [stub_method(builder, spec.class_name, method) for method in spec.methods]
        if methods:
            block += "\n\n" + "\n\n".join("\n".join(lines) for lines in methods)

        result = self._result(spec, builder.render([block]), self._entity_test(spec))
        for warning in builder.warnings:
            result.add_warning(warning)
        return result

    def _record_class(
        self,
        builder: ModuleBuilder,
        spec: ClassSpec,
        name: str,
        description: str | None,
    ) -> str:
        """A dataclass with validation on construction and assignment."""
        builder.import_from("dataclasses", "dataclass")
        fields, kw_only = dataclass_fields(builder, spec, spec.attributes)

        lines = ["@dataclass(kw_only=True)" if kw_only else "@dataclass", f"class {name}:"]
        lines.extend(docstring(description or f"{name} record"))
        lines.append("")
        lines.extend(f"{INDENT}{line}" for line in fields or ["pass"])

        checks = self._checks(builder, spec)
        if checks:
            builder.import_from("typing", "Any")
            lines += ["", f"{INDENT}def __setattr__(self, name: str, value: Any) -> None:"]
            lines.extend(checks)
            lines.append(f"{INDENT * 2}super().__setattr__(name, value)")
        return "\n".join(lines)

    def _checks(self, builder: ModuleBuilder, spec: ClassSpec) -> list[str]:
        lines: list[str] = []
        used: set[str] = set()
        for attr in spec.attributes:
            ref = translate(attr.type)
            rule = field_rule(spec, attr, ref)
            if rule is None:
                continue
            used.add(rule.split("(", 1)[0])
            condition = f'name == "{attr.py_name}"'
            if ref.optional:
                condition += " and value is not None"
            keyword = "if" if not lines else "elif"
            lines.append(f"{INDENT * 2}{keyword} {condition}:")
            lines.append(f"{INDENT * 3}{rule}")
        if used:
            builder.import_from(f"{self.package}.domain.validation", *sorted(used))
        return lines

    def _generate_aggregate(self, spec: ClassSpec, shape: CollectionShape) -> GeneratorResult:
        builder = ModuleBuilder(self.context, spec, f"{spec.class_name} aggregate of {shape.item} items.")
        builder.define(shape.item)
        builder.import_from("collections.abc", "Iterable")

        item_block = self._record_class(builder, spec, shape.item, f"One {shape.noun.replace('_', ' ')} of a {spec.class_name}")
        key_ref = builder.type(shape.key.type)
        key = shape.key.py_name

        lines = [f"class {spec.class_name}:"]
        lines.extend(docstring(spec.description or f"{spec.class_name} holding {shape.item} items keyed by {key}"))
        lines += [
            "",
            f"{INDENT}def __init__(self, {shape.plural}: Iterable[{shape.item}] = ()) -> None:",
            f"{INDENT * 2}self._{shape.plural}: dict[{key_ref.annotation}, {shape.item}] = {{}}",
            f"{INDENT * 2}for item in {shape.plural}:",
            f"{INDENT * 3}self._merge(item)",
            "",
            f"{INDENT}def _merge(self, item: {shape.item}) -> None:",
        ]
        if shape.accumulate is not None:
            amount = shape.accumulate.py_name
            lines += [
                f"{INDENT * 2}existing = self._{shape.plural}.get(item.{key})",
                f"{INDENT * 2}if existing is None:",
                f"{INDENT * 3}self._{shape.plural}[item.{key}] = item",
                f"{INDENT * 2}else:",
                f"{INDENT * 3}existing.{amount} = existing.{amount} + item.{amount}",
            ]
        else:
            lines.append(f"{INDENT * 2}self._{shape.plural}[item.{key}] = item")

        declared = {method.py_name for method in spec.methods}
        blocks: list[list[str]] = []
        for method in spec.methods:
            verb = split_words(method.method_name)[0].lower()
            if _add_noun(method) == shape.noun:
                blocks.append(self._add_method(builder, spec, shape, method))
            elif verb in ("remove", "delete"):
                blocks.append(self._remove_method(builder, shape, method))
            elif verb in ("get", "list") and method.py_name.endswith(shape.plural):
                blocks.append(self._get_method(builder, shape, method))
            else:
                blocks.append(stub_method(builder, spec.class_name, method))

        getter = f"get_{shape.plural}"
        if getter not in declared:
            blocks.insert(0, self._get_method(builder, shape, None))
        if f"add_{shape.noun}" not in declared:
            blocks.insert(0, self._add_method(builder, spec, shape, None))

        for block in blocks:
            lines.append("")
            lines.extend(block)

        code = builder.render([item_block, "\n".join(lines)])
        result = self._result(spec, code, self._aggregate_test(spec, shape))
        for warning in builder.warnings:
            result.add_warning(warning)
        return result

    def _add_method(
        self,
        builder: ModuleBuilder,
        spec: ClassSpec,
        shape: CollectionShape,
        method: MethodSpec | None,
    ) -> list[str]:
        """
        ``add_<noun>``: the first parameter is the key, the second the
        amount; further parameters naming item attributes are passed on.
        """
        if method is not None and method.parameters:
            params = list(method.parameters)
        else:
            params = [Declaration(name=shape.key.py_name, type=shape.key.type)]
            if shape.accumulate is not None:
                params.append(Declaration(name=shape.accumulate.py_name, type=shape.accumulate.type, default="1"))

        name = method.py_name if method is not None else f"add_{shape.noun}"
        values = {shape.key.py_name: params[0].py_name}
        if shape.accumulate is not None:
            values[shape.accumulate.py_name] = params[1].py_name if len(params) > 1 else "1"
        attribute_names = set(spec.attribute_names())
        for param in params[2:]:
            if param.py_name in attribute_names:
                values[param.py_name] = param.py_name

        lines = [f"{INDENT}def {name}({render_params(builder, params)}) -> None:"]
        lines.extend(docstring(method.description if method else None, INDENT * 2) or [
            f'{INDENT * 2}"""Add a {shape.noun.replace("_", " ")}, merging with an existing one of the same {shape.key.py_name}."""'
        ])
        if shape.accumulate is not None:
            builder.import_from(f"{self.package}.domain.validation", "require_positive")
            lines.append(f'{INDENT * 2}require_positive("{shape.accumulate.py_name}", {values[shape.accumulate.py_name]})')
        arguments = ", ".join(f"{attr}={value}" for attr, value in values.items())
        lines.append(f"{INDENT * 2}self._merge({shape.item}({arguments}))")
        return lines

    def _get_method(self, builder: ModuleBuilder, shape: CollectionShape, method: MethodSpec | None) -> list[str]:
        name = method.py_name if method is not None else f"get_{shape.plural}"
        return [
            f"{INDENT}def {name}(self) -> list[{shape.item}]:",
            f'{INDENT * 2}"""Items in insertion order."""',
            f"{INDENT * 2}return list(self._{shape.plural}.values())",
        ]

    def _remove_method(self, builder: ModuleBuilder, shape: CollectionShape, method: MethodSpec) -> list[str]:
        params = list(method.parameters) or [Declaration(name=shape.key.py_name, type=shape.key.type)]
        lines = [f"{INDENT}def {method.py_name}({render_params(builder, params)}) -> None:"]
        lines.extend(docstring(method.description, INDENT * 2))
        lines.append(f"{INDENT * 2}self._{shape.plural}.pop({params[0].py_name}, None)")
        return lines

    # =========================================================================
    # Services
    # =========================================================================

    def generate_service(self, spec: ClassSpec) -> GeneratorResult:
        builder = ModuleBuilder(self.context, spec, f"{spec.class_name} domain service.")
        summary = spec.description or f"Domain operations for {spec.class_name}"
        lines = [
            f"class {spec.class_name}:",
            f'{INDENT}"""',
            f"{INDENT}{summary.rstrip('.')}.",
            "",
            f"{INDENT}Operations are pure: they read their arguments and return results",
            f"{INDENT}without touching storage or holding state.",
            f'{INDENT}"""',
            "",
            f"{INDENT}__slots__ = ()",
        ]
        for method in spec.methods:
            lines.append("")
            lines.extend(stub_method(builder, spec.class_name, method))

        result = self._result(spec, builder.render(["\n".join(lines)]), self._service_test(spec))
        for warning in builder.warnings:
            result.add_warning(warning)
        return result

    # =========================================================================
    # Test scaffolds
    # =========================================================================

    def _entity_test(self, spec: ClassSpec) -> str:
        module = self._module(spec)
        name = spec.class_name
        factory = f"make_{to_snake(name)}"
        refs = [translate(attr.type) for attr in spec.attributes]

        lines = [f'"""Tests for {name}."""', "", *sample_imports(refs)]
        if lines[-1]:
            lines.append("")
        lines += [
            "import pytest",
            "",
            f"from {self.package}.domain.errors import ValidationError",
            f"from {module} import {name}",
            "",
            "",
            f"def {factory}(**overrides):",
            "    values = {",
        ]
        lines += [
            f'        "{attr.py_name}": {sample_value(spec, attr, ref)},'
            for attr, ref in zip(spec.attributes, refs, strict=True)
        ]
        lines += [
            "    }",
            "    values.update(overrides)",
            f"    return {name}(**values)",
            "",
            "",
            f"def test_{to_snake(name)}_accepts_valid_fields():",
            f"    instance = {factory}()",
        ]
        lines += [
            f"    assert instance.{attr.py_name} == {sample_value(spec, attr, ref)}"
            for attr, ref in zip(spec.attributes, refs, strict=True)
        ] or ["    assert instance is not None"]

        for attr, ref in zip(spec.attributes, refs, strict=True):
            bad = invalid_value(spec, attr, ref)
            if bad is None:
                continue
            lines += [
                "",
                "",
                f"def test_{to_snake(name)}_rejects_invalid_{attr.py_name}():",
                "    with pytest.raises(ValidationError) as exc_info:",
                f"        {factory}({attr.py_name}={bad})",
                f'    assert exc_info.value.field == "{attr.py_name}"',
                "",
                "",
                f"def test_{to_snake(name)}_validates_{attr.py_name}_on_assignment():",
                f"    instance = {factory}()",
                "    with pytest.raises(ValidationError):",
                f"        instance.{attr.py_name} = {bad}",
            ]
        return "\n".join(lines) + "\n"

    def _aggregate_test(self, spec: ClassSpec, shape: CollectionShape) -> str:
        module = self._module(spec)
        name = spec.class_name
        key_ref = translate(shape.key.type)
        first = sample_value(spec, shape.key, key_ref)
        second = SECOND_KEYS.get(key_ref.kind or "", repr(f"{shape.key.py_name}-2"))
        others = [
            attr
            for attr in spec.attributes
            if attr is not shape.key and attr is not shape.accumulate
            and python_default(attr.default, translate(attr.type)) is None
        ]
        add = f"add_{shape.noun}"
        getter = f"get_{shape.plural}"
        add_method = next((m for m in spec.methods if _add_noun(m) == shape.noun), None)
        if add_method is not None:
            add = add_method.py_name

        if others:
            # Item attributes without defaults cannot be filled by add_<noun>
            return "\n".join(
                [
                    f'"""Tests for {name}."""',
                    "",
                    f"from {module} import {name}",
                    "",
                    "",
                    f"def test_{to_snake(name)}_starts_empty():",
                    f"    assert {name}().{getter}() == []",
                ]
            ) + "\n"

        refs = [key_ref] + ([translate(shape.accumulate.type)] if shape.accumulate else [])
        lines = [f'"""Tests for {name}."""', "", *sample_imports(refs)]
        if lines[-1]:
            lines.append("")
        lines += [
            "import pytest",
            "",
            f"from {self.package}.domain.errors import ValidationError",
            f"from {module} import {name}",
            "",
            "",
            f"def test_{to_snake(name)}_starts_empty():",
            f"    assert {name}().{getter}() == []",
        ]
        if shape.accumulate is None:
            lines += [
                "",
                "",
                f"def test_{add}_replaces_by_{shape.key.py_name}():",
                f"    aggregate = {name}()",
                f"    aggregate.{add}({first})",
                f"    aggregate.{add}({first})",
                f"    assert len(aggregate.{getter}()) == 1",
            ]
            return "\n".join(lines) + "\n"

        amount = shape.accumulate.py_name
        lines += [
            "",
            "",
            f"def test_{add}_merges_by_{shape.key.py_name}():",
            f"    aggregate = {name}()",
            f"    aggregate.{add}({first}, 2)",
            f"    aggregate.{add}({second}, 1)",
            f"    aggregate.{add}({first}, 3)",
            f"    items = aggregate.{getter}()",
            f"    assert [item.{shape.key.py_name} for item in items] == [{first}, {second}]",
            f"    assert items[0].{amount} == 5",
            "",
            "",
            "@pytest.mark.parametrize(\"amount\", [0, -1])",
            f"def test_{add}_rejects_non_positive_{amount}(amount):",
            f"    aggregate = {name}()",
            "    with pytest.raises(ValidationError) as exc_info:",
            f"        aggregate.{add}({first}, amount)",
            f'    assert exc_info.value.field == "{amount}"',
            f"    assert aggregate.{getter}() == []",
        ]
        remove = next(
            (
                m.py_name
                for m in spec.methods
                if split_words(m.method_name)[0].lower() in ("remove", "delete")
            ),
            None,
        )
        if remove:
            lines += [
                "",
                "",
                f"def test_{remove}_drops_by_{shape.key.py_name}():",
                f"    aggregate = {name}()",
                f"    aggregate.{add}({first}, 1)",
                f"    aggregate.{remove}({first})",
                f"    assert aggregate.{getter}() == []",
            ]
        return "\n".join(lines) + "\n"

    def _service_test(self, spec: ClassSpec) -> str:
        module = self._module(spec)
        name = spec.class_name
        lines = [
            f'"""Tests for {name}."""',
            "",
            "import inspect",
            "",
            f"from {module} import {name}",
            "",
            "",
            f"def test_{to_snake(name)}_is_stateless():",
            f"    assert {name}.__slots__ == ()",
        ]
        for method in spec.methods:
            expected = ["self", *(param.py_name for param in method.parameters)]
            lines += [
                "",
                "",
                f"def test_{method.py_name}_signature():",
                f"    params = list(inspect.signature({name}.{method.py_name}).parameters)",
                f"    assert params == {expected!r}",
            ]
        return "\n".join(lines) + "\n"

