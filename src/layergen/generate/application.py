"""
Application layer generator.

Generates:
- Ports (interfaces) as ABCs of async operations
- Use cases with constructor-injected ports and a single ``execute``
- Stores: keyed state containers running the optimistic mutation protocol
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from layergen.core.errors import SchemaError
from layergen.core.naming import interface_module_name, layer_base
from layergen.core.spec import ClassSpec, Declaration, Layer, LayerPrefix, MethodSpec
from layergen.core.strings import pluralize, split_words, to_snake

from .builder import ModuleBuilder, PlaceholderKind
from .domain import collection_shape
from .generator import GeneratorResult, LayerGenerator
from .render import INDENT, docstring, render_params
from .types import translate

# Store action verbs and the optimistic apply they use
MERGE_VERBS = frozenset({"add", "increment", "push"})
DROP_VERBS = frozenset({"remove", "delete", "drop", "clear"})
PUT_VERBS = frozenset({"set", "update", "replace", "put", "save"})
REFRESH_VERBS = frozenset({"load", "fetch", "refresh", "get", "list"})


def use_case_field(name: str) -> str:
    """Attribute name for an injected use case: ``AddToCartUseCase`` -> ``add_to_cart``."""
    snake = to_snake(name)
    if snake.endswith("_use_case") and snake != "_use_case":
        snake = snake[: -len("_use_case")]
    return snake


def action_verb(method: MethodSpec) -> str:
    verb = split_words(method.method_name)[0].lower()
    if verb in MERGE_VERBS:
        return "merge"
    if verb in DROP_VERBS:
        return "drop"
    if verb in PUT_VERBS:
        return "put"
    if verb in REFRESH_VERBS:
        return "refresh"
    return "custom"


@dataclass(frozen=True)
class StoreShape:
    """
    What a store keeps per key.

    Attributes:
        item: Item class name, or None when the state is an opaque value
        key: Item attribute items are keyed by
        accumulate: Item attribute summed by merge actions, if any
        reader: Method reading items from an aggregate result (``get_items``)
    """

    item: str | None
    key: str = "id"
    accumulate: str | None = None
    reader: str | None = None


class ApplicationGenerator(LayerGenerator):
    """Generator for the application layer."""

    prefix = LayerPrefix.APPLICATION

    def handlers(self) -> dict[Layer, Callable[[ClassSpec], GeneratorResult]]:
        return {
            Layer.APPLICATION_INTERFACE: self.generate_interface,
            Layer.APPLICATION_USE_CASE: self.generate_use_case,
            Layer.APPLICATION_STORE: self.generate_store,
        }

    def _finish(self, spec: ClassSpec, builder: ModuleBuilder, blocks: list[str], test: str) -> GeneratorResult:
        result = self._result(spec, builder.render(blocks), test)
        for warning in builder.warnings:
            result.add_warning(warning)
        return result

    # =========================================================================
    # Interfaces
    # =========================================================================

    def generate_interface(self, spec: ClassSpec) -> GeneratorResult:
        builder = ModuleBuilder(self.context, spec, f"{spec.class_name} port.")
        builder.import_from("abc", "ABC", "abstractmethod")

        lines = [f"class {spec.class_name}(ABC):"]
        lines.extend(docstring(spec.description or "Port implemented by the infrastructure layer"))
        for method in spec.methods:
            ret = builder.type(method.return_type)
            lines += [
                "",
                f"{INDENT}@abstractmethod",
                f"{INDENT}async def {method.py_name}({render_params(builder, method.parameters)}) -> {ret.annotation}:",
            ]
            lines.extend(docstring(method.description, INDENT * 2) or [f"{INDENT * 2}..."])
        if not spec.methods:
            lines += ["", f"{INDENT}pass"]

        names = sorted(method.py_name for method in spec.methods)
        test = "\n".join(
            [
                f'"""Tests for the {spec.class_name} port."""',
                "",
                "import inspect",
                "",
                f"from {self._module(spec)} import {spec.class_name}",
                "",
                "",
                f"def test_{to_snake(spec.class_name)}_is_abstract():",
                f"    assert inspect.isabstract({spec.class_name}) == {bool(names)}",
                f"    assert sorted({spec.class_name}.__abstractmethods__) == {names!r}",
            ]
            + [
                line
                for method in spec.methods
                for line in (
                    "",
                    "",
                    f"def test_{method.py_name}_is_async():",
                    f"    assert inspect.iscoroutinefunction({spec.class_name}.{method.py_name})",
                )
            ]
        )
        return self._finish(spec, builder, ["\n".join(lines)], test + "\n")

    # =========================================================================
    # Use cases
    # =========================================================================

    def generate_use_case(self, spec: ClassSpec) -> GeneratorResult:
        if len(spec.methods) > 1:
            raise SchemaError(
                f"{spec.class_name}: a use case declares exactly one operation, got {len(spec.methods)}"
            )
        method = spec.methods[0] if spec.methods else MethodSpec(method_name="execute")
        builder = ModuleBuilder(self.context, spec, f"{spec.class_name} use case.")

        fields = [(interface_module_name(dep), builder.require(dep, PlaceholderKind.PORT)) for dep in spec.dependencies]
        ret = builder.type(method.return_type)

        lines = [f"class {spec.class_name}:"]
        lines.extend(docstring(spec.description or method.description or f"{spec.class_name} use case"))
        lines.append("")
        params = ", ".join(["self", *(f"{name}: {port}" for name, port in fields)])
        lines.append(f"{INDENT}def __init__({params}) -> None:")
        lines.extend(f"{INDENT * 2}self._{name} = {name}" for name, _ in fields)
        if not fields:
            lines.append(f"{INDENT * 2}pass")
        lines += ["", f"{INDENT}async def execute({render_params(builder, method.parameters)}) -> {ret.annotation}:"]
        lines.extend(docstring(method.description, INDENT * 2))
        lines.append(f'{INDENT * 2}raise NotImplementedError("{spec.class_name}.execute")')

        return self._finish(spec, builder, ["\n".join(lines)], self._use_case_test(spec, method, fields))

    def _use_case_test(self, spec: ClassSpec, method: MethodSpec, fields: list[tuple[str, str]]) -> str:
        name = spec.class_name
        factory = f"make_{to_snake(name)}"
        expected = ["self", *(param.py_name for param in method.parameters)]
        lines = [
            f'"""Tests for {name}."""',
            "",
            "import inspect",
            "from unittest.mock import AsyncMock",
            "",
            f"from {self._module(spec)} import {name}",
            "",
            "",
            f"def {factory}():",
            f"    return {name}({', '.join(f'{field}=AsyncMock()' for field, _ in fields)})",
            "",
            "",
            f"def test_{to_snake(name)}_keeps_its_ports():",
            f"    use_case = {factory}()",
        ]
        lines += [f"    assert isinstance(use_case._{field}, AsyncMock)" for field, _ in fields] or [
            "    assert use_case is not None"
        ]
        lines += [
            "",
            "",
            "def test_execute_signature():",
            f"    assert inspect.iscoroutinefunction({name}.execute)",
            f"    assert list(inspect.signature({name}.execute).parameters) == {expected!r}",
        ]
        return "\n".join(lines) + "\n"

    # =========================================================================
    # Stores
    # =========================================================================

    def store_shape(self, spec: ClassSpec) -> StoreShape:
        """
        Item layout of a store, from metadata first and the item's aggregate
        entity (when known) second.
        """
        item = spec.metadata.get("item")
        if not item:
            return StoreShape(item=None)

        shape = None
        for entity in self.context.specs_in(Layer.DOMAIN_ENTITY):
            try:
                candidate = collection_shape(entity)
            except SchemaError:
                continue
            if candidate is not None and candidate.item == item:
                shape = candidate
                break

        key = spec.metadata.get("key")
        accumulate = spec.metadata.get("accumulate")
        if shape is not None:
            key = key or shape.key.py_name
            if accumulate is None and shape.accumulate is not None:
                accumulate = shape.accumulate.py_name
            reader = f"get_{shape.plural}"
        else:
            base = layer_base(spec.class_name, "Store").pascal_base
            noun = to_snake(item[len(base) :] if item.startswith(base) and item != base else item)
            reader = f"get_{pluralize(noun)}"
        return StoreShape(
            item=item,
            key=to_snake(key or "id"),
            accumulate=to_snake(accumulate) if accumulate else None,
            reader=reader,
        )

    def generate_store(self, spec: ClassSpec) -> GeneratorResult:
        builder = ModuleBuilder(self.context, spec, f"{spec.class_name}: keyed state with optimistic actions.")
        shape = self.store_shape(spec)
        links: dict[str, str] = spec.metadata.get("use_cases") or {}

        for method in spec.methods:
            if not method.parameters:
                raise SchemaError(
                    f"{spec.class_name}.{method.method_name}: store actions take the state key as first parameter"
                )

        runtime = ["OptimisticState", "MutationPhase"]
        if shape.item is not None:
            item = builder.require(shape.item)
            state_type = f"list[{item}]"
            initial = "list"
        else:
            item = None
            builder.import_from("typing", "Any")
            state_type = "Any"
            initial = "lambda: None"

        # Injected use cases, in first-use order
        injected: dict[str, str] = {}
        for method in spec.methods:
            target = links.get(method.method_name) or links.get(method.py_name)
            if target and target not in injected:
                injected[target] = use_case_field(target)
                builder.require(target, PlaceholderKind.USE_CASE)

        key_param = spec.methods[0].parameters[0] if spec.methods else Declaration(name="key", type="string")
        key_ref = builder.type(key_param.type)

        lines = [f"class {spec.class_name}:"]
        lines.extend(
            docstring(spec.description or f"State per {key_param.py_name}; actions apply locally, then confirm")
        )
        lines.append("")
        init_params = ", ".join(["self", *(f"{field}: {target}" for target, field in injected.items())])
        lines.append(f"{INDENT}def __init__({init_params}) -> None:")
        lines.append(f"{INDENT * 2}self.state: OptimisticState[{state_type}] = OptimisticState({initial})")
        lines.extend(f"{INDENT * 2}self._{field} = {field}" for field in injected.values())

        # Selectors
        lines += [
            "",
            f"{INDENT}def get(self, key: {key_ref.annotation}) -> {state_type}:",
            f"{INDENT * 2}return self.state.get(key)",
            "",
            f"{INDENT}def is_pending(self, key: {key_ref.annotation}) -> bool:",
            f"{INDENT * 2}return self.state.phase(key) == MutationPhase.PENDING",
        ]
        for attr in spec.attributes:
            lines.append("")
            lines.extend(self._selector(builder, spec, shape, attr, key_ref.annotation, state_type))

        if injected:
            lines += [
                "",
                f"{INDENT}async def _commit(self, pending: Awaitable[Any]) -> {state_type} | None:",
                f"{INDENT * 2}return self._to_state(await pending)",
                "",
                f"{INDENT}@staticmethod",
                f"{INDENT}def _to_state(result: Any) -> {state_type} | None:",
                f'{INDENT * 2}"""Authoritative state from a use case result; None keeps the optimistic state."""',
            ]
            builder.import_from("collections.abc", "Awaitable")
            builder.import_from("typing", "Any")
            if shape.item is not None:
                lines += [
                    f"{INDENT * 2}if result is None:",
                    f"{INDENT * 3}return None",
                    f"{INDENT * 2}if isinstance(result, list):",
                    f"{INDENT * 3}return list(result)",
                    f'{INDENT * 2}reader = getattr(result, "{shape.reader}", None)',
                    f"{INDENT * 2}if callable(reader):",
                    f"{INDENT * 3}return list(reader())",
                    f"{INDENT * 2}return None",
                ]
            else:
                lines.append(f"{INDENT * 2}return result")

        # Actions
        for method in spec.methods:
            target = links.get(method.method_name) or links.get(method.py_name)
            lines.append("")
            lines.extend(self._action(builder, spec, shape, item, method, injected.get(target) if target else None, state_type))

        helpers = self._helpers(spec, shape) if shape.item else []
        builder.import_from(f"{self.package}.application.optimistic", *runtime, *helpers)

        test = self._store_test(spec, shape, links, injected)
        return self._finish(spec, builder, ["\n".join(lines)], test)

    def _helpers(self, spec: ClassSpec, shape: StoreShape) -> list[str]:
        used = set()
        for method in spec.methods:
            verb = action_verb(method)
            if verb == "merge":
                used.add("merge_item" if shape.accumulate else "put_item")
            elif verb == "drop":
                used.add("drop_item")
            elif verb == "put":
                used.add("put_item")
        return sorted(used)

    def _selector(
        self,
        builder: ModuleBuilder,
        spec: ClassSpec,
        shape: StoreShape,
        attr: Declaration,
        key_type: str,
        state_type: str,
    ) -> list[str]:
        """A derived read of one key's state, named after a declared attribute."""
        ref = builder.type(attr.type)
        head = f"{INDENT}def {attr.py_name}(self, key: {key_type}) -> {ref.annotation}:"
        if ref.annotation == state_type or (shape.item and ref.references == (shape.item,)):
            return [head, f"{INDENT * 2}return self.state.get(key)"]
        if shape.item and ref.kind == "int" and "count" in attr.py_name:
            return [head, f"{INDENT * 2}return len(self.state.get(key))"]
        if shape.item and shape.accumulate and ref.is_numeric:
            return [head, f"{INDENT * 2}return sum(item.{shape.accumulate} for item in self.state.get(key))"]
        return [head, f'{INDENT * 2}raise NotImplementedError("{spec.class_name}.{attr.py_name}")']

    def _action(
        self,
        builder: ModuleBuilder,
        spec: ClassSpec,
        shape: StoreShape,
        item: str | None,
        method: MethodSpec,
        field: str | None,
        state_type: str,
    ) -> list[str]:
        key = method.parameters[0].py_name
        rest = method.parameters[1:]
        verb = action_verb(method)
        head = f"{INDENT}async def {method.py_name}({render_params(builder, method.parameters)}) -> {state_type}:"
        lines = [head]
        lines.extend(docstring(method.description, INDENT * 2))

        args = ", ".join([key, *(param.py_name for param in rest)])
        if verb == "refresh":
            if field is None:
                lines.append(f"{INDENT * 2}return self.state.get({key})")
            else:
                lines += [
                    f"{INDENT * 2}state = await self._commit(self._{field}.execute({args}))",
                    f"{INDENT * 2}if state is not None:",
                    f"{INDENT * 3}self.state.set({key}, state)",
                    f"{INDENT * 2}return self.state.get({key})",
                ]
            return lines

        apply = self._apply(spec, shape, item, verb, rest)
        if apply is None:
            if field is None:
                lines.append(f'{INDENT * 2}raise NotImplementedError("{spec.class_name}.{method.py_name}")')
                return lines
            apply = "lambda state: state"

        if field is None:
            lines += [
                f"{INDENT * 2}self.state.set({key}, ({apply})(self.state.get({key})))",
                f"{INDENT * 2}return self.state.get({key})",
            ]
        else:
            lines += [
                f"{INDENT * 2}return await self.state.mutate(",
                f"{INDENT * 3}{key},",
                f"{INDENT * 3}{apply},",
                f"{INDENT * 3}lambda: self._commit(self._{field}.execute({args})),",
                f"{INDENT * 2})",
            ]
        return lines

    def _apply(
        self,
        spec: ClassSpec,
        shape: StoreShape,
        item: str | None,
        verb: str,
        rest: list[Declaration],
    ) -> str | None:
        """Optimistic apply expression for an action, or None when it has none."""
        if item is None or not rest:
            return None
        if verb == "drop":
            return f'lambda items: drop_item(items, "{shape.key}", {rest[0].py_name})'
        if verb == "merge" and shape.accumulate:
            amount = rest[1].py_name if len(rest) > 1 else "1"
            return (
                f'lambda items: merge_item(items, "{shape.key}", {rest[0].py_name}, '
                f'"{shape.accumulate}", {amount}, {item})'
            )
        if verb in ("merge", "put"):
            if len(rest) == 1 and translate(rest[0].type).references == (item,):
                return f'lambda items: put_item(items, "{shape.key}", {rest[0].py_name})'
            fields = [(shape.key, rest[0].py_name)]
            fields += [(param.py_name, param.py_name) for param in rest[1:]]
            if shape.accumulate and len(rest) > 1:
                fields[1] = (shape.accumulate, rest[1].py_name)
            kwargs = ", ".join(f"{name}={value}" for name, value in fields)
            return f'lambda items: put_item(items, "{shape.key}", {item}({kwargs}))'
        return None

    def _item_buildable(self, shape: StoreShape) -> bool:
        """Whether an item can be built from its key and amount alone."""
        attributes: list[Declaration] = []
        for entity in self.context.specs_in(Layer.DOMAIN_ENTITY):
            try:
                candidate = collection_shape(entity)
            except SchemaError:
                continue
            if candidate is not None and candidate.item == shape.item:
                attributes = entity.attributes
                break
        else:
            known = self.context.spec_for(shape.item or "")
            if known is not None:
                attributes = known.attributes
        return all(
            attr.default is not None or attr.optional or translate(attr.type).optional
            for attr in attributes
            if attr.py_name not in (shape.key, shape.accumulate)
        )

    def _store_test(
        self,
        spec: ClassSpec,
        shape: StoreShape,
        links: dict[str, str],
        injected: dict[str, str],
    ) -> str:
        name = spec.class_name
        factory = f"make_{to_snake(name)}"
        lines = [
            f'"""Tests for {name}."""',
            "",
            "from unittest.mock import AsyncMock, Mock",
            "",
            "import pytest",
            "",
            f"from {self._module(spec)} import {name}",
            "",
            "",
            "def fake_use_case(result=None):",
            "    use_case = Mock()",
            "    use_case.execute = AsyncMock(return_value=result)",
            "    return use_case",
            "",
            "",
            f"def {factory}(**use_cases):",
            "    defaults = {",
        ]
        lines += [f'        "{field}": fake_use_case(),' for field in injected.values()]
        lines += [
            "    }",
            "    defaults.update(use_cases)",
            f"    return {name}(**defaults)",
            "",
            "",
            f"def test_{to_snake(name)}_starts_empty():",
            f"    store = {factory}()",
            f'    assert store.get("user-1") == {"[]" if shape.item else "None"}',
            '    assert not store.is_pending("user-1")',
        ]

        merge = next(
            (
                method
                for method in spec.methods
                if action_verb(method) == "merge"
                and (links.get(method.method_name) or links.get(method.py_name))
                and len(method.parameters) >= 2
            ),
            None,
        )
        if (
            merge is not None
            and shape.item
            and shape.accumulate
            and translate(merge.parameters[0].type).kind == "str"
            and self._item_buildable(shape)
        ):
            field = injected[links.get(merge.method_name) or links.get(merge.py_name)]
            item_key = merge.parameters[1]
            key_value = '"p1"' if translate(item_key.type).kind in ("str", None) else "1"
            args = ['"user-1"', key_value] + (["2"] if len(merge.parameters) > 2 else [])
            extra = ", ".join(f"{param.py_name}=None" for param in merge.parameters[3:] if param.default is None)
            call = ", ".join(args + ([extra] if extra else []))
            lines += [
                "",
                "",
                "@pytest.mark.asyncio",
                f"async def test_{merge.py_name}_keeps_optimistic_state_on_success():",
                f"    store = {factory}()",
                f"    state = await store.{merge.py_name}({call})",
                f'    assert [item.{shape.key} for item in state] == [{key_value}]',
                f"    store._{field}.execute.assert_awaited_once()",
                "",
                "",
                "@pytest.mark.asyncio",
                f"async def test_{merge.py_name}_rolls_back_on_failure():",
                "    failing = Mock()",
                '    failing.execute = AsyncMock(side_effect=RuntimeError("offline"))',
                f"    store = {factory}({field}=failing)",
                '    with pytest.raises(RuntimeError, match="offline"):',
                f"        await store.{merge.py_name}({call})",
                '    assert store.get("user-1") == []',
            ]
        return "\n".join(lines) + "\n"
