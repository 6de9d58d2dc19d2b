"""
Presentation layer generator.

Generates:
- Pydantic request/response schemas, grouped per base name
- Dependency providers resolving use cases from the container
- FastAPI routers, one endpoint per declared method
- Hooks binding one store to one key
- Framework-free components built on a hook
"""

from __future__ import annotations

from collections.abc import Callable

from layergen.core.errors import SchemaError
from layergen.core.naming import is_interface_name, layer_base
from layergen.core.spec import ClassSpec, Declaration, Layer, LayerPrefix, MethodSpec
from layergen.core.strings import split_words, to_kebab, to_pascal, to_snake

from . import layout
from .builder import PLACEHOLDER_MARKER, ModuleBuilder, PlaceholderKind
from .domain import collection_shape
from .generator import GeneratorResult, LayerGenerator
from .infrastructure import HTTP_VERBS, first_word
from .render import INDENT, call_args, dataclass_fields, docstring, render_params, sample_imports, sample_value
from .types import python_default, translate

HOOK_TOKENS = ("Hook",)
JSON_KINDS = frozenset({"str", "int", "float", "bool", "list", "dict"})
QUERY_KINDS = frozenset({"str", "int", "float", "bool", "Decimal", "datetime", "date", "time", "UUID"})
CREATE_VERBS = frozenset({"create", "add", "register", "submit"})


def hook_function_name(class_name: str) -> str:
    """``useCart`` / ``CartHook`` -> ``use_cart``."""
    snake = to_snake(class_name)
    if snake.endswith("_hook"):
        snake = snake[: -len("_hook")]
    return snake if snake.startswith("use_") else f"use_{snake}"


def hook_class_name(class_name: str) -> str:
    return to_pascal(class_name)


def hook_base(class_name: str) -> str:
    """Subject of a hook: ``useCart`` -> ``Cart``."""
    words = split_words(class_name)
    if words and words[0].lower() == "use" and len(words) > 1:
        words = words[1:]
    if len(words) > 1 and words[-1] in HOOK_TOKENS:
        words = words[:-1]
    return "".join(word[:1].upper() + word[1:] for word in words)


def provider_name(target: str) -> str:
    """Provider function for a type: ``AddToCartUseCase`` -> ``get_add_to_cart_use_case``."""
    name = target[1:] if is_interface_name(target) else target
    return f"get_{to_snake(name)}"


class PresentationGenerator(LayerGenerator):
    """Generator for the presentation layer."""

    prefix = LayerPrefix.PRESENTATION

    def handlers(self) -> dict[Layer, Callable[[ClassSpec], GeneratorResult]]:
        return {
            Layer.PRESENTATION_SCHEMA: self.generate_schema,
            Layer.PRESENTATION_DEPENDENCY: self.generate_dependency,
            Layer.PRESENTATION_ROUTER: self.generate_router,
            Layer.PRESENTATION_HOOK: self.generate_hook,
            Layer.PRESENTATION_COMPONENT: self.generate_component,
        }

    def _finish(self, spec: ClassSpec, builder: ModuleBuilder, blocks: list[str], test: str) -> GeneratorResult:
        result = self._result(spec, builder.render(blocks), test)
        for warning in builder.warnings:
            result.add_warning(warning)
        return result

    # =========================================================================
    # Schemas
    # =========================================================================

    def generate_schema(self, spec: ClassSpec) -> GeneratorResult:
        """Render every schema sharing ``spec``'s base into one module."""
        group = self.context.group(spec)
        stem = layout.module_stem(spec)
        builder = ModuleBuilder(self.context, spec, f"Schemas for {stem.replace('_', ' ')}.")
        builder.define(*(member.class_name for member in group))
        builder.import_from("pydantic", "BaseModel", "ConfigDict")

        blocks = []
        for member in self._dependency_order(group):
            fields = []
            arbitrary = False
            for attr in member.attributes:
                ref = builder.type(attr.type, PlaceholderKind.SCHEMA)
                arbitrary = arbitrary or any(self._is_arbitrary(name) for name in ref.references)
                default = python_default(attr.default, ref)
                if default in ("[]", "{}"):
                    builder.import_from("pydantic", "Field")
                    factory = "list" if default == "[]" else "dict"
                    fields.append(f"{INDENT}{attr.py_name}: {ref.annotation} = Field(default_factory={factory})")
                elif default is not None:
                    fields.append(f"{INDENT}{attr.py_name}: {ref.annotation} = {default}")
                else:
                    fields.append(f"{INDENT}{attr.py_name}: {ref.annotation}")

            config = "from_attributes=True, arbitrary_types_allowed=True" if arbitrary else "from_attributes=True"
            lines = [f"class {member.class_name}(BaseModel):"]
            lines.extend(docstring(member.description))
            if lines[-1].startswith(INDENT):
                lines.append("")
            lines.append(f"{INDENT}model_config = ConfigDict({config})")
            if fields:
                lines += ["", *fields]
            blocks.append("\n".join(lines))

        return self._finish(spec, builder, blocks, self._schema_test(spec, group))

    def _is_arbitrary(self, name: str) -> bool:
        """Whether a referenced type is neither a schema nor a dataclass pydantic can validate."""
        known = self.context.spec_for(name)
        if known is None or known.layer == Layer.PRESENTATION_SCHEMA:
            return False
        if known.layer == Layer.DOMAIN_ENTITY:
            try:
                return collection_shape(known) is not None
            except SchemaError:
                return True
        return True

    @staticmethod
    def _dependency_order(group: list[ClassSpec]) -> list[ClassSpec]:
        """Order group members so referenced schemas come first."""
        names = {member.class_name for member in group}
        ordered: list[ClassSpec] = []
        done: set[str] = set()

        def visit(member: ClassSpec, trail: frozenset[str]) -> None:
            if member.class_name in done or member.class_name in trail:
                return
            for attr in member.attributes:
                for ref in translate(attr.type).references:
                    if ref in names:
                        visit(next(m for m in group if m.class_name == ref), trail | {member.class_name})
            done.add(member.class_name)
            ordered.append(member)

        for member in group:
            visit(member, frozenset())
        return ordered

    def _schema_test(self, spec: ClassSpec, group: list[ClassSpec]) -> str:
        module = self._module(spec)
        names = ", ".join(member.class_name for member in group)
        lines = ['"""Tests for the schemas in this module."""', ""]
        refs = [translate(attr.type) for member in group for attr in member.attributes]
        imports = sample_imports(refs)
        if imports:
            lines += [*imports, ""]
        lines += ["import pytest", "from pydantic import ValidationError", "", f"from {module} import {names}"]
        tested = False
        for member in group:
            snake = to_snake(member.class_name)
            simple = all(translate(attr.type).kind is not None for attr in member.attributes)
            if not simple:
                continue
            tested = True
            values = ", ".join(
                f"{attr.py_name}={sample_value(member, attr, translate(attr.type))}" for attr in member.attributes
            )
            lines += [
                "",
                "",
                f"def test_{snake}_accepts_valid_data():",
                f"    model = {member.class_name}({values})",
                f"    assert {member.class_name}.model_validate(model.model_dump()) == model",
            ]
            required = next(
                (
                    attr
                    for attr in member.attributes
                    if python_default(attr.default, translate(attr.type)) is None
                ),
                None,
            )
            if required is not None:
                lines += [
                    "",
                    "",
                    f"def test_{snake}_requires_{required.py_name}():",
                    "    with pytest.raises(ValidationError):",
                    f"        {member.class_name}()",
                ]
        if not tested:
            lines += ["", "", "def test_schemas_import():", f"    assert {group[0].class_name}.model_fields is not None"]
        return "\n".join(lines) + "\n"

    # =========================================================================
    # Dependencies
    # =========================================================================

    def providers(self, spec: ClassSpec) -> list[tuple[str, str]]:
        """
        ``(function name, return type)`` for every provider of a dependency
        spec: declared methods first, then typed attributes.
        """
        entries: list[tuple[str, str]] = []
        for method in spec.methods:
            entries.append((method.py_name, translate(method.return_type).annotation))
        for attr in spec.attributes:
            entries.append((f"get_{attr.py_name}", translate(attr.type).annotation))
        return entries

    def generate_dependency(self, spec: ClassSpec) -> GeneratorResult:
        builder = ModuleBuilder(self.context, spec, f"{spec.class_name}: providers resolved from the container.")
        builder.import_from(f"{self.package}.container", "get_container")
        entries = self.providers(spec)

        blocks = []
        for function, target in entries:
            known = self.context.spec_for(target)
            if known is not None and known.prefix == LayerPrefix.INFRASTRUCTURE:
                raise SchemaError(
                    f"{spec.class_name}.{function}: providers return application ports, "
                    f"not infrastructure class {target}"
                )
            if target in ("None", "Any") or not target.isidentifier():
                raise SchemaError(f"{spec.class_name}.{function}: provider needs a single class return type")
            kind = PlaceholderKind.PORT if is_interface_name(target) else PlaceholderKind.USE_CASE
            builder.require(target, kind)
            method = spec.method(function)
            lines = [f"def {function}() -> {target}:"]
            lines.extend(docstring(method.description if method else None))
            lines.append(f"{INDENT}return get_container().resolve({target})")
            blocks.append("\n".join(lines))

        if not blocks:
            raise SchemaError(f"{spec.class_name}: a dependency module declares at least one provider")
        return self._finish(spec, builder, blocks, self._dependency_test(spec, entries))

    def _dependency_test(self, spec: ClassSpec, entries: list[tuple[str, str]]) -> str:
        names = sorted({*(target for _, target in entries), *(function for function, _ in entries)})
        lines = [
            f'"""Tests for {spec.class_name} providers."""',
            "",
            "import pytest",
            "",
            f"from {self.package}.container import ProviderError, init_container, reset_container",
            f"from {self._module(spec)} import {', '.join(names)}",
            "",
            "",
            "@pytest.fixture",
            "def container():",
            "    container = init_container()",
            "    yield container",
            "    reset_container()",
        ]
        for function, target in entries:
            lines += [
                "",
                "",
                f"def test_{function}_resolves_from_container(container):",
                "    instance = object()",
                f"    container.register({target}, instance)",
                f"    assert {function}() is instance",
                "",
                "",
                f"def test_{function}_fails_without_provider(container):",
                "    with pytest.raises(ProviderError):",
                f"        {function}()",
            ]
        return "\n".join(lines) + "\n"

    # =========================================================================
    # Routers
    # =========================================================================

    def _find_provider(self, target: str) -> tuple[str, str] | None:
        """Module and function of a dependency provider returning ``target``."""
        for dep in self.context.specs_in(Layer.PRESENTATION_DEPENDENCY):
            for function, returns in self.providers(dep):
                if returns == target:
                    return layout.module_path(self.package, dep), function
        return None

    def _use_case_for(self, spec: ClassSpec, method: MethodSpec) -> str:
        links: dict[str, str] = spec.metadata.get("use_cases") or {}
        linked = links.get(method.method_name) or links.get(method.py_name)
        if linked:
            return linked
        pascal = to_pascal(method.method_name)
        for candidate in (f"{pascal}UseCase", pascal):
            known = self.context.spec_for(candidate)
            if known is not None and known.layer == Layer.APPLICATION_USE_CASE:
                return candidate
        return f"{pascal}UseCase"

    def _schema(self, builder: ModuleBuilder, name: str) -> str:
        known = self.context.spec_for(name)
        if known is not None and known.layer != Layer.PRESENTATION_SCHEMA:
            builder.warnings.append(f"{builder.spec.class_name}: {name} is not a schema")
        return builder.require(name, PlaceholderKind.SCHEMA)

    def _query_mode(self, http: str, method: MethodSpec) -> bool:
        """GET/DELETE endpoints with scalar parameters take them from the query string."""
        return http in ("GET", "DELETE") and all(
            translate(param.type).kind in QUERY_KINDS for param in method.parameters
        )

    def generate_router(self, spec: ClassSpec) -> GeneratorResult:
        base = layer_base(spec.class_name, *layout.ROUTER_TOKENS)
        prefix = spec.metadata.get("prefix") or f"/{base.plural_snake_base}"
        paths: dict[str, str] = spec.metadata.get("paths") or {}

        builder = ModuleBuilder(self.context, spec, f"{spec.class_name}: HTTP endpoints for {base.plural_snake_base}.")
        builder.import_from("fastapi", "APIRouter", "Depends")
        builder.import_from("typing", "Annotated")

        head = [f'router = APIRouter(prefix="{prefix}", tags=["{base.plural_snake_base}"])']
        local_providers: list[str] = []
        local_names: set[str] = set()
        endpoints: list[str] = []
        plan: list[dict] = []

        for method in spec.methods:
            use_case = builder.require(self._use_case_for(spec, method), PlaceholderKind.USE_CASE)
            provider = self._find_provider(use_case)
            if provider is not None and not builder.is_placeholder(use_case):
                module, function = provider
                builder.import_from(module, function)
            else:
                function = provider_name(use_case)
                if function not in local_names:
                    local_names.add(function)
                    builder.import_from(f"{self.package}.container", "get_container")
                    local_providers.append(
                        "\n".join(
                            [
                                f"def {function}() -> {use_case}:  {PLACEHOLDER_MARKER}",
                                f'{INDENT}"""Auto-generated provider; safe to remove once a dependency module provides {use_case}."""',
                                f"{INDENT}return get_container().resolve({use_case})",
                            ]
                        )
                    )

            http = HTTP_VERBS.get(first_word(method.method_name), "POST")
            path = paths.get(method.method_name) or paths.get(method.py_name) or f"/{to_kebab(method.method_name)}"
            pascal = to_pascal(method.method_name)
            request = self._schema(builder, f"{pascal}Request") if method.parameters else None
            ret = translate(method.return_type)
            response = None if ret.is_void else self._schema(builder, f"{pascal}Response")
            query = request is not None and self._query_mode(http, method)

            decorator_args = [f'"{path}"']
            if response:
                decorator_args.append(f"response_model={response}")
            if ret.is_void:
                decorator_args.append("status_code=204")
            elif http == "POST" and first_word(method.method_name) in CREATE_VERBS:
                decorator_args.append("status_code=201")

            params = ["*", f"use_case: Annotated[{use_case}, Depends({function})]"]
            if query:
                params.append(render_params(builder, method.parameters, leading=None).replace("*, ", ""))
            elif request:
                params.append(f"request: {request}")

            lines = [f"@router.{http.lower()}({', '.join(decorator_args)})"]
            lines.append(f"async def {method.py_name}({', '.join(params)}) -> {response or 'None'}:")
            lines.extend(docstring(method.description))
            if query:
                lines.append(f"{INDENT}request = {request}({call_args(method.parameters)})")
            call = "use_case.execute(**request.model_dump())" if request else "use_case.execute()"
            if response:
                lines += [
                    f"{INDENT}result = await {call}",
                    f"{INDENT}return {response}.model_validate(result, from_attributes=True)",
                ]
            else:
                lines.append(f"{INDENT}await {call}")
            endpoints.append("\n".join(lines))
            plan.append(
                {
                    "method": method,
                    "http": http,
                    "path": prefix + path,
                    "provider": function,
                    "request": request,
                    "query": query,
                    "status": 204 if ret.is_void else (201 if "status_code=201" in decorator_args else 200),
                }
            )

        blocks = ["\n".join(head), *local_providers, *endpoints]
        test = self._router_test(spec, prefix, plan)
        return self._finish(spec, builder, blocks, test)

    def _sample_fields(self, owner: ClassSpec, decls: list[Declaration]) -> dict[str, str] | None:
        """Sample values for the required JSON-compatible fields, or None when one is not."""
        fields = {}
        for decl in decls:
            ref = translate(decl.type)
            if python_default(decl.default, ref) is not None:
                continue
            if ref.kind not in JSON_KINDS:
                return None
            fields[decl.py_name] = sample_value(owner, decl, ref)
        return fields

    def _request_sample(self, spec: ClassSpec, entry: dict) -> tuple[str, dict[str, str]] | None:
        """Request path and payload fields for one endpoint, or None when they cannot be built."""
        method: MethodSpec = entry["method"]
        path = entry["path"]
        if entry["request"] is None:
            return (None if "{" in path else path), {}

        schema = self.context.spec_for(entry["request"])
        if entry["query"] or schema is None:
            fields = self._sample_fields(spec, method.parameters)
        else:
            fields = self._sample_fields(schema, schema.attributes)
        if fields is None:
            return None

        for name in list(fields):
            token = "{" + name + "}"
            if token in path and entry["query"]:
                path = path.replace(token, fields.pop(name).strip("'\""))
        if "{" in path:
            return None
        return path, fields

    def _router_test(self, spec: ClassSpec, prefix: str, plan: list[dict]) -> str:
        module = self._module(spec)
        providers = sorted({entry["provider"] for entry in plan})
        lines = [
            f'"""Tests for {spec.class_name}."""',
            "",
            "from unittest.mock import AsyncMock, Mock",
            "",
            "from fastapi import FastAPI",
            "from fastapi.testclient import TestClient",
            "",
            f"from {self.package}.domain.errors import NotFoundError",
            f"from {self.package}.presentation.errors import register_exception_handlers",
            f"from {module} import {', '.join([*providers, 'router'])}",
            "",
            "",
            "def make_client(provider, use_case):",
            "    api = FastAPI()",
            "    register_exception_handlers(api)",
            "    api.include_router(router)",
            "    api.dependency_overrides[provider] = lambda: use_case",
            "    return TestClient(api)",
            "",
            "",
            "def test_routes_use_the_router_prefix():",
            f'    assert all(route.path.startswith("{prefix}") for route in router.routes)',
        ]

        for entry in plan:
            sample = self._request_sample(spec, entry)
            if sample is None:
                continue
            method: MethodSpec = entry["method"]
            path, fields = sample
            payload = "{" + ", ".join(f'"{name}": {value}' for name, value in fields.items()) + "}"
            http = entry["http"]
            if entry["request"] is None or (entry["query"] and not fields):
                send = f'client.request("{http}", "{path}")'
            elif entry["query"]:
                send = f'client.request("{http}", "{path}", params={payload})'
            else:
                send = f'client.request("{http}", "{path}", json={payload})'
            lines += [
                "",
                "",
                f"def test_{method.py_name}_maps_missing_records_to_404():",
                "    use_case = Mock()",
                '    use_case.execute = AsyncMock(side_effect=NotFoundError("record", "missing"))',
                f"    client = make_client({entry['provider']}, use_case)",
                f"    response = {send}",
                "    assert response.status_code == 404",
                "    use_case.execute.assert_awaited_once()",
            ]
            if entry["status"] == 204:
                lines += [
                    "",
                    "",
                    f"def test_{method.py_name}_returns_no_content():",
                    "    use_case = Mock()",
                    "    use_case.execute = AsyncMock(return_value=None)",
                    f"    client = make_client({entry['provider']}, use_case)",
                    f"    assert {send}.status_code == 204",
                ]
        if not any(line == "    use_case = Mock()" for line in lines):
            lines = [line for line in lines if line != "from unittest.mock import AsyncMock, Mock"]
            lines = [line for line in lines if not line.endswith("import NotFoundError")]
        return "\n".join(lines) + "\n"

    # =========================================================================
    # Hooks
    # =========================================================================

    def hook_store(self, spec: ClassSpec) -> str:
        return spec.metadata.get("store") or f"{hook_base(spec.class_name)}Store"

    def hook_actions(self, spec: ClassSpec) -> list[tuple[MethodSpec, str | None]]:
        """
        ``(hook method, store action)`` pairs: declared hook methods first,
        otherwise every action of the bound store. Hook methods drop the
        store's leading key parameter.
        """
        store = self.context.spec_for(self.hook_store(spec))
        store_methods = {m.py_name: m for m in store.methods} if store is not None else {}
        links: dict[str, str] = spec.metadata.get("actions") or {}

        if spec.methods:
            pairs = []
            for method in spec.methods:
                target = links.get(method.method_name) or links.get(method.py_name) or method.py_name
                target = to_snake(target)
                if store is not None and target not in store_methods:
                    pairs.append((method, None))
                else:
                    pairs.append((method, target))
            return pairs

        return [
            (
                MethodSpec(
                    method_name=method.method_name,
                    description=method.description,
                    parameters=method.parameters[1:],
                    return_type=method.return_type,
                ),
                method.py_name,
            )
            for method in store_methods.values()
        ]

    def generate_hook(self, spec: ClassSpec) -> GeneratorResult:
        builder = ModuleBuilder(self.context, spec, f"{spec.class_name}: binds one store to one key.")
        builder.import_from("dataclasses", "dataclass")
        builder.import_from("typing", "Any")

        store_name = builder.require(self.hook_store(spec))
        store_spec = self.context.spec_for(store_name)
        cls = hook_class_name(spec.class_name)
        function = hook_function_name(spec.class_name)
        builder.define(cls)

        key_ref = builder.type("string")
        if store_spec is not None and store_spec.methods and store_spec.methods[0].parameters:
            key_ref = builder.type(store_spec.methods[0].parameters[0].type)

        lines = ["@dataclass", f"class {cls}:"]
        lines.extend(docstring(spec.description or f"View binding of {store_name} to one key"))
        lines += [
            "",
            f"{INDENT}store: {store_name}",
            f"{INDENT}key: {key_ref.annotation}",
            "",
            f"{INDENT}@property",
            f"{INDENT}def state(self) -> Any:",
            f"{INDENT * 2}return self.store.get(self.key)",
            "",
            f"{INDENT}@property",
            f"{INDENT}def pending(self) -> bool:",
            f"{INDENT * 2}return self.store.is_pending(self.key)",
        ]
        if store_spec is not None:
            for attr in store_spec.attributes:
                lines += [
                    "",
                    f"{INDENT}@property",
                    f"{INDENT}def {attr.py_name}(self) -> Any:",
                    f"{INDENT * 2}return self.store.{attr.py_name}(self.key)",
                ]

        actions = self.hook_actions(spec)
        for method, target in actions:
            lines.append("")
            lines.append(f"{INDENT}async def {method.py_name}({render_params(builder, method.parameters)}) -> Any:")
            lines.extend(docstring(method.description, INDENT * 2))
            if target is None:
                lines.append(f'{INDENT * 2}raise NotImplementedError("{cls}.{method.py_name}")')
            else:
                args = ", ".join(["self.key", *(param.py_name for param in method.parameters)])
                lines.append(f"{INDENT * 2}return await self.store.{target}({args})")

        factory = [
            f"def {function}(store: {store_name}, key: {key_ref.annotation}) -> {cls}:",
            f'{INDENT}"""Bind ``store`` to ``key``."""',
            f"{INDENT}return {cls}(store=store, key=key)",
        ]
        test = self._hook_test(spec, cls, function, key_ref.kind, actions)
        return self._finish(spec, builder, ["\n".join(lines), "\n".join(factory)], test)

    def _hook_test(
        self,
        spec: ClassSpec,
        cls: str,
        function: str,
        key_kind: str | None,
        actions: list[tuple[MethodSpec, str | None]],
    ) -> str:
        key = '"user-1"' if key_kind in ("str", None) else "1"
        lines = [
            f'"""Tests for {cls}."""',
            "",
            "from unittest.mock import AsyncMock, Mock",
            "",
            "import pytest",
            "",
            f"from {self._module(spec)} import {function}",
            "",
            "",
            "@pytest.fixture",
            "def store():",
            "    store = Mock()",
            '    store.get.return_value = ["state"]',
            "    store.is_pending.return_value = False",
            "    return store",
            "",
            "",
            "def test_state_reads_the_bound_key(store):",
            f"    hook = {function}(store, {key})",
            '    assert hook.state == ["state"]',
            f"    store.get.assert_called_once_with({key})",
            "    assert hook.pending is False",
        ]
        forward = next(
            (
                (method, target)
                for method, target in actions
                if target is not None
                and all(translate(param.type).kind in JSON_KINDS for param in method.parameters)
            ),
            None,
        )
        if forward is not None:
            method, target = forward
            args = [sample_value(spec, param, translate(param.type)) for param in method.parameters]
            call = ", ".join(f"{param.py_name}={value}" for param, value in zip(method.parameters, args, strict=True))
            lines += [
                "",
                "",
                "@pytest.mark.asyncio",
                f"async def test_{method.py_name}_forwards_with_the_key(store):",
                f'    store.{target} = AsyncMock(return_value="done")',
                f"    hook = {function}(store, {key})",
                f'    assert await hook.{method.py_name}({call}) == "done"',
                f"    store.{target}.assert_awaited_once_with({', '.join([key, *args])})",
            ]
        return "\n".join(lines) + "\n"

    # =========================================================================
    # Components
    # =========================================================================

    def generate_component(self, spec: ClassSpec) -> GeneratorResult:
        builder = ModuleBuilder(self.context, spec, f"{spec.class_name} view model.")
        builder.import_from("dataclasses", "dataclass")
        builder.import_from("typing", "Any")

        hook_name = spec.metadata.get("hook")
        hook_spec = self.context.spec_for(hook_name) if hook_name else None
        hook_cls = None
        if hook_name:
            hook_cls = hook_class_name(hook_name)
            if hook_spec is not None and hook_spec.layer == Layer.PRESENTATION_HOOK:
                builder.import_from(layout.module_path(self.package, hook_spec), hook_cls)
            else:
                builder.require(hook_cls, PlaceholderKind.PORT)

        hook_params: dict[str, list[Declaration]] = {}
        if hook_spec is not None and hook_spec.layer == Layer.PRESENTATION_HOOK:
            hook_params = {method.py_name: list(method.parameters) for method, _ in self.hook_actions(hook_spec)}

        field_lines, kw_only = dataclass_fields(builder, spec, spec.attributes)
        fields = ([f"hook: {hook_cls}"] if hook_cls else []) + field_lines
        lines = ["@dataclass(kw_only=True)" if kw_only else "@dataclass", f"class {spec.class_name}:"]
        lines.extend(docstring(spec.description or f"Props and handlers for {spec.class_name}"))
        lines.append("")
        lines.extend(f"{INDENT}{field}" for field in fields or ["pass"])

        props = [f'"{attr.py_name}": self.{attr.py_name}' for attr in spec.attributes]
        if hook_cls:
            props += ['"state": self.hook.state', '"pending": self.hook.pending']
        lines += [
            "",
            f"{INDENT}def props(self) -> dict[str, Any]:",
            f"{INDENT * 2}return {{{', '.join(props)}}}",
        ]

        handlers: dict[str, str] = spec.metadata.get("handlers") or {}
        methods = list(spec.methods) or [
            MethodSpec(method_name=name) for name in handlers
        ]
        own = set(spec.attribute_names())
        plan = []
        for method in methods:
            target = handlers.get(method.method_name) or handlers.get(method.py_name)
            target = to_snake(target) if target else None
            lines.append("")
            lines.append(f"{INDENT}async def {method.py_name}({render_params(builder, method.parameters)}) -> Any:")
            lines.extend(docstring(method.description, INDENT * 2))
            if not hook_cls or target is None:
                lines.append(f'{INDENT * 2}raise NotImplementedError("{spec.class_name}.{method.py_name}")')
                continue
            declared = {param.py_name for param in method.parameters}
            if target in hook_params:
                args = []
                for param in hook_params[target]:
                    if param.py_name in declared:
                        args.append((param.py_name, param.py_name))
                    elif param.py_name in own:
                        args.append((param.py_name, f"self.{param.py_name}"))
                    elif python_default(param.default, translate(param.type)) is None:
                        raise SchemaError(
                            f"{spec.class_name}.{method.method_name}: no value for {target} parameter '{param.py_name}'"
                        )
            else:
                args = [(param.py_name, param.py_name) for param in method.parameters]
            forwarded = ", ".join(f"{key}={value}" for key, value in args)
            lines.append(f"{INDENT * 2}return await self.hook.{target}({forwarded})")
            plan.append((method, target, args))

        test = self._component_test(spec, hook_cls, plan)
        return self._finish(spec, builder, ["\n".join(lines)], test)

    def _component_test(self, spec: ClassSpec, hook_cls: str | None, plan: list[tuple]) -> str:
        name = spec.class_name
        simple = all(translate(attr.type).kind in JSON_KINDS for attr in spec.attributes)
        values = {attr.py_name: sample_value(spec, attr, translate(attr.type)) for attr in spec.attributes}
        kwargs = ", ".join([*(["hook=hook"] if hook_cls else []), *(f"{key}={value}" for key, value in values.items())])
        lines = [
            f'"""Tests for {name}."""',
            "",
            "from unittest.mock import AsyncMock, Mock",
            "",
            "import pytest",
            "",
            f"from {self._module(spec)} import {name}",
        ]
        if not simple:
            lines += ["", "", f"def test_{to_snake(name)}_imports():", f"    assert {name}.props"]
            return "\n".join(lines) + "\n"

        lines += [
            "",
            "",
            "@pytest.fixture",
            "def hook():",
            "    hook = Mock()",
            '    hook.state = ["state"]',
            "    hook.pending = False",
            "    return hook",
            "",
            "",
            "def test_props(hook):",
            f"    component = {name}({kwargs})",
            "    props = component.props()",
        ]
        lines += [f'    assert props["{key}"] == {value}' for key, value in values.items()]
        if hook_cls:
            lines.append('    assert props["pending"] is False')

        for method, target, args in plan:
            if not all(translate(param.type).kind in JSON_KINDS for param in method.parameters):
                continue
            arg_values = {param.py_name: sample_value(spec, param, translate(param.type)) for param in method.parameters}
            call = ", ".join(f"{key}={value}" for key, value in arg_values.items())
            expected = ", ".join(
                f"{key}={values[arg[5:]] if arg.startswith('self.') else arg_values[arg]}" for key, arg in args
            )
            lines += [
                "",
                "",
                "@pytest.mark.asyncio",
                f"async def test_{method.py_name}_forwards_to_hook(hook):",
                f"    hook.{target} = AsyncMock(return_value=None)",
                f"    component = {name}({kwargs})",
                f"    await component.{method.py_name}({call})",
                f"    hook.{target}.assert_awaited_once_with({expected})",
            ]
        return "\n".join(lines) + "\n"
