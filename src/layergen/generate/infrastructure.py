"""
Infrastructure layer generator.

Generates:
- SQLAlchemy storage models
- Repositories implementing application ports over SQLAlchemy or an
  in-process dict
- HTTP adapters over httpx with retries and error mapping
"""

from __future__ import annotations

from collections.abc import Callable

from layergen.core.errors import SchemaError
from layergen.core.naming import interface_name_for, layer_base
from layergen.core.spec import ClassSpec, Declaration, Layer, LayerPrefix, MethodSpec
from layergen.core.strings import pluralize, split_words, to_kebab, to_snake

from .builder import ModuleBuilder, PlaceholderKind
from .domain import collection_shape
from .generator import GeneratorResult, LayerGenerator
from .render import INDENT, INSTANCE_CHECKS, docstring, render_params, sample_imports, sample_value
from .types import TypeRef, python_default, translate

# Column types per primitive kind
COLUMN_TYPES: dict[str, str] = {
    "int": "Integer",
    "str": "String",
    "float": "Float",
    "bool": "Boolean",
    "datetime": "DateTime",
    "date": "Date",
    "time": "Time",
    "list": "JSON",
    "dict": "JSON",
    "bytes": "LargeBinary",
    "Decimal": "Numeric",
    "UUID": "Uuid",
}

MODEL_TOKENS = ("Model", "Record", "Row", "Table")
REPOSITORY_TOKENS = ("RepositoryImpl", "RepoHttp", "RepoSql", "RepoMemory", "Repo", "Impl")

SESSION_TYPES = frozenset({"AsyncSession", "Session"})

# Repository method verbs
READ_VERBS = frozenset({"get", "find", "load", "fetch", "read"})
LIST_VERBS = frozenset({"list", "all", "search"})
WRITE_VERBS = frozenset({"save", "create", "add", "update", "upsert", "store", "put"})
DELETE_VERBS = frozenset({"delete", "remove"})

# HTTP method per adapter operation verb
HTTP_VERBS: dict[str, str] = {
    "get": "GET",
    "find": "GET",
    "fetch": "GET",
    "list": "GET",
    "load": "GET",
    "search": "GET",
    "read": "GET",
    "update": "PUT",
    "set": "PUT",
    "put": "PUT",
    "replace": "PUT",
    "patch": "PATCH",
    "delete": "DELETE",
    "remove": "DELETE",
    "cancel": "DELETE",
}


def first_word(name: str) -> str:
    words = split_words(name)
    return words[0].lower() if words else ""


def table_name(spec: ClassSpec) -> str:
    """Table for a model: ``OrderLineModel`` -> ``order_lines``."""
    return spec.metadata.get("table") or layer_base(spec.class_name, *MODEL_TOKENS).plural_snake_base


class InfrastructureGenerator(LayerGenerator):
    """Generator for the infrastructure layer."""

    prefix = LayerPrefix.INFRASTRUCTURE

    def handlers(self) -> dict[Layer, Callable[[ClassSpec], GeneratorResult]]:
        return {
            Layer.INFRASTRUCTURE_MODEL: self.generate_model,
            Layer.INFRASTRUCTURE_REPOSITORY: self.generate_repository,
            Layer.INFRASTRUCTURE_ADAPTER: self.generate_adapter,
        }

    def _finish(self, spec: ClassSpec, builder: ModuleBuilder, blocks: list[str], test: str) -> GeneratorResult:
        result = self._result(spec, builder.render(blocks), test)
        for warning in builder.warnings:
            result.add_warning(warning)
        return result

    # =========================================================================
    # Models
    # =========================================================================

    def generate_model(self, spec: ClassSpec) -> GeneratorResult:
        if not spec.attributes:
            raise SchemaError(f"{spec.class_name}: a storage model needs at least one attribute")

        builder = ModuleBuilder(self.context, spec, f"{spec.class_name} storage model.")
        builder.import_from(f"{self.package}.infrastructure.models.base", "Base")
        table = table_name(spec)
        own = to_snake(layer_base(spec.class_name, *MODEL_TOKENS).base)

        primary = self._primary_key(spec)
        sqla: set[str] = {"Column"}
        lines = [f"class {spec.class_name}(Base):"]
        lines.extend(docstring(spec.description))
        lines += [f'{INDENT}__tablename__ = "{table}"', ""]

        for attr in spec.attributes:
            ref = translate(attr.type)
            column_type = COLUMN_TYPES.get(ref.kind or "", "JSON")
            if ref.kind not in COLUMN_TYPES:
                builder.warnings.append(
                    f"{spec.class_name}.{attr.py_name}: {attr.type} has no column type; stored as JSON"
                )
            sqla.add(column_type)
            args = [column_type]

            name = attr.py_name
            if name.endswith("_id") and name != "id" and name[:-3] != own:
                target = pluralize(name[:-3])
                ondelete = "SET NULL" if ref.optional else "RESTRICT"
                args.append(f'ForeignKey("{target}.id", ondelete="{ondelete}")')
                sqla.add("ForeignKey")

            if attr is primary:
                args.append("primary_key=True")
                if ref.kind == "int":
                    args.append("autoincrement=True")
            else:
                args.append(f"nullable={ref.optional}")

            default = python_default(attr.default, ref)
            if default is not None and default != "None":
                if default in ("[]", "{}"):
                    args.append(f"default={'list' if default == '[]' else 'dict'}")
                else:
                    args.append(f"default={default}")
            lines.append(f"{INDENT}{name} = Column({', '.join(args)})")

        builder.import_from("sqlalchemy", *sorted(sqla))
        columns = [attr.py_name for attr in spec.attributes]
        test = "\n".join(
            [
                f'"""Tests for {spec.class_name}."""',
                "",
                f"from {self._module(spec)} import {spec.class_name}",
                "",
                "",
                "def test_table_layout():",
                f"    table = {spec.class_name}.__table__",
                f'    assert table.name == "{table}"',
                f"    assert [column.name for column in table.columns] == {columns!r}",
                f'    assert [column.name for column in table.primary_key.columns] == ["{primary.py_name}"]',
            ]
        )
        return self._finish(spec, builder, ["\n".join(lines)], test + "\n")

    def _primary_key(self, spec: ClassSpec) -> Declaration:
        key = spec.metadata.get("key")
        for attr in spec.attributes:
            if key and (attr.name == key or attr.py_name == to_snake(key)):
                return attr
        for attr in spec.attributes:
            if attr.py_name == "id":
                return attr
        return spec.attributes[0]

    # =========================================================================
    # Repositories
    # =========================================================================

    def generate_repository(self, spec: ClassSpec) -> GeneratorResult:
        base = layer_base(spec.class_name, *REPOSITORY_TOKENS)
        entity_name = spec.metadata.get("entity") or base.pascal_base
        interface = spec.metadata.get("interface") or interface_name_for(base)

        session = next((attr for attr in spec.attributes if translate(attr.type).annotation in SESSION_TYPES), None)
        storage = spec.metadata.get("storage") or ("sqlalchemy" if session else "memory")
        if storage not in ("sqlalchemy", "memory"):
            raise SchemaError(f"{spec.class_name}: unknown storage '{storage}' (expected sqlalchemy or memory)")
        if storage == "sqlalchemy" and session is None:
            raise SchemaError(f"{spec.class_name}: sqlalchemy storage needs a session attribute (AsyncSession)")

        builder = ModuleBuilder(self.context, spec, f"{spec.class_name}: {storage} storage for {entity_name}.")
        builder.require(interface, PlaceholderKind.PORT)
        entity = builder.require(entity_name)
        builder.import_from(f"{self.package}.domain.errors", "NotFoundError", "ValidationError")
        builder.import_from("typing", "Any")

        key_attr = to_snake(spec.metadata.get("key") or "id")
        methods = self._with_port_methods(spec.methods, [interface])

        lines = [f"class {spec.class_name}({interface}):"]
        lines.extend(docstring(spec.description or f"{interface} backed by {storage} storage"))
        lines.append("")

        params = render_params(builder, spec.attributes)
        lines.append(f"{INDENT}def __init__({params}) -> None:")
        lines.extend(f"{INDENT * 2}self._{attr.py_name} = {attr.py_name}" for attr in spec.attributes)

        if storage == "memory":
            lines.append(f"{INDENT * 2}self._records: dict[Any, Any] = {{}}")
            builder.import_module("copy")
            lines += [
                "",
                f"{INDENT}@staticmethod",
                f"{INDENT}def _to_entity(record: Any) -> {entity}:",
                f"{INDENT * 2}return copy.deepcopy(record)",
                "",
                f"{INDENT}@staticmethod",
                f"{INDENT}def _to_model(entity: {entity}, **overrides: Any) -> Any:",
                f"{INDENT * 2}record = copy.deepcopy(entity)",
                f"{INDENT * 2}for name, value in overrides.items():",
                f"{INDENT * 3}setattr(record, name, value)",
                f"{INDENT * 2}return record",
            ]
        else:
            model_name = spec.metadata.get("model") or f"{base.pascal_base}Model"
            model = builder.require(model_name)
            if builder.is_placeholder(model):
                builder.warnings.append(f"{spec.class_name}: storage model {model_name} is not known")
            if not spec.attributes:
                lines.append(f"{INDENT * 2}pass")
            lines += [
                "",
                f"{INDENT}@staticmethod",
                f"{INDENT}def _to_entity(record: {model}) -> {entity}:",
                f"{INDENT * 2}return {entity}(**{{column.key: getattr(record, column.key) for column in {model}.__table__.columns}})",
                "",
                f"{INDENT}@staticmethod",
                f"{INDENT}def _to_model(entity: {entity}, **overrides: Any) -> {model}:",
                f"{INDENT * 2}values = {{",
                f"{INDENT * 3}column.key: getattr(entity, column.key)",
                f"{INDENT * 3}for column in {model}.__table__.columns",
                f"{INDENT * 3}if hasattr(entity, column.key)",
                f"{INDENT * 2}}}",
                f"{INDENT * 2}values.update(overrides)",
                f"{INDENT * 2}return {model}(**values)",
            ]
            builder.import_from("sqlalchemy", "select")

        ops: dict[str, str] = {}
        for method in methods:
            lines.append("")
            body, op = self._repository_method(builder, spec, method, storage, session, entity, key_attr)
            lines.extend(body)
            if op:
                ops.setdefault(op, method.py_name)

        test = self._repository_test(spec, storage, session, ops, methods, entity_name)
        return self._finish(spec, builder, ["\n".join(lines)], test)

    def _with_port_methods(self, methods: list[MethodSpec], ports: list[str]) -> list[MethodSpec]:
        """Declared methods plus any abstract port operation left undeclared."""
        merged = list(methods)
        seen = {method.py_name for method in merged}
        for name in ports:
            port = self.context.spec_for(name)
            if port is None or port.layer != Layer.APPLICATION_INTERFACE:
                continue
            for method in port.methods:
                if method.py_name not in seen:
                    seen.add(method.py_name)
                    merged.append(method)
        return merged

    def _repository_method(
        self,
        builder: ModuleBuilder,
        spec: ClassSpec,
        method: MethodSpec,
        storage: str,
        session: Declaration | None,
        entity: str,
        key_attr: str,
    ) -> tuple[list[str], str | None]:
        ret = builder.type(method.return_type)
        head = f"{INDENT}async def {method.py_name}({render_params(builder, method.parameters)}) -> {ret.annotation}:"
        lines = [head]
        lines.extend(docstring(method.description, INDENT * 2))

        verb = first_word(method.method_name)
        params = method.parameters
        entity_param = next((p for p in params if entity in translate(p.type).references), None)
        key_param = next((p for p in params if p is not entity_param), None)
        records = "self._records"
        db = f"self._{session.py_name}" if session else ""

        def require_key(param: Declaration) -> list[str]:
            return [
                f'{INDENT * 2}if {param.py_name} is None or {param.py_name} == "":',
                f'{INDENT * 3}raise ValidationError("{param.py_name}", "is required")',
            ]

        if verb in LIST_VERBS or (verb in READ_VERBS and ret.kind == "list"):
            if storage == "memory":
                lines.append(f"{INDENT * 2}return [self._to_entity(record) for record in {records}.values()]")
            else:
                lines += [
                    f"{INDENT * 2}result = await {db}.execute(select({self._model_name(spec)}))",
                    f"{INDENT * 2}return [self._to_entity(record) for record in result.scalars().all()]",
                ]
            return lines, "list"

        if verb in READ_VERBS and key_param is not None:
            lines += require_key(key_param)
            if storage == "memory":
                lines.append(f"{INDENT * 2}record = {records}.get({key_param.py_name})")
            else:
                lines.append(f"{INDENT * 2}record = await {db}.get({self._model_name(spec)}, {key_param.py_name})")
            lines.append(f"{INDENT * 2}if record is None:")
            if ret.optional or ret.is_void:
                lines.append(f"{INDENT * 3}return None")
            else:
                lines.append(f'{INDENT * 3}raise NotFoundError("{entity}", {key_param.py_name})')
            lines.append(f"{INDENT * 2}return self._to_entity(record)")
            return lines, "get"

        if verb in WRITE_VERBS and entity_param is not None:
            value = entity_param.py_name
            lines += [
                f"{INDENT * 2}if {value} is None:",
                f'{INDENT * 3}raise ValidationError("{value}", "is required")',
            ]
            if key_param is not None:
                lines += require_key(key_param)
            if storage == "memory":
                if key_param is not None:
                    lines.append(f"{INDENT * 2}{records}[{key_param.py_name}] = self._to_model({value})")
                else:
                    lines += [
                        f'{INDENT * 2}key = getattr({value}, "{key_attr}", None)',
                        f"{INDENT * 2}if key is None:",
                        f'{INDENT * 3}raise ValidationError("{key_attr}", "is required")',
                        f"{INDENT * 2}{records}[key] = self._to_model({value})",
                    ]
            else:
                overrides = f", {key_attr}={key_param.py_name}" if key_param is not None else ""
                lines += [
                    f"{INDENT * 2}await {db}.merge(self._to_model({value}{overrides}))",
                    f"{INDENT * 2}await {db}.flush()",
                ]
            if not ret.is_void:
                lines.append(f"{INDENT * 2}return {value}")
            return lines, "save"

        if verb in DELETE_VERBS and key_param is not None:
            lines += require_key(key_param)
            if storage == "memory":
                lines += [
                    f"{INDENT * 2}if {key_param.py_name} not in {records}:",
                    f'{INDENT * 3}raise NotFoundError("{entity}", {key_param.py_name})',
                    f"{INDENT * 2}del {records}[{key_param.py_name}]",
                ]
            else:
                lines += [
                    f"{INDENT * 2}record = await {db}.get({self._model_name(spec)}, {key_param.py_name})",
                    f"{INDENT * 2}if record is None:",
                    f'{INDENT * 3}raise NotFoundError("{entity}", {key_param.py_name})',
                    f"{INDENT * 2}await {db}.delete(record)",
                    f"{INDENT * 2}await {db}.flush()",
                ]
            return lines, "delete"

        lines.append(f'{INDENT * 2}raise NotImplementedError("{spec.class_name}.{method.py_name}")')
        return lines, None

    def _model_name(self, spec: ClassSpec) -> str:
        base = layer_base(spec.class_name, *REPOSITORY_TOKENS)
        return spec.metadata.get("model") or f"{base.pascal_base}Model"

    def _repository_test(
        self,
        spec: ClassSpec,
        storage: str,
        session: Declaration | None,
        ops: dict[str, str],
        methods: list[MethodSpec],
        entity_name: str,
    ) -> str:
        name = spec.class_name
        by_name = {method.py_name: method for method in methods}
        args = ", ".join(
            f"{attr.py_name}=session" if attr is session else f"{attr.py_name}=None"
            for attr in spec.attributes
            if python_default(attr.default, translate(attr.type)) is None or attr is session
        )
        lines = [f'"""Tests for {name}."""', ""]
        if storage == "sqlalchemy":
            lines += ["from unittest.mock import AsyncMock", ""]
        lines += [
            "import pytest",
            "",
            f"from {self.package}.domain.errors import NotFoundError, ValidationError",
            f"from {self._module(spec)} import {name}",
            "",
            "",
            "@pytest.fixture",
            "def repository():",
        ]
        if storage == "sqlalchemy":
            lines += [
                "    session = AsyncMock()",
                "    session.get.return_value = None",
            ]
        lines.append(f"    return {name}({args})")

        get = ops.get("get")
        if get:
            method = by_name[get]
            ret = translate(method.return_type)
            lines += ["", "", "@pytest.mark.asyncio", f"async def test_{get}_missing(repository):"]
            if ret.optional or ret.is_void:
                lines.append(f'    assert await repository.{get}("missing") is None')
            else:
                lines += [
                    "    with pytest.raises(NotFoundError):",
                    f'        await repository.{get}("missing")',
                ]
            lines += [
                "",
                "",
                "@pytest.mark.asyncio",
                f"async def test_{get}_requires_a_key(repository):",
                "    with pytest.raises(ValidationError):",
                f'        await repository.{get}("")',
            ]

        delete = ops.get("delete")
        if delete:
            lines += [
                "",
                "",
                "@pytest.mark.asyncio",
                f"async def test_{delete}_missing(repository):",
                "    with pytest.raises(NotFoundError):",
                f'        await repository.{delete}("missing")',
            ]

        save = ops.get("save")
        if save and get and storage == "memory":
            method = by_name[save]
            entity_param = next(
                (p for p in method.parameters if entity_name in translate(p.type).references), None
            )
            key_param = next((p for p in method.parameters if p is not entity_param), None)
            keyed = entity_param is not None and key_param is not None
            entity_spec = self.context.spec_for(entity_name)
            factory = None
            if entity_spec is not None and entity_spec.layer == Layer.DOMAIN_ENTITY:
                factory = self._entity_factory(entity_spec)
            if keyed and factory is not None:
                lines += [
                    "",
                    "",
                    "@pytest.mark.asyncio",
                    f"async def test_{save}_then_{get}_returns_a_copy(repository):",
                    f"    entity = {factory}",
                    f'    await repository.{save}({key_param.py_name}="key-1", {entity_param.py_name}=entity)',
                    f'    loaded = await repository.{get}("key-1")',
                    "    assert loaded is not entity",
                    "    assert type(loaded) is type(entity)",
                ]
                lines.insert(
                    lines.index("import pytest") + 2,
                    f"from {self.context.module_for(entity_name)} import {entity_name}",
                )
        return "\n".join(lines) + "\n"

    def _entity_factory(self, entity: ClassSpec) -> str | None:
        """Constructor call for a sample entity, or None when one needs imports."""
        if collection_shape(entity) is not None:
            return f"{entity.class_name}()"
        values = []
        for attr in entity.attributes:
            ref = translate(attr.type)
            if python_default(attr.default, ref) is not None:
                continue
            if (ref.kind in INSTANCE_CHECKS and ref.kind != "bool") or ref.kind == "Decimal":
                return None
            values.append(f"{attr.py_name}={sample_value(entity, attr, ref)}")
        return f"{entity.class_name}({', '.join(values)})"

    # =========================================================================
    # Adapters
    # =========================================================================

    def generate_adapter(self, spec: ClassSpec) -> GeneratorResult:
        builder = ModuleBuilder(self.context, spec, f"{spec.class_name}: HTTP adapter.")
        builder.import_module("httpx")
        builder.import_from("dataclasses", "dataclass")
        builder.import_from("typing", "Any")
        builder.import_from(f"{self.package}.infrastructure.http", "send", "to_jsonable")

        ports = [builder.require(dep, PlaceholderKind.PORT) for dep in spec.dependencies]
        methods = self._with_port_methods(spec.methods, spec.dependencies)

        config = f"{spec.class_name}Config"
        builder.define(config)
        config_lines = [
            "@dataclass(frozen=True, kw_only=True)",
            f"class {config}:",
            f'{INDENT}"""Connection settings for {spec.class_name}."""',
            "",
            f"{INDENT}base_url: str",
            f"{INDENT}api_key: str | None = None",
            f"{INDENT}timeout: float = 5.0",
            f"{INDENT}max_retries: int = 2",
            f"{INDENT}backoff: float = 0.3",
        ]
        reserved = {"base_url", "api_key", "timeout", "max_retries", "backoff"}
        for attr in spec.attributes:
            if attr.py_name in reserved:
                continue
            ref = builder.type(attr.type)
            default = python_default(attr.default, ref)
            suffix = f" = {default}" if default is not None else ""
            config_lines.append(f"{INDENT}{attr.py_name}: {ref.annotation}{suffix}")

        bases = f"({', '.join(ports)})" if ports else ""
        lines = [f"class {spec.class_name}{bases}:"]
        lines.extend(docstring(spec.description or f"HTTP adapter for {', '.join(ports) or 'an external service'}"))
        lines += [
            "",
            f"{INDENT}def __init__(self, config: {config}, client: httpx.AsyncClient | None = None) -> None:",
            f"{INDENT * 2}self._config = config",
            f"{INDENT * 2}headers = {{\"Authorization\": f\"Bearer {{config.api_key}}\"}} if config.api_key else {{}}",
            f"{INDENT * 2}self._client = client or httpx.AsyncClient(",
            f"{INDENT * 3}base_url=config.base_url, timeout=config.timeout, headers=headers",
            f"{INDENT * 2})",
            "",
            f"{INDENT}async def aclose(self) -> None:",
            f"{INDENT * 2}await self._client.aclose()",
            "",
            f"{INDENT}async def __aenter__(self) -> {spec.class_name}:",
            f"{INDENT * 2}return self",
            "",
            f"{INDENT}async def __aexit__(self, *exc_info: Any) -> None:",
            f"{INDENT * 2}await self.aclose()",
            "",
            f"{INDENT}async def _send(self, method: str, path: str, **kwargs: Any) -> Any:",
            f"{INDENT * 2}return await send(",
            f"{INDENT * 3}self._client,",
            f"{INDENT * 3}method,",
            f"{INDENT * 3}path,",
            f"{INDENT * 3}max_retries=self._config.max_retries,",
            f"{INDENT * 3}backoff=self._config.backoff,",
            f"{INDENT * 3}**kwargs,",
            f"{INDENT * 2})",
        ]

        endpoints: dict[str, str] = spec.metadata.get("endpoints") or {}
        calls: list[tuple[MethodSpec, str]] = []
        for method in methods:
            lines.append("")
            body, http_method = self._adapter_method(builder, method, endpoints)
            lines.extend(body)
            calls.append((method, http_method))

        test = self._adapter_test(spec, config, calls)
        return self._finish(spec, builder, ["\n".join(config_lines), "\n".join(lines)], test)

    def _adapter_method(
        self,
        builder: ModuleBuilder,
        method: MethodSpec,
        endpoints: dict[str, str],
    ) -> tuple[list[str], str]:
        ret = builder.type(method.return_type)
        http_method = HTTP_VERBS.get(first_word(method.method_name), "POST")
        path = endpoints.get(method.method_name) or endpoints.get(method.py_name) or f"/{to_kebab(method.method_name)}"

        in_path = [param for param in method.parameters if "{" + param.py_name + "}" in path or "{" + param.name + "}" in path]
        for param in in_path:
            path = path.replace("{" + param.name + "}", "{" + param.py_name + "}")
        rest = [param for param in method.parameters if param not in in_path]

        lines = [f"{INDENT}async def {method.py_name}({render_params(builder, method.parameters)}) -> {ret.annotation}:"]
        lines.extend(docstring(method.description, INDENT * 2))
        path_expr = f'f"{path}"' if in_path else f'"{path}"'
        payload = "{" + ", ".join(f'"{param.py_name}": {param.py_name}' for param in rest) + "}"
        if not rest:
            call = f'await self._send("{http_method}", {path_expr})'
        elif http_method in ("GET", "DELETE"):
            call = f'await self._send("{http_method}", {path_expr}, params=to_jsonable({payload}))'
        else:
            call = f'await self._send("{http_method}", {path_expr}, json=to_jsonable({payload}))'

        if ret.is_void:
            lines.append(f"{INDENT * 2}{call}")
            return lines, http_method

        lines.append(f"{INDENT * 2}data = {call}")
        lines.extend(self._map_result(ret))
        return lines, http_method

    def _map_result(self, ret: TypeRef) -> list[str]:
        """Map decoded JSON into the declared return type."""
        indent = INDENT * 2
        if len(ret.references) == 1:
            target = ret.references[0]
            if ret.kind == "list":
                return [f"{indent}return [{target}(**item) for item in data or []]"]
            lines = []
            if ret.optional:
                lines += [f"{indent}if data is None:", f"{indent}{INDENT}return None"]
            lines.append(f"{indent}return {target}(**data)")
            return lines
        if ret.kind in ("int", "float", "str", "bool") and not ret.optional:
            return [f"{indent}return {ret.kind}(data)"]
        return [f"{indent}return data"]

    def _adapter_test(self, spec: ClassSpec, config: str, calls: list[tuple[MethodSpec, str]]) -> str:
        name = spec.class_name
        required = [
            attr
            for attr in spec.attributes
            if python_default(attr.default, translate(attr.type)) is None
            and attr.py_name not in ("base_url", "api_key", "timeout", "max_retries", "backoff")
        ]
        extra = [f"{attr.py_name}={sample_value(spec, attr, translate(attr.type))}" for attr in required]
        imports = sample_imports([translate(attr.type) for attr in required])
        lines = [
            f'"""Tests for {name}."""',
            "",
            *imports,
            *([""] if imports else []),
            "import httpx",
            "import pytest",
            "",
            f"from {self.package}.infrastructure.errors import BadRequest, ServerError",
            f"from {self._module(spec)} import {config}, {name}",
            "",
            "",
            "def make_adapter(handler):",
            "    transport = httpx.MockTransport(handler)",
            '    client = httpx.AsyncClient(transport=transport, base_url="https://api.test")',
        ]
        config_args = ", ".join(['base_url="https://api.test"', "backoff=0.0", *extra])
        lines.append(f"    return {name}({config}({config_args}), client=client)")

        if calls:
            method, _ = calls[0]
            args = ", ".join(f"{param.py_name}={self._sample_arg(param)}" for param in method.parameters)
            lines += [
                "",
                "",
                "@pytest.mark.asyncio",
                f"async def test_{method.py_name}_maps_bad_request():",
                "    adapter = make_adapter(lambda request: httpx.Response(400))",
                "    with pytest.raises(BadRequest):",
                f"        await adapter.{method.py_name}({args})",
                "",
                "",
                "@pytest.mark.asyncio",
                f"async def test_{method.py_name}_retries_server_errors():",
                "    calls = []",
                "",
                "    def handler(request):",
                "        calls.append(request)",
                "        return httpx.Response(503)",
                "",
                "    adapter = make_adapter(handler)",
                "    with pytest.raises(ServerError):",
                f"        await adapter.{method.py_name}({args})",
                "    assert len(calls) == 3",
            ]
        return "\n".join(lines) + "\n"

    @staticmethod
    def _sample_arg(param: Declaration) -> str:
        ref = translate(param.type)
        if ref.kind == "str":
            return repr(f"{param.py_name}-1")
        if ref.kind in ("int", "float"):
            return "1"
        if ref.kind == "bool":
            return "True"
        if ref.kind in ("list", "dict"):
            return "[]" if ref.kind == "list" else "{}"
        return "None"
