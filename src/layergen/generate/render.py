"""
Rendering helpers shared by the layer generators.
"""

from __future__ import annotations

from layergen.core.spec import ClassSpec, Declaration, MethodSpec

from .builder import ModuleBuilder
from .types import TypeRef, python_default, translate

INDENT = "    "

# Sample literals for generated tests, keyed by primitive kind
SAMPLE_VALUES: dict[str, str] = {
    "int": "1",
    "float": "1.0",
    "Decimal": 'Decimal("1")',
    "bool": "True",
    "datetime": "datetime(2024, 1, 1)",
    "date": "date(2024, 1, 1)",
    "time": "time(12, 0)",
    "UUID": "UUID(int=1)",
    "bytes": 'b"data"',
    "list": "[]",
    "dict": "{}",
    "set": "set()",
    "tuple": "()",
}

# Runtime type checks for non-string, non-numeric kinds
INSTANCE_CHECKS: dict[str, str] = {
    "bool": "bool",
    "datetime": "datetime",
    "date": "date",
    "time": "time",
    "UUID": "UUID",
    "bytes": "bytes",
}

MUTABLE_DEFAULTS = {"[]": "list", "{}": "dict"}


def allowed_values(spec: ClassSpec, decl: Declaration) -> list[str] | None:
    """Enum membership for a field from ``metadata.allowed_values``."""
    table = spec.metadata.get("allowed_values") or {}
    values = table.get(decl.name, table.get(decl.py_name))
    if values:
        return [str(value) for value in values]
    return None


def field_rule(spec: ClassSpec, decl: Declaration, ref: TypeRef) -> str | None:
    """
    Validation call for one field (``require_non_empty(name, value)``), or
    None when the type implies no rule.
    """
    allowed = allowed_values(spec, decl)
    if allowed:
        choices = ", ".join(repr(value) for value in allowed)
        trailing = "," if len(allowed) == 1 else ""
        return f"require_member(name, value, ({choices}{trailing}))"
    if ref.kind == "str":
        return "require_non_empty(name, value)"
    if ref.is_numeric:
        return "require_non_negative(name, value)"
    if ref.kind in INSTANCE_CHECKS:
        return f"require_instance(name, value, {INSTANCE_CHECKS[ref.kind]})"
    return None


def sample_value(spec: ClassSpec, decl: Declaration, ref: TypeRef) -> str:
    """A valid literal for a field, used by generated tests."""
    allowed = allowed_values(spec, decl)
    if allowed:
        return repr(allowed[0])
    if ref.kind == "str":
        return repr(f"{decl.py_name}-1")
    if ref.kind in SAMPLE_VALUES:
        return SAMPLE_VALUES[ref.kind]
    return "None"


def invalid_value(spec: ClassSpec, decl: Declaration, ref: TypeRef) -> str | None:
    """A literal that breaks the field's rule, or None when it has none."""
    if allowed_values(spec, decl):
        return '"__invalid__"'
    if ref.kind == "str":
        return '""'
    if ref.is_numeric:
        return "-1"
    return None


def sample_imports(refs: list[TypeRef]) -> list[str]:
    """Imports the sample literals of ``refs`` need."""
    kinds = {ref.kind for ref in refs}
    lines = []
    datetime_names = sorted(kinds & {"date", "datetime", "time"})
    if datetime_names:
        lines.append(f"from datetime import {', '.join(datetime_names)}")
    if "Decimal" in kinds:
        lines.append("from decimal import Decimal")
    if "UUID" in kinds:
        lines.append("from uuid import UUID")
    return lines


def render_params(builder: ModuleBuilder, params: list[Declaration], leading: str | None = "self") -> str:
    """
    Render a parameter list with annotations and defaults.

    Parameters following one with a default become keyword-only, so any
    declared order stays valid Python.
    """
    rendered: list[str] = [leading] if leading else []
    seen_default = False
    keyword_only = False
    for param in params:
        ref = builder.type(param.type)
        default = python_default(param.default, ref)
        if default is None and seen_default and not keyword_only:
            rendered.append("*")
            keyword_only = True
        if default is not None:
            seen_default = True
            rendered.append(f"{param.py_name}: {ref.annotation} = {default}")
        else:
            rendered.append(f"{param.py_name}: {ref.annotation}")
    return ", ".join(rendered)


def call_args(params: list[Declaration]) -> str:
    """Forwarding arguments for a declared parameter list, by keyword."""
    return ", ".join(f"{param.py_name}={param.py_name}" for param in params)


def return_annotation(builder: ModuleBuilder, method: MethodSpec) -> TypeRef:
    return builder.type(method.return_type)


def docstring(text: str | None, indent: str = INDENT) -> list[str]:
    """A one-line docstring block, or nothing."""
    if not text:
        return []
    clean = " ".join(text.split()).replace('"""', "'''")
    if not clean.endswith("."):
        clean += "."
    return [f'{indent}"""{clean}"""']


def stub_method(
    builder: ModuleBuilder,
    owner: str,
    method: MethodSpec,
    is_async: bool = False,
    decorator: str | None = None,
) -> list[str]:
    """A method with the declared signature whose body raises NotImplementedError."""
    ret = return_annotation(builder, method)
    lines = []
    if decorator:
        lines.append(f"{INDENT}{decorator}")
    keyword = "async def" if is_async else "def"
    lines.append(f"{INDENT}{keyword} {method.py_name}({render_params(builder, method.parameters)}) -> {ret.annotation}:")
    lines.extend(docstring(method.description, INDENT * 2))
    lines.append(f'{INDENT * 2}raise NotImplementedError("{owner}.{method.py_name}")')
    return lines


def dataclass_fields(builder: ModuleBuilder, spec: ClassSpec, attributes: list[Declaration]) -> tuple[list[str], bool]:
    """
    Field lines for a dataclass, plus whether it needs ``kw_only=True``
    (a field without default follows one with a default).
    """
    lines: list[str] = []
    seen_default = False
    kw_only = False
    for attr in attributes:
        ref = builder.type(attr.type)
        default = python_default(attr.default, ref)
        if default in MUTABLE_DEFAULTS:
            builder.import_from("dataclasses", "field")
            lines.append(f"{attr.py_name}: {ref.annotation} = field(default_factory={MUTABLE_DEFAULTS[default]})")
            seen_default = True
        elif default is not None:
            lines.append(f"{attr.py_name}: {ref.annotation} = {default}")
            seen_default = True
        else:
            if seen_default:
                kw_only = True
            lines.append(f"{attr.py_name}: {ref.annotation}")
    return lines, kw_only
