"""
Layer schema validation for raw class specifications.

``validate`` is the gate every batch item passes before naming and
routing: it rejects malformed items with ``SchemaError`` and returns a
normalized ``ClassSpec``. ``lint`` reports convention problems that are
worth flagging but never fail an item.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import ValidationError

from .errors import SchemaError
from .naming import is_interface_name
from .spec import DEPENDENCY_LAYERS, ClassSpec, Declaration, Layer, MethodSpec

_DECLARATION = re.compile(
    r"^\s*(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?P<optional>\?)?\s*:\s*(?P<type>[^=]+?)"
    r"\s*(?:=\s*(?P<default>.+?))?\s*$"
)
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

LAYER_VALUES = frozenset(layer.value for layer in Layer)


def parse_declaration(raw: Any, where: str) -> Declaration:
    """
    Parse one ``name: type`` declaration.

    Accepted forms:
        ``"quantity: number"``, ``"qty: int = 1"``, ``"note?: str"``,
        ``{"quantity": "number"}`` and ``{"name": "quantity", "type": "number"}``

    Raises:
        SchemaError: If the declaration cannot be parsed
    """
    if isinstance(raw, dict):
        if set(raw) >= {"name", "type"}:
            text = f"{raw['name']}: {raw['type']}"
            if raw.get("default") is not None:
                text += f" = {raw['default']}"
        elif len(raw) == 1:
            ((key, value),) = raw.items()
            text = f"{key}: {value}"
        else:
            raise SchemaError(f"{where}: expected a single 'name: type' pair, got {raw!r}")
    elif isinstance(raw, str):
        text = raw
    else:
        raise SchemaError(f"{where}: expected 'name: type', got {raw!r}")

    match = _DECLARATION.match(text)
    if not match:
        raise SchemaError(f"{where}: cannot parse declaration {text!r} as 'name: type'")

    return Declaration(
        name=match["name"],
        type=match["type"].strip(),
        default=match["default"],
        optional=bool(match["optional"]),
    )


def _require_str(raw: dict[str, Any], key: str) -> str:
    value = raw.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise SchemaError(f"Missing required field '{key}'")
    if not isinstance(value, str):
        raise SchemaError(f"Field '{key}' must be a string, got {type(value).__name__}")
    return value.strip()


def _list_field(raw: dict[str, Any], key: str) -> list[Any]:
    value = raw.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise SchemaError(f"Field '{key}' must be a list, got {type(value).__name__}")
    return value


# Metadata keys read by the generators, by expected shape
STRING_METADATA = frozenset(
    {
        "key",
        "accumulate",
        "collection_of",
        "item",
        "store",
        "hook",
        "model",
        "entity",
        "interface",
        "storage",
        "table",
        "prefix",
    }
)
MAPPING_METADATA = frozenset({"use_cases", "actions", "handlers", "paths", "endpoints"})


def _optional_str(raw: dict[str, Any], key: str, where: str) -> str | None:
    value = raw.get(key)
    if value is not None and not isinstance(value, str):
        raise SchemaError(f"{where}: field '{key}' must be a string, got {type(value).__name__}")
    return value


def _check_metadata(metadata: dict[str, Any], class_name: str) -> None:
    """Reject metadata values whose shape the generators cannot read."""
    for key, value in metadata.items():
        if value is None:
            continue
        if key in STRING_METADATA and not isinstance(value, str):
            raise SchemaError(
                f"{class_name}: metadata '{key}' must be a string, got {type(value).__name__}"
            )
        if key in MAPPING_METADATA and not (
            isinstance(value, dict)
            and all(isinstance(k, str) and isinstance(v, str) for k, v in value.items())
        ):
            raise SchemaError(f"{class_name}: metadata '{key}' must map names to strings")
        if key == "allowed_values" and not (
            isinstance(value, dict)
            and all(
                isinstance(k, str) and isinstance(v, list) and all(isinstance(x, str | int | float) for x in v)
                for k, v in value.items()
            )
        ):
            raise SchemaError(f"{class_name}: metadata 'allowed_values' must map field names to lists of values")


def _parse_method(raw: Any, class_name: str, position: int) -> MethodSpec:
    if not isinstance(raw, dict):
        raise SchemaError(f"{class_name}.methods[{position}] must be an object")
    name = raw.get("method_name") or raw.get("name")
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise SchemaError(f"{class_name}.methods[{position}] has an invalid method_name: {name!r}")

    parameters = [
        parse_declaration(param, f"{class_name}.{name} parameter {i}")
        for i, param in enumerate(_list_field(raw, "parameters"))
    ]
    return_type = raw.get("return_type") or "void"
    if not isinstance(return_type, str):
        raise SchemaError(f"{class_name}.{name} return_type must be a string")

    description = _optional_str(raw, "description", f"{class_name}.{name}")

    return MethodSpec(
        method_name=name,
        description=description,
        parameters=parameters,
        return_type=return_type.strip(),
    )


def validate(raw: Any) -> ClassSpec:
    """
    Validate a raw class specification.

    Args:
        raw: One decoded JSON object from the input batch

    Returns:
        Normalized ClassSpec with empty containers for absent optional fields

    Raises:
        SchemaError: On missing/invalid required fields, unknown layers,
            malformed declarations or dependency naming violations
    """
    try:
        return _build_spec(raw)
    except ValidationError as e:
        class_name = raw.get("class_name") if isinstance(raw, dict) else None
        raise SchemaError(f"{class_name or 'Class specification'}: {e}") from e


def _build_spec(raw: Any) -> ClassSpec:
    if not isinstance(raw, dict):
        raise SchemaError(f"Class specification must be an object, got {type(raw).__name__}")

    class_name = _require_str(raw, "class_name")
    if not _IDENTIFIER.match(class_name):
        raise SchemaError(f"class_name {class_name!r} is not a valid identifier")

    layer_value = _require_str(raw, "layer")
    if layer_value not in LAYER_VALUES:
        raise SchemaError(f"Unknown layer '{layer_value}' for {class_name}")
    layer = Layer(layer_value)

    type_tag = raw.get("type")
    if type_tag is not None and not isinstance(type_tag, str):
        raise SchemaError(f"Field 'type' must be a string for {class_name}")

    attributes = [
        parse_declaration(attr, f"{class_name}.attributes[{i}]")
        for i, attr in enumerate(_list_field(raw, "attributes"))
    ]
    methods = [
        _parse_method(method, class_name, i)
        for i, method in enumerate(_list_field(raw, "methods"))
    ]

    dependencies = _list_field(raw, "dependencies")
    for dependency in dependencies:
        if not isinstance(dependency, str):
            raise SchemaError(f"{class_name} dependency {dependency!r} must be a string")
    if layer in DEPENDENCY_LAYERS:
        for dependency in dependencies:
            if not is_interface_name(dependency):
                raise SchemaError(
                    f"{class_name} depends on '{dependency}', which is not an interface "
                    "(expected 'I' followed by an uppercase letter)"
                )

    metadata = raw.get("metadata") or {}
    if not isinstance(metadata, dict):
        raise SchemaError(f"Field 'metadata' must be an object for {class_name}")
    _check_metadata(metadata, class_name)

    description = _optional_str(raw, "description", class_name)

    return ClassSpec(
        class_name=class_name,
        layer=layer,
        type=(type_tag or layer.kind).strip(),
        description=description,
        attributes=attributes,
        methods=methods,
        dependencies=list(dependencies),
        metadata=metadata,
    )


def lint(spec: ClassSpec, raw: dict[str, Any] | None = None) -> list[str]:
    """
    Report convention problems that do not fail generation.

    Returns:
        Warning messages (possibly empty)
    """
    warnings: list[str] = []

    if spec.layer == Layer.APPLICATION_INTERFACE and not is_interface_name(spec.class_name):
        warnings.append(
            f"{spec.class_name}: interfaces should be named with an 'I' prefix "
            f"(e.g. 'I{spec.class_name}')"
        )

    if spec.dependencies and spec.layer not in DEPENDENCY_LAYERS:
        warnings.append(
            f"{spec.class_name}: 'dependencies' is ignored for layer {spec.layer.value}"
        )

    if raw is not None and not raw.get("type"):
        warnings.append(f"{spec.class_name}: missing 'type', using '{spec.layer.kind}'")

    if spec.layer == Layer.APPLICATION_USE_CASE and len(spec.methods) == 0:
        warnings.append(f"{spec.class_name}: no method declared, 'execute' takes no parameters")

    return warnings
