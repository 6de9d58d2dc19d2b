"""
Type expression translation.

Class specifications carry loosely written type expressions (``string``,
``Cart | null``, ``CartItem[]``, ``Promise<void>``). ``translate`` turns
them into Python annotations and reports which names are references to
other classes, so the module builder can import or stand them in.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

# Type mappings from specification types to Python
PYTHON_TYPES: dict[str, str] = {
    "string": "str",
    "str": "str",
    "text": "str",
    "email": "str",
    "number": "float",
    "float": "float",
    "double": "float",
    "int": "int",
    "integer": "int",
    "bool": "bool",
    "boolean": "bool",
    "datetime": "datetime",
    "date": "date",
    "time": "time",
    "decimal": "Decimal",
    "uuid": "UUID",
    "bytes": "bytes",
    "any": "Any",
    "object": "dict",
    "dict": "dict",
    "list": "list",
    "set": "set",
    "tuple": "tuple",
    "void": "None",
    "none": "None",
    "null": "None",
    "undefined": "None",
}

# Imports needed by mapped annotations
KNOWN_IMPORTS: dict[str, tuple[str, str]] = {
    "datetime": ("datetime", "datetime"),
    "date": ("datetime", "date"),
    "time": ("datetime", "time"),
    "Decimal": ("decimal", "Decimal"),
    "UUID": ("uuid", "UUID"),
    "Any": ("typing", "Any"),
    # Handles commonly injected into repositories and adapters
    "AsyncSession": ("sqlalchemy.ext.asyncio", "AsyncSession"),
    "Session": ("sqlalchemy.orm", "Session"),
    "AsyncClient": ("httpx", "AsyncClient"),
}

# Storage kinds, used for validation rules and column mapping
NUMERIC_KINDS = frozenset({"int", "float", "Decimal"})

_BUILTIN_NAMES = frozenset({"list", "dict", "set", "tuple", "None", "Any", "Optional", "str", "int", "float", "bool", "bytes"})
_CAPITALIZED_PRIMITIVES = frozenset({"String", "Number", "Boolean", "Object", "Void"})
_IDENT = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


@dataclass(frozen=True)
class TypeRef:
    """
    A translated type expression.

    Attributes:
        annotation: Python annotation text (``list[CartItem]``, ``Cart | None``)
        kind: Primitive kind for simple types (``str``, ``float``, ``list``...),
            ``None`` for references to other classes
        optional: Whether ``None`` is an accepted value
        references: Class names referenced by the annotation
        imports: ``(module, name)`` imports the annotation needs
    """

    annotation: str
    kind: str | None = None
    optional: bool = False
    references: tuple[str, ...] = ()
    imports: frozenset[tuple[str, str]] = field(default_factory=frozenset)

    @property
    def is_void(self) -> bool:
        return self.annotation == "None"

    @property
    def is_numeric(self) -> bool:
        return self.kind in NUMERIC_KINDS

    @property
    def is_collection(self) -> bool:
        return self.kind in ("list", "dict", "set", "tuple")


def _unwrap(text: str) -> str:
    """Strip async wrappers: ``Promise<X>`` / ``Awaitable[X]`` -> ``X``."""
    match = re.match(r"^(?:Promise|Awaitable|Coroutine)\s*[<\[](.*)[>\]]$", text)
    while match:
        text = match.group(1).strip()
        match = re.match(r"^(?:Promise|Awaitable|Coroutine)\s*[<\[](.*)[>\]]$", text)
    return text


def _normalize(text: str) -> tuple[str, bool]:
    optional = False
    text = _unwrap(text.strip())

    if text.endswith("?"):
        optional = True
        text = text[:-1].strip()

    text = re.sub(r"\bArray\s*<", "list<", text)
    text = re.sub(r"\b(?:Record|Map)\s*<", "dict<", text)
    text = text.replace("<", "[").replace(">", "]")

    # X[] -> list[X], applied until no more suffix arrays remain
    array = re.compile(r"([A-Za-z_][A-Za-z0-9_]*(?:\[[^\[\]]*\])?)\[\]")
    while array.search(text):
        text = array.sub(r"list[\1]", text)

    optional_match = re.match(r"^Optional\[(.*)\]$", text)
    if optional_match:
        text = optional_match.group(1).strip()
        optional = True

    parts = [part.strip() for part in text.split("|")]
    if any(part.lower() in ("null", "none", "undefined") for part in parts):
        optional = True
        parts = [part for part in parts if part.lower() not in ("null", "none", "undefined")]
    text = " | ".join(parts) if parts else "None"
    return text, optional


def translate(expr: str | None) -> TypeRef:
    """
    Translate a specification type expression into a Python annotation.

    Examples:
        >>> translate("string").annotation
        'str'
        >>> translate("Cart | null").annotation
        'Cart | None'
        >>> translate("CartItem[]").references
        ('CartItem',)
        >>> translate("Promise<void>").is_void
        True
    """
    if expr is None or not expr.strip():
        return TypeRef(annotation="Any", imports=frozenset({KNOWN_IMPORTS["Any"]}))

    text, optional = _normalize(expr)
    references: list[str] = []
    imports: set[tuple[str, str]] = set()

    def replace(match: re.Match[str]) -> str:
        token = match.group(0)
        if token in _BUILTIN_NAMES:
            mapped = token
        elif token.islower() or token in _CAPITALIZED_PRIMITIVES:
            mapped = PYTHON_TYPES.get(token.lower(), token)
        else:
            mapped = token
        if mapped in KNOWN_IMPORTS:
            imports.add(KNOWN_IMPORTS[mapped])
        elif mapped not in _BUILTIN_NAMES and mapped not in PYTHON_TYPES.values():
            if mapped not in references:
                references.append(mapped)
        return mapped

    annotation = _IDENT.sub(replace, text)
    if annotation == "Optional":
        annotation = "Any"
        imports.add(KNOWN_IMPORTS["Any"])

    kind: str | None = None
    head = annotation.split("[", 1)[0]
    if not references and " | " not in annotation:
        kind = head
    elif head in ("list", "dict", "set", "tuple"):
        kind = head

    if optional and annotation != "None":
        annotation = f"{annotation} | None"

    return TypeRef(
        annotation=annotation,
        kind=kind,
        optional=optional,
        references=tuple(references),
        imports=frozenset(imports),
    )


def python_default(raw: str | None, ref: TypeRef) -> str | None:
    """
    Translate a declared default into a Python expression.

    JSON/TypeScript literals are mapped (``true`` -> ``True``,
    ``null`` -> ``None``); anything else is kept as written.
    """
    if raw is None:
        return "None" if ref.optional else None
    value = raw.strip()
    literals = {"true": "True", "false": "False", "null": "None", "undefined": "None"}
    if value in literals:
        return literals[value]
    if value.startswith("'") and value.endswith("'"):
        return '"' + value[1:-1] + '"'
    return value
