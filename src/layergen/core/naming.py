"""
Naming resolver.

Derives the canonical identifiers every layer generator uses for file,
module, class and route names from a raw class name. Everything here is a
pure function of its input.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import BaseModel, ConfigDict

from .errors import NamingError
from .strings import pluralize, split_words, to_pascal, to_snake

CRUD_PREFIXES: tuple[str, ...] = ("Create", "Update", "Delete", "Get", "List")
CRUD_SUFFIXES: tuple[str, ...] = ("Request", "Response", "UseCase", "Repository", "Service")


class ResolvedName(BaseModel):
    """
    Canonical identifiers derived from a class name.

    Attributes:
        base: Affix-stripped core identifier (``CreateProductUseCase`` -> ``Product``)
        snake_base: ``base`` in snake_case
        pascal_base: ``base`` in PascalCase
        plural_snake_base: Pluralized ``snake_base``, used for tables and routes
    """

    base: str
    snake_base: str
    pascal_base: str
    plural_snake_base: str

    model_config = ConfigDict(frozen=True)


def strip_affixes(class_name: str) -> str:
    """
    Strip CRUD prefixes and layer suffixes from a class name.

    Prefixes are only removed at a word boundary, so ``Getaway`` keeps
    its ``Get`` while ``GetCart`` becomes ``Cart``. At most one prefix and
    one suffix are removed.
    """
    name = class_name.strip()
    for prefix in CRUD_PREFIXES:
        rest = name[len(prefix) :]
        if name.startswith(prefix) and (not rest or rest[0].isupper() or rest[0].isdigit()):
            name = rest
            break
    for suffix in CRUD_SUFFIXES:
        if name.endswith(suffix):
            name = name[: -len(suffix)]
            break
    return name


@lru_cache(maxsize=1024)
def resolve(class_name: str) -> ResolvedName:
    """
    Resolve a class name into its canonical identifiers.

    Args:
        class_name: Raw identifier, e.g. ``CreateProductUseCase``

    Returns:
        ResolvedName with base, snake, pascal and plural forms

    Raises:
        NamingError: If nothing is left after stripping affixes

    Examples:
        >>> resolve("CreateProductUseCase").base
        'Product'
        >>> resolve("Category").plural_snake_base
        'categories'
    """
    base = strip_affixes(class_name)
    if not split_words(base):
        raise NamingError(f"Cannot derive a base name from '{class_name}'")

    snake_base = to_snake(base)
    return ResolvedName(
        base=base,
        snake_base=snake_base,
        pascal_base=to_pascal(base),
        plural_snake_base=pluralize(snake_base),
    )


def layer_base(class_name: str, *tokens: str) -> ResolvedName:
    """
    Resolve a class name after dropping a trailing per-layer token.

    ``layer_base("CartModel", "Model")`` resolves ``Cart``; the token is
    kept when removing it would leave nothing (``Model`` stays ``Model``).
    """
    for token in tokens:
        if class_name.endswith(token) and len(class_name) > len(token):
            return resolve(class_name[: -len(token)])
    return resolve(class_name)


def is_interface_name(name: str) -> bool:
    """Check the port naming convention: ``I`` followed by an uppercase letter."""
    return len(name) > 1 and name[0] == "I" and name[1].isupper()


def interface_module_name(name: str) -> str:
    """
    Module name for a port: ``ICartRepository`` -> ``cart_repository``.
    """
    if is_interface_name(name):
        return to_snake(name[1:])
    return to_snake(name)


def interface_name_for(base: ResolvedName, suffix: str = "Repository") -> str:
    """Conventional port name for a base: ``Cart`` -> ``ICartRepository``."""
    return f"I{base.pascal_base}{suffix}"
