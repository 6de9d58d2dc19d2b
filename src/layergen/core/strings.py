"""
String utility functions for layergen.

Provides the case conversions and pluralization shared by the naming
resolver and the layer generators.
"""

from __future__ import annotations

import re

# Irregular plurals that don't follow standard rules
_IRREGULAR_PLURALS = {
    "person": "people",
    "child": "children",
    "man": "men",
    "woman": "women",
    "foot": "feet",
    "tooth": "teeth",
    "goose": "geese",
    "mouse": "mice",
    "ox": "oxen",
    "datum": "data",
    "medium": "media",
    "criterion": "criteria",
    "phenomenon": "phenomena",
    "index": "indices",
    "appendix": "appendices",
    "matrix": "matrices",
    "vertex": "vertices",
    "category": "categories",
    # Common domain-specific terms
    "status": "statuses",
    "address": "addresses",
}

# Words that are already plural or have no distinct plural
_UNCOUNTABLE = frozenset({"data", "information", "equipment", "news", "series", "species"})

_WORD_BOUNDARY = re.compile(r"[A-Z]+(?=[A-Z][a-z0-9])|[A-Z]?[a-z0-9]+|[A-Z]+")


def split_words(name: str) -> list[str]:
    """
    Split an identifier into words on case transitions and separators.

    Examples:
        >>> split_words("AddItemToCart")
        ['Add', 'Item', 'To', 'Cart']
        >>> split_words("HTTPClient")
        ['HTTP', 'Client']
        >>> split_words("product_id")
        ['product', 'id']
    """
    words: list[str] = []
    for chunk in re.split(r"[^A-Za-z0-9]+", name):
        if chunk:
            words.extend(_WORD_BOUNDARY.findall(chunk))
    return words


def to_snake(name: str) -> str:
    """
    Convert an identifier to snake_case.

    Examples:
        >>> to_snake("CartItem")
        'cart_item'
        >>> to_snake("productId")
        'product_id'
    """
    return "_".join(word.lower() for word in split_words(name))


def to_pascal(name: str) -> str:
    """
    Convert an identifier to PascalCase.

    Acronyms are kept as written when the input is already PascalCase
    (``HTTPClient`` stays ``HTTPClient``); snake words are capitalized.
    """
    return "".join(word if word.isupper() else word[:1].upper() + word[1:] for word in split_words(name))


def to_kebab(name: str) -> str:
    """Convert an identifier to kebab-case (used for route paths)."""
    return to_snake(name).replace("_", "-")


def pluralize(word: str) -> str:
    """
    Convert a singular English word to its plural form.

    Handles common English pluralization rules including:
    - Words ending in -y (policy -> policies, but key -> keys)
    - Words ending in -s, -x, -z, -ch, -sh (bus -> buses)
    - Irregular plurals (person -> people)

    For compound names only the last word is pluralized, whether the
    name is snake_case (``order_line`` -> ``order_lines``) or CamelCase
    (``WorkOrder`` -> ``WorkOrders``).

    Examples:
        >>> pluralize("category")
        'categories'
        >>> pluralize("Person")
        'People'
        >>> pluralize("stock_ledger_entry")
        'stock_ledger_entries'
    """
    if not word:
        return word

    if "_" in word:
        head, _, last = word.rpartition("_")
        return f"{head}_{pluralize(last)}"

    camel_match = re.match(r"^(.+?)([A-Z][a-z]+)$", word)
    if camel_match:
        prefix, last_word = camel_match.groups()
        if prefix and last_word != word:
            return prefix + pluralize(last_word)

    lower_word = word.lower()

    if lower_word in _UNCOUNTABLE:
        return word

    if lower_word in _IRREGULAR_PLURALS:
        plural = _IRREGULAR_PLURALS[lower_word]
        if word[0].isupper():
            return plural.capitalize()
        return plural

    if lower_word.endswith(("s", "x", "z", "ch", "sh")):
        return word + "es"
    elif lower_word.endswith("y"):
        if len(word) > 1 and lower_word[-2] in "aeiou":
            # key -> keys, day -> days
            return word + "s"
        return word[:-1] + "ies"
    else:
        return word + "s"
