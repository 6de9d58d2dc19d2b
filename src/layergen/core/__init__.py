"""
Core layergen types: specifications, naming, validation and errors.
"""

from .errors import (
    ItemContext,
    LayergenError,
    LayerViolationError,
    NamingError,
    RegistryError,
    RoutingError,
    SchemaError,
)
from .naming import ResolvedName, layer_base, resolve
from .spec import ClassSpec, Declaration, Layer, LayerPrefix, MethodSpec
from .validator import lint, parse_declaration, validate

__all__ = [
    # Errors
    "LayergenError",
    "SchemaError",
    "NamingError",
    "RoutingError",
    "RegistryError",
    "LayerViolationError",
    "ItemContext",
    # Specs
    "ClassSpec",
    "Declaration",
    "Layer",
    "LayerPrefix",
    "MethodSpec",
    # Naming
    "ResolvedName",
    "resolve",
    "layer_base",
    # Validation
    "validate",
    "lint",
    "parse_declaration",
]
