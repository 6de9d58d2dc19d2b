"""
Class specification models.

A ClassSpec is the unit of work: one class to generate in one layer. The
validator builds these from raw JSON; generators only ever see the
normalized form defined here.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .strings import to_snake


class LayerPrefix(StrEnum):
    """The segment before ``/`` in a layer value, used for routing."""

    DOMAIN = "domain"
    APPLICATION = "application"
    INFRASTRUCTURE = "infrastructure"
    PRESENTATION = "presentation"


class Layer(StrEnum):
    """Enumerated layer values a class specification may declare."""

    DOMAIN_ENTITY = "domain/entity"
    DOMAIN_SERVICE = "domain/service"
    APPLICATION_INTERFACE = "application/interface"
    APPLICATION_USE_CASE = "application/use_case"
    APPLICATION_STORE = "application/store"
    INFRASTRUCTURE_MODEL = "infrastructure/model"
    INFRASTRUCTURE_REPOSITORY = "infrastructure/repository"
    INFRASTRUCTURE_ADAPTER = "infrastructure/adapter"
    PRESENTATION_SCHEMA = "presentation/schema"
    PRESENTATION_DEPENDENCY = "presentation/dependency"
    PRESENTATION_ROUTER = "presentation/router"
    PRESENTATION_COMPONENT = "presentation/component"
    PRESENTATION_HOOK = "presentation/hook"

    @property
    def prefix(self) -> str:
        """Routing prefix, e.g. ``domain``."""
        return self.value.split("/", 1)[0]

    @property
    def kind(self) -> str:
        """Layer kind, e.g. ``entity``."""
        return self.value.split("/", 1)[1]


# Layers where ``dependencies`` carries meaning
DEPENDENCY_LAYERS = frozenset({Layer.APPLICATION_USE_CASE, Layer.INFRASTRUCTURE_ADAPTER})


class Declaration(BaseModel):
    """
    A parsed ``name: type`` declaration (attribute or parameter).

    Attributes:
        name: Name as written in the specification (``productId``)
        type: Raw type expression (``string``, ``Cart | null``, ``CartItem[]``)
        default: Raw default value expression, if one was declared
        optional: Declared with ``name?: type``
    """

    name: str
    type: str = "Any"
    default: str | None = None
    optional: bool = False

    model_config = ConfigDict(frozen=True)

    @property
    def py_name(self) -> str:
        """Python identifier for this declaration."""
        return to_snake(self.name)


class MethodSpec(BaseModel):
    """One declared operation of a class."""

    method_name: str
    description: str | None = None
    parameters: list[Declaration] = Field(default_factory=list)
    return_type: str = "void"

    model_config = ConfigDict(frozen=True)

    @property
    def py_name(self) -> str:
        """Python function name for this method."""
        return to_snake(self.method_name)


class ClassSpec(BaseModel):
    """
    Validated specification for one class.

    Attributes:
        class_name: Raw identifier, e.g. ``CreateProductUseCase``
        layer: Target layer
        type: Free-form subtype tag
        description: Optional prose
        attributes: Field declarations, in order
        methods: Declared operations, in order
        dependencies: Ports this class depends on (use cases, adapters)
        metadata: Extension payload (use case links, storage hints, ...)
    """

    class_name: str
    layer: Layer
    type: str
    description: str | None = None
    attributes: list[Declaration] = Field(default_factory=list)
    methods: list[MethodSpec] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @property
    def prefix(self) -> str:
        """Routing prefix of this spec's layer."""
        return self.layer.prefix

    def method(self, name: str) -> MethodSpec | None:
        """Find a declared method by its raw or Python name."""
        for method in self.methods:
            if method.method_name == name or method.py_name == name:
                return method
        return None

    def attribute_names(self) -> list[str]:
        """Python names of the declared attributes."""
        return [attr.py_name for attr in self.attributes]
