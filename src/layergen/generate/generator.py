"""
Base generator classes for layer code generation.

Each layer generator turns one validated ClassSpec into:
- A code artifact (the generated module)
- A test artifact (the matching pytest module)

Generators never touch the filesystem; they return file contents keyed
by relative path and leave writing to the batch runner.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import ClassVar

from layergen.core.errors import RoutingError, SchemaError
from layergen.core.spec import ClassSpec, Layer, LayerPrefix

from . import layout

logger = logging.getLogger(__name__)

# Layers a generated module may import from, keyed by its own prefix
ALLOWED_IMPORTS: dict[str, frozenset[str]] = {
    "domain": frozenset({"domain"}),
    "application": frozenset({"domain", "application"}),
    "infrastructure": frozenset({"domain", "application", "infrastructure"}),
    "presentation": frozenset({"domain", "application", "presentation"}),
}


@dataclass
class GeneratorResult:
    """
    Result from a generator execution.

    Attributes:
        code_path: Relative path of the generated module
        test_path: Relative path of the generated test module
        files: Relative path -> content for every file produced
        warnings: Non-fatal problems (placeholders, lint)
    """

    code_path: str | None = None
    test_path: str | None = None
    files: dict[str, str] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    def add_code(self, path: str, content: str) -> None:
        """Record the generated module."""
        self.code_path = path
        self.files[path] = content

    def add_test(self, path: str, content: str) -> None:
        """Record the generated test module."""
        self.test_path = path
        self.files[path] = content

    def add_file(self, path: str, content: str) -> None:
        """Record an auxiliary file."""
        self.files[path] = content

    def add_warning(self, warning: str) -> None:
        """Record a warning."""
        if warning not in self.warnings:
            self.warnings.append(warning)


@dataclass
class GenerationContext:
    """
    Everything a generator may know beyond its own spec.

    Attributes:
        package: Top-level package name of the generated application
        specs: Known class specifications by class name (registry plus
            current batch, batch entries winning)
    """

    package: str = "app"
    specs: dict[str, ClassSpec] = field(default_factory=dict)

    def spec_for(self, class_name: str) -> ClassSpec | None:
        return self.specs.get(class_name)

    def owner_of(self, class_name: str) -> ClassSpec | None:
        """
        Spec whose module defines ``class_name``: the class's own spec, or
        the aggregate entity that holds it as items (``Cart`` for ``CartItem``).
        """
        spec = self.specs.get(class_name)
        if spec is not None:
            return spec

        from .domain import collection_shape

        for entity in self.specs_in(Layer.DOMAIN_ENTITY):
            try:
                shape = collection_shape(entity)
            except SchemaError:
                continue
            if shape is not None and shape.item == class_name:
                return entity
        return None

    def module_for(self, class_name: str) -> str | None:
        """Dotted module path of a known class, or None."""
        spec = self.owner_of(class_name)
        if spec is None:
            return None
        return layout.module_path(self.package, spec)

    def specs_in(self, *layers: Layer) -> list[ClassSpec]:
        """Known specs in the given layers, ordered by class name."""
        return sorted(
            (spec for spec in self.specs.values() if spec.layer in layers),
            key=lambda spec: spec.class_name,
        )

    def group(self, spec: ClassSpec) -> list[ClassSpec]:
        """Specs rendered into the same module as ``spec``, ordered by class name."""
        stem = layout.module_stem(spec)
        members = {
            other.class_name: other
            for other in self.specs_in(spec.layer)
            if layout.module_stem(other) == stem
        }
        members[spec.class_name] = spec
        return [members[name] for name in sorted(members)]

    def may_import(self, importer: ClassSpec, target: ClassSpec) -> bool:
        """Whether ``importer``'s layer may depend on ``target``'s layer."""
        return target.prefix in ALLOWED_IMPORTS[importer.prefix]


class LayerGenerator(ABC):
    """
    Base class for per-layer generators.

    A layer generator owns every layer value under one prefix and maps
    each to a handler method.

    Example:
        class DomainGenerator(LayerGenerator):
            prefix = LayerPrefix.DOMAIN

            def handlers(self):
                return {
                    Layer.DOMAIN_ENTITY: self.generate_entity,
                    Layer.DOMAIN_SERVICE: self.generate_service,
                }
    """

    prefix: ClassVar[LayerPrefix]

    def __init__(self, context: GenerationContext):
        """
        Initialize generator.

        Args:
            context: Batch-wide generation context
        """
        self.context = context

    @property
    def package(self) -> str:
        return self.context.package

    @abstractmethod
    def handlers(self) -> dict[Layer, Callable[[ClassSpec], GeneratorResult]]:
        """
        Get the handler for each layer value this generator owns.

        Returns:
            Mapping of layer -> handler
        """
        pass

    def generate(self, spec: ClassSpec) -> GeneratorResult:
        """
        Generate artifacts for one specification.

        Raises:
            RoutingError: If this generator has no handler for the layer
        """
        handler = self.handlers().get(spec.layer)
        if handler is None:
            raise RoutingError(
                f"{type(self).__name__} cannot generate layer '{spec.layer.value}'"
            )
        result = handler(spec)
        logger.debug("Generated %s -> %s", spec.class_name, result.code_path)
        return result

    def _result(self, spec: ClassSpec, code: str, test: str) -> GeneratorResult:
        """Package code and test content at their layout paths."""
        result = GeneratorResult()
        result.add_code(layout.code_path(self.package, spec), code)
        result.add_test(layout.test_path(spec), test)
        return result

    def _module(self, spec: ClassSpec) -> str:
        return layout.module_path(self.package, spec)


class GeneratorRegistry:
    """
    Registry for layer generators.

    Maps layer prefixes to generator implementations.
    """

    _generators: dict[str, type[LayerGenerator]] = {}

    @classmethod
    def register(cls, prefix: str, generator: type[LayerGenerator]) -> None:
        """Register a generator for a layer prefix."""
        cls._generators[prefix] = generator

    @classmethod
    def get(cls, prefix: str) -> type[LayerGenerator] | None:
        """Get the generator class for a prefix."""
        return cls._generators.get(prefix)

    @classmethod
    def list_prefixes(cls) -> list[str]:
        """List registered prefixes."""
        return list(cls._generators.keys())
