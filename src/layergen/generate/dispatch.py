"""
Dispatcher: selects the layer generator for a specification.

Routing depends only on the prefix of ``spec.layer``; the specification
is handed to the generator unmodified.
"""

from __future__ import annotations

import logging

from layergen.core.errors import RoutingError
from layergen.core.spec import ClassSpec

from .generator import GenerationContext, GeneratorRegistry, GeneratorResult, LayerGenerator

logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Route class specifications to per-layer generators.

    One generator instance is kept per prefix for the lifetime of the
    dispatcher, all sharing the same generation context.
    """

    def __init__(self, context: GenerationContext):
        self.context = context
        self._generators: dict[str, LayerGenerator] = {}

    def route(self, spec: ClassSpec) -> LayerGenerator:
        """
        Select the generator for a specification.

        Raises:
            RoutingError: If no generator is registered for the layer prefix
        """
        prefix = spec.layer.prefix
        generator = self._generators.get(prefix)
        if generator is None:
            generator_class = GeneratorRegistry.get(prefix)
            if generator_class is None:
                available = ", ".join(sorted(GeneratorRegistry.list_prefixes())) or "none"
                raise RoutingError(f"No generator for layer prefix '{prefix}' (available: {available})")
            generator = generator_class(self.context)
            self._generators[prefix] = generator
        logger.debug("Routing %s (%s) to %s", spec.class_name, spec.layer.value, type(generator).__name__)
        return generator

    def generate(self, spec: ClassSpec) -> GeneratorResult:
        """Route and generate in one step."""
        return self.route(spec).generate(spec)
