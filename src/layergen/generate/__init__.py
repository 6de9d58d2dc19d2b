"""
Layer generators for layergen.

Importing this package registers one generator per layer prefix.
"""

from layergen.core.spec import LayerPrefix

from .application import ApplicationGenerator
from .dispatch import Dispatcher
from .domain import DomainGenerator
from .generator import (
    ALLOWED_IMPORTS,
    GenerationContext,
    GeneratorRegistry,
    GeneratorResult,
    LayerGenerator,
)
from .infrastructure import InfrastructureGenerator
from .presentation import PresentationGenerator
from .support import support_files

GeneratorRegistry.register(LayerPrefix.DOMAIN, DomainGenerator)
GeneratorRegistry.register(LayerPrefix.APPLICATION, ApplicationGenerator)
GeneratorRegistry.register(LayerPrefix.INFRASTRUCTURE, InfrastructureGenerator)
GeneratorRegistry.register(LayerPrefix.PRESENTATION, PresentationGenerator)

__all__ = [
    "ALLOWED_IMPORTS",
    "ApplicationGenerator",
    "Dispatcher",
    "DomainGenerator",
    "GenerationContext",
    "GeneratorRegistry",
    "GeneratorResult",
    "InfrastructureGenerator",
    "LayerGenerator",
    "PresentationGenerator",
    "support_files",
]
