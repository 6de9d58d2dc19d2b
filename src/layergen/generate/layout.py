"""
Output layout: where each layer's artifacts live.

Paths are pure functions of the class specification and the target
package name, which is what makes re-runs overwrite rather than
duplicate.
"""

from __future__ import annotations

from layergen.core.naming import interface_module_name, layer_base, resolve
from layergen.core.spec import ClassSpec, Layer
from layergen.core.strings import to_snake

LAYER_DIRS: dict[Layer, str] = {
    Layer.DOMAIN_ENTITY: "domain/entities",
    Layer.DOMAIN_SERVICE: "domain/services",
    Layer.APPLICATION_INTERFACE: "application/interfaces",
    Layer.APPLICATION_USE_CASE: "application/use_cases",
    Layer.APPLICATION_STORE: "application/stores",
    Layer.INFRASTRUCTURE_MODEL: "infrastructure/models",
    Layer.INFRASTRUCTURE_REPOSITORY: "infrastructure/repositories",
    Layer.INFRASTRUCTURE_ADAPTER: "infrastructure/adapters",
    Layer.PRESENTATION_SCHEMA: "presentation/schemas",
    Layer.PRESENTATION_DEPENDENCY: "presentation/dependencies",
    Layer.PRESENTATION_ROUTER: "presentation/routers",
    Layer.PRESENTATION_COMPONENT: "presentation/components",
    Layer.PRESENTATION_HOOK: "presentation/hooks",
}

# Trailing tokens dropped before resolving the base of grouped modules
DEPENDENCY_TOKENS = ("Dependencies", "Dependency", "Providers", "Deps")
ROUTER_TOKENS = ("Router", "Routes", "Controller")


def module_stem(spec: ClassSpec) -> str:
    """
    Module file stem for a specification.

    Schemas, dependency providers and routers are grouped per base name
    (``CreateProductRequest`` and ``CreateProductResponse`` share
    ``product``); every other layer gets one module per class.
    """
    if spec.layer == Layer.APPLICATION_INTERFACE:
        return interface_module_name(spec.class_name)
    if spec.layer == Layer.PRESENTATION_SCHEMA:
        return resolve(spec.class_name).snake_base
    if spec.layer == Layer.PRESENTATION_DEPENDENCY:
        return layer_base(spec.class_name, *DEPENDENCY_TOKENS).snake_base
    if spec.layer == Layer.PRESENTATION_ROUTER:
        return layer_base(spec.class_name, *ROUTER_TOKENS).snake_base
    return to_snake(spec.class_name)


def code_path(package: str, spec: ClassSpec) -> str:
    """Relative path of the generated module, e.g. ``app/domain/entities/cart.py``."""
    return f"{package}/{LAYER_DIRS[spec.layer]}/{module_stem(spec)}.py"


def test_path(spec: ClassSpec) -> str:
    """Relative path of the generated test module."""
    return f"tests/{LAYER_DIRS[spec.layer]}/test_{module_stem(spec)}.py"


def module_path(package: str, spec: ClassSpec) -> str:
    """Dotted import path of the generated module."""
    return f"{package}.{LAYER_DIRS[spec.layer].replace('/', '.')}.{module_stem(spec)}"


def layer_package(package: str, layer: Layer) -> str:
    """Dotted package path of a layer directory."""
    return f"{package}.{LAYER_DIRS[layer].replace('/', '.')}"
