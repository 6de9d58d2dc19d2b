"""Shared fixtures for layergen unit tests."""

from __future__ import annotations

import copy
import importlib
import sys
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest

from layergen.config import GenerationConfig, LayergenConfig
from layergen.runner import BatchResult, BatchRunner

GENERATED_PACKAGE = "app"

# A small shop: one aggregate, its port, use case, optimistic store,
# storage, an HTTP adapter and the presentation pieces on top.
CART_BATCH: list[dict[str, Any]] = [
    {
        "class_name": "Cart",
        "layer": "domain/entity",
        "type": "aggregate",
        "description": "Shopping cart of one user",
        "attributes": ["productId: string", "quantity: number"],
        "methods": [
            {"method_name": "addItem", "parameters": ["productId: string", "quantity: number"]},
            {"method_name": "removeItem", "parameters": ["productId: string"]},
        ],
    },
    {
        "class_name": "Product",
        "layer": "domain/entity",
        "type": "entity",
        "attributes": ["id: string", "name: string", "price: number", "status: string = 'draft'"],
        "metadata": {"allowed_values": {"status": ["draft", "active"]}},
    },
    {
        "class_name": "PricingService",
        "layer": "domain/service",
        "type": "service",
        "methods": [
            {
                "method_name": "applyDiscount",
                "parameters": ["price: number", "percent: number"],
                "return_type": "number",
            }
        ],
    },
    {
        "class_name": "ICartRepository",
        "layer": "application/interface",
        "type": "port",
        "methods": [
            {"method_name": "getCart", "parameters": ["userId: string"], "return_type": "Cart | null"},
            {"method_name": "saveCart", "parameters": ["userId: string", "cart: Cart"], "return_type": "void"},
        ],
    },
    {
        "class_name": "AddToCartUseCase",
        "layer": "application/use_case",
        "type": "command",
        "dependencies": ["ICartRepository"],
        "methods": [
            {
                "method_name": "execute",
                "parameters": ["userId: string", "productId: string", "quantity: number"],
                "return_type": "Cart",
            }
        ],
    },
    {
        "class_name": "CartStore",
        "layer": "application/store",
        "type": "store",
        "attributes": ["itemCount: int", "total: number"],
        "metadata": {"item": "CartItem", "use_cases": {"addToCartOptimistic": "AddToCartUseCase"}},
        "methods": [
            {
                "method_name": "addToCartOptimistic",
                "parameters": ["userId: string", "productId: string", "quantity: number"],
            },
            {"method_name": "removeFromCart", "parameters": ["userId: string", "productId: string"]},
        ],
    },
    {
        "class_name": "CartRepository",
        "layer": "infrastructure/repository",
        "type": "repository",
        "metadata": {"interface": "ICartRepository", "entity": "Cart"},
    },
    {
        "class_name": "CartModel",
        "layer": "infrastructure/model",
        "type": "model",
        "attributes": ["id: int", "userId: int", "createdAt: datetime"],
    },
    {
        "class_name": "IPaymentGateway",
        "layer": "application/interface",
        "type": "port",
        "methods": [
            {
                "method_name": "charge",
                "parameters": ["orderId: string", "amount: number"],
                "return_type": "string",
            }
        ],
    },
    {
        "class_name": "StripePaymentGateway",
        "layer": "infrastructure/adapter",
        "type": "adapter",
        "dependencies": ["IPaymentGateway"],
        "attributes": ["currency: string = 'usd'"],
        "metadata": {"endpoints": {"charge": "/orders/{orderId}/charges"}},
    },
    {
        "class_name": "AddToCartRequest",
        "layer": "presentation/schema",
        "type": "schema",
        "attributes": ["userId: string", "productId: string", "quantity: number"],
    },
    {
        "class_name": "AddToCartResponse",
        "layer": "presentation/schema",
        "type": "schema",
        "attributes": ["itemCount: int"],
    },
    {
        "class_name": "CartDependencies",
        "layer": "presentation/dependency",
        "type": "dependency",
        "attributes": ["addToCart: AddToCartUseCase"],
    },
    {
        "class_name": "CartRouter",
        "layer": "presentation/router",
        "type": "router",
        "metadata": {"use_cases": {"addToCart": "AddToCartUseCase", "getCart": "GetCartUseCase"}},
        "methods": [
            {
                "method_name": "addToCart",
                "parameters": ["userId: string", "productId: string", "quantity: number"],
                "return_type": "AddToCartResponse",
            },
            {"method_name": "getCart", "parameters": ["userId: string"], "return_type": "GetCartResponse"},
        ],
    },
    {
        "class_name": "useCart",
        "layer": "presentation/hook",
        "type": "hook",
        "metadata": {"store": "CartStore"},
    },
    {
        "class_name": "CartView",
        "layer": "presentation/component",
        "type": "component",
        "attributes": ["title: string = 'Cart'"],
        "metadata": {"hook": "useCart", "handlers": {"onAdd": "addToCartOptimistic"}},
        "methods": [{"method_name": "onAdd", "parameters": ["productId: string", "quantity: number"]}],
    },
]


def purge_modules(package: str) -> None:
    """Drop a generated package from ``sys.modules`` so the next import reads it fresh."""
    for name in list(sys.modules):
        if name == package or name.startswith(f"{package}."):
            del sys.modules[name]


@pytest.fixture
def batch_item() -> Callable[[str], dict[str, Any]]:
    """Look up a copy of one item of the cart batch by class name."""

    def lookup(class_name: str) -> dict[str, Any]:
        for item in CART_BATCH:
            if item["class_name"] == class_name:
                return copy.deepcopy(item)
        raise KeyError(class_name)

    return lookup


@pytest.fixture
def cart_batch() -> list[dict[str, Any]]:
    """Return a fresh copy of the cart batch."""
    return copy.deepcopy(CART_BATCH)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Create an empty project directory."""
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def make_runner(project: Path) -> Callable[..., BatchRunner]:
    """Build runners over the temporary project, with generation overrides."""

    def factory(dry_run: bool = False, **generation: Any) -> BatchRunner:
        config = LayergenConfig(generation=GenerationConfig(**generation))
        return BatchRunner(project, config, dry_run=dry_run)

    return factory


@pytest.fixture
def generate_app(
    make_runner: Callable[..., BatchRunner],
    monkeypatch: pytest.MonkeyPatch,
) -> Iterator[Callable[[list[dict[str, Any]]], BatchResult]]:
    """
    Run a batch to disk and put the generated package on ``sys.path``.

    Each call purges previously imported generated modules, so tests see
    exactly the code written by their own batch.
    """

    def run(batch: list[dict[str, Any]]) -> BatchResult:
        runner = make_runner()
        result = runner.run(batch)
        monkeypatch.syspath_prepend(str(runner.output_dir))
        purge_modules(GENERATED_PACKAGE)
        importlib.invalidate_caches()
        return result

    yield run
    purge_modules(GENERATED_PACKAGE)


@pytest.fixture
def cart_app(generate_app: Callable[[list[dict[str, Any]]], BatchResult], cart_batch) -> BatchResult:
    """Generate the cart batch and make ``app`` importable."""
    result = generate_app(cart_batch)
    assert result.success, [error.format() for error in result.errors]
    return result
