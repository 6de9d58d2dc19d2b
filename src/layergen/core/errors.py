"""
Error types for layergen validation, naming, routing and registry bookkeeping.

All of these are generator-time errors: the batch runner catches them per
item, records them against the offending ``class_name`` and moves on.
"""

from __future__ import annotations

from dataclasses import dataclass


class LayergenError(Exception):
    """Base exception for all layergen errors."""

    def __init__(self, message: str, context: ItemContext | None = None):
        self.message = message
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with context if available."""
        if self.context:
            return f"{self.context.format()}: {self.message}"
        return self.message

    def with_context(self, context: ItemContext) -> LayergenError:
        """Return a copy of this error bound to a batch item."""
        return type(self)(self.message, context)


class SchemaError(LayergenError):
    """
    Raised when a class specification has the wrong shape.

    Examples:
    - Missing ``class_name`` or ``layer``
    - ``layer`` outside the enumerated set
    - Attribute not parseable as ``name: type``
    - Use case dependency without the ``I`` prefix
    """

    pass


class NamingError(LayergenError):
    """
    Raised when no base name can be derived from a class name.

    Example: ``"Request"`` strips down to nothing.
    """

    pass


class RoutingError(LayergenError):
    """Raised when a layer prefix has no registered generator."""

    pass


class RegistryError(LayergenError):
    """
    Raised when a specification conflicts with the artifact registry.

    Example: re-submitting ``Cart`` as ``application/interface`` after it
    was registered as ``domain/entity``.
    """

    pass


class LayerViolationError(LayergenError):
    """Raised when a generated module imports from a layer it must not depend on."""

    pass


@dataclass(frozen=True)
class ItemContext:
    """
    Position of a batch item that produced an error.

    Attributes:
        index: Zero-based position in the input batch
        class_name: The item's class name, when it could be read
    """

    index: int
    class_name: str | None = None

    def format(self) -> str:
        """Format as ``item 2 (CartStore)``."""
        if self.class_name:
            return f"item {self.index} ({self.class_name})"
        return f"item {self.index}"
