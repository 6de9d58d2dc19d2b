"""
Module builder for generated Python source.

Collects imports, resolves references to other generated classes and
emits local placeholder definitions for references that cannot be
imported, so every generated module is importable on its own.
"""

from __future__ import annotations

from enum import StrEnum

from layergen.core.naming import is_interface_name
from layergen.core.spec import ClassSpec

from .generator import GenerationContext
from .types import TypeRef, translate

GENERATED_NOTICE = "Generated by layergen - DO NOT EDIT."
PLACEHOLDER_MARKER = "# layergen: placeholder"

STDLIB_MODULES = frozenset(
    {
        "abc",
        "asyncio",
        "collections",
        "copy",
        "dataclasses",
        "datetime",
        "decimal",
        "enum",
        "functools",
        "logging",
        "typing",
        "uuid",
    }
)


class PlaceholderKind(StrEnum):
    """Shapes of stand-in definitions for missing types."""

    TYPE = "type"
    PORT = "port"
    USE_CASE = "use_case"
    SCHEMA = "schema"


def placeholder_source(name: str, kind: PlaceholderKind) -> str:
    """Source of a placeholder definition for a missing type."""
    doc = f'"""Auto-generated placeholder for {name}; safe to remove once the real type exists."""'

    if kind == PlaceholderKind.SCHEMA:
        return "\n".join(
            [
                f"class {name}(BaseModel):  {PLACEHOLDER_MARKER}",
                f"    {doc}",
                "",
                '    model_config = ConfigDict(extra="allow")',
            ]
        )

    if kind == PlaceholderKind.USE_CASE:
        return "\n".join(
            [
                f"class {name}:  {PLACEHOLDER_MARKER}",
                f"    {doc}",
                "",
                "    def __init__(self, *args: Any, **kwargs: Any) -> None:",
                "        pass",
                "",
                "    async def execute(self, *args: Any, **kwargs: Any) -> Any:",
                f'        raise NotImplementedError("{name} is a placeholder")',
            ]
        )

    if kind == PlaceholderKind.PORT:
        return "\n".join(
            [
                f"class {name}:  {PLACEHOLDER_MARKER}",
                f"    {doc}",
                "",
                "    def __getattr__(self, name: str) -> Any:",
                "        def missing(*args: Any, **kwargs: Any) -> Any:",
                f'            raise NotImplementedError(f"{name}.{{name}} is a placeholder")',
                "",
                "        return missing",
            ]
        )

    return "\n".join(
        [
            f"class {name}:  {PLACEHOLDER_MARKER}",
            f"    {doc}",
            "",
            "    def __init__(self, **fields: Any) -> None:",
            "        self.__dict__.update(fields)",
        ]
    )


class ModuleBuilder:
    """
    Build the source of one generated module.

    Example:
        builder = ModuleBuilder(context, spec, "Cart entity.")
        ref = builder.type("CartItem[]")      # imports or stands in CartItem
        builder.import_from("dataclasses", "dataclass")
        source = builder.render([class_block])
    """

    def __init__(self, context: GenerationContext, spec: ClassSpec, docstring: str):
        self.context = context
        self.spec = spec
        self.docstring = docstring
        self.warnings: list[str] = []
        self._from_imports: dict[str, set[str]] = {}
        self._imports: set[str] = set()
        self._placeholders: dict[str, PlaceholderKind] = {}
        self._local: set[str] = {spec.class_name}

    def import_from(self, module: str, *names: str) -> None:
        """Add ``from module import names``."""
        self._from_imports.setdefault(module, set()).update(names)

    def import_module(self, module: str) -> None:
        """Add ``import module``."""
        self._imports.add(module)

    def define(self, *names: str) -> None:
        """Declare names defined by this module itself."""
        self._local.update(names)

    def type(self, expr: str | None, kind: PlaceholderKind | None = None) -> TypeRef:
        """
        Translate a type expression and make every name it uses available.
        """
        ref = translate(expr)
        for module, name in ref.imports:
            self.import_from(module, name)
        for name in ref.references:
            self.require(name, kind)
        return ref

    def require(self, name: str, kind: PlaceholderKind | None = None) -> str:
        """
        Make a class name available: import it when it is a known class in a
        layer this module may depend on, otherwise define a placeholder.

        Returns:
            The name to use in generated code
        """
        if name in self._local or name in self._placeholders:
            return name

        target = self.context.owner_of(name)
        if target is not None and self.context.may_import(self.spec, target):
            module = self.context.module_for(name)
            if module is not None:
                self.import_from(module, name)
                return name

        if target is not None:
            self.warnings.append(
                f"{self.spec.class_name}: {name} lives in {target.layer.value}, which "
                f"{self.spec.layer.value} may not import; using a placeholder"
            )
        else:
            self.warnings.append(f"{self.spec.class_name}: {name} is not known; using a placeholder")

        if kind is None:
            kind = PlaceholderKind.PORT if is_interface_name(name) else PlaceholderKind.TYPE
        self._placeholders[name] = kind
        if kind == PlaceholderKind.SCHEMA:
            self.import_from("pydantic", "BaseModel", "ConfigDict")
        else:
            self.import_from("typing", "Any")
        return name

    def is_placeholder(self, name: str) -> bool:
        return name in self._placeholders

    @property
    def placeholders(self) -> list[str]:
        return sorted(self._placeholders)

    def _import_block(self) -> list[str]:
        package = self.context.package
        groups: dict[str, list[str]] = {"stdlib": [], "third_party": [], "local": []}

        def group_of(module: str) -> str:
            root = module.split(".", 1)[0]
            if root == package:
                return "local"
            if root in STDLIB_MODULES:
                return "stdlib"
            return "third_party"

        for module in sorted(self._imports):
            groups[group_of(module)].append(f"import {module}")
        for module in sorted(self._from_imports):
            names = ", ".join(sorted(self._from_imports[module]))
            groups[group_of(module)].append(f"from {module} import {names}")

        lines: list[str] = []
        for key in ("stdlib", "third_party", "local"):
            if groups[key]:
                if lines:
                    lines.append("")
                lines.extend(sorted(groups[key], key=lambda line: line.split()[1]))
        return lines

    def render(self, blocks: list[str]) -> str:
        """
        Render the complete module.

        Args:
            blocks: Top-level definitions, each separated by two blank lines

        Returns:
            Module source ending with a newline
        """
        parts = [f'"""\n{self.docstring}\n\n{GENERATED_NOTICE}\n"""', "from __future__ import annotations"]

        imports = self._import_block()
        if imports:
            parts.append("\n".join(imports))

        sections: list[str] = []
        if self._placeholders:
            sections.append(
                "# Auto-generated placeholders: safe to remove once the real types exist."
            )
            sections.extend(
                placeholder_source(name, self._placeholders[name]) for name in self.placeholders
            )
        sections.extend(block.rstrip() for block in blocks if block.strip())

        source = "\n\n".join(parts)
        if sections:
            source += "\n\n\n" + "\n\n\n".join(sections)
        return source + "\n"
