"""
Layer verification for generated modules.

Scans generated source for imports that break the dependency direction
(Presentation -> Application -> Domain; Infrastructure implements
Application ports). Works on file contents rather than the output
directory so dry runs are verified too.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from layergen.generate.generator import ALLOWED_IMPORTS

LAYERS = tuple(ALLOWED_IMPORTS)


@dataclass
class Violation:
    path: str
    line: int
    layer: str
    imported: str
    statement: str

    def format(self) -> str:
        return (
            f"{self.path}:{self.line}: {self.layer} layer must not import "
            f"{self.imported}: {self.statement}"
        )


@dataclass
class VerificationResult:
    """Result of scanning a set of generated files."""

    violations: list[Violation] = field(default_factory=list)

    @property
    def verified(self) -> bool:
        return not self.violations


def forbidden_patterns(package: str, layer: str) -> list[tuple[str, re.Pattern[str]]]:
    """Import patterns a module in ``layer`` must not contain, by target layer."""
    pkg = re.escape(package)
    return [
        (
            target,
            re.compile(
                rf"^[ \t]*(?:from\s+{pkg}\.{target}\b[\w.]*\s+import\b.*"
                rf"|import\s+{pkg}\.{target}\b.*)$",
                re.MULTILINE,
            ),
        )
        for target in LAYERS
        if target not in ALLOWED_IMPORTS[layer]
    ]


def layer_of(package: str, path: str) -> str | None:
    """Layer owning a generated path (``app/domain/...`` -> ``domain``)."""
    parts = path.split("/")
    if len(parts) < 3 or parts[0] != package or parts[1] not in ALLOWED_IMPORTS:
        return None
    return parts[1]


def verify_source(package: str, path: str, content: str) -> list[Violation]:
    """Scan one module for forbidden imports."""
    layer = layer_of(package, path)
    if layer is None or not path.endswith(".py"):
        return []

    violations = []
    for target, pattern in forbidden_patterns(package, layer):
        for match in pattern.finditer(content):
            line_num = content[: match.start()].count("\n") + 1
            violations.append(
                Violation(
                    path=path,
                    line=line_num,
                    layer=layer,
                    imported=target,
                    statement=match.group().strip(),
                )
            )
    return violations


def verify(package: str, files: dict[str, str]) -> VerificationResult:
    """
    Verify that generated modules respect the layer import rules.

    Args:
        package: Generated package name
        files: Relative path -> content

    Returns:
        VerificationResult listing every violation
    """
    result = VerificationResult()
    for path in sorted(files):
        result.violations.extend(verify_source(package, path, files[path]))
    return result
