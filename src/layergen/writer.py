"""
File writers for generated artifacts.

The batch runner never touches the filesystem directly; it hands
``(path, content)`` pairs to a ``FileWriter``. Writers raise ``OSError``
on failure, which the runner records against the item being written.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class FileWriter(Protocol):
    """Anything that can persist a file given its relative path."""

    def write(self, path: str, content: str) -> None: ...


class FileSystemWriter:
    """
    Write files below a root directory.

    Parent directories are created as needed. Paths must stay inside the
    root; anything escaping it raises ``PermissionError``.
    """

    def __init__(self, root: Path):
        self.root = root

    def target(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if not target.is_relative_to(self.root.resolve()):
            raise PermissionError(f"Refusing to write outside {self.root}: {path}")
        return target

    def write(self, path: str, content: str) -> None:
        target = self.target(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        logger.debug("Wrote %s (%d bytes)", target, len(content))


class MemoryWriter:
    """Collect files in memory; used for dry runs and tests."""

    def __init__(self) -> None:
        self.files: dict[str, str] = {}

    def write(self, path: str, content: str) -> None:
        self.files[path] = content
        logger.debug("Buffered %s (%d bytes)", path, len(content))
