"""
Artifact registry.

An idempotent map from class name to the artifacts last emitted for it,
persisted as JSON (``.layergen/registry.json`` by default). The registry
is what lets later batches reference classes generated by earlier ones:
it stores each class's validated specification alongside its paths.

Thread-safe: one lock per class name serializes work on that class and
one lock guards persistence.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict

from layergen.core.errors import RegistryError
from layergen.core.spec import ClassSpec, Layer

logger = logging.getLogger(__name__)

REGISTRY_VERSION = 1


class ArtifactDescriptor(BaseModel):
    """Where one class's artifacts were written and published."""

    code_path: str | None = None
    code_raw_url: str | None = None
    test_path: str | None = None
    test_raw_url: str | None = None

    model_config = ConfigDict(frozen=True)

    def output_fields(self) -> dict[str, str | None]:
        """The fields appended to a successful output item."""
        return self.model_dump()


class RegistryEntry(BaseModel):
    """One registered class."""

    class_name: str
    layer: Layer
    code_path: str | None = None
    code_raw_url: str | None = None
    test_path: str | None = None
    test_raw_url: str | None = None
    updated_at: str | None = None
    spec: dict[str, Any]

    def artifacts(self) -> ArtifactDescriptor:
        return ArtifactDescriptor(
            code_path=self.code_path,
            code_raw_url=self.code_raw_url,
            test_path=self.test_path,
            test_raw_url=self.test_raw_url,
        )

    def class_spec(self) -> ClassSpec:
        return ClassSpec.model_validate(self.spec)


class ArtifactRegistry:
    """
    Registry of generated classes.

    Example:
        registry = ArtifactRegistry.load(Path(".layergen/registry.json"))
        registry.check(spec)
        registry.record(spec, artifacts)
        registry.save()
    """

    def __init__(self, path: Path | None = None, entries: dict[str, RegistryEntry] | None = None):
        """
        Args:
            path: JSON file backing the registry; None keeps it in memory
            entries: Initial entries by class name
        """
        self.path = path
        self._entries: dict[str, RegistryEntry] = dict(entries or {})
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._persist_lock = threading.Lock()

    @classmethod
    def load(cls, path: Path) -> ArtifactRegistry:
        """
        Load a registry file; a missing file gives an empty registry.

        Raises:
            RegistryError: If the file is unreadable or of another version
        """
        if not path.exists():
            return cls(path)

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise RegistryError(f"Cannot read registry {path}: {e}") from e

        version = data.get("version")
        if version != REGISTRY_VERSION:
            raise RegistryError(
                f"Registry {path} has version {version!r}, expected {REGISTRY_VERSION}"
            )

        entries = {
            name: RegistryEntry.model_validate(raw)
            for name, raw in data.get("entries", {}).items()
        }
        logger.debug("Loaded %d registry entries from %s", len(entries), path)
        return cls(path, entries)

    def lock_for(self, class_name: str) -> threading.Lock:
        """Exclusive lock for one class name."""
        with self._locks_guard:
            lock = self._locks.get(class_name)
            if lock is None:
                lock = threading.Lock()
                self._locks[class_name] = lock
            return lock

    def get(self, class_name: str) -> RegistryEntry | None:
        return self._entries.get(class_name)

    def entries(self) -> list[RegistryEntry]:
        """All entries, ordered by class name."""
        return [self._entries[name] for name in sorted(self._entries)]

    def specs(self) -> dict[str, ClassSpec]:
        """Registered specifications by class name."""
        return {name: entry.class_spec() for name, entry in self._entries.items()}

    def __contains__(self, class_name: str) -> bool:
        return class_name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def check(self, spec: ClassSpec) -> None:
        """
        Check a specification against its registered entry.

        Raises:
            RegistryError: If the class is registered under another layer
        """
        entry = self._entries.get(spec.class_name)
        if entry is not None and entry.layer != spec.layer:
            raise RegistryError(
                f"{spec.class_name} is registered as {entry.layer.value}, "
                f"cannot re-register it as {spec.layer.value} "
                f"(run 'layergen registry forget {spec.class_name}' first)"
            )

    def record(self, spec: ClassSpec, artifacts: ArtifactDescriptor) -> RegistryEntry:
        """
        Insert or overwrite the entry for a class.

        An unchanged class keeps its entry, timestamp included, so re-running
        a batch leaves the registry file byte-identical.

        Raises:
            RegistryError: If the class is registered under another layer
        """
        self.check(spec)
        spec_data = spec.model_dump(mode="json")
        previous = self._entries.get(spec.class_name)
        if previous is not None and previous.artifacts() == artifacts and previous.spec == spec_data:
            return previous

        entry = RegistryEntry(
            class_name=spec.class_name,
            layer=spec.layer,
            **artifacts.model_dump(),
            updated_at=datetime.now(UTC).isoformat(timespec="seconds"),
            spec=spec_data,
        )
        self._entries[spec.class_name] = entry
        return entry

    def forget(self, class_name: str) -> RegistryEntry | None:
        """Drop an entry; returns it, or None when it was not registered."""
        return self._entries.pop(class_name, None)

    def clear(self) -> None:
        self._entries.clear()

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": REGISTRY_VERSION,
            "entries": {
                name: self._entries[name].model_dump(mode="json") for name in sorted(self._entries)
            },
        }

    def save(self) -> None:
        """Persist the registry atomically; no-op for an in-memory registry."""
        if self.path is None:
            return
        with self._persist_lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(json.dumps(self.to_dict(), indent=2) + "\n", encoding="utf-8")
            tmp.replace(self.path)
        logger.debug("Saved %d registry entries to %s", len(self._entries), self.path)
