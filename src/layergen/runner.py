"""
Batch runner.

Drives one batch of raw class specifications through the pipeline:

    validate -> resolve -> registry check -> dispatch/generate -> verify
    -> write -> publish -> record

Failures are per item: an item that fails at any stage is reported with
its index and class name, gets no artifact fields, and never stops the
rest of the batch.
"""

from __future__ import annotations

import logging
import shutil
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from layergen.core.errors import ItemContext, LayergenError, LayerViolationError
from layergen.core.naming import resolve
from layergen.core.spec import ClassSpec
from layergen.core.validator import lint, validate
from layergen.generate import Dispatcher, GenerationContext, GeneratorResult, support_files

from .config import CONFIG_FILENAME, LayergenConfig, load_config
from .publish import Publisher
from .registry import ArtifactDescriptor, ArtifactRegistry
from .verify import verify
from .writer import FileSystemWriter, FileWriter, MemoryWriter

logger = logging.getLogger(__name__)


@dataclass
class BatchError:
    """
    One failed batch item.

    Attributes:
        index: Position in the input batch (None for run-level failures)
        class_name: The item's class name, when it could be read
        error_type: Exception class name, e.g. ``SchemaError``
        message: Human-readable description
    """

    index: int | None
    class_name: str | None
    error_type: str
    message: str

    @classmethod
    def from_exception(cls, index: int | None, class_name: str | None, exc: Exception) -> BatchError:
        message = exc.message if isinstance(exc, LayergenError) else str(exc)
        return cls(index=index, class_name=class_name, error_type=type(exc).__name__, message=message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "class_name": self.class_name,
            "error_type": self.error_type,
            "message": self.message,
        }

    def format(self) -> str:
        where = "run" if self.index is None else ItemContext(self.index, self.class_name).format()
        return f"{where}: [{self.error_type}] {self.message}"


@dataclass
class BatchResult:
    """
    Result of a batch run.

    Attributes:
        items: The input items, successful ones extended with artifact fields
        errors: One record per failed item
        warnings: Lint, placeholder and superseded-item warnings
        written: Relative paths written, in write order
        artifacts: Artifact descriptors of successful items by class name
    """

    items: list[Any] = field(default_factory=list)
    errors: list[BatchError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    written: list[str] = field(default_factory=list)
    artifacts: dict[str, ArtifactDescriptor] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        """Check if every item succeeded."""
        return not self.errors

    @property
    def failed_indexes(self) -> set[int]:
        return {error.index for error in self.errors if error.index is not None}

    def add_warning(self, message: str) -> None:
        if message not in self.warnings:
            self.warnings.append(message)

    def summary(self) -> str:
        """Get a one-line summary of the run."""
        return (
            f"{len(self.artifacts)} classes generated, {len(self.errors)} failed, "
            f"{len(self.written)} files written, {len(self.warnings)} warnings"
        )


class BatchRunner:
    """
    Runs class specification batches against a project.

    Example:
        runner = BatchRunner(Path("."))
        result = runner.run(json.loads(Path("batch.json").read_text()))
        print(result.summary())
    """

    def __init__(
        self,
        project_root: Path,
        config: LayergenConfig | None = None,
        writer: FileWriter | None = None,
        registry: ArtifactRegistry | None = None,
        dry_run: bool = False,
    ):
        """
        Initialize runner.

        Args:
            project_root: Directory holding ``layergen.toml`` and the registry
            config: Configuration (loaded from ``layergen.toml`` if not provided)
            writer: File writer (filesystem below the output directory by default)
            registry: Artifact registry (loaded from the configured path by default)
            dry_run: Buffer files in memory and leave the registry file untouched
        """
        self.project_root = project_root

        if config is None:
            config = load_config(project_root / CONFIG_FILENAME)
        self.config = config
        self.output_dir = config.get_output_path(project_root)
        self.dry_run = dry_run

        if writer is None:
            writer = MemoryWriter() if dry_run else FileSystemWriter(self.output_dir)
        self.writer = writer

        if registry is None:
            registry = ArtifactRegistry.load(config.get_registry_path(project_root))
        self.registry = registry
        self.publisher = Publisher(config.publish.raw_url_base)

    @property
    def package(self) -> str:
        return self.config.generation.package

    def run(self, batch: list[Any]) -> BatchResult:
        """
        Run one batch.

        Args:
            batch: Decoded JSON array of class specifications

        Returns:
            BatchResult with the output items and any per-item errors
        """
        result = BatchResult()

        if self.config.generation.clean and not self.dry_run:
            self._clean()

        specs = self._validate_all(batch, result)
        winners = self._dedupe(specs, result)
        generated = self._generate_all(winners, result)

        for index, spec, gen_result in generated:
            artifacts = self._write_item(index, spec, gen_result, result)
            if artifacts is not None:
                self.registry.record(spec, artifacts)
                result.artifacts[spec.class_name] = artifacts

        self._write_support_files(result)

        if not self.dry_run:
            self.registry.save()

        result.items = self._output_items(batch, specs, result)

        for error in result.errors:
            logger.warning("%s", error.format())
        logger.info("Batch finished: %s", result.summary())
        return result

    def _clean(self) -> None:
        """Remove the output directory and forget every registered class."""
        if self.output_dir.exists():
            shutil.rmtree(self.output_dir)
        self.registry.clear()
        logger.info("Cleaned %s and the registry", self.output_dir)

    def _validate_all(self, batch: list[Any], result: BatchResult) -> dict[int, ClassSpec]:
        """Validate, resolve and registry-check every item."""
        specs: dict[int, ClassSpec] = {}
        for index, raw in enumerate(batch):
            class_name = raw.get("class_name") if isinstance(raw, dict) else None
            if not isinstance(class_name, str):
                class_name = None
            try:
                spec = validate(raw)
                resolve(spec.class_name)
                self.registry.check(spec)
            except LayergenError as e:
                result.errors.append(BatchError.from_exception(index, class_name, e))
                continue

            for warning in lint(spec, raw):
                result.add_warning(warning)
            specs[index] = spec
        return specs

    def _dedupe(self, specs: dict[int, ClassSpec], result: BatchResult) -> list[tuple[int, ClassSpec]]:
        """Keep the last occurrence of each class name."""
        last: dict[str, int] = {}
        for index, spec in specs.items():
            last[spec.class_name] = index

        winners = []
        for index, spec in specs.items():
            winner = last[spec.class_name]
            if index == winner:
                winners.append((index, spec))
            else:
                result.add_warning(
                    f"{spec.class_name}: item {index} superseded by item {winner}"
                )
        return winners

    def _context(self, specs: list[ClassSpec]) -> GenerationContext:
        known = self.registry.specs()
        known.update({spec.class_name: spec for spec in specs})
        return GenerationContext(package=self.package, specs=known)

    def _generate_all(
        self, winners: list[tuple[int, ClassSpec]], result: BatchResult
    ) -> list[tuple[int, ClassSpec, GeneratorResult]]:
        """
        Generate every winning item.

        Items that fail are dropped from the generation context and the
        rest are regenerated, so no artifact references a class whose
        module was never written.
        """
        pending = list(winners)
        while True:
            context = self._context([spec for _, spec in pending])
            dispatcher = Dispatcher(context)
            outcomes = self._map(
                lambda item: self._generate_item(dispatcher, item[1]),
                pending,
            )

            generated = []
            failures = []
            for (index, spec), outcome in zip(pending, outcomes, strict=True):
                if isinstance(outcome, Exception):
                    failures.append(BatchError.from_exception(index, spec.class_name, outcome))
                else:
                    generated.append((index, spec, outcome))

            if not failures:
                break
            result.errors.extend(failures)
            failed = {error.index for error in failures}
            pending = [(index, spec) for index, spec in pending if index not in failed]
            if not pending:
                break

        for _, spec, gen_result in generated:
            for warning in gen_result.warnings:
                result.add_warning(warning if warning.startswith(spec.class_name) else f"{spec.class_name}: {warning}")
        return generated

    def _map(self, fn: Any, items: list[tuple[int, ClassSpec]]) -> list[GeneratorResult | Exception]:
        workers = self.config.generation.workers
        if workers <= 1 or len(items) <= 1:
            return [fn(item) for item in items]
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="layergen") as executor:
            return list(executor.map(fn, items))

    def _generate_item(self, dispatcher: Dispatcher, spec: ClassSpec) -> GeneratorResult | Exception:
        """
        Generate and verify one item; errors are returned, not raised.

        Anything other than a ``LayergenError`` is a generator defect; it is
        logged with its traceback and still only fails this item.
        """
        try:
            with self.registry.lock_for(spec.class_name):
                gen_result = dispatcher.generate(spec)
            verification = verify(self.package, gen_result.files)
            if not verification.verified:
                raise LayerViolationError(
                    "; ".join(violation.format() for violation in verification.violations)
                )
        except LayergenError as e:
            return e
        except Exception as e:
            logger.exception("Unexpected error generating %s", spec.class_name)
            return e
        return gen_result

    def _write_item(
        self, index: int, spec: ClassSpec, gen_result: GeneratorResult, result: BatchResult
    ) -> ArtifactDescriptor | None:
        try:
            for path in sorted(gen_result.files):
                self.writer.write(path, gen_result.files[path])
                result.written.append(path)
        except OSError as e:
            result.errors.append(BatchError.from_exception(index, spec.class_name, e))
            return None

        return ArtifactDescriptor(
            code_path=gen_result.code_path,
            code_raw_url=self.publisher.url_for(gen_result.code_path),
            test_path=gen_result.test_path,
            test_raw_url=self.publisher.url_for(gen_result.test_path),
        )

    def _write_support_files(self, result: BatchResult) -> None:
        """Re-render the shared support modules from the updated registry."""
        context = GenerationContext(package=self.package, specs=self.registry.specs())
        try:
            for path, content in sorted(support_files(context).items()):
                self.writer.write(path, content)
                result.written.append(path)
        except OSError as e:
            result.errors.append(BatchError.from_exception(None, None, e))

    def _output_items(
        self, batch: list[Any], specs: dict[int, ClassSpec], result: BatchResult
    ) -> list[Any]:
        """The input batch, successful items extended with artifact fields."""
        failed = result.failed_indexes
        items = []
        for index, raw in enumerate(batch):
            spec = specs.get(index)
            artifacts = result.artifacts.get(spec.class_name) if spec else None
            if isinstance(raw, dict) and artifacts is not None and index not in failed:
                items.append({**raw, **artifacts.output_fields()})
            else:
                items.append(raw)
        return items
