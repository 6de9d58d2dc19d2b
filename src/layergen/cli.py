"""
layergen command line interface.

Commands:
- generate: Run a batch of class specifications
- validate: Validate and lint a batch without generating
- names: Show the names the resolver derives for class names
- registry: Inspect or drop registered classes
- gate: Apply the coverage gate to a test report
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Annotated, Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from layergen import __version__
from layergen.config import CONFIG_FILENAME, LayergenConfig, load_config
from layergen.core.errors import LayergenError
from layergen.core.naming import resolve
from layergen.core.validator import lint, validate
from layergen.gate import TestReport, check
from layergen.registry import ArtifactRegistry
from layergen.runner import BatchRunner

app = typer.Typer(
    help="layergen - generate layered Python applications from JSON class specifications",
    no_args_is_help=True,
)
registry_app = typer.Typer(
    help="Inspect the artifact registry",
    no_args_is_help=True,
)
app.add_typer(registry_app, name="registry")

console = Console()
err_console = Console(stderr=True)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"layergen {__version__}")
        raise typer.Exit()


def configure_logging(verbose: bool = False) -> None:
    """Configure root logging from ``--verbose`` or ``LAYERGEN_LOG_LEVEL``."""
    if verbose:
        level = logging.DEBUG
    else:
        name = os.getenv("LAYERGEN_LOG_LEVEL", "WARNING").upper()
        level = getattr(logging, name, logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option("--verbose", "-V", help="Enable debug logging")] = False,
    version: Annotated[
        bool | None,
        typer.Option("--version", callback=_version_callback, is_eager=True, help="Show version"),
    ] = None,
) -> None:
    """layergen CLI main callback for global options."""
    configure_logging(verbose)


def _load_batch(path: Path) -> list[Any]:
    """Load a JSON array of class specifications."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        typer.echo(f"Cannot read {path}: {e}", err=True)
        raise typer.Exit(code=1)
    except json.JSONDecodeError as e:
        typer.echo(f"{path} is not valid JSON: {e}", err=True)
        raise typer.Exit(code=1)

    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        typer.echo(f"{path} must contain a JSON array of class specifications", err=True)
        raise typer.Exit(code=1)
    return data


def _load_config(project_dir: Path, config_path: Path | None) -> LayergenConfig:
    toml_path = config_path or project_dir / CONFIG_FILENAME
    try:
        return load_config(toml_path)
    except (ValueError, ValidationError) as e:
        typer.echo(f"Invalid configuration in {toml_path}: {e}", err=True)
        raise typer.Exit(code=1)


def _load_registry(project_dir: Path, config_path: Path | None) -> ArtifactRegistry:
    config = _load_config(project_dir, config_path)
    try:
        return ArtifactRegistry.load(config.get_registry_path(project_dir))
    except LayergenError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


ProjectOption = Annotated[
    Path,
    typer.Option("--project", "-p", help="Project directory (default: current directory)"),
]
ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Configuration file (default: <project>/layergen.toml)"),
]


@app.command(name="generate")
def generate_command(
    batch: Annotated[Path, typer.Argument(help="JSON file with an array of class specifications")],
    project_dir: ProjectOption = Path("."),
    config_path: ConfigOption = None,
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Output directory (overrides config)")
    ] = None,
    package: Annotated[
        str | None, typer.Option("--package", help="Generated package name (overrides config)")
    ] = None,
    workers: Annotated[
        int | None, typer.Option("--workers", "-w", min=1, help="Worker threads (overrides config)")
    ] = None,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", "-n", help="Generate in memory without writing files")
    ] = False,
    result_path: Annotated[
        Path | None,
        typer.Option("--result", "-r", help="Write the output JSON here instead of stdout"),
    ] = None,
) -> None:
    """
    Generate code for a batch of class specifications.

    Examples:
        layergen generate batch.json
        layergen generate batch.json --dry-run
        layergen generate batch.json -o ./generated --package shop
        layergen generate batch.json --result out.json
    """
    project_dir = project_dir.resolve()
    items = _load_batch(batch)
    config = _load_config(project_dir, config_path)

    if output is not None:
        config.generation.output = str(output)
    if package is not None:
        if not package.isidentifier():
            typer.echo(f"--package must be a Python identifier, got {package!r}", err=True)
            raise typer.Exit(code=1)
        config.generation.package = package
    if workers is not None:
        config.generation.workers = workers

    try:
        runner = BatchRunner(project_dir, config, dry_run=dry_run)
    except LayergenError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    result = runner.run(items)

    output_json = json.dumps(result.items, indent=2)
    if result_path is not None:
        result_path.write_text(output_json + "\n", encoding="utf-8")
    elif not dry_run:
        typer.echo(output_json)

    table = Table(title=f"Generated into {runner.output_dir}" + (" (dry run)" if dry_run else ""))
    table.add_column("Class")
    table.add_column("Code", style="cyan")
    table.add_column("Test", style="dim")
    for class_name in sorted(result.artifacts):
        artifacts = result.artifacts[class_name]
        table.add_row(class_name, artifacts.code_path or "", artifacts.test_path or "")
    if result.artifacts:
        err_console.print(table, highlight=False)

    for warning in result.warnings:
        err_console.print(f"[yellow]Warning:[/yellow] {warning}", highlight=False)

    if result.success:
        err_console.print(f"[green]✓ {result.summary()}[/green]")
        return

    for error in result.errors:
        err_console.print(f"[red]Error:[/red] {error.format()}", highlight=False)
    err_console.print(f"[red]✗ {result.summary()}[/red]")
    raise typer.Exit(code=1)


@app.command(name="validate")
def validate_command(
    batch: Annotated[Path, typer.Argument(help="JSON file with an array of class specifications")],
) -> None:
    """Validate and lint a batch without generating anything."""
    items = _load_batch(batch)
    failures = 0
    for index, raw in enumerate(items):
        try:
            spec = validate(raw)
            resolve(spec.class_name)
        except LayergenError as e:
            failures += 1
            console.print(f"[red]✗[/red] item {index}: {e}", highlight=False)
            continue

        console.print(f"[green]✓[/green] {spec.class_name} ({spec.layer.value})", highlight=False)
        for warning in lint(spec, raw):
            console.print(f"  [yellow]Warning:[/yellow] {warning}", highlight=False)

    if failures:
        console.print(f"[red]{failures} of {len(items)} items invalid[/red]")
        raise typer.Exit(code=1)
    console.print(f"[green]All {len(items)} items valid[/green]")


@app.command(name="names")
def names_command(
    class_names: Annotated[list[str], typer.Argument(help="Class names to resolve")],
) -> None:
    """Show the base, snake, pascal and plural names derived from class names."""
    table = Table(title="Resolved names")
    for column in ("class_name", "base", "snake_base", "pascal_base", "plural_snake_base"):
        table.add_column(column)

    failed = False
    for class_name in class_names:
        try:
            resolved = resolve(class_name)
        except LayergenError as e:
            console.print(f"[red]Error:[/red] {e}", highlight=False)
            failed = True
            continue
        table.add_row(
            class_name,
            resolved.base,
            resolved.snake_base,
            resolved.pascal_base,
            resolved.plural_snake_base,
        )

    console.print(table)
    if failed:
        raise typer.Exit(code=1)


@registry_app.command(name="list")
def registry_list(
    project_dir: ProjectOption = Path("."),
    config_path: ConfigOption = None,
    output_json: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """List registered classes."""
    registry = _load_registry(project_dir, config_path)
    entries = registry.entries()

    if output_json:
        console.print_json(json.dumps([entry.model_dump(mode="json", exclude={"spec"}) for entry in entries]))
        return

    if not entries:
        console.print("[dim]No classes registered.[/dim]")
        return

    table = Table(title="Registered classes")
    table.add_column("Class")
    table.add_column("Layer")
    table.add_column("Code", style="cyan")
    table.add_column("Updated", style="dim")
    for entry in entries:
        table.add_row(entry.class_name, entry.layer.value, entry.code_path or "", entry.updated_at or "")
    console.print(table)


@registry_app.command(name="show")
def registry_show(
    class_name: Annotated[str, typer.Argument(help="Registered class name")],
    project_dir: ProjectOption = Path("."),
    config_path: ConfigOption = None,
) -> None:
    """Show one registered class, including its specification."""
    registry = _load_registry(project_dir, config_path)
    entry = registry.get(class_name)
    if entry is None:
        console.print(f"[red]{class_name} is not registered[/red]")
        raise typer.Exit(code=1)
    console.print_json(entry.model_dump_json())


@registry_app.command(name="forget")
def registry_forget(
    class_names: Annotated[list[str], typer.Argument(help="Class names to drop")],
    project_dir: ProjectOption = Path("."),
    config_path: ConfigOption = None,
) -> None:
    """Drop classes from the registry (generated files are left in place)."""
    registry = _load_registry(project_dir, config_path)
    missing = []
    for class_name in class_names:
        if registry.forget(class_name) is None:
            missing.append(class_name)
        else:
            console.print(f"[green]Forgot {class_name}[/green]")
    registry.save()

    if missing:
        console.print(f"[red]Not registered: {', '.join(missing)}[/red]")
        raise typer.Exit(code=1)


@app.command(name="gate")
def gate_command(
    coverage_json: Annotated[
        Path | None, typer.Option("--coverage-json", help="coverage.py JSON report")
    ] = None,
    coverage: Annotated[
        float | None, typer.Option("--coverage", min=0, max=100, help="Line coverage in percent")
    ] = None,
    failed: Annotated[bool, typer.Option("--failed", help="The test run had failures")] = False,
    threshold: Annotated[
        float | None, typer.Option("--threshold", min=0, max=100, help="Override the configured threshold")
    ] = None,
    project_dir: ProjectOption = Path("."),
    config_path: ConfigOption = None,
) -> None:
    """Apply the coverage gate to a test report."""
    if (coverage_json is None) == (coverage is None):
        typer.echo("Pass exactly one of --coverage-json or --coverage", err=True)
        raise typer.Exit(code=1)

    if coverage_json is not None:
        try:
            report = TestReport.from_coverage_json(coverage_json, failed=failed)
        except (OSError, ValueError) as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(code=1)
    else:
        report = TestReport(coverage=coverage, failed=failed)

    if threshold is None:
        threshold = _load_config(project_dir, config_path).quality.coverage_threshold

    gate = check(report, threshold)
    if gate.passed:
        console.print(f"[green]✓ Gate passed:[/green] {gate.reason}")
        return
    console.print(f"[red]✗ Gate failed:[/red] {gate.reason}")
    raise typer.Exit(code=1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
