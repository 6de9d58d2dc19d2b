"""
Configuration models.

Parses ``layergen.toml`` and provides typed configuration for the batch
runner, the publisher and the coverage gate. Every table is optional; a
missing file yields defaults.

Example ``layergen.toml``::

    [generation]
    package = "shop"
    output = "generated/"
    workers = 4

    [publish]
    raw_url_base = "https://raw.githubusercontent.com/acme/shop/main/generated"

    [quality]
    coverage_threshold = 90
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from .gate import DEFAULT_THRESHOLD

CONFIG_FILENAME = "layergen.toml"


class GenerationConfig(BaseModel):
    """Generation configuration."""

    package: str = "app"
    output: str = "generated/"
    registry: str = ".layergen/registry.json"
    workers: int = Field(default=1, ge=1)
    clean: bool = False

    @field_validator("package")
    @classmethod
    def _package_is_identifier(cls, value: str) -> str:
        if not value.isidentifier():
            raise ValueError(f"package must be a Python identifier, got {value!r}")
        return value


class PublishConfig(BaseModel):
    """Raw URL publishing configuration."""

    raw_url_base: str | None = None


class QualityConfig(BaseModel):
    """Coverage gate configuration."""

    coverage_threshold: float = Field(default=DEFAULT_THRESHOLD, ge=0, le=100)


class LayergenConfig(BaseModel):
    """Complete layergen configuration."""

    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    publish: PublishConfig = Field(default_factory=PublishConfig)
    quality: QualityConfig = Field(default_factory=QualityConfig)

    def get_output_path(self, project_root: Path) -> Path:
        """Get absolute output directory path."""
        output_dir = Path(self.generation.output)
        if output_dir.is_absolute():
            return output_dir
        return project_root / output_dir

    def get_registry_path(self, project_root: Path) -> Path:
        """Get absolute registry file path."""
        registry = Path(self.generation.registry)
        if registry.is_absolute():
            return registry
        return project_root / registry


def load_config(toml_path: Path) -> LayergenConfig:
    """
    Load configuration from ``layergen.toml``.

    Args:
        toml_path: Path to the TOML file

    Returns:
        LayergenConfig with parsed values or defaults

    Raises:
        tomllib.TOMLDecodeError: If the file is not valid TOML
        pydantic.ValidationError: If a value has the wrong type
    """
    if not toml_path.exists():
        return LayergenConfig()

    with open(toml_path, "rb") as f:
        data = tomllib.load(f)

    config_dict: dict[str, Any] = {}
    for section in ("generation", "publish", "quality"):
        if section in data:
            config_dict[section] = data[section]

    return LayergenConfig.model_validate(config_dict)
