"""Analysis settings for codestrata."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from ..core.exceptions import ConfigError
from .defaults import (
    DEFAULT_CACHE_MAX_AGE,
    DEFAULT_CHANGE_FREQUENCY,
    DEFAULT_IGNORE_FILE_NAMES,
    DEFAULT_MAX_FILE_SIZE,
)


class RelationWeights(BaseModel):
    """Coefficients of the relation weight convex combination."""

    model_config = ConfigDict(frozen=True)

    imports: float = Field(default=0.4, ge=0.0, le=1.0)
    responsibility: float = Field(default=0.3, ge=0.0, le=1.0)
    change: float = Field(default=0.3, ge=0.0, le=1.0)

    # Import references needed for a saturated import weight of 1.0
    import_saturation: int = Field(default=10, ge=1)

    @model_validator(mode="after")
    def _check_sum(self) -> RelationWeights:
        total = self.imports + self.responsibility + self.change
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"relation weights must sum to 1.0, got {total:.3f}")
        return self


class CohesionWeights(BaseModel):
    """Coefficients of the per-component cohesion score."""

    model_config = ConfigDict(frozen=True)

    method: float = Field(default=0.4, ge=0.0, le=1.0)
    property: float = Field(default=0.3, ge=0.0, le=1.0)
    semantic: float = Field(default=0.3, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_sum(self) -> CohesionWeights:
        total = self.method + self.property + self.semantic
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"cohesion weights must sum to 1.0, got {total:.3f}")
        return self


class AnalysisSettings(BaseModel):
    """Settings shared by every analysis run of one orchestrator.

    Attributes:
        ignore_file_names: Names of ignore-rule files to discover
        respect_ignore_files: Read discovered ignore-rule files at all
        discover_nested_rule_files: Also pick up rule files inside the tree
        exclude_patterns: Extra globs appended as exclude rules
        include_patterns: Extra globs appended as include (negated) rules
        cache_max_age: Seconds a cached result stays fresh
        max_workers: Threads used for structural extraction (1 = inline)
        max_file_size: Files above this size are treated as contentless
        default_change_frequency: Placeholder change estimate, None disables it
        relation_weights: Relation weight coefficients
        cohesion_weights: Cohesion coefficients
    """

    model_config = ConfigDict(frozen=True)

    ignore_file_names: tuple[str, ...] = DEFAULT_IGNORE_FILE_NAMES
    respect_ignore_files: bool = True
    discover_nested_rule_files: bool = True
    exclude_patterns: tuple[str, ...] = ()
    include_patterns: tuple[str, ...] = ()

    cache_max_age: float = Field(default=DEFAULT_CACHE_MAX_AGE, gt=0)
    max_workers: int = Field(default=1, ge=1)
    max_file_size: int = Field(default=DEFAULT_MAX_FILE_SIZE, gt=0)
    default_change_frequency: float | None = Field(
        default=DEFAULT_CHANGE_FREQUENCY, ge=0.0
    )

    relation_weights: RelationWeights = Field(default_factory=RelationWeights)
    cohesion_weights: CohesionWeights = Field(default_factory=CohesionWeights)

    @classmethod
    def load(cls, path: Path) -> AnalysisSettings:
        """Load settings from a YAML file.

        Args:
            path: Path to YAML settings file

        Returns:
            AnalysisSettings instance (defaults if the file does not exist)

        Raises:
            ConfigError: If the file cannot be parsed or fails validation
        """
        if not path.exists():
            logger.debug(f"No settings file at {path}, using defaults")
            return cls()

        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(
                f"Failed to read settings from {path}: {e}", {"path": str(path)}
            ) from e

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnalysisSettings:
        """Create settings from a dictionary.

        Raises:
            ConfigError: If validation fails
        """
        if not isinstance(data, dict):
            raise ConfigError(f"Settings must be a mapping, got {type(data).__name__}")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid settings: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        """Convert to a YAML-friendly dictionary."""
        data = self.model_dump(mode="json")
        for key in ("ignore_file_names", "exclude_patterns", "include_patterns"):
            data[key] = list(data[key])
        return data

    def save(self, path: Path) -> None:
        """Save settings to a YAML file.

        Args:
            path: Path to save settings
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
        logger.debug(f"Saved settings to {path}")
