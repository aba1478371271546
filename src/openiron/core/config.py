"""
Configuration management for OpenIron.

Ironing settings are passed explicitly to every per-layer call, never read
from global state. This module defines the validated setting models and a
loader for named YAML ironing profiles.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional, Type, TypeVar

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from openiron.core.exceptions import ConfigurationError

ModelT = TypeVar("ModelT", bound=BaseModel)


class FillPattern(str, Enum):
    """Ironing fill patterns."""

    RASTER = "raster"  # Parallel lines
    CONCENTRIC = "concentric"  # Inward offsets of the boundary
    ZIGZAG = "zigzag"  # Parallel lines joined end to end


class LineConfig(BaseModel):
    """Default width, speed and flow of the moves written for a line type."""

    model_config = ConfigDict(frozen=True)

    line_width: float = Field(default=0.4, gt=0)
    speed: float = Field(default=20.0, gt=0)  # mm/s
    flow: float = Field(default=1.0, gt=0)


class PatternConfig(BaseModel):
    """Settings for a single fill pattern synthesis run."""

    model_config = ConfigDict(frozen=True)

    line_spacing: float = Field(gt=0)
    pattern: FillPattern = FillPattern.RASTER
    angle: float = 0.0  # radians
    inset_distance: float = Field(default=0.0, ge=0)
    skip_if_empty: bool = True
    flow: float = Field(default=1.0, gt=0)  # relative tag, scaled again by the assembler


class IroningConfig(BaseModel):
    """
    Mesh-level ironing settings.

    Defaults follow common FDM slicer presets: a zigzag pass at 10% flow with
    0.1 mm spacing, inset slightly from the outer wall.
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    only_highest_layer: bool = False
    line_spacing: float = Field(default=0.1, gt=0)
    pattern: FillPattern = FillPattern.ZIGZAG
    angle: float = 0.0  # radians
    inset_distance: float = Field(default=0.2, ge=0)
    flow_ratio: float = Field(default=0.1, gt=0, le=1.0)
    monotonic: bool = False
    skip_first_layer: bool = False
    speed: Optional[float] = Field(default=None, gt=0)  # overrides LineConfig.speed
    skin_angles: List[float] = Field(default_factory=list)  # radians
    spiralize: bool = False
    connect_distance: float = Field(default=0.0, ge=0)

    @field_validator("skin_angles")
    @classmethod
    def _finite_angles(cls, angles: List[float]) -> List[float]:
        if any(not math.isfinite(a) for a in angles):
            raise ValueError("skin angles must be finite")
        return angles

    def direction_for_layer(self, layer_number: int) -> float:
        """
        Ironing line direction on a layer.

        With skin angles configured, ironing runs perpendicular to the top
        skin lines of that layer; otherwise the fixed ``angle`` is used.
        """
        if self.skin_angles:
            skin = self.skin_angles[layer_number % len(self.skin_angles)]
            return skin + math.pi / 2.0
        return self.angle

    def pattern_config(self, layer_number: int, line_width: float) -> PatternConfig:
        """
        Pattern settings for one layer.

        The inset is widened by half of the flow-thinned line width so that
        the edge of the ironing line, not its centre, meets the outer wall.
        """
        return PatternConfig(
            line_spacing=self.line_spacing,
            pattern=self.pattern,
            angle=self.direction_for_layer(layer_number),
            inset_distance=self.inset_distance + self.flow_ratio * line_width / 2.0,
        )


def validate_config(model: Type[ModelT], data: dict[str, Any]) -> ModelT:
    """
    Validate raw settings into a config model.

    Raises:
        ConfigurationError: If the settings do not satisfy the model.
    """
    try:
        return model(**data)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid {model.__name__}",
            details={"error": str(e)},
        ) from e


class IroningProfile(BaseModel):
    """A named pair of ironing and line settings."""

    model_config = ConfigDict(frozen=True)

    name: str
    ironing: IroningConfig = Field(default_factory=IroningConfig)
    line: LineConfig = Field(default_factory=LineConfig)


@dataclass
class ConfigManager:
    """
    Loader for named ironing profiles.

    Profiles are YAML files under ``<config_dir>/ironing/`` with an
    ``ironing:`` section and an optional ``line:`` section.

    Example:
        >>> config = ConfigManager(config_dir=Path("config"))
        >>> profile = config.get_profile("fine_pla")
        >>> profile.ironing.flow_ratio
        0.1
    """

    config_dir: Path
    _profiles: dict[str, IroningProfile] = field(default_factory=dict, init=False)
    _loaded: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        self.config_dir = Path(self.config_dir)
        if not self.config_dir.exists():
            raise ConfigurationError(
                f"Configuration directory not found: {self.config_dir}"
            )

    def load(self) -> None:
        """Load all ironing profiles from disk."""
        profiles_dir = self.config_dir / "ironing"
        if profiles_dir.exists():
            for config_file in sorted(profiles_dir.glob("*.yaml")):
                self._profiles[config_file.stem] = self._load_profile(config_file)
        self._loaded = True

    @staticmethod
    def _load_profile(config_file: Path) -> IroningProfile:
        try:
            with open(config_file) as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict) or "ironing" not in data:
                raise ConfigurationError(
                    f"Missing 'ironing' section: {config_file}",
                )
            return IroningProfile(
                name=data.get("name", config_file.stem),
                ironing=IroningConfig(**(data["ironing"] or {})),
                line=LineConfig(**(data.get("line") or {})),
            )
        except (yaml.YAMLError, ValidationError) as e:
            raise ConfigurationError(
                f"Failed to load ironing profile: {config_file}",
                details={"error": str(e)},
            )

    def get_profile(self, name: str) -> IroningProfile:
        """
        Get an ironing profile by name.

        Args:
            name: Profile name (file name without .yaml extension)

        Returns:
            IroningProfile instance

        Raises:
            ConfigurationError: If the profile is not found
        """
        if not self._loaded:
            self.load()

        if name not in self._profiles:
            raise ConfigurationError(
                f"Ironing profile not found: {name}",
                details={"available": list(self._profiles.keys())},
            )
        return self._profiles[name]

    def list_profiles(self) -> list[str]:
        """List available ironing profiles."""
        if not self._loaded:
            self.load()
        return list(self._profiles.keys())
