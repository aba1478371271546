"""
Core module - Shared geometry types, configuration, errors and logging.
"""

from openiron.core.config import (
    ConfigManager,
    FillPattern,
    IroningConfig,
    IroningProfile,
    LineConfig,
    PatternConfig,
    validate_config,
)
from openiron.core.exceptions import (
    OpenIronError,
    ConfigurationError,
    GeometryError,
    TopSurfaceError,
    IroningError,
    IroningStateError,
)
from openiron.core.geometry import BoundingBox, Point2D, Polygon, PolygonSet

__all__ = [
    # Config
    "ConfigManager",
    "FillPattern",
    "IroningConfig",
    "IroningProfile",
    "LineConfig",
    "PatternConfig",
    "validate_config",
    # Exceptions
    "OpenIronError",
    "ConfigurationError",
    "GeometryError",
    "TopSurfaceError",
    "IroningError",
    "IroningStateError",
    # Geometry
    "BoundingBox",
    "Point2D",
    "Polygon",
    "PolygonSet",
]
