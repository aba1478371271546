"""
Custom exceptions for OpenIron.

All OpenIron exceptions inherit from OpenIronError for easy catching.
"""

from typing import Any


class OpenIronError(Exception):
    """Base exception for all OpenIron errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class ConfigurationError(OpenIronError):
    """Raised when configuration is invalid or missing."""

    pass


class GeometryError(OpenIronError):
    """Raised when geometry input cannot be interpreted at all."""

    pass


class TopSurfaceError(OpenIronError):
    """Raised when a top surface slot is misused."""

    def __init__(
        self,
        message: str,
        layer_number: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.layer_number = layer_number


class IroningError(OpenIronError):
    """Raised when ironing path generation fails for a layer."""

    def __init__(
        self,
        message: str,
        layer_number: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.layer_number = layer_number


class IroningStateError(IroningError):
    """Raised on an illegal transition of the per-layer ironing state."""

    pass
