# rakit/exceptions.py
"""
Custom exceptions for the rakit service.
"""

from typing import Any


class RakitError(Exception):
    """Base exception for all rakit errors."""

    status_code = 500
    error_code = "server_error"

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


# Config exceptions
class ConfigError(RakitError):
    """Raised when required configuration or secrets are missing."""

    status_code = 500
    error_code = "config_error"


# Input exceptions
class ValidationError(RakitError):
    """Raised when input fails validation before any mutation happens."""

    status_code = 400
    error_code = "validation_error"

    def __init__(
        self, message: str, field: str | None = None, value: Any = None, **kwargs: Any
    ):
        details = {"field": field, "value": value, **kwargs}
        super().__init__(message, {k: v for k, v in details.items() if v is not None})
        self.field = field
        self.value = value


# Resource exceptions
class ResourceNotFoundError(RakitError):
    """Raised when a requested resource is not found (or not under its parent)."""

    status_code = 404
    error_code = "not_found"


class ConflictError(RakitError):
    """Raised when a mutation collides with existing state."""

    status_code = 409
    error_code = "conflict"


class CapacityExceededError(ConflictError):
    """Raised when a cabinet has no contiguous free run for a device."""

    error_code = "capacity_exceeded"


class PositionConflictError(ConflictError):
    """Raised when an explicit placement overlaps a non-stacking device."""

    error_code = "position_conflict"


class DuplicateAddressError(ConflictError):
    """Raised when an address is already reserved within a profile."""

    error_code = "duplicate_address"


# Upstream availability
class ControllerUnavailableError(RakitError):
    """Raised when the network controller cannot be reached or answers badly."""

    status_code = 502
    error_code = "controller_unavailable"
