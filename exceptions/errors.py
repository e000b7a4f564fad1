"""
Custom exception classes for the analytics core.

Only "not found" lookups and invalid input raise. Insufficient or
degenerate data is never an error: the statistical routines return a
documented fallback value instead.
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "STATION_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code the caller may map to
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# STATION ERRORS
# ===================

class StationNotFoundError(NotFoundError):
    """Station not found or inactive."""

    def __init__(self, station_id: str):
        super().__init__(
            resource="Station",
            identifier=str(station_id),
            code="STATION_NOT_FOUND"
        )


# ===================
# INPUT ERRORS
# ===================

class InvalidFuelTypeError(ValidationError):
    """Fuel type label could not be mapped."""

    def __init__(self, label: str):
        super().__init__(
            code="INVALID_FUEL_TYPE",
            message=f"Unable to map '{label}' to a fuel type",
            details={"provided": label, "valid": ["regular", "premium", "diesel"]}
        )


class InvalidGroupingError(ValidationError):
    """Unknown aggregation period."""

    def __init__(self, grouping: str):
        super().__init__(
            code="INVALID_GROUPING",
            message="Grouping must be hourly, daily, weekly, or monthly",
            details={"provided": grouping, "valid": ["hourly", "daily", "weekly", "monthly"]}
        )


class InvalidBoundsError(ValidationError):
    """Bounding box is inverted or out of range."""

    def __init__(self, bounds: dict):
        super().__init__(
            code="INVALID_BOUNDS",
            message="Bounds must satisfy south < north and west < east",
            details={"provided": bounds}
        )


class InvalidCompetitorModeError(ValidationError):
    """Unknown competitor resolution mode."""

    def __init__(self, mode: str):
        super().__init__(
            code="INVALID_COMPETITOR_MODE",
            message="Mode must be radius, municipality, or combined",
            details={"provided": mode, "valid": ["radius", "municipality", "combined"]}
        )
