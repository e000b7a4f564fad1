"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    DatabaseError,

    # Lookups
    StationNotFoundError,

    # Input
    InvalidFuelTypeError,
    InvalidGroupingError,
    InvalidBoundsError,
    InvalidCompetitorModeError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "DatabaseError",

    # Lookups
    "StationNotFoundError",

    # Input
    "InvalidFuelTypeError",
    "InvalidGroupingError",
    "InvalidBoundsError",
    "InvalidCompetitorModeError",
]
