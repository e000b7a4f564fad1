"""
Fuel type definitions.
"""

from enum import Enum
from typing import Optional

from exceptions import InvalidFuelTypeError
from utils.text_utils import normalize_label


# Keywords that identify each fuel in government product descriptions,
# e.g. "Regular (con un índice de octano ([RON+MON]/2) mínimo de 87)".
FUEL_KEYWORDS = {
    "regular": ("REGULAR", "MAGNA"),
    "premium": ("PREMIUM",),
    "diesel": ("DIESEL",),
}


class FuelType(str, Enum):
    """Fuel types tracked per station."""

    REGULAR = "regular"
    PREMIUM = "premium"
    DIESEL = "diesel"

    @classmethod
    def from_label(cls, label: Optional[str]) -> "FuelType":
        """
        Map a free-text product description to a fuel type.

        Accepts the canonical values ("regular") as well as descriptions
        such as "Gasolina Premium" or "Diésel Automotriz".

        Raises:
            InvalidFuelTypeError: If no keyword matches
        """
        normalized = normalize_label(label)
        if not normalized:
            raise InvalidFuelTypeError(label or "")

        for fuel_type, keywords in FUEL_KEYWORDS.items():
            if any(keyword in normalized for keyword in keywords):
                return cls(fuel_type)

        raise InvalidFuelTypeError(label)


ALL_FUEL_TYPES = (FuelType.REGULAR, FuelType.PREMIUM, FuelType.DIESEL)
