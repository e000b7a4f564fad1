"""
Spread analysis models.

Monetary fields are Decimals rounded to 2 places when the result is
built; they survive a JSON round trip without drift.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import Field

from models.base import BaseSchema


class Quartile(str, Enum):
    """Quartile a price falls into (Q1 = cheapest quarter)."""

    Q1 = "Q1"
    Q2 = "Q2"
    Q3 = "Q3"
    Q4 = "Q4"


class MarketStats(BaseSchema):
    """Descriptive statistics of competitor prices."""

    min: Optional[Decimal] = None
    max: Optional[Decimal] = None
    avg: Optional[Decimal] = None
    median: Optional[Decimal] = None
    spread: Optional[Decimal] = Field(None, description="max - min")
    stddev: Optional[Decimal] = Field(None, description="Population standard deviation")
    sample_size: int = 0


class Quartiles(BaseSchema):
    """Quartile boundaries (linear interpolation)."""

    q1: Optional[Decimal] = None
    q2: Optional[Decimal] = None
    q3: Optional[Decimal] = None


class UserPosition(BaseSchema):
    """Where the user's price sits relative to the market."""

    user_price: Optional[Decimal] = None
    from_min: Optional[Decimal] = Field(None, description="user - min")
    from_max: Optional[Decimal] = Field(None, description="max - user")
    from_avg: Optional[Decimal] = Field(None, description="user - avg")
    from_avg_percent: Optional[Decimal] = Field(None, description="(user - avg) / avg * 100")
    quartile: Optional[Quartile] = None
    is_outlier: bool = False


class SpreadResult(BaseSchema):
    """Spread analysis for one fuel type."""

    market: MarketStats = Field(default_factory=MarketStats)
    quartiles: Quartiles = Field(default_factory=Quartiles)
    position: UserPosition = Field(default_factory=UserPosition)

    @classmethod
    def empty(cls) -> "SpreadResult":
        """Shape returned when there is nothing to compare."""
        return cls()

    @property
    def is_empty(self) -> bool:
        return self.position.user_price is None
