"""
Descriptive statistics shared by the analytics services.

Everything here works on plain floats and never rounds. Rounding to
money precision happens once, when a result model is built, via
to_money() / round_to().
"""

import math
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Sequence, Union

Number = Union[int, float, Decimal]


def as_floats(values: Iterable[Optional[Number]]) -> List[float]:
    """Convert to floats, dropping None entries."""
    return [float(v) for v in values if v is not None]


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean; 0 for an empty sequence."""
    if not values:
        return 0.0
    return sum(values) / len(values)


def median(values: Sequence[float]) -> float:
    """Median; averages the two middle values on even counts. 0 when empty."""
    if not values:
        return 0.0
    ordered = sorted(values)
    count = len(ordered)
    middle = (count - 1) // 2
    if count % 2:
        return ordered[middle]
    return (ordered[middle] + ordered[middle + 1]) / 2


def percentile(values: Sequence[float], pct: float) -> float:
    """
    Percentile by linear interpolation between closest ranks.

    index = pct/100 * (n-1), interpolated between floor and ceil.
    """
    if not values:
        return 0.0
    ordered = sorted(values)
    index = (pct / 100) * (len(ordered) - 1)
    lower = math.floor(index)
    upper = math.ceil(index)
    if lower == upper:
        return ordered[lower]
    weight = index - lower
    return ordered[lower] * (1 - weight) + ordered[upper] * weight


def stddev(values: Sequence[float], sample: bool = False) -> float:
    """
    Standard deviation.

    Population (divide by n) by default; sample (n-1) when requested.
    Returns 0 for empty or single-element input.
    """
    count = len(values)
    if count < 2:
        return 0.0
    avg = mean(values)
    squares = sum((v - avg) ** 2 for v in values)
    divisor = count - 1 if sample else count
    return math.sqrt(max(squares / divisor, 0.0))


def coefficient_of_variation(values: Sequence[float]) -> float:
    """CV = population stddev / mean; 0 if mean is 0 or fewer than 2 values."""
    if len(values) < 2:
        return 0.0
    avg = mean(values)
    if avg == 0:
        return 0.0
    return stddev(values) / avg


def pearson_correlation(a: Sequence[float], b: Sequence[float]) -> Optional[float]:
    """
    Pearson correlation of two series truncated to equal length.

    Returns None when either series has fewer than 2 points or when
    either side has zero variance.
    """
    if len(a) < 2 or len(b) < 2:
        return None

    length = min(len(a), len(b))
    xs = list(a[:length])
    ys = list(b[:length])
    mean_x = mean(xs)
    mean_y = mean(ys)

    numerator = 0.0
    sum_x = 0.0
    sum_y = 0.0
    for x, y in zip(xs, ys):
        dx = x - mean_x
        dy = y - mean_y
        numerator += dx * dy
        sum_x += dx * dx
        sum_y += dy * dy

    denominator = math.sqrt(sum_x * sum_y)
    if denominator == 0:
        return None

    return max(-1.0, min(1.0, numerator / denominator))


@dataclass(frozen=True)
class RegressionFit:
    """Ordinary least squares fit of value against position index."""

    slope: float
    intercept: float
    r_squared: float


def r_squared(xs: Sequence[float], ys: Sequence[float], slope: float, intercept: float) -> float:
    """
    Coefficient of determination, clamped to [0, 1].

    A constant series is a trivially perfect fit (1.0). If SS_tot is 0
    while residuals are not, the fit is reported as 0.
    """
    if len(ys) < 2:
        return 0.0
    if len(set(ys)) == 1:
        return 1.0

    y_mean = mean(ys)
    ss_res = 0.0
    ss_tot = 0.0
    for x, y in zip(xs, ys):
        predicted = slope * x + intercept
        ss_res += (y - predicted) ** 2
        ss_tot += (y - y_mean) ** 2

    if ss_tot == 0:
        return 1.0 if ss_res == 0 else 0.0

    return max(0.0, min(1.0, 1 - ss_res / ss_tot))


def linear_regression(values: Sequence[float]) -> Optional[RegressionFit]:
    """
    Fit value = slope * index + intercept over index 0..n-1.

    Returns None when the fit is undefined (fewer than 2 points or no
    spread in the index).
    """
    count = len(values)
    if count < 2:
        return None

    xs = [float(i) for i in range(count)]
    ys = list(values)
    x_mean = mean(xs)
    y_mean = mean(ys)

    numerator = sum((x - x_mean) * (y - y_mean) for x, y in zip(xs, ys))
    denominator = sum((x - x_mean) ** 2 for x in xs)
    if denominator == 0:
        return None

    slope = numerator / denominator
    intercept = y_mean - slope * x_mean
    return RegressionFit(
        slope=slope,
        intercept=intercept,
        r_squared=r_squared(xs, ys, slope, intercept),
    )


# ===================
# PRESENTATION ROUNDING
# ===================

MONEY_QUANTUM = Decimal("0.01")


def to_money(value: Optional[Number]) -> Optional[Decimal]:
    """Round half-up to 2 decimal places as Decimal. None passes through."""
    if value is None:
        return None
    return Decimal(str(value)).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def round_to(value: Optional[Number], places: int) -> Optional[float]:
    """Round half-up to the given places, returned as float."""
    if value is None:
        return None
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))
