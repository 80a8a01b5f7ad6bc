"""
Statistical helpers and the generic weighted risk scorer.

Provides:
1. DESCRIPTIVE STATISTICS - mean, median, population standard deviation, z-score
2. SERIES HELPERS - first-to-last trend and mean absolute percentage change
3. WEIGHTED SCORING - factors with an orientation, combined into a 0-100 score
   - Shared by the six-factor department model and the five-factor
     municipality model
4. RISK BANDING - score to Low/Moderate/Elevated/High/Critical by cut points
"""

import math
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple

from municipal_intel.core.config import get_settings
from municipal_intel.models import FactorDirection, RiskCategory, TrendDirection, TrendSummary


# Tolerance when checking that weights sum to 1
WEIGHT_SUM_TOLERANCE = 1e-9


# =============================================================================
# Statistical Helper Functions
# =============================================================================


def mean(values: Sequence[float]) -> float:
    """
    Calculate the arithmetic mean of a list of values.

    Args:
        values: List of numeric values

    Returns:
        Arithmetic mean, or 0 if empty list
    """
    if not values:
        return 0.0
    return sum(values) / len(values)


def median(values: Sequence[float]) -> float:
    """
    Calculate the median of a list of values.

    Args:
        values: List of numeric values

    Returns:
        Median value, or 0 if empty list
    """
    if not values:
        return 0.0
    sorted_vals = sorted(values)
    mid = len(sorted_vals) // 2
    if len(sorted_vals) % 2 != 0:
        return sorted_vals[mid]
    return (sorted_vals[mid - 1] + sorted_vals[mid]) / 2


def std_dev(values: Sequence[float]) -> float:
    """
    Calculate the population standard deviation of a list of values.

    Args:
        values: List of numeric values

    Returns:
        Standard deviation, or 0 if fewer than 2 values
    """
    if len(values) < 2:
        return 0.0
    avg = mean(values)
    square_diffs = [(v - avg) ** 2 for v in values]
    return math.sqrt(mean(square_diffs))


def z_score(value: float, avg: float, std: float) -> float:
    """
    Calculate the z-score for a value given mean and standard deviation.

    Returns:
        Z-score, or 0 if standard deviation is 0
    """
    if std == 0:
        return 0.0
    return (value - avg) / std


def coefficient_of_variation(values: Sequence[float]) -> float:
    """Population std as a percentage of the mean (0 when the mean is 0)."""
    avg = mean(values)
    if avg == 0:
        return 0.0
    return std_dev(values) / avg * 100


# =============================================================================
# Series Helpers
# =============================================================================


def calculate_trend(values: Sequence[float]) -> TrendSummary:
    """
    Percentage change between the first and last value of a series.

    Args:
        values: Ordered values (oldest first)

    Returns:
        TrendSummary with direction, absolute percentage and signed change.
        Neutral with 0% when fewer than 2 values or the first value is 0.

    Example:
        >>> calculate_trend([100, 105, 110]).percentage
        10.0
    """
    if len(values) < 2 or values[0] == 0:
        return TrendSummary(direction=TrendDirection.NEUTRAL, percentage=0.0, raw=0.0)

    change = (values[-1] - values[0]) / values[0] * 100
    if change > 0:
        direction = TrendDirection.INCREASING
    elif change < 0:
        direction = TrendDirection.DECREASING
    else:
        direction = TrendDirection.NEUTRAL

    return TrendSummary(
        direction=direction,
        percentage=round(abs(change), 1),
        raw=round(change, 1),
    )


def calculate_volatility(values: Sequence[float]) -> float:
    """
    Mean absolute period-over-period percentage change.

    Pairs whose previous value is 0 are skipped. Returns 0 when fewer than
    2 values or no usable pairs.

    Example:
        >>> calculate_volatility([100, 110, 99])
        10.0
    """
    if len(values) < 2:
        return 0.0

    changes = [
        abs((current - previous) / previous)
        for previous, current in zip(values, values[1:])
        if previous != 0
    ]
    if not changes:
        return 0.0
    return round(mean(changes) * 100, 2)


# =============================================================================
# Weighted Scoring
# =============================================================================


class WeightedFactor(NamedTuple):
    """
    One input to a weighted score.

    `value` is on a 0-100 scale. HIGHER_IS_BETTER values are inverted as
    100 - value before weighting.
    """
    name: str
    value: float
    weight: float
    direction: FactorDirection = FactorDirection.HIGHER_IS_WORSE


def weighted_score(factors: Sequence[WeightedFactor]) -> Tuple[float, Dict[str, float]]:
    """
    Combine oriented factors into a single 0-100 risk score.

    Args:
        factors: Factors whose weights sum to 1.0

    Returns:
        Tuple of (total score, contribution per factor name). Contributions
        are unrounded so they sum to the total.

    Raises:
        ValueError: If the weights do not sum to 1.0 or a name repeats.

    Example:
        >>> weighted_score([
        ...     WeightedFactor("a", 40, 0.5),
        ...     WeightedFactor("b", 80, 0.5, FactorDirection.HIGHER_IS_BETTER),
        ... ])
        (30.0, {'a': 20.0, 'b': 10.0})
    """
    total_weight = sum(f.weight for f in factors)
    if abs(total_weight - 1.0) > WEIGHT_SUM_TOLERANCE:
        raise ValueError(f"Factor weights must sum to 1.0, got {total_weight}")

    contributions: Dict[str, float] = {}
    for factor in factors:
        if factor.name in contributions:
            raise ValueError(f"Duplicate factor name: {factor.name}")
        oriented = factor.value
        if factor.direction == FactorDirection.HIGHER_IS_BETTER:
            oriented = 100.0 - factor.value
        # Oriented values are clamped to [0, 100]
        oriented = min(100.0, max(0.0, oriented))
        contributions[factor.name] = oriented * factor.weight

    total = min(100.0, max(0.0, sum(contributions.values())))
    return total, contributions


def categorize_risk(
    score: float,
    cut_points: Optional[Sequence[float]] = None,
) -> RiskCategory:
    """
    Map a 0-100 score to its risk band.

    Args:
        score: Risk score
        cut_points: Four ascending upper bounds for Low, Moderate, Elevated
            and High. Defaults to settings.risk_cut_points (20, 40, 60, 80).

    Returns:
        RiskCategory; scores at or above the last cut point are Critical.
    """
    if cut_points is None:
        cut_points = get_settings().risk_cut_points
    if len(cut_points) != 4:
        raise ValueError(f"Expected 4 cut points, got {len(cut_points)}")

    bands: List[RiskCategory] = [
        RiskCategory.LOW,
        RiskCategory.MODERATE,
        RiskCategory.ELEVATED,
        RiskCategory.HIGH,
    ]
    for cut, band in zip(cut_points, bands):
        if score < cut:
            return band
    return RiskCategory.CRITICAL
