"""
Forecast Engine - AR(1) model on first differences.

This is a deliberate simplification of ARIMA(1,1,0) without a fitted noise
term: the series is differenced once, a lag-1 autoregressive coefficient is
estimated on the centred differences, and differences are projected forward
and re-integrated onto the last observed value.

Algorithm:
1. d[i] = value[i] - value[i-1]
2. mu = mean(d)
3. phi = sum((d[i] - mu)(d[i-1] - mu)) / sum((d[i-1] - mu)^2), 0 when the
   denominator is 0, clamped to [-0.9, 0.9]
4. nextDiff = mu + phi * (lastDiff - mu); nextValue = lastValue + nextDiff
5. Reported values are floored at 0 with a symmetric +/- band

Period labels roll forward for "YYYY Qn" (quarterly) and "YYYY-MM" (monthly)
series; any other label is extended as "<last label> +k".
"""

import logging
import re
from typing import Callable, List, Mapping, Optional, Sequence, Union

import numpy as np

from municipal_intel.core.config import get_settings
from municipal_intel.models import ForecastModelInfo, ForecastPoint, ForecastResult, HistoricalPoint

logger = logging.getLogger(__name__)


# Minimum observations for a forecast
MIN_FORECAST_POINTS = 4

# Stability bound for the AR coefficient
MAX_AR_COEFFICIENT = 0.9

QUARTER_PATTERN = re.compile(r"^(\d{4})([ -]?)Q([1-4])$")
MONTH_PATTERN = re.compile(r"^(\d{4})-(\d{2})(?:-\d{2})?$")


# =============================================================================
# Period Labels
# =============================================================================


def _period_labeler(last_period: str) -> Callable[[int], str]:
    """Return a function mapping step k (1-based) to the k-th label after `last_period`."""
    quarter = QUARTER_PATTERN.match(last_period.strip())
    if quarter:
        year, separator, q = int(quarter.group(1)), quarter.group(2), int(quarter.group(3))

        def quarterly(step: int) -> str:
            offset = (q - 1) + step
            return f"{year + offset // 4}{separator}Q{offset % 4 + 1}"
        return quarterly

    month = MONTH_PATTERN.match(last_period.strip())
    if month and 1 <= int(month.group(2)) <= 12:
        year, m = int(month.group(1)), int(month.group(2))

        def monthly(step: int) -> str:
            offset = (m - 1) + step
            return f"{year + offset // 12}-{offset % 12 + 1:02d}"
        return monthly

    return lambda step: f"{last_period} +{step}"


# =============================================================================
# Forecast
# =============================================================================


def estimate_ar_coefficient(diffs: np.ndarray) -> float:
    """
    Lag-1 autocovariance over lag-0 variance of the centred differences.

    Returns 0 when the denominator is 0, otherwise the ratio clamped to
    [-0.9, 0.9].
    """
    centred = diffs - np.mean(diffs)
    numerator = float(np.sum(centred[1:] * centred[:-1]))
    denominator = float(np.sum(centred[:-1] ** 2))
    if denominator == 0:
        return 0.0
    return max(-MAX_AR_COEFFICIENT, min(MAX_AR_COEFFICIENT, numerator / denominator))


def forecast(
    series: Sequence[Union[HistoricalPoint, Mapping[str, object]]],
    periods_ahead: Optional[int] = None,
    band: Optional[float] = None,
) -> ForecastResult:
    """
    Project a time series forward with the AR(1)-on-differences model.

    Args:
        series: Ordered {period, value} points, oldest first
        periods_ahead: Periods to project; defaults to settings.forecast_horizon
        band: Relative band half-width; defaults to settings.forecast_band

    Returns:
        ForecastResult. With fewer than 4 points the forecast is empty and
        `insufficientData` is set.

    Raises:
        ValueError: If periods_ahead < 1 or band is negative.

    Example:
        >>> points = [{"period": f"2024 Q{q}", "value": v}
        ...           for q, v in zip(range(1, 5), [100, 110, 120, 130])]
        >>> forecast(points, periods_ahead=1).forecast[0].value
        140.0
    """
    settings = get_settings()
    if periods_ahead is None:
        periods_ahead = settings.forecast_horizon
    if band is None:
        band = settings.forecast_band
    if periods_ahead < 1:
        raise ValueError(f"periods_ahead must be at least 1, got {periods_ahead}")
    if band < 0:
        raise ValueError(f"band must be non-negative, got {band}")

    points = [
        p if isinstance(p, HistoricalPoint) else HistoricalPoint.model_validate(p)
        for p in series
    ]

    if len(points) < MIN_FORECAST_POINTS:
        return ForecastResult(
            insufficientData=True,
            reason=f"Insufficient data for forecasting: {len(points)} points, "
                   f"{MIN_FORECAST_POINTS} required",
        )

    values = np.array([p.value for p in points], dtype=float)
    diffs = np.diff(values)
    diff_mean = float(np.mean(diffs))
    coefficient = estimate_ar_coefficient(diffs)

    label_for = _period_labeler(points[-1].period)

    projections: List[ForecastPoint] = []
    last_value = float(values[-1])
    last_diff = float(diffs[-1])
    for step in range(1, periods_ahead + 1):
        next_diff = diff_mean + coefficient * (last_diff - diff_mean)
        next_value = last_value + next_diff

        value = max(0.0, round(next_value, 2))
        projections.append(ForecastPoint(
            period=label_for(step),
            value=value,
            lower=max(0.0, round(value * (1 - band), 2)),
            upper=round(value * (1 + band), 2),
        ))

        # The recursion continues from the unfloored value
        last_value = next_value
        last_diff = next_diff

    return ForecastResult(
        forecast=projections,
        modelInfo=ForecastModelInfo(
            arCoefficient=round(coefficient, 4),
            diffMean=round(diff_mean, 2),
            dataPoints=len(points),
        ),
    )
