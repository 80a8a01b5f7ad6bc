"""
Tests for the AR(1)-on-differences forecast engine.
"""

from typing import List

import numpy as np
import pytest

from municipal_intel.models import HistoricalPoint
from municipal_intel.services.forecast_engine import estimate_ar_coefficient, forecast


def _quarterly(values: List[float]) -> List[HistoricalPoint]:
    return [HistoricalPoint(period=f"2024 Q{i + 1}", value=v) for i, v in enumerate(values)]


class TestForecast:
    """Point forecasts and confidence bands."""

    def test_linear_series_continues_trend(self) -> None:
        result = forecast(_quarterly([100, 110, 120, 130]), periods_ahead=1)
        point = result.forecast[0]
        assert point.value == pytest.approx(140.0)
        assert point.lower <= 140.0 <= point.upper
        assert point.lower == pytest.approx(126.0)
        assert point.upper == pytest.approx(154.0)

    def test_fewer_than_four_points_is_insufficient(self) -> None:
        result = forecast(_quarterly([100, 110, 120]), periods_ahead=2)
        assert result.insufficientData
        assert result.forecast == []
        assert result.modelInfo is None

    def test_accepts_plain_mappings(self) -> None:
        series = [{"period": f"2025-0{m}", "value": 10.0 * m} for m in range(1, 6)]
        result = forecast(series, periods_ahead=2)
        assert [p.period for p in result.forecast] == ["2025-06", "2025-07"]
        assert [p.value for p in result.forecast] == pytest.approx([60.0, 70.0])

    def test_values_are_never_negative(self) -> None:
        result = forecast(_quarterly([100, 60, 30, 5]), periods_ahead=3)
        for point in result.forecast:
            assert point.value >= 0
            assert point.lower >= 0
            assert point.upper >= point.value

    def test_model_info(self) -> None:
        result = forecast(_quarterly([100, 110, 120, 130]), periods_ahead=1)
        assert result.modelInfo.arCoefficient == 0.0
        assert result.modelInfo.diffMean == 10.0
        assert result.modelInfo.dataPoints == 4

    def test_band_from_argument(self) -> None:
        point = forecast(_quarterly([100, 110, 120, 130]), periods_ahead=1, band=0.2).forecast[0]
        assert point.lower == pytest.approx(112.0)
        assert point.upper == pytest.approx(168.0)

    def test_horizon_defaults_from_settings(self) -> None:
        assert len(forecast(_quarterly([1, 2, 3, 4, 5])).forecast) == 3

    @pytest.mark.parametrize("periods", [0, -1])
    def test_invalid_horizon_raises(self, periods: int) -> None:
        with pytest.raises(ValueError):
            forecast(_quarterly([1, 2, 3, 4]), periods_ahead=periods)

    def test_negative_band_raises(self) -> None:
        with pytest.raises(ValueError):
            forecast(_quarterly([1, 2, 3, 4]), periods_ahead=1, band=-0.1)


class TestPeriodLabels:
    """Labels continue the input's period format."""

    def test_quarter_rolls_over_year(self) -> None:
        result = forecast(_quarterly([1, 2, 3, 4]), periods_ahead=2)
        assert [p.period for p in result.forecast] == ["2025 Q1", "2025 Q2"]

    def test_compact_quarter_format_is_kept(self) -> None:
        series = [HistoricalPoint(period=f"2024Q{q}", value=q) for q in range(1, 5)]
        assert forecast(series, periods_ahead=1).forecast[0].period == "2025Q1"

    def test_month_rolls_over_year(self) -> None:
        series = [HistoricalPoint(period=f"2024-{m:02d}", value=m) for m in range(9, 13)]
        assert forecast(series, periods_ahead=1).forecast[0].period == "2025-01"

    def test_unknown_format_uses_offsets(self) -> None:
        series = [HistoricalPoint(period=f"week {w}", value=w) for w in range(1, 5)]
        assert [p.period for p in forecast(series, periods_ahead=2).forecast] == [
            "week 4 +1", "week 4 +2",
        ]


class TestArCoefficient:
    """Lag-1 autocorrelation of the differences."""

    def test_constant_differences_give_zero(self) -> None:
        assert estimate_ar_coefficient(np.array([10.0, 10.0, 10.0])) == 0.0

    def test_alternating_differences_clamped(self) -> None:
        coefficient = estimate_ar_coefficient(np.array([1.0, -1.0, 1.0, -1.0, 1.0]))
        assert coefficient == -0.9

    def test_persistent_differences_positive(self) -> None:
        coefficient = estimate_ar_coefficient(np.array([1.0, 2.0, 3.0, 4.0, 5.0, 6.0]))
        assert 0 < coefficient <= 0.9
