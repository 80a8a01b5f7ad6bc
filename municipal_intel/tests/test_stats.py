"""
Tests for the shared statistics helpers and the generic weighted scorer.
"""

import math
from typing import List

import pytest

from municipal_intel.models import FactorDirection, RiskCategory, TrendDirection
from municipal_intel.services.stats import (
    WeightedFactor,
    calculate_trend,
    calculate_volatility,
    categorize_risk,
    coefficient_of_variation,
    mean,
    median,
    std_dev,
    weighted_score,
    z_score,
)


class TestStatisticalHelpers:
    """Basic descriptive statistics."""

    def test_mean_calculation_normal(self) -> None:
        assert mean([1.0, 2.0, 3.0, 4.0, 5.0]) == 3.0

    def test_mean_calculation_empty(self) -> None:
        values: List[float] = []
        assert mean(values) == 0.0

    def test_median_calculation_odd(self) -> None:
        assert median([5.0, 1.0, 3.0]) == 3.0

    def test_median_calculation_even(self) -> None:
        assert median([1.0, 2.0, 3.0, 4.0]) == 2.5

    def test_std_dev_is_population(self) -> None:
        """[2, 4, 4, 4, 5, 5, 7, 9] has population std dev exactly 2."""
        result = std_dev([2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0])
        assert math.isclose(result, 2.0), f"Expected 2.0, got {result}"

    def test_std_dev_single_value(self) -> None:
        assert std_dev([42.0]) == 0.0

    def test_z_score_calculation(self) -> None:
        assert z_score(value=5.0, avg=3.0, std=2.0) == 1.0

    def test_z_score_zero_std_dev(self) -> None:
        assert z_score(value=5.0, avg=3.0, std=0.0) == 0.0

    def test_coefficient_of_variation_zero_mean(self) -> None:
        assert coefficient_of_variation([0.0, 0.0]) == 0.0


class TestTrendAndVolatility:
    """Series helpers used by department analysis."""

    def test_increasing_trend(self) -> None:
        trend = calculate_trend([100.0, 105.0, 110.0])
        assert trend.direction == TrendDirection.INCREASING
        assert trend.percentage == 10.0
        assert trend.raw == 10.0

    def test_decreasing_trend_keeps_signed_raw(self) -> None:
        trend = calculate_trend([200.0, 150.0])
        assert trend.direction == TrendDirection.DECREASING
        assert trend.percentage == 25.0
        assert trend.raw == -25.0

    def test_trend_from_zero_is_neutral(self) -> None:
        trend = calculate_trend([0.0, 50.0])
        assert trend.direction == TrendDirection.NEUTRAL
        assert trend.percentage == 0.0

    def test_volatility_mean_absolute_change(self) -> None:
        # |110/100 - 1| = 0.10, |99/110 - 1| = 0.10
        assert calculate_volatility([100.0, 110.0, 99.0]) == 10.0

    def test_volatility_skips_zero_previous(self) -> None:
        assert calculate_volatility([0.0, 100.0, 150.0]) == 50.0

    def test_volatility_short_series(self) -> None:
        assert calculate_volatility([100.0]) == 0.0


class TestWeightedScore:
    """Generic weighted scorer shared by both risk models."""

    def test_contributions_sum_to_total(self) -> None:
        total, contributions = weighted_score([
            WeightedFactor("a", 40.0, 0.5),
            WeightedFactor("b", 80.0, 0.5, FactorDirection.HIGHER_IS_BETTER),
        ])
        assert total == pytest.approx(30.0)
        assert contributions == pytest.approx({"a": 20.0, "b": 10.0})
        assert sum(contributions.values()) == pytest.approx(total)

    def test_out_of_range_values_are_clamped(self) -> None:
        total, contributions = weighted_score([
            WeightedFactor("a", 250.0, 0.5),
            WeightedFactor("b", -40.0, 0.5),
        ])
        assert contributions["a"] == 50.0
        assert contributions["b"] == 0.0
        assert total == 50.0

    def test_weights_must_sum_to_one(self) -> None:
        with pytest.raises(ValueError, match="sum to 1.0"):
            weighted_score([WeightedFactor("a", 10.0, 0.6), WeightedFactor("b", 10.0, 0.6)])

    def test_duplicate_names_rejected(self) -> None:
        with pytest.raises(ValueError, match="Duplicate"):
            weighted_score([WeightedFactor("a", 10.0, 0.5), WeightedFactor("a", 10.0, 0.5)])


class TestCategorizeRisk:
    """Risk bands with default cut points (20, 40, 60, 80)."""

    @pytest.mark.parametrize(
        "score,expected",
        [
            (0.0, RiskCategory.LOW),
            (19.99, RiskCategory.LOW),
            (20.0, RiskCategory.MODERATE),
            (39.9, RiskCategory.MODERATE),
            (40.0, RiskCategory.ELEVATED),
            (60.0, RiskCategory.HIGH),
            (80.0, RiskCategory.CRITICAL),
            (100.0, RiskCategory.CRITICAL),
        ],
    )
    def test_band_boundaries(self, score: float, expected: RiskCategory) -> None:
        assert categorize_risk(score) == expected

    def test_custom_cut_points(self) -> None:
        assert categorize_risk(30.0, (10, 20, 30, 40)) == RiskCategory.HIGH

    def test_cut_points_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("INTEL_RISK_CUT_POINTS", "[10, 20, 30, 40]")
        assert categorize_risk(45.0) == RiskCategory.CRITICAL

    def test_wrong_number_of_cut_points(self) -> None:
        with pytest.raises(ValueError):
            categorize_risk(50.0, (20, 40, 60))
