"""
Tests for department performance, monthly trends, seasonality and the
fiscal timeline.
"""

from datetime import date
from typing import List

import pytest

from municipal_intel.models import (
    AnomalySeverity,
    Department,
    DepartmentStatus,
    ForecastPoint,
    ForecastResult,
    MonthlyRecord,
    MonthlyTrend,
    SpendingAlignment,
    TrendDirection,
)
from municipal_intel.services.budget_analysis import (
    analyze_departments,
    analyze_timeline,
    detect_monthly_anomalies,
    detect_seasonality,
    fiscal_year_bounds,
    fiscal_year_for,
    fiscal_year_remaining,
    format_currency,
    monthly_aggregates,
    spending_efficiency,
    spending_insights,
)


def _trend(month: str, spent: float, allocated: float = 100.0, transactions: int = 10) -> MonthlyTrend:
    return MonthlyTrend(
        date=month,
        allocated=allocated,
        spent=spent,
        transactions=transactions,
        utilizationRate=round(spent / allocated * 100, 1),
        averageTransaction=round(spent / transactions, 2),
    )


class TestFormatting:

    def test_currency(self) -> None:
        assert format_currency(1234567.891) == "R1,234,567.89"

    def test_negative_currency(self) -> None:
        assert format_currency(-50) == "-R50.00"


class TestDepartmentPerformance:

    def test_spending_efficiency(self) -> None:
        # utilization 95% -> factor 1.0; 0.4 * 1.0 + 0.6 * 0.8 = 0.88
        assert spending_efficiency(95, 100, 80) == 88.0

    def test_ranked_and_clustered(self, scenario_departments: List[Department]) -> None:
        analysis = analyze_departments(scenario_departments)
        assert [d.department for d in analysis.departments] == [
            "Water Services", "Roads and Stormwater", "Parks and Recreation",
        ]
        assert analysis.performanceClusters == {"high": 1, "mid": 2, "low": 0}
        assert analysis.averagePerformance == pytest.approx(75.7)

    def test_status(self, scenario_departments: List[Department]) -> None:
        statuses = {d.department: d.status for d in analyze_departments(scenario_departments).departments}
        assert statuses["Roads and Stormwater"] == DepartmentStatus.OVERSPENT
        assert statuses["Parks and Recreation"] == DepartmentStatus.UNDERPERFORMING
        assert statuses["Water Services"] == DepartmentStatus.EXCELLENT

    def test_trends_need_three_months(self) -> None:
        dept = Department(
            name="Fleet", budget=1200, spent=300,
            monthlyData=[
                MonthlyRecord(date="2025-04", allocated=100, spent=100),
                MonthlyRecord(date="2025-05", allocated=100, spent=110),
                MonthlyRecord(date="2025-06", allocated=100, spent=120),
            ],
        )
        performance = analyze_departments([dept]).departments[0]
        assert performance.spendingTrend.direction == TrendDirection.INCREASING
        assert performance.spendingTrend.percentage == 20.0

        dept_short = dept.model_copy(update={"monthlyData": dept.monthlyData[:2]})
        assert analyze_departments([dept_short]).departments[0].spendingTrend is None


class TestMonthlyAggregation:

    def test_departments_summed_per_month(self) -> None:
        departments = [
            Department(name="A", budget=1000, monthlyData=[
                MonthlyRecord(date="2025-04", allocated=100, spent=80, transactions=4),
                MonthlyRecord(date="2025-05-31", allocated=100, spent=90, transactions=3),
            ]),
            Department(name="B", budget=1000, monthlyData=[
                MonthlyRecord(date="2025-04-30", allocated=50, spent=60, transactions=6),
            ]),
        ]
        trends = monthly_aggregates(departments)
        assert [t.date for t in trends] == ["2025-04", "2025-05"]
        april = trends[0]
        assert april.allocated == 150.0
        assert april.spent == 140.0
        assert april.transactions == 10
        assert april.utilizationRate == 93.3
        assert april.averageTransaction == 14.0

    def test_no_monthly_data(self) -> None:
        assert monthly_aggregates([Department(name="A", budget=10)]) == []

    def test_malformed_month_rejected(self) -> None:
        with pytest.raises(ValueError):
            MonthlyRecord(date="April 2025")


class TestMonthlyAnomalies:

    def test_spike_month_flagged(self) -> None:
        trends = [_trend(f"2025-{m:02d}", 100.0 + m) for m in range(1, 12)]
        trends.append(_trend("2025-12", 400.0, transactions=40))
        anomalies = detect_monthly_anomalies(trends)
        assert [a.sourceId for a in anomalies] == ["2025-12"]
        assert anomalies[0].severity == AnomalySeverity.HIGH

    def test_too_few_months(self) -> None:
        assert detect_monthly_anomalies([_trend("2025-01", 100.0)] * 4) == []


class TestSeasonality:

    def test_requires_minimum_months(self) -> None:
        trends = [_trend(f"2025-{m:02d}", 100.0) for m in range(1, 7)]
        assert detect_seasonality(trends) is None

    def test_peak_and_trough(self) -> None:
        spending = [100, 100, 100, 100, 100, 300, 100, 100, 100, 100, 100, 50]
        trends = [_trend(f"2024-{m:02d}", s) for m, s in zip(range(1, 13), spending)]
        seasonality = detect_seasonality(trends)
        assert seasonality.peakMonth.month == "Jun"
        assert seasonality.troughMonth.month == "Dec"
        assert len(seasonality.seasonalPattern) == 12
        assert seasonality.strengthDescription == "Strong seasonality"

    def test_flat_spending_is_weak(self) -> None:
        trends = [_trend(f"2024-{m:02d}", 100.0) for m in range(1, 13)]
        seasonality = detect_seasonality(trends)
        assert seasonality.strengthScore == 0.0
        assert seasonality.strengthDescription == "Weak seasonality"

    def test_same_month_averaged_across_years(self) -> None:
        trends = [_trend("2024-01", 100.0), _trend("2025-01", 200.0), _trend("2025-02", 90.0)]
        seasonality = detect_seasonality(trends, min_months=3)
        january = next(m for m in seasonality.seasonalPattern if m.month == "Jan")
        assert january.avgSpent == 150.0


class TestFiscalTimeline:

    @pytest.mark.parametrize(
        "as_of,expected",
        [(date(2025, 4, 1), 2025), (date(2025, 3, 31), 2024), (date(2026, 1, 15), 2025)],
    )
    def test_fiscal_year_starts_in_april(self, as_of: date, expected: int) -> None:
        assert fiscal_year_for(as_of) == expected

    def test_bounds(self) -> None:
        assert fiscal_year_bounds(2025) == (date(2025, 4, 1), date(2026, 3, 31))

    def test_remaining_fraction(self) -> None:
        assert fiscal_year_remaining(date(2025, 4, 1)) == 1.0
        assert fiscal_year_remaining(date(2026, 3, 31)) == 0.0
        assert 0.45 < fiscal_year_remaining(date(2025, 10, 15)) < 0.47

    def test_ahead_of_schedule_projects_overrun(self) -> None:
        timeline = analyze_timeline(1_000_000, 600_000, date(2025, 9, 30), 2025)
        assert timeline.alignmentStatus == SpendingAlignment.AHEAD
        assert timeline.willExceedBudget
        assert timeline.projectedVariance > 0
        assert timeline.currentQuarter == "2025 Q3"
        assert timeline.elapsedDays == 182
        assert timeline.dailyBurnRate == pytest.approx(600_000 / 182, abs=0.01)

    def test_aligned_spending(self) -> None:
        timeline = analyze_timeline(1_000_000, 480_000, date(2025, 9, 30), 2025)
        assert timeline.alignmentStatus == SpendingAlignment.ALIGNED
        assert not timeline.willExceedBudget

    def test_behind_schedule(self) -> None:
        timeline = analyze_timeline(1_000_000, 100_000, date(2025, 9, 30), 2025)
        assert timeline.alignmentStatus == SpendingAlignment.BEHIND

    def test_no_budget(self) -> None:
        assert analyze_timeline(0, 100, date(2025, 9, 30)) is None


class TestSpendingInsights:

    def test_narrative(self) -> None:
        trends = [_trend("2025-07", 100.0), _trend("2025-08", 110.0), _trend("2025-09", 120.0)]
        result = ForecastResult(forecast=[ForecastPoint(period="2025-10", value=132.0, lower=118.8, upper=145.2)])
        insights = spending_insights(trends, [], result)
        assert insights[0] == "Spending has been increasing by 20.0% over the last three months."
        assert any("rise of 10.0%" in i for i in insights)
        assert any("overspending" in i for i in insights)

    def test_forecast_compared_with_its_own_series(self) -> None:
        trends = [_trend("2025-07", 100.0), _trend("2025-08", 110.0), _trend("2025-09", 120.0)]
        result = ForecastResult(forecast=[ForecastPoint(period="2025-10", value=1_050.0, lower=945.0, upper=1_155.0)])
        insights = spending_insights(trends, [], result, last_actual=1_000.0)
        assert any("rise of 5.0%" in i for i in insights)

    def test_empty_inputs(self) -> None:
        assert spending_insights([], [], None) == []
