"""
Budget Analysis - department performance, monthly trends and fiscal timeline.

Provides the forward-looking budget views attached to the intelligence
report:
1. DEPARTMENT PERFORMANCE - utilization, spending efficiency, trend and status
2. MONTHLY TRENDS - department monthly records aggregated by YYYY-MM (pandas)
3. MONTHLY ANOMALIES - multivariate scan of monthly spending profiles
4. SEASONALITY - calendar-month averages, peak/trough and strength (12+ months)
5. FISCAL TIMELINE - time vs spending progress and burn-rate projection
   - South African municipal fiscal year: 1 April to 31 March
6. SPENDING INSIGHTS - short narrative findings for the dashboard
"""

import calendar
import logging
from datetime import date
from typing import List, Optional, Sequence

import pandas as pd

from municipal_intel.core.config import get_settings
from municipal_intel.models import (
    AnomalyRecord,
    AnomalySeverity,
    Department,
    DepartmentAnalysis,
    DepartmentPerformance,
    DepartmentStatus,
    ForecastResult,
    MonthlyTrend,
    SeasonalMonth,
    Seasonality,
    SpendingAlignment,
    TimelineAnalysis,
)
from municipal_intel.services.anomaly_detector import detect_multivariate
from municipal_intel.services.optimization_advisor import department_label
from municipal_intel.services.stats import calculate_trend, coefficient_of_variation, mean

logger = logging.getLogger(__name__)


# Utilization (%) treated as ideal by the efficiency score
IDEAL_UTILIZATION = 95.0

# Efficiency blend of utilization and performance
UTILIZATION_WEIGHT = 0.4
PERFORMANCE_WEIGHT = 0.6

# Spending within this many points of time progress is "Aligned"
ALIGNMENT_TOLERANCE = 5.0

# Monthly anomaly scan
MONTHLY_ANOMALY_THRESHOLD = 2.5
SIGNIFICANT_MONTHLY_SCORE = 3.0

# Fiscal year starts on 1 April
FISCAL_YEAR_START_MONTH = 4

MONTHLY_FEATURES = ["spent", "allocated", "transactions", "utilizationRate", "averageTransaction"]


def format_currency(amount: float) -> str:
    """Format a ZAR amount, e.g. R1,234,567.89."""
    sign = "-" if amount < 0 else ""
    return f"{sign}R{abs(amount):,.2f}"


# =============================================================================
# Department Performance
# =============================================================================


def spending_efficiency(spent: float, allocated: float, performance_score: float) -> float:
    """
    Blend of utilization closeness to 95% (40%) and performance (60%), as 0-100.

    Example:
        >>> spending_efficiency(95, 100, 80)
        88.0
    """
    utilization = spent / allocated * 100
    utilization_factor = 1 - abs(utilization - IDEAL_UTILIZATION) / IDEAL_UTILIZATION
    efficiency = utilization_factor * UTILIZATION_WEIGHT + performance_score / 100 * PERFORMANCE_WEIGHT
    return round(efficiency * 100, 1)


def department_status(department: Department) -> DepartmentStatus:
    utilization = department.spent / department.budget * 100
    performance = department.performanceScore

    if utilization > 100:
        return DepartmentStatus.OVERSPENT
    if utilization > 90:
        return DepartmentStatus.AT_RISK
    if utilization < 50 and performance < 70:
        return DepartmentStatus.UNDERPERFORMING
    if performance >= 80:
        return DepartmentStatus.EXCELLENT
    if performance >= 70:
        return DepartmentStatus.GOOD
    if performance >= 60:
        return DepartmentStatus.SATISFACTORY
    return DepartmentStatus.NEEDS_IMPROVEMENT


def analyze_departments(departments: Sequence[Department]) -> DepartmentAnalysis:
    """
    Rank departments by performance and cluster them into high/mid/low.

    Departments must have a positive budget. Trends use the last three
    monthly records when more than two exist.
    """
    results: List[DepartmentPerformance] = []
    for dept in departments:
        spending_trend = efficiency_trend = None
        if len(dept.monthlyData) > 2:
            recent = dept.monthlyData[-3:]
            spending_trend = calculate_trend([m.spent for m in recent])
            efficiency_trend = calculate_trend([
                m.spent / m.allocated * 100 if m.allocated else 0.0 for m in recent
            ])

        results.append(DepartmentPerformance(
            department=department_label(dept),
            allocated=dept.budget,
            spent=dept.spent,
            remaining=dept.budget - dept.spent,
            utilizationRate=round(dept.spent / dept.budget * 100, 1),
            performanceScore=dept.performanceScore,
            spendingEfficiency=spending_efficiency(dept.spent, dept.budget, dept.performanceScore),
            spendingTrend=spending_trend,
            efficiencyTrend=efficiency_trend,
            status=department_status(dept),
        ))

    results.sort(key=lambda d: d.performanceScore, reverse=True)

    return DepartmentAnalysis(
        departments=results,
        performanceClusters={
            "high": sum(1 for d in results if d.performanceScore >= 80),
            "mid": sum(1 for d in results if 60 <= d.performanceScore < 80),
            "low": sum(1 for d in results if d.performanceScore < 60),
        },
        averagePerformance=round(mean([d.performanceScore for d in results]), 1),
    )


# =============================================================================
# Monthly Trends
# =============================================================================


def monthly_aggregates(departments: Sequence[Department]) -> List[MonthlyTrend]:
    """
    Aggregate all departments' monthly records by calendar month.

    Dates are truncated to YYYY-MM, so "2025-04" and "2025-04-30" land in
    the same month. Result is ordered by month.
    """
    records = [
        {
            "date": record.date[:7],
            "allocated": record.allocated,
            "spent": record.spent,
            "transactions": record.transactions,
        }
        for dept in departments
        for record in dept.monthlyData
    ]
    if not records:
        return []

    df = pd.DataFrame(records)
    grouped = (
        df.groupby("date", sort=True)[["allocated", "spent", "transactions"]]
        .sum()
        .reset_index()
    )

    trends: List[MonthlyTrend] = []
    for row in grouped.itertuples(index=False):
        allocated = float(row.allocated)
        spent = float(row.spent)
        count = int(row.transactions)
        trends.append(MonthlyTrend(
            date=row.date,
            allocated=allocated,
            spent=spent,
            transactions=count,
            utilizationRate=round(spent / allocated * 100, 1) if allocated else 0.0,
            averageTransaction=round(spent / count, 2) if count else 0.0,
        ))
    return trends


def detect_monthly_anomalies(
    trends: Sequence[MonthlyTrend],
    threshold: float = MONTHLY_ANOMALY_THRESHOLD,
) -> List[AnomalyRecord]:
    """
    Months whose spending profile is a multivariate outlier.

    Severity is High when the distance exceeds 3, otherwise Medium. Fewer
    than five months yields no anomalies.
    """
    rows = [{feature: float(getattr(t, feature)) for feature in MONTHLY_FEATURES} for t in trends]
    result = detect_multivariate(rows, threshold)
    if result.insufficientData:
        return []

    return [
        anomaly.model_copy(update={
            "sourceId": trends[anomaly.index].date,
            "score": round(anomaly.score, 2),
            "deviation": round(anomaly.deviation, 2),
            "severity": (
                AnomalySeverity.HIGH if anomaly.score > SIGNIFICANT_MONTHLY_SCORE
                else AnomalySeverity.MEDIUM
            ),
            "explanation": f"Spending profile for {trends[anomaly.index].date} deviates from other months",
        })
        for anomaly in result.anomalies
    ]


# =============================================================================
# Seasonality
# =============================================================================


def detect_seasonality(
    trends: Sequence[MonthlyTrend],
    min_months: Optional[int] = None,
) -> Optional[Seasonality]:
    """
    Average spending per calendar month across years.

    Strength is the coefficient of variation of the monthly averages:
    below 10% weak, below 20% moderate, otherwise strong.

    Returns:
        Seasonality, or None with fewer than `min_months` monthly aggregates
        (default settings.min_months_for_seasonality).
    """
    if min_months is None:
        min_months = get_settings().min_months_for_seasonality
    if len(trends) < min_months:
        return None

    df = pd.DataFrame([t.model_dump() for t in trends])
    df["month"] = df["date"].str[5:7].astype(int)
    profile = df.groupby("month", sort=True).agg(
        avgSpent=("spent", "mean"),
        avgUtilization=("utilizationRate", "mean"),
    )

    pattern = [
        SeasonalMonth(
            month=calendar.month_abbr[int(month)],
            avgSpent=round(float(row.avgSpent), 2),
            avgUtilization=round(float(row.avgUtilization), 1),
        )
        for month, row in profile.iterrows()
    ]

    if len(pattern) < 2:
        strength, description = 0.0, "Insufficient data"
    else:
        strength = round(coefficient_of_variation([m.avgSpent for m in pattern]), 1)
        if strength < 10:
            description = "Weak seasonality"
        elif strength < 20:
            description = "Moderate seasonality"
        else:
            description = "Strong seasonality"

    return Seasonality(
        seasonalPattern=pattern,
        peakMonth=max(pattern, key=lambda m: m.avgSpent),
        troughMonth=min(pattern, key=lambda m: m.avgSpent),
        strengthScore=strength,
        strengthDescription=description,
    )


# =============================================================================
# Fiscal Timeline
# =============================================================================


def fiscal_year_for(as_of: date) -> int:
    """Starting year of the fiscal year containing `as_of`."""
    return as_of.year if as_of.month >= FISCAL_YEAR_START_MONTH else as_of.year - 1


def fiscal_year_bounds(fiscal_year: int):
    """(1 April fiscal_year, 31 March fiscal_year + 1)."""
    return date(fiscal_year, FISCAL_YEAR_START_MONTH, 1), date(fiscal_year + 1, 3, 31)


def fiscal_year_remaining(as_of: date, fiscal_year: Optional[int] = None) -> float:
    """Fraction (0-1) of the fiscal year still ahead of `as_of`."""
    if fiscal_year is None:
        fiscal_year = fiscal_year_for(as_of)
    start, end = fiscal_year_bounds(fiscal_year)
    total_days = (end - start).days
    elapsed = min(total_days, max(0, (as_of - start).days))
    return 1.0 - elapsed / total_days


def analyze_timeline(
    total_budget: float,
    total_spent: float,
    as_of: date,
    fiscal_year: Optional[int] = None,
) -> Optional[TimelineAnalysis]:
    """
    Compare spending progress with fiscal-year time progress.

    Burn rate is spend per elapsed day; the projection extends it over the
    whole fiscal year.

    Returns:
        TimelineAnalysis, or None when total_budget is not positive.

    Example:
        >>> t = analyze_timeline(1_000_000, 600_000, date(2025, 9, 30), 2025)
        >>> t.alignmentStatus.value, t.willExceedBudget
        ('Ahead', True)
    """
    if total_budget <= 0:
        return None
    if fiscal_year is None:
        fiscal_year = fiscal_year_for(as_of)

    start, end = fiscal_year_bounds(fiscal_year)
    total_days = (end - start).days
    elapsed_days = max(0, (as_of - start).days)
    remaining_days = max(0, (end - as_of).days)

    percent_elapsed = min(100.0, elapsed_days / total_days * 100)
    percent_spent = total_spent / total_budget * 100
    alignment = percent_spent - percent_elapsed

    if abs(alignment) <= ALIGNMENT_TOLERANCE:
        status = SpendingAlignment.ALIGNED
    elif alignment > ALIGNMENT_TOLERANCE:
        status = SpendingAlignment.AHEAD
    else:
        status = SpendingAlignment.BEHIND

    daily_burn = total_spent / elapsed_days if elapsed_days > 0 else 0.0
    projected_total = daily_burn * total_days
    projected_variance = projected_total - total_budget

    return TimelineAnalysis(
        fiscalYearStart=start,
        fiscalYearEnd=end,
        asOfDate=as_of,
        totalDays=total_days,
        elapsedDays=elapsed_days,
        remainingDays=remaining_days,
        percentElapsed=round(percent_elapsed, 1),
        percentRemaining=round(max(0.0, 100 - percent_elapsed), 1),
        currentQuarter=f"{as_of.year} Q{(as_of.month - 1) // 3 + 1}",
        percentSpent=round(percent_spent, 1),
        alignment=round(alignment, 1),
        alignmentStatus=status,
        dailyBurnRate=round(daily_burn, 2),
        monthlyBurnRate=round(daily_burn * 30, 2),
        projectedTotal=round(projected_total, 2),
        projectedVariance=round(projected_variance, 2),
        willExceedBudget=projected_variance > 0,
    )


# =============================================================================
# Spending Insights
# =============================================================================


def spending_insights(
    trends: Sequence[MonthlyTrend],
    monthly_anomalies: Sequence[AnomalyRecord],
    forecast: Optional[ForecastResult],
    last_actual: Optional[float] = None,
) -> List[str]:
    """
    Narrative findings on recent trend, anomalies, forecast and utilization.

    `last_actual` is the final observation of the series the forecast was
    fitted on; it defaults to the latest monthly trend's spending.
    """
    insights: List[str] = []

    if len(trends) >= 3:
        trend = calculate_trend([m.spent for m in trends[-3:]])
        insights.append(
            f"Spending has been {trend.direction.value} by {trend.percentage}% "
            f"over the last three months."
        )

    significant = [a for a in monthly_anomalies if a.severity == AnomalySeverity.HIGH]
    if significant:
        insights.append(
            f"{len(significant)} significant spending anomalies detected requiring investigation."
        )

    if last_actual is None and trends:
        last_actual = trends[-1].spent
    if forecast is not None and forecast.forecast and last_actual is not None and last_actual > 0:
        change = (forecast.forecast[0].value - last_actual) / last_actual * 100
        insights.append(
            f"Forecast projects a {'rise' if change > 0 else 'reduction'} of "
            f"{abs(change):.1f}% in spending next month."
        )

    if len(trends) >= 3:
        utilization = mean([m.utilizationRate for m in trends[-3:]])
        if utilization > 105:
            behaviour = "overspending"
        elif utilization > 95:
            behaviour = "optimal"
        elif utilization > 80:
            behaviour = "efficient"
        else:
            behaviour = "underspending"
        insights.append(
            f"Recent budget utilization rate of {utilization:.1f}% indicates {behaviour} behavior."
        )

    return insights
