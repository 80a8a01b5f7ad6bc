"""
Pydantic models for the Municipal Intelligence engine.

This module provides type-safe validation and serialization for every
structure that crosses the engine boundary:

- Input shapes of the municipal data bundle (transactions, budgets,
  departments, compliance history, historical series)
- Component outputs (risk scores, anomaly results, forecasts, recommendations)
- The composite IntelligenceReport returned by the aggregator
- Request bodies for the HTTP API

Field names follow the camelCase JSON contract consumed by the dashboard.
All models use Pydantic v2 syntax.
"""

import logging
import math
import re
from datetime import date as DateType, datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from municipal_intel.models.enums import (
    AnomalySeverity,
    AuditReadiness,
    ComplianceFramework,
    DepartmentStatus,
    DetectionMethod,
    HealthStatus,
    ImpactLevel,
    Priority,
    RecommendationType,
    RiskCategory,
    SpendingAlignment,
    TrendDirection,
    ViolationSeverity,
)

logger = logging.getLogger(__name__)

_MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def _to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize aware datetimes to naive UTC so all timestamps compare."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# =============================================================================
# Municipal Data Bundle - Input Records
# =============================================================================


class Transaction(BaseModel):
    """
    A single financial transaction.

    Immutable once created. `amount` and `date` are optional on input so that
    incomplete rows from the store can be parsed; preprocessing drops them
    before any analysis runs.
    """
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "id": "TX-1001",
                "amount": 25000.0,
                "date": "2025-03-27T00:00:00",
                "departmentId": "IT",
                "category": "Equipment",
                "vendorId": "V-204",
                "flags": []
            }
        }
    )

    id: str = Field(
        ...,
        description="Unique transaction identifier"
    )
    amount: Optional[float] = Field(
        default=None,
        ge=0.0,
        description="Transaction amount (non-negative)"
    )
    date: Optional[datetime] = Field(
        default=None,
        description="Transaction timestamp"
    )
    departmentId: Optional[str] = Field(
        default=None,
        description="Owning department reference"
    )
    category: Optional[str] = Field(
        default=None,
        description="Spending category"
    )
    vendorId: Optional[str] = Field(
        default=None,
        description="Vendor reference"
    )
    flags: List[str] = Field(
        default_factory=list,
        description="Optional markers (e.g. pre-marked anomaly in fixtures)"
    )

    @field_validator("date")
    @classmethod
    def _normalize_date(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _to_naive_utc(value)


class Budget(BaseModel):
    """Budget line with allocated and spent amounts."""

    id: Optional[str] = Field(default=None, description="Budget identifier")
    departmentId: Optional[str] = Field(
        default=None,
        description="Department the budget belongs to"
    )
    allocated: Optional[float] = Field(
        default=None,
        ge=0.0,
        description="Allocated amount"
    )
    spent: Optional[float] = Field(
        default=None,
        ge=0.0,
        description="Amount spent to date"
    )
    fiscalYear: Optional[int] = Field(
        default=None,
        description="Fiscal year start (e.g. 2025 for FY 2025/26)"
    )


class MonthlyRecord(BaseModel):
    """Monthly spending record for a department."""

    date: str = Field(
        ...,
        description="Month as YYYY-MM (ISO dates are truncated to the month)"
    )
    allocated: float = Field(default=0.0, ge=0.0, description="Allocated for the month")
    spent: float = Field(default=0.0, ge=0.0, description="Spent in the month")
    transactions: int = Field(default=0, ge=0, description="Transaction count")

    @field_validator("date")
    @classmethod
    def _truncate_to_month(cls, value: str) -> str:
        month = value.strip()[:7]
        if not _MONTH_PATTERN.match(month):
            raise ValueError(f"Expected a YYYY-MM month, got {value!r}")
        return month


class Department(BaseModel):
    """
    Municipal department with its annual allocation and performance.

    The optional risk overrides (complianceRating, auditFindings,
    documentCompliance) feed the per-department risk profile; when absent the
    neutral defaults of RiskIndicatorSet apply.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "FIN",
                "name": "Finance",
                "budget": 1200000.0,
                "spent": 640000.0,
                "performanceScore": 82,
                "monthlyData": [
                    {"date": "2025-04", "allocated": 100000, "spent": 94000, "transactions": 31}
                ]
            }
        }
    )

    id: Optional[str] = Field(default=None, description="Department identifier")
    name: Optional[str] = Field(default=None, description="Department name")
    budget: Optional[float] = Field(
        default=None,
        ge=0.0,
        description="Annual allocated budget"
    )
    spent: float = Field(default=0.0, ge=0.0, description="Cumulative spent")
    performanceScore: float = Field(
        default=75.0,
        ge=0.0,
        le=100.0,
        description="Performance score (0-100)"
    )
    monthlyData: List[MonthlyRecord] = Field(
        default_factory=list,
        description="Ordered monthly records"
    )
    complianceRating: Optional[float] = Field(
        default=None,
        description="Compliance rating override (0-100)"
    )
    auditFindings: Optional[int] = Field(
        default=None,
        description="Open audit findings override"
    )
    documentCompliance: Optional[float] = Field(
        default=None,
        description="Documentation compliance override (0-100)"
    )


class ComplianceEntry(BaseModel):
    """Recorded compliance violation."""

    date: datetime = Field(..., description="When the violation was recorded")
    framework: Optional[ComplianceFramework] = Field(
        default=None,
        description="Framework the violation relates to"
    )
    severity: ViolationSeverity = Field(
        default=ViolationSeverity.MEDIUM,
        description="Violation severity"
    )
    description: str = Field(default="", description="Violation description")
    resolved: bool = Field(default=False, description="Whether it was remediated")

    @field_validator("date")
    @classmethod
    def _normalize_date(cls, value: datetime) -> datetime:
        return _to_naive_utc(value)


class HistoricalPoint(BaseModel):
    """One labelled observation in a time series."""

    period: str = Field(..., description="Period label (YYYY-MM or 'YYYY Qn')")
    value: float = Field(..., description="Observed value")


class RiskSignal(BaseModel):
    """Externally supplied risk score (governance or external factors)."""

    riskScore: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=100.0,
        description="Risk score (0-100)"
    )


class PriorityWeight(BaseModel):
    """Strategic priority with a weight in [0, 1]."""

    name: str = Field(..., description="Priority name, matched against department names")
    weight: float = Field(..., ge=0.0, le=1.0, description="Strategic weight")


class MunicipalDataBundle(BaseModel):
    """
    Complete input for one intelligence analysis.

    `id` plus `lastUpdated` form the cache key; when either is missing the
    aggregator does not cache. List sections are optional so that data-quality
    scoring can tell a missing section from an empty one.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "budget-2025",
                "municipalityId": "MUN-001",
                "lastUpdated": "2025-10-01T08:00:00Z",
                "fiscalYear": 2025,
                "transactions": [
                    {"id": "TX-1", "amount": 1200.0, "date": "2025-09-01", "departmentId": "FIN"}
                ],
                "budgets": [{"departmentId": "FIN", "allocated": 100000, "spent": 52000}],
                "departments": [{"name": "Finance", "budget": 100000, "spent": 52000}]
            }
        }
    )

    id: Optional[str] = Field(default=None, description="Caller-supplied bundle identifier")
    municipalityId: Optional[str] = Field(default=None, description="Municipality identifier")
    lastUpdated: Optional[str] = Field(
        default=None,
        description="Data-version marker used in the cache key"
    )
    asOfDate: Optional[DateType] = Field(
        default=None,
        description="Reference date; defaults to the latest transaction date"
    )
    fiscalYear: Optional[int] = Field(
        default=None,
        description="Fiscal year start (fiscal year runs 1 April - 31 March)"
    )
    transactions: Optional[List[Transaction]] = Field(default=None)
    budgets: Optional[List[Budget]] = Field(default=None)
    departments: Optional[List[Department]] = Field(default=None)
    complianceHistory: Optional[List[ComplianceEntry]] = Field(default=None)
    historicalData: Optional[List[HistoricalPoint]] = Field(
        default=None,
        description="Monthly spending series; derived from department monthlyData when absent"
    )
    historicalRisk: List[float] = Field(
        default_factory=list,
        description="Previous overall risk scores, oldest first"
    )
    governanceMetrics: Optional[RiskSignal] = Field(default=None)
    externalFactors: Optional[RiskSignal] = Field(default=None)
    priorities: List[PriorityWeight] = Field(default_factory=list)
    totalBudget: Optional[float] = Field(
        default=None,
        ge=0.0,
        description="Total budget; defaults to the sum of department budgets"
    )
    totalSpent: Optional[float] = Field(
        default=None,
        ge=0.0,
        description="Total spent; defaults to the sum of department spend"
    )
    fiscalYearRemaining: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Fraction of the fiscal year remaining; derived from asOfDate when absent"
    )


# =============================================================================
# Risk Scoring
# =============================================================================


_INDICATOR_RANGES: Dict[str, tuple] = {
    "complianceRating": (0.0, 100.0, 100.0),
    "budgetVariance": (-math.inf, math.inf, 0.0),
    "auditFindings": (0.0, math.inf, 0.0),
    "spendingVolatility": (0.0, 100.0, 0.0),
    "documentCompliance": (0.0, 100.0, 100.0),
    "historicalPerformance": (0.0, 100.0, 100.0),
}


class RiskIndicatorSet(BaseModel):
    """
    Six inputs of the EUREKA risk score.

    Missing, non-numeric, non-finite or out-of-range values fall back to the
    neutral/good default instead of failing validation: partial data is the
    normal case for a live municipal system.

    Defaults:
    - complianceRating: 100 (0-100, higher = better)
    - budgetVariance: 0 (percent, sign ignored)
    - auditFindings: 0 (count)
    - spendingVolatility: 0 (0-100, larger values are clipped to 100)
    - documentCompliance: 100 (0-100, higher = better)
    - historicalPerformance: 100 (0-100, higher = better)
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "complianceRating": 82,
                "budgetVariance": -12.5,
                "auditFindings": 3,
                "spendingVolatility": 18,
                "documentCompliance": 90,
                "historicalPerformance": 76
            }
        }
    )

    complianceRating: float = 100.0
    budgetVariance: float = 0.0
    auditFindings: float = 0.0
    spendingVolatility: float = 0.0
    documentCompliance: float = 100.0
    historicalPerformance: float = 100.0

    @field_validator("*", mode="before")
    @classmethod
    def _default_malformed(cls, value: Any, info) -> float:
        low, high, default = _INDICATOR_RANGES[info.field_name]
        if value is None or isinstance(value, bool):
            return default
        try:
            number = float(value)
        except (TypeError, ValueError):
            logger.debug(f"Non-numeric {info.field_name}={value!r}, using {default}")
            return default
        if not math.isfinite(number) or number < low:
            logger.debug(f"Out-of-range {info.field_name}={value!r}, using {default}")
            return default
        if number > high:
            if info.field_name == "spendingVolatility":
                return high
            logger.debug(f"Out-of-range {info.field_name}={value!r}, using {default}")
            return default
        return number


class RiskScore(BaseModel):
    """
    Weighted risk score in [0, 100] (higher = riskier).

    `breakdown` maps each factor to its weighted contribution; contributions
    sum to `score`.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "score": 23.5,
                "category": "Moderate",
                "breakdown": {
                    "compliance": 4.5, "budget": 2.5, "findings": 6.0,
                    "volatility": 2.7, "documentation": 1.0, "historical": 2.4
                },
                "weights": {
                    "compliance": 0.25, "budget": 0.2, "findings": 0.2,
                    "volatility": 0.15, "documentation": 0.1, "historical": 0.1
                }
            }
        }
    )

    score: float = Field(..., ge=0.0, le=100.0, description="Risk score (0-100)")
    category: RiskCategory = Field(..., description="Risk band")
    breakdown: Dict[str, float] = Field(
        default_factory=dict,
        description="Weighted contribution per factor"
    )
    weights: Dict[str, float] = Field(
        default_factory=dict,
        description="Weight per factor (sums to 1.0)"
    )


class RiskFactorContribution(BaseModel):
    """Share of a risk score explained by one factor."""

    factor: str
    contribution: float
    percentage: float = Field(..., description="Contribution as % of the total score")


class DepartmentRiskProfile(BaseModel):
    """EUREKA risk score for one department with its main drivers."""

    department: str
    riskScore: RiskScore
    keyRiskFactors: List[RiskFactorContribution] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class MitigationStrategy(BaseModel):
    """Mitigation suggestion for a risk area scoring above 50."""

    area: str
    score: float
    strategy: str


class RiskAssessment(BaseModel):
    """Five-factor aggregate risk assessment of a municipality."""

    overallScore: float = Field(..., ge=0.0, le=100.0)
    category: RiskCategory
    breakdown: Dict[str, float] = Field(
        default_factory=dict,
        description="Raw (0-100) score per risk area"
    )
    contributions: Dict[str, float] = Field(
        default_factory=dict,
        description="Weighted contribution per risk area"
    )
    weights: Dict[str, float] = Field(default_factory=dict)
    mitigationStrategies: List[MitigationStrategy] = Field(default_factory=list)
    urgentActions: List[str] = Field(default_factory=list)
    trendDirection: TrendDirection = TrendDirection.STABLE


# =============================================================================
# Anomaly Detection
# =============================================================================


class AnomalyRecord(BaseModel):
    """
    One flagged observation.

    Univariate detections fill `value`/`expectedValue`; multivariate
    detections fill `features`/`expectedFeatures`. `deviation` is the signed
    distance from the expected value (univariate) or the distance score
    itself (multivariate).
    """

    index: int = Field(..., ge=0, description="Position in the analysed input")
    sourceId: Optional[str] = Field(default=None, description="Source record id")
    value: Optional[float] = Field(default=None, description="Observed value")
    features: Optional[Dict[str, float]] = Field(default=None, description="Observed feature vector")
    score: float = Field(..., ge=0.0, description="Deviation score (higher = more severe)")
    expectedValue: Optional[float] = Field(default=None)
    expectedFeatures: Optional[Dict[str, float]] = Field(default=None)
    deviation: float = Field(..., description="Distance from the expected value")
    deviationPercentage: Optional[float] = Field(default=None)
    method: DetectionMethod
    methods: List[DetectionMethod] = Field(
        default_factory=list,
        description="All methods that flagged this item"
    )
    severity: Optional[AnomalySeverity] = None
    department: Optional[str] = None
    category: Optional[str] = None
    explanation: Optional[str] = None


class AnomalyDetectionResult(BaseModel):
    """
    Result of a single detector run.

    `insufficientData` is set (with a human-readable `reason`) when the input
    is below the detector's minimum size; `anomalies` is then empty and must
    not be read as "nothing unusual".
    """

    anomalies: List[AnomalyRecord] = Field(default_factory=list)
    mean: Optional[float] = None
    stdDev: Optional[float] = None
    means: Optional[Dict[str, float]] = None
    threshold: float
    totalItems: int = 0
    anomalyCount: int = 0
    insufficientData: bool = False
    reason: Optional[str] = None


class AnomalySummary(BaseModel):
    """Ensemble anomaly detection over the bundle's transactions."""

    totalAnomalies: int = 0
    highRiskAnomalies: int = 0
    anomalies: List[AnomalyRecord] = Field(default_factory=list)
    detectionMethods: List[DetectionMethod] = Field(default_factory=list)
    confidence: str = "Low"
    insufficientData: bool = False
    reason: Optional[str] = None


# =============================================================================
# Forecasting
# =============================================================================


class ForecastPoint(BaseModel):
    """Projected value for one future period with a symmetric band."""

    period: str
    value: float = Field(..., ge=0.0)
    lower: float = Field(..., ge=0.0)
    upper: float = Field(..., ge=0.0)


class ForecastModelInfo(BaseModel):
    """Fitted parameters of the AR(1)-on-differences model."""

    arCoefficient: float
    diffMean: float
    dataPoints: int


class ForecastResult(BaseModel):
    """Forecast output; empty with `insufficientData` below 4 points."""

    forecast: List[ForecastPoint] = Field(default_factory=list)
    modelInfo: Optional[ForecastModelInfo] = None
    insufficientData: bool = False
    reason: Optional[str] = None


# =============================================================================
# Budget Analysis
# =============================================================================


class TrendSummary(BaseModel):
    """Change between the first and last value of a short series."""

    direction: TrendDirection
    percentage: float = 0.0
    raw: float = 0.0


class DepartmentPerformance(BaseModel):
    """Utilization, efficiency and status of one department."""

    department: str
    allocated: float
    spent: float
    remaining: float
    utilizationRate: float
    performanceScore: float
    spendingEfficiency: float
    spendingTrend: Optional[TrendSummary] = None
    efficiencyTrend: Optional[TrendSummary] = None
    status: DepartmentStatus


class DepartmentAnalysis(BaseModel):
    """Department performance ranking with high/mid/low clusters."""

    departments: List[DepartmentPerformance] = Field(default_factory=list)
    performanceClusters: Dict[str, int] = Field(default_factory=dict)
    averagePerformance: float = 0.0


class MonthlyTrend(BaseModel):
    """Monthly spending aggregated across departments."""

    date: str
    allocated: float
    spent: float
    transactions: int
    utilizationRate: float
    averageTransaction: float


class SeasonalMonth(BaseModel):
    month: str
    avgSpent: float
    avgUtilization: float


class Seasonality(BaseModel):
    """Calendar-month spending profile (needs 12+ months)."""

    seasonalPattern: List[SeasonalMonth] = Field(default_factory=list)
    peakMonth: SeasonalMonth
    troughMonth: SeasonalMonth
    strengthScore: float = Field(..., description="Coefficient of variation (%)")
    strengthDescription: str


class TimelineAnalysis(BaseModel):
    """Fiscal-year time progress versus spending progress and burn rate."""

    fiscalYearStart: DateType
    fiscalYearEnd: DateType
    asOfDate: DateType
    totalDays: int
    elapsedDays: int
    remainingDays: int
    percentElapsed: float
    percentRemaining: float
    currentQuarter: str
    percentSpent: float
    alignment: float
    alignmentStatus: SpendingAlignment
    dailyBurnRate: float
    monthlyBurnRate: float
    projectedTotal: float
    projectedVariance: float
    willExceedBudget: bool


class Predictions(BaseModel):
    """Forecast and forward-looking budget analysis."""

    budgetForecast: ForecastResult
    monthlyTrends: List[MonthlyTrend] = Field(default_factory=list)
    monthlyAnomalies: List[AnomalyRecord] = Field(
        default_factory=list,
        description="Months whose spending profile deviates from the rest"
    )
    timeline: Optional[TimelineAnalysis] = None
    seasonality: Optional[Seasonality] = None
    spendingInsights: List[str] = Field(default_factory=list)
    forecastHorizon: int


# =============================================================================
# Compliance
# =============================================================================


class FrameworkCompliance(BaseModel):
    """Score and gaps for one regulatory framework."""

    framework: ComplianceFramework
    score: float = Field(..., ge=0.0, le=100.0)
    status: HealthStatus
    isCritical: bool = Field(..., description="Score below 70")
    gaps: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class ComplianceIntelligence(BaseModel):
    """Compliance gap analysis across all frameworks."""

    overallScore: float = Field(..., ge=0.0, le=100.0)
    frameworkBreakdown: List[FrameworkCompliance] = Field(default_factory=list)
    criticalGaps: List[FrameworkCompliance] = Field(default_factory=list)
    auditReadiness: AuditReadiness


# =============================================================================
# Recommendations
# =============================================================================


class Recommendation(BaseModel):
    """
    Actionable recommendation.

    `impact` describes the consequence class; `priority` is what the
    aggregator sorts on.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "rec-1",
                "type": "critical",
                "category": "Budget Optimization",
                "title": "Address Overspending",
                "description": "1 department(s) have exceeded their allocated budget.",
                "impact": "Critical",
                "priority": "Critical",
                "action": "Immediate budget review and reallocation required",
                "details": [
                    {"department": "Roads", "overspentAmount": 20.0, "percentage": "120.0%"}
                ]
            }
        }
    )

    id: Optional[str] = None
    type: Optional[RecommendationType] = None
    category: str
    title: str
    description: str
    impact: ImpactLevel
    priority: Priority
    action: Optional[str] = None
    actions: List[str] = Field(default_factory=list)
    timeline: Optional[str] = None
    details: List[Dict[str, Any]] = Field(default_factory=list)


class StrategicRecommendations(BaseModel):
    """Merged, priority-sorted recommendations."""

    totalRecommendations: int = 0
    byPriority: Dict[str, int] = Field(default_factory=dict)
    recommendations: List[Recommendation] = Field(default_factory=list)


# =============================================================================
# Report
# =============================================================================


class ExecutiveSummary(BaseModel):
    """Headline health score and findings."""

    overallHealthScore: float
    healthStatus: HealthStatus
    keyFindings: List[str] = Field(default_factory=list)
    priorityActions: List[str] = Field(default_factory=list)


class DataQualityAssessment(BaseModel):
    """Data-quality dimensions (0-100) and their mean."""

    overall: float
    completeness: float
    consistency: float
    accuracy: float
    timeliness: float
    status: HealthStatus


class ReportMetadata(BaseModel):
    """Generation metadata attached to every successful report."""

    dataQuality: DataQualityAssessment
    modelVersions: Dict[str, str] = Field(default_factory=dict)
    cacheKey: Optional[str] = None
    asOfDate: DateType
    recordCounts: Dict[str, int] = Field(default_factory=dict)
    droppedRecords: Dict[str, int] = Field(default_factory=dict)


class IntelligenceReport(BaseModel):
    """
    Composite output of InsightAggregator.analyze.

    On failure `error` is True, `message`/`reason` explain why and every
    analysis section is empty, so the dashboard always receives a
    report-shaped value.
    """
    model_config = ConfigDict(frozen=True)

    error: bool = False
    message: Optional[str] = None
    reason: Optional[str] = None
    municipalityId: Optional[str] = None
    reportType: str = "EUREKA_INTELLIGENCE_ANALYSIS"
    generatedAt: datetime
    confidence: Optional[float] = Field(default=None, ge=30.0, le=100.0)
    executiveSummary: Optional[ExecutiveSummary] = None
    riskAssessment: Optional[RiskAssessment] = None
    departmentRisks: List[DepartmentRiskProfile] = Field(default_factory=list)
    departmentAnalysis: Optional[DepartmentAnalysis] = None
    anomalyResults: Optional[AnomalySummary] = None
    predictions: Optional[Predictions] = None
    complianceIntelligence: Optional[ComplianceIntelligence] = None
    strategicRecommendations: Optional[StrategicRecommendations] = None
    metadata: Optional[ReportMetadata] = None


# =============================================================================
# API Request Bodies
# =============================================================================


class UnivariateAnomalyRequest(BaseModel):
    values: List[float] = Field(..., description="Numeric samples")
    threshold: Optional[float] = Field(default=None, gt=0.0, description="z-score threshold")


class MultivariateAnomalyRequest(BaseModel):
    rows: List[Dict[str, float]] = Field(..., description="Feature mappings with identical keys")
    threshold: Optional[float] = Field(default=None, gt=0.0, description="Distance threshold")


class ForecastRequest(BaseModel):
    series: List[HistoricalPoint] = Field(..., description="Ordered historical series")
    periodsAhead: Optional[int] = Field(default=None, ge=1, le=24)


class OptimizationRequest(BaseModel):
    departments: List[Department]
    totalBudget: float = Field(..., ge=0.0)
    fiscalYearRemaining: float = Field(..., ge=0.0, le=1.0)
    priorities: Optional[List[PriorityWeight]] = None
