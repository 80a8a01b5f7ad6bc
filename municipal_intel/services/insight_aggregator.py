"""
Insight Aggregator - orchestrates the EUREKA intelligence analysis.

Runs every analysis over one municipal data bundle in a fixed order and
assembles the composite IntelligenceReport:

1. Preprocess: drop incomplete records, resolve the reference date
2. Risk assessment: five weighted risk areas plus per-department EUREKA scores
3. Anomaly detection: z-score, peer-group and multivariate ensemble
4. Predictions: forecast, monthly trends, fiscal timeline, seasonality
5. Compliance gap analysis per regulatory framework
6. Strategic recommendations merged from every source, sorted by priority
7. Executive health score and confidence score
8. Data-quality assessment recorded in the metadata

Reports are cached per aggregator under "{bundle.id}-{bundle.lastUpdated}";
the cache holds its own deep copy and every hit returns a fresh one.
Any failure while composing a report is converted into an error-flagged
report so callers always receive a report-shaped value; error reports are
never cached.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from municipal_intel.core.cache import InsightCache
from municipal_intel.core.config import Settings, get_settings
from municipal_intel.models import (
    AnomalyRecord,
    AnomalySeverity,
    AnomalySummary,
    AuditReadiness,
    Budget,
    ComplianceEntry,
    ComplianceIntelligence,
    DataQualityAssessment,
    Department,
    DepartmentRiskProfile,
    DetectionMethod,
    ExecutiveSummary,
    ForecastResult,
    HealthStatus,
    HistoricalPoint,
    ImpactLevel,
    IntelligenceReport,
    MitigationStrategy,
    MunicipalDataBundle,
    Predictions,
    Priority,
    Recommendation,
    ReportMetadata,
    RiskAssessment,
    RiskCategory,
    RiskIndicatorSet,
    StrategicRecommendations,
    Transaction,
    TrendDirection,
)
from municipal_intel.services.anomaly_detector import (
    classify_severity,
    detect_multivariate,
    detect_peer_group_anomalies,
    detect_univariate,
)
from municipal_intel.services.budget_analysis import (
    analyze_departments,
    analyze_timeline,
    detect_monthly_anomalies,
    detect_seasonality,
    fiscal_year_remaining,
    format_currency,
    monthly_aggregates,
    spending_insights,
)
from municipal_intel.services.compliance import analyze_compliance, compliance_status, recent_violations
from municipal_intel.services.forecast_engine import forecast
from municipal_intel.services.optimization_advisor import recommend
from municipal_intel.services.risk_scorer import compliance_recommendations, score_risk, top_risk_factors
from municipal_intel.services.stats import (
    WeightedFactor,
    calculate_volatility,
    categorize_risk,
    mean,
    weighted_score,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MODEL_VERSIONS: Dict[str, str] = {
    "eurekaCore": "2.1.0",
    "anomalyDetection": "1.8.0",
    "riskAssessment": "1.5.0",
    "complianceEngine": "2.0.0",
    "forecastingEngine": "1.3.0",
}

# Five-area municipal risk model; must sum to 1.0
RISK_AREA_WEIGHTS: Dict[str, float] = {
    "financial": 0.35,
    "operational": 0.25,
    "compliance": 0.20,
    "governance": 0.15,
    "external": 0.05,
}

# Risk area scores used when the bundle carries no signal
DEFAULT_OPERATIONAL_RISK = 50.0
DEFAULT_COMPLIANCE_RISK = 30.0
DEFAULT_GOVERNANCE_RISK = 25.0
DEFAULT_EXTERNAL_RISK = 15.0

# Compliance risk added per violation in the lookback window
RISK_PER_VIOLATION = 10.0

# Utilization (%) with the lowest financial risk
TARGET_UTILIZATION = 85.0

MITIGATION_THRESHOLD = 50.0
URGENT_ACTION_THRESHOLD = 70.0

# Change against the last historical score that counts as a trend
RISK_TREND_TOLERANCE = 5.0

MITIGATION_STRATEGIES: Dict[str, str] = {
    "financial": "Implement enhanced budget monitoring and approval workflows",
    "operational": "Conduct departmental performance reviews and capacity building",
    "compliance": "Strengthen compliance monitoring and staff training",
    "governance": "Review governance structures and accountability mechanisms",
    "external": "Develop contingency plans for external risk factors",
}

# Department EUREKA scores at or above this count as high compliance risk
HIGH_RISK_DEPARTMENT_SCORE = 60.0

# Forecast mean above recent actuals by more than this share is spending pressure
FORECAST_PRESSURE_MARGIN = 0.10

PRIORITY_ORDER: Dict[Priority, int] = {
    Priority.CRITICAL: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
}

# Confidence deductions
MIN_TRANSACTIONS_FOR_CONFIDENCE = 50
MIN_BUDGETS_FOR_CONFIDENCE = 5
MIN_DEPARTMENTS_FOR_CONFIDENCE = 3
MAX_CRITICAL_RECOMMENDATIONS = 3
MIN_CONFIDENCE = 30.0

# Data-quality completeness deductions for missing sections
COMPLETENESS_DEDUCTIONS: Dict[str, float] = {
    "transactions": 30.0,
    "budgets": 25.0,
    "departments": 20.0,
    "complianceHistory": 15.0,
    "historicalData": 10.0,
}

SECONDS_PER_DAY = 86400.0


def health_status(score: float) -> HealthStatus:
    """Executive health band: Excellent >= 90 ... Needs Improvement >= 60, else Critical."""
    if score >= 90:
        return HealthStatus.EXCELLENT
    if score >= 80:
        return HealthStatus.GOOD
    if score >= 70:
        return HealthStatus.SATISFACTORY
    if score >= 60:
        return HealthStatus.NEEDS_IMPROVEMENT
    return HealthStatus.CRITICAL


@dataclass
class PreparedBundle:
    """
    Bundle after preprocessing.

    Every list holds only complete records; `dropped` counts what was
    removed per section.
    """
    source: MunicipalDataBundle
    transactions: List[Transaction]
    budgets: List[Budget]
    departments: List[Department]
    compliance_history: List[ComplianceEntry]
    as_of: date
    fiscal_year_remaining: float
    dropped: Dict[str, int] = field(default_factory=dict)

    def totals(self) -> Tuple[float, float]:
        """(total budget, total spent), preferring explicit bundle totals."""
        if self.departments:
            budget = sum(d.budget for d in self.departments)
            spent = sum(d.spent for d in self.departments)
        else:
            budget = sum(b.allocated for b in self.budgets)
            spent = sum(b.spent for b in self.budgets)
        if self.source.totalBudget is not None:
            budget = self.source.totalBudget
        if self.source.totalSpent is not None:
            spent = self.source.totalSpent
        return budget, spent


# =============================================================================
# Aggregator
# =============================================================================


class InsightAggregator:
    """
    Composes IntelligenceReports and owns their cache.

    Construct one per tenant or process. The clock is injectable so identical
    inputs produce identical reports.

    Args:
        settings: Engine settings; defaults to get_settings()
        cache: Report cache; defaults to a new InsightCache sized by settings
        clock: Zero-argument callable returning the current naive UTC datetime

    Example:
        >>> aggregator = InsightAggregator()
        >>> report = aggregator.analyze({"id": "budget-2025", "lastUpdated": "v1"})
        >>> report.error
        False
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        cache: Optional[InsightCache] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings or get_settings()
        self.cache = cache if cache is not None else InsightCache(self.settings.cache_max_size)
        self.clock = clock or (lambda: datetime.now(timezone.utc).replace(tzinfo=None))

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @staticmethod
    def cache_key(bundle: MunicipalDataBundle) -> Optional[str]:
        """`{id}-{lastUpdated}`, or None when either part is missing."""
        if not bundle.id or not bundle.lastUpdated:
            return None
        return f"{bundle.id}-{bundle.lastUpdated}"

    def analyze(
        self,
        bundle: Union[MunicipalDataBundle, Mapping[str, Any]],
        use_cache: bool = True,
    ) -> IntelligenceReport:
        """
        Produce the intelligence report for one bundle.

        Args:
            bundle: Bundle model or raw mapping (validated here)
            use_cache: When False, neither reads nor writes the cache

        Returns:
            IntelligenceReport; `error=True` with a reason on any failure.
        """
        started = time.perf_counter()
        key: Optional[str] = None

        try:
            if not isinstance(bundle, MunicipalDataBundle):
                bundle = MunicipalDataBundle.model_validate(bundle)

            key = self.cache_key(bundle)
            if use_cache and key:
                cached = self.cache.get(key)
                if cached is not None:
                    logger.info(f"Serving cached intelligence report {key}")
                    return cached.model_copy(deep=True)

            report = self._build_report(bundle, key)
        except Exception as exc:
            logger.exception("Intelligence analysis failed")
            return self._error_report(bundle, exc)

        if use_cache and key:
            self.cache.put(key, report.model_copy(deep=True))

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"Intelligence analysis for {report.municipalityId or 'unknown municipality'} "
            f"completed in {elapsed_ms:.1f} ms (risk {report.riskAssessment.overallScore:.1f}, "
            f"{report.strategicRecommendations.totalRecommendations} recommendations)"
        )
        return report

    # -------------------------------------------------------------------------
    # Report composition
    # -------------------------------------------------------------------------

    def _build_report(self, bundle: MunicipalDataBundle, key: Optional[str]) -> IntelligenceReport:
        prepared = self.preprocess(bundle)

        risk = self.assess_risk(prepared)
        department_risks = self.department_risks(prepared)
        department_analysis = (
            analyze_departments(prepared.departments) if prepared.departments else None
        )
        anomalies = self.detect_anomalies(prepared)
        predictions = self.predict(prepared)
        compliance = analyze_compliance(
            prepared.compliance_history,
            prepared.transactions,
            prepared.as_of,
            self.settings.compliance_lookback_days,
        )
        recommendations = self.strategic_recommendations(
            prepared, risk, department_risks, anomalies, predictions, compliance
        )
        summary = self.executive_summary(risk, anomalies, predictions, compliance, recommendations)
        confidence = self.confidence(prepared, recommendations)
        data_quality = self.assess_data_quality(prepared)

        return IntelligenceReport(
            municipalityId=bundle.municipalityId,
            generatedAt=self.clock(),
            confidence=confidence,
            executiveSummary=summary,
            riskAssessment=risk,
            departmentRisks=department_risks,
            departmentAnalysis=department_analysis,
            anomalyResults=anomalies,
            predictions=predictions,
            complianceIntelligence=compliance,
            strategicRecommendations=recommendations,
            metadata=ReportMetadata(
                dataQuality=data_quality,
                modelVersions=dict(MODEL_VERSIONS),
                cacheKey=key,
                asOfDate=prepared.as_of,
                recordCounts={
                    "transactions": len(prepared.transactions),
                    "budgets": len(prepared.budgets),
                    "departments": len(prepared.departments),
                    "complianceHistory": len(prepared.compliance_history),
                },
                droppedRecords=prepared.dropped,
            ),
        )

    def _error_report(self, bundle: Any, exc: Exception) -> IntelligenceReport:
        if isinstance(bundle, MunicipalDataBundle):
            municipality = bundle.municipalityId
        elif isinstance(bundle, Mapping):
            municipality = bundle.get("municipalityId")
            municipality = municipality if isinstance(municipality, str) else None
        else:
            municipality = None

        return IntelligenceReport(
            error=True,
            message="Intelligence analysis failed",
            reason=str(exc) or exc.__class__.__name__,
            municipalityId=municipality,
            generatedAt=self.clock(),
        )

    # -------------------------------------------------------------------------
    # 1. Preprocessing
    # -------------------------------------------------------------------------

    def preprocess(self, bundle: MunicipalDataBundle) -> PreparedBundle:
        """Drop incomplete records and resolve the reference date."""
        raw_transactions = bundle.transactions or []
        raw_budgets = bundle.budgets or []
        raw_departments = bundle.departments or []

        transactions = [t for t in raw_transactions if t.amount is not None and t.date is not None]
        budgets = [
            b for b in raw_budgets
            if b.allocated is not None and b.spent is not None and b.allocated > 0
        ]
        departments = [
            d for d in raw_departments
            if d.name and d.budget is not None and d.budget > 0
        ]

        dropped = {
            "transactions": len(raw_transactions) - len(transactions),
            "budgets": len(raw_budgets) - len(budgets),
            "departments": len(raw_departments) - len(departments),
        }
        if any(dropped.values()):
            logger.warning(f"Dropped incomplete records: {dropped}")

        if bundle.asOfDate is not None:
            as_of = bundle.asOfDate
        elif transactions:
            as_of = max(t.date for t in transactions).date()
        else:
            as_of = self.clock().date()

        remaining = bundle.fiscalYearRemaining
        if remaining is None:
            remaining = fiscal_year_remaining(as_of, bundle.fiscalYear)

        return PreparedBundle(
            source=bundle,
            transactions=transactions,
            budgets=budgets,
            departments=departments,
            compliance_history=list(bundle.complianceHistory or []),
            as_of=as_of,
            fiscal_year_remaining=remaining,
            dropped=dropped,
        )

    # -------------------------------------------------------------------------
    # 2. Risk assessment
    # -------------------------------------------------------------------------

    def _financial_risk(self, prepared: PreparedBundle) -> float:
        if prepared.budgets:
            allocated = sum(b.allocated for b in prepared.budgets)
            spent = sum(b.spent for b in prepared.budgets)
        else:
            allocated = sum(d.budget for d in prepared.departments)
            spent = sum(d.spent for d in prepared.departments)
        utilization = spent / allocated * 100 if allocated > 0 else 0.0

        if utilization > 100:
            return min(100.0, 50.0 + (utilization - 100))
        if utilization < 50:
            return min(100.0, 50.0 - utilization)
        return abs(utilization - TARGET_UTILIZATION)

    def _operational_risk(self, prepared: PreparedBundle) -> float:
        if not prepared.departments:
            return DEFAULT_OPERATIONAL_RISK
        return max(0.0, 100.0 - mean([d.performanceScore for d in prepared.departments]))

    def _compliance_risk(self, prepared: PreparedBundle) -> float:
        if not prepared.compliance_history:
            return DEFAULT_COMPLIANCE_RISK
        recent = recent_violations(
            prepared.compliance_history, prepared.as_of, self.settings.compliance_lookback_days
        )
        return min(100.0, len(recent) * RISK_PER_VIOLATION)

    @staticmethod
    def _risk_trend(current: float, history: Sequence[float]) -> TrendDirection:
        if not history:
            return TrendDirection.STABLE
        change = current - history[-1]
        if change > RISK_TREND_TOLERANCE:
            return TrendDirection.INCREASING
        if change < -RISK_TREND_TOLERANCE:
            return TrendDirection.DECREASING
        return TrendDirection.STABLE

    def assess_risk(self, prepared: PreparedBundle) -> RiskAssessment:
        """Five-area weighted municipal risk with mitigation and urgent actions."""
        bundle = prepared.source
        governance = bundle.governanceMetrics.riskScore if bundle.governanceMetrics else None
        external = bundle.externalFactors.riskScore if bundle.externalFactors else None

        areas = {
            "financial": self._financial_risk(prepared),
            "operational": self._operational_risk(prepared),
            "compliance": self._compliance_risk(prepared),
            "governance": DEFAULT_GOVERNANCE_RISK if governance is None else governance,
            "external": DEFAULT_EXTERNAL_RISK if external is None else external,
        }

        total, contributions = weighted_score([
            WeightedFactor(area, value, RISK_AREA_WEIGHTS[area]) for area, value in areas.items()
        ])

        mitigation = [
            MitigationStrategy(area=area, score=round(value, 2), strategy=MITIGATION_STRATEGIES[area])
            for area, value in areas.items()
            if value > MITIGATION_THRESHOLD
        ]
        urgent = [
            f"Escalate {area} risk ({value:.1f}): {MITIGATION_STRATEGIES[area].lower()}"
            for area, value in areas.items()
            if value > URGENT_ACTION_THRESHOLD
        ]

        return RiskAssessment(
            overallScore=total,
            category=categorize_risk(total, self.settings.risk_cut_points),
            breakdown={area: round(value, 2) for area, value in areas.items()},
            contributions=contributions,
            weights=dict(RISK_AREA_WEIGHTS),
            mitigationStrategies=mitigation,
            urgentActions=urgent,
            trendDirection=self._risk_trend(total, bundle.historicalRisk),
        )

    def department_risks(self, prepared: PreparedBundle) -> List[DepartmentRiskProfile]:
        """EUREKA risk profile per department, riskiest first."""
        expected_fraction = 1.0 - prepared.fiscal_year_remaining

        profiles: List[DepartmentRiskProfile] = []
        for dept in prepared.departments:
            indicators = RiskIndicatorSet(
                complianceRating=dept.complianceRating,
                budgetVariance=(dept.spent / dept.budget - expected_fraction) * 100,
                auditFindings=dept.auditFindings,
                spendingVolatility=calculate_volatility([m.spent for m in dept.monthlyData]),
                documentCompliance=dept.documentCompliance,
                historicalPerformance=dept.performanceScore,
            )
            score = score_risk(indicators, self.settings.risk_cut_points)
            profiles.append(DepartmentRiskProfile(
                department=dept.name,
                riskScore=score,
                keyRiskFactors=top_risk_factors(score),
                recommendations=compliance_recommendations(score),
            ))

        profiles.sort(key=lambda p: p.riskScore.score, reverse=True)
        return profiles

    # -------------------------------------------------------------------------
    # 3. Anomaly detection
    # -------------------------------------------------------------------------

    @staticmethod
    def _transaction_features(transactions: Sequence[Transaction]) -> List[Dict[str, float]]:
        """
        Amount, days since the first transaction, and days since the previous
        transaction of the same department (0 for a department's first).
        """
        origin = min(t.date for t in transactions)
        order = sorted(range(len(transactions)), key=lambda i: (transactions[i].date, i))

        gaps = [0.0] * len(transactions)
        last_seen: Dict[str, datetime] = {}
        for i in order:
            dept = transactions[i].departmentId or ""
            if dept in last_seen:
                gaps[i] = (transactions[i].date - last_seen[dept]).total_seconds() / SECONDS_PER_DAY
            last_seen[dept] = transactions[i].date

        return [
            {
                "amount": t.amount,
                "dayOffset": (t.date - origin).total_seconds() / SECONDS_PER_DAY,
                "gapDays": gaps[i],
            }
            for i, t in enumerate(transactions)
        ]

    def detect_anomalies(self, prepared: PreparedBundle) -> AnomalySummary:
        """Ensemble of z-score, peer-group and multivariate detection over transactions."""
        transactions = prepared.transactions
        threshold = self.settings.aggregate_anomaly_threshold

        if len(transactions) < self.settings.min_transactions_for_anomalies:
            return AnomalySummary(
                confidence="Low",
                insufficientData=True,
                reason="Insufficient data for robust anomaly detection",
            )

        statistical = [
            a.model_copy(update={
                "explanation": f"Amount {format_currency(a.value)} is {a.score:.1f}σ from the mean transaction",
            })
            for a in detect_univariate([t.amount for t in transactions], threshold).anomalies
        ]
        peer = detect_peer_group_anomalies(
            transactions, threshold, self.settings.min_peer_group_size
        )
        multivariate = [
            a.model_copy(update={
                "explanation": f"Unusual amount and timing pattern (distance {a.score:.1f})",
            })
            for a in detect_multivariate(self._transaction_features(transactions), threshold).anomalies
        ]

        merged: Dict[int, AnomalyRecord] = {}
        for anomaly in [*statistical, *peer, *multivariate]:
            current = merged.get(anomaly.index)
            if current is None:
                merged[anomaly.index] = anomaly
                continue
            methods = sorted(
                set(current.methods) | set(anomaly.methods),
                key=list(DetectionMethod).index,
            )
            best = anomaly if anomaly.score > current.score else current
            merged[anomaly.index] = best.model_copy(update={"methods": methods})

        ranked: List[AnomalyRecord] = []
        for anomaly in merged.values():
            transaction = transactions[anomaly.index]
            ranked.append(anomaly.model_copy(update={
                "sourceId": transaction.id,
                "value": transaction.amount,
                "department": transaction.departmentId,
                "category": transaction.category,
                "severity": classify_severity(anomaly.score, threshold),
            }))
        ranked.sort(key=lambda a: (-a.score, a.index))

        high_risk = sum(1 for a in ranked if a.severity == AnomalySeverity.HIGH)
        logger.info(f"Anomaly ensemble flagged {len(ranked)} transaction(s), {high_risk} high risk")

        return AnomalySummary(
            totalAnomalies=len(ranked),
            highRiskAnomalies=high_risk,
            anomalies=ranked[:self.settings.max_reported_anomalies],
            detectionMethods=list(DetectionMethod),
            confidence="High" if ranked else "Medium",
        )

    # -------------------------------------------------------------------------
    # 4. Predictions
    # -------------------------------------------------------------------------

    def predict(self, prepared: PreparedBundle) -> Predictions:
        """Forecast monthly spending and analyze the fiscal timeline."""
        trends = monthly_aggregates(prepared.departments)

        if prepared.source.historicalData:
            series = list(prepared.source.historicalData)
        else:
            series = [HistoricalPoint(period=t.date, value=t.spent) for t in trends]

        minimum = self.settings.min_months_for_forecast
        if len(series) >= minimum:
            budget_forecast = forecast(
                series, self.settings.forecast_horizon, self.settings.forecast_band
            )
        else:
            budget_forecast = ForecastResult(
                insufficientData=True,
                reason=f"At least {minimum} months of history are required for forecasting",
            )

        monthly_anomalies = detect_monthly_anomalies(trends)
        total_budget, total_spent = prepared.totals()

        return Predictions(
            budgetForecast=budget_forecast,
            monthlyTrends=trends,
            monthlyAnomalies=monthly_anomalies,
            timeline=analyze_timeline(
                total_budget, total_spent, prepared.as_of, prepared.source.fiscalYear
            ),
            seasonality=detect_seasonality(trends, self.settings.min_months_for_seasonality),
            spendingInsights=spending_insights(
                trends,
                monthly_anomalies,
                budget_forecast,
                last_actual=series[-1].value if series else None,
            ),
            forecastHorizon=self.settings.forecast_horizon,
        )

    # -------------------------------------------------------------------------
    # 6. Strategic recommendations
    # -------------------------------------------------------------------------

    @staticmethod
    def _forecast_pressure(
        series_tail: Sequence[float],
        budget_forecast: ForecastResult,
    ) -> Optional[float]:
        """Relative increase of mean forecast over recent actuals, if above the margin."""
        if not budget_forecast.forecast or not series_tail:
            return None
        recent = mean(series_tail)
        if recent <= 0:
            return None
        projected = mean([p.value for p in budget_forecast.forecast])
        increase = (projected - recent) / recent
        return increase if increase > FORECAST_PRESSURE_MARGIN else None

    def _improvement_actions(
        self,
        risk: RiskAssessment,
        compliance: ComplianceIntelligence,
        predictions: Predictions,
    ) -> List[str]:
        actions = ["Automate monthly variance reporting to council"]
        if risk.breakdown.get("financial", 0) > 30:
            actions.append("Introduce rolling quarterly budget reviews")
        if compliance.overallScore < 90:
            actions.append("Embed compliance checks in procurement workflows")
        if predictions.seasonality is not None:
            actions.append(
                f"Plan cash flow around the {predictions.seasonality.peakMonth.month} spending peak"
            )
        return actions

    def strategic_recommendations(
        self,
        prepared: PreparedBundle,
        risk: RiskAssessment,
        department_risks: Sequence[DepartmentRiskProfile],
        anomalies: AnomalySummary,
        predictions: Predictions,
        compliance: ComplianceIntelligence,
    ) -> StrategicRecommendations:
        """Merge findings from every analysis and sort Critical > High > Medium > Low."""
        recommendations: List[Recommendation] = []

        if risk.category in (RiskCategory.HIGH, RiskCategory.CRITICAL):
            recommendations.append(Recommendation(
                category="Risk Management",
                title="Immediate Risk Mitigation Required",
                description=f"Overall risk score of {risk.overallScore:.1f}% requires immediate attention.",
                impact=ImpactLevel.HIGH,
                priority=Priority.CRITICAL,
                actions=risk.urgentActions or [m.strategy for m in risk.mitigationStrategies],
                timeline="1-2 weeks",
            ))

        if anomalies.highRiskAnomalies > 0:
            recommendations.append(Recommendation(
                category="Anomaly Investigation",
                title="Investigate Financial Anomalies",
                description=(
                    f"{anomalies.highRiskAnomalies} high-risk anomalies detected requiring investigation."
                ),
                impact=ImpactLevel.MEDIUM,
                priority=Priority.HIGH,
                actions=[
                    "Review flagged transactions",
                    "Conduct department interviews",
                    "Verify supporting documentation",
                ],
                timeline="1 week",
                details=[
                    {"transactionId": a.sourceId, "score": round(a.score, 2)}
                    for a in anomalies.anomalies
                    if a.severity == AnomalySeverity.HIGH
                ],
            ))

        significant_months = [
            a for a in predictions.monthlyAnomalies if a.severity == AnomalySeverity.HIGH
        ]
        if significant_months:
            recommendations.append(Recommendation(
                category="Spending Anomalies",
                title="Investigate Spending Anomalies",
                description=(
                    f"{len(significant_months)} significant spending anomalies detected "
                    f"that require investigation."
                ),
                impact=ImpactLevel.MEDIUM,
                priority=Priority.MEDIUM,
                action="Review transactions during anomalous periods for irregularities",
                details=[{"date": a.sourceId, "score": a.score} for a in significant_months],
            ))

        series = prepared.source.historicalData or [
            HistoricalPoint(period=t.date, value=t.spent) for t in predictions.monthlyTrends
        ]
        pressure = self._forecast_pressure(
            [p.value for p in series[-3:]], predictions.budgetForecast
        )
        if pressure is not None:
            recommendations.append(Recommendation(
                category="Forecast",
                title="Prepare for Rising Expenditure",
                description=(
                    f"Forecast spending over the next {len(predictions.budgetForecast.forecast)} "
                    f"period(s) is {pressure * 100:.1f}% above recent levels."
                ),
                impact=ImpactLevel.HIGH,
                priority=Priority.HIGH,
                action="Reprioritize commitments and confirm funding for projected expenditure",
                details=[p.model_dump() for p in predictions.budgetForecast.forecast],
            ))

        if compliance.auditReadiness == AuditReadiness.NEEDS_PREPARATION:
            recommendations.append(Recommendation(
                category="Audit Preparation",
                title="Enhance Audit Readiness",
                description="Compliance gaps indicate potential audit challenges.",
                impact=ImpactLevel.HIGH,
                priority=Priority.MEDIUM,
                actions=[
                    "Strengthen documentation",
                    "Review compliance procedures",
                    "Conduct pre-audit assessment",
                ],
                timeline="2-3 weeks",
            ))

        if compliance.criticalGaps:
            recommendations.append(Recommendation(
                category="Compliance",
                title="Address Compliance Gaps",
                description=f"{len(compliance.criticalGaps)} critical compliance areas need attention.",
                impact=ImpactLevel.HIGH,
                priority=Priority.HIGH,
                actions=[r for gap in compliance.criticalGaps for r in gap.recommendations],
                timeline="2-4 weeks",
                details=[
                    {"framework": gap.framework.value, "score": gap.score}
                    for gap in compliance.criticalGaps
                ],
            ))

        high_risk_departments = [
            p for p in department_risks if p.riskScore.score >= HIGH_RISK_DEPARTMENT_SCORE
        ]
        if high_risk_departments:
            recommendations.append(Recommendation(
                category="Compliance",
                title="Address Compliance Risks",
                description=(
                    f"{len(high_risk_departments)} departments have elevated compliance risk "
                    f"scores requiring attention."
                ),
                impact=ImpactLevel.HIGH,
                priority=Priority.HIGH,
                action="Conduct internal compliance review and implement enhanced controls",
                details=[
                    {"department": p.department, "riskScore": round(p.riskScore.score, 2)}
                    for p in high_risk_departments
                ],
            ))

        timeline = predictions.timeline
        if timeline is not None and timeline.willExceedBudget:
            recommendations.append(Recommendation(
                category="Budget",
                title="Adjust Spending Rate",
                description=(
                    f"Current spending rate projects a budget overrun of "
                    f"{format_currency(timeline.projectedVariance)} by fiscal year end."
                ),
                impact=ImpactLevel.HIGH,
                priority=Priority.HIGH,
                action="Implement spending controls or secure additional budget allocation",
            ))

        total_budget, _ = prepared.totals()
        recommendations.extend(recommend(
            prepared.departments,
            total_budget,
            prepared.fiscal_year_remaining,
            prepared.source.priorities,
        ))

        recommendations.append(Recommendation(
            category="Strategic Improvement",
            title="Continuous Improvement Initiatives",
            description="Long-term strategic improvements to enhance municipal operations.",
            impact=ImpactLevel.HIGH,
            priority=Priority.MEDIUM,
            actions=self._improvement_actions(risk, compliance, predictions),
            timeline="3-6 months",
        ))

        # sorted() is stable, so equal priorities keep their source order
        ordered = sorted(recommendations, key=lambda r: PRIORITY_ORDER[r.priority])
        ordered = [r.model_copy(update={"id": f"rec-{i}"}) for i, r in enumerate(ordered, start=1)]

        return StrategicRecommendations(
            totalRecommendations=len(ordered),
            byPriority={p.value: sum(1 for r in ordered if r.priority == p) for p in Priority},
            recommendations=ordered,
        )

    # -------------------------------------------------------------------------
    # 7. Executive summary and confidence
    # -------------------------------------------------------------------------

    def executive_summary(
        self,
        risk: RiskAssessment,
        anomalies: AnomalySummary,
        predictions: Predictions,
        compliance: ComplianceIntelligence,
        recommendations: StrategicRecommendations,
    ) -> ExecutiveSummary:
        """
        Health score = 0.4 * (100 - risk) + 0.4 * compliance + 0.2 * anomaly component.

        The anomaly component is 100 without anomalies, otherwise
        max(0, 100 - count * anomaly_penalty_per_item).
        """
        findings = [
            f"Overall municipal risk assessed at {risk.overallScore:.1f}% ({risk.category.value} level)."
        ]
        if anomalies.totalAnomalies > 0:
            findings.append(
                f"{anomalies.totalAnomalies} financial anomalies detected, with "
                f"{anomalies.highRiskAnomalies} requiring immediate attention."
            )
        findings.append(
            f"Regulatory compliance at {compliance.overallScore}% with "
            f"{len(compliance.criticalGaps)} critical gaps identified."
        )
        if predictions.timeline is not None and predictions.timeline.willExceedBudget:
            findings.append(
                f"Current burn rate projects {format_currency(predictions.timeline.projectedTotal)} "
                f"spent by fiscal year end."
            )

        if anomalies.totalAnomalies == 0:
            anomaly_component = 100.0
        else:
            anomaly_component = max(
                0.0, 100.0 - anomalies.totalAnomalies * self.settings.anomaly_penalty_per_item
            )

        health = round(
            (100 - risk.overallScore) * 0.4 + compliance.overallScore * 0.4 + anomaly_component * 0.2,
            1,
        )

        urgent = [
            r.title for r in recommendations.recommendations
            if r.priority in (Priority.CRITICAL, Priority.HIGH)
        ]

        return ExecutiveSummary(
            overallHealthScore=health,
            healthStatus=health_status(health),
            keyFindings=findings,
            priorityActions=urgent[:3],
        )

    def confidence(
        self,
        prepared: PreparedBundle,
        recommendations: StrategicRecommendations,
    ) -> float:
        """100 minus data-volume and critical-load deductions, floored at 30."""
        score = 100.0
        if len(prepared.transactions) < MIN_TRANSACTIONS_FOR_CONFIDENCE:
            score -= 20
        if len(prepared.budgets) < MIN_BUDGETS_FOR_CONFIDENCE:
            score -= 15
        if len(prepared.departments) < MIN_DEPARTMENTS_FOR_CONFIDENCE:
            score -= 10
        critical = recommendations.byPriority.get(Priority.CRITICAL.value, 0)
        if critical > MAX_CRITICAL_RECOMMENDATIONS:
            score -= 10
        return max(MIN_CONFIDENCE, min(100.0, score))

    # -------------------------------------------------------------------------
    # 8. Data quality
    # -------------------------------------------------------------------------

    def assess_data_quality(self, prepared: PreparedBundle) -> DataQualityAssessment:
        """Completeness, consistency, accuracy and timeliness (0-100 each)."""
        bundle = prepared.source

        completeness = 100.0
        for section, deduction in COMPLETENESS_DEDUCTIONS.items():
            if not getattr(bundle, section):
                completeness -= deduction
        completeness = max(0.0, completeness)

        submitted = sum(len(getattr(bundle, s) or []) for s in ("transactions", "budgets", "departments"))
        retained = len(prepared.transactions) + len(prepared.budgets) + len(prepared.departments)
        consistency = retained / submitted * 100 if submitted else 100.0

        known = {d.id for d in prepared.departments if d.id} | {d.name for d in prepared.departments}
        if known and prepared.transactions:
            matched = sum(1 for t in prepared.transactions if t.departmentId in known)
            accuracy = matched / len(prepared.transactions) * 100
        else:
            accuracy = 100.0

        if prepared.transactions:
            latest = max(t.date for t in prepared.transactions).date()
            days = (prepared.as_of - latest).days
            if days <= 7:
                timeliness = 100.0
            elif days <= 30:
                timeliness = 90.0
            elif days <= 90:
                timeliness = 70.0
            else:
                timeliness = 40.0
        else:
            timeliness = 50.0

        overall = round(mean([completeness, consistency, accuracy, timeliness]), 1)
        return DataQualityAssessment(
            overall=overall,
            completeness=round(completeness, 1),
            consistency=round(consistency, 1),
            accuracy=round(accuracy, 1),
            timeliness=timeliness,
            status=compliance_status(overall),
        )
