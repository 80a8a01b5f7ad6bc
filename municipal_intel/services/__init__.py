"""
Municipal Intelligence Services Module

This module contains the analysis services of the municipal financial
intelligence engine. Every service except the aggregator is a set of pure
functions over validated models.

Services:
- stats: Shared statistics (mean, volatility, trend, weighted scoring)
- risk_scorer: EUREKA six-factor department risk score
- anomaly_detector: z-score, peer-group and multivariate outlier detection
- forecast_engine: AR(1)-on-differences forecasting with confidence bands
- optimization_advisor: Rule-based budget reallocation recommendations
- compliance: Regulatory framework gap analysis and audit readiness
- budget_analysis: Department performance, monthly trends, fiscal timeline
- insight_aggregator: Orchestrates all services into an IntelligenceReport

All services are consumed by the API layer (municipal_intel/api/).
"""

# =============================================================================
# Statistics Exports
# =============================================================================

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

# =============================================================================
# Risk Scorer Exports
# EUREKA weighted department risk with top factors and remediation text
# =============================================================================

from municipal_intel.services.risk_scorer import (
    EUREKA_WEIGHTS,
    compliance_recommendations,
    score_risk,
    top_risk_factors,
)

# =============================================================================
# Anomaly Detector Exports
# =============================================================================

from municipal_intel.services.anomaly_detector import (
    classify_severity,
    detect_multivariate,
    detect_peer_group_anomalies,
    detect_univariate,
)

# =============================================================================
# Forecast Engine Exports
# =============================================================================

from municipal_intel.services.forecast_engine import (
    estimate_ar_coefficient,
    forecast,
)

# =============================================================================
# Optimization Advisor Exports
# =============================================================================

from municipal_intel.services.optimization_advisor import (
    PRIORITY_BY_TYPE,
    recommend,
)

# =============================================================================
# Compliance Exports
# MFMA / PFMA / SCM / POPIA / AGSA scoring with audit readiness
# =============================================================================

from municipal_intel.services.compliance import (
    analyze_compliance,
    assess_audit_readiness,
    compliance_status,
    recent_violations,
)

# =============================================================================
# Budget Analysis Exports
# =============================================================================

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

# =============================================================================
# Insight Aggregator Exports
# =============================================================================

from municipal_intel.services.insight_aggregator import (
    MODEL_VERSIONS,
    InsightAggregator,
    PreparedBundle,
)

# =============================================================================
# __all__ - Public API Definition
# =============================================================================

__all__ = [
    # ----- Statistics -----
    'WeightedFactor',
    'calculate_trend',
    'calculate_volatility',
    'categorize_risk',
    'coefficient_of_variation',
    'mean',
    'median',
    'std_dev',
    'weighted_score',
    'z_score',
    # ----- Risk Scorer -----
    'EUREKA_WEIGHTS',
    'compliance_recommendations',
    'score_risk',
    'top_risk_factors',
    # ----- Anomaly Detector -----
    'classify_severity',
    'detect_multivariate',
    'detect_peer_group_anomalies',
    'detect_univariate',
    # ----- Forecast Engine -----
    'estimate_ar_coefficient',
    'forecast',
    # ----- Optimization Advisor -----
    'PRIORITY_BY_TYPE',
    'recommend',
    # ----- Compliance -----
    'analyze_compliance',
    'assess_audit_readiness',
    'compliance_status',
    'recent_violations',
    # ----- Budget Analysis -----
    'analyze_departments',
    'analyze_timeline',
    'detect_monthly_anomalies',
    'detect_seasonality',
    'fiscal_year_bounds',
    'fiscal_year_for',
    'fiscal_year_remaining',
    'format_currency',
    'monthly_aggregates',
    'spending_efficiency',
    'spending_insights',
    # ----- Insight Aggregator -----
    'MODEL_VERSIONS',
    'InsightAggregator',
    'PreparedBundle',
]
