"""
Package initialization file for the engine models.

This module exports all Pydantic schemas and enumerations from schemas.py and
enums.py, making them importable from municipal_intel.models directly.

Usage:
    from municipal_intel.models import (
        MunicipalDataBundle,
        IntelligenceReport,
        RiskIndicatorSet,
        RiskCategory,
        # ... etc
    )
"""

# =============================================================================
# Enums - Import and re-export all enumerations from enums.py
# =============================================================================

from municipal_intel.models.enums import (
    # Risk Enums
    RiskCategory,
    FactorDirection,
    # Anomaly Enums
    DetectionMethod,
    AnomalySeverity,
    # Recommendation Enums
    ImpactLevel,
    RecommendationType,
    Priority,
    # Status Enums
    HealthStatus,
    DepartmentStatus,
    SpendingAlignment,
    AuditReadiness,
    TrendDirection,
    # Compliance Enums
    ComplianceFramework,
    ViolationSeverity,
)

# =============================================================================
# Schemas - Import and re-export all Pydantic models from schemas.py
# =============================================================================

from municipal_intel.models.schemas import (
    # Input bundle
    Transaction,
    Budget,
    MonthlyRecord,
    Department,
    ComplianceEntry,
    HistoricalPoint,
    RiskSignal,
    PriorityWeight,
    MunicipalDataBundle,
    # Risk scoring
    RiskIndicatorSet,
    RiskScore,
    RiskFactorContribution,
    DepartmentRiskProfile,
    MitigationStrategy,
    RiskAssessment,
    # Anomaly detection
    AnomalyRecord,
    AnomalyDetectionResult,
    AnomalySummary,
    # Forecasting
    ForecastPoint,
    ForecastModelInfo,
    ForecastResult,
    # Budget analysis
    TrendSummary,
    DepartmentPerformance,
    DepartmentAnalysis,
    MonthlyTrend,
    SeasonalMonth,
    Seasonality,
    TimelineAnalysis,
    Predictions,
    # Compliance
    FrameworkCompliance,
    ComplianceIntelligence,
    # Recommendations
    Recommendation,
    StrategicRecommendations,
    # Report
    ExecutiveSummary,
    DataQualityAssessment,
    ReportMetadata,
    IntelligenceReport,
    # API request bodies
    UnivariateAnomalyRequest,
    MultivariateAnomalyRequest,
    ForecastRequest,
    OptimizationRequest,
)


__all__ = [
    # Enums
    "RiskCategory",
    "FactorDirection",
    "DetectionMethod",
    "AnomalySeverity",
    "ImpactLevel",
    "RecommendationType",
    "Priority",
    "HealthStatus",
    "DepartmentStatus",
    "SpendingAlignment",
    "AuditReadiness",
    "TrendDirection",
    "ComplianceFramework",
    "ViolationSeverity",
    # Input bundle
    "Transaction",
    "Budget",
    "MonthlyRecord",
    "Department",
    "ComplianceEntry",
    "HistoricalPoint",
    "RiskSignal",
    "PriorityWeight",
    "MunicipalDataBundle",
    # Risk scoring
    "RiskIndicatorSet",
    "RiskScore",
    "RiskFactorContribution",
    "DepartmentRiskProfile",
    "MitigationStrategy",
    "RiskAssessment",
    # Anomaly detection
    "AnomalyRecord",
    "AnomalyDetectionResult",
    "AnomalySummary",
    # Forecasting
    "ForecastPoint",
    "ForecastModelInfo",
    "ForecastResult",
    # Budget analysis
    "TrendSummary",
    "DepartmentPerformance",
    "DepartmentAnalysis",
    "MonthlyTrend",
    "SeasonalMonth",
    "Seasonality",
    "TimelineAnalysis",
    "Predictions",
    # Compliance
    "FrameworkCompliance",
    "ComplianceIntelligence",
    # Recommendations
    "Recommendation",
    "StrategicRecommendations",
    # Report
    "ExecutiveSummary",
    "DataQualityAssessment",
    "ReportMetadata",
    "IntelligenceReport",
    # API request bodies
    "UnivariateAnomalyRequest",
    "MultivariateAnomalyRequest",
    "ForecastRequest",
    "OptimizationRequest",
]
