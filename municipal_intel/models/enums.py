"""
Enumeration definitions for the Municipal Intelligence engine.

All enums inherit from both `str` and `Enum` to ensure JSON serialization
compatibility with Pydantic models, so reports serialize to the plain string
labels the dashboard renders.
"""

from enum import Enum


class RiskCategory(str, Enum):
    """
    Risk band for a 0-100 risk score (higher = riskier).

    Default cut points:
    - Low: score < 20
    - Moderate: score < 40
    - Elevated: score < 60
    - High: score < 80
    - Critical: score >= 80
    """
    LOW = "Low"
    MODERATE = "Moderate"
    ELEVATED = "Elevated"
    HIGH = "High"
    CRITICAL = "Critical"


class FactorDirection(str, Enum):
    """
    Orientation of a weighted-scoring factor.

    - higher_is_worse: value is used as-is (e.g. audit findings)
    - higher_is_better: value is inverted as 100 - value (e.g. compliance rating)
    """
    HIGHER_IS_WORSE = "higher_is_worse"
    HIGHER_IS_BETTER = "higher_is_better"


class DetectionMethod(str, Enum):
    """Algorithm that flagged an anomaly."""
    Z_SCORE = "z_score"
    MULTIVARIATE_DISTANCE = "multivariate_distance"
    PEER_GROUP = "peer_group"


class AnomalySeverity(str, Enum):
    """
    Severity bucket derived from score / threshold.

    - High: score above 2x threshold
    - Medium: score above 1.5x threshold
    - Low: any other flagged score
    """
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class ImpactLevel(str, Enum):
    """Impact label attached to a recommendation."""
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    POSITIVE = "Positive"
    STRATEGIC = "Strategic"


class RecommendationType(str, Enum):
    """
    Rule family that produced an optimization recommendation.

    - critical: departments spending beyond their allocation
    - warning: departments spending well behind the fiscal calendar
    - opportunity: high performers with high utilization
    - strategic: high-priority areas with a small share of the budget
    """
    CRITICAL = "critical"
    WARNING = "warning"
    OPPORTUNITY = "opportunity"
    STRATEGIC = "strategic"


class Priority(str, Enum):
    """
    Ranking priority for merged recommendations.

    Ordering (most urgent first): Critical > High > Medium > Low.
    """
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class HealthStatus(str, Enum):
    """
    Status label for executive health, compliance and data-quality scores.

    - Excellent: >= 90
    - Good: >= 80
    - Satisfactory: >= 70
    - Needs Improvement: >= 60 (or below 70 where no Critical band applies)
    - Critical: < 60 (executive health only)
    """
    EXCELLENT = "Excellent"
    GOOD = "Good"
    SATISFACTORY = "Satisfactory"
    NEEDS_IMPROVEMENT = "Needs Improvement"
    CRITICAL = "Critical"


class ComplianceFramework(str, Enum):
    """
    Regulatory frameworks scored by the compliance gap analysis.

    - MFMA: Municipal Finance Management Act
    - PFMA: Public Finance Management Act
    - SCM: Supply Chain Management regulations
    - POPIA: Protection of Personal Information Act
    - AGSA: Auditor-General audit requirements
    """
    MFMA = "MFMA"
    PFMA = "PFMA"
    SCM = "SCM"
    POPIA = "POPIA"
    AGSA = "AGSA"


class ViolationSeverity(str, Enum):
    """Severity of a recorded compliance violation."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TrendDirection(str, Enum):
    """Direction of a series between its first and last observation."""
    INCREASING = "increasing"
    DECREASING = "decreasing"
    NEUTRAL = "neutral"
    STABLE = "stable"


class DepartmentStatus(str, Enum):
    """
    Department status derived from utilization and performance.

    Checked in order:
    - Overspent: utilization > 100%
    - At Risk: utilization > 90%
    - Underperforming: utilization < 50% and performance < 70
    - Excellent / Good / Satisfactory: performance >= 80 / 70 / 60
    - Needs Improvement: otherwise
    """
    OVERSPENT = "Overspent"
    AT_RISK = "At Risk"
    UNDERPERFORMING = "Underperforming"
    EXCELLENT = "Excellent"
    GOOD = "Good"
    SATISFACTORY = "Satisfactory"
    NEEDS_IMPROVEMENT = "Needs Improvement"


class SpendingAlignment(str, Enum):
    """Spending progress relative to fiscal-year time progress (±5 points)."""
    ALIGNED = "Aligned"
    AHEAD = "Ahead"
    BEHIND = "Behind"


class AuditReadiness(str, Enum):
    """Readiness for external audit derived from framework scores."""
    READY = "Ready"
    PARTIALLY_READY = "Partially Ready"
    NEEDS_PREPARATION = "Needs Preparation"
