"""
Compliance gap analysis across South African municipal regulatory frameworks.

Each framework (MFMA, PFMA, SCM, POPIA, AGSA) is scored independently:

    score = max(0, 100 - sum(severity penalty of each unresolved violation
                             recorded within the lookback window))

Violations without a framework are attributed to MFMA. SCM additionally
counts high-value transactions without a recorded vendor as medium-severity
gaps. A framework below 70 is a critical gap.
"""

import logging
from collections import Counter
from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence

from municipal_intel.core.config import get_settings
from municipal_intel.models import (
    AuditReadiness,
    ComplianceEntry,
    ComplianceFramework,
    ComplianceIntelligence,
    FrameworkCompliance,
    HealthStatus,
    Transaction,
    ViolationSeverity,
)
from municipal_intel.services.stats import mean

logger = logging.getLogger(__name__)


# Score deducted per unresolved violation
SEVERITY_PENALTIES: Dict[ViolationSeverity, float] = {
    ViolationSeverity.CRITICAL: 25.0,
    ViolationSeverity.HIGH: 15.0,
    ViolationSeverity.MEDIUM: 8.0,
    ViolationSeverity.LOW: 3.0,
}

# Frameworks scoring below this are critical gaps
CRITICAL_COMPLIANCE_SCORE = 70.0

# Audit is "Ready" only when every framework reaches this
AUDIT_READY_SCORE = 80.0

# SCM requires a registered supplier above this transaction value (ZAR)
SCM_VENDOR_REQUIRED_ABOVE = 200_000.0

DEFAULT_FRAMEWORK = ComplianceFramework.MFMA

FRAMEWORK_GUIDANCE: Dict[ComplianceFramework, str] = {
    ComplianceFramework.MFMA: "Tighten budget control and in-year reporting under the MFMA",
    ComplianceFramework.PFMA: "Review financial delegations and irregular expenditure registers",
    ComplianceFramework.SCM: "Enforce supplier registration and competitive bidding thresholds",
    ComplianceFramework.POPIA: "Audit personal information processing and access controls",
    ComplianceFramework.AGSA: "Clear prior audit findings and prepare supporting evidence files",
}


def compliance_status(score: float) -> HealthStatus:
    """Excellent >= 90, Good >= 80, Satisfactory >= 70, else Needs Improvement."""
    if score >= 90:
        return HealthStatus.EXCELLENT
    if score >= 80:
        return HealthStatus.GOOD
    if score >= 70:
        return HealthStatus.SATISFACTORY
    return HealthStatus.NEEDS_IMPROVEMENT


def recent_violations(
    history: Sequence[ComplianceEntry],
    as_of: date,
    lookback_days: Optional[int] = None,
) -> List[ComplianceEntry]:
    """Violations recorded after as_of - lookback_days (resolved or not)."""
    if lookback_days is None:
        lookback_days = get_settings().compliance_lookback_days
    cutoff = as_of - timedelta(days=lookback_days)
    return [entry for entry in history if entry.date.date() > cutoff]


def _score_framework(
    framework: ComplianceFramework,
    violations: Sequence[ComplianceEntry],
    transactions: Sequence[Transaction],
) -> FrameworkCompliance:
    penalty = sum(SEVERITY_PENALTIES[v.severity] for v in violations)

    gaps: List[str] = []
    by_severity = Counter(v.severity for v in violations)
    for severity in SEVERITY_PENALTIES:
        if by_severity[severity]:
            gaps.append(
                f"{by_severity[severity]} unresolved {severity.value}-severity violation(s)"
            )

    if framework == ComplianceFramework.SCM:
        unregistered = [
            t for t in transactions
            if t.amount is not None and t.amount > SCM_VENDOR_REQUIRED_ABOVE and not t.vendorId
        ]
        if unregistered:
            penalty += SEVERITY_PENALTIES[ViolationSeverity.MEDIUM] * len(unregistered)
            gaps.append(
                f"{len(unregistered)} transaction(s) above R{SCM_VENDOR_REQUIRED_ABOVE:,.0f} "
                f"without a recorded vendor"
            )

    score = round(max(0.0, 100.0 - penalty), 1)

    recommendations: List[str] = []
    if gaps:
        recommendations.append(FRAMEWORK_GUIDANCE[framework])
    if by_severity[ViolationSeverity.CRITICAL]:
        recommendations.append(f"Remediate critical {framework.value} findings before the audit cycle")

    return FrameworkCompliance(
        framework=framework,
        score=score,
        status=compliance_status(score),
        isCritical=score < CRITICAL_COMPLIANCE_SCORE,
        gaps=gaps,
        recommendations=recommendations,
    )


def assess_audit_readiness(frameworks: Sequence[FrameworkCompliance]) -> AuditReadiness:
    """Ready when all frameworks reach 80; Needs Preparation when any is critical."""
    if any(f.isCritical for f in frameworks):
        return AuditReadiness.NEEDS_PREPARATION
    if all(f.score >= AUDIT_READY_SCORE for f in frameworks):
        return AuditReadiness.READY
    return AuditReadiness.PARTIALLY_READY


def analyze_compliance(
    history: Sequence[ComplianceEntry],
    transactions: Sequence[Transaction],
    as_of: date,
    lookback_days: Optional[int] = None,
) -> ComplianceIntelligence:
    """
    Score every framework and summarize critical gaps and audit readiness.

    Args:
        history: Recorded compliance violations
        transactions: Transactions checked against SCM supplier rules
        as_of: Reference date for the lookback window
        lookback_days: Window length; defaults to settings.compliance_lookback_days

    Returns:
        ComplianceIntelligence with one FrameworkCompliance per framework in
        declaration order; overallScore is their mean.
    """
    window = recent_violations(history, as_of, lookback_days)
    open_violations = [v for v in window if not v.resolved]

    frameworks = [
        _score_framework(
            framework,
            [v for v in open_violations if (v.framework or DEFAULT_FRAMEWORK) == framework],
            transactions,
        )
        for framework in ComplianceFramework
    ]

    critical = [f for f in frameworks if f.isCritical]
    if critical:
        logger.info(
            f"Critical compliance gaps: {', '.join(f.framework.value for f in critical)}"
        )

    return ComplianceIntelligence(
        overallScore=round(mean([f.score for f in frameworks]), 1),
        frameworkBreakdown=frameworks,
        criticalGaps=critical,
        auditReadiness=assess_audit_readiness(frameworks),
    )
