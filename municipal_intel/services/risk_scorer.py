"""
EUREKA Risk Scorer - six-factor financial risk score.

Combines six indicators into a 0-100 score (higher = riskier):

| Factor        | Indicator              | Normalization              | Weight |
|---------------|------------------------|----------------------------|--------|
| compliance    | complianceRating       | 100 - value                | 0.25   |
| budget        | budgetVariance         | min(|value|, 100)          | 0.20   |
| findings      | auditFindings          | min(value, 10) / 10 * 100  | 0.20   |
| volatility    | spendingVolatility     | as-is (0-100)              | 0.15   |
| documentation | documentCompliance     | 100 - value                | 0.10   |
| historical    | historicalPerformance  | 100 - value                | 0.10   |

All-default indicators score 0 (Low). Pure functions; no shared state.
"""

import logging
from typing import Dict, List, Optional, Sequence

from municipal_intel.models import (
    FactorDirection,
    RiskFactorContribution,
    RiskIndicatorSet,
    RiskScore,
)
from municipal_intel.services.stats import WeightedFactor, categorize_risk, weighted_score

logger = logging.getLogger(__name__)


# Factor weights; must sum to 1.0
EUREKA_WEIGHTS: Dict[str, float] = {
    "compliance": 0.25,
    "budget": 0.20,
    "findings": 0.20,
    "volatility": 0.15,
    "documentation": 0.10,
    "historical": 0.10,
}

# Audit findings at or above this count saturate the findings factor
MAX_AUDIT_FINDINGS = 10

# Remediation text for each factor when it is a top contributor
FACTOR_REMEDIATIONS: Dict[str, str] = {
    "compliance": "Strengthen compliance documentation and controls",
    "budget": "Improve budget adherence and variance management",
    "findings": "Address and clear outstanding audit findings",
    "volatility": "Stabilize spending patterns with better planning",
    "documentation": "Enhance record keeping and documentation processes",
    "historical": "Develop performance improvement plan",
}


def score_risk(
    indicators: RiskIndicatorSet,
    cut_points: Optional[Sequence[float]] = None,
) -> RiskScore:
    """
    Compute the EUREKA risk score for one set of indicators.

    Args:
        indicators: Validated indicator set (malformed values already defaulted)
        cut_points: Optional risk band cut points; defaults to settings

    Returns:
        RiskScore with score, category, per-factor weighted contributions
        and the weights used.

    Example:
        >>> score_risk(RiskIndicatorSet()).score
        0.0
        >>> score_risk(RiskIndicatorSet(auditFindings=25)).breakdown["findings"]
        20.0
    """
    findings = min(indicators.auditFindings, MAX_AUDIT_FINDINGS) / MAX_AUDIT_FINDINGS * 100

    factors = [
        WeightedFactor("compliance", indicators.complianceRating,
                       EUREKA_WEIGHTS["compliance"], FactorDirection.HIGHER_IS_BETTER),
        WeightedFactor("budget", min(abs(indicators.budgetVariance), 100.0),
                       EUREKA_WEIGHTS["budget"]),
        WeightedFactor("findings", findings, EUREKA_WEIGHTS["findings"]),
        WeightedFactor("volatility", indicators.spendingVolatility,
                       EUREKA_WEIGHTS["volatility"]),
        WeightedFactor("documentation", indicators.documentCompliance,
                       EUREKA_WEIGHTS["documentation"], FactorDirection.HIGHER_IS_BETTER),
        WeightedFactor("historical", indicators.historicalPerformance,
                       EUREKA_WEIGHTS["historical"], FactorDirection.HIGHER_IS_BETTER),
    ]

    total, contributions = weighted_score(factors)

    return RiskScore(
        score=total,
        category=categorize_risk(total, cut_points),
        breakdown=contributions,
        weights=dict(EUREKA_WEIGHTS),
    )


def top_risk_factors(score: RiskScore, n: int = 2) -> List[RiskFactorContribution]:
    """
    Largest contributors to a risk score, highest first.

    `percentage` is the contribution's share of the total score (0 when the
    score itself is 0). Ties keep the factor order of EUREKA_WEIGHTS.
    """
    ranked = sorted(score.breakdown.items(), key=lambda item: item[1], reverse=True)[:n]
    return [
        RiskFactorContribution(
            factor=factor,
            contribution=round(value, 2),
            percentage=round(value / score.score * 100, 1) if score.score > 0 else 0.0,
        )
        for factor, value in ranked
    ]


def compliance_recommendations(score: RiskScore) -> List[str]:
    """
    Remediation text for the two largest contributors of a score.

    Factors contributing nothing are skipped, so a zero-risk score yields
    no recommendations.
    """
    return [
        FACTOR_REMEDIATIONS[item.factor]
        for item in top_risk_factors(score, n=2)
        if item.contribution > 0 and item.factor in FACTOR_REMEDIATIONS
    ]
