"""
Optimization Advisor - rule-based budget reallocation recommendations.

Each rule is evaluated independently; every rule that matches at least one
department emits one recommendation listing all matching departments.

| Rule                 | Condition                                         | Type        | Impact    |
|----------------------|---------------------------------------------------|-------------|-----------|
| Overspending         | spent > allocated                                 | critical    | Critical  |
| Underspending        | spent/allocated < 0.7 * (1 - fiscalYearRemaining) | warning     | Medium    |
| High performers      | performance > 85 and utilization > 80%            | opportunity | Positive  |
| Strategic alignment  | priority weight > 0.7 and allocation < 10% total  | strategic   | Strategic |

Recommendations are returned in rule order; ranking across sources is the
aggregator's job. PRIORITY_BY_TYPE gives the priority each type carries
there.
"""

import logging
from typing import Dict, List, Optional, Sequence

from municipal_intel.models import (
    Department,
    ImpactLevel,
    Priority,
    PriorityWeight,
    Recommendation,
    RecommendationType,
)

logger = logging.getLogger(__name__)


# Spending below this share of the calendar-expected share is flagged
UNDERSPEND_TOLERANCE = 0.7

# High-performer thresholds
HIGH_PERFORMANCE_SCORE = 85.0
HIGH_UTILIZATION_RATIO = 0.8

# Strategic-alignment thresholds
STRATEGIC_PRIORITY_WEIGHT = 0.7
STRATEGIC_ALLOCATION_SHARE = 0.1

PRIORITY_BY_TYPE: Dict[RecommendationType, Priority] = {
    RecommendationType.CRITICAL: Priority.CRITICAL,
    RecommendationType.WARNING: Priority.MEDIUM,
    RecommendationType.STRATEGIC: Priority.MEDIUM,
    RecommendationType.OPPORTUNITY: Priority.LOW,
}


def department_label(department: Department) -> str:
    return department.name or department.id or "Unnamed department"


def _matching_priority(
    department: Department,
    priorities: Sequence[PriorityWeight],
) -> Optional[PriorityWeight]:
    """First priority whose name appears in the department name (case-insensitive)."""
    name = department_label(department).lower()
    for priority in priorities:
        if priority.name and priority.name.lower() in name:
            return priority
    return None


def recommend(
    departments: Sequence[Department],
    total_budget: float,
    fiscal_year_remaining: float,
    priorities: Optional[Sequence[PriorityWeight]] = None,
) -> List[Recommendation]:
    """
    Generate budget optimization recommendations.

    Departments without a positive budget are skipped because none of the
    rules can be evaluated for them.

    Args:
        departments: Departments with budget (allocated), spent and performanceScore
        total_budget: Total municipal budget, used for allocation shares
        fiscal_year_remaining: Fraction of the fiscal year remaining (0-1)
        priorities: Optional strategic priorities

    Returns:
        Zero to four recommendations, one per matching rule.

    Raises:
        ValueError: If fiscal_year_remaining is outside [0, 1].

    Example:
        >>> recs = recommend([Department(name="Roads", budget=100, spent=120)], 100, 0.5)
        >>> recs[0].details[0]["overspentAmount"]
        20.0
    """
    if not 0.0 <= fiscal_year_remaining <= 1.0:
        raise ValueError(
            f"fiscal_year_remaining must be within [0, 1], got {fiscal_year_remaining}"
        )

    usable = [d for d in departments if d.budget is not None and d.budget > 0]
    if len(usable) < len(departments):
        logger.warning(
            f"Skipping {len(departments) - len(usable)} department(s) without a positive budget"
        )

    recommendations: List[Recommendation] = []
    expected_ratio = 1.0 - fiscal_year_remaining

    # -------------------------------------------------------------------------
    # Rule 1: Overspending
    # -------------------------------------------------------------------------
    overspent = [d for d in usable if d.spent > d.budget]
    if overspent:
        recommendations.append(Recommendation(
            type=RecommendationType.CRITICAL,
            category="Overspending",
            title="Address Overspending",
            description=f"{len(overspent)} department(s) have exceeded their allocated budget.",
            impact=ImpactLevel.CRITICAL,
            priority=PRIORITY_BY_TYPE[RecommendationType.CRITICAL],
            action="Immediate budget review and reallocation required",
            details=[
                {
                    "department": department_label(d),
                    "overspentAmount": round(d.spent - d.budget, 2),
                    "percentage": round(d.spent / d.budget * 100, 1),
                }
                for d in overspent
            ],
        ))

    # -------------------------------------------------------------------------
    # Rule 2: Underspending relative to the fiscal calendar
    # -------------------------------------------------------------------------
    underspent = [
        d for d in usable
        if d.spent / d.budget < expected_ratio * UNDERSPEND_TOLERANCE
    ]
    if underspent:
        recommendations.append(Recommendation(
            type=RecommendationType.WARNING,
            category="Underspending",
            title="Accelerate Planned Spending",
            description=(
                f"{len(underspent)} department(s) are significantly underspending "
                f"relative to the fiscal year progress."
            ),
            impact=ImpactLevel.MEDIUM,
            priority=PRIORITY_BY_TYPE[RecommendationType.WARNING],
            action="Review implementation timelines and procurement schedules",
            details=[
                {
                    "department": department_label(d),
                    "currentSpent": round(d.spent / d.budget * 100, 1),
                    "expectedSpent": round(expected_ratio * 100, 1),
                }
                for d in underspent
            ],
        ))

    # -------------------------------------------------------------------------
    # Rule 3: High performers with efficient utilization
    # -------------------------------------------------------------------------
    high_performers = [
        d for d in usable
        if d.performanceScore > HIGH_PERFORMANCE_SCORE
        and d.spent / d.budget > HIGH_UTILIZATION_RATIO
    ]
    if high_performers:
        recommendations.append(Recommendation(
            type=RecommendationType.OPPORTUNITY,
            category="High Performance",
            title="Invest in High-Performing Areas",
            description=(
                f"{len(high_performers)} department(s) are showing excellent performance "
                f"metrics and efficient budget utilization."
            ),
            impact=ImpactLevel.POSITIVE,
            priority=PRIORITY_BY_TYPE[RecommendationType.OPPORTUNITY],
            action="Consider allocating additional resources from underutilized areas",
            details=[
                {
                    "department": department_label(d),
                    "performance": d.performanceScore,
                    "utilizationRate": round(d.spent / d.budget * 100, 1),
                }
                for d in high_performers
            ],
        ))

    # -------------------------------------------------------------------------
    # Rule 4: High-priority areas with a small share of the budget
    # -------------------------------------------------------------------------
    if priorities and total_budget > 0:
        misaligned = []
        for d in usable:
            match = _matching_priority(d, priorities)
            if (
                match is not None
                and match.weight > STRATEGIC_PRIORITY_WEIGHT
                and d.budget / total_budget < STRATEGIC_ALLOCATION_SHARE
            ):
                misaligned.append(d)

        if misaligned:
            recommendations.append(Recommendation(
                type=RecommendationType.STRATEGIC,
                category="Strategic Alignment",
                title="Align Budget with Strategic Priorities",
                description=(
                    "Some high-priority areas may be underfunded relative to their "
                    "strategic importance."
                ),
                impact=ImpactLevel.STRATEGIC,
                priority=PRIORITY_BY_TYPE[RecommendationType.STRATEGIC],
                action="Consider rebalancing in mid-year budget adjustments",
                details=[
                    {
                        "department": department_label(d),
                        "currentAllocation": round(d.budget / total_budget * 100, 1),
                        "recommendation": "Review allocation in next budget cycle",
                    }
                    for d in misaligned
                ],
            ))

    logger.info(f"Optimization advisor produced {len(recommendations)} recommendation(s)")
    return recommendations
