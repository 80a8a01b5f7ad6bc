"""
Pytest Configuration and Shared Fixtures for Municipal Intelligence Tests.

This module provides fixtures and configuration for all tests, supporting:
- Async API tests with pytest-asyncio and httpx
- A deterministic three-department municipality (overspent / underspent /
  high-performing) with twelve months of history
- Transactions containing one planted outlier
- Compliance history spanning the 365-day lookback window
- A fixed clock so reports are reproducible

Every generated value comes from a seeded np.random.RandomState.

Reference date: 2025-10-15, inside fiscal year 2025 (1 April 2025 - 31 March 2026).
"""

from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, Generator, List

import numpy as np
import pytest

from municipal_intel.core.config import get_settings
from municipal_intel.models import (
    Budget,
    ComplianceEntry,
    Department,
    MonthlyRecord,
    MunicipalDataBundle,
    Transaction,
)
from municipal_intel.services.insight_aggregator import InsightAggregator


# ============================================================
# CONSTANTS
# ============================================================

FIXED_NOW = datetime(2025, 10, 15, 12, 0, 0)
AS_OF = date(2025, 10, 15)

DEPARTMENT_BUDGET = 1_000_000.0

# Last twelve complete months before AS_OF
HISTORY_MONTHS = [
    f"{2024 + (9 + i) // 12}-{(9 + i) % 12 + 1:02d}" for i in range(12)
]

OUTLIER_ID = "txn-outlier"
OUTLIER_AMOUNT = 500_000.0


# ============================================================
# PYTEST HOOKS
# ============================================================

def pytest_configure(config) -> None:
    """
    Register custom markers.

    - slow: Marks tests as slow (deselect with -m "not slow")
    - scenario: End-to-end municipality scenarios through the aggregator
    - api: Tests driving the FastAPI app through httpx
    """
    config.addinivalue_line(
        'markers',
        'slow: marks tests as slow (deselect with -m "not slow")'
    )
    config.addinivalue_line(
        'markers',
        'scenario: end-to-end municipality scenarios through the aggregator'
    )
    config.addinivalue_line(
        'markers',
        'api: tests driving the FastAPI app through httpx'
    )


@pytest.fixture(autouse=True)
def _fresh_settings() -> Generator[None, None, None]:
    """Reload settings for every test so INTEL_* monkeypatching takes effect."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ============================================================
# CLOCK
# ============================================================

@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    """Clock returning FIXED_NOW."""
    return lambda: FIXED_NOW


@pytest.fixture
def aggregator(fixed_clock: Callable[[], datetime]) -> InsightAggregator:
    """Aggregator with its own empty cache and the fixed clock."""
    return InsightAggregator(clock=fixed_clock)


# ============================================================
# MUNICIPALITY DATA
# ============================================================

def _monthly_history(budget: float, spend_share: float, seed: int) -> List[MonthlyRecord]:
    """Twelve months of spending around budget/12 * spend_share."""
    rng = np.random.RandomState(seed)
    allocated = budget / 12
    return [
        MonthlyRecord(
            date=month,
            allocated=round(allocated, 2),
            spent=round(float(allocated * spend_share * rng.normal(1.0, 0.05)), 2),
            transactions=int(rng.randint(20, 40)),
        )
        for month in HISTORY_MONTHS
    ]


@pytest.fixture
def scenario_departments() -> List[Department]:
    """
    Three departments, each triggering one optimization rule.

    - Roads: spent 120% of budget (overspending)
    - Parks: spent 20% with ~54% of the fiscal year elapsed (underspending)
    - Water: performance 92 and 90% utilization (high performer)
    """
    return [
        Department(
            id="roads", name="Roads and Stormwater",
            budget=DEPARTMENT_BUDGET, spent=1_200_000.0, performanceScore=70,
            monthlyData=_monthly_history(DEPARTMENT_BUDGET, 1.1, seed=1),
        ),
        Department(
            id="parks", name="Parks and Recreation",
            budget=DEPARTMENT_BUDGET, spent=200_000.0, performanceScore=65,
            monthlyData=_monthly_history(DEPARTMENT_BUDGET, 0.4, seed=2),
        ),
        Department(
            id="water", name="Water Services",
            budget=DEPARTMENT_BUDGET, spent=900_000.0, performanceScore=92,
            monthlyData=_monthly_history(DEPARTMENT_BUDGET, 0.9, seed=3),
        ),
    ]


@pytest.fixture
def scenario_transactions() -> List[Transaction]:
    """
    39 routine transactions (R10,000 - R13,000) spread over September and
    early October 2025, plus one R500,000 Roads payment on 2025-10-10.
    """
    departments = ["roads", "parks", "water"]
    routine = [
        Transaction(
            id=f"txn-{i:03d}",
            amount=10_000.0 + (i % 7) * 500,
            date=datetime(2025, 9, 1) + timedelta(days=i),
            departmentId=departments[i % 3],
            category="services",
            vendorId=f"V-{i % 5:03d}",
        )
        for i in range(39)
    ]
    outlier = Transaction(
        id=OUTLIER_ID,
        amount=OUTLIER_AMOUNT,
        date=datetime(2025, 10, 10),
        departmentId="roads",
        category="services",
        vendorId="V-999",
    )
    return routine + [outlier]


@pytest.fixture
def scenario_budgets() -> List[Budget]:
    """Budget lines mirroring the department allocations."""
    return [
        Budget(id="b-roads", departmentId="roads", allocated=DEPARTMENT_BUDGET, spent=1_200_000.0, fiscalYear=2025),
        Budget(id="b-parks", departmentId="parks", allocated=DEPARTMENT_BUDGET, spent=200_000.0, fiscalYear=2025),
        Budget(id="b-water", departmentId="water", allocated=DEPARTMENT_BUDGET, spent=900_000.0, fiscalYear=2025),
    ]


@pytest.fixture
def compliance_history() -> List[ComplianceEntry]:
    """
    Four violations within the lookback window and one older entry.

    Open in-window violations: SCM critical x2, MFMA high. The unattributed
    low-severity entry is resolved; the PFMA entry predates the window.
    """
    return [
        ComplianceEntry(date=datetime(2025, 6, 1), framework="SCM", severity="critical",
                        description="Deviation from competitive bidding"),
        ComplianceEntry(date=datetime(2025, 7, 15), framework="SCM", severity="critical",
                        description="Split orders below quotation threshold"),
        ComplianceEntry(date=datetime(2025, 8, 20), framework="MFMA", severity="high",
                        description="Late section 71 report"),
        ComplianceEntry(date=datetime(2025, 9, 10), severity="low",
                        description="Missing signature on requisition", resolved=True),
        ComplianceEntry(date=datetime(2024, 1, 1), framework="PFMA", severity="critical",
                        description="Irregular expenditure"),
    ]


@pytest.fixture
def scenario_bundle(
    scenario_departments: List[Department],
    scenario_transactions: List[Transaction],
    scenario_budgets: List[Budget],
    compliance_history: List[ComplianceEntry],
) -> MunicipalDataBundle:
    """Complete municipal data bundle for the end-to-end scenario."""
    return MunicipalDataBundle(
        id="cpt-budget-2025",
        municipalityId="CPT",
        lastUpdated="2025-10-15T08:00:00Z",
        asOfDate=AS_OF,
        fiscalYear=2025,
        transactions=scenario_transactions,
        budgets=scenario_budgets,
        departments=scenario_departments,
        complianceHistory=compliance_history,
    )


@pytest.fixture
def scenario_payload(scenario_bundle: MunicipalDataBundle) -> Dict[str, Any]:
    """JSON-ready form of scenario_bundle, as an HTTP client would send it."""
    return scenario_bundle.model_dump(mode="json", exclude_none=True)
