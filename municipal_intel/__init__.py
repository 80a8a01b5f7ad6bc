"""
Municipal Intelligence Package.

Financial intelligence engine for municipal budgets: risk scoring, anomaly
detection, spending forecasts, optimization recommendations and regulatory
compliance analysis, composed into a single cached intelligence report.

Subpackages:
    - api: FastAPI route handlers
    - core: Configuration, report cache, and dependencies
    - models: Pydantic schemas and enums
    - services: Analysis services and the insight aggregator
"""

__version__ = "1.0.0"
