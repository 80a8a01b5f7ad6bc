'''
Municipal Intelligence Test Suite

Test Modules:
-------------
- test_stats.py: Descriptive statistics, trend/volatility, weighted scorer, risk bands
- test_risk_scorer.py: EUREKA six-factor score, defaults for malformed indicators
- test_anomaly_detector.py: Univariate, peer-group and multivariate detection
- test_forecast_engine.py: AR(1)-on-differences forecast, bands, period labels
- test_optimization_advisor.py: Overspending/underspending/high-performer/strategic rules
- test_compliance.py: Per-framework scoring, lookback window, audit readiness
- test_budget_analysis.py: Department performance, monthly trends, seasonality, timeline
- test_cache.py: Bounded report cache, oldest-first eviction
- test_insight_aggregator.py: End-to-end report, caching, determinism, error reports
- test_api.py: FastAPI round trips through httpx

Running Tests:
--------------
    pip install -e ".[test]"
    pytest -v

Configuration:
--------------
See conftest.py for shared fixtures and test configuration.
'''

__all__ = []
