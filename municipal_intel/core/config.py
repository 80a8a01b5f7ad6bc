"""
Settings and environment management module for the Municipal Intelligence engine.

This module provides centralized configuration management using pydantic-settings,
which automatically loads settings from environment variables and .env files.

Key Features:
- Environment variable validation and type coercion
- Sensible defaults matching the documented detection and scoring thresholds
- Singleton pattern via @lru_cache for efficient access

Environment Variables (prefix INTEL_):
- INTEL_Z_SCORE_THRESHOLD: Univariate anomaly threshold (default: 2.0)
- INTEL_MULTIVARIATE_THRESHOLD: Multivariate distance threshold (default: 3.5)
- INTEL_AGGREGATE_ANOMALY_THRESHOLD: Threshold used by the aggregator ensemble (default: 2.5)
- INTEL_FORECAST_HORIZON: Periods projected by the aggregator (default: 3)
- INTEL_RISK_CUT_POINTS: JSON list of four ascending cut points (default: [20, 40, 60, 80])
- INTEL_ANOMALY_PENALTY_PER_ITEM: Health-score penalty per anomaly (default: 5.0)
- INTEL_CACHE_MAX_SIZE: Maximum cached reports per aggregator (default: 100)

Usage:
    from municipal_intel.core.config import get_settings

    settings = get_settings()
    threshold = settings.z_score_threshold
"""

from functools import lru_cache
from typing import Tuple

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Engine settings loaded from environment variables.

    Every service accepts explicit parameters and falls back to these values
    when `None` is passed, so the defaults here are the single source of the
    documented thresholds.

    Attributes:
        z_score_threshold: |z| at or above which a univariate value is anomalous.
        multivariate_threshold: Standardized distance above which a row is anomalous.
        aggregate_anomaly_threshold: Threshold the aggregator applies to transactions.
        forecast_horizon: Number of periods the aggregator forecasts.
        forecast_band: Relative half-width of the forecast band.
        risk_cut_points: Upper bounds of Low/Moderate/Elevated/High risk bands.
        anomaly_penalty_per_item: Health-score penalty applied per detected anomaly.
        cache_max_size: Maximum number of reports held by one InsightCache.
        min_transactions_for_anomalies: Transactions needed for ensemble detection.
        min_months_for_forecast: Monthly periods needed before forecasting.
        max_reported_anomalies: Anomalies kept in the report, highest score first.
        compliance_lookback_days: Trailing window for counting violations.
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        env_prefix='INTEL_',
        extra='ignore',
        case_sensitive=False,
    )

    # =========================================================================
    # Anomaly Detection
    # =========================================================================

    # Flag |value - mean| / std above this
    z_score_threshold: float = 2.0

    # Flag sqrt(sum of squared standardized deviations) above this
    multivariate_threshold: float = 3.5

    # Tighter threshold for the transaction ensemble inside analyze()
    aggregate_anomaly_threshold: float = 2.5

    # Below this the ensemble returns an insufficient-data result
    min_transactions_for_anomalies: int = 10

    # Peer groups (department + category) smaller than this are skipped
    min_peer_group_size: int = 5

    # Top-N anomalies kept in the report
    max_reported_anomalies: int = 20

    # =========================================================================
    # Forecasting
    # =========================================================================

    forecast_horizon: int = 3

    # Bounds are value * (1 - band) and value * (1 + band)
    forecast_band: float = 0.10

    # Monthly aggregates needed before the aggregator forecasts
    min_months_for_forecast: int = 6

    # Monthly aggregates needed before seasonality is reported
    min_months_for_seasonality: int = 12

    # =========================================================================
    # Risk and Health Scoring
    # =========================================================================

    # Scores below each cut point map to Low, Moderate, Elevated, High; else Critical
    risk_cut_points: Tuple[float, float, float, float] = (20.0, 40.0, 60.0, 80.0)

    # anomalyComponent = max(0, 100 - count * penalty)
    anomaly_penalty_per_item: float = 5.0

    # Violations counted within this many days of the reference date
    compliance_lookback_days: int = 365

    # =========================================================================
    # Caching
    # =========================================================================

    cache_max_size: int = 100

    @field_validator('risk_cut_points')
    @classmethod
    def _ascending_cut_points(cls, value: Tuple[float, ...]) -> Tuple[float, ...]:
        if list(value) != sorted(value):
            raise ValueError('risk_cut_points must be ascending')
        return value


@lru_cache()
def get_settings() -> Settings:
    """
    Get the engine settings singleton.

    Returns:
        Settings: The cached settings instance.

    Example:
        >>> settings = get_settings()
        >>> settings.multivariate_threshold
        3.5

    Note:
        To refresh settings in tests, clear the cache:
        >>> get_settings.cache_clear()
    """
    return Settings()
