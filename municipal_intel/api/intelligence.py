"""
FastAPI router module for municipal financial intelligence endpoints.

This module implements endpoints for:
- Full intelligence analysis of a municipal data bundle (cached)
- EUREKA risk scoring of a single indicator set
- Univariate and multivariate anomaly detection
- Spending forecasts with confidence bands
- Budget optimization recommendations

Component endpoints are thin wrappers over the pure services; contract
violations raised by the services (ValueError) are returned as HTTP 400.
The analysis endpoint never fails: aggregation errors are reported in the
IntelligenceReport itself (`error=True`).
"""

import logging
from typing import List

from fastapi import APIRouter, HTTPException, Query

from municipal_intel.core.dependencies import AggregatorDep, SettingsDep
from municipal_intel.models import (
    AnomalyDetectionResult,
    ForecastRequest,
    ForecastResult,
    IntelligenceReport,
    MultivariateAnomalyRequest,
    MunicipalDataBundle,
    OptimizationRequest,
    Recommendation,
    RiskIndicatorSet,
    RiskScore,
    UnivariateAnomalyRequest,
)
from municipal_intel.services.anomaly_detector import detect_multivariate, detect_univariate
from municipal_intel.services.forecast_engine import forecast
from municipal_intel.services.optimization_advisor import recommend
from municipal_intel.services.risk_scorer import score_risk

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/intelligence", tags=["intelligence"])


# =============================================================================
# Full Analysis
# =============================================================================


@router.post("/analyze", response_model=IntelligenceReport)
async def analyze_bundle(
    bundle: MunicipalDataBundle,
    aggregator: AggregatorDep,
    use_cache: bool = Query(
        default=True,
        description="Serve and store the report under '{id}-{lastUpdated}'",
    ),
) -> IntelligenceReport:
    """
    Produce the complete intelligence report for a municipal data bundle.

    Runs risk assessment, anomaly detection, forecasting, compliance gap
    analysis and strategic recommendations in a fixed order.

    Args:
        bundle: Municipal data bundle (all sections optional)
        use_cache: When false the cache is neither read nor written

    Returns:
        IntelligenceReport. A failed analysis is still returned with status
        200 and `error=True`, `message`, `reason` set.
    """
    return aggregator.analyze(bundle, use_cache=use_cache)


# =============================================================================
# Component Endpoints
# =============================================================================


@router.post("/risk-score", response_model=RiskScore)
async def risk_score_endpoint(
    indicators: RiskIndicatorSet,
    settings: SettingsDep,
) -> RiskScore:
    """
    Score one set of risk indicators with the EUREKA weights.

    Missing or malformed indicators fall back to their documented defaults
    before scoring.
    """
    try:
        return score_risk(indicators, settings.risk_cut_points)
    except ValueError as e:
        logger.warning(f"Rejected risk scoring request: {e}")
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/anomalies/univariate", response_model=AnomalyDetectionResult)
async def univariate_anomalies_endpoint(
    request: UnivariateAnomalyRequest,
    settings: SettingsDep,
) -> AnomalyDetectionResult:
    """
    Flag values whose |z| reaches the threshold.

    Fewer than two values yields `insufficientData=True` rather than an error.
    """
    threshold = request.threshold or settings.z_score_threshold
    try:
        return detect_univariate(request.values, threshold)
    except ValueError as e:
        logger.warning(f"Rejected univariate anomaly request: {e}")
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/anomalies/multivariate", response_model=AnomalyDetectionResult)
async def multivariate_anomalies_endpoint(
    request: MultivariateAnomalyRequest,
    settings: SettingsDep,
) -> AnomalyDetectionResult:
    """
    Flag rows whose standardized distance exceeds the threshold.

    Raises:
        HTTPException 400: If rows do not share the same feature keys
    """
    threshold = request.threshold or settings.multivariate_threshold
    try:
        return detect_multivariate(request.rows, threshold)
    except ValueError as e:
        logger.warning(f"Rejected multivariate anomaly request: {e}")
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/forecast", response_model=ForecastResult)
async def forecast_endpoint(
    request: ForecastRequest,
    settings: SettingsDep,
) -> ForecastResult:
    """
    Forecast the next periods of a series with ±band confidence limits.

    Fewer than four points yields `insufficientData=True`.
    """
    periods = request.periodsAhead or settings.forecast_horizon
    try:
        return forecast(request.series, periods, settings.forecast_band)
    except ValueError as e:
        logger.warning(f"Rejected forecast request: {e}")
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/recommendations", response_model=List[Recommendation])
async def recommendations_endpoint(request: OptimizationRequest) -> List[Recommendation]:
    """
    Rule-based optimization recommendations for a set of departments.

    Returns:
        Zero to four recommendations (overspending, underspending, high
        performers, strategic alignment) in rule order.
    """
    try:
        return recommend(
            request.departments,
            request.totalBudget,
            request.fiscalYearRemaining,
            request.priorities,
        )
    except ValueError as e:
        logger.warning(f"Rejected recommendations request: {e}")
        raise HTTPException(status_code=400, detail=str(e))
