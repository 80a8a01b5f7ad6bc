"""
Anomaly Detector - univariate, peer-group and multivariate outlier detection.

Provides:
1. UNIVARIATE - population z-score over a list of numbers
   - Flag |value - mean| / std >= threshold (default 2.0)
   - Zero variance flags nothing
2. PEER GROUP - univariate detection within department + category cohorts
3. MULTIVARIATE - standardized distance over feature mappings
   - score = sqrt(sum((x_f - mean_f)^2 / var_f)), zero-variance features add 0
   - Flag score > threshold (default 3.5); needs at least 5 rows

Small inputs return a result with `insufficientData=True` instead of an
empty list, so callers can tell "not enough data" from "nothing unusual".
Severity bucketing is left to callers via classify_severity().
"""

import logging
from collections import defaultdict
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from sklearn.preprocessing import StandardScaler

from municipal_intel.core.config import get_settings
from municipal_intel.models import (
    AnomalyDetectionResult,
    AnomalyRecord,
    AnomalySeverity,
    DetectionMethod,
    Transaction,
)

logger = logging.getLogger(__name__)


# Minimum sample sizes
MIN_UNIVARIATE_POINTS = 2
MIN_MULTIVARIATE_ROWS = 5

# Severity multipliers of the detection threshold
HIGH_SEVERITY_MULTIPLIER = 2.0
MEDIUM_SEVERITY_MULTIPLIER = 1.5


def classify_severity(score: float, threshold: float) -> AnomalySeverity:
    """
    Bucket an anomaly score relative to the threshold that flagged it.

    Example:
        >>> classify_severity(7.5, 3.5)
        <AnomalySeverity.HIGH: 'High'>
    """
    if score > threshold * HIGH_SEVERITY_MULTIPLIER:
        return AnomalySeverity.HIGH
    if score > threshold * MEDIUM_SEVERITY_MULTIPLIER:
        return AnomalySeverity.MEDIUM
    return AnomalySeverity.LOW


# =============================================================================
# Univariate Detection
# =============================================================================


def detect_univariate(
    values: Sequence[float],
    threshold: Optional[float] = None,
) -> AnomalyDetectionResult:
    """
    Flag values whose population z-score reaches the threshold.

    Args:
        values: Numeric samples (N >= 2)
        threshold: z-score threshold; defaults to settings.z_score_threshold

    Returns:
        AnomalyDetectionResult with mean, stdDev and one AnomalyRecord per
        flagged value (in input order). `deviation` is value - mean.

    Example:
        >>> result = detect_univariate([10, 10, 10, 10, 100], threshold=2.0)
        >>> [a.value for a in result.anomalies]
        [100.0]
    """
    if threshold is None:
        threshold = get_settings().z_score_threshold

    if len(values) < MIN_UNIVARIATE_POINTS:
        return AnomalyDetectionResult(
            threshold=threshold,
            totalItems=len(values),
            insufficientData=True,
            reason=f"At least {MIN_UNIVARIATE_POINTS} values are required for anomaly detection",
        )

    data = np.asarray(values, dtype=float)
    avg = float(np.mean(data))
    std = float(np.std(data))

    anomalies: List[AnomalyRecord] = []
    if std > 0:
        scores = np.abs(data - avg) / std
        for index in np.flatnonzero(scores >= threshold):
            value = float(data[index])
            deviation = value - avg
            anomalies.append(AnomalyRecord(
                index=int(index),
                value=value,
                score=float(scores[index]),
                expectedValue=avg,
                deviation=deviation,
                deviationPercentage=deviation / avg * 100 if avg != 0 else None,
                method=DetectionMethod.Z_SCORE,
                methods=[DetectionMethod.Z_SCORE],
            ))

    return AnomalyDetectionResult(
        anomalies=anomalies,
        mean=avg,
        stdDev=std,
        threshold=threshold,
        totalItems=len(values),
        anomalyCount=len(anomalies),
    )


# =============================================================================
# Peer Group Detection
# =============================================================================


def _peer_key(transaction: Transaction) -> Tuple[str, str]:
    return (transaction.departmentId or "", transaction.category or "")


def detect_peer_group_anomalies(
    transactions: Sequence[Transaction],
    threshold: Optional[float] = None,
    min_group_size: Optional[int] = None,
) -> List[AnomalyRecord]:
    """
    Run univariate detection on amounts within each department + category.

    Transactions without an amount are ignored. Groups smaller than
    `min_group_size` are skipped. Returned indices refer to positions in
    `transactions`.

    Args:
        transactions: Transactions to analyze
        threshold: z-score threshold; defaults to settings.z_score_threshold
        min_group_size: Minimum cohort size; defaults to settings.min_peer_group_size

    Returns:
        Flagged transactions ordered by input position.
    """
    settings = get_settings()
    if threshold is None:
        threshold = settings.z_score_threshold
    if min_group_size is None:
        min_group_size = settings.min_peer_group_size

    groups: Dict[Tuple[str, str], List[int]] = defaultdict(list)
    for position, transaction in enumerate(transactions):
        if transaction.amount is not None:
            groups[_peer_key(transaction)].append(position)

    flagged: List[AnomalyRecord] = []
    for (department, category), positions in sorted(groups.items()):
        if len(positions) < min_group_size:
            continue

        amounts = [transactions[p].amount for p in positions]
        result = detect_univariate(amounts, threshold)
        for anomaly in result.anomalies:
            transaction = transactions[positions[anomaly.index]]
            direction = "above" if anomaly.deviation > 0 else "below"
            flagged.append(anomaly.model_copy(update={
                "index": positions[anomaly.index],
                "sourceId": transaction.id,
                "method": DetectionMethod.PEER_GROUP,
                "methods": [DetectionMethod.PEER_GROUP],
                "department": transaction.departmentId,
                "category": transaction.category,
                "explanation": (
                    f"Amount {anomaly.score:.1f}σ {direction} "
                    f"{department or 'unassigned'} / {category or 'uncategorized'} peers"
                ),
            }))

    flagged.sort(key=lambda a: a.index)
    return flagged


# =============================================================================
# Multivariate Detection
# =============================================================================


def _feature_matrix(rows: Sequence[Mapping[str, float]]) -> Tuple[List[str], np.ndarray]:
    keys = list(rows[0].keys())
    expected = set(keys)
    for position, row in enumerate(rows):
        if set(row.keys()) != expected:
            raise ValueError(
                f"Row {position} has features {sorted(row.keys())}, expected {sorted(expected)}"
            )
    matrix = np.array([[float(row[key]) for key in keys] for row in rows], dtype=float)
    return keys, matrix


def detect_multivariate(
    rows: Sequence[Mapping[str, float]],
    threshold: Optional[float] = None,
) -> AnomalyDetectionResult:
    """
    Flag rows whose standardized distance from the feature means exceeds the threshold.

    Each feature is standardized with scikit-learn's StandardScaler
    (population variance). Features with zero variance contribute 0. This is
    the diagonal simplification of the Mahalanobis distance: covariance
    between features is ignored.

    Args:
        rows: Feature mappings with identical keys (at least 5)
        threshold: Distance threshold; defaults to settings.multivariate_threshold

    Returns:
        AnomalyDetectionResult with per-feature means and one AnomalyRecord
        per flagged row. `deviation` equals the distance score.

    Raises:
        ValueError: If rows do not share the same feature keys.
    """
    if threshold is None:
        threshold = get_settings().multivariate_threshold

    if len(rows) < MIN_MULTIVARIATE_ROWS:
        return AnomalyDetectionResult(
            threshold=threshold,
            totalItems=len(rows),
            insufficientData=True,
            reason="Insufficient data points",
        )

    keys, matrix = _feature_matrix(rows)

    scaler = StandardScaler()
    scaled = scaler.fit_transform(matrix)
    # Constant columns must not contribute rounding noise
    scaled[:, np.ptp(matrix, axis=0) == 0] = 0.0
    scores = np.sqrt(np.sum(scaled ** 2, axis=1))

    means = {key: float(value) for key, value in zip(keys, scaler.mean_)}

    anomalies: List[AnomalyRecord] = []
    for index in np.flatnonzero(scores > threshold):
        score = float(scores[index])
        anomalies.append(AnomalyRecord(
            index=int(index),
            features={key: float(matrix[index, col]) for col, key in enumerate(keys)},
            score=score,
            expectedFeatures=means,
            deviation=score,
            method=DetectionMethod.MULTIVARIATE_DISTANCE,
            methods=[DetectionMethod.MULTIVARIATE_DISTANCE],
        ))

    logger.debug(f"Multivariate scan: {len(anomalies)}/{len(rows)} rows above {threshold}")

    return AnomalyDetectionResult(
        anomalies=anomalies,
        means=means,
        threshold=threshold,
        totalItems=len(rows),
        anomalyCount=len(anomalies),
    )
