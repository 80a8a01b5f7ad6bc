"""
Tests for univariate, peer-group and multivariate anomaly detection.
"""

from datetime import datetime
from typing import Dict, List

import numpy as np
import pytest

from municipal_intel.models import AnomalySeverity, DetectionMethod, Transaction
from municipal_intel.services.anomaly_detector import (
    classify_severity,
    detect_multivariate,
    detect_peer_group_anomalies,
    detect_univariate,
)


class TestUnivariateDetection:
    """Population z-score with an inclusive threshold."""

    def test_constant_array_has_no_anomalies(self) -> None:
        result = detect_univariate([5.0] * 10, threshold=2.0)
        assert result.anomalies == []
        assert result.stdDev == 0.0
        assert not result.insufficientData

    def test_spike_is_flagged_at_threshold(self) -> None:
        """mean 28, std 36: the spike sits exactly at z = 2.0."""
        result = detect_univariate([10, 10, 10, 10, 100], threshold=2.0)
        assert [a.value for a in result.anomalies] == [100.0]
        anomaly = result.anomalies[0]
        assert anomaly.index == 4
        assert anomaly.score == pytest.approx(2.0)
        assert anomaly.expectedValue == pytest.approx(28.0)
        assert anomaly.deviation == pytest.approx(72.0)
        assert anomaly.deviationPercentage == pytest.approx(72.0 / 28.0 * 100)
        assert anomaly.method == DetectionMethod.Z_SCORE

    def test_result_reports_statistics(self) -> None:
        result = detect_univariate([2, 4, 4, 4, 5, 5, 7, 9], threshold=2.0)
        assert result.mean == pytest.approx(5.0)
        assert result.stdDev == pytest.approx(2.0)
        assert result.totalItems == 8
        assert result.anomalyCount == len(result.anomalies)

    def test_single_value_is_insufficient(self) -> None:
        result = detect_univariate([42.0], threshold=2.0)
        assert result.insufficientData
        assert result.anomalies == []
        assert result.reason

    def test_zero_mean_has_no_percentage(self) -> None:
        result = detect_univariate([-1.0, -1.0, -1.0, -1.0, 4.0], threshold=1.5)
        assert result.anomalies[0].deviationPercentage is None

    def test_threshold_defaults_from_settings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("INTEL_Z_SCORE_THRESHOLD", "3.0")
        result = detect_univariate([10, 10, 10, 10, 100])
        assert result.threshold == 3.0
        assert result.anomalies == []


class TestSeverity:
    """Severity relative to the flagging threshold."""

    @pytest.mark.parametrize(
        "score,expected",
        [
            (7.5, AnomalySeverity.HIGH),
            (7.0, AnomalySeverity.MEDIUM),
            (5.5, AnomalySeverity.MEDIUM),
            (5.25, AnomalySeverity.LOW),
            (3.5, AnomalySeverity.LOW),
        ],
    )
    def test_buckets(self, score: float, expected: AnomalySeverity) -> None:
        assert classify_severity(score, 3.5) == expected


class TestPeerGroupDetection:
    """Univariate detection within department + category cohorts."""

    @staticmethod
    def _transactions() -> List[Transaction]:
        roads = [
            Transaction(id=f"r{i}", amount=1_000.0, date=datetime(2025, 9, i + 1),
                        departmentId="roads", category="fuel")
            for i in range(6)
        ]
        roads.append(Transaction(id="r-big", amount=9_000.0, date=datetime(2025, 9, 10),
                                 departmentId="roads", category="fuel"))
        # Large but normal for its own cohort
        water = [
            Transaction(id=f"w{i}", amount=50_000.0 + i, date=datetime(2025, 9, i + 1),
                        departmentId="water", category="chemicals")
            for i in range(6)
        ]
        small = [
            Transaction(id=f"s{i}", amount=a, date=datetime(2025, 9, 1),
                        departmentId="parks", category="seeds")
            for i, a in enumerate([10.0, 10.0, 900.0])
        ]
        return roads + water + small

    def test_outlier_within_its_cohort(self) -> None:
        flagged = detect_peer_group_anomalies(self._transactions(), threshold=2.0, min_group_size=5)
        assert [a.sourceId for a in flagged] == ["r-big"]
        anomaly = flagged[0]
        assert anomaly.index == 6
        assert anomaly.method == DetectionMethod.PEER_GROUP
        assert anomaly.department == "roads"
        assert anomaly.category == "fuel"
        assert "above" in anomaly.explanation

    def test_small_groups_are_skipped(self) -> None:
        flagged = detect_peer_group_anomalies(self._transactions(), threshold=1.0, min_group_size=5)
        assert all(a.department != "parks" for a in flagged)

    def test_missing_amounts_are_ignored(self) -> None:
        transactions = self._transactions() + [
            Transaction(id="no-amount", departmentId="roads", category="fuel"),
        ]
        flagged = detect_peer_group_anomalies(transactions, threshold=2.0, min_group_size=5)
        assert [a.sourceId for a in flagged] == ["r-big"]


class TestMultivariateDetection:
    """Standardized distance over feature mappings."""

    @staticmethod
    def _rows() -> List[Dict[str, float]]:
        np.random.seed(42)
        rows = [
            {"amount": float(a), "count": float(c)}
            for a, c in zip(np.random.normal(100, 5, 30), np.random.normal(10, 1, 30))
        ]
        rows.append({"amount": 400.0, "count": 40.0})
        return rows

    def test_fewer_than_five_rows_is_insufficient(self) -> None:
        result = detect_multivariate([{"a": 1.0}, {"a": 2.0}, {"a": 3.0}, {"a": 4.0}])
        assert result.insufficientData
        assert result.reason == "Insufficient data points"
        assert result.anomalies == []

    def test_empty_input_is_insufficient(self) -> None:
        assert detect_multivariate([]).insufficientData

    def test_outlier_row_is_flagged(self) -> None:
        result = detect_multivariate(self._rows(), threshold=3.5)
        indices = [a.index for a in result.anomalies]
        assert 30 in indices
        outlier = next(a for a in result.anomalies if a.index == 30)
        assert outlier.features == {"amount": 400.0, "count": 40.0}
        assert outlier.deviation == outlier.score
        assert set(outlier.expectedFeatures) == {"amount", "count"}
        assert result.means is not None

    def test_constant_feature_contributes_nothing(self) -> None:
        rows = [{"a": float(v), "flat": 7.0} for v in [1, 2, 3, 4, 5]]
        single = detect_multivariate([{"a": float(v)} for v in [1, 2, 3, 4, 5]], threshold=0.5)
        with_flat = detect_multivariate(rows, threshold=0.5)
        assert [a.score for a in with_flat.anomalies] == pytest.approx(
            [a.score for a in single.anomalies]
        )

    def test_constant_rows_have_no_anomalies(self) -> None:
        result = detect_multivariate([{"a": 3.0, "b": 1.0}] * 6, threshold=0.1)
        assert result.anomalies == []

    def test_mismatched_keys_raise(self) -> None:
        rows = [{"a": 1.0, "b": 2.0}] * 4 + [{"a": 1.0, "c": 2.0}]
        with pytest.raises(ValueError):
            detect_multivariate(rows)
