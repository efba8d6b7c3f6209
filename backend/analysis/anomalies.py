"""
Anomaly Detector

Flags time series buckets that deviate from the rest of the series.

Detectors:
- global: population z-score over the whole series (2 sigma)
- statistical: the same test at 2.5 sigma, with a severity grade
- local: deviation from a +/-3 bucket neighbourhood
- change point: shift between the trailing and leading 7-bucket means

All thresholds are strict inequalities.
"""

from dataclasses import dataclass
from typing import Any, Literal, Optional, Sequence

import numpy as np
from numba import jit

from analysis.timeseries import Bucket
from config import Settings, get_settings
from core.errors import InsufficientDataError
from core.values import round_half_up


Strategy = Literal["global", "combined"]


@dataclass(frozen=True)
class Anomaly:
    """A flagged bucket."""

    context: str
    metric: str
    value: float
    why: str
    severity: Optional[str] = None
    period: Optional[str] = None
    method: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "context": self.context,
            "metric": self.metric,
            "value": self.value,
            "why": self.why,
            "severity": self.severity,
            "period": self.period,
            "method": self.method,
        }


@jit(nopython=True, cache=True)
def _local_deviation_scores(arr: np.ndarray, window: int) -> np.ndarray:
    """|value - local mean| / local std over a +/-window neighbourhood."""
    n = len(arr)
    scores = np.zeros(n, dtype=np.float64)

    for i in range(n):
        start = max(0, i - window)
        end = min(n, i + window + 1)
        segment = arr[start:end]
        mean = segment.mean()
        std = np.sqrt(((segment - mean) ** 2).mean())
        if std > 0:
            scores[i] = abs(arr[i] - mean) / std

    return scores


def _percent_of_mean(value: float, mean: float) -> int:
    if mean == 0:
        return 0
    return int(round_half_up(abs(value - mean) / mean * 100, 0))


class AnomalyDetector:
    """Runs one or several detectors over an ordered bucket series."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @property
    def config(self):
        return self.settings.analysis

    def detect(
        self,
        buckets: Sequence[Bucket],
        strategy: Optional[Strategy] = None,
        metric: str = "Daily Sales",
        strict: bool = False,
    ) -> list[Anomaly]:
        """
        Run the configured detector set and cap the result.

        ``global`` runs the simple z-score detector; ``combined`` runs the
        statistical, local and change-point detectors, keeping the first
        anomaly per bucket. Order is detection order.

        Raises:
            InsufficientDataError: only when ``strict`` and the series is
                shorter than the strategy's minimum.
        """
        strategy = strategy or self.config.anomaly_strategy
        required = (
            self.config.min_buckets_global if strategy == "global"
            else self.config.min_buckets_statistical
        )
        if strict and len(buckets) < required:
            raise InsufficientDataError(
                f"Anomaly detection needs at least {required} buckets",
                required=required,
                available=len(buckets),
            )

        if strategy == "global":
            found = self.detect_global(buckets, metric)
        elif strategy == "combined":
            found = self._deduplicate(
                self.detect_statistical_outliers(buckets, metric)
                + self.detect_local(buckets, metric)
                + self.detect_change_points(buckets, metric)
            )
        else:
            raise ValueError(f"Unknown anomaly strategy: {strategy}")

        return found[:self.config.max_anomalies]

    def detect_global(self, buckets: Sequence[Bucket], metric: str = "Daily Sales") -> list[Anomaly]:
        """Flag buckets more than 2 population std-devs from the mean."""
        if len(buckets) < self.config.min_buckets_global:
            return []

        values = np.array([b.value for b in buckets], dtype=np.float64)
        mean = float(np.mean(values))
        threshold = self.config.global_sigma * float(np.std(values))

        anomalies = []
        for bucket in buckets:
            if abs(bucket.value - mean) > threshold:
                pct = _percent_of_mean(bucket.value, mean)
                why = (
                    f"Unusually high sales day - {pct}% above average"
                    if bucket.value > mean
                    else f"Unusually low sales day - {pct}% below average"
                )
                anomalies.append(self._anomaly(bucket, metric, why, None, "global"))
        return anomalies

    def detect_statistical_outliers(
        self, buckets: Sequence[Bucket], metric: str = "Daily Sales"
    ) -> list[Anomaly]:
        """2.5 sigma outliers; high severity beyond 3 sigma."""
        if len(buckets) < self.config.min_buckets_statistical:
            return []

        values = np.array([b.value for b in buckets], dtype=np.float64)
        mean = float(np.mean(values))
        std = float(np.std(values))
        threshold = self.config.outlier_sigma * std
        high = self.config.outlier_high_sigma * std

        anomalies = []
        for bucket in buckets:
            deviation = abs(bucket.value - mean)
            if deviation > threshold:
                pct = _percent_of_mean(bucket.value, mean)
                direction = "above" if bucket.value > mean else "below"
                anomalies.append(self._anomaly(
                    bucket,
                    metric,
                    f"Statistical outlier: {pct}% {direction} average",
                    "high" if deviation > high else "medium",
                    "statistical",
                ))
        return anomalies

    def detect_local(self, buckets: Sequence[Bucket], metric: str = "Daily Sales") -> list[Anomaly]:
        """Buckets unusual relative to their local neighbourhood."""
        if len(buckets) < self.config.min_buckets_statistical:
            return []

        values = np.array([b.value for b in buckets], dtype=np.float64)
        scores = _local_deviation_scores(values, self.config.local_window)

        anomalies = []
        for bucket, score in zip(buckets, scores):
            if score > self.config.local_threshold:
                anomalies.append(self._anomaly(
                    bucket,
                    metric,
                    "Isolation anomaly: Unusual pattern compared to local neighborhood",
                    "high" if score > self.config.local_high_threshold else "medium",
                    "local",
                ))
        return anomalies

    def detect_change_points(
        self, buckets: Sequence[Bucket], metric: str = "Daily Sales"
    ) -> list[Anomaly]:
        """
        Compare the means of the windows before and starting at each index.

        Indices run from ``window`` to ``n - window`` inclusive, so a
        series of exactly two windows is checked at its midpoint.
        """
        window = self.config.change_window
        if len(buckets) < max(self.config.min_buckets_statistical, 2 * window):
            return []

        values = np.array([b.value for b in buckets], dtype=np.float64)
        anomalies = []
        for i in range(window, len(values) - window + 1):
            before = float(values[i - window:i].mean())
            after = float(values[i:i + window].mean())
            if before == 0:
                continue

            change = abs(after - before) / before
            if change > self.config.change_threshold:
                anomalies.append(self._anomaly(
                    buckets[i],
                    metric,
                    f"Change point detected: {int(round_half_up(change * 100, 0))}% shift in sales pattern",
                    "high" if change >= self.config.change_high_threshold else "medium",
                    "change_point",
                ))
        return anomalies

    @staticmethod
    def _anomaly(
        bucket: Bucket,
        metric: str,
        why: str,
        severity: Optional[str],
        method: str,
    ) -> Anomaly:
        return Anomaly(
            context=f"Date: {bucket.period}",
            metric=metric,
            value=bucket.value,
            why=why,
            severity=severity,
            period=bucket.period,
            method=method,
        )

    @staticmethod
    def _deduplicate(anomalies: list[Anomaly]) -> list[Anomaly]:
        seen = set()
        unique = []
        for anomaly in anomalies:
            if anomaly.period in seen:
                continue
            seen.add(anomaly.period)
            unique.append(anomaly)
        return unique
