"""
Forecaster

Sales projection over an ordered bucket series.

Two forms:
- short: linear trend over the most recent buckets (>= 7 buckets)
- ensemble: weighted blend of linear trend, exponential smoothing and
  weekly seasonal averages (>= 14 buckets)

Confidence decays with horizon distance and is forced non-increasing.
Multiplicative jitter is disabled unless configured; when enabled it is
drawn from a per-call generator seeded from settings.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Sequence

import numpy as np
from numba import jit

from analysis.timeseries import Bucket, Period, linear_slope
from config import Settings, get_settings
from core.errors import InsufficientDataError
from core.logging_config import forecast_logger as logger
from core.values import round_half_up


@dataclass(frozen=True)
class ForecastPoint:
    date: str
    value: float
    confidence: float

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date, "value": self.value, "confidence": self.confidence}


@dataclass(frozen=True)
class Forecast:
    """A generated forecast and its validation accuracy."""

    id: str
    name: str
    accuracy: float
    predictions: tuple[ForecastPoint, ...]
    last_trained: datetime
    model: str
    type: str = "sales_forecast"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "accuracy": self.accuracy,
            "predictions": [p.to_dict() for p in self.predictions],
            "last_trained": self.last_trained.isoformat(),
            "model": self.model,
        }


@dataclass(frozen=True)
class _Component:
    values: np.ndarray
    confidence: np.ndarray


@jit(nopython=True, cache=True)
def _ema_numba(arr: np.ndarray, alpha: float) -> np.ndarray:
    """Numba-accelerated exponential moving average."""
    n = len(arr)
    result = np.empty(n, dtype=np.float64)
    result[0] = arr[0]

    for i in range(1, n):
        result[i] = alpha * arr[i] + (1 - alpha) * result[i-1]

    return result


def _decay(horizon: int, start: float, step: float, floor: float, offset: int = 0) -> np.ndarray:
    steps = np.arange(offset, horizon + offset, dtype=np.float64)
    return np.maximum(floor, start - step * steps)


def step_period(period_key: str, period: Period, steps: int) -> str:
    """The period key ``steps`` periods after ``period_key``."""
    period = Period(period)
    if period == Period.MONTH:
        start = datetime.strptime(period_key, "%Y-%m")
        months = start.year * 12 + start.month - 1 + steps
        return f"{months // 12:04d}-{months % 12 + 1:02d}"

    days = 7 * steps if period == Period.WEEK else steps
    start = datetime.strptime(period_key, "%Y-%m-%d")
    return (start + timedelta(days=days)).strftime("%Y-%m-%d")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _new_forecast_id() -> str:
    return uuid.uuid4().hex[:16]


class Forecaster:
    """
    Builds Forecast values from bucket series.

    Stateless between calls: the random generator, when jitter is
    enabled, is created per call.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = _utc_now,
        id_factory: Callable[[], str] = _new_forecast_id,
        seed: Optional[int] = None,
    ):
        self.settings = settings or get_settings()
        self.clock = clock
        self.id_factory = id_factory
        self.seed = seed

    @property
    def config(self):
        return self.settings.forecast

    def forecast(
        self,
        buckets: Sequence[Bucket],
        horizon_days: Optional[int] = None,
        period: Period = Period.DAY,
    ) -> Forecast:
        """
        Ensemble forecast.

        Raises:
            InsufficientDataError: fewer buckets than the ensemble minimum.
            ValueError: horizon below 1.
        """
        horizon = self._horizon(horizon_days, self.config.default_horizon)
        self._require(buckets, self.config.min_points_ensemble)

        values = self._values(buckets)
        rng = self._rng()
        components = [
            (self.linear_component(values, horizon), self.config.linear_weight),
            (self.smoothing_component(values, horizon, rng), self.config.smoothing_weight),
            (self.seasonal_component(values, horizon, rng), self.config.seasonal_weight),
        ]
        predicted, confidence = self._combine(components)

        forecast = self._build(
            buckets,
            period,
            predicted,
            confidence,
            name=f"{horizon}-Day Sales Forecast",
            model="ensemble",
            accuracy=self.accuracy(values),
        )
        logger.info(
            f"Ensemble forecast over {len(values)} buckets, horizon {horizon}, "
            f"accuracy {forecast.accuracy}"
        )
        return forecast

    def forecast_short(
        self,
        buckets: Sequence[Bucket],
        horizon: Optional[int] = None,
        period: Period = Period.DAY,
    ) -> Forecast:
        """Linear projection of the most recent buckets."""
        horizon = self._horizon(horizon, self.config.short_horizon)
        self._require(buckets, self.config.min_points_short)

        values = self._values(buckets)
        recent = values[-self.config.short_window:]
        slope = linear_slope(recent)
        steps = np.arange(1, horizon + 1, dtype=np.float64)

        projected = (recent[-1] + slope * steps) * self._jitter(self._rng(), 0.1, horizon)
        confidence = _decay(horizon, 0.9, 0.05, 0.6, offset=1)

        forecast = self._build(
            buckets,
            period,
            np.maximum(projected, 0.0),
            confidence,
            name="Sales Forecast",
            model="linear",
            accuracy=self.accuracy(values),
        )
        logger.info(f"Short forecast over {len(recent)} buckets, horizon {horizon}")
        return forecast

    def linear_component(self, values: np.ndarray, horizon: int) -> _Component:
        slope = linear_slope(values)
        steps = np.arange(1, horizon + 1, dtype=np.float64)
        return _Component(
            values=np.maximum(0.0, values[-1] + slope * steps),
            confidence=_decay(horizon, 0.9, 0.05, 0.3),
        )

    def smoothing_component(
        self, values: np.ndarray, horizon: int, rng: Optional[np.random.Generator] = None
    ) -> _Component:
        level = float(_ema_numba(values, self.config.smoothing_alpha)[-1])
        return _Component(
            values=np.maximum(0.0, level * self._jitter(rng, 0.05, horizon)),
            confidence=_decay(horizon, 0.8, 0.03, 0.4),
        )

    def seasonal_component(
        self, values: np.ndarray, horizon: int, rng: Optional[np.random.Generator] = None
    ) -> _Component:
        season = self.config.season_length
        positions = np.arange(len(values)) % season
        averages = np.array([
            values[positions == (len(values) + i) % season].mean() for i in range(horizon)
        ])
        return _Component(
            values=np.maximum(0.0, averages * self._jitter(rng, 0.075, horizon)),
            confidence=_decay(horizon, 0.85, 0.02, 0.5),
        )

    def accuracy(self, values: Sequence[float]) -> float:
        """
        Holdout accuracy of the linear component.

        The last ``min(7, 20%)`` buckets are forecast from the rest;
        the absolute error ratio is mapped to ``1 - ratio`` and clamped
        to [0.5, 0.95].
        """
        values = np.asarray(values, dtype=np.float64)
        holdout = min(7, int(len(values) * 0.2))
        if holdout < 1 or len(values) - holdout < 1:
            return 0.5

        train, actual = values[:-holdout], values[-holdout:]
        predicted = self.linear_component(train, holdout).values

        total_actual = float(actual.sum())
        error_ratio = float(np.abs(predicted - actual).sum()) / total_actual if total_actual > 0 else 0.0
        return round_half_up(min(0.95, max(0.5, 1 - error_ratio)), 4)

    def _combine(self, components: list[tuple[_Component, float]]) -> tuple[np.ndarray, np.ndarray]:
        total_weight = sum(weight for _, weight in components)
        values = sum(c.values * weight for c, weight in components) / total_weight
        confidence = sum(c.confidence * weight for c, weight in components) / total_weight
        return values, confidence

    def _build(
        self,
        buckets: Sequence[Bucket],
        period: Period,
        values: np.ndarray,
        confidence: np.ndarray,
        name: str,
        model: str,
        accuracy: float,
    ) -> Forecast:
        last_key = buckets[-1].period
        # running minimum keeps confidence non-increasing after rounding
        rounded = [round_half_up(float(c)) for c in confidence]
        confidences = np.minimum.accumulate(rounded) if rounded else []

        predictions = tuple(
            ForecastPoint(
                date=step_period(last_key, period, i + 1),
                value=round_half_up(float(value)),
                confidence=float(conf),
            )
            for i, (value, conf) in enumerate(zip(values, confidences))
        )
        return Forecast(
            id=self.id_factory(),
            name=name,
            accuracy=accuracy,
            predictions=predictions,
            last_trained=self.clock(),
            model=model,
        )

    def _rng(self) -> Optional[np.random.Generator]:
        if not self.config.jitter_enabled:
            return None
        seed = self.seed if self.seed is not None else self.config.jitter_seed
        return np.random.default_rng(seed)

    @staticmethod
    def _jitter(rng: Optional[np.random.Generator], spread: float, size: int) -> np.ndarray:
        if rng is None:
            return np.ones(size)
        return rng.uniform(1 - spread, 1 + spread, size)

    @staticmethod
    def _values(buckets: Sequence[Bucket]) -> np.ndarray:
        return np.array([b.value for b in buckets], dtype=np.float64)

    @staticmethod
    def _horizon(horizon: Optional[int], default: int) -> int:
        horizon = default if horizon is None else horizon
        if horizon < 1:
            raise ValueError(f"Forecast horizon must be at least 1, got {horizon}")
        return horizon

    @staticmethod
    def _require(buckets: Sequence[Bucket], required: int) -> None:
        if len(buckets) < required:
            raise InsufficientDataError(
                f"Forecasting needs at least {required} buckets of history",
                required=required,
                available=len(buckets),
            )
