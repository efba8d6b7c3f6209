"""
Time Series Bucketer

Groups rows by day, week (starting Sunday) or month and sums a metric
column per bucket. Also derives weekly/monthly seasonality by
autocorrelation and an overall trend direction from the daily series.

Bucket keys are zero-padded ISO-like strings, so plain string order
is chronological order. Dates are taken as wall-clock time in the
configured bucket time zone (process local time when unset).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Sequence

import numpy as np
import polars as pl
from scipy import stats as scipy_stats

from analysis.columns import DATE, REVENUE, RoleMap
from config import Settings, get_settings
from core.dataset import Dataset
from core.logging_config import analysis_logger as logger
from core.values import parse_date, parse_number, resolve_timezone, round_half_up


class Period(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


@dataclass(frozen=True)
class Bucket:
    """Aggregated value for one period key."""

    period: str
    value: float

    def to_dict(self) -> dict[str, Any]:
        return {"period": self.period, "value": self.value}


@dataclass(frozen=True)
class Seasonality:
    has_seasonality: bool
    weekly_pattern: Optional[float] = None
    monthly_pattern: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "has_seasonality": self.has_seasonality,
            "weekly_pattern": round(self.weekly_pattern, 4) if self.weekly_pattern is not None else None,
            "monthly_pattern": round(self.monthly_pattern, 4) if self.monthly_pattern is not None else None,
        }


@dataclass(frozen=True)
class TimeSeries:
    """Daily, weekly and monthly series of the revenue column."""

    daily: tuple[Bucket, ...] = ()
    weekly: tuple[Bucket, ...] = ()
    monthly: tuple[Bucket, ...] = ()
    seasonality: Seasonality = field(default_factory=lambda: Seasonality(False))
    trend: str = "stable"

    def to_dict(self) -> dict[str, Any]:
        return {
            "daily_sales": [{"date": b.period, "sales": b.value} for b in self.daily],
            "weekly_sales": [{"week": b.period, "sales": b.value} for b in self.weekly],
            "monthly_sales": [{"month": b.period, "sales": b.value} for b in self.monthly],
            "seasonality": self.seasonality.to_dict(),
            "trend": self.trend,
        }


_PERIOD_KEYS = {
    Period.DAY: pl.col("date").dt.strftime("%Y-%m-%d"),
    # Sunday-start weeks: polars weekday is 1 (Mon) .. 7 (Sun)
    Period.WEEK: (
        pl.col("date").dt.date()
        - pl.duration(days=(pl.col("date").dt.weekday() % 7).cast(pl.Int64))
    ).dt.strftime("%Y-%m-%d"),
    Period.MONTH: pl.col("date").dt.strftime("%Y-%m"),
}


def linear_slope(values: Sequence[float]) -> float:
    """Ordinary least-squares slope of values against their index."""
    if len(values) < 2:
        return 0.0
    result = scipy_stats.linregress(np.arange(len(values)), np.asarray(values, dtype=np.float64))
    return float(result.slope)


def autocorrelation(values: Sequence[float], lag: int) -> float:
    """Sample autocorrelation at the given lag (0 when undefined)."""
    arr = np.asarray(values, dtype=np.float64)
    if len(arr) <= lag:
        return 0.0
    centered = arr - arr.mean()
    denominator = float(np.sum(centered ** 2))
    if denominator == 0:
        return 0.0
    return float(np.sum(centered[:-lag] * centered[lag:]) / denominator)


class TimeSeriesBucketer:
    """Buckets a metric column by a date column."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def bucket(
        self,
        dataset: Dataset,
        metric_column: str,
        date_column: str,
        period: Period = Period.DAY,
    ) -> list[Bucket]:
        """
        Sum ``metric_column`` per period of ``date_column``.

        Rows with a missing or unparsable date or metric are dropped.
        """
        frame = self._frame(dataset, metric_column, date_column)
        if frame.height == 0:
            return []

        grouped = (
            frame.with_columns(_PERIOD_KEYS[Period(period)].alias("period"))
            .group_by("period")
            .agg(pl.col("value").sum())
            .sort("period")
        )
        return [
            Bucket(period=row["period"], value=round_half_up(row["value"]))
            for row in grouped.iter_rows(named=True)
        ]

    def _frame(self, dataset: Dataset, metric_column: str, date_column: str) -> pl.DataFrame:
        tz = resolve_timezone(self.settings.analysis.bucket_timezone)
        dates = []
        values = []
        for row in dataset.rows:
            when = parse_date(row.get(date_column), tz)
            value = parse_number(row.get(metric_column))
            if when is None or value is None:
                continue
            dates.append(when)
            values.append(value)

        return pl.DataFrame(
            {"date": dates, "value": values},
            schema={"date": pl.Datetime("us"), "value": pl.Float64},
        )


class TimeSeriesAnalyzer:
    """Builds the TimeSeries bundle for an analysis."""

    SEASONALITY_MIN_POINTS = 28
    SEASONALITY_THRESHOLD = 0.3
    TREND_THRESHOLD = 0.1

    def __init__(
        self,
        settings: Optional[Settings] = None,
        bucketer: Optional[TimeSeriesBucketer] = None,
    ):
        self.settings = settings or get_settings()
        self.bucketer = bucketer or TimeSeriesBucketer(self.settings)

    def analyze(self, dataset: Dataset, roles: RoleMap) -> TimeSeries:
        metric = roles.column(REVENUE)
        date_column = roles.column(DATE)

        daily = self.bucketer.bucket(dataset, metric, date_column, Period.DAY)
        weekly = self.bucketer.bucket(dataset, metric, date_column, Period.WEEK)
        monthly = self.bucketer.bucket(dataset, metric, date_column, Period.MONTH)

        values = [b.value for b in daily]
        logger.debug(
            f"Time series for {dataset.id}: {len(daily)} days, {len(weekly)} weeks, "
            f"{len(monthly)} months"
        )
        return TimeSeries(
            daily=tuple(daily),
            weekly=tuple(weekly),
            monthly=tuple(monthly),
            seasonality=self.detect_seasonality(values),
            trend=self.trend_direction(values),
        )

    def detect_seasonality(self, values: Sequence[float]) -> Seasonality:
        if len(values) < self.SEASONALITY_MIN_POINTS:
            return Seasonality(has_seasonality=False)

        weekly = autocorrelation(values, 7)
        monthly = autocorrelation(values, 30)
        return Seasonality(
            has_seasonality=weekly > self.SEASONALITY_THRESHOLD or monthly > self.SEASONALITY_THRESHOLD,
            weekly_pattern=weekly,
            monthly_pattern=monthly,
        )

    def trend_direction(self, values: Sequence[float]) -> str:
        slope = linear_slope(values)
        if slope > self.TREND_THRESHOLD:
            return "upward"
        if slope < -self.TREND_THRESHOLD:
            return "downward"
        return "stable"
