"""
Analysis Orchestrator

Runs the full pipeline over a dataset:
1. Resolve role columns
2. Aggregate KPIs
3. Bucket the revenue time series
4. Detect anomalies over the daily buckets
5. Generate insights and suggestions

Forecasting runs separately, on request, over the same daily buckets.
The orchestrator keeps no state between calls.
"""

from dataclasses import dataclass, field
from typing import Any, Literal, Optional

from analysis.anomalies import Anomaly, AnomalyDetector
from analysis.columns import DATE, REVENUE, ColumnResolver, RoleMap
from analysis.forecasting import Forecast, Forecaster
from analysis.kpis import KPIAggregator, KPIResult
from analysis.timeseries import Period, TimeSeries, TimeSeriesAnalyzer, TimeSeriesBucketer
from config import Settings, get_settings
from core.dataset import Dataset
from core.errors import MalformedInputError
from core.logging_config import analysis_logger as logger
from insights.generator import InsightGenerator


ForecastMode = Literal["ensemble", "short"]


@dataclass(frozen=True)
class AnalysisResult:
    """
    Everything a dashboard needs from one analysis call.

    Results are cached and shared between callers, so every field is
    immutable.
    """

    kpis: KPIResult
    timeseries: TimeSeries
    anomalies: tuple[Anomaly, ...] = ()
    insights: tuple[str, ...] = ()
    suggestions: tuple[str, ...] = ()
    resolution: RoleMap = field(default_factory=RoleMap)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kpis": self.kpis.to_dict(),
            "timeseries": self.timeseries.to_dict(),
            "anomalies": [a.to_dict() for a in self.anomalies],
            "insights": list(self.insights),
            "suggestions": list(self.suggestions),
            "resolution": self.resolution.to_dict(),
        }


class AnalysisOrchestrator:
    """
    Sequences the pipeline components.

    Every collaborator can be injected; defaults are built from settings.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        resolver: Optional[ColumnResolver] = None,
        aggregator: Optional[KPIAggregator] = None,
        bucketer: Optional[TimeSeriesBucketer] = None,
        detector: Optional[AnomalyDetector] = None,
        generator: Optional[InsightGenerator] = None,
        forecaster: Optional[Forecaster] = None,
    ):
        self.settings = settings or get_settings()
        self.resolver = resolver or ColumnResolver(self.settings)
        self.aggregator = aggregator or KPIAggregator(self.settings)
        self.bucketer = bucketer or TimeSeriesBucketer(self.settings)
        self.timeseries = TimeSeriesAnalyzer(self.settings, self.bucketer)
        self.detector = detector or AnomalyDetector(self.settings)
        self.generator = generator or InsightGenerator(self.settings)
        self.forecaster = forecaster or Forecaster(self.settings)

    def analyze(self, dataset: Dataset) -> AnalysisResult:
        """
        Run the analysis pipeline.

        Raises:
            MalformedInputError: the dataset has no rows or no columns.
        """
        self._check(dataset)
        logger.info(f"Analyzing dataset {dataset.id} ({dataset.row_count} rows)")

        roles = self.resolver.resolve_all(dataset)
        if roles.fallback_roles:
            logger.warning(f"Fallback columns used for roles: {', '.join(roles.fallback_roles)}")

        kpis = self.aggregator.aggregate(dataset, roles)
        series = self.timeseries.analyze(dataset, roles)
        anomalies = self.detector.detect(series.daily)
        insights, suggestions = self.generator.generate(kpis, anomalies, series.monthly)

        logger.success(
            f"Analysis of {dataset.id} complete: {len(series.daily)} days, "
            f"{len(anomalies)} anomalies, {len(insights)} insights"
        )
        return AnalysisResult(
            kpis=kpis,
            timeseries=series,
            anomalies=tuple(anomalies),
            insights=tuple(insights),
            suggestions=tuple(suggestions),
            resolution=roles,
        )

    def forecast(
        self,
        dataset: Dataset,
        horizon: Optional[int] = None,
        mode: ForecastMode = "ensemble",
    ) -> Forecast:
        """
        Forecast daily revenue.

        Raises:
            MalformedInputError: empty dataset.
            InsufficientDataError: too few daily buckets for ``mode``.
            ValueError: unknown mode or horizon below 1.
        """
        self._check(dataset)
        roles = self.resolver.resolve_all(dataset, (REVENUE, DATE))
        daily = self.bucketer.bucket(dataset, roles.column(REVENUE), roles.column(DATE), Period.DAY)

        if mode == "ensemble":
            return self.forecaster.forecast(daily, horizon, Period.DAY)
        if mode == "short":
            return self.forecaster.forecast_short(daily, horizon, Period.DAY)
        raise ValueError(f"Unknown forecast mode: {mode}")

    @staticmethod
    def _check(dataset: Dataset) -> None:
        if not dataset.columns or not dataset.rows:
            raise MalformedInputError(f"Dataset {dataset.id} has no rows to analyze")
