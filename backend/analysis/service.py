"""
Analytics Service

Caller-side facade over the orchestrator and advisor. Results are cached
per dataset version (id + updated_at), so a new version of a dataset is
always recomputed and the pipeline itself never caches.
"""

from typing import Any, Callable, Optional

from analysis.forecasting import Forecast
from analysis.orchestrator import AnalysisOrchestrator, AnalysisResult, ForecastMode
from config import Settings, get_settings
from core.cache import TTLCache
from core.dataset import Dataset
from core.logging_config import analysis_logger as logger
from insights.advisor import Alert, BusinessAdvisor, ExecutiveSummary, Recommendation


class AnalyticsService:
    """Cached analysis, forecast and advisory results for datasets."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        cache: Optional[TTLCache] = None,
        orchestrator: Optional[AnalysisOrchestrator] = None,
        advisor: Optional[BusinessAdvisor] = None,
    ):
        self.settings = settings or get_settings()
        self.cache = cache or TTLCache(
            maxsize=self.settings.cache.max_size,
            ttl_seconds=self.settings.cache.analysis_ttl_seconds,
        )
        self.orchestrator = orchestrator or AnalysisOrchestrator(self.settings)
        self.advisor = advisor or BusinessAdvisor(self.settings)

    def analyze(self, dataset: Dataset) -> AnalysisResult:
        return self._cached(
            ("analysis", dataset.cache_key),
            lambda: self.orchestrator.analyze(dataset),
            self.settings.cache.analysis_ttl_seconds,
        )

    def forecast(
        self,
        dataset: Dataset,
        horizon: Optional[int] = None,
        mode: ForecastMode = "ensemble",
    ) -> Forecast:
        return self._cached(
            ("forecast", dataset.cache_key, mode, horizon),
            lambda: self.orchestrator.forecast(dataset, horizon, mode),
            self.settings.cache.forecast_ttl_seconds,
        )

    def recommendations(self, dataset: Dataset) -> list[Recommendation]:
        return self.advisor.recommendations(self.analyze(dataset))

    def alerts(self, dataset: Dataset) -> list[Alert]:
        return self.advisor.alerts(self.analyze(dataset), dataset.id)

    def summary(self, dataset: Dataset) -> ExecutiveSummary:
        return self.advisor.executive_summary(self.analyze(dataset), dataset.id)

    def invalidate(self) -> int:
        """Drop every cached result."""
        count = self.cache.clear()
        logger.info(f"Cleared {count} cached results")
        return count

    def _cached(self, parts: tuple, compute: Callable[[], Any], ttl_seconds: int) -> Any:
        if not self.settings.cache.enabled:
            return compute()
        key = TTLCache.make_key(*parts)
        return self.cache.get_or_compute(key, compute, ttl_seconds)
