"""
Test Caching

Unit tests for the TTL result cache, the dataset store and the
version-keyed analytics service cache.
"""

import pytest

from analysis.service import AnalyticsService
from config import CacheSettings, Settings
from conftest import daily_rows
from core.cache import DatasetStore, TTLCache
from core.dataset import DatasetSource


class Ticker:
    """Monotonic clock the tests move by hand."""

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def ticker():
    return Ticker()


class TestTTLCache:
    def test_set_and_get(self, ticker):
        cache = TTLCache(ttl_seconds=10, clock=ticker)
        cache.set("a", 1)

        assert cache.get("a") == 1
        assert "a" in cache
        assert len(cache) == 1

    def test_expiry(self, ticker):
        cache = TTLCache(ttl_seconds=10, clock=ticker)
        cache.set("a", 1)
        cache.set("b", 2, ttl_seconds=100)

        ticker.now = 10
        assert cache.get("a") is None
        assert cache.get("b") == 2

    def test_least_recently_used_evicted(self, ticker):
        cache = TTLCache(maxsize=2, clock=ticker)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)

        assert "b" not in cache
        assert cache.get("a") == 1
        assert cache.get("c") == 3

    def test_get_or_compute_runs_once(self, ticker):
        cache = TTLCache(clock=ticker)
        calls = []

        def compute():
            calls.append(1)
            return "value"

        assert cache.get_or_compute("k", compute) == "value"
        assert cache.get_or_compute("k", compute) == "value"
        assert len(calls) == 1

    def test_delete_and_clear(self, ticker):
        cache = TTLCache(clock=ticker)
        cache.set("a", 1)
        cache.set("b", 2)

        assert cache.delete("a") is True
        assert cache.delete("a") is False
        assert cache.clear() == 1
        assert len(cache) == 0

    def test_make_key(self):
        assert TTLCache.make_key("analysis", "ds1") == TTLCache.make_key("analysis", "ds1")
        assert TTLCache.make_key("analysis", "ds1") != TTLCache.make_key("analysis", "ds2")


class TestDatasetStore:
    def test_roundtrip(self, ticker, sales_dataset):
        store = DatasetStore(clock=ticker)
        store.set(sales_dataset)

        assert store.get(sales_dataset.id) is sales_dataset
        assert store.delete(sales_dataset.id) is True
        assert store.get(sales_dataset.id) is None

    def test_expiry(self, ticker, sales_dataset):
        store = DatasetStore(ttl_seconds=60, clock=ticker)
        store.set(sales_dataset)

        ticker.now = 61
        assert store.get(sales_dataset.id) is None
        assert store.scan() == []

    def test_replace_keeps_latest_version(self, ticker, clock, ingestor, sales_dataset):
        store = DatasetStore(clock=ticker)
        store.set(sales_dataset)
        clock.advance(minutes=1)
        updated = ingestor.update_rows(sales_dataset, [{"sales": 1}])
        store.set(updated)

        assert store.get(sales_dataset.id) is updated
        assert len(store.scan()) == 1

    def test_scan_by_field(self, ticker, ingestor):
        store = DatasetStore(clock=ticker)
        uploaded = ingestor.ingest([{"sales": 1}], "orders")
        external = ingestor.ingest([{"sales": 2}], "sheet", DatasetSource.EXTERNAL)
        store.set(uploaded)
        store.set(external)

        assert store.scan("source", "external") == [external]
        assert store.scan("name", "orders") == [uploaded]
        assert len(store.scan()) == 2

    def test_scan_rejects_unindexed_field(self, ticker):
        with pytest.raises(ValueError):
            DatasetStore(clock=ticker).scan("row_count", 1)


class TestServiceCache:
    def test_same_version_served_from_cache(self, settings, sales_dataset):
        service = AnalyticsService(settings)
        assert service.analyze(sales_dataset) is service.analyze(sales_dataset)

    def test_new_version_recomputed(self, settings, clock, ingestor, sales_dataset, sales_rows):
        service = AnalyticsService(settings)
        first = service.analyze(sales_dataset)

        clock.advance(seconds=1)
        updated = ingestor.update_rows(sales_dataset, sales_rows[:3])
        second = service.analyze(updated)

        assert second is not first
        assert second.kpis.total_sales == 200.0

    def test_cached_result_cannot_be_altered_by_callers(self, settings, sales_dataset):
        service = AnalyticsService(settings)
        first = service.analyze(sales_dataset)

        with pytest.raises(AttributeError):
            first.insights.append("injected")

        assert "injected" not in service.analyze(sales_dataset).insights

    def test_disabled_cache(self, sales_dataset):
        service = AnalyticsService(Settings(cache=CacheSettings(enabled=False)))
        assert service.analyze(sales_dataset) is not service.analyze(sales_dataset)
        assert len(service.cache) == 0

    def test_forecast_keyed_by_mode(self, settings, ingestor):
        service = AnalyticsService(settings)
        dataset = ingestor.ingest(daily_rows([100] * 7 + [200] * 7), "step")

        ensemble = service.forecast(dataset)
        short = service.forecast(dataset, mode="short")

        assert ensemble.model == "ensemble"
        assert short.model == "linear"
        assert service.forecast(dataset) is ensemble

    def test_invalidate(self, settings, sales_dataset):
        service = AnalyticsService(settings)
        service.analyze(sales_dataset)
        assert service.invalidate() == 1
