"""
Shared test fixtures

Settings, a deterministic ingestor and small sales datasets.
"""

from datetime import datetime, timedelta, timezone
from itertools import count

import pytest

from analysis.timeseries import Bucket
from config import Settings
from core.ingestion import DatasetIngestor


class FakeClock:
    """Clock returning a fixed instant that tests can advance."""

    def __init__(self, start: datetime = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def daily_buckets(values, start="2024-01-01"):
    """Consecutive daily buckets holding ``values``."""
    first = datetime.strptime(start, "%Y-%m-%d")
    return [
        Bucket(period=(first + timedelta(days=i)).strftime("%Y-%m-%d"), value=float(v))
        for i, v in enumerate(values)
    ]


def daily_rows(values, start="2024-01-01", **extra):
    """One order row per day with the given amounts."""
    first = datetime.strptime(start, "%Y-%m-%d")
    return [
        {
            "order_date": (first + timedelta(days=i)).strftime("%Y-%m-%d"),
            "order_amount": v,
            **extra,
        }
        for i, v in enumerate(values)
    ]


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ingestor(settings, clock):
    ids = count(1)
    return DatasetIngestor(settings, clock=clock, id_factory=lambda: f"ds{next(ids):014d}")


@pytest.fixture
def sales_rows():
    """Six orders from three customers over four days."""
    return [
        {"order_id": "1", "customer_id": "c1", "product_name": "Widget", "quantity": "2",
         "order_amount": "100.00", "order_date": "2024-01-01"},
        {"order_id": "2", "customer_id": "c2", "product_name": "Gadget", "quantity": "1",
         "order_amount": "50.00", "order_date": "2024-01-01"},
        {"order_id": "3", "customer_id": "c1", "product_name": "Widget", "quantity": "1",
         "order_amount": "50.00", "order_date": "2024-01-02"},
        {"order_id": "4", "customer_id": "c3", "product_name": "Gizmo", "quantity": "",
         "order_amount": "25.00", "order_date": "2024-01-03"},
        {"order_id": "5", "customer_id": "c2", "product_name": "Gadget", "quantity": "3",
         "order_amount": "75.00", "order_date": "2024-01-04"},
        {"order_id": "6", "customer_id": "", "product_name": "", "quantity": "1",
         "order_amount": "not a number", "order_date": "2024-01-04"},
    ]


@pytest.fixture
def sales_dataset(ingestor, sales_rows):
    return ingestor.ingest(sales_rows, "orders")
