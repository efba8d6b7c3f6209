"""
Test Column Resolution

Unit tests for mapping semantic roles to dataset columns.
"""

from datetime import datetime, timezone

import pytest

from analysis.columns import CUSTOMER, DATE, PRODUCT, QUANTITY, REVENUE, ColumnResolver, find_column
from config import AnalysisSettings, Settings
from core.dataset import Dataset, DatasetSource
from core.errors import MalformedInputError


@pytest.fixture
def resolver(settings):
    return ColumnResolver(settings)


def _dataset(ingestor, *columns):
    return ingestor.ingest([{name: "" for name in columns}], "columns")


class TestFindColumn:
    def test_priority_order_beats_column_order(self):
        column, candidate = find_column(["Total", "Sales Amount"], ["sales", "amount", "total"])
        assert column == "Sales Amount"
        assert candidate == "sales"

    def test_case_insensitive_substring(self):
        column, _ = find_column(["Order_Date"], ["date"])
        assert column == "Order_Date"

    def test_first_matching_column_wins(self):
        column, _ = find_column(["ship_date", "order_date"], ["date"])
        assert column == "ship_date"

    def test_no_match(self):
        assert find_column(["foo"], ["bar"]) == (None, None)


class TestColumnResolver:
    def test_resolve_all_roles(self, resolver, sales_dataset):
        roles = resolver.resolve_all(sales_dataset)

        assert roles.column(REVENUE) == "order_amount"
        assert roles.column(CUSTOMER) == "customer_id"
        assert roles.column(PRODUCT) == "product_name"
        assert roles.column(QUANTITY) == "quantity"
        assert roles.column(DATE) == "order_date"
        assert roles.fallback_roles == []

    def test_shared_candidate_across_roles(self, resolver, ingestor):
        dataset = _dataset(ingestor, "amount", "day")
        assert resolver.resolve(dataset, REVENUE).column == "amount"
        assert resolver.resolve(dataset, QUANTITY).column == "amount"

    def test_fallback_to_first_column(self, resolver, ingestor):
        dataset = _dataset(ingestor, "foo", "bar")
        resolved = resolver.resolve(dataset, REVENUE)

        assert resolved.column == "foo"
        assert resolved.matched is False
        assert resolved.candidate is None

    def test_fallback_roles_listed(self, resolver, ingestor):
        dataset = _dataset(ingestor, "sales", "when")
        roles = resolver.resolve_all(dataset)
        assert roles.fallback_roles == [CUSTOMER, PRODUCT, QUANTITY, DATE]
        assert roles.to_dict()[REVENUE] == {"column": "sales", "matched": True, "candidate": "sales"}

    def test_unknown_role(self, resolver, sales_dataset):
        with pytest.raises(KeyError):
            resolver.resolve(sales_dataset, "margin")

    def test_dataset_without_columns(self, resolver):
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        dataset = Dataset("x", "empty", DatasetSource.UPLOAD, (), (), now, now)
        with pytest.raises(MalformedInputError):
            resolver.resolve(dataset, REVENUE)

    def test_custom_priorities(self, ingestor):
        settings = Settings(analysis=AnalysisSettings(role_priorities={REVENUE: ["gross"]}))
        dataset = _dataset(ingestor, "sales", "gross_value")
        assert ColumnResolver(settings).resolve(dataset, REVENUE).column == "gross_value"
