"""
Test KPI Aggregation

Unit tests for sales KPIs over revenue-valid rows.
"""

import math

import pytest

from analysis.columns import ColumnResolver
from analysis.kpis import KPIAggregator, ProductQuantity, ProductSales
from config import AnalysisSettings, Settings


@pytest.fixture
def aggregator(settings):
    return KPIAggregator(settings)


@pytest.fixture
def aggregate(aggregator, ingestor, settings):
    """Ingest rows and aggregate them in one step."""
    def _aggregate(rows, kpi_aggregator=None):
        dataset = ingestor.ingest(rows, "kpis")
        roles = ColumnResolver(settings).resolve_all(dataset)
        return (kpi_aggregator or aggregator).aggregate(dataset, roles)
    return _aggregate


class TestCoreKPIs:
    def test_sales_dataset(self, aggregate, sales_rows):
        kpis = aggregate(sales_rows)

        assert kpis.total_sales == 300.0
        assert kpis.total_orders == 5
        assert kpis.unique_customers == 3
        assert kpis.average_order_value == 60.0
        assert kpis.repeat_customer_rate_pct == 66.67
        assert kpis.sales_growth_pct == 0.0

    def test_top_products(self, aggregate, sales_rows):
        kpis = aggregate(sales_rows)

        assert kpis.top_products_by_sales == (
            ProductSales("Widget", 150.0),
            ProductSales("Gadget", 125.0),
            ProductSales("Gizmo", 25.0),
        )
        # missing quantity counts as one unit
        assert kpis.top_products_by_qty == (
            ProductQuantity("Gadget", 4.0),
            ProductQuantity("Widget", 3.0),
            ProductQuantity("Gizmo", 1.0),
        )

    def test_rounding_after_summation(self, aggregate):
        kpis = aggregate([{"revenue": "10.005"}, {"revenue": "10.005"}])
        assert kpis.total_sales == 20.01

    def test_top_n_ties_keep_first_occurrence(self, aggregate):
        rows = [
            {"product": "A", "sales": 100},
            {"product": "B", "sales": 100},
            {"product": "C", "sales": 50},
        ]
        kpis = aggregate(rows)
        assert [p.product for p in kpis.top_products_by_sales] == ["A", "B", "C"]

    def test_top_n_limit(self, aggregate):
        settings = Settings(analysis=AnalysisSettings(top_n_products=2))
        rows = [{"product": p, "sales": s} for p, s in [("A", 1), ("B", 3), ("C", 2)]]
        kpis = aggregate(rows, KPIAggregator(settings))
        assert [p.product for p in kpis.top_products_by_sales] == ["B", "C"]

    def test_missing_product_is_unknown(self, aggregate):
        kpis = aggregate([{"product": "", "sales": 5}, {"product": None, "sales": 5}])
        assert kpis.top_products_by_sales == (ProductSales("Unknown Product", 10.0),)

    def test_zero_revenue_counts_as_order(self, aggregate):
        kpis = aggregate([{"sales": 0}, {"sales": "10"}])
        assert kpis.total_orders == 2
        assert kpis.average_order_value == 5.0

    def test_sales_growth(self, aggregate):
        kpis = aggregate([{"sales": v} for v in [100, 100, 150, 150]])
        assert kpis.sales_growth_pct == 50.0

    def test_growth_with_empty_first_half(self, aggregate):
        kpis = aggregate([{"sales": 0}, {"sales": 100}])
        assert kpis.sales_growth_pct == 0.0


class TestNoDivisionByZero:
    def test_no_valid_rows(self, aggregate):
        kpis = aggregate([{"sales": "n/a", "customer_id": "c1"}, {"sales": "", "customer_id": "c2"}])

        assert kpis.total_orders == 0
        assert kpis.total_sales == 0.0
        assert kpis.average_order_value == 0
        assert kpis.repeat_customer_rate_pct == 0
        assert kpis.sales_growth_pct == 0
        assert kpis.top_products_by_sales == ()
        for value in kpis.to_dict().values():
            if isinstance(value, float):
                assert math.isfinite(value)


class TestSupplementedKPIs:
    def test_customer_metrics(self, aggregate, sales_rows):
        kpis = aggregate(sales_rows)

        assert kpis.product_diversity == 3
        assert kpis.customer_lifetime_value == 100.0
        assert kpis.customer_acquisition_cost == 12.0
        assert kpis.avg_orders_per_customer == 1.67

    def test_momentum(self, aggregate):
        rows = [
            {"order_date": f"2024-01-{i + 1:02d}", "sales": 10 * (1 + i // 10)}
            for i in range(30)
        ]
        kpis = aggregate(rows)
        # block sums 100 -> 200 -> 300: changes 1.0 and 0.5
        assert kpis.momentum_score == 0.75

    def test_momentum_needs_two_periods(self, aggregate, sales_rows):
        assert aggregate(sales_rows).momentum_score == 0.0

    def test_momentum_ignores_partial_blocks(self, aggregate):
        rows = [{"order_date": f"2024-01-{i + 1:02d}", "sales": 100} for i in range(15)]
        assert aggregate(rows).momentum_score == 0.0

    def test_momentum_two_full_blocks(self, aggregate):
        # 25 rows: blocks of 10 and 10 compared, the trailing 5 ignored
        values = [10] * 10 + [15] * 10 + [1] * 5
        rows = [{"order_date": f"2024-01-{i + 1:02d}", "sales": v} for i, v in enumerate(values)]
        assert aggregate(rows).momentum_score == 0.5


class TestIdempotence:
    def test_same_input_same_result(self, aggregator, sales_dataset, settings):
        roles = ColumnResolver(settings).resolve_all(sales_dataset)
        assert aggregator.aggregate(sales_dataset, roles) == aggregator.aggregate(sales_dataset, roles)

    def test_to_dict_shape(self, aggregate, sales_rows):
        data = aggregate(sales_rows).to_dict()
        assert data["top_products_by_sales"][0] == {"product": "Widget", "sales": 150.0}
        assert data["top_products_by_qty"][0] == {"product": "Gadget", "qty": 4.0}
