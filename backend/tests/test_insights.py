"""
Test Insight Generation

Unit tests for template insights and suggestions.
"""

import pytest

from analysis.anomalies import Anomaly
from analysis.kpis import KPIResult, ProductSales
from analysis.timeseries import Bucket
from config import AnalysisSettings, Settings
from insights.generator import InsightGenerator


def make_kpis(**overrides):
    values = dict(
        total_sales=1000.0,
        total_orders=10,
        unique_customers=5,
        average_order_value=60.0,
        repeat_customer_rate_pct=20.0,
        sales_growth_pct=0.0,
        top_products_by_sales=(),
        top_products_by_qty=(),
    )
    values.update(overrides)
    return KPIResult(**values)


MONTHS_UP = [Bucket("2024-01", 100.0), Bucket("2024-02", 120.0), Bucket("2024-03", 150.0)]
ANOMALY = Anomaly(context="Date: 2024-01-10", metric="Daily Sales", value=110.0, why="spike")


@pytest.fixture
def generator(settings):
    return InsightGenerator(settings)


class TestInsights:
    def test_all_rules_fire_in_order(self, generator):
        kpis = make_kpis(
            sales_growth_pct=12.34,
            repeat_customer_rate_pct=35.0,
            average_order_value=150.0,
            top_products_by_sales=(ProductSales("Widget", 500.0),),
        )
        assert generator.insights(kpis, MONTHS_UP) == [
            "Strong sales growth of 12.3% indicates healthy business expansion",
            "High repeat customer rate of 35.0% shows strong customer loyalty",
            "High average order value of $150.00 indicates premium customer base",
            '"Widget" is your star performer with $500.00 in sales',
            "Recent 3-month trend shows increasing sales pattern",
        ]

    def test_decline_and_low_values(self, generator):
        kpis = make_kpis(sales_growth_pct=-20.0, repeat_customer_rate_pct=10.0, average_order_value=20.0)
        assert generator.insights(kpis, []) == [
            "Sales decline of 20.0% requires immediate attention",
            "Low repeat customer rate of 10.0% suggests need for retention strategies",
            "Low average order value of $20.00 presents upselling opportunities",
        ]

    def test_stable_growth_always_reported(self, generator):
        insights = generator.insights(make_kpis(sales_growth_pct=5.0), [])
        assert insights == ["Sales growth is stable at 5.0%, showing consistent performance"]

    def test_decreasing_months(self, generator):
        months = list(reversed(MONTHS_UP))
        assert generator.insights(make_kpis(), months)[-1] == "Recent 3-month trend shows decreasing sales pattern"

    def test_no_bullet_prefix(self, generator):
        assert not any(i.startswith("•") for i in generator.insights(make_kpis(), MONTHS_UP))

    def test_cap(self):
        generator = InsightGenerator(Settings(analysis=AnalysisSettings(max_insights=2)))
        kpis = make_kpis(sales_growth_pct=50.0, repeat_customer_rate_pct=50.0, average_order_value=500.0)
        assert len(generator.insights(kpis, MONTHS_UP)) == 2


class TestSuggestions:
    def test_first_three_rules(self, generator):
        kpis = make_kpis(
            sales_growth_pct=1.0,
            repeat_customer_rate_pct=10.0,
            average_order_value=20.0,
            top_products_by_sales=(ProductSales("Widget", 500.0),),
        )
        assert generator.suggestions(kpis, [ANOMALY]) == [
            "Focus on marketing campaigns to boost sales - current growth of 1.0% is below optimal",
            "Implement loyalty programs to improve repeat customer rate from 10.0%",
            "Consider bundling products or offering free shipping thresholds to increase AOV from $20.00",
        ]

    def test_product_and_anomalies(self, generator):
        kpis = make_kpis(
            sales_growth_pct=20.0,
            repeat_customer_rate_pct=40.0,
            average_order_value=80.0,
            top_products_by_sales=(ProductSales("Widget", 500.0),),
        )
        assert generator.suggestions(kpis, [ANOMALY, ANOMALY]) == [
            'Expand inventory and marketing for "Widget" - your top performer',
            "Investigate 2 unusual sales patterns to understand market dynamics",
        ]

    def test_nothing_fires(self, generator):
        kpis = make_kpis(sales_growth_pct=20.0, repeat_customer_rate_pct=40.0, average_order_value=80.0)
        assert generator.suggestions(kpis, []) == []

    def test_configurable_cap(self):
        generator = InsightGenerator(Settings(analysis=AnalysisSettings(max_suggestions=4)))
        kpis = make_kpis(
            sales_growth_pct=1.0,
            repeat_customer_rate_pct=10.0,
            average_order_value=20.0,
            top_products_by_sales=(ProductSales("Widget", 500.0),),
        )
        assert len(generator.suggestions(kpis, [ANOMALY])) == 4


class TestGenerate:
    def test_returns_both_lists(self, generator):
        kpis = make_kpis(sales_growth_pct=20.0, repeat_customer_rate_pct=40.0, average_order_value=80.0)
        insights, suggestions = generator.generate(kpis, [], MONTHS_UP)
        assert len(insights) == 3
        assert suggestions == []
