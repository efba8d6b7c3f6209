"""
Insight and Suggestion Generator

Template sentences keyed off KPI thresholds, the monthly series and
the anomaly count. Rules are checked in a fixed order and the output
is truncated to the configured caps.
"""

from typing import Optional, Sequence

from analysis.anomalies import Anomaly
from analysis.kpis import KPIResult
from analysis.timeseries import Bucket
from config import Settings, get_settings
from core.logging_config import insights_logger as logger
from core.values import round_half_up


def _pct(value: float) -> str:
    return f"{round_half_up(value, 1):.1f}"


def _money(value: float) -> str:
    return f"${round_half_up(value, 2):.2f}"


class InsightGenerator:
    """Builds the insight and suggestion lists of an analysis."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def generate(
        self,
        kpis: KPIResult,
        anomalies: Sequence[Anomaly],
        monthly: Sequence[Bucket],
    ) -> tuple[list[str], list[str]]:
        insights = self.insights(kpis, monthly)
        suggestions = self.suggestions(kpis, anomalies)
        logger.debug(f"Generated {len(insights)} insights, {len(suggestions)} suggestions")
        return insights, suggestions

    def insights(self, kpis: KPIResult, monthly: Sequence[Bucket]) -> list[str]:
        insights = []

        growth = kpis.sales_growth_pct
        if growth > 10:
            insights.append(
                f"Strong sales growth of {_pct(growth)}% indicates healthy business expansion"
            )
        elif growth < -10:
            insights.append(
                f"Sales decline of {_pct(abs(growth))}% requires immediate attention"
            )
        else:
            insights.append(
                f"Sales growth is stable at {_pct(growth)}%, showing consistent performance"
            )

        repeat_rate = kpis.repeat_customer_rate_pct
        if repeat_rate > 30:
            insights.append(
                f"High repeat customer rate of {_pct(repeat_rate)}% shows strong customer loyalty"
            )
        elif repeat_rate < 15:
            insights.append(
                f"Low repeat customer rate of {_pct(repeat_rate)}% suggests need for retention strategies"
            )

        aov = kpis.average_order_value
        if aov > 100:
            insights.append(
                f"High average order value of {_money(aov)} indicates premium customer base"
            )
        elif aov < 25:
            insights.append(
                f"Low average order value of {_money(aov)} presents upselling opportunities"
            )

        if kpis.top_products_by_sales:
            top = kpis.top_products_by_sales[0]
            insights.append(
                f'"{top.product}" is your star performer with {_money(top.sales)} in sales'
            )

        if len(monthly) >= 3:
            recent = monthly[-3:]
            direction = "increasing" if recent[2].value > recent[0].value else "decreasing"
            insights.append(f"Recent 3-month trend shows {direction} sales pattern")

        return insights[:self.settings.analysis.max_insights]

    def suggestions(self, kpis: KPIResult, anomalies: Sequence[Anomaly]) -> list[str]:
        suggestions = []

        if kpis.sales_growth_pct < 5:
            suggestions.append(
                f"Focus on marketing campaigns to boost sales - current growth of "
                f"{_pct(kpis.sales_growth_pct)}% is below optimal"
            )

        if kpis.repeat_customer_rate_pct < 25:
            suggestions.append(
                f"Implement loyalty programs to improve repeat customer rate from "
                f"{_pct(kpis.repeat_customer_rate_pct)}%"
            )

        if kpis.average_order_value < 50:
            suggestions.append(
                f"Consider bundling products or offering free shipping thresholds to "
                f"increase AOV from {_money(kpis.average_order_value)}"
            )

        if kpis.top_products_by_sales:
            top = kpis.top_products_by_sales[0]
            suggestions.append(
                f'Expand inventory and marketing for "{top.product}" - your top performer'
            )

        if anomalies:
            suggestions.append(
                f"Investigate {len(anomalies)} unusual sales patterns to understand market dynamics"
            )

        return suggestions[:self.settings.analysis.max_suggestions]
