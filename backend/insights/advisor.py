"""
Business Advisor

Rule-based recommendations, smart alerts, a weighted health score and
an executive summary over a finished AnalysisResult.

Outputs are deterministic: ids are derived from the rule that fired,
never from timestamps.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Optional, Union

from analysis.orchestrator import AnalysisResult
from config import Settings, get_settings
from core.logging_config import insights_logger as logger
from core.values import round_half_up


IMPACT_SCORES = {"high": 3, "medium": 2, "low": 1}

MAX_RECOMMENDATIONS = 10
MAX_ALERTS = 15
MAX_ANOMALY_ALERTS = 3


@dataclass(frozen=True)
class Recommendation:
    id: str
    type: str  # optimization, opportunity, alert
    title: str
    description: str
    impact: str  # high, medium, low
    category: str
    priority: int
    estimated_impact: str
    timeframe: str
    resources: tuple[str, ...] = ()
    actionable: bool = True

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["resources"] = list(self.resources)
        return data


@dataclass(frozen=True)
class Alert:
    id: str
    type: str  # critical, warning, info, success
    title: str
    message: str
    dataset_id: str
    category: str
    metric: str
    current_value: Union[float, str, None]
    severity: Optional[str]
    action_required: bool
    threshold: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ExecutiveSummary:
    overview: dict[str, Any]
    key_insights: list[str]
    top_recommendations: list[Recommendation]
    critical_alerts: list[Alert]
    performance_metrics: dict[str, Any]
    market_position: dict[str, Any]
    risk_assessment: list[dict[str, str]] = field(default_factory=list)
    growth_opportunities: list[dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "overview": self.overview,
            "key_insights": list(self.key_insights),
            "top_recommendations": [r.to_dict() for r in self.top_recommendations],
            "critical_alerts": [a.to_dict() for a in self.critical_alerts],
            "performance_metrics": self.performance_metrics,
            "market_position": self.market_position,
            "risk_assessment": self.risk_assessment,
            "growth_opportunities": self.growth_opportunities,
        }


def _pct(value: float) -> str:
    return f"{round_half_up(value, 1):.1f}"


def _money(value: float) -> str:
    return f"${round_half_up(value, 2):,.2f}"


class BusinessAdvisor:
    """Turns an analysis into prioritized actions and alerts."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Recommendations
    # ------------------------------------------------------------------

    def recommendations(self, result: AnalysisResult) -> list[Recommendation]:
        """All firing rules, high impact first (stable), at most 10."""
        found = (
            self._growth_recommendations(result)
            + self._customer_recommendations(result)
            + self._operational_recommendations(result)
            + self._market_recommendations(result)
            + self._risk_recommendations(result)
        )
        ranked = sorted(found, key=lambda r: -IMPACT_SCORES.get(r.impact, 0))
        logger.debug(f"{len(found)} recommendations fired")
        return ranked[:MAX_RECOMMENDATIONS]

    def _growth_recommendations(self, result: AnalysisResult) -> list[Recommendation]:
        kpis = result.kpis
        found = []

        if kpis.sales_growth_pct < 15:
            found.append(Recommendation(
                id="growth-revenue",
                type="optimization",
                title="Accelerate Revenue Growth",
                description=(
                    f"Current growth rate of {_pct(kpis.sales_growth_pct)}% is below industry "
                    "benchmarks. Implement targeted marketing campaigns, expand product lines, "
                    "and optimize pricing strategies to achieve 20-30% growth."
                ),
                impact="high",
                category="growth",
                priority=1,
                estimated_impact="$50,000 - $200,000 additional revenue",
                timeframe="3-6 months",
                resources=("Marketing team", "Product development", "Sales analytics"),
            ))

        if kpis.unique_customers < 1000:
            found.append(Recommendation(
                id="growth-expansion",
                type="opportunity",
                title="Scale Customer Acquisition",
                description=(
                    f"With {kpis.unique_customers} customers, there's significant room for "
                    "growth. Implement multi-channel acquisition strategies including SEO, "
                    "paid advertising, and referral programs."
                ),
                impact="high",
                category="growth",
                priority=2,
                estimated_impact="200-500% customer base increase",
                timeframe="6-12 months",
                resources=("Digital marketing", "Content creation", "Analytics tools"),
            ))

        return found

    def _customer_recommendations(self, result: AnalysisResult) -> list[Recommendation]:
        kpis = result.kpis
        found = []

        if kpis.repeat_customer_rate_pct < 30:
            found.append(Recommendation(
                id="customer-retention",
                type="optimization",
                title="Implement Customer Retention Program",
                description=(
                    f"{_pct(kpis.repeat_customer_rate_pct)}% repeat rate is below optimal. "
                    "Deploy email marketing automation, loyalty rewards, and personalized "
                    "product recommendations to increase retention by 40-60%."
                ),
                impact="high",
                category="customer",
                priority=1,
                estimated_impact="15-25% revenue increase from existing customers",
                timeframe="2-4 months",
                resources=("CRM system", "Email marketing platform", "Customer success team"),
            ))

        if kpis.customer_lifetime_value < 200:
            found.append(Recommendation(
                id="customer-clv",
                type="optimization",
                title="Increase Customer Lifetime Value",
                description=(
                    f"Current CLV of {_money(kpis.customer_lifetime_value)} can be improved "
                    "through upselling, cross-selling, and subscription models. "
                    "Target 50% CLV increase."
                ),
                impact="medium",
                category="customer",
                priority=2,
                estimated_impact="$75-150 additional revenue per customer",
                timeframe="4-8 months",
                resources=("Product bundling", "Recommendation engine", "Customer analytics"),
            ))

        return found

    def _operational_recommendations(self, result: AnalysisResult) -> list[Recommendation]:
        kpis = result.kpis
        found = []

        if kpis.average_order_value < 100:
            found.append(Recommendation(
                id="operations-aov",
                type="optimization",
                title="Optimize Average Order Value",
                description=(
                    f"Current AOV of {_money(kpis.average_order_value)} can be increased "
                    "through product bundling, volume discounts, and free shipping thresholds. "
                    "Target 25-40% AOV increase."
                ),
                impact="medium",
                category="operations",
                priority=1,
                estimated_impact="$25-40 additional revenue per order",
                timeframe="1-3 months",
                resources=("E-commerce platform", "Pricing strategy", "Product catalog"),
            ))

        if kpis.top_products_by_sales:
            top = kpis.top_products_by_sales[0]
            found.append(Recommendation(
                id="operations-inventory",
                type="optimization",
                title="Optimize Product Portfolio",
                description=(
                    f'"{top.product}" generates {_money(top.sales)} (top performer). Expand '
                    "inventory of high-performing products and consider discontinuing low "
                    "performers."
                ),
                impact="medium",
                category="operations",
                priority=2,
                estimated_impact="10-20% improvement in profit margins",
                timeframe="2-6 months",
                resources=("Inventory management", "Supplier relationships", "Demand forecasting"),
            ))

        return found

    def _market_recommendations(self, result: AnalysisResult) -> list[Recommendation]:
        kpis = result.kpis
        found = []

        if result.timeseries.seasonality.has_seasonality:
            found.append(Recommendation(
                id="market-seasonal",
                type="opportunity",
                title="Leverage Seasonal Patterns",
                description=(
                    "Seasonal patterns detected in sales data. Prepare inventory and marketing "
                    "campaigns for peak seasons to maximize revenue opportunities."
                ),
                impact="medium",
                category="market",
                priority=1,
                estimated_impact="15-30% revenue boost during peak seasons",
                timeframe="Seasonal planning",
                resources=("Demand forecasting", "Marketing calendar", "Inventory planning"),
            ))

        if kpis.average_order_value > 150:
            found.append(Recommendation(
                id="market-premium",
                type="opportunity",
                title="Strengthen Premium Positioning",
                description=(
                    f"High AOV of {_money(kpis.average_order_value)} indicates premium market "
                    "position. Enhance brand messaging and introduce luxury product lines."
                ),
                impact="medium",
                category="market",
                priority=2,
                estimated_impact="20-40% margin improvement",
                timeframe="6-12 months",
                resources=("Brand strategy", "Premium product development", "Marketing positioning"),
            ))

        return found

    def _risk_recommendations(self, result: AnalysisResult) -> list[Recommendation]:
        kpis = result.kpis
        found = []

        if kpis.top_products_by_sales and kpis.total_sales > 0:
            top = kpis.top_products_by_sales[0]
            concentration = top.sales / kpis.total_sales * 100
            if concentration > 40:
                found.append(Recommendation(
                    id="risk-concentration",
                    type="alert",
                    title="Mitigate Revenue Concentration Risk",
                    description=(
                        f'"{top.product}" represents {_pct(concentration)}% of total sales. '
                        "Diversify product portfolio to reduce dependency on single products."
                    ),
                    impact="medium",
                    category="risk",
                    priority=1,
                    estimated_impact="Reduced business risk and stable revenue",
                    timeframe="6-12 months",
                    resources=("Product development", "Market research", "Portfolio analysis"),
                ))

        if len(result.anomalies) > 3:
            found.append(Recommendation(
                id="risk-anomalies",
                type="alert",
                title="Investigate Market Volatility",
                description=(
                    f"{len(result.anomalies)} unusual patterns detected in recent data. Monitor "
                    "market conditions and competitor activities to identify potential threats."
                ),
                impact="medium",
                category="risk",
                priority=2,
                estimated_impact="Early risk detection and mitigation",
                timeframe="Immediate",
                resources=("Market intelligence", "Competitive analysis", "Risk assessment"),
            ))

        return found

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    def alerts(self, result: AnalysisResult, dataset_id: str) -> list[Alert]:
        """Performance, trend, anomaly and opportunity alerts, at most 15."""
        kpis = result.kpis
        alerts = []

        if kpis.sales_growth_pct < -15:
            alerts.append(Alert(
                id="perf-critical",
                type="critical",
                title="Critical Revenue Decline",
                message=(
                    f"Revenue has dropped by {_pct(abs(kpis.sales_growth_pct))}%. "
                    "Immediate action required to prevent further losses."
                ),
                dataset_id=dataset_id,
                category="performance",
                metric="sales_growth",
                current_value=kpis.sales_growth_pct,
                severity="critical",
                action_required=True,
                threshold=-15,
            ))

        if kpis.repeat_customer_rate_pct < 15:
            alerts.append(Alert(
                id="perf-retention",
                type="warning",
                title="Low Customer Retention Rate",
                message=(
                    f"Only {_pct(kpis.repeat_customer_rate_pct)}% of customers are returning. "
                    "Implement retention strategies immediately."
                ),
                dataset_id=dataset_id,
                category="performance",
                metric="repeat_customer_rate",
                current_value=kpis.repeat_customer_rate_pct,
                severity="high",
                action_required=True,
                threshold=15,
            ))

        if kpis.momentum_score > 0.2:
            alerts.append(Alert(
                id="trend-positive",
                type="success",
                title="Strong Growth Momentum",
                message=(
                    "Business momentum is accelerating. Consider scaling marketing efforts "
                    "to capitalize on this trend."
                ),
                dataset_id=dataset_id,
                category="trend",
                metric="momentum_score",
                current_value=kpis.momentum_score,
                severity="info",
                action_required=False,
            ))

        if result.timeseries.trend == "downward" and kpis.sales_growth_pct > 0:
            alerts.append(Alert(
                id="trend-reversal",
                type="warning",
                title="Trend Reversal Detected",
                message=(
                    "Recent data shows downward trend despite positive overall growth. "
                    "Monitor closely for potential issues."
                ),
                dataset_id=dataset_id,
                category="trend",
                metric="trend_direction",
                current_value=result.timeseries.trend,
                severity="medium",
                action_required=True,
            ))

        for index, anomaly in enumerate(result.anomalies[:MAX_ANOMALY_ALERTS]):
            high = anomaly.severity == "high"
            alerts.append(Alert(
                id=f"anomaly-{index}",
                type="critical" if high else "warning",
                title="Data Anomaly Detected",
                message=f"{anomaly.context}: {anomaly.why}",
                dataset_id=dataset_id,
                category="anomaly",
                metric=anomaly.metric,
                current_value=anomaly.value,
                severity=anomaly.severity,
                action_required=high,
            ))

        if kpis.customer_lifetime_value > 300:
            alerts.append(Alert(
                id="opp-clv",
                type="info",
                title="High-Value Customer Opportunity",
                message=(
                    f"Customer lifetime value of {_money(kpis.customer_lifetime_value)} "
                    "indicates premium customer base. Consider VIP programs."
                ),
                dataset_id=dataset_id,
                category="opportunity",
                metric="customer_lifetime_value",
                current_value=kpis.customer_lifetime_value,
                severity="info",
                action_required=False,
            ))

        products = kpis.top_products_by_sales
        if len(products) > 1 and products[0].sales > products[1].sales * 2:
            alerts.append(Alert(
                id="opp-product",
                type="info",
                title="Star Product Opportunity",
                message=(
                    f'"{products[0].product}" significantly outperforms other products. '
                    "Consider expanding this product line."
                ),
                dataset_id=dataset_id,
                category="opportunity",
                metric="product_performance",
                current_value=products[0].sales,
                severity="info",
                action_required=False,
            ))

        return alerts[:MAX_ALERTS]

    # ------------------------------------------------------------------
    # Health score and executive summary
    # ------------------------------------------------------------------

    def health_score(self, result: AnalysisResult) -> int:
        """
        Weighted 0-100 business health score.

        Growth 30, retention 25, momentum 20, order value 15,
        product diversification 10.
        """
        kpis = result.kpis
        score = 0

        if kpis.sales_growth_pct > 20:
            score += 30
        elif kpis.sales_growth_pct > 10:
            score += 20
        elif kpis.sales_growth_pct > 0:
            score += 10

        if kpis.repeat_customer_rate_pct > 40:
            score += 25
        elif kpis.repeat_customer_rate_pct > 25:
            score += 18
        elif kpis.repeat_customer_rate_pct > 15:
            score += 10

        if kpis.momentum_score > 0.1:
            score += 20
        elif kpis.momentum_score > 0:
            score += 15
        elif kpis.momentum_score > -0.1:
            score += 10

        if kpis.average_order_value > 100:
            score += 15
        elif kpis.average_order_value > 50:
            score += 10
        elif kpis.average_order_value > 25:
            score += 5

        if kpis.product_diversity > 20:
            score += 10
        elif kpis.product_diversity > 10:
            score += 7
        elif kpis.product_diversity > 5:
            score += 4

        return score

    def executive_summary(self, result: AnalysisResult, dataset_id: str) -> ExecutiveSummary:
        kpis = result.kpis
        alerts = self.alerts(result, dataset_id)

        return ExecutiveSummary(
            overview={
                "total_revenue": kpis.total_sales,
                "total_orders": kpis.total_orders,
                "unique_customers": kpis.unique_customers,
                "growth_rate": kpis.sales_growth_pct,
                "health_score": self.health_score(result),
            },
            key_insights=list(result.insights[:5]),
            top_recommendations=self.recommendations(result)[:3],
            critical_alerts=[a for a in alerts if a.type == "critical"],
            performance_metrics={
                "customer_retention": kpis.repeat_customer_rate_pct,
                "average_order_value": kpis.average_order_value,
                "customer_lifetime_value": kpis.customer_lifetime_value,
                "product_diversity": kpis.product_diversity,
            },
            market_position=self.market_position(result),
            risk_assessment=self.risks(result),
            growth_opportunities=self.growth_opportunities(result),
        )

    def market_position(self, result: AnalysisResult) -> dict[str, Any]:
        kpis = result.kpis

        if kpis.average_order_value > 150 and kpis.customer_lifetime_value > 300:
            category = "premium"
        elif kpis.total_orders > 1000 and kpis.sales_growth_pct > 15:
            category = "growth"
        elif kpis.repeat_customer_rate_pct > 35:
            category = "established"
        else:
            category = "emerging"

        strengths = []
        if kpis.sales_growth_pct > 15:
            strengths.append("Strong revenue growth")
        if kpis.repeat_customer_rate_pct > 30:
            strengths.append("Good customer loyalty")
        if kpis.average_order_value > 100:
            strengths.append("High order values")
        if kpis.product_diversity > 15:
            strengths.append("Diverse product portfolio")

        challenges = []
        if kpis.sales_growth_pct < 5:
            challenges.append("Slow growth rate")
        if kpis.repeat_customer_rate_pct < 25:
            challenges.append("Customer retention issues")
        if kpis.average_order_value < 50:
            challenges.append("Low order values")
        if kpis.unique_customers < 200:
            challenges.append("Limited customer base")

        return {
            "category": category,
            "strengths": strengths,
            "challenges": challenges,
            "competitive_advantage": self._competitive_advantage(result),
        }

    def risks(self, result: AnalysisResult) -> list[dict[str, str]]:
        kpis = result.kpis
        risks = []

        if kpis.repeat_customer_rate_pct < 20:
            risks.append({
                "type": "Customer Retention Risk",
                "severity": "high",
                "description": "Low repeat customer rate indicates potential churn issues",
            })
        if len(result.anomalies) > 3:
            risks.append({
                "type": "Market Volatility Risk",
                "severity": "medium",
                "description": "Multiple anomalies suggest unstable market conditions",
            })
        if kpis.sales_growth_pct < 0:
            risks.append({
                "type": "Revenue Decline Risk",
                "severity": "critical",
                "description": "Negative growth trend requires immediate attention",
            })

        return risks

    def growth_opportunities(self, result: AnalysisResult) -> list[dict[str, str]]:
        kpis = result.kpis
        opportunities = []

        if kpis.average_order_value < 75:
            opportunities.append({
                "type": "Order Value Optimization",
                "potential": "high",
                "description": "Significant opportunity to increase average order value through bundling and upselling",
            })
        if kpis.unique_customers < 500:
            opportunities.append({
                "type": "Customer Acquisition",
                "potential": "high",
                "description": "Large addressable market for customer base expansion",
            })
        if result.timeseries.seasonality.has_seasonality:
            opportunities.append({
                "type": "Seasonal Optimization",
                "potential": "medium",
                "description": "Leverage seasonal patterns for targeted marketing campaigns",
            })

        return opportunities

    @staticmethod
    def _competitive_advantage(result: AnalysisResult) -> str:
        kpis = result.kpis
        if kpis.customer_lifetime_value > 300:
            return "High customer lifetime value indicates strong brand loyalty and premium positioning"
        if kpis.sales_growth_pct > 25:
            return "Rapid growth rate suggests strong market demand and effective execution"
        if kpis.repeat_customer_rate_pct > 40:
            return "Excellent customer retention indicates superior product quality and service"
        return "Focus on developing unique value propositions to establish competitive differentiation"
