"""
KPI Aggregator

Sales KPIs over the rows whose revenue value parses as a number.
Rows with an unparsable revenue are excluded entirely, never counted
as zero. Every currency and percentage output is rounded half-up to
two decimals, and no metric can come out as NaN or infinity.
"""

from dataclasses import asdict, dataclass
from typing import Any, Optional

import polars as pl

from analysis.columns import CUSTOMER, DATE, PRODUCT, QUANTITY, REVENUE, RoleMap
from config import Settings, get_settings
from core.dataset import Dataset
from core.logging_config import analysis_logger as logger
from core.values import parse_date, parse_number, resolve_timezone, round_half_up


UNKNOWN_PRODUCT = "Unknown Product"

FRAME_SCHEMA = {
    "revenue": pl.Float64,
    "customer": pl.Utf8,
    "product": pl.Utf8,
    "quantity": pl.Float64,
    "date": pl.Datetime("us"),
}


@dataclass(frozen=True)
class ProductSales:
    product: str
    sales: float


@dataclass(frozen=True)
class ProductQuantity:
    product: str
    qty: float


@dataclass(frozen=True)
class KPIResult:
    """Summary metrics for one dataset."""

    total_sales: float
    total_orders: int
    unique_customers: int
    average_order_value: float
    repeat_customer_rate_pct: float
    sales_growth_pct: float
    top_products_by_sales: tuple[ProductSales, ...]
    top_products_by_qty: tuple[ProductQuantity, ...]

    product_diversity: int = 0
    customer_lifetime_value: float = 0.0
    customer_acquisition_cost: float = 0.0
    avg_orders_per_customer: float = 0.0
    momentum_score: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["top_products_by_sales"] = [asdict(p) for p in self.top_products_by_sales]
        data["top_products_by_qty"] = [asdict(p) for p in self.top_products_by_qty]
        return data


def _label(value: Any) -> Optional[str]:
    """Non-empty string form of a grouping value, or None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _ratio_pct(numerator: float, denominator: float) -> float:
    return numerator / denominator * 100 if denominator > 0 else 0.0


class KPIAggregator:
    """Computes KPIResult from a dataset and its resolved role columns."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def build_frame(self, dataset: Dataset, roles: RoleMap) -> pl.DataFrame:
        """
        Coerce the role columns of the revenue-valid rows into a typed frame.

        Missing products become "Unknown Product", missing or unparsable
        quantities count as 1, and empty customer ids are null.
        """
        revenue_col = roles.column(REVENUE)
        customer_col = roles.column(CUSTOMER)
        product_col = roles.column(PRODUCT)
        quantity_col = roles.column(QUANTITY)
        date_col = roles.column(DATE)
        tz = resolve_timezone(self.settings.analysis.bucket_timezone)

        records: dict[str, list[Any]] = {name: [] for name in FRAME_SCHEMA}
        for row in dataset.rows:
            revenue = parse_number(row.get(revenue_col))
            if revenue is None:
                continue

            quantity = parse_number(row.get(quantity_col))
            records["revenue"].append(revenue)
            records["customer"].append(_label(row.get(customer_col)))
            records["product"].append(_label(row.get(product_col)) or UNKNOWN_PRODUCT)
            records["quantity"].append(1.0 if quantity is None else quantity)
            records["date"].append(parse_date(row.get(date_col), tz))

        return pl.DataFrame(records, schema=FRAME_SCHEMA)

    def aggregate(self, dataset: Dataset, roles: RoleMap) -> KPIResult:
        """Compute all KPIs."""
        frame = self.build_frame(dataset, roles)
        total_orders = frame.height
        total_sales = float(frame["revenue"].sum())

        customers = (
            frame.drop_nulls("customer")
            .group_by("customer", maintain_order=True)
            .agg(
                pl.len().alias("orders"),
                pl.col("revenue").sum().alias("revenue"),
            )
        )
        unique_customers = customers.height
        repeat_customers = customers.filter(pl.col("orders") > 1).height

        top_sales, top_qty, diversity = self._product_breakdowns(frame)

        average_order_value = total_sales / total_orders if total_orders > 0 else 0.0
        lifetime_value = (
            float(customers["revenue"].sum()) / unique_customers if unique_customers > 0 else 0.0
        )
        orders_per_customer = total_orders / unique_customers if unique_customers > 0 else 0.0

        result = KPIResult(
            total_sales=round_half_up(total_sales),
            total_orders=total_orders,
            unique_customers=unique_customers,
            average_order_value=round_half_up(average_order_value),
            repeat_customer_rate_pct=round_half_up(_ratio_pct(repeat_customers, unique_customers)),
            sales_growth_pct=round_half_up(self._sales_growth(frame)),
            top_products_by_sales=top_sales,
            top_products_by_qty=top_qty,
            product_diversity=diversity,
            customer_lifetime_value=round_half_up(lifetime_value),
            customer_acquisition_cost=round_half_up(average_order_value * 0.2),
            avg_orders_per_customer=round_half_up(orders_per_customer),
            momentum_score=round_half_up(self._momentum(frame), 4),
        )
        logger.debug(
            f"KPIs for {dataset.id}: {total_orders} orders, total {result.total_sales}"
        )
        return result

    def _sales_growth(self, frame: pl.DataFrame) -> float:
        """Second half vs first half of the rows, in input order."""
        midpoint = frame.height // 2
        first_half = float(frame["revenue"].slice(0, midpoint).sum())
        second_half = float(frame["revenue"].slice(midpoint).sum())
        return _ratio_pct(second_half - first_half, first_half)

    def _product_breakdowns(
        self, frame: pl.DataFrame
    ) -> tuple[tuple[ProductSales, ...], tuple[ProductQuantity, ...], int]:
        top_n = self.settings.analysis.top_n_products
        products = frame.group_by("product", maintain_order=True).agg(
            pl.col("revenue").sum().alias("sales"),
            pl.col("quantity").sum().alias("qty"),
        )

        # maintain_order keeps first-encountered order among ties
        by_sales = products.sort("sales", descending=True, maintain_order=True).head(top_n)
        by_qty = products.sort("qty", descending=True, maintain_order=True).head(top_n)

        top_sales = tuple(
            ProductSales(product=row["product"], sales=round_half_up(row["sales"]))
            for row in by_sales.iter_rows(named=True)
        )
        top_qty = tuple(
            ProductQuantity(product=row["product"], qty=round_half_up(row["qty"]))
            for row in by_qty.iter_rows(named=True)
        )
        return top_sales, top_qty, products.height

    def _momentum(self, frame: pl.DataFrame) -> float:
        """
        Average relative change between consecutive 10-row blocks of the
        last 30 dated rows. Only complete blocks are compared.
        """
        revenues = (
            frame.drop_nulls("date")
            .sort("date", maintain_order=True)["revenue"]
            .to_list()
        )
        if len(revenues) < 3:
            return 0.0

        recent = revenues[-30:]
        periods = min(3, len(recent) // 10)
        if periods < 2:
            return 0.0

        momentum = 0.0
        for i in range(1, periods):
            previous = sum(recent[(i - 1) * 10:i * 10])
            current = sum(recent[i * 10:(i + 1) * 10])
            if previous > 0:
                momentum += (current - previous) / previous
        return momentum / (periods - 1)
