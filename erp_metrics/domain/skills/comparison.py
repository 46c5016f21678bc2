"""销售周期对比技能：两个周期的汇总、变化率、趋势与可选的产品/客户对比。"""

from __future__ import annotations

from typing import Any, Callable

from pydantic import BaseModel, Field

from erp_metrics.domain.enums import Trend
from erp_metrics.domain.filters import DocumentState, combine_domains
from erp_metrics.domain.metrics import classify_trend, money, percent_change, safe_ratio
from erp_metrics.domain.periods import Period, previous_month_period
from erp_metrics.domain.records import iter_relations, number
from erp_metrics.domain.skills.base import BaseSkill
from erp_metrics.domain.skills.sales import SALE_ORDER, SALE_ORDER_LINE, sale_line_domain, sale_order_domain
from erp_metrics.infra.odoo.aggregates import aggregate_totals, count_groups
from erp_metrics.infra.odoo.client import OdooClient


class CompareSalesPeriodsInput(BaseModel):
    current_period: Period | None = None
    previous_period: Period | None = None
    state: DocumentState = "confirmed"
    include_products: bool = False
    include_customers: bool = False
    limit: int = Field(default=5, ge=1, le=20)


class PeriodSummary(BaseModel):
    total_sales: float
    order_count: int
    customer_count: int
    average_order_value: float
    period_label: str


class ComparisonItem(BaseModel):
    id: int
    name: str
    current_sales: float
    previous_sales: float
    change: float
    change_percent: float | None


class CompareSalesPeriodsOutput(BaseModel):
    current: PeriodSummary
    previous: PeriodSummary
    sales_change: float
    sales_change_percent: float | None
    order_count_change: int
    average_order_value_change: float
    trend: Trend
    product_comparison: list[ComparisonItem] | None = None
    customer_comparison: list[ComparisonItem] | None = None


class _Dimension:
    """对比维度：模型、分组字段、金额字段与 domain 构造方式。"""

    def __init__(self, model: str, groupby: str, measure: str, domain_for: Callable[[Period, str], list[Any]]) -> None:
        self.model = model
        self.groupby = groupby
        self.measure = measure
        self.domain_for = domain_for


_PRODUCTS = _Dimension(SALE_ORDER_LINE, "product_id", "price_subtotal", sale_line_domain)
_CUSTOMERS = _Dimension(SALE_ORDER, "partner_id", "amount_total", sale_order_domain)


class CompareSalesPeriodsSkill(BaseSkill):
    """对比两个周期的销售表现；默认本月对比上月。"""
    name = "compare_sales_periods"
    description = (
        "Compare sales between two periods. Use for 'compare sales', 'this month vs last month', "
        "'are sales going up', 'sales evolution'. Defaults to this month versus last month and "
        "returns totals, absolute and percentage changes and a trend."
    )
    tags = ("sales", "comparison", "trends", "reporting", "analytics")
    priority = 12
    input_model = CompareSalesPeriodsInput

    def run(self, params: CompareSalesPeriodsInput, client: OdooClient) -> CompareSalesPeriodsOutput:
        current_period = self.default_period(params.current_period)
        previous_period = params.previous_period or previous_month_period(self.today())
        current_domain = sale_order_domain(current_period, params.state)
        previous_domain = sale_order_domain(previous_period, params.state)

        current_totals, current_customers, previous_totals, previous_customers = self.fan_out(
            lambda: aggregate_totals(client, SALE_ORDER, current_domain, ["amount_total"]),
            lambda: count_groups(client, SALE_ORDER, current_domain, "partner_id"),
            lambda: aggregate_totals(client, SALE_ORDER, previous_domain, ["amount_total"]),
            lambda: count_groups(client, SALE_ORDER, previous_domain, "partner_id"),
        )
        current = self._summary(
            current_period, current_totals.get("amount_total"), current_totals.record_count, current_customers
        )
        previous = self._summary(
            previous_period, previous_totals.get("amount_total"), previous_totals.record_count, previous_customers
        )
        change_percent = percent_change(current.total_sales, previous.total_sales)

        dimensions: list[Callable[[], list[ComparisonItem]]] = []
        if params.include_products:
            dimensions.append(lambda: self._compare(client, _PRODUCTS, params, current_period, previous_period))
        if params.include_customers:
            dimensions.append(lambda: self._compare(client, _CUSTOMERS, params, current_period, previous_period))
        comparisons = self.fan_out(*dimensions)
        product_comparison = comparisons.pop(0) if params.include_products else None
        customer_comparison = comparisons.pop(0) if params.include_customers else None

        return CompareSalesPeriodsOutput(
            current=current,
            previous=previous,
            sales_change=money(current.total_sales - previous.total_sales),
            sales_change_percent=change_percent,
            order_count_change=current.order_count - previous.order_count,
            average_order_value_change=money(current.average_order_value - previous.average_order_value),
            trend=classify_trend(change_percent),
            product_comparison=product_comparison,
            customer_comparison=customer_comparison,
        )

    @staticmethod
    def _summary(period: Period, total: float, order_count: int, customer_count: int) -> PeriodSummary:
        return PeriodSummary(
            total_sales=money(total),
            order_count=order_count,
            customer_count=customer_count,
            average_order_value=money(safe_ratio(total, order_count)),
            period_label=period.display_label(),
        )

    def _compare(
        self,
        client: OdooClient,
        dimension: _Dimension,
        params: CompareSalesPeriodsInput,
        current_period: Period,
        previous_period: Period,
    ) -> list[ComparisonItem]:
        """取当前周期前 N 项，再按相同 id 查询上一周期金额。

        上一周期查询依赖当前周期结果，且按 id 限定而非按排名截断，
        避免当前前 N 项在上一周期排名之外时被误记为 0。
        """
        fields = [dimension.groupby, f"{dimension.measure}:sum"]
        current_rows = client.read_group(
            dimension.model,
            dimension.domain_for(current_period, params.state),
            fields,
            [dimension.groupby],
            limit=params.limit + 1,
            orderby=f"{dimension.measure} desc",
        )
        current_items = list(iter_relations(current_rows, dimension.groupby))[: params.limit]
        if not current_items:
            return []
        ids = [item_id for item_id, _, _ in current_items]
        previous_rows = client.read_group(
            dimension.model,
            combine_domains(
                dimension.domain_for(previous_period, params.state),
                [(dimension.groupby, "in", ids)],
            ),
            fields,
            [dimension.groupby],
            limit=None,
        )
        previous_by_id = {
            item_id: number(row, dimension.measure)
            for item_id, _, row in iter_relations(previous_rows, dimension.groupby)
        }
        items = []
        for item_id, item_name, row in current_items:
            current_sales = number(row, dimension.measure)
            previous_sales = previous_by_id.get(item_id, 0.0)
            items.append(
                ComparisonItem(
                    id=item_id,
                    name=item_name,
                    current_sales=money(current_sales),
                    previous_sales=money(previous_sales),
                    change=money(current_sales - previous_sales),
                    change_percent=percent_change(current_sales, previous_sales),
                )
            )
        return items
