"""销售类技能：销售汇总、按客户与按产品的销售排行。"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from erp_metrics.domain.filters import DocumentState, combine_domains, prefix_fields, state_filter
from erp_metrics.domain.metrics import money, safe_ratio
from erp_metrics.domain.periods import Period
from erp_metrics.domain.records import group_count, iter_relations, number, text
from erp_metrics.domain.skills.base import BaseSkill
from erp_metrics.infra.odoo.aggregates import aggregate_totals, count_groups, grouped_totals
from erp_metrics.infra.odoo.client import OdooClient

SALE_ORDER = "sale.order"
SALE_ORDER_LINE = "sale.order.line"


def sale_order_domain(period: Period, state: str) -> list[Any]:
    """销售订单的周期与状态过滤；date_order 为 datetime 字段。"""
    return combine_domains(
        period.as_domain("date_order", datetime_field=True),
        state_filter(state, SALE_ORDER),
    )


def sale_line_domain(period: Period, state: str) -> list[Any]:
    """订单行过滤：将订单级条件改写到 order_id 路径下。"""
    return prefix_fields(sale_order_domain(period, state), "order_id")


class SalesTotalInput(BaseModel):
    period: Period | None = None
    state: DocumentState = "confirmed"


class SalesTotalOutput(BaseModel):
    total_with_tax: float
    total_without_tax: float
    tax_amount: float
    order_count: int
    customer_count: int
    average_order_value: float
    period: Period


class SalesTotalSkill(BaseSkill):
    """周期内销售总额、订单数、客户数与客单价。"""
    name = "get_sales_total"
    description = (
        "Get the total sales summary for a period. Use for questions like 'total sales', "
        "'how much did we sell', 'revenue this month'. Returns totals with and without tax, "
        "order count, customer count and average order value."
    )
    tags = ("sales", "totals", "aggregation", "reporting")
    priority = 15
    input_model = SalesTotalInput

    def run(self, params: SalesTotalInput, client: OdooClient) -> SalesTotalOutput:
        period = self.default_period(params.period)
        domain = sale_order_domain(period, params.state)
        totals, customer_count = self.fan_out(
            lambda: aggregate_totals(client, SALE_ORDER, domain, ["amount_total", "amount_untaxed"]),
            lambda: count_groups(client, SALE_ORDER, domain, "partner_id"),
        )
        total_with_tax = totals.get("amount_total")
        total_without_tax = totals.get("amount_untaxed")
        return SalesTotalOutput(
            total_with_tax=money(total_with_tax),
            total_without_tax=money(total_without_tax),
            tax_amount=money(total_with_tax - total_without_tax),
            order_count=totals.record_count,
            customer_count=customer_count,
            average_order_value=money(safe_ratio(total_with_tax, totals.record_count)),
            period=period,
        )


class SalesByCustomerInput(BaseModel):
    period: Period | None = None
    limit: int = Field(default=10, ge=1, le=100)
    state: DocumentState = "confirmed"
    min_amount: float | None = Field(default=None, ge=0)


class CustomerSales(BaseModel):
    customer_id: int
    customer_name: str
    order_count: int
    total_amount: float
    average_order_value: float


class SalesByCustomerOutput(BaseModel):
    customers: list[CustomerSales]
    grand_total: float
    total_orders: int
    customer_count: int
    period: Period


class SalesByCustomerSkill(BaseSkill):
    """按客户分组的销售排行；总计覆盖周期内全部订单，不受排行条数限制。"""
    name = "get_sales_by_customer"
    description = (
        "Get sales grouped by customer for a period. Use for 'top customers', 'best clients', "
        "'who bought the most', 'sales by customer'. Returns customers sorted by total descending "
        "together with the grand total of all orders in the period."
    )
    tags = ("sales", "customers", "aggregation", "reporting")
    priority = 10
    input_model = SalesByCustomerInput

    def run(self, params: SalesByCustomerInput, client: OdooClient) -> SalesByCustomerOutput:
        period = self.default_period(params.period)
        domain = sale_order_domain(period, params.state)
        # 多取一组：空客户分组会被丢弃，不能因此少返回一条。
        result = grouped_totals(
            client,
            SALE_ORDER,
            domain,
            ["amount_total"],
            "partner_id",
            limit=params.limit + 1,
            orderby="amount_total desc",
            with_group_count=True,
            max_workers=self.max_workers,
        )
        customers: list[CustomerSales] = []
        for partner_id, partner_name, row in iter_relations(result.groups, "partner_id"):
            total = number(row, "amount_total")
            if params.min_amount is not None and total < params.min_amount:
                continue
            orders = group_count(row, "partner_id")
            customers.append(
                CustomerSales(
                    customer_id=partner_id,
                    customer_name=partner_name,
                    order_count=orders,
                    total_amount=money(total),
                    average_order_value=money(safe_ratio(total, orders)),
                )
            )
        return SalesByCustomerOutput(
            customers=customers[: params.limit],
            grand_total=money(result.totals.get("amount_total")),
            total_orders=result.totals.record_count,
            customer_count=result.group_count or 0,
            period=period,
        )


class SalesByProductInput(BaseModel):
    period: Period | None = None
    limit: int = Field(default=10, ge=1, le=100)
    state: DocumentState = "confirmed"
    category_id: int | None = Field(default=None, gt=0)


class ProductSales(BaseModel):
    product_id: int
    product_name: str
    product_code: str | None = None
    quantity_sold: float
    total_amount: float
    line_count: int
    average_price: float


class SalesByProductOutput(BaseModel):
    products: list[ProductSales]
    grand_total: float
    total_quantity: float
    product_count: int
    period: Period


class SalesByProductSkill(BaseSkill):
    """基于订单行按产品聚合的销售排行。"""
    name = "get_sales_by_product"
    description = (
        "Get sales grouped by product from order lines. Use for 'top products', "
        "'best-selling products', 'what sold the most'. Optionally restricted to a product category."
    )
    tags = ("sales", "products", "reporting")
    priority = 10
    input_model = SalesByProductInput

    def run(self, params: SalesByProductInput, client: OdooClient) -> SalesByProductOutput:
        period = self.default_period(params.period)
        domain = combine_domains(
            sale_line_domain(period, params.state),
            [("product_id.categ_id", "=", params.category_id)] if params.category_id else None,
        )
        result = grouped_totals(
            client,
            SALE_ORDER_LINE,
            domain,
            ["product_uom_qty", "price_total"],
            "product_id",
            limit=params.limit + 1,
            orderby="price_total desc",
            max_workers=self.max_workers,
        )
        rows = list(iter_relations(result.groups, "product_id"))[: params.limit]
        codes = self._product_codes(client, [product_id for product_id, _, _ in rows])
        products = []
        for product_id, product_name, row in rows:
            quantity = number(row, "product_uom_qty")
            total = number(row, "price_total")
            products.append(
                ProductSales(
                    product_id=product_id,
                    product_name=product_name,
                    product_code=codes.get(product_id),
                    quantity_sold=quantity,
                    total_amount=money(total),
                    line_count=group_count(row, "product_id"),
                    average_price=money(safe_ratio(total, quantity)),
                )
            )
        return SalesByProductOutput(
            products=products,
            grand_total=money(result.totals.get("price_total")),
            total_quantity=result.totals.get("product_uom_qty"),
            product_count=len(products),
            period=period,
        )

    @staticmethod
    def _product_codes(client: OdooClient, product_ids: list[int]) -> dict[int, str | None]:
        if not product_ids:
            return {}
        rows = client.read("product.product", product_ids, ["default_code"])
        return {int(row["id"]): text(row.get("default_code")) for row in rows}
