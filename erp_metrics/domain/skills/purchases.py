"""采购类技能：按供应商的采购排行与供应商账单汇总。"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from erp_metrics.domain.filters import DocumentState, combine_domains, invoice_type_filter, state_filter
from erp_metrics.domain.metrics import money, safe_ratio
from erp_metrics.domain.periods import Period
from erp_metrics.domain.records import group_count, iter_relations, number
from erp_metrics.domain.skills.base import BaseSkill
from erp_metrics.infra.odoo.aggregates import aggregate_totals, grouped_totals
from erp_metrics.infra.odoo.client import OdooClient

PURCHASE_ORDER = "purchase.order"
ACCOUNT_MOVE = "account.move"


def purchase_order_domain(period: Period, state: str) -> list[Any]:
    """采购订单的周期与状态过滤；date_order 为 datetime 字段。"""
    return combine_domains(
        period.as_domain("date_order", datetime_field=True),
        state_filter(state, PURCHASE_ORDER),
    )


class PurchasesBySupplierInput(BaseModel):
    period: Period | None = None
    limit: int = Field(default=10, ge=1, le=100)
    state: DocumentState = "confirmed"


class SupplierPurchases(BaseModel):
    supplier_id: int
    supplier_name: str
    order_count: int
    total_amount: float
    average_order_value: float


class PurchasesBySupplierOutput(BaseModel):
    suppliers: list[SupplierPurchases]
    grand_total: float
    total_orders: int
    period: Period


class PurchasesBySupplierSkill(BaseSkill):
    """按供应商分组的采购额排行；总计覆盖周期内全部采购订单。"""
    name = "get_purchases_by_supplier"
    description = (
        "Get purchases grouped by supplier for a period. Use for 'top suppliers', "
        "'who do we buy from the most', 'purchases by vendor', 'supplier spending'. "
        "Returns suppliers sorted by total descending together with the grand total of all purchase orders."
    )
    tags = ("purchases", "suppliers", "aggregation", "reporting")
    priority = 10
    input_model = PurchasesBySupplierInput

    def run(self, params: PurchasesBySupplierInput, client: OdooClient) -> PurchasesBySupplierOutput:
        period = self.default_period(params.period)
        result = grouped_totals(
            client,
            PURCHASE_ORDER,
            purchase_order_domain(period, params.state),
            ["amount_total"],
            "partner_id",
            limit=params.limit + 1,
            orderby="amount_total desc",
            max_workers=self.max_workers,
        )
        suppliers = []
        for partner_id, partner_name, row in list(iter_relations(result.groups, "partner_id"))[: params.limit]:
            total = number(row, "amount_total")
            orders = group_count(row, "partner_id")
            suppliers.append(
                SupplierPurchases(
                    supplier_id=partner_id,
                    supplier_name=partner_name,
                    order_count=orders,
                    total_amount=money(total),
                    average_order_value=money(safe_ratio(total, orders)),
                )
            )
        return PurchasesBySupplierOutput(
            suppliers=suppliers,
            grand_total=money(result.totals.get("amount_total")),
            total_orders=result.totals.record_count,
            period=period,
        )


class VendorBillsInput(BaseModel):
    period: Period | None = None
    state: DocumentState = "confirmed"
    supplier_id: int | None = Field(default=None, gt=0)


class VendorBillsOutput(BaseModel):
    total_amount: float
    amount_due: float
    bill_count: int
    period: Period


class VendorBillsSkill(BaseSkill):
    name = "get_vendor_bills"
    description = (
        "Get vendor bills (supplier invoices) for a period. Use for 'vendor bills', 'supplier invoices', "
        "'what we owe suppliers'. Returns the billed total, the amount still due and the bill count, "
        "optionally for a single supplier."
    )
    tags = ("purchases", "bills", "accounting", "payable")
    priority = 10
    input_model = VendorBillsInput

    def run(self, params: VendorBillsInput, client: OdooClient) -> VendorBillsOutput:
        period = self.default_period(params.period)
        domain = combine_domains(
            period.as_domain("invoice_date"),
            invoice_type_filter("in_invoice"),
            state_filter(params.state, ACCOUNT_MOVE),
            [("partner_id", "=", params.supplier_id)] if params.supplier_id else None,
        )
        totals = aggregate_totals(client, ACCOUNT_MOVE, domain, ["amount_total", "amount_residual"])
        return VendorBillsOutput(
            total_amount=money(totals.get("amount_total")),
            amount_due=money(totals.get("amount_residual")),
            bill_count=totals.record_count,
            period=period,
        )
