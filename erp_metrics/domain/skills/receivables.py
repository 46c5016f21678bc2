"""应收类技能：应收余额、应收账龄与逾期发票。"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any

from pydantic import BaseModel, Field

from erp_metrics.domain.filters import combine_domains, invoice_type_filter, state_filter
from erp_metrics.domain.metrics import age_in_days, bucket_aging, money, weighted_average_age
from erp_metrics.domain.periods import Period
from erp_metrics.domain.records import group_count, iter_relations, number, parse_date, relation_id, relation_name, text
from erp_metrics.domain.skills.base import BaseSkill
from erp_metrics.infra.odoo.aggregates import aggregate_totals, count_groups, search_read_all
from erp_metrics.infra.odoo.client import OdooClient

ACCOUNT_MOVE = "account.move"
OPEN_PAYMENT_STATES = ["not_paid", "partial"]


def open_customer_invoices() -> list[Any]:
    """已过账、有未结余额的客户发票。"""
    return combine_domains(
        state_filter("confirmed", ACCOUNT_MOVE),
        invoice_type_filter("out_invoice"),
        [("amount_residual", ">", 0)],
    )


def overdue_filter(today: date, min_days_overdue: int = 0) -> list[Any]:
    """到期日早于今天至少 min_days_overdue 天。"""
    if min_days_overdue <= 0:
        return [("invoice_date_due", "<", today.isoformat())]
    cutoff = today - timedelta(days=min_days_overdue)
    return [("invoice_date_due", "<=", cutoff.isoformat())]


class AccountsReceivableInput(BaseModel):
    due_period: Period | None = None
    overdue_only: bool = False
    group_by_customer: bool = False
    limit: int = Field(default=20, ge=1, le=100)


class CustomerReceivable(BaseModel):
    customer_id: int
    customer_name: str
    amount_owed: float
    invoice_count: int


class AccountsReceivableOutput(BaseModel):
    total_receivable: float
    total_overdue: float
    invoice_count: int
    customer_count: int
    by_customer: list[CustomerReceivable] | None = None


class AccountsReceivableSkill(BaseSkill):
    """客户应收余额汇总，可按到期周期过滤并按客户拆分。"""
    name = "get_accounts_receivable"
    description = (
        "Get accounts receivable: how much customers owe. Use for 'accounts receivable', "
        "'what do customers owe', 'customer debt'. Can filter by due date, restrict to overdue "
        "invoices and break the balance down by customer."
    )
    tags = ("accounting", "receivable", "customers", "debt", "collections")
    priority = 15
    input_model = AccountsReceivableInput

    def run(self, params: AccountsReceivableInput, client: OdooClient) -> AccountsReceivableOutput:
        today = self.today()
        base = open_customer_invoices()
        domain = combine_domains(
            base,
            params.due_period.as_domain("invoice_date_due") if params.due_period else None,
            overdue_filter(today) if params.overdue_only else None,
        )
        overdue_domain = combine_domains(domain, overdue_filter(today))

        calls = [
            lambda: aggregate_totals(client, ACCOUNT_MOVE, domain, ["amount_residual"]),
            lambda: aggregate_totals(client, ACCOUNT_MOVE, overdue_domain, ["amount_residual"]),
            lambda: count_groups(client, ACCOUNT_MOVE, domain, "partner_id"),
        ]
        if params.group_by_customer:
            calls.append(
                lambda: client.read_group(
                    ACCOUNT_MOVE,
                    domain,
                    ["partner_id", "amount_residual:sum"],
                    ["partner_id"],
                    limit=params.limit + 1,
                    orderby="amount_residual desc",
                )
            )
        results = self.fan_out(*calls)
        totals, overdue, customer_count = results[:3]

        by_customer = None
        if params.group_by_customer:
            by_customer = [
                CustomerReceivable(
                    customer_id=partner_id,
                    customer_name=partner_name,
                    amount_owed=money(number(row, "amount_residual")),
                    invoice_count=group_count(row, "partner_id"),
                )
                for partner_id, partner_name, row in iter_relations(results[3], "partner_id")
            ][: params.limit]

        return AccountsReceivableOutput(
            total_receivable=money(totals.get("amount_residual")),
            total_overdue=money(overdue.get("amount_residual")),
            invoice_count=totals.record_count,
            customer_count=customer_count,
            by_customer=by_customer,
        )


class ArAgingInput(BaseModel):
    group_by_customer: bool = False
    limit: int = Field(default=20, ge=1, le=100)


class AgingBucketOut(BaseModel):
    label: str
    count: int
    amount: float


class CustomerAging(BaseModel):
    customer_id: int
    customer_name: str
    total_amount: float
    average_age_days: int
    invoice_count: int


class ArAgingOutput(BaseModel):
    average_age_days: int
    total_amount: float
    invoice_count: int
    buckets: list[AgingBucketOut]
    by_customer: list[CustomerAging] | None = None


class ArAgingSkill(BaseSkill):
    """应收账龄分析：四个账龄分桶与按金额加权的平均账龄。"""
    name = "get_ar_aging"
    description = (
        "Accounts receivable aging: how many days on average customers take to pay. Use for "
        "'receivables aging', 'average collection days', 'how long do customers take to pay'. "
        "Buckets open invoices into 0-30, 31-60, 61-90 and 90+ days."
    )
    tags = ("collections", "aging", "receivables", "reporting")
    priority = 10
    input_model = ArAgingInput

    def run(self, params: ArAgingInput, client: OdooClient) -> ArAgingOutput:
        today = self.today()
        domain = combine_domains(
            open_customer_invoices(),
            [("payment_state", "in", OPEN_PAYMENT_STATES)],
        )
        rows = search_read_all(
            client,
            ACCOUNT_MOVE,
            domain,
            fields=["partner_id", "invoice_date", "invoice_date_due", "amount_residual"],
            order="invoice_date asc, id asc",
        )

        pairs: list[tuple[float, int]] = []
        per_customer: dict[int, dict[str, Any]] = {}
        for row in rows:
            reference = parse_date(row.get("invoice_date")) or parse_date(row.get("invoice_date_due"))
            age = age_in_days(reference, today) if reference else 0
            amount = number(row, "amount_residual")
            pairs.append((amount, age))
            partner_id = relation_id(row.get("partner_id"))
            if partner_id is None:
                continue
            entry = per_customer.setdefault(
                partner_id,
                {"name": relation_name(row.get("partner_id")), "items": []},
            )
            entry["items"].append((amount, age))

        summary = bucket_aging(pairs)
        by_customer = None
        if params.group_by_customer:
            by_customer = sorted(
                (
                    CustomerAging(
                        customer_id=partner_id,
                        customer_name=entry["name"],
                        total_amount=money(sum(amount for amount, _ in entry["items"])),
                        average_age_days=weighted_average_age(entry["items"]),
                        invoice_count=len(entry["items"]),
                    )
                    for partner_id, entry in per_customer.items()
                ),
                key=lambda item: item.total_amount,
                reverse=True,
            )[: params.limit]

        return ArAgingOutput(
            average_age_days=summary.average_age_days,
            total_amount=summary.total_amount,
            invoice_count=summary.count,
            buckets=[
                AgingBucketOut(label=bucket.label, count=bucket.count, amount=bucket.amount)
                for bucket in summary.buckets
            ],
            by_customer=by_customer,
        )


class OverdueInvoicesInput(BaseModel):
    limit: int = Field(default=20, ge=1, le=100)
    min_days_overdue: int = Field(default=0, ge=0)
    group_by_customer: bool = False


class OverdueInvoice(BaseModel):
    invoice_id: int
    invoice_number: str | None
    customer_id: int | None
    customer_name: str | None
    amount_total: float
    amount_residual: float
    invoice_date: date | None
    due_date: date | None
    days_overdue: int


class CustomerOverdue(BaseModel):
    customer_id: int
    customer_name: str
    invoice_count: int
    total_overdue: float
    oldest_days_overdue: int


class OverdueInvoicesOutput(BaseModel):
    invoices: list[OverdueInvoice] | None = None
    customers: list[CustomerOverdue] | None = None
    total_overdue: float
    total_invoices: int


class OverdueInvoicesSkill(BaseSkill):
    """逾期客户发票列表或按客户汇总；总计覆盖全部逾期发票。"""
    name = "get_overdue_invoices"
    description = (
        "Get overdue customer invoices. Use for 'overdue invoices', 'late payments', "
        "'unpaid invoices', 'debt collection'. Lists invoices by due date or groups them by customer."
    )
    tags = ("invoices", "debt", "collections", "accounting")
    priority = 10
    input_model = OverdueInvoicesInput

    def run(self, params: OverdueInvoicesInput, client: OdooClient) -> OverdueInvoicesOutput:
        today = self.today()
        domain = combine_domains(
            open_customer_invoices(),
            [("payment_state", "in", OPEN_PAYMENT_STATES)],
            overdue_filter(today, params.min_days_overdue),
        )
        if params.group_by_customer:
            return self._by_customer(client, domain, params, today)

        rows, totals = self.fan_out(
            lambda: client.search_read(
                ACCOUNT_MOVE,
                domain,
                fields=["name", "partner_id", "amount_total", "amount_residual", "invoice_date", "invoice_date_due"],
                limit=params.limit,
                order="invoice_date_due asc, id asc",
            ),
            lambda: aggregate_totals(client, ACCOUNT_MOVE, domain, ["amount_residual"]),
        )
        invoices = []
        for row in rows:
            due = parse_date(row.get("invoice_date_due"))
            invoices.append(
                OverdueInvoice(
                    invoice_id=int(row["id"]),
                    invoice_number=text(row.get("name")),
                    customer_id=relation_id(row.get("partner_id")),
                    customer_name=relation_name(row.get("partner_id")),
                    amount_total=money(number(row, "amount_total")),
                    amount_residual=money(number(row, "amount_residual")),
                    invoice_date=parse_date(row.get("invoice_date")),
                    due_date=due,
                    days_overdue=age_in_days(due, today) if due else 0,
                )
            )
        return OverdueInvoicesOutput(
            invoices=invoices,
            total_overdue=money(totals.get("amount_residual")),
            total_invoices=totals.record_count,
        )

    def _by_customer(
        self,
        client: OdooClient,
        domain: list[Any],
        params: OverdueInvoicesInput,
        today: date,
    ) -> OverdueInvoicesOutput:
        groups, totals = self.fan_out(
            lambda: client.read_group(
                ACCOUNT_MOVE,
                domain,
                ["partner_id", "amount_residual:sum", "invoice_date_due:min"],
                ["partner_id"],
                limit=params.limit + 1,
                orderby="amount_residual desc",
            ),
            lambda: aggregate_totals(client, ACCOUNT_MOVE, domain, ["amount_residual"]),
        )
        customers = []
        for partner_id, partner_name, row in iter_relations(groups, "partner_id"):
            oldest_due = parse_date(row.get("invoice_date_due"))
            customers.append(
                CustomerOverdue(
                    customer_id=partner_id,
                    customer_name=partner_name,
                    invoice_count=group_count(row, "partner_id"),
                    total_overdue=money(number(row, "amount_residual")),
                    oldest_days_overdue=age_in_days(oldest_due, today) if oldest_due else 0,
                )
            )
        return OverdueInvoicesOutput(
            customers=customers[: params.limit],
            total_overdue=money(totals.get("amount_residual")),
            total_invoices=totals.record_count,
        )
