"""资金类技能：收款汇总与现金/银行日记账余额。"""

from __future__ import annotations

from pydantic import BaseModel, Field, PositiveInt

from erp_metrics.domain.enums import JournalType
from erp_metrics.domain.filters import combine_domains, state_filter
from erp_metrics.domain.metrics import money
from erp_metrics.domain.periods import Period
from erp_metrics.domain.records import group_count, iter_relations, number, relation_id, relation_name
from erp_metrics.domain.skills.base import BaseSkill
from erp_metrics.infra.odoo.aggregates import aggregate_totals
from erp_metrics.infra.odoo.client import OdooClient

ACCOUNT_PAYMENT = "account.payment"


class PaymentsReceivedInput(BaseModel):
    period: Period | None = None
    group_by_journal: bool = False
    group_by_customer: bool = False
    journal_ids: list[PositiveInt] | None = None
    limit: int = Field(default=20, ge=1, le=100)


class PaymentGroup(BaseModel):
    group_id: int
    group_name: str
    amount: float
    count: int


class PaymentsReceivedOutput(BaseModel):
    total_amount: float
    payment_count: int
    by_journal: list[PaymentGroup] | None = None
    by_customer: list[PaymentGroup] | None = None
    period: Period


class PaymentsReceivedSkill(BaseSkill):
    """周期内已过账的入账收款，可按日记账或客户拆分。"""
    name = "get_payments_received"
    description = (
        "Get payments received (collections) for a period. Use for 'collections', "
        "'payments received', 'cash inflow', 'how much did we collect'. Can group by "
        "payment journal or by customer."
    )
    tags = ("payments", "collections", "cash-flow", "customers")
    priority = 10
    input_model = PaymentsReceivedInput

    def run(self, params: PaymentsReceivedInput, client: OdooClient) -> PaymentsReceivedOutput:
        period = self.default_period(params.period)
        domain = combine_domains(
            [("payment_type", "=", "inbound")],
            state_filter("confirmed", ACCOUNT_PAYMENT),
            period.as_domain("date"),
            [("journal_id", "in", list(params.journal_ids))] if params.journal_ids else None,
        )

        groupings = []
        if params.group_by_journal:
            groupings.append("journal_id")
        if params.group_by_customer:
            groupings.append("partner_id")
        totals, *grouped = self.fan_out(
            lambda: aggregate_totals(client, ACCOUNT_PAYMENT, domain, ["amount"]),
            *(self._group_call(client, domain, groupby, params.limit) for groupby in groupings),
        )
        breakdowns = dict(zip(groupings, grouped))

        return PaymentsReceivedOutput(
            total_amount=money(totals.get("amount")),
            payment_count=totals.record_count,
            by_journal=breakdowns.get("journal_id"),
            by_customer=breakdowns.get("partner_id"),
            period=period,
        )

    @staticmethod
    def _group_call(client: OdooClient, domain: list, groupby: str, limit: int):
        def call() -> list[PaymentGroup]:
            rows = client.read_group(
                ACCOUNT_PAYMENT,
                domain,
                [groupby, "amount:sum"],
                [groupby],
                limit=limit + 1,
                orderby="amount desc",
            )
            return [
                PaymentGroup(
                    group_id=group_id,
                    group_name=group_name,
                    amount=money(number(row, "amount")),
                    count=group_count(row, groupby),
                )
                for group_id, group_name, row in iter_relations(rows, groupby)
            ][:limit]

        return call


class CashBalanceInput(BaseModel):
    include_banks: bool = False
    journal_ids: list[PositiveInt] | None = None


class JournalBalance(BaseModel):
    journal_id: int
    journal_name: str
    journal_type: JournalType
    balance: float
    currency: str | None = None


class CashBalanceOutput(BaseModel):
    total_cash: float
    total_bank: float
    grand_total: float
    journals: list[JournalBalance]


class CashBalanceSkill(BaseSkill):
    """现金（及可选银行）日记账的当前余额。"""
    name = "get_cash_balance"
    description = (
        "Get current cash and bank balances. Use for 'cash balance', 'money in the register', "
        "'available cash', 'bank balance'. Returns the balance of each cash journal and, "
        "optionally, each bank journal."
    )
    tags = ("cash", "balance", "treasury", "banks", "liquidity")
    priority = 15
    input_model = CashBalanceInput

    def run(self, params: CashBalanceInput, client: OdooClient) -> CashBalanceOutput:
        journal_types = [JournalType.cash.value]
        if params.include_banks:
            journal_types.append(JournalType.bank.value)
        journals = client.search_read(
            "account.journal",
            combine_domains(
                [("type", "in", journal_types)],
                [("id", "in", list(params.journal_ids))] if params.journal_ids else None,
            ),
            fields=["name", "type", "default_account_id", "currency_id"],
            limit=None,
            order="id asc",
        )
        account_ids = sorted(
            {account_id for account_id in (relation_id(j.get("default_account_id")) for j in journals) if account_id}
        )
        balances: dict[int, float] = {}
        if account_ids:
            # 一次分组查询取得全部科目余额，不受分组数限制。
            rows = client.read_group(
                "account.move.line",
                [("account_id", "in", account_ids), ("parent_state", "=", "posted")],
                ["account_id", "balance:sum"],
                ["account_id"],
                limit=None,
            )
            balances = {account_id: number(row, "balance") for account_id, _, row in iter_relations(rows, "account_id")}

        result: list[JournalBalance] = []
        for journal in journals:
            account_id = relation_id(journal.get("default_account_id"))
            if account_id is None:
                continue
            result.append(
                JournalBalance(
                    journal_id=int(journal["id"]),
                    journal_name=str(journal.get("name") or ""),
                    journal_type=JournalType.cash if journal.get("type") == "cash" else JournalType.bank,
                    balance=money(balances.get(account_id, 0.0)),
                    currency=relation_name(journal.get("currency_id")),
                )
            )
        result.sort(key=lambda item: item.balance, reverse=True)
        total_cash = sum(item.balance for item in result if item.journal_type is JournalType.cash)
        total_bank = sum(item.balance for item in result if item.journal_type is JournalType.bank)
        return CashBalanceOutput(
            total_cash=money(total_cash),
            total_bank=money(total_bank),
            grand_total=money(total_cash + total_bank),
            journals=result,
        )
