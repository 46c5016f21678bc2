"""采购类技能测试：供应商排行与供应商账单。"""

from __future__ import annotations

import pytest

from erp_metrics.domain.enums import ErrorCode
from erp_metrics.domain.models import SkillContext
from erp_metrics.domain.skills.purchases import PurchasesBySupplierSkill, VendorBillsSkill
from fake_odoo import FakeOdoo

ALPHA = [21, "Alpha Supplies"]
BRAVO = [22, "Bravo Parts"]
CHARLIE = [23, "Charlie Metals"]


@pytest.fixture
def purchases(fake: FakeOdoo) -> FakeOdoo:
    def order(partner, amount: float, when: str, state: str = "purchase") -> dict:
        return {"partner_id": partner, "amount_total": amount, "date_order": when, "state": state}

    fake.add(
        "purchase.order",
        order(ALPHA, 500.0, "2025-03-03 09:00:00"),
        order(ALPHA, 300.0, "2025-03-31 20:00:00", state="done"),
        order(BRAVO, 1000.0, "2025-03-10 10:00:00"),
        order(False, 50.0, "2025-03-11 10:00:00"),
        order(CHARLIE, 200.0, "2025-03-20 10:00:00"),
        order(BRAVO, 999.0, "2025-03-05 10:00:00", state="draft"),
        order(ALPHA, 700.0, "2025-02-20 10:00:00"),
    )
    return fake


@pytest.fixture
def bills(fake: FakeOdoo) -> FakeOdoo:
    def move(partner, amount: float, residual: float, when: str, *, move_type: str = "in_invoice",
             state: str = "posted") -> dict:
        return {"partner_id": partner, "amount_total": amount, "amount_residual": residual,
                "invoice_date": when, "move_type": move_type, "state": state}

    fake.add(
        "account.move",
        move(ALPHA, 1210.0, 1210.0, "2025-03-04"),
        move(BRAVO, 605.0, 0.0, "2025-03-20"),
        move(ALPHA, 100.0, 100.0, "2025-03-21", state="draft"),
        move(BRAVO, 5000.0, 5000.0, "2025-03-05", move_type="out_invoice"),
        move(BRAVO, 50.0, 50.0, "2025-03-06", move_type="in_refund"),
        move(ALPHA, 900.0, 900.0, "2025-02-27"),
    )
    return fake


def test_purchases_by_supplier(purchases: FakeOdoo, context: SkillContext, skill_kwargs: dict) -> None:
    result = PurchasesBySupplierSkill(**skill_kwargs).execute({}, context)

    assert result.success
    data = result.data
    assert [(s.supplier_name, s.total_amount, s.order_count) for s in data.suppliers] == [
        ("Bravo Parts", 1000.0, 1),
        ("Alpha Supplies", 800.0, 2),
        ("Charlie Metals", 200.0, 1),
    ]
    assert data.suppliers[1].average_order_value == 400.0
    # 未填供应商的订单不出现在排行中，但计入总计。
    assert (data.grand_total, data.total_orders) == (2050.0, 4)

    domain = purchases.calls_for("purchase.order", "read_group")[0]["args"][0]
    assert ["state", "in", ["purchase", "done"]] in domain
    assert ["date_order", "<=", "2025-03-31 23:59:59"] in domain


def test_purchases_by_supplier_limit_keeps_grand_total(
    purchases: FakeOdoo, context: SkillContext, skill_kwargs: dict
) -> None:
    result = PurchasesBySupplierSkill(**skill_kwargs).execute({"limit": 2}, context)

    assert [s.supplier_id for s in result.data.suppliers] == [22, 21]
    assert (result.data.grand_total, result.data.total_orders) == (2050.0, 4)


def test_purchases_by_supplier_all_states(purchases: FakeOdoo, context: SkillContext, skill_kwargs: dict) -> None:
    result = PurchasesBySupplierSkill(**skill_kwargs).execute({"state": "all"}, context)

    assert result.data.suppliers[0].total_amount == 1999.0
    assert (result.data.grand_total, result.data.total_orders) == (3049.0, 6)


def test_purchases_by_supplier_explicit_period(
    purchases: FakeOdoo, context: SkillContext, skill_kwargs: dict
) -> None:
    period = {"start": "2025-02-01", "end": "2025-02-28"}
    result = PurchasesBySupplierSkill(**skill_kwargs).execute({"period": period}, context)

    assert [s.supplier_name for s in result.data.suppliers] == ["Alpha Supplies"]
    assert result.data.grand_total == 700.0


def test_vendor_bills(bills: FakeOdoo, context: SkillContext, skill_kwargs: dict) -> None:
    result = VendorBillsSkill(**skill_kwargs).execute({}, context)

    assert result.success
    assert (result.data.total_amount, result.data.amount_due, result.data.bill_count) == (1815.0, 1210.0, 2)
    assert result.data.period.start.isoformat() == "2025-03-01"


def test_vendor_bills_for_supplier(bills: FakeOdoo, context: SkillContext, skill_kwargs: dict) -> None:
    result = VendorBillsSkill(**skill_kwargs).execute({"supplier_id": 21}, context)
    assert (result.data.total_amount, result.data.amount_due, result.data.bill_count) == (1210.0, 1210.0, 1)


def test_vendor_bills_including_drafts(bills: FakeOdoo, context: SkillContext, skill_kwargs: dict) -> None:
    result = VendorBillsSkill(**skill_kwargs).execute({"state": "all"}, context)
    assert (result.data.total_amount, result.data.amount_due, result.data.bill_count) == (1915.0, 1310.0, 3)


def test_vendor_bills_rejects_bad_supplier(fake: FakeOdoo, context: SkillContext, skill_kwargs: dict) -> None:
    result = VendorBillsSkill(**skill_kwargs).execute({"supplier_id": 0}, context)

    assert result.error.code is ErrorCode.validation_error
    assert fake.requests == []
