"""库存、产品检索与客户检索技能测试。"""

from __future__ import annotations

import pytest

from erp_metrics.domain.models import SkillContext
from erp_metrics.domain.skills.customers import SearchCustomersSkill
from erp_metrics.domain.skills.inventory import LowStockProductsSkill, SearchProductsSkill, StockValuationSkill
from fake_odoo import FakeOdoo


def _seed_products(fake: FakeOdoo) -> None:
    fake.add(
        "product.product",
        {"id": 1, "name": "Chair", "default_code": "CH-1", "type": "product", "qty_available": 5,
         "virtual_available": 8, "standard_price": 20.0, "categ_id": [3, "Furniture"]},
        {"id": 2, "name": "Desk", "default_code": False, "type": "product", "qty_available": 2,
         "virtual_available": 2, "standard_price": 100.0, "categ_id": [4, "Office"]},
        {"id": 3, "name": "Lamp", "default_code": "LA-1", "type": "product", "qty_available": 50,
         "virtual_available": 50, "standard_price": 3.0, "categ_id": [3, "Furniture"]},
        {"id": 4, "name": "Assembly", "default_code": False, "type": "service", "qty_available": 0,
         "virtual_available": 0, "standard_price": 0.0, "categ_id": [5, "Services"]},
        {"id": 5, "name": "Cable", "default_code": False, "type": "consu", "qty_available": 1,
         "virtual_available": 1, "standard_price": 1.0, "categ_id": [4, "Office"]},
    )
    fake.add("stock.warehouse.orderpoint", {"product_id": [1, "Chair"], "product_min_qty": 10})


def _seed_partners(fake: FakeOdoo) -> None:
    def partner(**values) -> dict:
        return {"customer_rank": 1, "active": True, "is_company": True, "email": False, "vat": False,
                "ref": False, "phone": False, "city": False, **values}

    fake.add(
        "res.partner",
        partner(id=1, name="Acme Corp", email="info@acme.com", vat="FR123", city="Lyon", phone="+33 1 23"),
        partner(id=2, name="Beta LLC", email="billing@acme-group.com", is_company=False),
        partner(id=3, name="Acme Supplies", customer_rank=0),
        partner(id=4, name="Old Acme", active=False),
        partner(id=5, name="Gamma"),
    )


def test_stock_valuation(fake: FakeOdoo, context: SkillContext, skill_kwargs: dict) -> None:
    _seed_products(fake)
    result = StockValuationSkill(**skill_kwargs).execute({}, context)

    assert result.success
    assert (result.data.total_value, result.data.product_count, result.data.total_quantity) == (450.0, 3, 57)


def test_stock_valuation_by_category(fake: FakeOdoo, context: SkillContext, skill_kwargs: dict) -> None:
    _seed_products(fake)
    result = StockValuationSkill(**skill_kwargs).execute({"category_id": 3}, context)

    assert (result.data.total_value, result.data.product_count) == (250.0, 2)


def test_low_stock_products(fake: FakeOdoo, context: SkillContext, skill_kwargs: dict) -> None:
    _seed_products(fake)
    result = LowStockProductsSkill(**skill_kwargs).execute({}, context)

    assert result.success
    data = result.data
    assert [(p.product_name, p.qty_available, p.has_reordering_rule) for p in data.products] == [
        ("Desk", 2, False),
        ("Chair", 5, True),
    ]
    assert data.products[1].product_code == "CH-1"
    assert data.products[1].virtual_available == 8
    assert (data.total, data.threshold) == (2, 10)


def test_low_stock_includes_non_stockable_when_asked(
    fake: FakeOdoo, context: SkillContext, skill_kwargs: dict
) -> None:
    _seed_products(fake)
    result = LowStockProductsSkill(**skill_kwargs).execute({"stockable_only": False, "limit": 1}, context)

    assert [p.product_name for p in result.data.products] == ["Assembly"]
    assert result.data.total == 4


def test_low_stock_empty_skips_orderpoint_lookup(fake: FakeOdoo, context: SkillContext, skill_kwargs: dict) -> None:
    _seed_products(fake)
    result = LowStockProductsSkill(**skill_kwargs).execute({"threshold": 2}, context)

    assert result.data.products == []
    assert result.data.total == 0
    assert fake.calls_for("stock.warehouse.orderpoint", "read_group") == []


def test_search_customers_matches_any_field(fake: FakeOdoo, context: SkillContext, skill_kwargs: dict) -> None:
    _seed_partners(fake)
    result = SearchCustomersSkill(**skill_kwargs).execute({"query": "  acme "}, context)

    assert result.success
    assert [c.name for c in result.data.customers] == ["Acme Corp", "Beta LLC"]
    assert result.data.total == 2
    acme = result.data.customers[0]
    assert (acme.email, acme.vat, acme.city, acme.phone, acme.is_company) == (
        "info@acme.com",
        "FR123",
        "Lyon",
        "+33 1 23",
        True,
    )
    assert result.data.customers[1].phone is None


@pytest.mark.parametrize(
    ("extra", "names"),
    [
        ({"customers_only": False}, ["Acme Corp", "Acme Supplies", "Beta LLC"]),
        ({"active_only": False}, ["Acme Corp", "Beta LLC", "Old Acme"]),
    ],
)
def test_search_customers_flags(
    fake: FakeOdoo, context: SkillContext, skill_kwargs: dict, extra: dict, names: list[str]
) -> None:
    _seed_partners(fake)
    result = SearchCustomersSkill(**skill_kwargs).execute({"query": "acme", **extra}, context)

    assert [c.name for c in result.data.customers] == names


def test_search_customers_limit_keeps_total(fake: FakeOdoo, context: SkillContext, skill_kwargs: dict) -> None:
    _seed_partners(fake)
    result = SearchCustomersSkill(**skill_kwargs).execute({"query": "acme", "limit": 1}, context)

    assert len(result.data.customers) == 1
    assert result.data.total == 2


def test_search_customers_by_vat(fake: FakeOdoo, context: SkillContext, skill_kwargs: dict) -> None:
    _seed_partners(fake)
    result = SearchCustomersSkill(**skill_kwargs).execute({"query": "fr123"}, context)

    assert [c.id for c in result.data.customers] == [1]


@pytest.mark.parametrize("query", ["", "   "])
def test_search_customers_rejects_blank_query(
    fake: FakeOdoo, context: SkillContext, skill_kwargs: dict, query: str
) -> None:
    result = SearchCustomersSkill(**skill_kwargs).execute({"query": query}, context)

    assert result.to_dict()["error"]["code"] == "VALIDATION_ERROR"
    assert fake.requests == []


def _seed_catalog(fake: FakeOdoo) -> None:
    def product(**values) -> dict:
        return {"default_code": False, "barcode": False, "type": "product", "list_price": 0.0,
                "standard_price": 0.0, "uom_id": [1, "Units"], "qty_available": 0, "virtual_available": 0,
                "sale_ok": True, **values}

    fake.add(
        "product.product",
        product(id=1, name="Office Chair", default_code="CH-1", barcode="400001", list_price=120.0,
                standard_price=60.0, qty_available=5, virtual_available=7),
        product(id=2, name="Bench", default_code="CH-2", sale_ok=False, qty_available=3),
        product(id=3, name="Lamp", barcode="CH-9000", type="consu", uom_id=False),
        product(id=4, name="Table", default_code="TB-1"),
    )


def test_search_products_matches_name_code_and_barcode(
    fake: FakeOdoo, context: SkillContext, skill_kwargs: dict
) -> None:
    _seed_catalog(fake)
    result = SearchProductsSkill(**skill_kwargs).execute({"query": "ch-"}, context)

    assert result.success
    assert [p.name for p in result.data.products] == ["Bench", "Lamp", "Office Chair"]
    assert result.data.total == 3
    chair = result.data.products[2]
    assert (chair.code, chair.barcode, chair.uom) == ("CH-1", "400001", "Units")
    assert (chair.list_price, chair.qty_available, chair.virtual_available) == (120.0, 5, 7)
    lamp = result.data.products[1]
    assert (lamp.code, lamp.uom) == (None, None)


def test_search_products_saleable_only(fake: FakeOdoo, context: SkillContext, skill_kwargs: dict) -> None:
    _seed_catalog(fake)
    result = SearchProductsSkill(**skill_kwargs).execute({"query": "ch-", "saleable_only": True}, context)

    assert [p.id for p in result.data.products] == [3, 1]
    assert result.data.total == 2


def test_search_products_without_stock(fake: FakeOdoo, context: SkillContext, skill_kwargs: dict) -> None:
    _seed_catalog(fake)
    result = SearchProductsSkill(**skill_kwargs).execute(
        {"query": "office", "include_stock": False, "limit": 1}, context
    )

    assert result.data.products[0].qty_available is None
    fields = fake.calls_for("product.product", "search_read")[0]["kwargs"]["fields"]
    assert "qty_available" not in fields


def test_search_products_rejects_blank_query(fake: FakeOdoo, context: SkillContext, skill_kwargs: dict) -> None:
    result = SearchProductsSkill(**skill_kwargs).execute({"query": " "}, context)

    assert result.to_dict()["error"]["code"] == "VALIDATION_ERROR"
    assert fake.requests == []
