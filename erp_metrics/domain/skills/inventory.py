"""库存类技能：库存估值、低库存产品与产品检索。"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from erp_metrics.domain.filters import any_of, combine_domains
from erp_metrics.domain.metrics import money
from erp_metrics.domain.records import iter_relations, number, relation_name, text
from erp_metrics.domain.skills.base import BaseSkill
from erp_metrics.infra.odoo.aggregates import search_read_all
from erp_metrics.infra.odoo.client import OdooClient

PRODUCT = "product.product"
STOCKABLE = [("type", "=", "product")]
PRODUCT_SEARCH_FIELDS = ("name", "default_code", "barcode")


class StockValuationInput(BaseModel):
    category_id: int | None = Field(default=None, gt=0)


class StockValuationOutput(BaseModel):
    total_value: float
    product_count: int
    total_quantity: float


class StockValuationSkill(BaseSkill):
    """可库存产品的 数量 x 成本 合计。"""
    name = "get_stock_valuation"
    description = (
        "Get the total stock valuation (quantity on hand times cost). Use for 'inventory value', "
        "'stock value', 'how much is our stock worth'. Optionally restricted to a product category."
    )
    tags = ("inventory", "stock", "valuation")
    priority = 10
    input_model = StockValuationInput

    def run(self, params: StockValuationInput, client: OdooClient) -> StockValuationOutput:
        domain = combine_domains(
            STOCKABLE,
            [("categ_id", "=", params.category_id)] if params.category_id else None,
        )
        # qty_available 为计算字段，无法服务端聚合，只能分页读取后累加。
        rows = search_read_all(client, PRODUCT, domain, fields=["qty_available", "standard_price"])
        total_value = sum(number(row, "qty_available") * number(row, "standard_price") for row in rows)
        total_quantity = sum(number(row, "qty_available") for row in rows)
        return StockValuationOutput(
            total_value=money(total_value),
            product_count=len(rows),
            total_quantity=total_quantity,
        )


class LowStockProductsInput(BaseModel):
    threshold: float = Field(default=10, ge=0)
    limit: int = Field(default=20, ge=1, le=100)
    stockable_only: bool = True


class LowStockProduct(BaseModel):
    product_id: int
    product_name: str
    product_code: str | None
    qty_available: float
    virtual_available: float
    has_reordering_rule: bool


class LowStockProductsOutput(BaseModel):
    products: list[LowStockProduct]
    total: int
    threshold: float


class LowStockProductsSkill(BaseSkill):
    """在手数量低于阈值的产品，按数量升序。"""
    name = "get_low_stock_products"
    description = (
        "Get products with low stock. Use for 'low stock', 'products to reorder', 'stock alerts'. "
        "Returns products whose quantity on hand is below the threshold, lowest first, and whether "
        "each one has a reordering rule."
    )
    tags = ("inventory", "stock", "purchasing")
    priority = 10
    input_model = LowStockProductsInput

    def run(self, params: LowStockProductsInput, client: OdooClient) -> LowStockProductsOutput:
        domain = combine_domains(
            [("qty_available", "<", params.threshold)],
            STOCKABLE if params.stockable_only else None,
        )
        rows, total = self.fan_out(
            lambda: client.search_read(
                PRODUCT,
                domain,
                fields=["name", "default_code", "qty_available", "virtual_available"],
                limit=params.limit,
                order="qty_available asc, id asc",
            ),
            lambda: client.search_count(PRODUCT, domain),
        )
        with_rules = self._products_with_rules(client, [int(row["id"]) for row in rows])
        products = [
            LowStockProduct(
                product_id=int(row["id"]),
                product_name=str(row.get("name") or ""),
                product_code=text(row.get("default_code")),
                qty_available=number(row, "qty_available"),
                virtual_available=number(row, "virtual_available"),
                has_reordering_rule=int(row["id"]) in with_rules,
            )
            for row in rows
        ]
        return LowStockProductsOutput(products=products, total=total, threshold=params.threshold)

    @staticmethod
    def _products_with_rules(client: OdooClient, product_ids: list[int]) -> set[int]:
        if not product_ids:
            return set()
        rows = client.read_group(
            "stock.warehouse.orderpoint",
            [("product_id", "in", product_ids)],
            ["product_id"],
            ["product_id"],
            limit=None,
        )
        return {product_id for product_id, _, _ in iter_relations(rows, "product_id")}


class SearchProductsInput(BaseModel):
    query: str = Field(min_length=1)
    limit: int = Field(default=10, ge=1, le=50)
    include_stock: bool = True
    saleable_only: bool = False

    @field_validator("query")
    @classmethod
    def _strip_query(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("query must not be blank")
        return value


class ProductRecord(BaseModel):
    id: int
    name: str
    code: str | None
    barcode: str | None
    type: str | None
    list_price: float
    standard_price: float
    uom: str | None
    qty_available: float | None = None
    virtual_available: float | None = None


class SearchProductsOutput(BaseModel):
    products: list[ProductRecord]
    total: int


class SearchProductsSkill(BaseSkill):
    """按名称、内部编码或条码检索产品。"""
    name = "search_products"
    description = (
        "Search products by name, internal code or barcode. Use when the user wants to find or look up "
        "a product, or asks whether a given item is in stock."
    )
    tags = ("products", "search", "catalog")
    priority = 5
    input_model = SearchProductsInput

    def run(self, params: SearchProductsInput, client: OdooClient) -> SearchProductsOutput:
        domain = combine_domains(
            any_of(*([(field, "ilike", params.query)] for field in PRODUCT_SEARCH_FIELDS)),
            [("sale_ok", "=", True)] if params.saleable_only else None,
        )
        fields = ["name", "default_code", "barcode", "type", "list_price", "standard_price", "uom_id"]
        if params.include_stock:
            fields += ["qty_available", "virtual_available"]
        rows, total = self.fan_out(
            lambda: client.search_read(PRODUCT, domain, fields=fields, limit=params.limit, order="name asc, id asc"),
            lambda: client.search_count(PRODUCT, domain),
        )
        products = [
            ProductRecord(
                id=int(row["id"]),
                name=str(row.get("name") or ""),
                code=text(row.get("default_code")),
                barcode=text(row.get("barcode")),
                type=text(row.get("type")),
                list_price=number(row, "list_price"),
                standard_price=number(row, "standard_price"),
                uom=relation_name(row.get("uom_id")),
                qty_available=number(row, "qty_available") if params.include_stock else None,
                virtual_available=number(row, "virtual_available") if params.include_stock else None,
            )
            for row in rows
        ]
        return SearchProductsOutput(products=products, total=total)
