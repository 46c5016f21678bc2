"""客户检索技能。"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from erp_metrics.domain.filters import any_of, combine_domains
from erp_metrics.domain.records import text
from erp_metrics.domain.skills.base import BaseSkill
from erp_metrics.infra.odoo.client import OdooClient

PARTNER = "res.partner"
SEARCH_FIELDS = ("name", "email", "vat", "ref")


class SearchCustomersInput(BaseModel):
    query: str = Field(min_length=1)
    limit: int = Field(default=10, ge=1, le=50)
    active_only: bool = True
    customers_only: bool = True

    @field_validator("query")
    @classmethod
    def _strip_query(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("query must not be blank")
        return value


class CustomerRecord(BaseModel):
    id: int
    name: str
    email: str | None
    phone: str | None
    vat: str | None
    city: str | None
    is_company: bool
    active: bool


class SearchCustomersOutput(BaseModel):
    customers: list[CustomerRecord]
    total: int


class SearchCustomersSkill(BaseSkill):
    name = "search_customers"
    description = (
        "Search customers by name, email, VAT number or internal reference. Use when the user "
        "wants to find or look up a customer."
    )
    tags = ("customers", "search", "crm")
    priority = 5
    input_model = SearchCustomersInput

    def run(self, params: SearchCustomersInput, client: OdooClient) -> SearchCustomersOutput:
        domain = combine_domains(
            any_of(*([(field, "ilike", params.query)] for field in SEARCH_FIELDS)),
            [("customer_rank", ">", 0)] if params.customers_only else None,
            [("active", "=", True)] if params.active_only else None,
        )
        rows, total = self.fan_out(
            lambda: client.search_read(
                PARTNER,
                domain,
                fields=["name", "email", "phone", "vat", "city", "is_company", "active"],
                limit=params.limit,
                order="name asc, id asc",
            ),
            lambda: client.search_count(PARTNER, domain),
        )
        customers = [
            CustomerRecord(
                id=int(row["id"]),
                name=str(row.get("name") or ""),
                email=text(row.get("email")),
                phone=text(row.get("phone")),
                vat=text(row.get("vat")),
                city=text(row.get("city")),
                is_company=bool(row.get("is_company")),
                active=bool(row.get("active", True)),
            )
            for row in rows
        ]
        return SearchCustomersOutput(customers=customers, total=total)
