"""HTTP 接口测试：技能目录、技能执行与 Odoo 集成运维接口。"""

from __future__ import annotations

from typing import Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from erp_metrics.api.v1 import integrations, skills
from erp_metrics.application.service import MetricsService
from erp_metrics.config import Settings, get_settings
from erp_metrics.domain.skills.registry import SkillRegistry
from erp_metrics.infra.logging.setup import shutdown_logging
from erp_metrics.infra.odoo.schema_cache import SchemaCache
from fake_odoo import CREDENTIALS, TODAY, FakeOdoo


@pytest.fixture(scope="module")
def app(tmp_path_factory: pytest.TempPathFactory) -> Iterator[FastAPI]:
    """应用在导入时初始化日志，先把日志目录指向临时目录。"""
    with pytest.MonkeyPatch.context() as mp:
        mp.setenv("LOG_DIR", str(tmp_path_factory.mktemp("logs")))
        get_settings.cache_clear()
        from erp_metrics.main import app as fastapi_app

        yield fastapi_app
        shutdown_logging()
    get_settings.cache_clear()


@pytest.fixture
def service(fake: FakeOdoo) -> MetricsService:
    def provide(tenant_id: str) -> dict:
        return {"odoo": CREDENTIALS} if tenant_id == "default" else {}

    return MetricsService(
        settings=Settings(_env_file=None),
        skill_registry=SkillRegistry(client_factory=fake.client_factory, today=lambda: TODAY),
        client_factory=fake.client_factory,
        schema_cache=SchemaCache(ttl_seconds=60),
        credentials_provider=provide,
    )


@pytest.fixture
def client(app: FastAPI, service: MetricsService) -> Iterator[TestClient]:
    app.dependency_overrides[skills._service] = lambda: service
    app.dependency_overrides[integrations._service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health_echoes_request_id(client: TestClient) -> None:
    response = client.get("/health", headers={"X-Request-Id": "req-42"})

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["X-Request-Id"] == "req-42"


def test_health_generates_request_id(client: TestClient) -> None:
    response = client.get("/health")
    assert response.headers["X-Request-Id"]


def test_list_skills(client: TestClient) -> None:
    response = client.get("/api/v1/skills")

    assert response.status_code == 200
    names = {item["name"] for item in response.json()}
    assert "get_sales_total" in names
    assert len(names) == 15


def test_list_skills_by_tag(client: TestClient) -> None:
    response = client.get("/api/v1/skills", params={"tag": "cash"})
    assert [item["name"] for item in response.json()] == ["get_cash_balance"]


def test_get_skill(client: TestClient) -> None:
    response = client.get("/api/v1/skills/get_overdue_invoices")

    assert response.status_code == 200
    body = response.json()
    assert body["integration"] == "odoo"
    assert "min_days_overdue" in body["input_schema"]["properties"]


def test_get_unknown_skill_is_404(client: TestClient) -> None:
    assert client.get("/api/v1/skills/nope").status_code == 404


def test_execute_skill_success(client: TestClient, fake: FakeOdoo) -> None:
    fake.add(
        "sale.order",
        {"partner_id": [1, "Acme"], "amount_total": 121.0, "amount_untaxed": 100.0,
         "date_order": "2025-03-02 10:00:00", "state": "sale"},
    )
    response = client.post("/api/v1/skills/get_sales_total/execute", json={"input": {}, "user_id": "u-1"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["error"] is None
    assert body["data"]["total_with_tax"] == 121.0
    assert body["data"]["period"]["start"] == "2025-03-01"


def test_execute_skill_business_failure_is_200(client: TestClient) -> None:
    response = client.post("/api/v1/skills/get_sales_by_customer/execute", json={"input": {"limit": 0}})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert body["data"] is None
    assert body["error"]["code"] == "VALIDATION_ERROR"


def test_execute_skill_for_unconfigured_tenant(client: TestClient, fake: FakeOdoo) -> None:
    response = client.post("/api/v1/skills/get_cash_balance/execute", json={"tenant_id": "other"})

    assert response.json()["error"]["code"] == "AUTH_ERROR"
    assert fake.requests == []


def test_execute_unknown_skill_is_404(client: TestClient) -> None:
    assert client.post("/api/v1/skills/nope/execute", json={}).status_code == 404


def test_odoo_health(client: TestClient, fake: FakeOdoo) -> None:
    response = client.get("/api/v1/integrations/odoo/health")
    assert response.json()["ok"] is True

    fake.reject_login = True
    body = client.get("/api/v1/integrations/odoo/health").json()
    assert (body["ok"], body["stage"]) == (False, "authentication")
    assert CREDENTIALS.secret not in body["message"]


def test_odoo_health_unconfigured_tenant(client: TestClient) -> None:
    body = client.get("/api/v1/integrations/odoo/health", params={"tenant_id": "other"}).json()
    assert (body["ok"], body["stage"]) == (False, "configuration")


def test_model_fields_are_cached(client: TestClient, fake: FakeOdoo) -> None:
    fake.fields["sale.order"] = {"amount_total": {"string": "Total", "type": "monetary"}}

    first = client.get("/api/v1/integrations/odoo/models/sale.order/fields")
    second = client.get("/api/v1/integrations/odoo/models/sale.order/fields")

    assert first.status_code == second.status_code == 200
    assert second.json() == {"amount_total": {"string": "Total", "type": "monetary"}}
    assert len(fake.calls_for("sale.order", "fields_get")) == 1


def test_model_fields_error_mapping(client: TestClient, fake: FakeOdoo) -> None:
    fake.fail_rpc("hr.payslip", "fields_get", "odoo.exceptions.AccessError", "payroll is restricted")
    response = client.get("/api/v1/integrations/odoo/models/hr.payslip/fields")

    assert response.status_code == 403
    assert response.json()["detail"]["code"] == "ACCESS_DENIED"


def test_model_fields_unconfigured_is_503(client: TestClient) -> None:
    response = client.get("/api/v1/integrations/odoo/models/sale.order/fields", params={"tenant_id": "other"})
    assert response.status_code == 503


def test_model_fields_malformed_envelope_is_502(client: TestClient, fake: FakeOdoo) -> None:
    fake.raw_bodies[("sale.order", "fields_get")] = ["not", "an", "object"]
    response = client.get("/api/v1/integrations/odoo/models/sale.order/fields")

    assert response.status_code == 502
    assert response.json()["detail"]["code"] == "API_ERROR"
