"""Odoo 客户端测试：重试策略、鉴权缓存、错误分类与健康探测。"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import httpx
import pytest

from erp_metrics.domain.enums import ErrorCode
from erp_metrics.infra.odoo.client import OdooClient
from erp_metrics.infra.odoo.errors import (
    OdooAccessDenied,
    OdooAuthError,
    OdooError,
    OdooNotFound,
    OdooRpcError,
    OdooTransportError,
    classify_rpc_error,
)
from fake_odoo import CREDENTIALS, FakeOdoo


def test_retries_transient_502_then_succeeds(fake: FakeOdoo) -> None:
    """两次 502 后成功：共 3 次请求，退避 1s + 2s。"""
    fake.http_failures = [502, 502]
    client = fake.client()

    assert client.call("common", "version") == {"server_version": "17.0"}
    assert len(fake.requests) == 3
    assert fake.sleeps == [1.0, 2.0]


def test_403_fails_immediately(fake: FakeOdoo) -> None:
    fake.http_failures = [403]
    client = fake.client()

    with pytest.raises(OdooAccessDenied) as exc_info:
        client.call("common", "version")
    assert len(fake.requests) == 1
    assert fake.sleeps == []
    assert exc_info.value.code is ErrorCode.access_denied


def test_429_and_connection_errors_are_retried(fake: FakeOdoo) -> None:
    fake.http_failures = [429, httpx.ConnectError("connection refused")]
    client = fake.client()

    client.call("common", "version")
    assert len(fake.requests) == 3
    assert fake.sleeps == [1.0, 2.0]


def test_retries_exhausted_maps_to_api_error(fake: FakeOdoo) -> None:
    fake.http_failures = [503, 503, 503]
    client = fake.client()

    with pytest.raises(OdooTransportError) as exc_info:
        client.call("common", "version")
    assert len(fake.requests) == 3
    assert fake.sleeps == [1.0, 2.0]
    assert exc_info.value.code is ErrorCode.api_error
    assert exc_info.value.status_code == 503


@pytest.mark.parametrize(("status", "error_type"), [(400, OdooRpcError), (404, OdooRpcError), (500, OdooRpcError)])
def test_other_client_and_server_errors_are_terminal(fake: FakeOdoo, status: int, error_type: type) -> None:
    fake.http_failures = [status]
    client = fake.client()

    with pytest.raises(error_type):
        client.call("common", "version")
    assert len(fake.requests) == 1


def test_backoff_is_configurable(fake: FakeOdoo) -> None:
    fake.http_failures = [502, 502, 502, 502]
    client = fake.client(max_attempts=5, backoff_seconds=0.5)

    client.call("common", "version")
    assert fake.sleeps == [0.5, 1.0, 1.5, 2.0]


def test_authentication_is_cached(fake: FakeOdoo) -> None:
    """同一实例连续两次调用只触发一次鉴权。"""
    fake.add("res.partner", {"name": "Acme"})
    client = fake.client()

    client.search_count("res.partner")
    client.search_read("res.partner", fields=["name"])
    assert fake.auth_requests() == 1


def test_rejected_login_names_db_and_user_but_not_secret(fake: FakeOdoo) -> None:
    fake.reject_login = True
    client = fake.client()

    with pytest.raises(OdooAuthError) as exc_info:
        client.search_count("res.partner")
    message = exc_info.value.message
    assert CREDENTIALS.db in message
    assert CREDENTIALS.username in message
    assert CREDENTIALS.secret not in message


def test_auth_transport_failure_is_auth_error(fake: FakeOdoo) -> None:
    fake.http_failures = [502, 502, 502]
    client = fake.client()

    with pytest.raises(OdooAuthError):
        client.authenticate()


@pytest.mark.parametrize(
    ("remote_name", "error_type", "code"),
    [
        ("odoo.exceptions.AccessError", OdooAccessDenied, ErrorCode.access_denied),
        ("odoo.exceptions.AccessDenied", OdooAccessDenied, ErrorCode.access_denied),
        ("odoo.exceptions.MissingError", OdooNotFound, ErrorCode.not_found),
        ("odoo.exceptions.ValidationError", OdooRpcError, ErrorCode.api_error),
        ("builtins.ValueError", OdooRpcError, ErrorCode.api_error),
    ],
)
def test_rpc_errors_are_classified_by_remote_name(
    fake: FakeOdoo, remote_name: str, error_type: type, code: ErrorCode
) -> None:
    """应用层错误不重试，并按 data.name 映射错误码。"""
    fake.fail_rpc("sale.order", "search_read", remote_name, "access to sale.order refused")
    client = fake.client()

    with pytest.raises(error_type) as exc_info:
        client.search_read("sale.order")
    assert exc_info.value.code is code
    assert fake.sleeps == []
    assert len(fake.calls_for("sale.order", "search_read")) == 1


def test_error_message_falls_back_to_top_level_message() -> None:
    error = classify_rpc_error({"code": 200, "message": "Odoo Server Error"})
    assert isinstance(error, OdooRpcError)
    assert "Odoo Server Error" in error.message


def test_search_read_sends_defaults(fake: FakeOdoo) -> None:
    client = fake.client()
    client.search_read("res.partner", [("active", "=", True)])

    call = fake.calls_for("res.partner", "search_read")[0]
    assert call["args"] == [[["active", "=", True]]]
    assert call["kwargs"] == {"fields": [], "limit": 50, "offset": 0}


def test_read_group_sends_defaults(fake: FakeOdoo) -> None:
    client = fake.client()
    client.read_group("sale.order", [], ["amount_total:sum"], ["partner_id"])

    kwargs = fake.calls_for("sale.order", "read_group")[0]["kwargs"]
    assert kwargs == {
        "fields": ["amount_total:sum"],
        "groupby": ["partner_id"],
        "limit": 80,
        "offset": 0,
        "lazy": True,
    }


def test_read_and_fields_get(fake: FakeOdoo) -> None:
    fake.add("product.product", {"id": 5, "name": "Chair", "default_code": "CH-1"})
    fake.fields["product.product"] = {"name": {"string": "Name", "type": "char"}}
    client = fake.client()

    assert client.read("product.product", [5], ["default_code"]) == [{"id": 5, "default_code": "CH-1"}]
    assert client.fields_get("product.product") == {"name": {"string": "Name", "type": "char"}}
    assert fake.calls_for("product.product", "fields_get")[0]["kwargs"] == {
        "attributes": ["string", "type", "relation"]
    }


def test_health_check_stages(fake: FakeOdoo) -> None:
    assert fake.client().health_check().ok is True

    fake.reject_login = True
    status = fake.client().health_check()
    assert (status.ok, status.stage) == (False, "authentication")

    fake.reject_login = False
    fake.fail_rpc("res.partner", "search_count", "odoo.exceptions.AccessError")
    status = fake.client().health_check()
    assert (status.ok, status.stage) == (False, "read")

    fake.http_failures = [502, 502, 502]
    status = fake.client().health_check()
    assert (status.ok, status.stage) == (False, "reachability")


def test_closed_client_refuses_calls(fake: FakeOdoo) -> None:
    with fake.client() as client:
        client.call("common", "version")
    assert client.closed
    with pytest.raises(RuntimeError):
        client.call("common", "version")


def test_all_odoo_errors_share_base_class() -> None:
    for error_type in (OdooAccessDenied, OdooAuthError, OdooNotFound, OdooRpcError, OdooTransportError):
        assert issubclass(error_type, OdooError)


def _client_returning(payload: object) -> OdooClient:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=payload))
    return OdooClient(CREDENTIALS, transport=transport, sleep=lambda _: None)


@pytest.mark.parametrize("payload", [["not", "an", "object"], None, "ok", 42])
def test_non_object_envelope_is_rpc_error(payload: object) -> None:
    with _client_returning(payload) as client:
        with pytest.raises(OdooRpcError, match="malformed"):
            client.call("common", "version")


@pytest.mark.parametrize(
    "error",
    [
        {"code": 200, "message": "Odoo Server Error", "data": "boom"},
        {"code": 200, "message": "Odoo Server Error", "data": ["boom"]},
        "boom",
    ],
)
def test_error_with_unexpected_shape_is_rpc_error(error: object) -> None:
    with _client_returning({"jsonrpc": "2.0", "id": 1, "error": error}) as client:
        with pytest.raises(OdooRpcError) as exc_info:
            client.call("common", "version")
    assert exc_info.value.code is ErrorCode.api_error


def test_health_check_reports_malformed_envelope() -> None:
    """畸形响应同样只体现在探测结果中，不向外抛出。"""
    with _client_returning(["not", "an", "object"]) as client:
        status = client.health_check()
    assert (status.ok, status.stage) == (False, "reachability")


def test_concurrent_first_calls_authenticate_once(fake: FakeOdoo) -> None:
    """同一实例上并发的首次调用只触发一次鉴权请求。"""
    fake.add("res.partner", {"name": "Acme"})
    client = fake.client()
    workers = 8
    barrier = threading.Barrier(workers)

    def count() -> int:
        barrier.wait()
        return client.search_count("res.partner")

    with ThreadPoolExecutor(max_workers=workers) as pool:
        counts = list(pool.map(lambda _: count(), range(workers)))

    assert counts == [1] * workers
    assert fake.auth_requests() == 1
    assert len(fake.calls_for("res.partner", "search_count")) == workers
