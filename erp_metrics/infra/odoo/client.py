"""Odoo JSON-RPC 客户端：封装会话鉴权缓存、瞬时故障重试与只读查询接口。"""

from __future__ import annotations

import itertools
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Sequence

import httpx

from erp_metrics.domain.filters import DomainItem
from erp_metrics.domain.models import OdooCredentials
from erp_metrics.infra.odoo.errors import (
    OdooAuthError,
    OdooError,
    OdooRpcError,
    OdooTransportError,
    classify_http_status,
    classify_rpc_error,
)

logger = logging.getLogger(__name__)

JSONRPC_PATH = "/jsonrpc"
DEFAULT_FIELD_ATTRIBUTES = ("string", "type", "relation")


def _is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 502


@dataclass(slots=True)
class HealthStatus:
    """连通性探测结果；stage 标识最后执行（或失败）的阶段。"""
    ok: bool
    stage: str
    message: str


class OdooClient:
    """Odoo 同步 JSON-RPC 客户端，一个实例只对应一组凭据与一个缓存的 uid。"""
    def __init__(
        self,
        credentials: OdooCredentials,
        *,
        timeout_seconds: float = 30,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._credentials = credentials
        self._base_url = credentials.url.rstrip("/")
        self._max_attempts = max(1, max_attempts)
        self._backoff_seconds = backoff_seconds
        self._sleep = sleep
        self._uid: int | None = None
        self._uid_lock = threading.Lock()
        self._request_ids = itertools.count(1)
        self._closed = False
        self._client = httpx.Client(
            base_url=self._base_url,
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
        )

    @property
    def credentials(self) -> OdooCredentials:
        return self._credentials

    @property
    def closed(self) -> bool:
        return self._closed

    def _client_or_raise(self) -> httpx.Client:
        """返回可用客户端；若已关闭则抛出异常。"""
        if self._closed:
            raise RuntimeError("OdooClient is already closed")
        return self._client

    def close(self) -> None:
        """关闭底层 HTTP 客户端连接池。"""
        if self._closed:
            return
        self._client.close()
        self._closed = True

    def __enter__(self) -> "OdooClient":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    def _log_failure(
        self,
        *,
        op: str,
        attempt: int,
        started: float,
        status_code: int | None,
        error: BaseException | str,
        will_retry: bool,
    ) -> None:
        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        logger.log(
            logging.WARNING if will_retry else logging.ERROR,
            "odoo request retrying" if will_retry else "odoo request failed",
            extra={
                "event": "odoo.request.retrying" if will_retry else "odoo.request.failed",
                "external_service": "odoo",
                "op": op,
                "duration_ms": duration_ms,
                "status_code": status_code,
                "retry": attempt,
                "error_type": type(error).__name__ if isinstance(error, BaseException) else "HTTPStatus",
                "error": str(error),
                "payload_preview": {"url": self._base_url, "db": self._credentials.db},
            },
        )

    def call(self, service: str, method: str, *args: Any) -> Any:
        """执行一次 JSON-RPC 调用。

        对 HTTP 429、HTTP >= 502 与网络层异常最多尝试 max_attempts 次，
        第 n 次失败后等待 n * backoff_seconds；远端返回的应用层错误不重试。
        """
        op = f"{service}.{method}"
        payload = {
            "jsonrpc": "2.0",
            "method": "call",
            "params": {"service": service, "method": method, "args": list(args)},
            "id": next(self._request_ids),
        }
        for attempt in range(1, self._max_attempts + 1):
            will_retry = attempt < self._max_attempts
            started = time.perf_counter()
            try:
                response = self._client_or_raise().post(JSONRPC_PATH, json=payload)
            except httpx.TransportError as exc:
                self._log_failure(
                    op=op, attempt=attempt, started=started, status_code=None, error=exc, will_retry=will_retry
                )
                if will_retry:
                    self._sleep(attempt * self._backoff_seconds)
                    continue
                raise OdooTransportError(
                    f"Cannot connect to the Odoo server at {self._base_url}. "
                    "Check that the URL is correct and the server is running."
                ) from exc

            status_code = response.status_code
            if _is_retryable_status(status_code):
                self._log_failure(
                    op=op,
                    attempt=attempt,
                    started=started,
                    status_code=status_code,
                    error=f"HTTP {status_code}",
                    will_retry=will_retry,
                )
                if will_retry:
                    self._sleep(attempt * self._backoff_seconds)
                    continue
                raise OdooTransportError(
                    f"Odoo is not available right now (HTTP {status_code}) after {attempt} attempts. "
                    "It may be down or under maintenance; try again later.",
                    status_code=status_code,
                )
            if status_code >= 400:
                error = classify_http_status(status_code, self._base_url)
                self._log_failure(
                    op=op, attempt=attempt, started=started, status_code=status_code, error=error, will_retry=False
                )
                raise error

            try:
                body = response.json()
            except ValueError as exc:
                raise OdooRpcError(f"Odoo returned a response that is not JSON ({op}).") from exc
            if not isinstance(body, dict):
                error = OdooRpcError(f"Odoo returned a malformed JSON-RPC envelope ({op}).", status_code=status_code)
                self._log_failure(
                    op=op, attempt=attempt, started=started, status_code=status_code, error=error, will_retry=False
                )
                raise error
            if body.get("error"):
                error = classify_rpc_error(body["error"])
                self._log_failure(
                    op=op, attempt=attempt, started=started, status_code=status_code, error=error, will_retry=False
                )
                raise error
            return body.get("result")
        raise OdooTransportError(f"Odoo did not respond after {self._max_attempts} attempts.")

    def authenticate(self) -> int:
        """返回缓存的 uid；首次调用时通过 common.authenticate 建立身份。"""
        if self._uid is not None:
            return self._uid
        with self._uid_lock:
            # 并发扇出时只允许一个线程发起鉴权请求。
            if self._uid is not None:
                return self._uid
            creds = self._credentials
            try:
                uid = self.call("common", "authenticate", creds.db, creds.username, creds.secret, {})
            except OdooError as exc:
                raise OdooAuthError(
                    f"Odoo authentication failed for user '{creds.username}' on database '{creds.db}': {exc.message}",
                    status_code=exc.status_code,
                ) from exc
            if not uid:
                raise OdooAuthError(
                    f"Odoo rejected the login for user '{creds.username}' on database '{creds.db}'. "
                    "Check that the user exists, the API key is valid and the user is active."
                )
            self._uid = int(uid)
            logger.info(
                "odoo session established",
                extra={"event": "odoo.auth.succeeded", "external_service": "odoo", "op": "common.authenticate"},
            )
            return self._uid

    def execute_kw(
        self,
        model: str,
        method: str,
        args: Sequence[Any] | None = None,
        kwargs: dict[str, Any] | None = None,
    ) -> Any:
        """以当前身份调用模型方法。"""
        uid = self.authenticate()
        creds = self._credentials
        return self.call(
            "object",
            "execute_kw",
            creds.db,
            uid,
            creds.secret,
            model,
            method,
            list(args or []),
            dict(kwargs or {}),
        )

    def search_read(
        self,
        model: str,
        domain: Sequence[DomainItem] = (),
        *,
        fields: Sequence[str] | None = None,
        limit: int | None = 50,
        offset: int = 0,
        order: str | None = None,
    ) -> list[dict[str, Any]]:
        """按 domain 查询记录行。"""
        kwargs: dict[str, Any] = {"fields": list(fields or []), "limit": limit, "offset": offset}
        if order:
            kwargs["order"] = order
        return list(self.execute_kw(model, "search_read", [list(domain)], kwargs) or [])

    def read_group(
        self,
        model: str,
        domain: Sequence[DomainItem] = (),
        fields: Sequence[str] = (),
        groupby: Sequence[str] = (),
        *,
        limit: int | None = 80,
        offset: int = 0,
        orderby: str | None = None,
        lazy: bool = True,
    ) -> list[dict[str, Any]]:
        """服务端分组聚合；limit 只限制返回的分组数，limit=None 表示返回全部分组。"""
        kwargs: dict[str, Any] = {
            "fields": list(fields),
            "groupby": list(groupby),
            "limit": limit,
            "offset": offset,
            "lazy": lazy,
        }
        if orderby:
            kwargs["orderby"] = orderby
        return list(self.execute_kw(model, "read_group", [list(domain)], kwargs) or [])

    def search_count(self, model: str, domain: Sequence[DomainItem] = ()) -> int:
        return int(self.execute_kw(model, "search_count", [list(domain)]) or 0)

    def read(self, model: str, ids: Sequence[int], fields: Sequence[str] | None = None) -> list[dict[str, Any]]:
        return list(self.execute_kw(model, "read", [list(ids)], {"fields": list(fields or [])}) or [])

    def fields_get(
        self,
        model: str,
        attributes: Sequence[str] = DEFAULT_FIELD_ATTRIBUTES,
    ) -> dict[str, Any]:
        """读取模型字段定义，供发现类工具使用。"""
        return dict(self.execute_kw(model, "fields_get", [], {"attributes": list(attributes)}) or {})

    def health_check(self) -> HealthStatus:
        """三段式探测：可达性、鉴权、最小读取；不抛异常。"""
        try:
            self.call("common", "version")
        except OdooError as exc:
            return HealthStatus(
                ok=False,
                stage="reachability",
                message=f"Cannot reach Odoo at {self._base_url}: {exc.message}",
            )
        try:
            self.authenticate()
        except OdooError as exc:
            return HealthStatus(ok=False, stage="authentication", message=exc.message)
        try:
            self.search_count("res.partner", [])
        except OdooError as exc:
            return HealthStatus(ok=False, stage="read", message=f"Authenticated, but a basic read failed: {exc.message}")
        return HealthStatus(
            ok=True,
            stage="ok",
            message=f"Connected to Odoo ({self._credentials.db} @ {self._base_url})",
        )


ClientFactory = Callable[[OdooCredentials], OdooClient]
