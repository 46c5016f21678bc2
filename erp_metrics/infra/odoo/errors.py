"""Odoo 调用异常类型与错误分类：按远端结构化错误名与 HTTP 状态码映射稳定错误码。"""

from __future__ import annotations

from typing import Any, Mapping

from erp_metrics.domain.enums import ErrorCode

_ACCESS_DENIED_NAMES = frozenset({"AccessDenied", "AccessError"})
_NOT_FOUND_NAMES = frozenset({"MissingError"})


class OdooError(RuntimeError):
    """Odoo 调用失败的基类，message 可安全展示，不包含凭据。"""
    code: ErrorCode = ErrorCode.api_error

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        remote_name: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.remote_name = remote_name


class OdooAuthError(OdooError):
    code = ErrorCode.auth_error


class OdooAccessDenied(OdooError):
    code = ErrorCode.access_denied


class OdooNotFound(OdooError):
    code = ErrorCode.not_found


class OdooTransportError(OdooError):
    """网络层失败或重试耗尽。"""
    code = ErrorCode.api_error


class OdooRpcError(OdooError):
    """远端返回的通用应用层错误。"""
    code = ErrorCode.api_error


def classify_rpc_error(error: Mapping[str, Any]) -> OdooError:
    """将 JSON-RPC error 对象映射为类型化异常；仅依据 data.name，不匹配消息文本。"""
    if not isinstance(error, Mapping):
        return OdooRpcError(f"Odoo error: {error}")
    data = error.get("data")
    if not isinstance(data, Mapping):
        data = {}
    remote_name = str(data.get("name") or "")
    detail = str(data.get("message") or error.get("message") or "unknown error")
    short_name = remote_name.rsplit(".", 1)[-1]
    if short_name in _ACCESS_DENIED_NAMES:
        return OdooAccessDenied(
            "You do not have permission to read this data in Odoo. "
            "Ask an administrator to grant the required access rights.",
            remote_name=remote_name,
        )
    if short_name in _NOT_FOUND_NAMES:
        return OdooNotFound(
            f"The requested record does not exist or is no longer available in Odoo. Detail: {detail}",
            remote_name=remote_name,
        )
    return OdooRpcError(f"Odoo error: {detail}", remote_name=remote_name or None)


def classify_http_status(status_code: int, url: str) -> OdooError:
    """将不可重试的 HTTP 状态码映射为类型化异常。"""
    if status_code == 401:
        return OdooAuthError(
            f"Odoo rejected the credentials (HTTP 401) at {url}.",
            status_code=status_code,
        )
    if status_code == 403:
        return OdooAccessDenied(
            f"Odoo denied access (HTTP 403) at {url}. Ask an administrator to review the user's permissions.",
            status_code=status_code,
        )
    return OdooRpcError(
        f"Could not talk to Odoo (HTTP {status_code}). Check that the URL is correct: {url}",
        status_code=status_code,
    )
