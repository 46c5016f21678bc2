"""日志上下文：基于 contextvars 透传 request/tenant/user/skill 标识。"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import Any, Iterator

_UNSET = object()

_request_id_var: ContextVar[str | None] = ContextVar("log_request_id", default=None)
_tenant_id_var: ContextVar[str | None] = ContextVar("log_tenant_id", default=None)
_user_id_var: ContextVar[str | None] = ContextVar("log_user_id", default=None)
_skill_var: ContextVar[str | None] = ContextVar("log_skill", default=None)

CONTEXT_KEYS = ("request_id", "tenant_id", "user_id", "skill")


def get_log_context() -> dict[str, str | None]:
    """返回当前协程/线程下的日志上下文字段。"""
    return {
        "request_id": _request_id_var.get(),
        "tenant_id": _tenant_id_var.get(),
        "user_id": _user_id_var.get(),
        "skill": _skill_var.get(),
    }


@contextmanager
def bind_log_context(
    *,
    request_id: str | None | object = _UNSET,
    tenant_id: str | None | object = _UNSET,
    user_id: str | None | object = _UNSET,
    skill: str | None | object = _UNSET,
) -> Iterator[None]:
    """在上下文范围内绑定日志字段，并在退出时自动恢复。"""
    tokens: list[tuple[ContextVar[Any], Token[Any]]] = []
    if request_id is not _UNSET:
        tokens.append((_request_id_var, _request_id_var.set(request_id)))
    if tenant_id is not _UNSET:
        tokens.append((_tenant_id_var, _tenant_id_var.set(tenant_id)))
    if user_id is not _UNSET:
        tokens.append((_user_id_var, _user_id_var.set(user_id)))
    if skill is not _UNSET:
        tokens.append((_skill_var, _skill_var.set(skill)))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)
