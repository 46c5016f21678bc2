"""领域数据结构定义：凭据、技能上下文、技能描述与执行结果等核心值对象。"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Mapping, Union

from pydantic import BaseModel

from erp_metrics.domain.enums import ErrorCode


@dataclass(frozen=True, slots=True)
class OdooCredentials:
    """单租户 Odoo 连接凭据，不可变且不跨租户共享。"""
    url: str
    db: str
    username: str
    secret: str = field(repr=False)


@dataclass(frozen=True, slots=True)
class SkillContext:
    """技能执行上下文，按调用构造，不做持久化。"""
    user_id: str
    tenant_id: str
    credentials: Mapping[str, OdooCredentials] = field(default_factory=dict)


@dataclass(slots=True)
class SkillDescriptor:
    """技能元信息描述对象，是路由层唯一可依赖的契约。"""
    name: str
    description: str
    tags: tuple[str, ...]
    priority: int
    integration: str
    input_schema: dict[str, Any]


@dataclass(frozen=True, slots=True)
class SkillError:
    """失败结果中的错误信息，message 可直接展示给用户。"""
    code: ErrorCode
    message: str


@dataclass(frozen=True, slots=True)
class SkillSuccess:
    """技能成功结果，携带类型化输出。"""
    data: BaseModel
    success: Literal[True] = True

    def to_dict(self) -> dict[str, Any]:
        return {"success": True, "data": self.data.model_dump(mode="json")}


@dataclass(frozen=True, slots=True)
class SkillFailure:
    """技能失败结果，携带稳定错误码与可展示信息。"""
    error: SkillError
    success: Literal[False] = False

    def to_dict(self) -> dict[str, Any]:
        return {"success": False, "error": {"code": self.error.code.value, "message": self.error.message}}


SkillResult = Union[SkillSuccess, SkillFailure]


def success(data: BaseModel) -> SkillSuccess:
    return SkillSuccess(data=data)


def failure(code: ErrorCode, message: str) -> SkillFailure:
    return SkillFailure(error=SkillError(code=code, message=message))
