"""API 请求与响应数据模型定义。"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class SkillResponse(BaseModel):
    """技能元数据接口响应模型。"""
    name: str
    description: str
    tags: tuple[str, ...]
    priority: int
    integration: str
    input_schema: dict[str, Any]


class SkillExecuteRequest(BaseModel):
    """技能执行请求：input 原样交给技能校验。"""
    input: dict[str, Any] = Field(default_factory=dict)
    user_id: str = "anonymous"
    tenant_id: str | None = None


class SkillErrorBody(BaseModel):
    code: str
    message: str


class SkillExecuteResponse(BaseModel):
    """技能执行结果：成功时携带 data，失败时携带 error。"""
    success: bool
    data: dict[str, Any] | None = None
    error: SkillErrorBody | None = None


class HealthResponse(BaseModel):
    ok: bool
    stage: str
    message: str
