"""技能目录与执行接口：列出可用技能、查询元数据并按名执行。"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from erp_metrics.api.v1.schemas import SkillExecuteRequest, SkillExecuteResponse, SkillResponse
from erp_metrics.application.container import get_metrics_service
from erp_metrics.application.service import MetricsService

router = APIRouter()


def _service() -> MetricsService:
    """依赖注入辅助函数，返回指标服务实例。"""
    return get_metrics_service()


@router.get("/skills", response_model=list[SkillResponse])
def list_skills(
    tag: str | None = None,
    service: MetricsService = Depends(_service),
) -> list[SkillResponse]:
    """按可选标签过滤并返回技能列表。"""
    return [SkillResponse(**item) for item in service.list_skills(tag=tag)]


@router.get("/skills/{name}", response_model=SkillResponse)
def get_skill(
    name: str,
    service: MetricsService = Depends(_service),
) -> SkillResponse:
    try:
        return SkillResponse(**service.get_skill(name))
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"unknown skill: {name}") from exc


@router.post("/skills/{name}/execute", response_model=SkillExecuteResponse)
def execute_skill(
    name: str,
    payload: SkillExecuteRequest,
    service: MetricsService = Depends(_service),
) -> SkillExecuteResponse:
    """执行技能；业务失败以 success=false 返回，未知技能返回 404。"""
    try:
        service.get_skill(name)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"unknown skill: {name}") from exc
    result = service.execute_skill(name, payload.input, user_id=payload.user_id, tenant_id=payload.tenant_id)
    return SkillExecuteResponse(**result.to_dict())
