"""集成运维接口：Odoo 连通性探测与模型字段查询。"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from erp_metrics.api.v1.schemas import HealthResponse
from erp_metrics.application.container import get_metrics_service
from erp_metrics.application.service import IntegrationNotConfiguredError, MetricsService
from erp_metrics.domain.enums import ErrorCode
from erp_metrics.infra.odoo.errors import OdooError

router = APIRouter(prefix="/integrations/odoo")

_STATUS_BY_CODE = {
    ErrorCode.auth_error: 401,
    ErrorCode.access_denied: 403,
    ErrorCode.not_found: 404,
}


def _service() -> MetricsService:
    return get_metrics_service()


@router.get("/health", response_model=HealthResponse)
def odoo_health(
    tenant_id: str | None = None,
    service: MetricsService = Depends(_service),
) -> HealthResponse:
    """返回三段式探测结果；探测失败不视为接口错误。"""
    status = service.odoo_health(tenant_id=tenant_id)
    return HealthResponse(ok=status.ok, stage=status.stage, message=status.message)


@router.get("/models/{model}/fields")
def model_fields(
    model: str,
    tenant_id: str | None = None,
    service: MetricsService = Depends(_service),
) -> dict[str, Any]:
    """返回模型字段定义（带缓存）。"""
    try:
        return service.model_fields(model, tenant_id=tenant_id)
    except IntegrationNotConfiguredError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except OdooError as exc:
        raise HTTPException(
            status_code=_STATUS_BY_CODE.get(exc.code, 502),
            detail={"code": exc.code.value, "message": exc.message},
        ) from exc
