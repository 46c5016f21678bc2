"""API 总路由配置，按业务域注册 skills 与 integrations 子路由。"""

from __future__ import annotations

from fastapi import APIRouter

from erp_metrics.api.v1.integrations import router as integrations_router
from erp_metrics.api.v1.skills import router as skills_router
from erp_metrics.config import get_settings

settings = get_settings()

api_router = APIRouter(prefix=settings.api_prefix)
api_router.include_router(skills_router, tags=["skills"])
api_router.include_router(integrations_router, tags=["integrations"])
