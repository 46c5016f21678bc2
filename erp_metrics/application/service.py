"""指标服务门面：技能目录查询、按名执行技能与 Odoo 集成的运维探测。"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Callable, Mapping

from erp_metrics.config import Settings
from erp_metrics.domain.models import OdooCredentials, SkillContext, SkillResult
from erp_metrics.domain.skills.registry import SkillRegistry
from erp_metrics.infra.odoo.client import ClientFactory, HealthStatus
from erp_metrics.infra.odoo.schema_cache import SchemaCache

logger = logging.getLogger(__name__)

ODOO_INTEGRATION = "odoo"

CredentialsProvider = Callable[[str], Mapping[str, OdooCredentials]]


class IntegrationNotConfiguredError(LookupError):
    """租户未配置所需集成凭据。"""


def settings_credentials_provider(settings: Settings) -> CredentialsProvider:
    """基于环境配置的单租户凭据来源：仅默认租户拥有 Odoo 凭据。"""
    credentials: dict[str, OdooCredentials] = {}
    if settings.odoo_configured():
        credentials[ODOO_INTEGRATION] = OdooCredentials(
            url=str(settings.odoo_url),
            db=str(settings.odoo_db),
            username=str(settings.odoo_username),
            secret=str(settings.odoo_api_key),
        )

    def provide(tenant_id: str) -> Mapping[str, OdooCredentials]:
        if tenant_id != settings.default_tenant_id:
            return {}
        return dict(credentials)

    return provide


class MetricsService:
    """应用服务门面，对 API 层屏蔽注册中心、凭据来源与缓存细节。"""
    def __init__(
        self,
        *,
        settings: Settings,
        skill_registry: SkillRegistry,
        client_factory: ClientFactory,
        schema_cache: SchemaCache,
        credentials_provider: CredentialsProvider,
    ) -> None:
        self._settings = settings
        self._skill_registry = skill_registry
        self._client_factory = client_factory
        self._schema_cache = schema_cache
        self._credentials_provider = credentials_provider

    def list_skills(self, tag: str | None = None) -> list[dict[str, Any]]:
        return self._skill_registry.list_descriptors(tag=tag)

    def get_skill(self, name: str) -> dict[str, Any]:
        """返回指定技能的描述信息；未知名称抛出 KeyError。"""
        return asdict(self._skill_registry.get(name).descriptor())

    def execute_skill(
        self,
        name: str,
        raw_input: Mapping[str, Any] | None,
        *,
        user_id: str,
        tenant_id: str | None = None,
    ) -> SkillResult:
        """为本次调用构造上下文并执行技能；上下文不做任何持久化。"""
        tenant = tenant_id or self._settings.default_tenant_id
        context = SkillContext(
            user_id=user_id,
            tenant_id=tenant,
            credentials=self._credentials_provider(tenant),
        )
        return self._skill_registry.execute(name, raw_input, context)

    def _odoo_credentials(self, tenant_id: str | None) -> OdooCredentials:
        tenant = tenant_id or self._settings.default_tenant_id
        credentials = self._credentials_provider(tenant).get(ODOO_INTEGRATION)
        if credentials is None:
            raise IntegrationNotConfiguredError(f"Odoo is not configured for tenant '{tenant}'.")
        return credentials

    def odoo_health(self, tenant_id: str | None = None) -> HealthStatus:
        """三段式连通性探测；未配置凭据时直接返回失败状态。"""
        try:
            credentials = self._odoo_credentials(tenant_id)
        except IntegrationNotConfiguredError as exc:
            return HealthStatus(ok=False, stage="configuration", message=str(exc))
        with self._client_factory(credentials) as client:
            status = client.health_check()
        logger.info(
            "odoo health checked",
            extra={
                "event": "odoo.health.checked",
                "external_service": "odoo",
                "op": status.stage,
                "error": None if status.ok else status.message,
            },
        )
        return status

    def model_fields(self, model: str, tenant_id: str | None = None) -> dict[str, Any]:
        """读取模型字段定义，按 (url, db, model) 走 TTL 缓存。"""
        credentials = self._odoo_credentials(tenant_id)

        def load() -> dict[str, Any]:
            with self._client_factory(credentials) as client:
                return client.fields_get(model)

        return self._schema_cache.get_or_load((credentials.url, credentials.db, model), load)
