"""依赖容器模块（组合根）：单例化创建注册中心、字段缓存、客户端工厂与应用服务。"""

from __future__ import annotations

from functools import lru_cache, partial

from erp_metrics.application.service import CredentialsProvider, MetricsService, settings_credentials_provider
from erp_metrics.config import get_settings
from erp_metrics.domain.skills.registry import SkillRegistry
from erp_metrics.infra.odoo.client import ClientFactory, OdooClient
from erp_metrics.infra.odoo.schema_cache import SchemaCache


@lru_cache(maxsize=1)
def get_client_factory() -> ClientFactory:
    """获取 Odoo 客户端工厂；每次技能执行按租户凭据新建客户端。"""
    settings = get_settings()
    return partial(
        OdooClient,
        timeout_seconds=settings.odoo_request_timeout_seconds,
        max_attempts=settings.odoo_max_attempts,
        backoff_seconds=settings.odoo_backoff_seconds,
    )


@lru_cache(maxsize=1)
def get_schema_cache() -> SchemaCache:
    """获取模型字段缓存单例；缓存归组合根所有，不在模块级保存。"""
    settings = get_settings()
    return SchemaCache(
        ttl_seconds=settings.schema_cache_ttl_seconds,
        max_entries=settings.schema_cache_max_entries,
    )


@lru_cache(maxsize=1)
def get_skill_registry() -> SkillRegistry:
    settings = get_settings()
    return SkillRegistry(client_factory=get_client_factory(), max_workers=settings.skill_max_workers)


@lru_cache(maxsize=1)
def get_credentials_provider() -> CredentialsProvider:
    return settings_credentials_provider(get_settings())


@lru_cache(maxsize=1)
def get_metrics_service() -> MetricsService:
    """获取指标服务单例。"""
    return MetricsService(
        settings=get_settings(),
        skill_registry=get_skill_registry(),
        client_factory=get_client_factory(),
        schema_cache=get_schema_cache(),
        credentials_provider=get_credentials_provider(),
    )


def shutdown_container_resources() -> None:
    """清空字段缓存并清理依赖容器缓存，确保后续请求重新构建全新实例。"""
    if get_schema_cache.cache_info().currsize:
        get_schema_cache().invalidate()
    for provider in (
        get_metrics_service,
        get_credentials_provider,
        get_skill_registry,
        get_schema_cache,
        get_client_factory,
    ):
        provider.cache_clear()
