"""全局配置加载模块：从环境变量构建运行参数并提供缓存访问。"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _csv_to_list(value: str) -> list[str]:
    """将逗号分隔字符串转换为去空白列表。"""
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """系统运行配置对象，从环境变量读取并提供类型化访问。"""
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "ERP Metrics Skills"
    api_prefix: str = "/api/v1"
    environment: str = "dev"

    # Credentials for the default tenant; multi-tenant deployments inject their own provider.
    default_tenant_id: str = "default"
    odoo_url: str | None = None
    odoo_db: str | None = None
    odoo_username: str | None = None
    odoo_api_key: str | None = None

    odoo_request_timeout_seconds: float = 30
    odoo_max_attempts: int = Field(default=3, ge=1)
    odoo_backoff_seconds: float = Field(default=1.0, ge=0)

    schema_cache_ttl_seconds: float = 15 * 60
    schema_cache_max_entries: int = 256
    skill_max_workers: int = Field(default=4, ge=1)

    log_dir: Path = Field(default=Path("./logs"))
    log_level: str = "INFO"
    log_debug_modules: str = ""
    log_redaction_mode: str = "standard"
    log_payload_preview_chars: int = 512
    log_max_bytes: int = 10 * 1024 * 1024
    log_backup_count: int = 5

    def log_debug_modules_list(self) -> list[str]:
        return _csv_to_list(self.log_debug_modules)

    def odoo_configured(self) -> bool:
        return all((self.odoo_url, self.odoo_db, self.odoo_username, self.odoo_api_key))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """构建并缓存 Settings。"""
    return Settings()
