"""技能抽象基类：约束元信息、输入契约与统一的执行边界。

execute 是技能对外唯一入口，负责凭据检查、输入校验、客户端生命周期与异常归一；
子类只实现 run，在其中构造 domain、发起查询并组装输出模型。
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Callable, ClassVar, Mapping

from pydantic import BaseModel, ValidationError

from erp_metrics.domain.enums import ErrorCode
from erp_metrics.domain.models import OdooCredentials, SkillContext, SkillDescriptor, SkillResult, failure, success
from erp_metrics.domain.periods import Period, current_month_period
from erp_metrics.infra.logging.context import bind_log_context
from erp_metrics.infra.odoo.client import ClientFactory, OdooClient
from erp_metrics.infra.odoo.errors import OdooError
from erp_metrics.infra.odoo.fanout import DEFAULT_MAX_WORKERS, fan_out

logger = logging.getLogger(__name__)


def _format_validation_error(skill_name: str, exc: ValidationError) -> str:
    """将 pydantic 校验错误压缩为一行可展示文本。"""
    details = []
    for item in exc.errors():
        location = ".".join(str(part) for part in item.get("loc", ())) or "input"
        details.append(f"{location}: {item.get('msg', 'invalid value')}")
    return f"Invalid input for {skill_name}: " + "; ".join(details)


class BaseSkill(ABC):
    """技能抽象基类，定义各技能必须声明的元信息与执行接口。"""
    name: ClassVar[str]
    description: ClassVar[str] = ""
    tags: ClassVar[tuple[str, ...]] = ()
    priority: ClassVar[int] = 10
    integration: ClassVar[str] = "odoo"
    input_model: ClassVar[type[BaseModel]]

    def __init__(
        self,
        *,
        client_factory: ClientFactory | None = None,
        today: Callable[[], date] | None = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ) -> None:
        self._client_factory: ClientFactory = client_factory or OdooClient
        self._today = today or date.today
        self._max_workers = max_workers

    @abstractmethod
    def run(self, params: Any, client: OdooClient) -> BaseModel:
        """执行查询并返回类型化输出；Odoo 异常直接抛出，由 execute 统一转换。"""

    @property
    def max_workers(self) -> int:
        return self._max_workers

    def today(self) -> date:
        return self._today()

    def default_period(self, period: Period | None) -> Period:
        """未指定周期时默认取调用时刻所在自然月。"""
        return period or current_month_period(self.today())

    def fan_out(self, *calls: Callable[[], Any]) -> list[Any]:
        return fan_out(*calls, max_workers=self._max_workers)

    def descriptor(self) -> SkillDescriptor:
        """返回技能描述对象，包含输入 JSON Schema。"""
        return SkillDescriptor(
            name=self.name,
            description=self.description,
            tags=tuple(self.tags),
            priority=self.priority,
            integration=self.integration,
            input_schema=self.input_model.model_json_schema(),
        )

    def execute(self, raw_input: Mapping[str, Any] | None, context: SkillContext) -> SkillResult:
        """校验输入并执行技能；任何异常都被转换为失败结果，不会越过该边界。"""
        with bind_log_context(skill=self.name, tenant_id=context.tenant_id, user_id=context.user_id):
            credentials = context.credentials.get(self.integration)
            if credentials is None:
                return self._fail(
                    ErrorCode.auth_error,
                    f"No credentials configured for the '{self.integration}' integration. "
                    "Ask an administrator to connect it before using this skill.",
                    started=time.perf_counter(),
                )
            started = time.perf_counter()
            try:
                params = self.input_model.model_validate(dict(raw_input or {}))
            except ValidationError as exc:
                return self._fail(ErrorCode.validation_error, _format_validation_error(self.name, exc), started=started)
            return self._run_with_client(params, credentials, started)

    def _run_with_client(self, params: BaseModel, credentials: OdooCredentials, started: float) -> SkillResult:
        client: OdooClient | None = None
        try:
            client = self._client_factory(credentials)
            output = self.run(params, client)
        except OdooError as exc:
            return self._fail(exc.code, exc.message, started=started)
        except Exception as exc:
            logger.exception(
                "skill raised unexpected error",
                extra={
                    "event": "skill.execute.crashed",
                    "error_type": type(exc).__name__,
                },
            )
            return self._fail(
                ErrorCode.api_error,
                f"Unexpected error while running {self.name}: {type(exc).__name__}",
                started=started,
            )
        finally:
            if client is not None:
                client.close()
        logger.info(
            "skill executed",
            extra={
                "event": "skill.execute.succeeded",
                "op": self.name,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        return success(output)

    def _fail(self, code: ErrorCode, message: str, *, started: float) -> SkillResult:
        logger.warning(
            "skill failed",
            extra={
                "event": "skill.execute.failed",
                "op": self.name,
                "error_code": code.value,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                "error": message,
            },
        )
        return failure(code, message)
