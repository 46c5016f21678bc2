"""技能注册中心：管理技能实例注册、查询、描述汇总与按名执行。"""

from __future__ import annotations

from dataclasses import asdict
from datetime import date
from typing import Any, Callable, Mapping

from erp_metrics.domain.enums import ErrorCode
from erp_metrics.domain.models import SkillContext, SkillResult, failure
from erp_metrics.domain.skills.base import BaseSkill
from erp_metrics.domain.skills.comparison import CompareSalesPeriodsSkill
from erp_metrics.domain.skills.customers import SearchCustomersSkill
from erp_metrics.domain.skills.inventory import LowStockProductsSkill, SearchProductsSkill, StockValuationSkill
from erp_metrics.domain.skills.purchases import PurchasesBySupplierSkill, VendorBillsSkill
from erp_metrics.domain.skills.receivables import (
    AccountsReceivableSkill,
    ArAgingSkill,
    OverdueInvoicesSkill,
)
from erp_metrics.domain.skills.sales import SalesByCustomerSkill, SalesByProductSkill, SalesTotalSkill
from erp_metrics.domain.skills.treasury import CashBalanceSkill, PaymentsReceivedSkill
from erp_metrics.infra.odoo.client import ClientFactory
from erp_metrics.infra.odoo.fanout import DEFAULT_MAX_WORKERS

DEFAULT_SKILLS: tuple[type[BaseSkill], ...] = (
    SalesTotalSkill,
    SalesByCustomerSkill,
    SalesByProductSkill,
    CompareSalesPeriodsSkill,
    PaymentsReceivedSkill,
    AccountsReceivableSkill,
    ArAgingSkill,
    OverdueInvoicesSkill,
    CashBalanceSkill,
    StockValuationSkill,
    LowStockProductsSkill,
    PurchasesBySupplierSkill,
    VendorBillsSkill,
    SearchCustomersSkill,
    SearchProductsSkill,
)


class SkillRegistry:
    """技能注册中心，统一管理可选技能实例。"""
    def __init__(
        self,
        *,
        client_factory: ClientFactory | None = None,
        today: Callable[[], date] | None = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        skills: tuple[type[BaseSkill], ...] = DEFAULT_SKILLS,
    ) -> None:
        self._skills: dict[str, BaseSkill] = {}
        for skill_cls in skills:
            self.register(skill_cls(client_factory=client_factory, today=today, max_workers=max_workers))

    def register(self, skill: BaseSkill) -> None:
        """注册技能实例；名称重复时拒绝覆盖。"""
        if skill.name in self._skills:
            raise ValueError(f"skill already registered: {skill.name}")
        self._skills[skill.name] = skill

    def get(self, name: str) -> BaseSkill:
        try:
            return self._skills[name]
        except KeyError as exc:
            raise KeyError(f"unknown skill: {name}") from exc

    def find(self, name: str) -> BaseSkill | None:
        return self._skills.get(name)

    def all(self) -> list[BaseSkill]:
        return list(self._skills.values())

    def list_descriptors(self, tag: str | None = None) -> list[dict[str, Any]]:
        """返回技能描述信息，是路由层唯一可依赖的契约；可按标签过滤。"""
        return [
            asdict(skill.descriptor())
            for skill in self._skills.values()
            if tag is None or tag in skill.tags
        ]

    def execute(self, name: str, raw_input: Mapping[str, Any] | None, context: SkillContext) -> SkillResult:
        """按名称执行技能；未注册的名称返回 NOT_FOUND 失败结果。"""
        skill = self.find(name)
        if skill is None:
            return failure(ErrorCode.not_found, f"Unknown skill '{name}'.")
        return skill.execute(raw_input, context)
