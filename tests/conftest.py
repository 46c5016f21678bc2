"""公共测试夹具：内存 Odoo、技能上下文与固定日期。"""

from __future__ import annotations

import pytest

from erp_metrics.domain.models import SkillContext
from fake_odoo import CREDENTIALS, TODAY, FakeOdoo


@pytest.fixture
def fake() -> FakeOdoo:
    return FakeOdoo()


@pytest.fixture
def context() -> SkillContext:
    return SkillContext(user_id="u-1", tenant_id="default", credentials={"odoo": CREDENTIALS})


@pytest.fixture
def skill_kwargs(fake: FakeOdoo) -> dict:
    """构造技能所需的注入参数：假客户端工厂与固定今天。"""
    return {"client_factory": fake.client_factory, "today": lambda: TODAY}
