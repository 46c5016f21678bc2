"""统计周期模型与默认周期计算。"""

from __future__ import annotations

import calendar
from datetime import date, timedelta

from pydantic import BaseModel, model_validator

from erp_metrics.domain.filters import Domain, date_range


class Period(BaseModel):
    """闭区间统计周期，日期格式为 YYYY-MM-DD。"""
    model_config = {"frozen": True}

    start: date
    end: date
    label: str | None = None

    @model_validator(mode="after")
    def _check_order(self) -> "Period":
        if self.start > self.end:
            raise ValueError("period start must not be after period end")
        return self

    def display_label(self) -> str:
        return self.label or f"{self.start.isoformat()} to {self.end.isoformat()}"

    def as_domain(self, field: str, *, datetime_field: bool = False) -> Domain:
        """生成周期过滤；datetime 字段的结束边界补齐到当天最后一秒。"""
        end = self.end.isoformat()
        if datetime_field:
            return date_range(field, f"{self.start.isoformat()} 00:00:00", f"{end} 23:59:59")
        return date_range(field, self.start.isoformat(), end)


def month_period(year: int, month: int, label: str | None = None) -> Period:
    last_day = calendar.monthrange(year, month)[1]
    return Period(start=date(year, month, 1), end=date(year, month, last_day), label=label)


def current_month_period(today: date) -> Period:
    """返回 today 所在自然月。"""
    return month_period(today.year, today.month, label="This month")


def previous_month_period(today: date) -> Period:
    """返回 today 所在月份的上一个自然月。"""
    last_of_previous = today.replace(day=1) - timedelta(days=1)
    return month_period(last_of_previous.year, last_of_previous.month, label="Last month")
