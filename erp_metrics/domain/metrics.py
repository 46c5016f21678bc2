"""指标派生公共算法：变化率、趋势判定、账龄分桶与加权平均账龄。

所有舍入均使用 Decimal 的 ROUND_HALF_UP，避免二进制浮点在 .5 边界上的漂移。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from erp_metrics.domain.enums import Trend

TREND_THRESHOLD = 5.0

AGING_BUCKETS: tuple[tuple[str, int | None], ...] = (
    ("0-30", 30),
    ("31-60", 60),
    ("61-90", 90),
    ("90+", None),
)


def _dec(value: float | int | Decimal) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def money(value: float | int | Decimal) -> float:
    """金额统一保留两位小数。"""
    return float(_dec(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def safe_ratio(numerator: float | int, denominator: float | int) -> float:
    """分母为零时返回 0，避免平均值计算抛异常。"""
    if not denominator:
        return 0.0
    return float(_dec(numerator) / _dec(denominator))


def percent_change(current: float | int, previous: float | int) -> float | None:
    """计算百分比变化，保留一位小数。

    previous 为 0 时：current > 0 记为 100，否则变化未定义返回 None。
    """
    if previous == 0:
        return 100.0 if current > 0 else None
    change = (_dec(current) - _dec(previous)) / _dec(previous) * 100
    return float(change.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def classify_trend(change: float | None) -> Trend:
    """按 ±5% 阈值判定趋势；变化未定义视为持平。"""
    if change is None:
        return Trend.stable
    if change > TREND_THRESHOLD:
        return Trend.up
    if change < -TREND_THRESHOLD:
        return Trend.down
    return Trend.stable


def age_in_days(reference: date, today: date) -> int:
    return (today - reference).days


def bucket_label(age_days: int) -> str:
    """返回账龄所属分桶；未来日期（负账龄）归入 0-30。"""
    for label, upper in AGING_BUCKETS:
        if upper is None or age_days <= upper:
            return label
    return AGING_BUCKETS[-1][0]


def weighted_average_age(items: Iterable[tuple[float, int]]) -> int:
    """按金额加权的平均账龄：sum(age * amount) / sum(amount)，四舍五入到天。"""
    weighted = Decimal(0)
    total = Decimal(0)
    for amount, age_days in items:
        amount_dec = _dec(amount)
        weighted += amount_dec * age_days
        total += amount_dec
    if total == 0:
        return 0
    return int((weighted / total).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(slots=True)
class AgingBucket:
    """单个账龄分桶的统计值。"""
    label: str
    count: int = 0
    amount: float = 0.0


@dataclass(slots=True)
class AgingSummary:
    """账龄分析汇总。"""
    buckets: list[AgingBucket] = field(default_factory=list)
    total_amount: float = 0.0
    count: int = 0
    average_age_days: int = 0


def bucket_aging(items: Iterable[tuple[float, int]]) -> AgingSummary:
    """将 (金额, 账龄天数) 列表归入 0-30/31-60/61-90/90+ 四个分桶。"""
    pairs = list(items)
    amounts: dict[str, Decimal] = {label: Decimal(0) for label, _ in AGING_BUCKETS}
    counts: dict[str, int] = {label: 0 for label, _ in AGING_BUCKETS}
    total = Decimal(0)
    for amount, age_days in pairs:
        label = bucket_label(age_days)
        amounts[label] += _dec(amount)
        counts[label] += 1
        total += _dec(amount)
    return AgingSummary(
        buckets=[
            AgingBucket(label=label, count=counts[label], amount=money(amounts[label]))
            for label, _ in AGING_BUCKETS
        ],
        total_amount=money(total),
        count=len(pairs),
        average_age_days=weighted_average_age(pairs),
    )
