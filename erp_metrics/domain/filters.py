"""Odoo 过滤表达式（domain）构造与组合：纯函数，无副作用。

domain 为前缀表达式序列：三元组 (field, operator, value) 或逻辑算子
"&" / "|"（二元）与 "!"（一元）。相邻表达式之间默认按 AND 组合，空 domain 匹配全部记录。
"""

from __future__ import annotations

from typing import Any, Iterable, Literal, Sequence, Union

Term = tuple[str, str, Any]
DomainItem = Union[Term, str]
Domain = list[DomainItem]

DocumentState = Literal["all", "confirmed", "draft", "cancelled"]
InvoiceType = Literal["out_invoice", "out_refund", "in_invoice", "in_refund", "all"]

AND = "&"
OR = "|"
NOT = "!"
LOGICAL_OPERATORS = frozenset({AND, OR, NOT})

# 语义状态到各模型字面状态值的映射；tuple 表示多值 in 过滤。
_STATE_VALUES: dict[str, dict[str, Union[str, tuple[str, ...]]]] = {
    "sale.order": {
        "confirmed": ("sale", "done"),
        "draft": "draft",
        "cancelled": "cancel",
    },
    "purchase.order": {
        "confirmed": ("purchase", "done"),
        "draft": "draft",
        "cancelled": "cancel",
    },
    "account.move": {
        "confirmed": "posted",
        "draft": "draft",
        "cancelled": "cancel",
    },
    "account.payment": {
        "confirmed": "posted",
        "draft": "draft",
        "cancelled": "cancel",
    },
}


def is_operator(item: Any) -> bool:
    """判断 domain 元素是否为逻辑算子。"""
    return isinstance(item, str) and item in LOGICAL_OPERATORS


def date_range(field: str, start: str, end: str) -> Domain:
    """构造闭区间日期过滤：field >= start 且 field <= end。"""
    return [(field, ">=", start), (field, "<=", end)]


def state_filter(state: str, model: str) -> Domain:
    """将语义状态映射为模型的字面状态过滤；all 或未知组合返回空过滤。"""
    if state == "all":
        return []
    value = _STATE_VALUES.get(model, {}).get(state)
    if value is None:
        return []
    if isinstance(value, tuple):
        return [("state", "in", list(value))]
    return [("state", "=", value)]


def invoice_type_filter(kind: str) -> Domain:
    """按单据类型（move_type）过滤；all 返回空过滤。"""
    if kind == "all":
        return []
    return [("move_type", "=", kind)]


def _freeze(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    return value


def _term_key(term: Sequence[Any]) -> tuple[Any, ...]:
    field, operator, value = term
    return field, operator, _freeze(value)


def combine_domains(*domains: Union[Sequence[DomainItem], None]) -> Domain:
    """按顺序拼接非空子 domain，丢弃 None 与空序列。

    不含逻辑算子的子 domain 中出现的完全相同三元组只保留首次出现；
    含算子的子 domain 原样追加，避免破坏前缀表达式的元数。
    """
    combined: Domain = []
    seen: set[tuple[Any, ...]] = set()
    for domain in domains:
        if not domain:
            continue
        if any(is_operator(item) for item in domain):
            combined.extend(item if is_operator(item) else tuple(item) for item in domain)
            continue
        for term in domain:
            key = _term_key(term)
            if key in seen:
                continue
            seen.add(key)
            combined.append(tuple(term))
    return combined


def _expression_count(domain: Sequence[DomainItem]) -> int:
    """统计 domain 顶层表达式数量。"""
    count = 0
    pending = 1
    for item in domain:
        if item in (AND, OR):
            pending += 1
        elif item == NOT:
            continue
        else:
            pending -= 1
        if pending == 0:
            count += 1
            pending = 1
    return count


def _as_expression(domain: Sequence[DomainItem]) -> Domain:
    """将隐式 AND 的多表达式 domain 收敛为单个前缀表达式。"""
    items: Domain = [item if is_operator(item) else tuple(item) for item in domain]
    count = _expression_count(items)
    if count <= 1:
        return items
    return [AND] * (count - 1) + items


def any_of(*domains: Union[Sequence[DomainItem], None]) -> Domain:
    """构造各子 domain 之间的 OR 组合，空子 domain 被忽略。"""
    parts = [_as_expression(domain) for domain in domains if domain]
    if not parts:
        return []
    result: Domain = [OR] * (len(parts) - 1)
    for part in parts:
        result.extend(part)
    return result


def negate(domain: Sequence[DomainItem]) -> Domain:
    """对 domain 取反；空 domain 原样返回。"""
    if not domain:
        return []
    return [NOT] + _as_expression(domain)


def prefix_fields(domain: Iterable[DomainItem], prefix: str) -> Domain:
    """把 domain 中的字段改写到关联模型路径下，例如 state -> order_id.state。"""
    result: Domain = []
    for item in domain:
        if is_operator(item):
            result.append(item)
            continue
        field, operator, value = item
        result.append((f"{prefix}.{field}", operator, value))
    return result
