"""远端记录值的读取辅助：关联字段 (id, 名称) 对、日期字段与分组计数。"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Iterable, Iterator, Mapping


def is_relation(value: Any) -> bool:
    """关联字段未设置时远端返回 False/None，只有 [id, name] 才视为有效。"""
    return isinstance(value, (list, tuple)) and len(value) == 2 and bool(value[0])


def relation_id(value: Any) -> int | None:
    if is_relation(value):
        return int(value[0])
    return None


def relation_name(value: Any) -> str | None:
    if is_relation(value):
        return str(value[1])
    return None


def iter_relations(rows: Iterable[Mapping[str, Any]], field: str) -> Iterator[tuple[int, str, Mapping[str, Any]]]:
    """遍历行并产出 (id, 名称, 行)，跳过关联值为空的行。"""
    for row in rows:
        value = row.get(field)
        if not is_relation(value):
            continue
        yield int(value[0]), str(value[1]), row


def number(row: Mapping[str, Any], field: str) -> float:
    """读取数值字段；远端以 False/None 表示空值。"""
    value = row.get(field)
    if value is None or value is False:
        return 0.0
    return float(value)


def group_count(row: Mapping[str, Any], groupby: str) -> int:
    """读取分组行的记录数：惰性分组为 <field>_count，否则为 __count。"""
    field = groupby.split(":", 1)[0]
    value = row.get(f"{field}_count", row.get("__count"))
    return int(value or 0)


def text(value: Any) -> str | None:
    """字符串字段为空时远端返回 False，统一转为 None。"""
    if value is None or value is False or value == "":
        return None
    return str(value)


def parse_date(value: Any) -> date | None:
    """解析远端 date/datetime 字段（YYYY-MM-DD 或 YYYY-MM-DD HH:MM:SS）。"""
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])
