"""聚合查询原语：总计、分组总计与分页读取。

分组结果受 limit 截断时，总计必须来自一次独立的、不分组且不限数量的聚合，
grouped_totals 以构造方式保证这一点，调用方无需也不应自行累加分组值。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from erp_metrics.domain.filters import DomainItem
from erp_metrics.domain.records import is_relation, number
from erp_metrics.infra.odoo.client import OdooClient
from erp_metrics.infra.odoo.fanout import DEFAULT_MAX_WORKERS, fan_out

DEFAULT_PAGE_SIZE = 500


def _measure_name(spec: str) -> str:
    return spec.split(":", 1)[0]


def _sum_spec(spec: str) -> str:
    return spec if ":" in spec else f"{spec}:sum"


@dataclass(slots=True)
class Totals:
    """不分组聚合的结果：各度量总和与匹配记录数。"""
    values: dict[str, float] = field(default_factory=dict)
    record_count: int = 0

    def get(self, measure: str) -> float:
        return self.values.get(measure, 0.0)


@dataclass(slots=True)
class GroupedTotals:
    """分组聚合结果：groups 可能被截断，totals 始终覆盖完整 domain。"""
    groups: list[dict[str, Any]]
    totals: Totals
    group_count: int | None = None


def aggregate_totals(
    client: OdooClient,
    model: str,
    domain: Sequence[DomainItem],
    measures: Sequence[str],
) -> Totals:
    """对整个 domain 求和；不分组，因此不受分组数量限制。"""
    rows = client.read_group(model, domain, [_sum_spec(spec) for spec in measures], [], limit=None)
    row = rows[0] if rows else {}
    return Totals(
        values={_measure_name(spec): number(row, _measure_name(spec)) for spec in measures},
        record_count=int(row.get("__count") or 0),
    )


def count_groups(client: OdooClient, model: str, domain: Sequence[DomainItem], groupby: str) -> int:
    """统计 domain 下的非空分组数，例如不同客户数；空关联分组不计入。"""
    field_name = _measure_name(groupby)
    rows = client.read_group(model, domain, [field_name], [groupby], limit=None)
    return sum(1 for row in rows if _has_group_key(row.get(groupby, row.get(field_name))))


def _has_group_key(value: Any) -> bool:
    if isinstance(value, (list, tuple)):
        return is_relation(value)
    return value is not None and value is not False


def grouped_totals(
    client: OdooClient,
    model: str,
    domain: Sequence[DomainItem],
    measures: Sequence[str],
    groupby: str,
    *,
    limit: int,
    orderby: str | None = None,
    extra_fields: Sequence[str] = (),
    with_group_count: bool = False,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> GroupedTotals:
    """返回前 limit 个分组以及由独立无限制聚合得到的总计。

    分组查询、总计查询与（可选）分组计数三者互不依赖，并发执行。
    """
    group_fields = [_measure_name(groupby), *(_sum_spec(spec) for spec in measures), *extra_fields]

    calls = [
        lambda: client.read_group(model, domain, group_fields, [groupby], limit=limit, orderby=orderby),
        lambda: aggregate_totals(client, model, domain, measures),
    ]
    if with_group_count:
        calls.append(lambda: count_groups(client, model, domain, groupby))
    results = fan_out(*calls, max_workers=max_workers)
    return GroupedTotals(
        groups=results[0],
        totals=results[1],
        group_count=results[2] if with_group_count else None,
    )


def search_read_all(
    client: OdooClient,
    model: str,
    domain: Sequence[DomainItem],
    *,
    fields: Sequence[str],
    order: str | None = None,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> list[dict[str, Any]]:
    """分页读取 domain 下的全部记录，避免固定上限造成静默截断。"""
    rows: list[dict[str, Any]] = []
    offset = 0
    order = order or "id asc"
    while True:
        page = client.search_read(model, domain, fields=fields, limit=page_size, offset=offset, order=order)
        rows.extend(page)
        if len(page) < page_size:
            return rows
        offset += page_size
