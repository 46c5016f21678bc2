"""并发只读子查询：将互不依赖的调用放入线程池执行并在全部完成后汇合。"""

from __future__ import annotations

import contextvars
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Any, Callable

DEFAULT_MAX_WORKERS = 4


def fan_out(*calls: Callable[[], Any], max_workers: int = DEFAULT_MAX_WORKERS) -> list[Any]:
    """并发执行 calls 并按传入顺序返回结果；任一调用失败即抛出其异常。

    子调用之间不得共享可变状态，也不能依赖执行顺序。
    """
    if len(calls) <= 1:
        return [call() for call in calls]
    workers = max(1, min(max_workers, len(calls)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="odoo-fanout") as pool:
        # 复制 contextvars，保证线程内日志仍带 request/tenant/skill 标识。
        futures = [pool.submit(contextvars.copy_context().run, call) for call in calls]
        done, pending = wait(futures, return_when=FIRST_EXCEPTION)
        for future in pending:
            future.cancel()
        for future in futures:
            if future in done and future.exception() is not None:
                raise future.exception()  # type: ignore[misc]
        return [future.result() for future in futures]
