"""日志初始化：JSON 行写入按进程角色划分的文件，ERROR 同步到 stderr。

记录经 QueueHandler 入队，由 QueueListener 在后台线程落盘；入队前注入请求上下文。
格式化时对消息、错误与 payload 预览统一脱敏，已配置的 Odoo API key 按原文屏蔽。
"""

from __future__ import annotations

import json
import logging
import logging.config
import re
import sys
from datetime import datetime, timezone
from logging.handlers import QueueListener, RotatingFileHandler
from pathlib import Path
from queue import Queue
from typing import Any, Iterable

from erp_metrics.config import Settings
from erp_metrics.infra.logging.context import CONTEXT_KEYS, get_log_context

LOG_FILE_NAME = "erp-metrics.jsonl"

_listener: QueueListener | None = None
_known_secrets: tuple[str, ...] = ()

_SENSITIVE_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"(?i)(authorization\s*[:=]\s*bearer\s+)[^\s,;]+"), r"\1***"),
    (re.compile(r"(?i)(api[_-]?key\"?\s*[:=]\s*\"?)[^\s,;\"]+"), r"\1***"),
    (re.compile(r"(?i)(password\"?\s*[:=]\s*\"?)[^\s,;\"]+"), r"\1***"),
    (re.compile(r"(?i)(secret\"?\s*[:=]\s*\"?)[^\s,;\"]+"), r"\1***"),
)
_STRICT_PATTERN = re.compile(r"(?i)(authorization|password|api_key|secret)([^,\s}]*)")

# 通过 extra 传入的结构化字段。
_TEXT_FIELDS = ("event", "external_service", "op", "error_code", "error_type")
_NUMERIC_FIELDS = ("duration_ms", "status_code", "retry")

_QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore")


def register_secrets(*values: str | None) -> None:
    """登记需按原文屏蔽的凭据值，长值优先替换。"""
    global _known_secrets
    merged = {value for value in (*_known_secrets, *values) if value}
    _known_secrets = tuple(sorted(merged, key=len, reverse=True))


def redact_text(value: str | None, mode: str) -> str | None:
    """按模式脱敏文本：off 原样返回，standard 屏蔽凭据值，strict 额外屏蔽敏感键名后的内容。"""
    if value is None:
        return None
    text = str(value)
    mode = mode.lower()
    if mode == "off":
        return text
    for secret in _known_secrets:
        text = text.replace(secret, "***")
    for pattern, replacement in _SENSITIVE_PATTERNS:
        text = pattern.sub(replacement, text)
    if mode == "strict":
        text = _STRICT_PATTERN.sub(r"\1=***", text)
    return text


def render_payload_preview(payload: Any, *, max_chars: int, redaction_mode: str) -> str | None:
    """将 payload 序列化为截断后的预览文本。"""
    if payload is None:
        return None
    if isinstance(payload, str):
        serialized = payload
    else:
        try:
            serialized = json.dumps(payload, ensure_ascii=False, sort_keys=True, default=str)
        except TypeError:
            # 例如非字符串键或键类型混杂导致无法排序。
            serialized = str(payload)
    redacted = redact_text(serialized, redaction_mode) or ""
    if len(redacted) <= max_chars:
        return redacted
    return f"{redacted[:max_chars]}...(truncated)"


def _as_number(value: Any) -> int | float | None:
    if value is None or isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class DebugRoutingFilter(logging.Filter):
    """低于 min_level 的记录只放行 debug_modules 下的 DEBUG。"""

    def __init__(self, *, min_level: int, debug_modules: Iterable[str]) -> None:
        super().__init__()
        self._min_level = min_level
        self._debug_modules = frozenset(debug_modules)

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= self._min_level:
            return True
        if record.levelno != logging.DEBUG:
            return False
        name = record.name
        return any(name == item or name.startswith(f"{item}.") for item in self._debug_modules)


class ContextInjectionFilter(logging.Filter):
    """入队前把 contextvars 写入 record，监听线程中读不到调用方上下文。"""

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = get_log_context()
        for key in CONTEXT_KEYS:
            if getattr(record, key, None) is None and ctx.get(key) is not None:
                setattr(record, key, ctx[key])
        return True


class StructuredJsonFormatter(logging.Formatter):
    """每条记录一行 JSON；值为空的字段不输出。"""

    def __init__(
        self,
        *,
        service: str,
        process_role: str,
        redaction_mode: str,
        payload_preview_chars: int,
    ) -> None:
        super().__init__()
        self._service = service
        self._process_role = process_role
        self._redaction_mode = redaction_mode
        self._payload_preview_chars = payload_preview_chars

    def format(self, record: logging.LogRecord) -> str:
        error_text = getattr(record, "error", None)
        if error_text is None and record.exc_info:
            error_text = self.formatException(record.exc_info)

        ctx = get_log_context()
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "service": self._service,
            "process_role": self._process_role,
            "module": record.name,
            "message": redact_text(record.getMessage(), self._redaction_mode),
        }
        for key in CONTEXT_KEYS:
            entry[key] = getattr(record, key, None) or ctx.get(key)
        for key in _TEXT_FIELDS:
            entry[key] = getattr(record, key, None)
        for key in _NUMERIC_FIELDS:
            entry[key] = _as_number(getattr(record, key, None))
        if error_text is not None:
            entry["error"] = redact_text(str(error_text), self._redaction_mode)
        entry["payload_preview"] = render_payload_preview(
            getattr(record, "payload_preview", None),
            max_chars=self._payload_preview_chars,
            redaction_mode=self._redaction_mode,
        )
        return json.dumps({key: value for key, value in entry.items() if value is not None}, ensure_ascii=False)


def _log_file(log_dir: Path, process_role: str) -> Path:
    root = log_dir if log_dir.is_absolute() else (Path.cwd() / log_dir).resolve()
    role_dir = root / process_role
    role_dir.mkdir(parents=True, exist_ok=True)
    return role_dir / LOG_FILE_NAME


def configure_logging(settings: Settings, *, process_role: str) -> Path:
    """初始化全局日志：根 logger 只挂一个队列 handler，落盘与 stderr 由监听线程负责。"""
    global _listener
    shutdown_logging()
    register_secrets(settings.odoo_api_key)
    log_file = _log_file(settings.log_dir, process_role)

    record_queue: Queue[logging.LogRecord] = Queue(-1)
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "context": {"()": ContextInjectionFilter},
                "routing": {
                    "()": DebugRoutingFilter,
                    "min_level": getattr(logging, settings.log_level.upper(), logging.INFO),
                    "debug_modules": frozenset(settings.log_debug_modules_list()),
                },
            },
            "handlers": {
                "queue": {
                    "class": "logging.handlers.QueueHandler",
                    "queue": record_queue,
                    "filters": ["context", "routing"],
                }
            },
            "root": {"level": "DEBUG", "handlers": ["queue"]},
            "loggers": {name: {"level": "WARNING"} for name in _QUIET_LOGGERS},
        }
    )

    formatter = StructuredJsonFormatter(
        service="erp-metrics",
        process_role=process_role,
        redaction_mode=settings.log_redaction_mode,
        payload_preview_chars=settings.log_payload_preview_chars,
    )
    file_handler = RotatingFileHandler(
        str(log_file),
        maxBytes=settings.log_max_bytes,
        backupCount=settings.log_backup_count,
        encoding="utf-8",
    )
    stderr_handler = logging.StreamHandler(stream=sys.stderr)
    stderr_handler.setLevel(logging.ERROR)
    for handler in (file_handler, stderr_handler):
        handler.setFormatter(formatter)

    _listener = QueueListener(record_queue, file_handler, stderr_handler, respect_handler_level=True)
    _listener.start()
    return log_file


def shutdown_logging() -> None:
    """停止监听线程（会先写完已入队记录）并关闭文件句柄。"""
    global _listener
    listener, _listener = _listener, None
    if listener is None:
        return
    listener.stop()
    for handler in listener.handlers:
        handler.close()
