"""领域枚举定义：统一错误分类、趋势方向与日记账类型取值。"""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """技能失败结果的稳定错误码，路由层可据此分支处理。"""
    auth_error = "AUTH_ERROR"
    api_error = "API_ERROR"
    access_denied = "ACCESS_DENIED"
    validation_error = "VALIDATION_ERROR"
    not_found = "NOT_FOUND"


class Trend(str, Enum):
    """指标变化方向枚举。"""
    up = "up"
    down = "down"
    stable = "stable"


class JournalType(str, Enum):
    """资金日记账类型枚举。"""
    cash = "cash"
    bank = "bank"
