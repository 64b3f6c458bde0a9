"""时区工具方法：统一以 UTC 存储，按配置时区展示。"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from zoneinfo import ZoneInfo

from app.packages.fileshare.core.config import get_settings


def get_timezone() -> ZoneInfo:
    """返回配置指定的时区信息。"""
    return get_settings().timezone_info


def now() -> datetime:
    """返回当前 UTC 时间（带时区）。过期判断与查询过滤均以此为基准。"""
    return datetime.now(timezone.utc)


def to_utc(value: Optional[datetime]) -> Optional[datetime]:
    """将时间统一为带时区的 UTC；无时区对象按 UTC 解释。"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_local(value: Optional[datetime]) -> Optional[datetime]:
    """将 ``datetime`` 转换为配置时区，支持处理空值与无时区对象。"""
    value = to_utc(value)
    if value is None:
        return None
    return value.astimezone(get_timezone())


def isoformat(value: Optional[datetime]) -> Optional[str]:
    """序列化为 ISO-8601 字符串（配置时区）。"""
    localized = to_local(value)
    if localized is None:
        return None
    return localized.isoformat()
