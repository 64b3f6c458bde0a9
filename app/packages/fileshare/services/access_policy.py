"""访问策略：纯函数判定读取/修改权限，不做任何 I/O。

当前时间一律由调用方传入，保证过期判断可复现、可测试。
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from app.packages.fileshare.core.timezone import to_utc
from app.packages.fileshare.models.file_record import FileRecord


@dataclass(frozen=True)
class Requester:
    """外部身份提供方解析出的请求者，匿名请求以 ``None`` 表示。"""

    id: str


def is_expired(record: FileRecord, now: datetime) -> bool:
    """设置了过期时间且该时间不晚于 ``now`` 即视为过期。"""
    if record.expires_at is None:
        return False
    return to_utc(record.expires_at) <= to_utc(now)


def is_owner(record: FileRecord, requester: Optional[Requester]) -> bool:
    if requester is None or record.owner_id is None:
        return False
    return requester.id == record.owner_id


def can_read(record: FileRecord, requester: Optional[Requester], now: datetime) -> bool:
    """未过期，且为公开文件或请求者即所有者。"""
    if is_expired(record, now):
        return False
    return bool(record.is_public) or is_owner(record, requester)


def can_mutate(record: FileRecord, requester: Optional[Requester]) -> bool:
    # 匿名上传的记录没有所有者，任何人都无法修改或删除
    return is_owner(record, requester)
