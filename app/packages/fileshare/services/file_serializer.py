"""文件记录的对外序列化。

内部存储路径及可推导出路径的存储文件名只对所有者可见；尺寸、时长等字段仅在元数据中存在时输出。
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from app.packages.fileshare.core.config import Settings, get_settings
from app.packages.fileshare.core.timezone import isoformat
from app.packages.fileshare.models.file_record import FileRecord
from app.packages.fileshare.services import access_policy
from app.packages.fileshare.services.access_policy import Requester
from app.packages.fileshare.utils.formatting import file_extension, format_size


def share_url(share_id: str, settings: Optional[Settings] = None) -> str:
    settings = settings or get_settings()
    return f"{settings.public_base_url.rstrip('/')}/share/{share_id}"


def download_url(share_id: str, settings: Optional[Settings] = None) -> str:
    settings = settings or get_settings()
    return f"{settings.public_base_url.rstrip('/')}{settings.api_v1_str}/files/download/{share_id}"


def serialize_file(
    record: FileRecord,
    requester: Optional[Requester],
    now: datetime,
    settings: Optional[Settings] = None,
) -> Dict[str, Any]:
    settings = settings or get_settings()
    metadata = dict(record.file_metadata or {})
    payload: Dict[str, Any] = {
        "id": record.id,
        "share_id": record.share_id,
        "original_name": record.original_name,
        "mime_type": record.mime_type,
        "size": record.size_bytes,
        "formatted_size": format_size(record.size_bytes),
        "type": record.type,
        "metadata": metadata,
        "is_public": bool(record.is_public),
        "expires_at": isoformat(record.expires_at),
        "download_count": record.download_count or 0,
        "share_url": share_url(record.share_id, settings),
        "download_url": download_url(record.share_id, settings),
        "created_at": isoformat(record.created_at),
        "updated_at": isoformat(record.updated_at),
        "status": {
            "is_expired": access_policy.is_expired(record, now),
            "is_image": record.is_image,
            "is_video": record.is_video,
            "extension": file_extension(record.original_name).lower(),
        },
    }
    if access_policy.is_owner(record, requester):
        payload["path"] = record.storage_key
        payload["filename"] = record.filename
    if metadata.get("dimensions"):
        payload["dimensions"] = metadata["dimensions"]
    if metadata.get("duration") is not None:
        payload["duration"] = metadata["duration"]
    return payload
