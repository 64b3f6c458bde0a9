"""分享文件相关的请求/响应模型。"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.packages.fileshare.api.v1.schemas.common import ResponseEnvelope


class FileStatus(BaseModel):
    is_expired: bool
    is_image: bool
    is_video: bool
    extension: str


class FileItem(BaseModel):
    id: int
    share_id: str
    original_name: str
    mime_type: str
    size: int
    formatted_size: str
    type: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    is_public: bool
    expires_at: Optional[str] = None
    download_count: int
    share_url: str
    download_url: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    path: Optional[str] = None  # 仅所有者可见
    filename: Optional[str] = None  # 仅所有者可见
    dimensions: Optional[str] = None
    duration: Optional[float] = None
    status: FileStatus


class FileListData(BaseModel):
    items: List[FileItem]
    total: int
    page: int
    per_page: int
    last_page: int


class FileUpdateBody(BaseModel):
    """只接受可修改字段，出现其他字段直接拒绝。"""

    model_config = ConfigDict(extra="forbid")

    original_name: Optional[str] = Field(default=None, max_length=255)
    is_public: Optional[bool] = None
    expires_at: Optional[datetime] = None


FileDetailResponse = ResponseEnvelope[FileItem]
FileListResponse = ResponseEnvelope[FileListData]
FileDeletionResponse = ResponseEnvelope[Dict[str, Any]]
