"""分享文件记录模型。

物理内容保存在 Blob 存储中，本表只保存元数据；``storage_key`` 只对文件所有者可见。
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, BigInteger, Boolean, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import expression

from app.packages.fileshare.core.enums import FileTypeEnum
from app.packages.fileshare.models.base import Base, TimestampMixin, UTCDateTime


class FileRecord(TimestampMixin, Base):
    __tablename__ = "shared_files"
    __table_args__ = (
        Index("ix_shared_files_owner_public_created", "owner_id", "is_public", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    share_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    original_name: Mapped[str] = mapped_column(String(255))
    filename: Mapped[str] = mapped_column(String(255))
    storage_key: Mapped[str] = mapped_column(String(1024))
    mime_type: Mapped[str] = mapped_column(String(255))
    size_bytes: Mapped[int] = mapped_column(BigInteger, default=0)
    type: Mapped[str] = mapped_column(String(16), default=FileTypeEnum.IMAGE.value)
    # "metadata" 是声明式基类的保留属性名，列名保持为 metadata
    file_metadata: Mapped[Optional[dict[str, Any]]] = mapped_column("metadata", JSON, nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, server_default=expression.true(), default=True)
    # 外部身份提供方的用户标识，NULL 表示匿名上传
    owner_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    download_count: Mapped[int] = mapped_column(Integer, server_default=expression.text("0"), default=0)

    @property
    def is_image(self) -> bool:
        return self.type == FileTypeEnum.IMAGE.value or (self.mime_type or "").startswith("image/")

    @property
    def is_video(self) -> bool:
        return self.type == FileTypeEnum.VIDEO.value or (self.mime_type or "").startswith("video/")
