"""展示用的小工具：文件大小格式化、扩展名与类型推导。"""

from __future__ import annotations

import os
from typing import Optional

from app.packages.fileshare.core.enums import FileTypeEnum

_SIZE_UNITS = ("Bytes", "KB", "MB", "GB")


def format_size(size_bytes: int) -> str:
    """按 1024 进制格式化字节数，最多保留两位小数，例如 ``1.5 MB``。"""
    size_bytes = int(size_bytes or 0)
    if size_bytes <= 0:
        return "0 Bytes"
    value = float(size_bytes)
    index = 0
    while value >= 1024 and index < len(_SIZE_UNITS) - 1:
        value /= 1024
        index += 1
    value = round(value, 2)
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {_SIZE_UNITS[index]}"


def file_extension(name: Optional[str]) -> str:
    """返回不带点的扩展名（保留原大小写），没有扩展名时为空串。"""
    return os.path.splitext(name or "")[1].lstrip(".")


def type_category_for(mime_type: Optional[str]) -> Optional[FileTypeEnum]:
    """由 MIME 顶级类型推导文件分类，仅识别 image 与 video。"""
    top_level = (mime_type or "").split("/", 1)[0].strip().lower()
    if top_level == "image":
        return FileTypeEnum.IMAGE
    if top_level == "video":
        return FileTypeEnum.VIDEO
    return None
