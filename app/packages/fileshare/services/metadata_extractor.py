"""元数据提取：尽力而为，任何失败都只记录日志并返回空字典。"""

from __future__ import annotations

import io
from typing import Any, Dict

from app.packages.fileshare.core.enums import FileTypeEnum
from app.packages.fileshare.core.logger import logger


class MetadataExtractor:
    """元数据提取接口，实现方不得向外抛出异常。"""

    def extract(self, data: bytes, type_category: FileTypeEnum) -> Dict[str, Any]:
        raise NotImplementedError


class PillowMetadataExtractor(MetadataExtractor):
    """图片读取宽高；视频只占位 duration（需要专门的视频处理库）。"""

    def extract(self, data: bytes, type_category: FileTypeEnum) -> Dict[str, Any]:
        try:
            if type_category == FileTypeEnum.IMAGE:
                return self._image_metadata(data)
            if type_category == FileTypeEnum.VIDEO:
                return {"duration": None}
        except Exception as exc:
            logger.warning("Metadata extraction failed (%s): %s", type_category, exc)
        return {}

    @staticmethod
    def _image_metadata(data: bytes) -> Dict[str, Any]:
        from PIL import Image

        with Image.open(io.BytesIO(data)) as img:
            width, height = img.size
        return {"width": width, "height": height, "dimensions": f"{width}x{height}"}
