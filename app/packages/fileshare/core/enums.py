"""枚举定义：约束文件类型、存储后端与排序方向的可选值。"""

from enum import Enum


class FileTypeEnum(str, Enum):
    """文件的粗粒度分类，由 MIME 顶级类型推导。"""

    IMAGE = "image"
    VIDEO = "video"


class StorageTypeEnum(str, Enum):
    LOCAL = "LOCAL"
    S3 = "S3"


class SortOrderEnum(str, Enum):
    ASC = "asc"
    DESC = "desc"


class ListScopeEnum(str, Enum):
    """列表范围：自己的文件，或所有公开且未过期的文件。"""

    MINE = "mine"
    PUBLIC = "public"
