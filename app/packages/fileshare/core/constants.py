"""业务常量：上传白名单与分享 ID 字符集。"""

import string

ALLOWED_MIME_TYPES = frozenset(
    {
        "image/jpeg",
        "image/png",
        "image/gif",
        "image/webp",
        "video/mp4",
        "video/webm",
        "video/quicktime",
        "video/x-msvideo",
    }
)

SHARE_ID_ALPHABET = string.ascii_letters + string.digits
MIN_SHARE_ID_LENGTH = 12

MAX_ORIGINAL_NAME_LENGTH = 255

# 更新接口允许修改的字段，其余字段（share_id、owner_id、size_bytes 等）创建后不可变
MUTABLE_FIELDS = frozenset({"original_name", "is_public", "expires_at"})

SORTABLE_FIELDS = frozenset(
    {"created_at", "updated_at", "original_name", "size_bytes", "download_count", "expires_at"}
)
