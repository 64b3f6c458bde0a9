"""分享 ID 生成器：定长、不可猜测、全局唯一。"""

from __future__ import annotations

import secrets

from sqlalchemy.orm import Session

from app.packages.fileshare.core.constants import MIN_SHARE_ID_LENGTH, SHARE_ID_ALPHABET
from app.packages.fileshare.core.logger import logger
from app.packages.fileshare.crud.file_record import CRUDFileRecord, file_record_crud


class ShareIdGenerator:
    def __init__(self, length: int = MIN_SHARE_ID_LENGTH, store: CRUDFileRecord = file_record_crud) -> None:
        self.length = max(int(length), MIN_SHARE_ID_LENGTH)
        self.store = store

    def random_token(self) -> str:
        return "".join(secrets.choice(SHARE_ID_ALPHABET) for _ in range(self.length))

    def generate(self, db: Session) -> str:
        """生成一个当前未被占用的分享 ID。

        这里的存在性检查只是快速路径；并发下的最终裁决是数据库唯一索引，
        写入冲突时由调用方重新生成。
        """
        attempts = 0
        while True:
            attempts += 1
            candidate = self.random_token()
            if not self.store.share_id_exists(db, candidate):
                if attempts > 1:
                    logger.info("Share id generated after %s attempts", attempts)
                return candidate
