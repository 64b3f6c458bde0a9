"""文件生命周期服务：上传、查看、更新、可见性切换、删除与下载。

所有权限判断都交给 ``access_policy``；当前时间可由调用方显式传入，
缺省时取注入的时钟。元数据提取与下载计数属于“尽力而为”的步骤：
失败只记录日志，不影响所在操作的结果。
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import lru_cache
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Union

from fastapi import status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.packages.fileshare.core.config import Settings, get_settings
from app.packages.fileshare.core.constants import (
    ALLOWED_MIME_TYPES,
    MAX_ORIGINAL_NAME_LENGTH,
    MUTABLE_FIELDS,
    SORTABLE_FIELDS,
)
from app.packages.fileshare.core.enums import FileTypeEnum, ListScopeEnum, SortOrderEnum
from app.packages.fileshare.core.exceptions import (
    AccessDeniedError,
    BlobNotFoundError,
    ConsistencyError,
    DuplicateShareIdError,
    FileExpiredError,
    FileNotFoundInStoreError,
    FileValidationError,
    StorageError,
)
from app.packages.fileshare.core.logger import logger
from app.packages.fileshare.core.timezone import now as tz_now
from app.packages.fileshare.core.timezone import to_utc
from app.packages.fileshare.crud.file_record import (
    CRUDFileRecord,
    FileFilters,
    FilePage,
    FileSort,
    file_record_crud,
)
from app.packages.fileshare.models.file_record import FileRecord
from app.packages.fileshare.services import access_policy
from app.packages.fileshare.services.access_policy import Requester
from app.packages.fileshare.services.metadata_extractor import MetadataExtractor, PillowMetadataExtractor
from app.packages.fileshare.services.share_id import ShareIdGenerator
from app.packages.fileshare.services.storage_backends import BlobStore, build_blob_store
from app.packages.fileshare.utils.formatting import file_extension, type_category_for


@dataclass
class DownloadResult:
    chunks: Iterator[bytes]
    filename: str
    mime_type: str
    size: int


@dataclass
class FileListResult:
    items: List[FileRecord]
    total: int
    page: int
    per_page: int

    @property
    def last_page(self) -> int:
        return max((self.total + self.per_page - 1) // self.per_page, 1)


class FileLifecycleService:
    def __init__(
        self,
        *,
        blob_store: BlobStore,
        metadata_extractor: MetadataExtractor,
        share_id_generator: Optional[ShareIdGenerator] = None,
        store: CRUDFileRecord = file_record_crud,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = tz_now,
    ) -> None:
        self.settings = settings or get_settings()
        self.blob_store = blob_store
        self.metadata_extractor = metadata_extractor
        self.store = store
        self.share_ids = share_id_generator or ShareIdGenerator(self.settings.share_id_length, store)
        self.clock = clock

    # ----------------------------
    # 上传
    # ----------------------------
    def create(
        self,
        db: Session,
        *,
        content: bytes,
        original_name: str,
        declared_mime_type: Optional[str],
        is_public: bool = True,
        expires_at: Optional[datetime] = None,
        owner_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> FileRecord:
        now = self._now(now)
        name = self._validate_name(original_name)
        mime_type = (declared_mime_type or "").strip().lower()
        size = len(content)
        self._validate_upload(mime_type, size)
        expires_at = self._validate_expiry(expires_at, now)
        category = type_category_for(mime_type)
        if category is None:
            raise FileValidationError("仅支持图片与视频文件")

        ext = file_extension(name).lower()
        filename = f"{uuid.uuid4().hex}.{ext}" if ext else uuid.uuid4().hex
        storage_key = f"uploads/{filename}"

        # 写入失败直接抛出 StorageError，此时尚未创建任何记录
        self.blob_store.put(storage_key, content, content_type=mime_type)

        metadata = self._extract_metadata(content, category)

        payload: Dict[str, Any] = {
            "original_name": name,
            "filename": filename,
            "storage_key": storage_key,
            "mime_type": mime_type,
            "size_bytes": size,
            "type": category.value,
            "file_metadata": metadata,
            "is_public": bool(is_public),
            "owner_id": owner_id,
            "expires_at": expires_at,
            "download_count": 0,
        }
        try:
            record = self._insert_with_unique_share_id(db, payload)
        except SQLAlchemyError as exc:
            logger.exception("Failed to persist file record for blob %s", storage_key)
            self._discard_blob(storage_key)
            raise StorageError("文件记录保存失败") from exc

        logger.info(
            "File uploaded id=%s share_id=%s size=%s owner=%s",
            record.id,
            record.share_id,
            size,
            owner_id or "anonymous",
            extra={"file_id": record.id, "share_id": record.share_id},
        )
        return record

    def _insert_with_unique_share_id(self, db: Session, payload: Dict[str, Any]) -> FileRecord:
        # 数据库唯一索引是最终裁决：并发下即便通过了存在性检查也可能冲突，冲突则重新生成
        while True:
            payload["share_id"] = self.share_ids.generate(db)
            try:
                return self.store.insert(db, payload)
            except DuplicateShareIdError:
                logger.warning("Share id collision on insert, regenerating", extra={"share_id": payload["share_id"]})

    def _extract_metadata(self, content: bytes, category: FileTypeEnum) -> Dict[str, Any]:
        try:
            metadata = self.metadata_extractor.extract(content, category)
        except Exception:
            logger.warning("Metadata extractor raised, continuing with empty metadata", exc_info=True)
            return {}
        return dict(metadata or {})

    def _discard_blob(self, storage_key: str) -> None:
        try:
            self.blob_store.delete(storage_key)
        except StorageError:
            logger.error("Orphaned blob left behind after failed insert: %s", storage_key)

    # ----------------------------
    # 查询
    # ----------------------------
    def get(
        self,
        db: Session,
        ref: Union[int, str],
        requester: Optional[Requester],
        *,
        now: Optional[datetime] = None,
    ) -> FileRecord:
        """按内部 ID（int）或分享 ID（str）获取文件；无权访问时与不存在同样返回 404。"""
        now = self._now(now)
        if isinstance(ref, int):
            record = self.store.get(db, ref)
        else:
            record = self.store.get_by_share_id(db, ref)
        if record is None or not access_policy.can_read(record, requester, now):
            raise AccessDeniedError.hidden()
        return record

    def get_public(self, db: Session, share_id: str, *, now: Optional[datetime] = None) -> FileRecord:
        """公开分享页：仅返回公开且未过期的文件，所有者本人也不例外。"""
        now = self._now(now)
        record = self.store.get_by_share_id(db, share_id)
        if record is None or not record.is_public or access_policy.is_expired(record, now):
            raise FileNotFoundInStoreError()
        return record

    def list_files(
        self,
        db: Session,
        requester: Optional[Requester],
        *,
        scope: ListScopeEnum = ListScopeEnum.PUBLIC,
        type: Optional[str] = None,
        is_public: Optional[bool] = None,
        search: Optional[str] = None,
        include_expired: bool = False,
        sort_by: str = "created_at",
        sort_order: str = SortOrderEnum.DESC.value,
        page: int = 1,
        per_page: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> FileListResult:
        now = self._now(now)
        if sort_by not in SORTABLE_FIELDS:
            raise FileValidationError(f"不支持的排序字段: {sort_by}")
        try:
            order = SortOrderEnum((sort_order or "").lower())
        except ValueError as exc:
            raise FileValidationError(f"不支持的排序方向: {sort_order}") from exc
        if type is not None and type not in {item.value for item in FileTypeEnum}:
            raise FileValidationError(f"不支持的文件类型: {type}")

        if scope == ListScopeEnum.MINE:
            if requester is None:
                raise AccessDeniedError("请先登录后查看自己的文件", status.HTTP_401_UNAUTHORIZED)
            filters = FileFilters(
                owner_id=requester.id,
                is_public=is_public,
                type=type,
                search=search,
                not_expired_at=None if include_expired else now,
            )
        else:
            filters = FileFilters(is_public=True, type=type, search=search, not_expired_at=now)

        paging = FilePage(page=page, per_page=per_page or self.settings.default_page_size).clamped(
            self.settings.max_page_size
        )
        items, total = self.store.list_with_filters(
            db, filters=filters, sort=FileSort(field=sort_by, order=order), page=paging
        )
        return FileListResult(items=items, total=total, page=paging.page, per_page=paging.per_page)

    # ----------------------------
    # 修改
    # ----------------------------
    def update(
        self,
        db: Session,
        file_id: int,
        requester: Optional[Requester],
        fields: Mapping[str, Any],
        *,
        now: Optional[datetime] = None,
    ) -> FileRecord:
        now = self._now(now)
        record = self._get_for_mutation(db, file_id, requester)
        changes = self._validate_changes(fields, now)
        if not changes:
            return record
        updated = self.store.update_fields(db, record, changes)
        logger.info("File updated id=%s fields=%s", updated.id, sorted(changes), extra={"file_id": updated.id})
        return updated

    def toggle_visibility(self, db: Session, file_id: int, requester: Optional[Requester]) -> FileRecord:
        record = self._get_for_mutation(db, file_id, requester)
        updated = self.store.update_fields(db, record, {"is_public": not record.is_public})
        logger.info("File visibility toggled id=%s is_public=%s", updated.id, updated.is_public)
        return updated

    def delete(self, db: Session, file_id: int, requester: Optional[Requester]) -> None:
        """先删物理文件再删记录；物理文件删除失败时记录保持不变。"""
        record = self._get_for_mutation(db, file_id, requester)
        storage_key = record.storage_key
        share_id = record.share_id

        try:
            self.blob_store.delete(storage_key)
        except BlobNotFoundError:
            logger.warning("Blob %s already missing, removing record %s", storage_key, file_id)

        try:
            self.store.hard_delete(db, record)
        except StaleDataError as exc:
            # 并发请求已删除该记录，物理文件也已不在
            logger.info("Record %s already removed by another request", file_id, extra={"file_id": file_id})
            raise FileNotFoundInStoreError() from exc
        except SQLAlchemyError as exc:
            logger.critical(
                "Blob %s deleted but record %s could not be removed",
                storage_key,
                file_id,
                exc_info=True,
                extra={"file_id": file_id, "share_id": share_id},
            )
            raise ConsistencyError() from exc
        logger.info("File deleted id=%s share_id=%s", file_id, share_id, extra={"file_id": file_id})

    # ----------------------------
    # 下载
    # ----------------------------
    def download(
        self,
        db: Session,
        share_id: str,
        requester: Optional[Requester],
        *,
        now: Optional[datetime] = None,
    ) -> DownloadResult:
        now = self._now(now)
        record = self.store.get_by_share_id(db, share_id)
        if record is None:
            raise FileNotFoundInStoreError()
        if access_policy.is_expired(record, now):
            raise FileExpiredError()
        if not access_policy.can_read(record, requester, now):
            raise AccessDeniedError()

        result = DownloadResult(
            chunks=self.blob_store.get(record.storage_key),
            filename=record.original_name,
            mime_type=record.mime_type,
            size=record.size_bytes,
        )
        self._record_download(db, record.id, share_id)
        return result

    def _record_download(self, db: Session, file_id: int, share_id: str) -> None:
        try:
            self.store.increment_download_count(db, file_id)
        except SQLAlchemyError:
            db.rollback()
            logger.warning(
                "Download count increment failed for %s, download continues",
                share_id,
                exc_info=True,
                extra={"file_id": file_id, "share_id": share_id},
            )

    # ----------------------------
    # 工具方法
    # ----------------------------
    def _now(self, now: Optional[datetime]) -> datetime:
        return to_utc(now) if now is not None else self.clock()

    def _get_for_mutation(self, db: Session, file_id: int, requester: Optional[Requester]) -> FileRecord:
        record = self.store.get(db, file_id)
        if record is None:
            raise FileNotFoundInStoreError()
        if not access_policy.can_mutate(record, requester):
            raise AccessDeniedError()
        return record

    def _validate_upload(self, mime_type: str, size: int) -> None:
        if mime_type not in ALLOWED_MIME_TYPES:
            raise FileValidationError("不支持的文件类型", data={"mime_type": mime_type})
        if size > self.settings.max_upload_bytes:
            limit_mb = self.settings.max_upload_bytes // (1024 * 1024)
            raise FileValidationError(f"文件大小不能超过 {limit_mb}MB", data={"size": size})

    @staticmethod
    def _validate_name(name: Any) -> str:
        if not isinstance(name, str) or not name.strip():
            raise FileValidationError("文件名不能为空")
        name = name.strip()
        if len(name) > MAX_ORIGINAL_NAME_LENGTH:
            raise FileValidationError(f"文件名长度不能超过 {MAX_ORIGINAL_NAME_LENGTH} 个字符")
        return name

    def _validate_expiry(self, expires_at: Optional[datetime], now: datetime) -> Optional[datetime]:
        if expires_at is None:
            return None
        if not isinstance(expires_at, datetime):
            raise FileValidationError("过期时间格式不正确")
        expires_at = to_utc(expires_at)
        if expires_at <= now:
            raise FileValidationError("过期时间必须晚于当前时间")
        if expires_at > now + timedelta(days=self.settings.max_expiry_days):
            raise FileValidationError("过期时间不能超过一年")
        return expires_at

    def _validate_changes(self, fields: Mapping[str, Any], now: datetime) -> Dict[str, Any]:
        unknown = set(fields) - MUTABLE_FIELDS
        if unknown:
            raise FileValidationError("存在不允许修改的字段", data={"fields": sorted(unknown)})

        changes: Dict[str, Any] = {}
        if "original_name" in fields:
            changes["original_name"] = self._validate_name(fields["original_name"])
        if "is_public" in fields:
            if not isinstance(fields["is_public"], bool):
                raise FileValidationError("is_public 必须为布尔值")
            changes["is_public"] = fields["is_public"]
        if "expires_at" in fields:
            changes["expires_at"] = self._validate_expiry(fields["expires_at"], now)
        return changes


@lru_cache
def get_file_service() -> FileLifecycleService:
    """按当前配置构建单例服务。"""
    settings = get_settings()
    return FileLifecycleService(
        blob_store=build_blob_store(settings),
        metadata_extractor=PillowMetadataExtractor(),
        share_id_generator=ShareIdGenerator(settings.share_id_length),
        settings=settings,
    )
