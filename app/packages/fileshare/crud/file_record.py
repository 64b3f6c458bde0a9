"""分享文件记录 CRUD：主键/分享 ID 查询、受限字段更新、原子计数与分页筛选。"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Mapping, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.packages.fileshare.core.constants import MUTABLE_FIELDS, SORTABLE_FIELDS
from app.packages.fileshare.core.enums import SortOrderEnum
from app.packages.fileshare.core.exceptions import DuplicateShareIdError
from app.packages.fileshare.crud.base import CRUDBase
from app.packages.fileshare.models.file_record import FileRecord


@dataclass
class FileFilters:
    """列表筛选条件；``not_expired_at`` 为查询时刻，过期判断在数据库中按该时刻实时计算。"""

    owner_id: Optional[str] = None
    is_public: Optional[bool] = None
    type: Optional[str] = None
    search: Optional[str] = None
    not_expired_at: Optional[datetime] = None


@dataclass
class FileSort:
    field: str = "created_at"
    order: SortOrderEnum = SortOrderEnum.DESC


@dataclass
class FilePage:
    page: int = 1
    per_page: int = 15

    def clamped(self, max_per_page: int) -> "FilePage":
        return FilePage(page=max(int(self.page), 1), per_page=min(max(int(self.per_page), 1), max_per_page))

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page


class CRUDFileRecord(CRUDBase[FileRecord]):
    def get_by_share_id(self, db: Session, share_id: str) -> Optional[FileRecord]:
        return self.query(db).filter(self.model.share_id == share_id).first()

    def share_id_exists(self, db: Session, share_id: Optional[str]) -> bool:
        if not share_id:
            return False
        query = self.query(db).filter(self.model.share_id == share_id).with_entities(func.count(self.model.id))
        return bool(query.scalar())

    def insert(self, db: Session, obj_in: Mapping[str, Any]) -> FileRecord:
        """写入新记录；唯一索引拒绝分享 ID 时抛出 ``DuplicateShareIdError``。"""
        db_obj = self.model(**dict(obj_in))
        db.add(db_obj)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            if self.share_id_exists(db, obj_in.get("share_id")):
                raise DuplicateShareIdError() from exc
            raise
        db.refresh(db_obj)
        return db_obj

    def update_fields(self, db: Session, db_obj: FileRecord, fields: Mapping[str, Any]) -> FileRecord:
        """仅允许更新名称、可见性与过期时间，其余字段创建后不可变。"""
        illegal = set(fields) - MUTABLE_FIELDS
        if illegal:
            raise ValueError(f"immutable fields cannot be updated: {sorted(illegal)}")
        for key, value in fields.items():
            setattr(db_obj, key, value)
        return self.save(db, db_obj)

    def increment_download_count(self, db: Session, id: int) -> int:
        """在数据库端原子自增下载次数，返回受影响行数。"""
        rows = (
            self.query(db)
            .filter(self.model.id == id)
            .update(
                {self.model.download_count: self.model.download_count + 1},
                synchronize_session=False,
            )
        )
        db.commit()
        return int(rows or 0)

    def list_with_filters(
        self,
        db: Session,
        *,
        filters: FileFilters,
        sort: FileSort,
        page: FilePage,
    ) -> Tuple[List[FileRecord], int]:
        if sort.field not in SORTABLE_FIELDS:
            raise ValueError(f"unsupported sort field: {sort.field}")

        query = self.query(db)
        if filters.owner_id is not None:
            query = query.filter(self.model.owner_id == filters.owner_id)
        if filters.is_public is not None:
            query = query.filter(self.model.is_public.is_(filters.is_public))
        if filters.type:
            query = query.filter(self.model.type == filters.type)
        if filters.search and filters.search.strip():
            query = query.filter(self.model.original_name.ilike(f"%{filters.search.strip()}%"))
        if filters.not_expired_at is not None:
            query = query.filter(
                or_(self.model.expires_at.is_(None), self.model.expires_at > filters.not_expired_at)
            )

        total = query.count()

        column = getattr(self.model, sort.field)
        if sort.order == SortOrderEnum.ASC:
            ordering = (column.asc(), self.model.id.asc())
        else:
            ordering = (column.desc(), self.model.id.desc())
        items = query.order_by(*ordering).offset(page.offset).limit(page.per_page).all()
        return items, total


file_record_crud = CRUDFileRecord(FileRecord)
