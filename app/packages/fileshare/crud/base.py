"""CRUD 基类：为各实体提供通用的数据访问方法。"""

from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy.orm import Query, Session

from app.packages.fileshare.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class CRUDBase(Generic[ModelType]):
    """封装按主键查询、保存与物理删除，具体实体在子类中扩展。"""

    def __init__(self, model: Type[ModelType]):
        self.model = model

    def get(self, db: Session, id: Any) -> Optional[ModelType]:
        return self.query(db).filter(self.model.id == id).first()

    def save(self, db: Session, db_obj: ModelType, *, auto_commit: bool = True) -> ModelType:
        db.add(db_obj)
        if auto_commit:
            db.commit()
            db.refresh(db_obj)
        return db_obj

    def hard_delete(self, db: Session, db_obj: ModelType, *, auto_commit: bool = True) -> None:
        """物理删除行，并提交事务；提交失败时回滚后继续抛出。"""
        db.delete(db_obj)
        if auto_commit:
            try:
                db.commit()
            except Exception:
                db.rollback()
                raise

    def query(self, db: Session) -> Query:
        return db.query(self.model)
