"""模型包初始化，便于统一导入 ORM 实体并触发模型注册。"""

from app.packages.fileshare.models.file_record import FileRecord

__all__ = ["FileRecord"]
