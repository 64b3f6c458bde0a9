"""配置模块：负责加载和缓存基于环境变量的应用设置。

环境文件按以下顺序加载，后者覆盖前者（已存在的进程环境变量不会被 ``.env`` 覆盖）：
1. ``ENV_FILE`` 指定的文件（指定后不再加载其他文件）；
2. 项目根目录的 ``.env``；
3. ``.env.<ENVIRONMENT>``，``DEBUG`` 为真且未设置 ``ENVIRONMENT`` 时取 ``development``。
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Iterator, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _detect_base_dir() -> Path:
    """向上查找同时包含 ``app`` 目录的项目根路径，找不到时使用本文件所在目录。"""
    here = Path(__file__).resolve()
    return next((parent for parent in here.parents if (parent / "app").is_dir()), here.parent)


BASE_DIR = _detect_base_dir()


def _as_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


def _env_files() -> Iterator[Tuple[Path, bool]]:
    """依次产出 (环境文件, 是否覆盖已有变量)。"""
    explicit = os.getenv("ENV_FILE")
    if explicit:
        yield BASE_DIR / explicit, True
        return

    yield BASE_DIR / ".env", False

    environment = os.getenv("ENVIRONMENT") or ("development" if _as_bool(os.getenv("DEBUG")) else None)
    if environment:
        name = environment if environment.startswith(".env") else f".env.{environment}"
        yield BASE_DIR / name, True


def _load_environment() -> None:
    for path, override in _env_files():
        if path.is_file():
            load_dotenv(path, override=override, encoding="utf-8")


_load_environment()


class Settings(BaseSettings):
    """
    封装文件分享服务运行所需的所有配置项，每个字段都可以通过环境变量重写。
    数据库、存储后端、上传限制与分享链接的生成规则都集中在这里，避免在代码中散落魔法数字。
    """

    project_name: str = Field(default="FileShare API", alias="PROJECT_NAME")
    api_v1_str: str = Field(default="/api/v1", alias="API_V1_STR")
    debug: bool = Field(default=False, alias="DEBUG")

    # 显式指定 DATABASE_URL 时优先使用（测试环境使用 SQLite）
    database_url: Optional[str] = Field(default=None, alias="DATABASE_URL")
    database_host: str = Field(default="localhost", alias="DATABASE_HOST")
    database_port: int = Field(default=5432, alias="DATABASE_PORT")
    database_user: str = Field(default="postgres", alias="DATABASE_USER")
    database_password: str = Field(default="postgres", alias="DATABASE_PASSWORD")
    database_name: str = Field(default="fileshare", alias="DATABASE_NAME")
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    # 外部身份提供方签发的访问令牌（本服务只负责解析，不负责签发登录）
    identity_jwt_secret: str = Field(default="changeme", alias="IDENTITY_JWT_SECRET")
    identity_jwt_algorithm: str = Field(default="HS256", alias="IDENTITY_JWT_ALGORITHM")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_dir: str = Field(default="log", alias="LOG_DIR")
    log_file_name: str = Field(default="app.log", alias="LOG_FILE_NAME")
    log_json: bool = Field(default=False, alias="LOG_JSON")
    app_port: int = Field(default=8000, alias="APP_PORT")
    timezone: str = Field(default="UTC", alias="TIMEZONE")

    # 存储后端：LOCAL 或 S3
    storage_type: str = Field(default="LOCAL", alias="STORAGE_TYPE")
    storage_local_root: str = Field(default="storage/uploads", alias="STORAGE_LOCAL_ROOT")
    storage_s3_bucket: Optional[str] = Field(default=None, alias="STORAGE_S3_BUCKET")
    storage_s3_region: Optional[str] = Field(default=None, alias="STORAGE_S3_REGION")
    storage_s3_prefix: Optional[str] = Field(default="uploads", alias="STORAGE_S3_PREFIX")
    storage_s3_access_key_id: Optional[str] = Field(default=None, alias="STORAGE_S3_ACCESS_KEY_ID")
    storage_s3_secret_access_key: Optional[str] = Field(default=None, alias="STORAGE_S3_SECRET_ACCESS_KEY")
    storage_s3_endpoint_url: Optional[str] = Field(default=None, alias="STORAGE_S3_ENDPOINT_URL")

    # 上传与分享规则
    max_upload_bytes: int = Field(default=100 * 1024 * 1024, alias="MAX_UPLOAD_BYTES")
    share_id_length: int = Field(default=12, alias="SHARE_ID_LENGTH")
    max_expiry_days: int = Field(default=365, alias="MAX_EXPIRY_DAYS")
    default_page_size: int = Field(default=15, alias="DEFAULT_PAGE_SIZE")
    max_page_size: int = Field(default=100, alias="MAX_PAGE_SIZE")
    public_base_url: str = Field(default="http://127.0.0.1:8000", alias="PUBLIC_BASE_URL")

    model_config = SettingsConfigDict(extra='ignore')

    @property
    def sql_database_url(self) -> str:
        """优先返回显式配置的连接串，否则根据当前设置拼接 PostgreSQL 连接串。"""
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+psycopg2://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    def _resolve_path(self, raw: str) -> Path:
        path = Path(raw)
        if not path.is_absolute():
            path = BASE_DIR / path
        return path

    @property
    def log_directory(self) -> Path:
        """返回日志目录的绝对路径，支持相对路径配置。"""
        return self._resolve_path(self.log_dir)

    @property
    def log_file_path(self) -> Path:
        """组合日志目录与文件名，得到完整的日志文件路径。"""
        return self.log_directory / self.log_file_name

    @property
    def storage_local_directory(self) -> Path:
        """本地存储根目录的绝对路径。"""
        return self._resolve_path(self.storage_local_root)

    @property
    def timezone_info(self) -> ZoneInfo:
        """返回当前配置对应的时区信息，无法解析时回退到 UTC。"""
        try:
            return ZoneInfo(self.timezone)
        except ZoneInfoNotFoundError:
            return ZoneInfo("UTC")


@lru_cache
def get_settings() -> Settings:
    """返回单例化的配置对象，避免重复解析环境变量造成性能浪费。"""
    return Settings()
