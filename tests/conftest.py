"""测试夹具：为 pytest 提供数据库、存储目录与客户端的共享配置。"""

import io
import os
import tempfile
from typing import Generator

TEST_DB_PATH = os.path.join(os.path.dirname(__file__), "test.db")
TEST_DATABASE_URL = f"sqlite:///{TEST_DB_PATH}"
TEST_RUNTIME_DIR = tempfile.mkdtemp(prefix="fileshare-tests-")

# 必须在导入应用之前写入，配置对象会被缓存
os.environ["ENV_FILE"] = ".env.test"
os.environ["APP_ACTIVE_PACKAGE"] = "fileshare"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["STORAGE_TYPE"] = "LOCAL"
os.environ["STORAGE_LOCAL_ROOT"] = os.path.join(TEST_RUNTIME_DIR, "uploads")
os.environ["LOG_DIR"] = os.path.join(TEST_RUNTIME_DIR, "log")
os.environ["IDENTITY_JWT_SECRET"] = "test-secret"
os.environ["PUBLIC_BASE_URL"] = "http://testserver"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from PIL import Image  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from app.main import app  # noqa: E402
from app.packages.fileshare.core.dependencies import get_db  # noqa: E402
from app.packages.fileshare.core.security import create_identity_token  # noqa: E402
from app.packages.fileshare.crud.file_record import file_record_crud  # noqa: E402
from app.packages.fileshare.db import session as db_session  # noqa: E402
from app.packages.fileshare.db.init_db import init_db  # noqa: E402
from app.packages.fileshare.models.base import Base  # noqa: E402
from app.packages.fileshare.models.file_record import FileRecord  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def setup_test_database() -> Generator[None, None, None]:
    """创建隔离的 SQLite 测试数据库，并在会话结束后清理。"""
    if os.path.exists(TEST_DB_PATH):
        os.remove(TEST_DB_PATH)

    engine = db_session.build_engine(TEST_DATABASE_URL)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db_session.engine = engine
    db_session.SessionLocal = TestingSessionLocal

    Base.metadata.create_all(bind=engine)
    init_db()
    yield

    engine.dispose()
    if os.path.exists(TEST_DB_PATH):
        os.remove(TEST_DB_PATH)


@pytest.fixture(autouse=True)
def clean_tables() -> Generator[None, None, None]:
    yield
    with db_session.SessionLocal() as session:
        session.query(FileRecord).delete()
        session.commit()


@pytest.fixture()
def db_session_fixture() -> Generator[Session, None, None]:
    """提供给测试用例使用的数据库会话。"""
    session = db_session.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(db_session_fixture):
    """构建 FastAPI TestClient，并注入测试专用的数据库依赖。"""
    def override_get_db() -> Generator[Session, None, None]:
        session = db_session.SessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def png_bytes() -> bytes:
    """3x2 的 PNG 图片内容。"""
    buffer = io.BytesIO()
    Image.new("RGB", (3, 2), color=(255, 0, 0)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture()
def auth_headers():
    def _build(user_id: str) -> dict:
        return {"Authorization": f"Bearer {create_identity_token(user_id)}"}

    return _build


@pytest.fixture()
def make_record(db_session_fixture):
    """直接写入一条记录，绕过上传流程，便于构造过期、私有等状态。"""
    counter = {"value": 0}

    def _make(db: Session = None, **overrides) -> FileRecord:
        counter["value"] += 1
        index = counter["value"]
        fields = {
            "share_id": f"seedRecord{index:04d}",
            "original_name": f"photo-{index}.png",
            "filename": f"seed-{index}.png",
            "storage_key": f"uploads/seed-{index}.png",
            "mime_type": "image/png",
            "size_bytes": 1024,
            "type": "image",
            "file_metadata": {},
            "is_public": True,
            "owner_id": None,
            "expires_at": None,
            "download_count": 0,
        }
        fields.update(overrides)
        return file_record_crud.insert(db or db_session_fixture, fields)

    return _make
