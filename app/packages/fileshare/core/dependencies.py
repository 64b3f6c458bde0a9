"""依赖注入模块：封装 FastAPI 中复用度高的依赖函数。"""

from collections.abc import Generator
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.packages.fileshare.core.security import decode_identity_token, subject_from_claims
from app.packages.fileshare.db import session as db_session
from app.packages.fileshare.services.access_policy import Requester
from app.packages.fileshare.services.file_service import FileLifecycleService
from app.packages.fileshare.services.file_service import get_file_service as _build_file_service

BEARER_SCHEME = "bearer"

security_scheme = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    """生成一个数据库会话，并在请求结束后自动关闭。"""
    db = db_session.SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_requester(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
) -> Optional[Requester]:
    """解析可选的 ``Authorization`` 头部：缺省视为匿名，携带但非法时抛出 401。"""
    if not credentials:
        return None

    if credentials.scheme.lower() != BEARER_SCHEME:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="认证类型无效")

    claims = decode_identity_token(credentials.credentials)
    if claims is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token 无效或已过期")

    subject = subject_from_claims(claims)
    if subject is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token 无效")
    return Requester(id=subject)


def get_file_service() -> FileLifecycleService:
    return _build_file_service()
