"""安全模块：解析外部身份提供方签发的 JWT，得到请求者标识。

本服务不处理登录与会话，只消费已签发的令牌；``create_identity_token``
用于本地联调与测试，模拟身份提供方签发令牌。
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from .config import get_settings
from .logger import logger


def create_identity_token(subject: str, expires_delta: Optional[timedelta] = None) -> str:
    """签发携带 ``sub`` 的 JWT，默认一小时后过期。"""
    settings = get_settings()
    expire = datetime.now(timezone.utc) + (expires_delta if expires_delta else timedelta(hours=1))
    payload = {"sub": str(subject), "exp": expire}
    return jwt.encode(payload, settings.identity_jwt_secret, algorithm=settings.identity_jwt_algorithm)


def decode_identity_token(token: str) -> Optional[Dict[str, Any]]:
    """解码并校验 JWT（含过期时间），非法时返回 ``None``。"""
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            settings.identity_jwt_secret,
            algorithms=[settings.identity_jwt_algorithm],
        )
    except JWTError as exc:
        logger.warning("Failed to verify identity token: %s", exc)
        return None


def subject_from_claims(claims: Dict[str, Any]) -> Optional[str]:
    """从载荷中取出用户标识，兼容 ``sub`` 与 ``user_id`` 两种写法。"""
    subject = claims.get("sub") or claims.get("user_id")
    if subject is None:
        return None
    subject = str(subject).strip()
    return subject or None
