"""密码哈希与签名令牌"""

from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
from jose import JWTError, jwt

from backend.app.core.config import settings

ACCESS_TOKEN_TYPE = "access"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(
        plain_password.encode("utf-8"),
        hashed_password.encode("utf-8"),
    )


def get_password_hash(password: str) -> str:
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())
    return hashed.decode("utf-8")


def sign_claims(claims: dict[str, Any], secret: str, algorithm: str) -> str:
    """对载荷签名，输出紧凑 JWS（base64url，可安全放入 URL/JSON）"""
    return jwt.encode(claims, secret, algorithm=algorithm)


def verify_claims(
    token: str,
    secret: str,
    algorithm: str,
    *,
    verify_exp: bool = True,
) -> dict[str, Any]:
    """先校验签名再返回载荷，签名或格式错误时抛出 JWTError"""
    return jwt.decode(
        token,
        secret,
        algorithms=[algorithm],
        options={"verify_exp": verify_exp},
    )


def create_access_token(
    user_id: int,
    role: str,
    expires_delta: timedelta | None = None,
) -> str:
    expire = datetime.now(UTC) + (
        expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes)
    )
    claims = {
        "sub": str(user_id),
        "role": role,
        "typ": ACCESS_TOKEN_TYPE,
        "exp": expire,
    }
    return sign_claims(claims, settings.jwt_secret_key, settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any] | None:
    try:
        payload = verify_claims(token, settings.jwt_secret_key, settings.jwt_algorithm)
    except JWTError:
        return None
    if payload.get("typ") != ACCESS_TOKEN_TYPE:
        return None
    return payload
