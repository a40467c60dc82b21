"""API 依赖注入"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.database import get_session
from backend.app.core.security import decode_access_token
from backend.app.models.user import User
from backend.app.services.auth_service import AuthService
from backend.app.services.captcha_config import CaptchaConfig
from backend.app.services.captcha_service import CaptchaService
from backend.app.services.captcha_token_service import CaptchaTokenService

security = HTTPBearer()
SessionDep = Annotated[AsyncSession, Depends(get_session)]


@lru_cache
def get_captcha_config() -> CaptchaConfig:
    return CaptchaConfig.from_settings()


CaptchaConfigDep = Annotated[CaptchaConfig, Depends(get_captcha_config)]


def get_captcha_service(session: SessionDep, config: CaptchaConfigDep) -> CaptchaService:
    return CaptchaService(session, config)


def get_captcha_token_service(
    session: SessionDep, config: CaptchaConfigDep
) -> CaptchaTokenService:
    return CaptchaTokenService(session, config)


CaptchaServiceDep = Annotated[CaptchaService, Depends(get_captcha_service)]
CaptchaTokenServiceDep = Annotated[CaptchaTokenService, Depends(get_captcha_token_service)]


async def get_current_user_token(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> dict:
    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="无效的认证令牌",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return payload


async def get_current_user(
    session: SessionDep,
    payload: dict = Depends(get_current_user_token),
) -> User:
    auth_service = AuthService(session)
    user = await auth_service.get_user_by_id(int(payload["sub"]))
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="用户不存在"
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="账户已被禁用"
        )
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]
