"""认证相关 API"""

import logging

from fastapi import APIRouter, HTTPException, status

from backend.app.api.deps import CaptchaTokenServiceDep, CurrentUser, SessionDep
from backend.app.models.user import UserRole
from backend.app.schemas.auth import (
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
    UserInfo,
)
from backend.app.services.auth_service import AuthService
from backend.app.services.captcha_errors import CaptchaTokenError

logger = logging.getLogger(__name__)

router = APIRouter()

REGISTRATION_SCOPE = "registration"


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register(
    data: RegisterRequest,
    session: SessionDep,
    token_service: CaptchaTokenServiceDep,
) -> RegisterResponse:
    """用户注册（需先通过滑块验证）"""
    try:
        await token_service.validate(data.captcha_token, REGISTRATION_SCOPE)
    except CaptchaTokenError as e:
        logger.info("注册人机验证凭证无效: reason=%s", e.reason.value)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="人机验证未通过或已失效，请重新验证",
        )

    auth_service = AuthService(session)
    try:
        await auth_service.create_user(data.username, data.password, UserRole(data.role))
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )
    return RegisterResponse(msg="注册成功！请登录")


@router.post("/login", response_model=LoginResponse)
async def login(
    data: LoginRequest,
    session: SessionDep,
) -> LoginResponse:
    """用户登录"""
    auth_service = AuthService(session)
    try:
        return await auth_service.login(data)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )


@router.get("/me", response_model=UserInfo)
async def read_current_user(user: CurrentUser) -> UserInfo:
    """当前登录用户信息"""
    return UserInfo.model_validate(user, from_attributes=True)
