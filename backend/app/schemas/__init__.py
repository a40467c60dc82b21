"""Pydantic 请求/响应模型"""

from backend.app.schemas.auth import (
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
    UserInfo,
)
from backend.app.schemas.captcha import (
    CaptchaGenerateResponse,
    CaptchaVerifyRequest,
    CaptchaVerifyResponse,
)

__all__ = [
    # Auth
    "LoginRequest",
    "LoginResponse",
    "RegisterRequest",
    "RegisterResponse",
    "UserInfo",
    # Captcha
    "CaptchaGenerateResponse",
    "CaptchaVerifyRequest",
    "CaptchaVerifyResponse",
]
