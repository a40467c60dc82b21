"""认证相关的请求/响应模型"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class RegisterRequest(BaseModel):
    """注册请求（需携带滑块验证通过后签发的凭证）"""

    model_config = ConfigDict(populate_by_name=True)

    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=6, max_length=100)
    # 注册不允许直接创建管理员
    role: Literal["user", "merchant"] = "user"
    captcha_token: str = Field(
        ..., alias="captchaToken", min_length=1, max_length=2048, description="人机验证凭证"
    )


class RegisterResponse(BaseModel):
    msg: str


class LoginRequest(BaseModel):
    """登录请求"""

    username: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=1, max_length=100)


class UserInfo(BaseModel):
    """用户信息"""

    id: int
    username: str
    role: str
    is_active: bool


class LoginResponse(BaseModel):
    """登录响应"""

    msg: str
    token: str
    user: UserInfo
