"""用户模型"""

from datetime import datetime
from enum import Enum

from sqlmodel import Field, SQLModel

from backend.app.core.utils import utc_now_naive


class UserRole(str, Enum):
    """用户角色枚举"""

    USER = "user"  # 普通用户
    MERCHANT = "merchant"  # 商户
    ADMIN = "admin"  # 管理员


class User(SQLModel, table=True):
    """用户模型"""

    __tablename__ = "users"

    id: int | None = Field(default=None, primary_key=True)
    username: str = Field(unique=True, index=True, max_length=50)
    hashed_password: str = Field(max_length=255)
    role: str = Field(default=UserRole.USER.value, max_length=20)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utc_now_naive)
