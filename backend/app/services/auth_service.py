"""认证服务"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.security import (
    create_access_token,
    get_password_hash,
    verify_password,
)
from backend.app.models.user import User, UserRole
from backend.app.schemas.auth import LoginRequest, LoginResponse, UserInfo


class AuthService:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_user(
        self,
        username: str,
        password: str,
        role: UserRole = UserRole.USER,
    ) -> User:
        if await self.get_user_by_username(username):
            raise ValueError("该账号已被注册")

        user = User(
            username=username,
            hashed_password=get_password_hash(password),
            role=role.value,
        )
        self.session.add(user)
        await self.session.flush()
        await self.session.refresh(user)
        return user

    async def login(self, data: LoginRequest) -> LoginResponse:
        user = await self.get_user_by_username(data.username)
        if not user:
            raise ValueError("账号不存在")
        if not verify_password(data.password, user.hashed_password):
            raise ValueError("密码错误")
        if not user.is_active:
            raise ValueError("账户已被禁用")

        return LoginResponse(
            msg="登录成功",
            token=create_access_token(user.id, user.role),
            user=UserInfo.model_validate(user, from_attributes=True),
        )

    async def get_user_by_username(self, username: str) -> User | None:
        stmt = select(User).where(User.username == username)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_user_by_id(self, user_id: int) -> User | None:
        stmt = select(User).where(User.id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
