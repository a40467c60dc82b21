#!/usr/bin/env python3
"""创建平台管理员账户脚本（注册接口不允许创建管理员）"""

import asyncio
import getpass
import sys
from pathlib import Path

# 添加项目根目录到 Python 路径
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from backend.app.core.database import async_session_factory, create_tables
from backend.app.models.user import UserRole
from backend.app.services.auth_service import AuthService


async def create_admin(username: str, password: str) -> None:
    """创建管理员"""
    if not password:
        raise ValueError("密码不能为空")

    await create_tables()
    async with async_session_factory() as session:
        auth_service = AuthService(session)
        try:
            admin = await auth_service.create_user(username, password, UserRole.ADMIN)
            await session.commit()
            print("✅ 管理员创建成功!")
            print(f"   账号: {admin.username}")
        except ValueError as e:
            print(f"❌ 创建失败: {e}")


def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(description="创建管理员账户")
    parser.add_argument("--username", default="admin", help="账号")
    parser.add_argument("--password", default=None, help="密码")
    args = parser.parse_args()

    # 如果密码为空，通过交互式输入获取密码
    password = args.password
    if not password:
        password = getpass.getpass("请输入管理员密码: ")
        if not password:
            print("❌ 密码不能为空，操作已取消")
            sys.exit(1)
        password_confirm = getpass.getpass("请再次输入密码确认: ")
        if password != password_confirm:
            print("❌ 两次输入的密码不一致，操作已取消")
            sys.exit(1)

    asyncio.run(create_admin(username=args.username, password=password))


if __name__ == "__main__":
    main()
