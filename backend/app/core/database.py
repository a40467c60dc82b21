"""数据库连接和会话管理"""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from backend.app.core.config import settings

_POOL_SIZE = 5
_MAX_OVERFLOW = 15
_POOL_RECYCLE_SECONDS = 300
_POOL_TIMEOUT_SECONDS = 10       # 等待连接池空闲最多 10s，超时抛 TimeoutError
_CONNECT_TIMEOUT_SECONDS = 10    # asyncpg 建立 TCP 连接超时 10s
_COMMAND_TIMEOUT_SECONDS = 30    # asyncpg 单条 SQL 执行超时 30s


def _engine_options(database_url: str) -> dict[str, Any]:
    """连接池参数仅对 PostgreSQL 生效，SQLite 使用驱动默认值"""
    if not database_url.startswith("postgresql"):
        return {}
    return {
        "pool_size": _POOL_SIZE,
        "max_overflow": _MAX_OVERFLOW,
        "pool_recycle": _POOL_RECYCLE_SECONDS,
        "pool_timeout": _POOL_TIMEOUT_SECONDS,
        "connect_args": {
            "timeout": _CONNECT_TIMEOUT_SECONDS,
            "command_timeout": _COMMAND_TIMEOUT_SECONDS,
        },
    }


engine = create_async_engine(
    settings.database_url,
    echo=settings.log_level == "DEBUG",
    pool_pre_ping=True,
    **_engine_options(settings.database_url),
)

async_session_factory = sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """依赖注入：获取数据库会话"""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def create_tables() -> None:
    """按模型定义创建缺失的表"""
    # 确保所有表模型已注册到 metadata
    import backend.app.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
