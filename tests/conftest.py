from __future__ import annotations

import os
from collections.abc import AsyncIterator, Callable
from datetime import datetime, timedelta

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("CAPTCHA_SECRET_KEY", "test-captcha-secret-0123456789")
os.environ.setdefault("CAPTCHA_SWEEP_INTERVAL_SECONDS", "0")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")

import backend.app.models  # noqa: E402,F401
from backend.app.api.deps import get_captcha_config  # noqa: E402
from backend.app.core.database import get_session  # noqa: E402
from backend.app.main import app as fastapi_app  # noqa: E402
from backend.app.models.slider_challenge import SliderChallenge  # noqa: E402
from backend.app.services.captcha_config import CaptchaConfig  # noqa: E402

TEST_SECRET = "test-captcha-secret-0123456789"


class FakeClock:
    """可手动推进的 naive UTC 时钟"""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def captcha_config() -> CaptchaConfig:
    return CaptchaConfig(
        secret_key=TEST_SECRET,
        tolerance_px=4,
        max_attempts=3,
        timing_check_enabled=False,
    )


@pytest_asyncio.fixture()
async def engine(tmp_path) -> AsyncIterator[AsyncEngine]:
    # 每个会话独立连接，并发用例依赖数据库自身的写锁
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'captcha.db'}",
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture()
def session_factory(engine: AsyncEngine) -> Callable[[], AsyncSession]:
    return sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture()
async def session(session_factory) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
def make_challenge(clock: FakeClock) -> Callable[..., SliderChallenge]:
    counter = iter(range(1, 10_000))

    def _make(
        target_x: int = 120,
        target_y: int = 40,
        max_attempts: int = 3,
        ttl_seconds: int = 120,
        scope: str = "registration",
    ) -> SliderChallenge:
        now = clock()
        return SliderChallenge(
            id=f"{next(counter):032x}",
            target_x=target_x,
            target_y=target_y,
            scope=scope,
            max_attempts=max_attempts,
            created_at=now,
            expires_at=now + timedelta(seconds=ttl_seconds),
        )

    return _make


@pytest_asyncio.fixture()
async def client(session_factory, captcha_config) -> AsyncIterator[httpx.AsyncClient]:
    async def _get_session_override() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    fastapi_app.dependency_overrides[get_session] = _get_session_override
    fastapi_app.dependency_overrides[get_captcha_config] = lambda: captcha_config
    transport = httpx.ASGITransport(app=fastapi_app)
    try:
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as test_client:
            yield test_client
    finally:
        fastapi_app.dependency_overrides.clear()
