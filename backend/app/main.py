"""FastAPI 应用入口"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from backend.app.api import api_router
from backend.app.api.deps import get_captcha_config
from backend.app.core.config import settings
from backend.app.core.database import async_session_factory, create_tables
from backend.app.core.exception_handlers import (
    global_exception_handler,
    validation_exception_handler,
)
from backend.app.services.captcha_token_service import CaptchaTokenService
from backend.app.services.challenge_store import ChallengeStore

# 盲猜通过概率超过该值时在启动日志中告警
_BRUTE_FORCE_WARN_THRESHOLD = 0.05

# 配置日志
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def sweep_expired_once() -> tuple[int, int]:
    """清理过期挑战和过期凭证的使用记录"""
    async with async_session_factory() as session:
        challenges = await ChallengeStore(session).sweep_expired()
        tokens = await CaptchaTokenService(session, get_captcha_config()).sweep_spent()
        await session.commit()
    return challenges, tokens


async def _sweep_loop(interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        try:
            challenges, tokens = await sweep_expired_once()
        except Exception as e:
            # 清理失败不影响服务，下个周期重试
            logger.warning("过期验证码清理失败: %s", e)
            continue
        if challenges or tokens:
            logger.debug("已清理过期挑战 %d 条、凭证记录 %d 条", challenges, tokens)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """应用生命周期管理"""
    # 启动时
    logger.info("正在启动酒店预订后端服务...")
    if settings.auto_create_tables:
        await create_tables()

    config = get_captcha_config()
    if config.brute_force_bound > _BRUTE_FORCE_WARN_THRESHOLD:
        logger.warning(
            "滑块验证码盲猜通过概率上界为 %.1f%%，请调小容差或尝试次数",
            config.brute_force_bound * 100,
        )

    sweeper = None
    if settings.captcha_sweep_interval_seconds > 0:
        sweeper = asyncio.create_task(_sweep_loop(settings.captcha_sweep_interval_seconds))

    logger.info("酒店预订后端服务启动完成")
    yield
    # 关闭时
    logger.info("正在关闭酒店预订后端服务...")
    if sweeper is not None:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper


app = FastAPI(
    title="Hotel Booking API",
    description="酒店预订平台后端：滑块验证码与账号注册",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS 配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# 全局异常处理
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)


# 健康检查 API
@app.get("/health", tags=["健康检查"])
async def health_check() -> dict:
    """基础健康检查"""
    return {"status": "healthy"}


@app.get("/health/detailed", tags=["健康检查"])
async def detailed_health_check() -> dict:
    """详细健康检查（数据库连接状态）"""
    from sqlalchemy import text

    from backend.app.core.database import engine

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as e:
        logger.error("数据库连接失败: %s", e)
        db_status = "disconnected"

    return {
        "status": "healthy" if db_status == "connected" else "unhealthy",
        "database": db_status,
        "timestamp": datetime.now(UTC).isoformat(),
    }


# 注册 API 路由
app.include_router(api_router, prefix="/api")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "backend.app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
