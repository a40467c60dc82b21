"""滑块挑战存储

所有状态变更都是带条件的单条 UPDATE，由数据库保证原子性：
并发消费同一挑战时只有一个调用方的 UPDATE 命中行。
尝试计数和消费结果立即提交，后续流程失败回滚也不会让挑战“复活”。
"""

import logging
from enum import Enum

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.utils import Clock, utc_now_naive
from backend.app.models.slider_challenge import SliderChallenge
from backend.app.services.captcha_errors import (
    AttemptsExhaustedError,
    ChallengeNotFoundError,
)

logger = logging.getLogger(__name__)


class ConsumeResult(str, Enum):
    OK = "ok"
    ALREADY_CONSUMED = "already_consumed"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"


class ChallengeStore:
    def __init__(self, session: AsyncSession, clock: Clock = utc_now_naive) -> None:
        self.session = session
        self.clock = clock

    async def put(self, challenge: SliderChallenge) -> None:
        self.session.add(challenge)
        await self.session.flush()

    async def get(self, challenge_id: str) -> SliderChallenge | None:
        """读取挑战；过期记录视同不存在"""
        stmt = (
            select(SliderChallenge)
            .where(SliderChallenge.id == challenge_id)
            .where(SliderChallenge.expires_at > self.clock())
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def mark_attempt(self, challenge_id: str) -> int:
        """占用一次尝试机会，返回累计已用次数"""
        stmt = (
            update(SliderChallenge)
            .where(SliderChallenge.id == challenge_id)
            .where(SliderChallenge.consumed.is_(False))
            .where(SliderChallenge.attempts_used < SliderChallenge.max_attempts)
            .where(SliderChallenge.expires_at > self.clock())
            .values(attempts_used=SliderChallenge.attempts_used + 1)
            .returning(SliderChallenge.attempts_used)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        attempts_used = result.scalar_one_or_none()
        await self.session.commit()

        if attempts_used is not None:
            return attempts_used

        record = await self.get(challenge_id)
        if record is None or record.consumed:
            raise ChallengeNotFoundError(challenge_id)
        raise AttemptsExhaustedError(challenge_id)

    async def consume(self, challenge_id: str) -> ConsumeResult:
        """将挑战置为已消费；并发调用中恰有一个得到 OK"""
        now = self.clock()
        stmt = (
            update(SliderChallenge)
            .where(SliderChallenge.id == challenge_id)
            .where(SliderChallenge.consumed.is_(False))
            .where(SliderChallenge.expires_at > now)
            .values(consumed=True)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        if result.rowcount == 1:
            return ConsumeResult.OK

        stmt = select(SliderChallenge.consumed, SliderChallenge.expires_at).where(
            SliderChallenge.id == challenge_id
        )
        row = (await self.session.execute(stmt)).one_or_none()
        if row is None:
            return ConsumeResult.NOT_FOUND
        if row.expires_at <= now:
            return ConsumeResult.EXPIRED
        return ConsumeResult.ALREADY_CONSUMED

    async def sweep_expired(self) -> int:
        """清理所有已过期的挑战记录"""
        stmt = delete(SliderChallenge).where(SliderChallenge.expires_at <= self.clock())
        result = await self.session.execute(stmt)
        if result.rowcount:
            logger.debug("已清理 %d 条过期滑块挑战", result.rowcount)
        return result.rowcount or 0
