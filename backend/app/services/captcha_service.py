"""滑块验证码服务：生成挑战与校验滑块位置"""

import asyncio
import logging
import secrets
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.utils import Clock, utc_now_naive
from backend.app.models.slider_challenge import SliderChallenge
from backend.app.services.captcha_config import CaptchaConfig
from backend.app.services.captcha_errors import (
    AttemptsExhaustedError,
    CaptchaVerifyError,
    ChallengeNotFoundError,
    VerifyFailure,
)
from backend.app.services.captcha_token_service import CaptchaTokenService
from backend.app.services.challenge_store import ChallengeStore, ConsumeResult
from backend.app.services.puzzle_service import PuzzleGenerator, to_data_url

logger = logging.getLogger(__name__)

DEFAULT_SCOPE = "registration"


def _render(generator: PuzzleGenerator) -> tuple[str, str, int, int]:
    """生成拼图并编码为 data URL（CPU 密集，在线程池中执行）"""
    puzzle = generator.generate()
    return (
        to_data_url(puzzle.background),
        to_data_url(puzzle.piece),
        puzzle.target_x,
        puzzle.target_y,
    )


class CaptchaService:
    def __init__(
        self,
        session: AsyncSession,
        config: CaptchaConfig,
        generator: PuzzleGenerator | None = None,
        clock: Clock = utc_now_naive,
    ) -> None:
        self.session = session
        self.config = config
        self.generator = generator or PuzzleGenerator(config)
        self.clock = clock
        self.store = ChallengeStore(session, clock)
        self.tokens = CaptchaTokenService(session, config, clock)

    async def generate(self, scope: str = DEFAULT_SCOPE) -> dict[str, str | int]:
        """生成滑块挑战，返回 {captchaId, bgImage, pieceImage, y}，不返回缺口 x。

        图片合成成功后才写入挑战记录，合成失败抛出 PuzzleGenerationError。
        """
        if scope not in self.config.token_scopes:
            raise ValueError(f"不支持的验证用途: {scope}")

        # 顺带清理过期记录
        await self.store.sweep_expired()

        loop = asyncio.get_running_loop()
        bg_image, piece_image, target_x, target_y = await loop.run_in_executor(
            None, _render, self.generator
        )

        now = self.clock()
        challenge = SliderChallenge(
            id=secrets.token_hex(16),
            target_x=target_x,
            target_y=target_y,
            scope=scope,
            max_attempts=self.config.max_attempts,
            created_at=now,
            expires_at=now + timedelta(seconds=self.config.challenge_expire_seconds),
        )
        await self.store.put(challenge)

        logger.debug("滑块挑战已生成: captcha_id=%s", challenge.id)
        return {
            "captchaId": challenge.id,
            "bgImage": bg_image,
            "pieceImage": piece_image,
            "y": target_y,
        }

    async def verify(
        self,
        captcha_id: str,
        x: float,
        duration_ms: int | None = None,
    ) -> str:
        """校验滑块位置，成功返回人机验证凭证，失败抛出 CaptchaVerifyError"""
        challenge = await self.store.get(captcha_id)
        if challenge is None or challenge.consumed:
            raise CaptchaVerifyError(VerifyFailure.INVALID_OR_EXPIRED)

        try:
            attempts_used = await self.store.mark_attempt(captcha_id)
        except ChallengeNotFoundError:
            raise CaptchaVerifyError(VerifyFailure.INVALID_OR_EXPIRED) from None
        except AttemptsExhaustedError:
            raise CaptchaVerifyError(VerifyFailure.TOO_MANY_ATTEMPTS) from None

        matched = abs(x - challenge.target_x) <= self.config.tolerance_px
        plausible = self._is_plausible(challenge, duration_ms)

        if matched and plausible:
            if await self.store.consume(captcha_id) is not ConsumeResult.OK:
                # 并发请求已抢先消费
                raise CaptchaVerifyError(VerifyFailure.INVALID_OR_EXPIRED)
            # 签发失败时挑战保持已消费，客户端需重新获取
            return self.tokens.mint(challenge.scope, challenge.id)

        if attempts_used >= challenge.max_attempts:
            # 最后一次机会用完，作废挑战
            await self.store.consume(captcha_id)
        if not matched:
            raise CaptchaVerifyError(VerifyFailure.POSITION_MISMATCH)
        raise CaptchaVerifyError(VerifyFailure.IMPLAUSIBLE_INTERACTION)

    def _is_plausible(self, challenge: SliderChallenge, duration_ms: int | None) -> bool:
        """交互时长启发式检查，只作为位置校验之外的附加信号"""
        if not self.config.timing_check_enabled:
            return True
        if duration_ms is not None and duration_ms < self.config.min_drag_ms:
            return False
        elapsed = self.clock() - challenge.created_at
        return elapsed >= timedelta(milliseconds=self.config.min_solve_ms)
