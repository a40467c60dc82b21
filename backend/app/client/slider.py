"""滑块交互状态机

idle → dragging → verifying → success | fail，fail 经过短暂延迟后
重新拉取新挑战回到 idle（旧的 captchaId 直接丢弃，不再重试）。
success 为终态，再次验证需要新的组件实例。
"""

import asyncio
import logging
import time
from collections.abc import Callable
from enum import Enum

import httpx

from backend.app.client.api import CaptchaApiClient
from backend.app.schemas.captcha import CaptchaGenerateResponse

logger = logging.getLogger(__name__)

TRACK_WIDTH = 310  # 与背景图同宽
PIECE_WIDTH = 44
MIN_DRAG_PX = 10  # 小于该距离视为误触，不发起校验
RELOAD_DELAY_SECONDS = 1.2


class SliderState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    VERIFYING = "verifying"
    SUCCESS = "success"
    FAIL = "fail"


class SliderCaptchaWidget:
    def __init__(
        self,
        api: CaptchaApiClient,
        *,
        scope: str = "registration",
        track_width: int = TRACK_WIDTH,
        piece_width: int = PIECE_WIDTH,
        min_drag_px: float = MIN_DRAG_PX,
        reload_delay: float = RELOAD_DELAY_SECONDS,
        on_success: Callable[[str], None] | None = None,
        on_fail: Callable[[], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.api = api
        self.scope = scope
        self.track_width = track_width
        self.piece_width = piece_width
        self.min_drag_px = min_drag_px
        self.reload_delay = reload_delay
        self.on_success = on_success
        self.on_fail = on_fail
        self.clock = clock

        self.state = SliderState.IDLE
        self.offset = 0.0
        self.challenge: CaptchaGenerateResponse | None = None
        self.token: str | None = None
        self._start_x = 0.0
        self._drag_started_at = 0.0

    @property
    def max_offset(self) -> float:
        return float(self.track_width - self.piece_width)

    async def load(self) -> None:
        """拉取新挑战并复位滑块"""
        self.offset = 0.0
        self.state = SliderState.IDLE
        self.challenge = None
        try:
            self.challenge = await self.api.generate(self.scope)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("加载验证码失败: %s", e)

    async def refresh(self) -> None:
        """换一张"""
        if self.state in (SliderState.VERIFYING, SliderState.SUCCESS):
            return
        await self.load()

    def pointer_down(self, client_x: float) -> None:
        if self.state is not SliderState.IDLE or self.challenge is None:
            return
        self._start_x = client_x - self.offset
        self._drag_started_at = self.clock()
        self.state = SliderState.DRAGGING

    def pointer_move(self, client_x: float) -> None:
        # 指针移出轨道不算松手，继续跟随直到 up/cancel
        if self.state is not SliderState.DRAGGING:
            return
        self.offset = min(max(client_x - self._start_x, 0.0), self.max_offset)

    async def pointer_up(self) -> SliderState:
        """松手，返回本次拖动的结果；失败时返回前已换好新挑战"""
        if self.state is not SliderState.DRAGGING:
            return self.state
        if self.offset <= self.min_drag_px:
            # 误触：不消耗服务端尝试次数
            self.offset = 0.0
            self.state = SliderState.IDLE
            return self.state

        self.state = SliderState.VERIFYING
        duration_ms = int((self.clock() - self._drag_started_at) * 1000)
        captcha_id = self.challenge.captcha_id
        try:
            result = await self.api.verify(captcha_id, round(self.offset), duration_ms)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("验证请求失败: %s", e)
            result = None

        if result is not None and result.success and result.captcha_token:
            self.token = result.captcha_token
            self.state = SliderState.SUCCESS
            if self.on_success:
                self.on_success(self.token)
            return self.state

        # 只暴露失败状态，不透出具体原因
        self.state = SliderState.FAIL
        if self.on_fail:
            self.on_fail()
        await asyncio.sleep(self.reload_delay)
        await self.load()
        return SliderState.FAIL

    async def cancel(self) -> SliderState:
        """pointercancel / touchcancel 与松手同样处理"""
        return await self.pointer_up()
