"""Tests for the slider interaction state machine."""

from __future__ import annotations

import httpx
import pytest

from backend.app.client import CaptchaApiClient, SliderCaptchaWidget, SliderState
from backend.app.models.slider_challenge import SliderChallenge
from backend.app.schemas.captcha import CaptchaGenerateResponse, CaptchaVerifyResponse


class FakeCaptchaApi:
    def __init__(self, target_x: int = 120, tolerance: int = 4) -> None:
        self.target_x = target_x
        self.tolerance = tolerance
        self.generated: list[str] = []
        self.verified: list[tuple[str, int, int | None]] = []

    async def generate(self, scope: str = "registration") -> CaptchaGenerateResponse:
        captcha_id = f"{len(self.generated) + 1:032x}"
        self.generated.append(captcha_id)
        return CaptchaGenerateResponse(
            captcha_id=captcha_id,
            bg_image="data:image/png;base64,",
            piece_image="data:image/png;base64,",
            y=40,
        )

    async def verify(self, captcha_id: str, x: int, duration_ms: int | None = None):
        self.verified.append((captcha_id, x, duration_ms))
        if abs(x - self.target_x) <= self.tolerance:
            return CaptchaVerifyResponse(success=True, captcha_token="token-for-" + captcha_id)
        return CaptchaVerifyResponse(success=False, msg="验证失败，请重试")


class UnreachableApi(FakeCaptchaApi):
    async def generate(self, scope: str = "registration") -> CaptchaGenerateResponse:
        raise httpx.ConnectError("connection refused")


class TickClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


async def _loaded_widget(api, **kwargs) -> SliderCaptchaWidget:
    widget = SliderCaptchaWidget(api, reload_delay=0, **kwargs)
    await widget.load()
    return widget


@pytest.mark.asyncio
async def test_successful_drag_reports_token():
    api = FakeCaptchaApi(target_x=120)
    tokens: list[str] = []
    clock = TickClock()
    widget = await _loaded_widget(api, on_success=tokens.append, clock=clock)

    widget.pointer_down(50)
    assert widget.state is SliderState.DRAGGING
    widget.pointer_move(171)
    clock.now += 0.5

    assert await widget.pointer_up() is SliderState.SUCCESS
    assert widget.token == "token-for-" + api.generated[0]
    assert tokens == [widget.token]
    assert api.verified == [(api.generated[0], 121, 500)]


@pytest.mark.asyncio
async def test_offset_is_clamped_to_track():
    widget = await _loaded_widget(FakeCaptchaApi())

    widget.pointer_down(20)
    widget.pointer_move(-200)
    assert widget.offset == 0.0
    widget.pointer_move(2000)
    assert widget.offset == widget.max_offset == 266.0


@pytest.mark.asyncio
async def test_tap_does_not_verify():
    api = FakeCaptchaApi()
    widget = await _loaded_widget(api)

    widget.pointer_down(10)
    widget.pointer_move(15)
    assert await widget.pointer_up() is SliderState.IDLE
    assert widget.offset == 0.0
    assert api.verified == []


@pytest.mark.asyncio
async def test_failure_reloads_new_challenge():
    api = FakeCaptchaApi(target_x=200)
    failures: list[bool] = []
    widget = await _loaded_widget(api, on_fail=lambda: failures.append(True))
    first_id = widget.challenge.captcha_id

    widget.pointer_down(0)
    widget.pointer_move(80)
    assert await widget.pointer_up() is SliderState.FAIL

    assert failures == [True]
    assert widget.state is SliderState.IDLE
    assert widget.offset == 0.0
    assert widget.challenge.captcha_id != first_id

    # 新挑战上的验证使用新的 ID
    widget.pointer_down(0)
    widget.pointer_move(200)
    assert await widget.cancel() is SliderState.SUCCESS
    assert [call[0] for call in api.verified] == [first_id, widget.challenge.captcha_id]


@pytest.mark.asyncio
async def test_success_is_terminal():
    api = FakeCaptchaApi(target_x=100)
    widget = await _loaded_widget(api)
    widget.pointer_down(0)
    widget.pointer_move(100)
    await widget.pointer_up()

    widget.pointer_down(0)
    await widget.refresh()
    assert widget.state is SliderState.SUCCESS
    assert len(api.generated) == 1


@pytest.mark.asyncio
async def test_load_failure_leaves_widget_inert():
    widget = await _loaded_widget(UnreachableApi())
    assert widget.challenge is None

    widget.pointer_down(0)
    assert widget.state is SliderState.IDLE


@pytest.mark.asyncio
async def test_widget_against_live_app(client, session_factory):
    api = CaptchaApiClient(client=client)
    widget = await _loaded_widget(api)
    assert widget.challenge is not None

    async with session_factory() as session:
        challenge = await session.get(SliderChallenge, widget.challenge.captcha_id)

    widget.pointer_down(0)
    widget.pointer_move(challenge.target_x)
    assert await widget.pointer_up() is SliderState.SUCCESS

    resp = await client.post(
        "/api/auth/register",
        json={"username": "frank", "password": "secret123", "captchaToken": widget.token},
    )
    assert resp.status_code == 201
    await api.aclose()
    assert not client.is_closed
