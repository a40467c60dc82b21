"""滑块验证码 HTTP 客户端"""

import httpx

from backend.app.schemas.captcha import CaptchaGenerateResponse, CaptchaVerifyResponse

DEFAULT_TIMEOUT = 10.0


class CaptchaApiClient:
    """验证码接口会话

    持有一个 httpx.AsyncClient，生命周期由调用方显式管理
    （async with 或 aclose）。传入外部 client 时不负责关闭它。
    """

    def __init__(
        self,
        base_url: str = "",
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
        )

    async def generate(self, scope: str = "registration") -> CaptchaGenerateResponse:
        resp = await self._client.get("/api/captcha/generate", params={"scope": scope})
        resp.raise_for_status()
        return CaptchaGenerateResponse.model_validate(resp.json())

    async def verify(
        self,
        captcha_id: str,
        x: int,
        duration_ms: int | None = None,
    ) -> CaptchaVerifyResponse:
        payload: dict[str, str | int] = {"captchaId": captcha_id, "x": x}
        if duration_ms is not None:
            payload["duration"] = duration_ms
        resp = await self._client.post("/api/captcha/verify", json=payload)
        resp.raise_for_status()
        return CaptchaVerifyResponse.model_validate(resp.json())

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "CaptchaApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
