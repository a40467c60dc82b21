"""滑块验证码请求/响应模型"""

from pydantic import BaseModel, ConfigDict, Field


class CaptchaGenerateResponse(BaseModel):
    """生成响应：不含缺口 x 坐标"""

    model_config = ConfigDict(populate_by_name=True)

    captcha_id: str = Field(..., alias="captchaId")
    bg_image: str = Field(..., alias="bgImage", description="带凹槽的背景图 data URL")
    piece_image: str = Field(..., alias="pieceImage", description="拼图块 data URL")
    y: int = Field(..., description="拼图块纵坐标")


class CaptchaVerifyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    captcha_id: str = Field(..., alias="captchaId", pattern=r"^[0-9a-f]{32}$")
    x: float = Field(..., ge=0, le=10_000, allow_inf_nan=False, description="滑块偏移量（像素）")
    # 客户端上报的拖动耗时（毫秒），仅作辅助信号
    duration: int | None = Field(default=None, ge=0, le=3_600_000)


class CaptchaVerifyResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    captcha_token: str | None = Field(default=None, alias="captchaToken")
    msg: str | None = None
