"""滑块验证码 API"""

import logging

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import JSONResponse

from backend.app.api.deps import CaptchaServiceDep
from backend.app.schemas.captcha import (
    CaptchaGenerateResponse,
    CaptchaVerifyRequest,
    CaptchaVerifyResponse,
)
from backend.app.services.captcha_errors import (
    CaptchaVerifyError,
    PuzzleGenerationError,
    VerifyFailure,
)

logger = logging.getLogger(__name__)

router = APIRouter()

# 对外只给出笼统提示，不暴露坐标、容差或剩余次数
_FAILURE_MESSAGES: dict[VerifyFailure, str] = {
    VerifyFailure.INVALID_OR_EXPIRED: "验证码已过期，请重新获取",
}
_DEFAULT_FAILURE_MESSAGE = "验证失败，请重试"


@router.get("/generate", response_model=CaptchaGenerateResponse)
async def generate_captcha(
    captcha_service: CaptchaServiceDep,
    scope: str = Query(default="registration", max_length=50),
):
    """生成滑块验证码"""
    try:
        return await captcha_service.generate(scope)
    except PuzzleGenerationError as e:
        logger.error("验证码生成失败: %s", e, exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"msg": "验证码生成失败"},
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )


@router.post("/verify", response_model=CaptchaVerifyResponse, response_model_exclude_none=True)
async def verify_captcha(
    data: CaptchaVerifyRequest,
    captcha_service: CaptchaServiceDep,
) -> CaptchaVerifyResponse:
    """校验滑块位置，通过后签发一次性凭证"""
    try:
        token = await captcha_service.verify(data.captcha_id, data.x, data.duration)
    except CaptchaVerifyError as e:
        logger.info("滑块验证未通过: captcha_id=%s, reason=%s", data.captcha_id, e.reason.value)
        return CaptchaVerifyResponse(
            success=False,
            msg=_FAILURE_MESSAGES.get(e.reason, _DEFAULT_FAILURE_MESSAGE),
        )
    return CaptchaVerifyResponse(success=True, captcha_token=token)
