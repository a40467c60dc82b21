"""全局异常处理器"""

import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

# 字段名 → 中文
_FIELD_NAMES: dict[str, str] = {
    "username": "账号",
    "password": "密码",
    "role": "角色",
    "captchaToken": "人机验证凭证",
    "captchaId": "验证码 ID",
    "x": "滑块位置",
    "duration": "拖动时长",
    "scope": "验证用途",
}

# 错误类型 → 中文模板（{field} 会被替换为字段中文名）
_ERROR_MESSAGES: dict[str, str] = {
    "missing": "请填写{field}",
    "string_too_short": "{field}长度不足，请检查填写内容",
    "string_too_long": "{field}超出最大长度，请检查填写内容",
    "string_pattern_mismatch": "{field}格式不正确",
    "value_error": "{field}格式不正确",
    "string_type": "{field}格式不正确",
    "float_parsing": "{field}必须是数字",
    "finite_number": "{field}必须是有限数字",
    "greater_than_equal": "{field}超出允许范围",
    "less_than_equal": "{field}超出允许范围",
    "literal_error": "{field}取值不合法",
}


def _friendly_validation_message(errors: list[dict]) -> str:
    """把 Pydantic validation errors 转成第一条中文友好提示"""
    for err in errors:
        loc = err.get("loc", [])
        field_key = loc[-1] if loc else ""
        field_name = _FIELD_NAMES.get(str(field_key), str(field_key))
        err_type = err.get("type", "")

        template = _ERROR_MESSAGES.get(err_type)
        if template:
            return template.format(field=field_name)

        # 兜底
        if field_name:
            return f"{field_name}填写有误，请检查"

    return "请求参数填写有误，请检查后重试"


async def validation_exception_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """处理请求参数校验错误：参数缺失或格式错误统一返回 400"""
    friendly = _friendly_validation_message(exc.errors())
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": friendly},
    )


async def global_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    """兜底异常处理，避免内部错误泄露（存储不可用等基础设施故障走这里）"""
    logger.error("未处理的异常: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "服务器内部错误"},
    )
