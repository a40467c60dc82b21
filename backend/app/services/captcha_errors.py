"""滑块验证码错误类型

除存储/基础设施故障外，所有失败都是调用方可预期、可恢复的结果，
以携带 reason 的异常形式抛出，由接口层转换为结构化响应。
"""

from enum import Enum


class VerifyFailure(str, Enum):
    """滑块校验失败原因"""

    INVALID_OR_EXPIRED = "invalid_or_expired"  # 不存在、已过期或已消费
    TOO_MANY_ATTEMPTS = "too_many_attempts"  # 尝试次数耗尽
    POSITION_MISMATCH = "position_mismatch"  # 位置不符，可在次数内重试
    IMPLAUSIBLE_INTERACTION = "implausible_interaction"  # 交互时长不合理


class TokenFailure(str, Enum):
    """验证凭证校验失败原因"""

    BAD_SIGNATURE = "bad_signature"
    EXPIRED = "expired"
    SCOPE_MISMATCH = "scope_mismatch"
    ALREADY_USED = "already_used"


class PuzzleGenerationError(RuntimeError):
    """背景加载或图片合成失败"""

    reason = "generation_failure"


class ChallengeNotFoundError(LookupError):
    """挑战不存在、已过期或已消费"""


class AttemptsExhaustedError(Exception):
    """挑战的尝试次数已用完"""


class CaptchaVerifyError(ValueError):
    def __init__(self, reason: VerifyFailure) -> None:
        super().__init__(reason.value)
        self.reason = reason


class CaptchaTokenError(ValueError):
    def __init__(self, reason: TokenFailure) -> None:
        super().__init__(reason.value)
        self.reason = reason
