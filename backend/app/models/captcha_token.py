"""已使用的人机验证凭证"""

from datetime import datetime

from sqlmodel import Field, SQLModel

from backend.app.core.utils import utc_now_naive


class SpentCaptchaToken(SQLModel, table=True):
    """凭证一次性使用记录：存在即表示该 jti 已被接受过"""

    __tablename__ = "captcha_token_spent"

    jti: str = Field(primary_key=True, max_length=64, description="凭证随机数")
    scope: str = Field(max_length=50)
    expires_at: datetime = Field(nullable=False, index=True, description="凭证过期时间，之后可清理")
    spent_at: datetime = Field(default_factory=utc_now_naive)
