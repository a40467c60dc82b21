"""滑块验证码挑战模型"""

from datetime import datetime

from sqlmodel import Field, SQLModel

from backend.app.core.utils import utc_now_naive


class SliderChallenge(SQLModel, table=True):
    """滑块挑战表：存储缺口真实位置、有效期和尝试次数

    记录只由 ChallengeStore 读写；consumed 一旦置为 True 即为终态。
    """

    __tablename__ = "slider_challenges"

    id: str = Field(primary_key=True, max_length=64, description="挑战唯一标识（随机 128 位）")
    target_x: int = Field(description="缺口左上角 x")
    target_y: int = Field(description="缺口左上角 y")
    scope: str = Field(max_length=50, description="通过后签发凭证的用途")
    attempts_used: int = Field(default=0, nullable=False)
    max_attempts: int = Field(nullable=False)
    consumed: bool = Field(default=False, nullable=False)
    created_at: datetime = Field(default_factory=utc_now_naive, description="创建时间")
    expires_at: datetime = Field(nullable=False, index=True, description="过期时间")
