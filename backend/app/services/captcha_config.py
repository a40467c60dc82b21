"""滑块验证码运行参数

从全局 settings 派生出一份不可变配置，供生成、校验、令牌各服务共享；
测试可直接构造自己的实例注入服务。
"""

from dataclasses import dataclass, field
from pathlib import Path

from backend.app.core.config import Settings, settings


@dataclass(frozen=True)
class CaptchaConfig:
    secret_key: str
    token_algorithm: str = "HS256"
    token_expire_seconds: int = 300
    token_scopes: frozenset[str] = field(default_factory=lambda: frozenset({"registration"}))

    challenge_expire_seconds: int = 120
    image_width: int = 310
    image_height: int = 155
    piece_size: int = 44
    margin: int = 10
    min_offset: int | None = None
    tolerance_px: int = 2
    max_attempts: int = 2
    background_dir: Path | None = None

    timing_check_enabled: bool = True
    min_drag_ms: int = 150
    min_solve_ms: int = 300

    def __post_init__(self) -> None:
        x_min, x_max = self.x_range
        y_min, y_max = self.y_range
        if x_min > x_max or y_min > y_max:
            raise ValueError(
                f"验证码尺寸配置无效: 图片 {self.image_width}x{self.image_height}, "
                f"拼图块 {self.piece_size}, 边距 {self.margin}"
            )
        if self.max_attempts < 1:
            raise ValueError("max_attempts 至少为 1")

    @classmethod
    def from_settings(cls, source: Settings = settings) -> "CaptchaConfig":
        return cls(
            secret_key=source.captcha_secret_key,
            token_algorithm=source.captcha_token_algorithm,
            token_expire_seconds=source.captcha_token_expire_seconds,
            token_scopes=frozenset(source.captcha_token_scopes),
            challenge_expire_seconds=source.captcha_challenge_expire_seconds,
            image_width=source.captcha_image_width,
            image_height=source.captcha_image_height,
            piece_size=source.captcha_piece_size,
            margin=source.captcha_margin,
            min_offset=source.captcha_min_offset,
            tolerance_px=source.captcha_tolerance_px,
            max_attempts=source.captcha_max_attempts,
            background_dir=source.captcha_background_dir,
            timing_check_enabled=source.captcha_timing_check_enabled,
            min_drag_ms=source.captcha_min_drag_ms,
            min_solve_ms=source.captcha_min_solve_ms,
        )

    @property
    def x_range(self) -> tuple[int, int]:
        """缺口左上角 x 的取值区间（闭区间）"""
        min_offset = self.piece_size if self.min_offset is None else self.min_offset
        low = max(min_offset, self.margin)
        high = self.image_width - self.piece_size - self.margin
        return low, high

    @property
    def y_range(self) -> tuple[int, int]:
        return self.margin, self.image_height - self.piece_size - self.margin

    @property
    def brute_force_bound(self) -> float:
        """单个挑战被盲猜通过的概率上界"""
        low, high = self.x_range
        positions = high - low + 1
        window = 2 * self.tolerance_px + 1
        return min(1.0, self.max_attempts * window / positions)
