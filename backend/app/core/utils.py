"""公共工具函数"""

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utc_now_naive() -> datetime:
    """获取当前 UTC 时间（naive，无时区信息），适配数据库 timestamp without tz 列。"""
    return datetime.now(UTC).replace(tzinfo=None)


def to_epoch_seconds(moment: datetime) -> int:
    """naive UTC 时间转 Unix 时间戳（秒）"""
    return int(moment.replace(tzinfo=UTC).timestamp())


def from_epoch_seconds(seconds: int | float) -> datetime:
    """Unix 时间戳转 naive UTC 时间"""
    return datetime.fromtimestamp(seconds, UTC).replace(tzinfo=None)
