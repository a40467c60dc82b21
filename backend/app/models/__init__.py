"""数据模型模块"""

from backend.app.models.captcha_token import SpentCaptchaToken
from backend.app.models.slider_challenge import SliderChallenge
from backend.app.models.user import User, UserRole

__all__ = [
    "SliderChallenge",
    "SpentCaptchaToken",
    "User",
    "UserRole",
]
