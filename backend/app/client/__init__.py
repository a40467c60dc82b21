"""滑块验证码客户端"""

from backend.app.client.api import CaptchaApiClient
from backend.app.client.slider import SliderCaptchaWidget, SliderState

__all__ = [
    "CaptchaApiClient",
    "SliderCaptchaWidget",
    "SliderState",
]
