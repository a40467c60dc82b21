"""业务逻辑层"""

from backend.app.services.auth_service import AuthService
from backend.app.services.captcha_service import CaptchaService
from backend.app.services.captcha_token_service import CaptchaTokenService
from backend.app.services.challenge_store import ChallengeStore
from backend.app.services.puzzle_service import PuzzleGenerator

__all__ = [
    "AuthService",
    "CaptchaService",
    "CaptchaTokenService",
    "ChallengeStore",
    "PuzzleGenerator",
]
