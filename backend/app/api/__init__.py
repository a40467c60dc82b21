"""API 路由"""

from fastapi import APIRouter

from backend.app.api.endpoints import auth, captcha

api_router = APIRouter()

api_router.include_router(captcha.router, prefix="/captcha", tags=["滑块验证码"])
api_router.include_router(auth.router, prefix="/auth", tags=["认证"])
