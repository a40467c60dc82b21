"""人机验证凭证的签发与校验

凭证是 HS256 签名的紧凑 JWS，载荷：
    typ   固定为 "captcha"，与登录令牌区分
    cid   来源挑战 ID（仅审计用）
    scope 受保护操作类别，签发时绑定
    iat / exp
    jti   随机数，一次性使用以它为键

校验顺序：签名 → 类型 → 过期 → 用途 → 原子标记已使用。
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from jose import JWTError
from sqlalchemy import delete
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.security import sign_claims, verify_claims
from backend.app.core.utils import (
    Clock,
    from_epoch_seconds,
    to_epoch_seconds,
    utc_now_naive,
)
from backend.app.models.captcha_token import SpentCaptchaToken
from backend.app.services.captcha_config import CaptchaConfig
from backend.app.services.captcha_errors import CaptchaTokenError, TokenFailure

logger = logging.getLogger(__name__)

CAPTCHA_TOKEN_TYPE = "captcha"


@dataclass(frozen=True)
class CaptchaTokenClaims:
    challenge_id: str
    scope: str
    issued_at: datetime
    expires_at: datetime
    nonce: str


class CaptchaTokenService:
    def __init__(
        self,
        session: AsyncSession,
        config: CaptchaConfig,
        clock: Clock = utc_now_naive,
    ) -> None:
        self.session = session
        self.config = config
        self.clock = clock

    def mint(self, scope: str, challenge_id: str) -> str:
        """签发凭证；密钥只来自服务端配置"""
        issued_at = self.clock()
        expires_at = issued_at + timedelta(seconds=self.config.token_expire_seconds)
        claims = {
            "typ": CAPTCHA_TOKEN_TYPE,
            "cid": challenge_id,
            "scope": scope,
            "iat": to_epoch_seconds(issued_at),
            "exp": to_epoch_seconds(expires_at),
            "jti": secrets.token_urlsafe(16),
        }
        return sign_claims(claims, self.config.secret_key, self.config.token_algorithm)

    def decode(self, token: str) -> CaptchaTokenClaims:
        """验签并解析载荷，不检查过期与使用状态"""
        try:
            # 过期由注入的时钟判断，这里只验签
            payload = verify_claims(
                token,
                self.config.secret_key,
                self.config.token_algorithm,
                verify_exp=False,
            )
        except JWTError as exc:
            raise CaptchaTokenError(TokenFailure.BAD_SIGNATURE) from exc

        if payload.get("typ") != CAPTCHA_TOKEN_TYPE:
            raise CaptchaTokenError(TokenFailure.BAD_SIGNATURE)
        try:
            return CaptchaTokenClaims(
                challenge_id=str(payload["cid"]),
                scope=str(payload["scope"]),
                issued_at=from_epoch_seconds(payload["iat"]),
                expires_at=from_epoch_seconds(payload["exp"]),
                nonce=str(payload["jti"]),
            )
        except (KeyError, TypeError, ValueError, OverflowError) as exc:
            raise CaptchaTokenError(TokenFailure.BAD_SIGNATURE) from exc

    async def validate(self, token: str, expected_scope: str) -> CaptchaTokenClaims:
        """校验凭证并将其标记为已使用，同一凭证只会被接受一次"""
        claims = self.decode(token)
        if claims.expires_at <= self.clock():
            raise CaptchaTokenError(TokenFailure.EXPIRED)
        if claims.scope != expected_scope:
            raise CaptchaTokenError(TokenFailure.SCOPE_MISMATCH)
        if not await self._mark_spent(claims):
            raise CaptchaTokenError(TokenFailure.ALREADY_USED)

        logger.debug("人机验证凭证已使用: cid=%s, scope=%s", claims.challenge_id, claims.scope)
        return claims

    async def _mark_spent(self, claims: CaptchaTokenClaims) -> bool:
        """INSERT ... ON CONFLICT DO NOTHING，插入成功者即为唯一使用者"""
        dialect = self.session.get_bind().dialect.name
        insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
        stmt = (
            insert(SpentCaptchaToken.__table__)
            .values(
                jti=claims.nonce,
                scope=claims.scope,
                expires_at=claims.expires_at,
                spent_at=self.clock(),
            )
            .on_conflict_do_nothing(index_elements=["jti"])
        )
        result = await self.session.execute(stmt)
        # 立即提交：受保护操作后续失败回滚时凭证仍保持已使用
        await self.session.commit()
        return result.rowcount == 1

    async def sweep_spent(self) -> int:
        """清理已过期凭证的使用记录（过期凭证本身已无法通过校验）"""
        stmt = delete(SpentCaptchaToken).where(SpentCaptchaToken.expires_at <= self.clock())
        result = await self.session.execute(stmt)
        return result.rowcount or 0
