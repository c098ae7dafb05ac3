"""
Token service: signed, expiring access/refresh JWTs plus cache-backed revocation.

- Access tokens default to 24h, refresh tokens to 7d (see Settings).
- A revoked token is stored as "revoked:<token>" with a TTL covering its remaining lifetime,
  so revocation markers disappear on their own once the token could no longer verify anyway.
- Revocation fails closed: a cache that cannot be read rejects the token, and a marker that
  cannot be written fails the logout.
"""
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt

from schoolhub.auth.schemas import CurrentUser
from schoolhub.core.cache import CacheManager
from schoolhub.core.config import Settings
from schoolhub.core.enums import Role, TokenType
from schoolhub.core.exceptions import AuthenticationError, InternalError

logger = logging.getLogger(__name__)

REVOKED_KEY_PREFIX = "revoked:"


class TokenService:
    def __init__(
        self,
        cache: CacheManager,
        secret_key: str,
        algorithm: str = "HS256",
        access_expires: timedelta = timedelta(hours=24),
        refresh_expires: timedelta = timedelta(days=7),
    ) -> None:
        self.cache = cache
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.access_expires = access_expires
        self.refresh_expires = refresh_expires

    @classmethod
    def from_settings(cls, settings: Settings, cache: CacheManager) -> "TokenService":
        return cls(
            cache,
            secret_key=settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
            access_expires=timedelta(minutes=settings.access_token_expire_minutes),
            refresh_expires=timedelta(days=settings.refresh_token_expire_days),
        )

    def _encode(
        self,
        user_id: uuid.UUID,
        role: Role,
        school_id: Optional[uuid.UUID],
        token_type: TokenType,
        expires_delta: timedelta,
    ) -> str:
        issued_at = datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "role": Role(role).value,
            "school_id": str(school_id) if school_id else None,
            "type": token_type.value,
            # Two tokens issued in the same second must still differ
            "jti": uuid.uuid4().hex,
            "iat": int(issued_at.timestamp()),
            "exp": issued_at + expires_delta,
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def create_access_token(
        self,
        user_id: uuid.UUID,
        role: Role,
        school_id: Optional[uuid.UUID] = None,
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        return self._encode(user_id, role, school_id, TokenType.ACCESS, expires_delta or self.access_expires)

    def create_refresh_token(
        self,
        user_id: uuid.UUID,
        role: Role,
        school_id: Optional[uuid.UUID] = None,
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        return self._encode(user_id, role, school_id, TokenType.REFRESH, expires_delta or self.refresh_expires)

    def decode(self, token: str, expected_type: TokenType = TokenType.ACCESS) -> Dict[str, Any]:
        """Check signature and expiry. Expired and invalid tokens fail with different messages."""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise AuthenticationError("Token expired")
        except JWTError:
            raise AuthenticationError("Invalid token")

        if payload.get("type") != expected_type.value or not payload.get("sub") or not payload.get("role"):
            raise AuthenticationError("Invalid token")
        return payload

    async def verify(self, token: str, expected_type: TokenType = TokenType.ACCESS) -> Dict[str, Any]:
        payload = self.decode(token, expected_type)
        if await self.is_revoked(token):
            raise AuthenticationError("Token has been revoked")
        return payload

    async def is_revoked(self, token: str) -> bool:
        return await self.cache.exists(f"{REVOKED_KEY_PREFIX}{token}")

    async def revoke(self, token: str) -> None:
        try:
            claims = jwt.get_unverified_claims(token)
        except JWTError:
            raise AuthenticationError("Invalid token")
        remaining = int(claims.get("exp", 0) - datetime.now(timezone.utc).timestamp())
        # +1 so the marker never expires before the token does
        ttl = max(remaining, 0) + 1
        if not await self.cache.set(f"{REVOKED_KEY_PREFIX}{token}", "1", ttl=ttl):
            logger.error(f"Could not store revocation marker for user {claims.get('sub')}")
            raise InternalError("Token revocation failed")
        logger.info(f"Revoked token for user {claims.get('sub')} (ttl={ttl}s)")

    @staticmethod
    def to_current_user(payload: Dict[str, Any]) -> CurrentUser:
        try:
            return CurrentUser(
                id=uuid.UUID(payload["sub"]),
                role=Role(payload["role"]),
                school_id=uuid.UUID(payload["school_id"]) if payload.get("school_id") else None,
            )
        except (KeyError, ValueError):
            raise AuthenticationError("Invalid token")
