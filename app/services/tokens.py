"""
app/services/tokens.py – stateless JWT access/refresh tokens (HS256).

Tokens carry ``{id, email, role}`` plus ``type``, ``iat`` and ``exp``. Access
and refresh tokens are signed with different secrets so one can never be
used in place of the other.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import ExpiredSignatureError, JWTError, jwt

from app.config import settings

logger = logging.getLogger(__name__)

ACCESS = "access"
REFRESH = "refresh"


# ── Exceptions ────────────────────────────────────────────────────────────────


class TokenError(Exception):
    """Base class for token verification failures."""


class TokenExpiredError(TokenError):
    pass


class InvalidTokenError(TokenError):
    pass


# ── Types ─────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class TokenUser:
    id: str
    email: str
    role: str = "user"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


# ── Service ───────────────────────────────────────────────────────────────────


class TokenService:
    def __init__(
        self,
        secret: str,
        refresh_secret: str,
        *,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(hours=24),
        refresh_ttl: timedelta = timedelta(days=7),
    ) -> None:
        if not secret or not refresh_secret:
            raise ValueError("JWT secrets must be non-empty.")
        self._secrets = {ACCESS: secret, REFRESH: refresh_secret}
        self._ttls = {ACCESS: access_ttl, REFRESH: refresh_ttl}
        self._algorithm = algorithm

    def _encode(self, user: TokenUser, kind: str, now: Optional[datetime] = None) -> str:
        issued = now or datetime.now(timezone.utc)
        claims = {
            "id": user.id,
            "email": user.email,
            "role": user.role,
            "type": kind,
            "iat": int(issued.timestamp()),
            "exp": int((issued + self._ttls[kind]).timestamp()),
        }
        return jwt.encode(claims, self._secrets[kind], algorithm=self._algorithm)

    def _decode(self, token: str, kind: str) -> TokenUser:
        try:
            claims: dict[str, Any] = jwt.decode(
                token, self._secrets[kind], algorithms=[self._algorithm]
            )
        except ExpiredSignatureError as exc:
            raise TokenExpiredError(f"{kind} token has expired") from exc
        except JWTError as exc:
            raise InvalidTokenError(f"{kind} token is invalid") from exc

        if claims.get("type") != kind or not claims.get("id") or not claims.get("email"):
            raise InvalidTokenError(f"{kind} token is missing required claims")
        return TokenUser(id=claims["id"], email=claims["email"], role=claims.get("role", "user"))

    def create_access_token(self, user: TokenUser, now: Optional[datetime] = None) -> str:
        return self._encode(user, ACCESS, now)

    def create_refresh_token(self, user: TokenUser, now: Optional[datetime] = None) -> str:
        return self._encode(user, REFRESH, now)

    def issue_pair(self, user: TokenUser) -> TokenPair:
        return TokenPair(
            access_token=self.create_access_token(user),
            refresh_token=self.create_refresh_token(user),
        )

    def verify_access(self, token: str) -> TokenUser:
        return self._decode(token, ACCESS)

    def verify_refresh(self, token: str) -> TokenUser:
        return self._decode(token, REFRESH)

    def refresh_access(self, refresh_token: str) -> str:
        """Exchange a valid refresh token for a new access token."""
        user = self.verify_refresh(refresh_token)
        logger.info("Access token refreshed", extra={"user_id": user.id})
        return self.create_access_token(user)


# ── Module-level singleton (lazy init) ────────────────────────────────────────

_service_instance: Optional[TokenService] = None


def get_token_service() -> TokenService:
    """Return the shared TokenService built from settings (created on first call)."""
    global _service_instance
    if _service_instance is None:
        _service_instance = TokenService(
            settings.jwt_secret,
            settings.jwt_refresh_secret,
            algorithm=settings.jwt_algorithm,
            access_ttl=timedelta(minutes=settings.jwt_access_expires_minutes),
            refresh_ttl=timedelta(minutes=settings.jwt_refresh_expires_minutes),
        )
    return _service_instance
