"""
Security Module

Password hashing and the JWT token service.

Tokens embed the user id (``sub``), username and global role at issuance
time. The service also implements the sliding-session policy: a token whose
remaining lifetime falls under the refresh threshold is replaced by a fresh
one on the next authenticated request. Old tokens are never revoked; they
simply run out.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.hash import bcrypt

from taskboard.core.config import Settings
from taskboard.core.errors import TokenExpired, TokenInvalid


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return bcrypt.hash(password)


@dataclass(frozen=True)
class Principal:
    """The authenticated identity attached to a request."""
    id: str
    username: str
    role: str

    @classmethod
    def from_user(cls, user) -> "Principal":
        return cls(id=user.id, username=user.username, role=user.role)


@dataclass(frozen=True)
class TokenClaims:
    """Decoded, verified content of a session token."""
    user_id: str
    username: str
    role: str
    expires_at: datetime

    def remaining(self, now: Optional[datetime] = None) -> timedelta:
        now = now or datetime.now(timezone.utc)
        return self.expires_at - now


class TokenService:
    """
    Issues and verifies signed session tokens.

    The signing secret is handed in at construction and never changes for the
    lifetime of the instance.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        expire_minutes: int = 60 * 24 * 7,
        refresh_threshold_minutes: int = 60 * 24,
    ):
        self._secret_key = secret_key
        self.algorithm = algorithm
        self.expires_delta = timedelta(minutes=expire_minutes)
        self.refresh_threshold = timedelta(minutes=refresh_threshold_minutes)

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(
            secret_key=settings.SECRET_KEY,
            algorithm=settings.ALGORITHM,
            expire_minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
            refresh_threshold_minutes=settings.TOKEN_REFRESH_THRESHOLD_MINUTES,
        )

    def issue(self, user) -> str:
        """Create a signed token for ``user`` (anything with id/username/role)."""
        now = datetime.now(timezone.utc)
        to_encode = {
            "sub": str(user.id),
            "username": user.username,
            "role": user.role,
            "iat": now,
            "exp": now + self.expires_delta,
        }
        return jwt.encode(to_encode, self._secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> TokenClaims:
        """
        Decode and validate a token.

        Raises:
            TokenExpired: If the embedded expiry has passed
            TokenInvalid: If the signature is wrong or the token is malformed
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise TokenExpired()
        except JWTError:
            raise TokenInvalid()

        user_id = payload.get("sub")
        exp = payload.get("exp")
        if user_id is None or exp is None:
            raise TokenInvalid()

        return TokenClaims(
            user_id=user_id,
            username=payload.get("username", ""),
            role=payload.get("role", ""),
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
        )

    def needs_refresh(self, claims: TokenClaims, now: Optional[datetime] = None) -> bool:
        return claims.remaining(now) < self.refresh_threshold
