"""
security helpers:
- Argon2 password hashing via argon2-cffi
- JWT creation/verification via PyJWT (separate access and refresh profiles)
- JTI generation for token identifiers
- TTL strings such as "15m" / "7d" parsed into seconds
"""
from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from utils.exceptions import InternalError, TokenExpiredError, TokenInvalidError

ACCESS = "access"
REFRESH = "refresh"

_TTL_PATTERN = re.compile(r"^(\d+)([smhd])$")
_TTL_UNITS = {"s": 1, "m": 60, "h": 60 * 60, "d": 24 * 60 * 60}


def parse_expiration(expiration: str) -> int:
    """Convert "15m", "1h", "7d" ... into seconds. Raises InternalError on bad input."""
    match = _TTL_PATTERN.match(expiration or "")
    if not match:
        raise InternalError(f"Invalid expiration format: {expiration!r}")
    return int(match.group(1)) * _TTL_UNITS[match.group(2)]


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())


class PasswordVerifier:
    """One-way password hashing with a tunable argon2 cost."""

    def __init__(self, time_cost: int = 3, memory_cost: int = 65536, parallelism: int = 1):
        self._ph = PasswordHasher(
            time_cost=time_cost, memory_cost=memory_cost, parallelism=parallelism
        )
        # compared against when the account does not exist, so both paths pay for a verify
        self._dummy_hash = self._ph.hash(uuid.uuid4().hex)

    def hash(self, password: str) -> str:
        return self._ph.hash(password)

    def verify(self, password: str, password_hash: str | None) -> bool:
        if not password_hash:
            return False
        try:
            return self._ph.verify(password_hash, password)
        except (VerifyMismatchError, VerificationError, InvalidHashError):
            return False

    def burn(self, password: str) -> None:
        """Run a verify that always fails; used to equalize timing for unknown accounts."""
        self.verify(password, self._dummy_hash)


@dataclass(frozen=True)
class Claims:
    subject: str
    email: str
    jti: str
    expires_at: datetime


class TokenCodec:
    """
    Signs and verifies one kind of token (access or refresh).
    Each profile owns its own secret and TTL, so a refresh token can never be
    verified with the access secret and vice versa.
    """

    def __init__(
        self,
        secret: str,
        ttl_seconds: int,
        token_type: str,
        algorithm: str = "HS256",
        issuer: str = "session-service",
    ):
        if not secret:
            raise InternalError(f"Missing signing secret for {token_type} tokens")
        self.secret = secret
        self.ttl_seconds = ttl_seconds
        self.token_type = token_type
        self.algorithm = algorithm
        self.issuer = issuer

    @property
    def ttl(self) -> timedelta:
        return timedelta(seconds=self.ttl_seconds)

    def encode(self, subject: str, email: str, now: datetime | None = None) -> str:
        now = now or datetime.now(timezone.utc)
        payload = {
            "iss": self.issuer,
            "sub": str(subject),
            "email": email,
            "iat": int(now.timestamp()),
            "exp": int((now + self.ttl).timestamp()),
            "type": self.token_type,
            "jti": generate_jti(),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode(self, token: str) -> Claims:
        """
        Verify signature and expiry in one step.
        Raises TokenExpiredError for an expired but otherwise well-formed token and
        TokenInvalidError for everything else (bad signature, malformed, wrong type).
        """
        if not token:
            raise TokenInvalidError("Token is empty")
        try:
            decoded: Dict[str, Any] = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise TokenExpiredError("Token expired") from exc
        except jwt.InvalidTokenError as exc:
            raise TokenInvalidError(f"Invalid token: {exc}") from exc

        if decoded.get("type") != self.token_type:
            raise TokenInvalidError("Wrong token type")
        return Claims(
            subject=decoded["sub"],
            email=decoded.get("email", ""),
            jti=decoded.get("jti", ""),
            expires_at=datetime.fromtimestamp(decoded["exp"], tz=timezone.utc),
        )


def build_codecs(config: Mapping[str, Any]) -> tuple[TokenCodec, TokenCodec]:
    """Build the (access, refresh) codec pair from a Flask config mapping."""
    algorithm = config.get("JWT_ALGORITHM", "HS256")
    issuer = config.get("JWT_ISSUER", "session-service")
    access = TokenCodec(
        config.get("JWT_SECRET"),
        parse_expiration(config.get("JWT_EXPIRATION", "15m")),
        ACCESS,
        algorithm=algorithm,
        issuer=issuer,
    )
    refresh = TokenCodec(
        config.get("REFRESH_TOKEN_SECRET"),
        parse_expiration(config.get("REFRESH_TOKEN_EXPIRATION", "7d")),
        REFRESH,
        algorithm=algorithm,
        issuer=issuer,
    )
    return access, refresh
