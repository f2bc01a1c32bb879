"""
Token service: sign-up, sign-in, refresh (rotation), logout, logout-all.

Access tokens are stateless and verified by signature + expiry only.
Refresh tokens are stateful: one must match a live Session row to be honored,
and every successful refresh deletes that row and inserts a new one in the
same transaction (rotation). A refresh token that verifies but has no row was
either rotated away already or never issued here, and is rejected outright.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from models.base_model import utcnow
from models.credential import Credential
from models.user import Profile
from services.credential_store import CredentialStore
from services.session_store import SessionStore
from utils.exceptions import (
    ConflictError,
    ErrorCode,
    TokenError,
    TokenExpiredError,
    UnauthorizedError,
)
from utils.security import PasswordVerifier, TokenCodec

logger = logging.getLogger(__name__)

# User-facing messages. Kept identical across failure causes where the cause must not leak.
MSG_EMAIL_TAKEN = "이미 사용 중인 이메일입니다."
MSG_NICKNAME_TAKEN = "이미 사용 중인 닉네임입니다."
MSG_INVALID_CREDENTIALS = "이메일 또는 비밀번호가 올바르지 않습니다."
MSG_SOCIAL_ACCOUNT = "이 계정은 소셜 로그인으로 가입되었습니다. 해당 소셜 계정으로 로그인해 주세요."
MSG_INVALID_REFRESH = "유효하지 않거나 만료된 RefreshToken입니다."
MSG_SESSION_NOT_FOUND = "세션이 만료되었거나 이미 로그아웃되었습니다."
MSG_SESSION_EXPIRED = "세션이 만료되었습니다. 다시 로그인해 주세요."
MSG_ACCESS_EXPIRED = "액세스 토큰이 만료되었습니다."
MSG_ACCESS_INVALID = "유효하지 않은 액세스 토큰입니다."


@dataclass(frozen=True)
class SessionMetadata:
    user_agent: Optional[str] = None
    client_ip: Optional[str] = None


@dataclass(frozen=True)
class SignUpResult:
    user_id: str
    email: str
    nickname: str


@dataclass(frozen=True)
class TokenResult:
    access_token: str
    refresh_token: str
    user_id: str
    email: str


@dataclass(frozen=True)
class Identity:
    user_id: str
    email: str


class TokenService:
    def __init__(
        self,
        credentials: CredentialStore,
        sessions: SessionStore,
        access_codec: TokenCodec,
        refresh_codec: TokenCodec,
        passwords: PasswordVerifier,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.credentials = credentials
        self.sessions = sessions
        self.access_codec = access_codec
        self.refresh_codec = refresh_codec
        self.passwords = passwords
        self.clock = clock

    def sign_up(self, email: str, password: str, nickname: str) -> SignUpResult:
        """
        Create a Profile + Credential pair.
        Email is checked before nickname; both checks happen before any write.
        """
        logger.info("Sign-up attempt started")

        if self.credentials.find_by_email(email):
            logger.warning("Sign-up failed: email already exists")
            raise ConflictError(MSG_EMAIL_TAKEN)
        if self.credentials.find_by_nickname(nickname):
            logger.warning("Sign-up failed: nickname already exists")
            raise ConflictError(MSG_NICKNAME_TAKEN)

        profile = Profile(nickname=nickname)
        credential = Credential(
            email=email,
            password_hash=self.passwords.hash(password),
            provider="email",
            provider_id=email,
        )
        self.credentials.create_both(profile, credential)

        logger.info("Sign-up completed (user=%s)", profile.id)
        return SignUpResult(user_id=profile.id, email=credential.email, nickname=profile.nickname)

    def sign_in(
        self, email: str, password: str, metadata: Optional[SessionMetadata] = None
    ) -> TokenResult:
        metadata = metadata or SessionMetadata()
        logger.info("Sign-in attempt started (ip=%s)", metadata.client_ip)

        credential = self.credentials.find_by_email(email)
        if credential is None:
            self.passwords.burn(password)
            logger.warning("Sign-in failed: user not found")
            raise UnauthorizedError(MSG_INVALID_CREDENTIALS)
        if not credential.password_hash:
            logger.warning("Sign-in failed: social login account (provider=%s)", credential.provider)
            raise UnauthorizedError(MSG_SOCIAL_ACCOUNT)
        if not self.passwords.verify(password, credential.password_hash):
            logger.warning("Sign-in failed: invalid password (user=%s)", credential.user_id)
            raise UnauthorizedError(MSG_INVALID_CREDENTIALS)

        access_token, refresh_token = self._issue_pair(credential.user_id, credential.email)
        with self.sessions.transaction():
            self.sessions.create(
                user_id=credential.user_id,
                refresh_token=refresh_token,
                expires_at=self.clock() + self.refresh_codec.ttl,
                user_agent=metadata.user_agent,
                client_ip=metadata.client_ip,
            )

        logger.info("Sign-in completed (user=%s)", credential.user_id)
        return TokenResult(access_token, refresh_token, credential.user_id, credential.email)

    def refresh(
        self, refresh_token: Optional[str], metadata: Optional[SessionMetadata] = None
    ) -> TokenResult:
        """
        Rotate a refresh token:
        1. verify signature + expiry with the refresh secret
        2. find the Session row by exact token value (absent -> replay/theft)
        3. expired row -> delete it and fail
        4. mint a new pair from the verified claims
        5. delete old row + insert new row in one transaction
        """
        metadata = metadata or SessionMetadata()
        logger.info("Token refresh attempt started (ip=%s)", metadata.client_ip)

        try:
            claims = self.refresh_codec.decode(refresh_token or "")
        except TokenError as exc:
            logger.warning("Token refresh failed: invalid or expired token (%s)", exc)
            raise UnauthorizedError(MSG_INVALID_REFRESH) from exc

        session = self.sessions.find_by_token(refresh_token)
        if session is None:
            logger.warning("Token refresh failed: session not found, possible token theft (user=%s)", claims.subject)
            raise UnauthorizedError(MSG_SESSION_NOT_FOUND)

        if session.expires_at < self.clock():
            with self.sessions.transaction():
                self.sessions.delete_by_id(session.id)
            logger.warning("Token refresh failed: session expired (user=%s, session=%s)", claims.subject, session.id)
            raise UnauthorizedError(MSG_SESSION_EXPIRED)

        access_token, new_refresh_token = self._issue_pair(claims.subject, claims.email)
        with self.sessions.transaction():
            if self.sessions.delete_by_id(session.id) != 1:
                # lost the race against a concurrent rotation of the same token
                logger.warning("Token refresh failed: session already rotated (user=%s)", claims.subject)
                raise UnauthorizedError(MSG_SESSION_NOT_FOUND)
            self.sessions.create(
                user_id=claims.subject,
                refresh_token=new_refresh_token,
                expires_at=self.clock() + self.refresh_codec.ttl,
                user_agent=metadata.user_agent,
                client_ip=metadata.client_ip,
            )

        logger.info("Token refresh completed (user=%s)", claims.subject)
        return TokenResult(access_token, new_refresh_token, claims.subject, claims.email)

    def logout(self, refresh_token: Optional[str]) -> None:
        """Idempotent: an unknown or missing token counts as already logged out."""
        if not refresh_token:
            logger.debug("Logout attempt without token")
            return
        with self.sessions.transaction():
            deleted = self.sessions.delete_by_token(refresh_token)
        if deleted:
            logger.info("Logout completed")
        else:
            logger.debug("Logout: session already deleted")

    def logout_all(self, user_id: str) -> int:
        with self.sessions.transaction():
            count = self.sessions.delete_all_by_user(user_id)
        logger.info("Logout all sessions completed (user=%s, deleted=%d)", user_id, count)
        return count

    def authenticate(self, access_token: Optional[str]) -> Identity:
        """Verify an access token without touching the store."""
        try:
            claims = self.access_codec.decode(access_token or "")
        except TokenExpiredError as exc:
            logger.warning("Access token expired")
            raise UnauthorizedError(MSG_ACCESS_EXPIRED, code=ErrorCode.TOKEN_EXPIRED) from exc
        except TokenError as exc:
            logger.warning("Authentication failed: %s", exc)
            raise UnauthorizedError(MSG_ACCESS_INVALID) from exc
        return Identity(user_id=claims.subject, email=claims.email)

    def purge_expired_sessions(self) -> int:
        with self.sessions.transaction():
            count = self.sessions.purge_expired(self.clock())
        logger.info("Purged %d expired sessions", count)
        return count

    def _issue_pair(self, user_id: str, email: str) -> tuple[str, str]:
        return (
            self.access_codec.encode(user_id, email),
            self.refresh_codec.encode(user_id, email),
        )
