"""Client for the session token API with transparent access-token refresh"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from client.errors import ApiError
from client.refresh import RefreshCoordinator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientSession:
    access_token: str
    user_id: str
    email: str


class TokenStore:
    """Holds the current access token and identity for one client instance."""

    def __init__(self):
        self._lock = threading.Lock()
        self._session: Optional[ClientSession] = None

    def get(self) -> Optional[ClientSession]:
        with self._lock:
            return self._session

    @property
    def access_token(self) -> Optional[str]:
        session = self.get()
        return session.access_token if session else None

    def set(self, session: Optional[ClientSession]) -> None:
        with self._lock:
            self._session = session

    def clear(self) -> None:
        self.set(None)


class ApiClient:
    """
    Talks to the /api/v1 surface through a requests.Session, whose cookie jar
    carries the httpOnly refresh cookie. A request that fails with
    401 TOKEN_EXPIRED triggers one shared refresh and is retried once.
    """

    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        timeout: float = 10,
        tokens: Optional[TokenStore] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        self.tokens = tokens or TokenStore()
        self.refresher: RefreshCoordinator[ClientSession] = RefreshCoordinator(
            self._do_refresh,
            current_fn=self.tokens.get,
            token_of=lambda session: session.access_token,
        )

    def sign_up(self, email: str, password: str, nickname: str) -> Dict[str, Any]:
        return self.request(
            "POST", "/auth/sign-up",
            json={"email": email, "password": password, "nickname": nickname},
            auth=False,
        )

    def sign_in(self, email: str, password: str) -> ClientSession:
        data = self.request("POST", "/auth/sign-in", json={"email": email, "password": password}, auth=False)
        session = self._store(data)
        logger.info("Signed in as %s", session.user_id)
        return session

    def refresh_access_token(self) -> ClientSession:
        """Refresh now, joining any refresh already in flight."""
        return self.refresher.refresh()

    def sign_out(self) -> None:
        try:
            self.request("POST", "/auth/logout", auth=False)
        finally:
            self.tokens.clear()

    def request(
        self,
        method: str,
        endpoint: str,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        auth: bool = True,
        skip_token_refresh: bool = False,
    ) -> Any:
        """
        Send a request and return the envelope's data.

        Raises ApiError for error envelopes and transport failures. Only
        401 TOKEN_EXPIRED on an authenticated request that has not been
        retried yet goes through the refresh path.
        """
        sent_token = self.tokens.access_token if auth else None
        status, body = self._send(method, endpoint, json=json, params=params, token=sent_token)

        error = self._error_from(status, body)
        if error is None:
            return body.get("data") if isinstance(body, dict) else None

        if not (auth and error.is_token_expired and not skip_token_refresh):
            raise error

        logger.info("Access token expired, refreshing before retrying %s %s", method, endpoint)
        try:
            # skipped when another request already replaced sent_token
            self.refresher.refresh(stale=sent_token)
        except Exception as refresh_error:
            logger.warning("Token refresh failed: %s", refresh_error)
            raise error from refresh_error

        return self.request(method, endpoint, json=json, params=params, auth=True, skip_token_refresh=True)

    def _send(self, method, endpoint, json=None, params=None, token=None):
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            response = self.session.request(
                method,
                f"{self.base_url}{endpoint}",
                json=json,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise ApiError(None, "NETWORK_ERROR", str(exc)) from exc

        if response.status_code == 204:
            return 204, {"result": "success"}
        try:
            body = response.json()
        except ValueError:
            body = None
        return response.status_code, body

    @staticmethod
    def _error_from(status: int, body: Any) -> Optional[ApiError]:
        ok = 200 <= status < 300
        if ok and isinstance(body, dict) and body.get("result") != "error":
            return None
        error = (body or {}).get("error") if isinstance(body, dict) else None
        error = error or {}
        return ApiError(status, error.get("code") or str(status), error.get("message") or "request failed")

    def _do_refresh(self) -> ClientSession:
        try:
            data = self.request("POST", "/auth/refresh", auth=False)
        except ApiError:
            self.tokens.clear()
            raise
        return self._store(data)

    def _store(self, data: Dict[str, Any]) -> ClientSession:
        session = ClientSession(
            access_token=data["accessToken"],
            user_id=data["id"],
            email=data["email"],
        )
        self.tokens.set(session)
        return session
