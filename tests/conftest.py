"""
Shared test fixtures and utilities.

Every test gets a fresh application bound to an in-memory SQLite database.
"""
from datetime import datetime, timedelta, timezone

import jwt  # PyJWT
import pytest

from api import create_app
from models import storage

ACCESS_SECRET = "test-access-secret"
REFRESH_SECRET = "test-refresh-secret"
ISSUER = "session-service"
AUTH = "/api/v1/auth"


def make_token(
    user_id: str = "user-123",
    email: str = "test@example.com",
    token_type: str = "access",
    secret: str = ACCESS_SECRET,
    expired: bool = False,
) -> str:
    """
    Create a signed token directly with PyJWT.

    Args:
        user_id: subject claim
        email: email claim
        token_type: "access" or "refresh"
        secret: signing secret
        expired: if True, exp is one hour in the past
    """
    now = datetime.now(timezone.utc)
    exp = now - timedelta(hours=1) if expired else now + timedelta(hours=1)
    payload = {
        "iss": ISSUER,
        "sub": user_id,
        "email": email,
        "iat": int((now - timedelta(hours=2)).timestamp()),
        "exp": int(exp.timestamp()),
        "type": token_type,
        "jti": f"jti-{user_id}-{token_type}",
    }
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def app():
    app = create_app("testing")
    yield app
    with app.app_context():
        storage.close()
    storage.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def token_service(app):
    with app.app_context():
        yield app.extensions["token_service"]


@pytest.fixture
def registered_user(token_service):
    """A user signed up with email a@x.com / 123456."""
    return token_service.sign_up("a@x.com", "123456", "nick")


def sign_in(client, email="a@x.com", password="123456", **kwargs):
    return client.post(f"{AUTH}/sign-in", json={"email": email, "password": password}, **kwargs)


def refresh_cookie_from(response) -> str | None:
    for header in response.headers.getlist("Set-Cookie"):
        if header.startswith("refresh_token="):
            return header.split(";", 1)[0].split("=", 1)[1]
    return None
