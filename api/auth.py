"""
Authentication blueprint:
- POST /auth/sign-up
- POST /auth/sign-in
- POST /auth/refresh
- POST /auth/logout
- POST /auth/logout-all (bearer)

The access token travels only in the JSON body (then as a bearer header).
The refresh token travels only as an httpOnly, SameSite=Strict cookie scoped
to the auth path; it never appears in a response body.
"""
from __future__ import annotations

from flask import Blueprint, current_app, g, request

from api.errors import success_response
from models.schemas.user import SignInSchema, SignUpSchema
from services.token_service import SessionMetadata, TokenResult
from utils.decorators import load_body, register_routes, require_access_token

bp = Blueprint("auth", __name__)

sign_up_schema = SignUpSchema()
sign_in_schema = SignInSchema()


def _service():
    return current_app.extensions["token_service"]


def client_ip() -> str | None:
    """First X-Forwarded-For hop when behind a proxy, else the socket address."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.remote_addr


def request_metadata() -> SessionMetadata:
    return SessionMetadata(user_agent=request.headers.get("User-Agent"), client_ip=client_ip())


def _token_response(result: TokenResult):
    response, status = success_response(
        {"accessToken": result.access_token, "id": result.user_id, "email": result.email}, 201
    )
    cfg = current_app.config
    response.set_cookie(
        cfg["REFRESH_COOKIE_NAME"],
        result.refresh_token,
        max_age=_service().refresh_codec.ttl_seconds,
        path=cfg["REFRESH_COOKIE_PATH"],
        secure=cfg["REFRESH_COOKIE_SECURE"],
        httponly=True,
        samesite="Strict",
    )
    return response, status


def _clear_cookie(response):
    cfg = current_app.config
    response.delete_cookie(
        cfg["REFRESH_COOKIE_NAME"],
        path=cfg["REFRESH_COOKIE_PATH"],
        secure=cfg["REFRESH_COOKIE_SECURE"],
        httponly=True,
        samesite="Strict",
    )
    return response


def _refresh_cookie() -> str | None:
    return request.cookies.get(current_app.config["REFRESH_COOKIE_NAME"])


def sign_up():
    """
    Register a new user. Does not sign in.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            email: { type: string }
            password: { type: string }
            nickname: { type: string }
    responses:
      201:
        description: Created
      400:
        description: Validation error
      409:
        description: Email or nickname already in use
    """
    data = g.body
    result = _service().sign_up(data["email"], data["password"], data["nickname"])
    return success_response(
        {
            "id": result.user_id,
            "email": result.email,
            "nickname": result.nickname,
            "message": "회원가입이 완료되었습니다.",
        },
        201,
    )


def sign_in():
    """
    Sign in: access token in the body, refresh token as httpOnly cookie
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
             password: { type: string }
    responses:
      201:
        description: OK (returns accessToken, sets refresh_token cookie)
      401:
        description: Unauthorized
    """
    data = g.body
    result = _service().sign_in(data["email"], data["password"], request_metadata())
    return _token_response(result)


def refresh():
    """
    Rotate the refresh token cookie and issue a new access token
    ---
    tags:
      - Auth
    responses:
      201:
        description: New token pair (cookie rotated)
      401:
        description: Refresh token invalid, expired, or already used
    """
    result = _service().refresh(_refresh_cookie(), request_metadata())
    return _token_response(result)


def logout():
    """
    Logout: delete this device's session and clear the cookie. Never fails.
    ---
    tags:
      - Auth
    responses:
      201:
        description: Logged out
    """
    _service().logout(_refresh_cookie())
    response, status = success_response({"message": "로그아웃되었습니다."}, 201)
    return _clear_cookie(response), status


def logout_all():
    """
    Logout everywhere: delete every session of the current user
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      201:
        description: Number of sessions removed
      401:
        description: Unauthorized
    """
    count = _service().logout_all(g.current_user.user_id)
    response, status = success_response({"count": count}, 201)
    return _clear_cookie(response), status


ROUTES = [
    ("/sign-up", "sign_up", sign_up, [load_body(sign_up_schema)], ["POST"]),
    ("/sign-in", "sign_in", sign_in, [load_body(sign_in_schema)], ["POST"]),
    ("/refresh", "refresh", refresh, [], ["POST"]),
    ("/logout", "logout", logout, [], ["POST"]),
    ("/logout-all", "logout_all", logout_all, [require_access_token], ["POST"]),
]

register_routes(bp, ROUTES)
