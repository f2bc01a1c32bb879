"""
Request interceptors and their composition.

Routes are declared in a table as (rule, endpoint, view, [interceptors]).
chain() runs the interceptors in order before the view; an interceptor either
stores what it produced on flask.g or raises a domain error, which the global
error handlers turn into the response envelope.
"""
from __future__ import annotations

from functools import wraps
from typing import Callable, Iterable

from flask import current_app, g, request
from marshmallow import Schema

from utils.exceptions import UnauthorizedError

Interceptor = Callable[[], None]

MSG_MISSING_TOKEN = "인증 토큰이 필요합니다."


def bearer_token() -> str | None:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return None
    return auth.split(" ", 1)[1].strip() or None


def require_access_token() -> None:
    """Auth guard: sets g.current_user or raises UnauthorizedError (TOKEN_EXPIRED when expired)."""
    token = bearer_token()
    if token is None:
        raise UnauthorizedError(MSG_MISSING_TOKEN)
    service = current_app.extensions["token_service"]
    g.current_user = service.authenticate(token)


def load_body(schema: Schema) -> Interceptor:
    """Validate the JSON body with a marshmallow schema and store the result on g.body."""
    def interceptor() -> None:
        payload = request.get_json(silent=True) or {}
        g.body = schema.load(payload)

    interceptor.__name__ = f"load_body_{schema.__class__.__name__}"
    return interceptor


def chain(view: Callable, interceptors: Iterable[Interceptor]) -> Callable:
    interceptors = list(interceptors)

    @wraps(view)
    def wrapper(*args, **kwargs):
        for interceptor in interceptors:
            interceptor()
        return view(*args, **kwargs)

    return wrapper


def register_routes(bp, routes) -> None:
    """Register a route table: (rule, endpoint, view, interceptors, methods)."""
    for rule, endpoint, view, interceptors, methods in routes:
        bp.add_url_rule(rule, endpoint, chain(view, interceptors), methods=methods)
