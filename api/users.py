from __future__ import annotations

from flask import Blueprint, abort, current_app, g

from api.errors import success_response
from models.schemas.user import ProfileOutSchema
from utils.decorators import register_routes, require_access_token

bp = Blueprint("users", __name__)

profile_out_schema = ProfileOutSchema()


def me():
    """
    Get current user's profile
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized (code TOKEN_EXPIRED when the access token expired)
    """
    credentials = current_app.extensions["token_service"].credentials
    profile = credentials.get_profile(g.current_user.user_id)
    if profile is None:
        abort(404, description="User not found")
    return success_response(profile_out_schema.dump(profile))


ROUTES = [
    ("/me", "me", me, [require_access_token], ["GET"]),
]

register_routes(bp, ROUTES)
