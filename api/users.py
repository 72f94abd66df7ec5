from __future__ import annotations

import logging
from flask import Blueprint, jsonify, g, abort
from sqlalchemy.exc import SQLAlchemyError

from models import storage
from models.user import User
from models.refresh_token import RefreshToken
from models.schemas.user import ProfileSchema
from utils.decorators import access_token_required

logger = logging.getLogger(__name__)

bp = Blueprint("users", __name__)

profile_schema = ProfileSchema()


@bp.get("/profile")
@access_token_required()
def profile():
    """
    Get the authenticated user's profile.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Missing Authorization header
      403:
        description: Invalid or expired access token
    """
    return jsonify(profile_schema.dump({"user_id": g.current_user_id})), 200


@bp.delete("/user")
@access_token_required()
def delete_account():
    """
    Delete the authenticated user's account and every refresh token it owns.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200: { description: Account deleted }
      401: { description: Missing Authorization header }
      403: { description: Invalid or expired access token }
      404: { description: User not found }
      500: { description: Failed to delete user }
    """
    user_id = g.current_user_id
    try:
        # tokens first: once the user row is gone the FK cascade has already removed them
        revoked = RefreshToken.revoke_all(user_id, commit=False)
        if not User.delete_by_id(user_id, commit=False):
            storage.rollback()
            abort(404, description="User not found")
        storage.save()
    except SQLAlchemyError:
        logger.exception("Failed to delete user %s", user_id)
        storage.rollback()
        abort(500, description="Failed to delete user")

    logger.info("Deleted user %s (%d refresh tokens revoked)", user_id, revoked)
    return jsonify({"message": "User account deleted successfully"}), 200
