"""
Authentication blueprint:
- POST /api/register
- POST /api/login
- POST /api/refresh-token
- POST /api/logout

The implementation:
- Uses argon2 for password hashing (via utils.security)
- Issues short-lived access tokens and longer-lived refresh tokens (JWTs signed with two secrets)
- Stores refresh tokens in DB (RefreshToken model) so they can be rotated and revoked
- Refresh tokens are single-use: every refresh deletes the presented token and stores a new one
"""
from __future__ import annotations

import logging
from flask import Blueprint, request, jsonify, abort

from models.user import User
from models.refresh_token import RefreshToken
from models.schemas.user import CredentialsSchema, UserLoginSchema, TokenPairSchema

from utils.security import (
    hash_password,
    verify_password,
    get_token_service,
    InvalidTokenError,
)

logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__)

credentials_schema = CredentialsSchema()
user_login_schema = UserLoginSchema()
token_pair_schema = TokenPairSchema()

INVALID_CREDENTIALS = "Invalid credentials"


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _issue_tokens(user_id: str) -> dict:
    """Mint an access/refresh pair, persist the refresh token, return the response body."""
    tokens = get_token_service()
    access_token, refresh_token = tokens.issue_pair(user_id)
    RefreshToken.create(user_id=user_id, token=refresh_token)
    return token_pair_schema.dump(
        {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "expires_in": int(tokens.access_expires.total_seconds()),
        }
    )


@bp.post("/register")
def register():
    """
    Register a new user. No tokens are issued; the client logs in afterwards.
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
          required: [username, password]
          properties:
            username: { type: string }
            password: { type: string }
    responses:
      201:
        description: Created
      400:
        description: Username and password required
      409:
        description: User already exists
    """
    payload = _json_body()
    data = credentials_schema.load(payload)

    if User.find_by_username(data["username"]):
        abort(409, description="User already exists")

    user = User.create(username=data["username"], password_hash=hash_password(data["password"]))
    logger.info("Registered user %s", user.id)

    return jsonify({"message": "User registered successfully"}), 201


@bp.post("/login")
def login():
    """
    Login: return accessToken and refreshToken
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
             username: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens)
      401:
        description: Invalid credentials
    """
    payload = _json_body()
    payload = user_login_schema.load(payload)
    username = payload.get("username")
    password = payload.get("password")
    if not username or not password:
        abort(401, description=INVALID_CREDENTIALS)

    # same answer for an unknown user and a wrong password
    user = User.find_by_username(username)
    if not user or not verify_password(password, user.password_hash):
        logger.info("Failed login attempt")
        abort(401, description=INVALID_CREDENTIALS)

    body = _issue_tokens(user.id)
    logger.info("User %s logged in", user.id)
    return jsonify(body), 200


@bp.post("/refresh-token")
def refresh():
    """
    Use a refresh token to obtain a new access and refresh token (rotation)
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
             refreshToken: { type: string }
    responses:
      200:
        description: OK (returns a new token pair)
      401:
        description: Refresh token missing
      403:
        description: Refresh token unknown, already used, revoked or expired
    """
    payload = _json_body()
    token = payload.get("refreshToken")
    if not token:
        abort(401, description="Refresh token required")
    if not isinstance(token, str):
        abort(403, description="Invalid refresh token")

    if not RefreshToken.find(token):
        logger.warning("Refresh with unknown or already used token")
        abort(403, description="Invalid refresh token")

    try:
        decoded = get_token_service().verify_refresh(token)
    except InvalidTokenError as e:
        logger.info("Refresh token rejected: %s", e)
        abort(403, description="Invalid refresh token")

    # Losing this delete means a concurrent refresh already spent the token
    if not RefreshToken.consume(token):
        logger.warning("Refresh token for user %s consumed concurrently", decoded["sub"])
        abort(403, description="Invalid refresh token")

    body = _issue_tokens(decoded["sub"])
    logger.info("Rotated refresh token for user %s", decoded["sub"])
    return jsonify(body), 200


@bp.post("/logout")
def logout():
    """
    Logout: revokes the given refresh token. Unknown tokens are not an error.
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
             refreshToken: { type: string }
    responses:
      200:
        description: Logged out
      400:
        description: Refresh token missing
    """
    payload = _json_body()
    token = payload.get("refreshToken")
    if not token or not isinstance(token, str):
        abort(400, description="Refresh token required")

    if RefreshToken.revoke(token):
        logger.info("Refresh token revoked on logout")
    return jsonify({"message": "Logged out successfully"}), 200
