from __future__ import annotations
from functools import wraps
import logging
from flask import request, g, abort
from utils.security import get_token_service, InvalidTokenError

logger = logging.getLogger(__name__)


def access_token_required():
    """
    Guard a view with the bearer access token.
    No Authorization header -> 401; a header that does not carry a valid
    access token -> 403. On success the caller's id is exposed as
    g.current_user_id (and the full claims as g.token_claims).
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            auth = request.headers.get("Authorization")
            if not auth:
                abort(401, description="Missing Authorization header")
            scheme, _, token = auth.partition(" ")
            if scheme.lower() != "bearer" or not token.strip():
                abort(403, description="Invalid Authorization header")
            try:
                decoded = get_token_service().verify_access(token.strip())
            except InvalidTokenError as e:
                logger.debug("Access token rejected: %s", e)
                abort(403, description="Invalid or expired access token")

            g.current_user_id = decoded["sub"]
            g.token_claims = decoded
            return fn(*args, **kwargs)

        return wrapper

    return decorator
