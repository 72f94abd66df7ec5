"""
security helpers:
- Argon2 password hashing via argon2-cffi
- JWT creation/verification via PyJWT (TokenService)
- JTI generation for token identifiers
"""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Mapping, Tuple

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError, VerificationError, InvalidHashError

from flask import current_app

ph = PasswordHasher()

ACCESS = "access"
REFRESH = "refresh"


class InvalidTokenError(Exception):
    """Raised for any token that must not be trusted (signature, expiry, shape, type)."""


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2 (salted)
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """ Verify a plaintext password using argon2
    """
    try:
        return ph.verify(password_hash, password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """
    Signs and verifies access and refresh tokens.

    Access and refresh tokens are signed with two distinct secrets so a refresh
    token can never pass the access guard (and vice versa). The service holds no
    state beyond its configuration, which is fixed at construction.
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_expires: timedelta = timedelta(seconds=30),
        refresh_expires: timedelta = timedelta(days=1),
        algorithm: str = "HS256",
        issuer: str = "token-auth-service",
    ):
        if not access_secret or not refresh_secret:
            raise RuntimeError("JWT secrets missing")
        self._access_secret = access_secret
        self._refresh_secret = refresh_secret
        self.access_expires = access_expires
        self.refresh_expires = refresh_expires
        self.algorithm = algorithm
        self.issuer = issuer

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "TokenService":
        return cls(
            access_secret=config.get("ACCESS_SECRET"),
            refresh_secret=config.get("REFRESH_SECRET"),
            access_expires=config.get("ACCESS_TOKEN_EXPIRES", timedelta(seconds=30)),
            refresh_expires=config.get("REFRESH_TOKEN_EXPIRES", timedelta(days=1)),
            algorithm=config.get("JWT_ALGORITHM", "HS256"),
            issuer=config.get("JWT_ISSUER", "token-auth-service"),
        )

    def _sign(self, user_id: str, token_type: str, secret: str, lifetime: timedelta) -> str:
        now = _now()
        payload = {
            "iss": self.issuer,
            "sub": str(user_id),
            "iat": int(now.timestamp()),
            "exp": int((now + lifetime).timestamp()),
            "type": token_type,
            "jti": generate_jti(),
        }
        return jwt.encode(payload, secret, algorithm=self.algorithm)

    def issue_access_token(self, user_id: str) -> str:
        return self._sign(user_id, ACCESS, self._access_secret, self.access_expires)

    def issue_refresh_token(self, user_id: str) -> str:
        return self._sign(user_id, REFRESH, self._refresh_secret, self.refresh_expires)

    def issue_pair(self, user_id: str) -> Tuple[str, str]:
        return self.issue_access_token(user_id), self.issue_refresh_token(user_id)

    def verify(self, token: str, secret: str, expected_type: str) -> Dict[str, Any]:
        """
        Decode and validate a JWT. Raises InvalidTokenError on a bad signature,
        an expired or malformed token, a foreign issuer or the wrong token type.
        """
        try:
            decoded = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"require": ["exp", "sub", "type"]},
            )
        except jwt.ExpiredSignatureError:
            raise InvalidTokenError("Token expired")
        except jwt.InvalidTokenError as exc:
            raise InvalidTokenError(f"Invalid token: {exc}")

        if decoded.get("type") != expected_type:
            raise InvalidTokenError("Wrong token type")
        return decoded

    def verify_access(self, token: str) -> Dict[str, Any]:
        return self.verify(token, self._access_secret, ACCESS)

    def verify_refresh(self, token: str) -> Dict[str, Any]:
        return self.verify(token, self._refresh_secret, REFRESH)


def get_token_service() -> TokenService:
    """TokenService bound to the current app (built once in create_app)."""
    return current_app.extensions["token_service"]
