from client.session import (
    AuthClient,
    TokenSession,
    ApiError,
    SessionExpiredError,
    WeakPasswordError,
    password_rules,
)

__all__ = [
    "AuthClient",
    "TokenSession",
    "ApiError",
    "SessionExpiredError",
    "WeakPasswordError",
    "password_rules",
]
