"""
Client-side session handling for the auth API.

TokenSession holds the current access/refresh pair (optionally mirrored to a
JSON file, the way a browser keeps them in local storage). AuthClient wraps
protected calls: it sends the access token, and on a 401/403 it performs one
silent refresh and replays the call once. When the refresh itself fails the
session is wiped and SessionExpiredError tells the caller to log in again.
"""
from __future__ import annotations

import json
import logging
import os
import re
from typing import Any, Callable, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "accessToken"
REFRESH_TOKEN_KEY = "refreshToken"

PASSWORD_RULES = {
    "len": ("At least 8 characters", lambda p: len(p) >= 8),
    "upper": ("One uppercase letter", lambda p: re.search(r"[A-Z]", p) is not None),
    "lower": ("One lowercase letter", lambda p: re.search(r"[a-z]", p) is not None),
    "num": ("One number", lambda p: re.search(r"[0-9]", p) is not None),
    "special": ("One special character", lambda p: re.search(r"[@#$!%*?&]", p) is not None),
}


class ApiError(RuntimeError):
    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status
        self.message = message


class SessionExpiredError(ApiError):
    """The refresh token was rejected: the user has to log in again."""

    def __init__(self, message: str = "Session expired, please log in again"):
        super().__init__(401, message)


class WeakPasswordError(ValueError):
    def __init__(self, failed: List[str]):
        super().__init__("Password does not meet: " + ", ".join(failed))
        self.failed = failed


def password_rules(password: str) -> Dict[str, bool]:
    """Evaluate every registration rule; keys match PASSWORD_RULES."""
    return {key: check(password or "") for key, (_, check) in PASSWORD_RULES.items()}


class TokenSession:
    """Current access/refresh tokens with read/write/clear operations."""

    def __init__(self, path: Optional[str] = None):
        self.path = path
        self._data: Dict[str, str] = {}
        if path and os.path.exists(path):
            with open(path, "r", encoding="utf-8") as fh:
                self._data = json.load(fh)

    def read(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def write(self, access_token: str, refresh_token: str) -> None:
        self._data[ACCESS_TOKEN_KEY] = access_token
        self._data[REFRESH_TOKEN_KEY] = refresh_token
        self._flush()

    def clear(self) -> None:
        self._data = {}
        if self.path and os.path.exists(self.path):
            os.remove(self.path)

    @property
    def access_token(self) -> Optional[str]:
        return self.read(ACCESS_TOKEN_KEY)

    @property
    def refresh_token(self) -> Optional[str]:
        return self.read(REFRESH_TOKEN_KEY)

    def _flush(self) -> None:
        if not self.path:
            return
        with open(self.path, "w", encoding="utf-8") as fh:
            json.dump(self._data, fh)


def _error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return resp.reason or f"HTTP {resp.status_code}"


class AuthClient:
    """
    Talks to the auth API on behalf of one user session.

    register() and login() go out without a bearer token. Everything else goes
    through fetch_with_auth(), which retries at most once per call.
    on_login_required is called whenever the session had to be dropped, e.g. to
    send a UI back to its login view: after a rejected refresh (before
    SessionExpiredError is raised) and after a successful account deletion.
    """

    def __init__(
        self,
        base_url: str,
        session: Optional[TokenSession] = None,
        http: Optional[requests.Session] = None,
        timeout: float = 30,
        on_login_required: Optional[Callable[[], Any]] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or TokenSession()
        self.http = http or requests.Session()
        self.timeout = timeout
        self.on_login_required = on_login_required

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _post_json(self, path: str, body: Dict[str, Any]) -> requests.Response:
        return self.http.post(self._url(path), json=body, timeout=self.timeout)

    def is_logged_in(self) -> bool:
        return bool(self.session.access_token)

    # public calls

    def register(self, username: str, password: str) -> str:
        failed = [PASSWORD_RULES[k][0] for k, ok in password_rules(password).items() if not ok]
        if failed:
            raise WeakPasswordError(failed)
        resp = self._post_json("/api/register", {"username": username, "password": password})
        if not resp.ok:
            raise ApiError(resp.status_code, _error_message(resp))
        return resp.json().get("message", "")

    def login(self, username: str, password: str) -> None:
        resp = self._post_json("/api/login", {"username": username, "password": password})
        if not resp.ok:
            raise ApiError(resp.status_code, _error_message(resp))
        data = resp.json()
        self.session.write(data[ACCESS_TOKEN_KEY], data[REFRESH_TOKEN_KEY])
        logger.info("Logged in as %s", username)

    def logout(self) -> None:
        """Revoke the refresh token server-side; local tokens are dropped either way."""
        try:
            refresh_token = self.session.refresh_token
            if refresh_token:
                self._post_json("/api/logout", {REFRESH_TOKEN_KEY: refresh_token})
        finally:
            self.session.clear()

    # token lifecycle

    def refresh_access_token(self) -> bool:
        refresh_token = self.session.refresh_token
        if not refresh_token:
            return False

        resp = self._post_json("/api/refresh-token", {REFRESH_TOKEN_KEY: refresh_token})
        if not resp.ok:
            logger.info("Silent refresh rejected with %s", resp.status_code)
            return False

        data = resp.json()
        self.session.write(data[ACCESS_TOKEN_KEY], data[REFRESH_TOKEN_KEY])
        return True

    def _expire_session(self) -> None:
        self.session.clear()
        if self.on_login_required is not None:
            self.on_login_required()
        raise SessionExpiredError()

    def fetch_with_auth(self, method: str, path: str, **kwargs) -> requests.Response:
        """
        Send a request with the bearer access token. A 401/403 triggers one
        refresh and one replay; the replayed response is returned as is.
        """
        headers = dict(kwargs.pop("headers", None) or {})
        kwargs.setdefault("timeout", self.timeout)
        url = self._url(path)

        def send() -> requests.Response:
            access_token = self.session.access_token
            if access_token:
                headers["Authorization"] = f"Bearer {access_token}"
            return self.http.request(method, url, headers=headers, **kwargs)

        resp = send()
        if resp.status_code in (401, 403):
            if not self.refresh_access_token():
                self._expire_session()
            resp = send()
        return resp

    # protected calls

    def get_profile(self) -> Dict[str, Any]:
        resp = self.fetch_with_auth("GET", "/api/profile")
        if not resp.ok:
            raise ApiError(resp.status_code, _error_message(resp))
        return resp.json()

    def delete_account(self) -> None:
        resp = self.fetch_with_auth("DELETE", "/api/user")
        if not resp.ok:
            raise ApiError(resp.status_code, _error_message(resp))
        self.session.clear()
        if self.on_login_required is not None:
            self.on_login_required()
