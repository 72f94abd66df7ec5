"""Endpoint tests for register, login, refresh-token rotation and logout."""

from datetime import timedelta
from unittest import mock

from models.refresh_token import RefreshToken
from models.user import User
from utils.security import TokenService


class TestRegister:
    def test_register_creates_user_without_tokens(self, client, credentials):
        resp = client.post("/api/register", json=credentials)

        assert resp.status_code == 201
        body = resp.get_json()
        assert body == {"message": "User registered successfully"}
        user = User.find_by_username("alice")
        assert user is not None
        assert User.find_by_id(user.id).username == "alice"
        assert user.password_hash != credentials["password"]
        assert RefreshToken.count_for_user(user.id) == 0

    def test_user_only_takes_an_already_hashed_password(self):
        assert not hasattr(User, "password")
        assert "password_hash" in User.__table__.columns
        assert "password" not in User.__table__.columns

    def test_register_same_username_twice_conflicts(self, client, credentials):
        client.post("/api/register", json=credentials)
        resp = client.post("/api/register", json=credentials)

        assert resp.status_code == 409
        assert resp.get_json()["message"] == "User already exists"

    def test_register_requires_both_fields(self, client):
        for body in ({"username": "alice"}, {"password": "Str0ng!Pw"}, {}, {"username": "", "password": "x"}):
            resp = client.post("/api/register", json=body)
            assert resp.status_code == 400
            assert resp.get_json()["error"] == "VALIDATION_ERROR"

    def test_register_without_json_body(self, client):
        resp = client.post("/api/register", data="nope", content_type="text/plain")
        assert resp.status_code == 400

    def test_racing_insert_of_same_username_conflicts(self, client, registered):
        # the pre-check misses the existing row; the unique index still rejects it
        with mock.patch.object(User, "find_by_username", return_value=None):
            resp = client.post("/api/register", json=registered)

        assert resp.status_code == 409
        assert resp.get_json()["message"] == "User already exists"


class TestLogin:
    def test_login_returns_token_pair(self, client, registered):
        resp = client.post("/api/login", json=registered)

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["accessToken"]
        assert body["refreshToken"]
        assert body["tokenType"] == "bearer"
        assert body["expiresIn"] == 30
        assert RefreshToken.find(body["refreshToken"]) is not None

    def test_unknown_user_and_wrong_password_look_the_same(self, client, registered):
        unknown = client.post("/api/login", json={"username": "bob", "password": "Str0ng!Pw"})
        wrong = client.post("/api/login", json={"username": "alice", "password": "nope"})

        assert unknown.status_code == wrong.status_code == 401
        assert unknown.get_json() == wrong.get_json()
        assert wrong.get_json()["message"] == "Invalid credentials"

    def test_login_with_missing_fields_is_unauthorized(self, client, registered):
        resp = client.post("/api/login", json={"username": "alice"})
        assert resp.status_code == 401

    def test_refresh_token_collision_is_a_generic_conflict(self, client, app, tokens, registered):
        service = app.extensions["token_service"]
        with mock.patch.object(service, "issue_pair", return_value=("access", tokens["refreshToken"])):
            resp = client.post("/api/login", json=registered)

        assert resp.status_code == 409
        assert resp.get_json()["message"] == "Conflict"

    def test_each_login_stores_its_own_refresh_token(self, client, registered):
        first = client.post("/api/login", json=registered).get_json()
        second = client.post("/api/login", json=registered).get_json()

        assert first["refreshToken"] != second["refreshToken"]
        user = User.find_by_username("alice")
        assert RefreshToken.count_for_user(user.id) == 2


class TestRefreshRotation:
    def test_refresh_rotates_the_pair(self, client, tokens):
        resp = client.post("/api/refresh-token", json={"refreshToken": tokens["refreshToken"]})

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["refreshToken"] != tokens["refreshToken"]
        assert body["accessToken"] != tokens["accessToken"]
        assert RefreshToken.find(tokens["refreshToken"]) is None
        assert RefreshToken.find(body["refreshToken"]) is not None

    def test_refresh_token_is_single_use(self, client, tokens):
        first = client.post("/api/refresh-token", json={"refreshToken": tokens["refreshToken"]})
        reuse = client.post("/api/refresh-token", json={"refreshToken": tokens["refreshToken"]})

        assert first.status_code == 200
        assert reuse.status_code == 403

    def test_rotated_token_keeps_working(self, client, tokens):
        second = client.post("/api/refresh-token", json={"refreshToken": tokens["refreshToken"]}).get_json()
        third = client.post("/api/refresh-token", json={"refreshToken": second["refreshToken"]})

        assert third.status_code == 200

    def test_missing_refresh_token_is_unauthorized(self, client):
        assert client.post("/api/refresh-token", json={}).status_code == 401
        assert client.post("/api/refresh-token").status_code == 401

    def test_unknown_refresh_token_is_forbidden(self, client, app):
        forged = app.extensions["token_service"].issue_refresh_token("someone")
        resp = client.post("/api/refresh-token", json={"refreshToken": forged})

        assert resp.status_code == 403

    def test_access_token_cannot_be_used_to_refresh(self, client, tokens):
        resp = client.post("/api/refresh-token", json={"refreshToken": tokens["accessToken"]})
        assert resp.status_code == 403

    def test_stored_but_invalid_token_is_forbidden(self, client, tokens):
        user = User.find_by_username("alice")
        RefreshToken.create(user_id=user.id, token="stored-but-not-a-jwt")

        resp = client.post("/api/refresh-token", json={"refreshToken": "stored-but-not-a-jwt"})
        assert resp.status_code == 403

    def test_stored_but_expired_token_is_forbidden(self, client, app, tokens):
        user = User.find_by_username("alice")
        service = TokenService(
            app.config["ACCESS_SECRET"],
            app.config["REFRESH_SECRET"],
            refresh_expires=timedelta(seconds=-10),
            issuer=app.config["JWT_ISSUER"],
        )
        expired = service.issue_refresh_token(user.id)
        RefreshToken.create(user_id=user.id, token=expired)

        resp = client.post("/api/refresh-token", json={"refreshToken": expired})

        assert resp.status_code == 403
        assert RefreshToken.count_for_user(user.id) == 2

    def test_refresh_losing_concurrent_rotation_is_forbidden(self, client, tokens):
        user_id = User.find_by_username("alice").id
        real_find = RefreshToken.find

        def find_then_spend(token):
            # another request consumes the token between lookup and delete
            record = real_find(token)
            RefreshToken.consume(token)
            return record

        with mock.patch.object(RefreshToken, "find", side_effect=find_then_spend):
            resp = client.post("/api/refresh-token", json={"refreshToken": tokens["refreshToken"]})

        assert resp.status_code == 403
        assert resp.get_json()["message"] == "Invalid refresh token"
        assert RefreshToken.count_for_user(user_id) == 0

    def test_consume_succeeds_only_once(self, tokens):
        # two refresh calls racing on one token: only one delete removes the row
        assert RefreshToken.consume(tokens["refreshToken"]) is True
        assert RefreshToken.consume(tokens["refreshToken"]) is False


class TestLogout:
    def test_logout_revokes_refresh_token(self, client, tokens):
        resp = client.post("/api/logout", json={"refreshToken": tokens["refreshToken"]})

        assert resp.status_code == 200
        assert resp.get_json()["message"] == "Logged out successfully"
        assert RefreshToken.find(tokens["refreshToken"]) is None

    def test_refresh_after_logout_is_forbidden(self, client, tokens):
        client.post("/api/logout", json={"refreshToken": tokens["refreshToken"]})
        resp = client.post("/api/refresh-token", json={"refreshToken": tokens["refreshToken"]})

        assert resp.status_code == 403

    def test_logout_is_idempotent(self, client, tokens):
        client.post("/api/logout", json={"refreshToken": tokens["refreshToken"]})
        again = client.post("/api/logout", json={"refreshToken": tokens["refreshToken"]})
        unknown = client.post("/api/logout", json={"refreshToken": "never-issued"})

        assert again.status_code == 200
        assert unknown.status_code == 200

    def test_logout_requires_token(self, client):
        resp = client.post("/api/logout", json={})
        assert resp.status_code == 400

    def test_logout_only_revokes_the_given_session(self, client, registered):
        first = client.post("/api/login", json=registered).get_json()
        second = client.post("/api/login", json=registered).get_json()

        client.post("/api/logout", json={"refreshToken": first["refreshToken"]})
        resp = client.post("/api/refresh-token", json={"refreshToken": second["refreshToken"]})

        assert resp.status_code == 200
