"""HTTP tests for the auth and users blueprints."""
import pytest

REGISTER = "/api/v1/auth/register"
LOGIN = "/api/v1/auth/login"
REFRESH = "/api/v1/auth/refresh"
LOGOUT = "/api/v1/auth/logout"

ALICE = {
    "username": "alice",
    "email": "alice@x.com",
    "password": "secret1",
    "firstName": "A",
    "lastName": "B",
}


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def registered(client):
    resp = client.post(REGISTER, json=ALICE)
    assert resp.status_code == 201
    return resp.get_json()


@pytest.fixture
def admin_headers(app, client):
    resp = client.post(REGISTER, json=dict(ALICE, username="root", email="root@x.com"))
    body = resp.get_json()
    with app.app_context():
        store = app.extensions["account_store"]
        store.update_profile(store.find_by_id(body["user"]["id"]), role="admin")
    return bearer(body["accessToken"])


class TestEndToEnd:
    def test_register_login_refresh_reuse(self, client):
        resp = client.post(REGISTER, json=ALICE)
        body = resp.get_json()
        assert resp.status_code == 201
        assert body["accessToken"] and body["refreshToken"]
        assert "password" not in body["user"]
        assert "passwordHash" not in body["user"] and "password_hash" not in body["user"]

        resp = client.post(LOGIN, json={"email": "alice@x.com", "password": "secret1"})
        assert resp.status_code == 200
        login_body = resp.get_json()
        assert login_body["refreshToken"] != body["refreshToken"]

        resp = client.post(REFRESH, json={"refreshToken": login_body["refreshToken"]})
        assert resp.status_code == 200
        assert set(resp.get_json()) == {"accessToken", "refreshToken"}

        resp = client.post(REFRESH, json={"refreshToken": login_body["refreshToken"]})
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "INVALID_TOKEN"


class TestRegisterRoute:
    def test_user_projection(self, registered):
        user = registered["user"]
        assert user["username"] == "alice"
        assert user["firstName"] == "A"
        assert user["role"] == "user"
        assert user["isActive"] is True

    def test_duplicate_email_is_400(self, client, registered):
        resp = client.post(REGISTER, json=dict(ALICE, username="other", email="Alice@X.com"))
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Email already registered"

    def test_duplicate_username_is_400(self, client, registered):
        resp = client.post(REGISTER, json=dict(ALICE, email="other@x.com"))
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Username already taken"

    @pytest.mark.parametrize(
        "field, value",
        [("email", "not-an-email"), ("password", "12345"), ("username", "ab"), ("firstName", "x" * 51)],
    )
    def test_validation_is_400(self, client, field, value):
        resp = client.post(REGISTER, json=dict(ALICE, **{field: value}))
        body = resp.get_json()
        assert resp.status_code == 400
        assert body["error"] == "VALIDATION_ERROR"
        assert field in body["details"]

    def test_missing_fields(self, client):
        resp = client.post(REGISTER, json={"email": "alice@x.com"})
        assert resp.status_code == 400
        assert {"username", "password", "firstName", "lastName"} <= set(resp.get_json()["details"])


class TestLoginRoute:
    def test_invalid_credentials_are_generic(self, client, registered):
        wrong = client.post(LOGIN, json={"email": "alice@x.com", "password": "nope00"})
        unknown = client.post(LOGIN, json={"email": "bob@x.com", "password": "secret1"})
        assert wrong.status_code == unknown.status_code == 401
        assert wrong.get_json() == unknown.get_json()

    def test_deactivated_is_401(self, client, registered, admin_headers):
        client.put(f"/api/v1/users/{registered['user']['id']}/status", json={"isActive": False}, headers=admin_headers)
        resp = client.post(LOGIN, json={"email": "alice@x.com", "password": "secret1"})
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "ACCOUNT_DEACTIVATED"


class TestRefreshRoute:
    def test_missing_token_is_401(self, client):
        resp = client.post(REFRESH, json={})
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "MISSING_TOKEN"

    def test_invalid_token_is_403_with_generic_message(self, client):
        resp = client.post(REFRESH, json={"refreshToken": "garbage"})
        assert resp.status_code == 403
        assert resp.get_json()["message"] == "Invalid refresh token"


class TestLogoutRoute:
    def test_requires_access_token(self, client, registered):
        resp = client.post(LOGOUT, json={})
        assert resp.status_code == 401

    def test_refresh_token_is_not_an_access_token(self, client, registered):
        resp = client.post(LOGOUT, json={}, headers=bearer(registered["refreshToken"]))
        assert resp.status_code == 401

    def test_logout_one(self, client, registered):
        other = client.post(LOGIN, json={"email": "alice@x.com", "password": "secret1"}).get_json()
        resp = client.post(
            LOGOUT, json={"refreshToken": other["refreshToken"]}, headers=bearer(registered["accessToken"])
        )
        assert resp.status_code == 200
        assert client.post(REFRESH, json={"refreshToken": other["refreshToken"]}).status_code == 403
        assert client.post(REFRESH, json={"refreshToken": registered["refreshToken"]}).status_code == 200

    def test_logout_all(self, client, registered):
        other = client.post(LOGIN, json={"email": "alice@x.com", "password": "secret1"}).get_json()
        resp = client.post(LOGOUT, headers=bearer(registered["accessToken"]))
        assert resp.status_code == 200
        for token in (registered["refreshToken"], other["refreshToken"]):
            assert client.post(REFRESH, json={"refreshToken": token}).status_code == 403

    def test_access_token_still_works_after_logout(self, client, registered):
        client.post(LOGOUT, headers=bearer(registered["accessToken"]))
        assert client.get("/api/v1/users/me", headers=bearer(registered["accessToken"])).status_code == 200

    def test_deleted_account_is_404(self, app, client, registered):
        from models.account import Account

        with app.app_context():
            session = app.extensions["account_store"].get_session()
            session.query(Account).filter(Account.id == registered["user"]["id"]).delete(synchronize_session=False)
            session.commit()
        resp = client.post(LOGOUT, headers=bearer(registered["accessToken"]))
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "ACCOUNT_NOT_FOUND"


class TestUsersRoutes:
    def test_me(self, client, registered):
        resp = client.get("/api/v1/users/me", headers=bearer(registered["accessToken"]))
        assert resp.status_code == 200
        assert resp.get_json()["user"]["email"] == "alice@x.com"

    def test_update_profile(self, client, registered):
        resp = client.patch(
            "/api/v1/users/me",
            json={"firstName": "Alice", "profileImage": "https://img.example.com/a.png"},
            headers=bearer(registered["accessToken"]),
        )
        user = resp.get_json()["user"]
        assert resp.status_code == 200
        assert user["firstName"] == "Alice"
        assert user["lastName"] == "B"
        assert user["profileImage"] == "https://img.example.com/a.png"

    def test_update_profile_rejects_email(self, client, registered):
        resp = client.patch("/api/v1/users/me", json={"email": "x@x.com"}, headers=bearer(registered["accessToken"]))
        assert resp.status_code == 400

    def test_change_password(self, client, registered):
        resp = client.post(
            "/api/v1/users/me/password",
            json={"currentPassword": "secret1", "newPassword": "secret2"},
            headers=bearer(registered["accessToken"]),
        )
        assert resp.status_code == 200
        assert client.post(REFRESH, json={"refreshToken": registered["refreshToken"]}).status_code == 403
        assert client.post(LOGIN, json={"email": "alice@x.com", "password": "secret2"}).status_code == 200

    def test_status_requires_admin(self, client, registered):
        resp = client.put(
            f"/api/v1/users/{registered['user']['id']}/status",
            json={"isActive": False},
            headers=bearer(registered["accessToken"]),
        )
        assert resp.status_code == 403

    def test_status_unknown_account(self, client, admin_headers):
        resp = client.put("/api/v1/users/nope/status", json={"isActive": False}, headers=admin_headers)
        assert resp.status_code == 404

    def test_deactivate_revokes_refresh_tokens(self, client, registered, admin_headers):
        resp = client.put(
            f"/api/v1/users/{registered['user']['id']}/status", json={"isActive": False}, headers=admin_headers
        )
        assert resp.status_code == 200
        assert resp.get_json()["user"]["isActive"] is False
        assert client.post(REFRESH, json={"refreshToken": registered["refreshToken"]}).status_code == 403


class TestMisc:
    def test_health(self, client):
        resp = client.get("/api/v1/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "OK"

    def test_unknown_route(self, client):
        resp = client.get("/api/v1/nope")
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "NOT_FOUND"

    def test_wrong_method(self, client):
        resp = client.get(LOGIN)
        assert resp.status_code == 405
        body = resp.get_json()
        assert body["error"] == "METHOD_NOT_ALLOWED"
        assert body["status"] == 405

    def test_prune_tokens_command(self, app):
        result = app.test_cli_runner().invoke(args=["prune-tokens"])
        assert result.exit_code == 0
        assert "Pruned 0 expired refresh tokens" in result.output
