from datetime import timedelta

from security import create_access_token, decode_access_token
from user_store import UserStore


class TestLogin:
    def test_login_returns_token_and_safe_user(self, client, admin_user):
        response = client.post("/api/admin/users/login", json={"email": "ADMIN@example.com", "password": "admin123"})
        assert response.status_code == 200
        body = response.json()
        assert body["user"]["email"] == "admin@example.com"
        assert "password" not in body["user"]
        claims = decode_access_token(body["token"])
        assert claims["id"] == admin_user["id"]
        assert claims["role"] == "admin"

    def test_wrong_password_is_generic(self, client, admin_user):
        response = client.post("/api/admin/users/login", json={"email": "admin@example.com", "password": "nope"})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid email or password"

    def test_unknown_email_is_generic(self, client):
        response = client.post("/api/admin/users/login", json={"email": "ghost@example.com", "password": "whatever"})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid email or password"

    def test_deactivated_account(self, client, db, regular_user):
        UserStore(db).update(regular_user["id"], {"isActive": False})
        response = client.post("/api/admin/users/login", json={"email": "user@example.com", "password": "user1234"})
        assert response.status_code == 401
        assert "deactivated" in response.json()["message"]


class TestTokens:
    def test_expired_token(self, client, admin_user):
        token = create_access_token(admin_user, expires_delta=timedelta(seconds=-30))
        response = client.get("/api/admin/users/profile", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["message"] == "Unauthorized. Token expired."

    def test_garbage_token(self, client):
        response = client.get("/api/admin/users/profile", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
        assert response.json()["message"] == "Unauthorized. Invalid or expired token."

    def test_profile(self, client, user_headers, regular_user):
        response = client.get("/api/admin/users/profile", headers=user_headers)
        assert response.status_code == 200
        assert response.json()["user"]["id"] == regular_user["id"]

    def test_profile_of_deleted_account(self, client, db, user_headers, regular_user):
        db["user"].delete_many({})
        assert client.get("/api/admin/users/profile", headers=user_headers).status_code == 404


class TestRegistration:
    def test_admin_registers_user(self, client, db, admin_headers):
        response = client.post(
            "/api/admin/users/register",
            json={"name": "New", "email": "New@Example.com", "password": "secret1"},
            headers=admin_headers,
        )
        assert response.status_code == 201
        assert response.json()["user"]["role"] == "user"
        stored = db["user"].find_one({"email": "new@example.com"})
        assert stored["password"] != "secret1"
        assert stored["password"].startswith("$2")

    def test_duplicate_email(self, client, admin_headers, regular_user):
        response = client.post(
            "/api/admin/users/register",
            json={"name": "Again", "email": "user@example.com", "password": "secret1"},
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert response.json()["message"] == "This email is already in use"

    def test_short_password(self, client, admin_headers):
        response = client.post(
            "/api/admin/users/register",
            json={"name": "Short", "email": "short@example.com", "password": "123"},
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert response.json()["message"].startswith("password")

    def test_non_admin_cannot_register(self, client, user_headers):
        response = client.post(
            "/api/admin/users/register",
            json={"name": "X", "email": "x@example.com", "password": "secret1"},
            headers=user_headers,
        )
        assert response.status_code == 403


class TestAccountManagement:
    def test_list_users_hides_passwords(self, client, admin_headers, regular_user):
        body = client.get("/api/admin/users", headers=admin_headers).json()
        assert body["count"] == 2
        assert all("password" not in user for user in body["users"])

    def test_change_password(self, client, user_headers):
        wrong = client.post(
            "/api/admin/users/change-password",
            json={"currentPassword": "bad-guess", "newPassword": "newpass1"},
            headers=user_headers,
        )
        assert wrong.status_code == 401
        assert wrong.json()["message"] == "Current password is incorrect"

        ok = client.post(
            "/api/admin/users/change-password",
            json={"currentPassword": "user1234", "newPassword": "newpass1"},
            headers=user_headers,
        )
        assert ok.status_code == 200
        login = client.post("/api/admin/users/login", json={"email": "user@example.com", "password": "newpass1"})
        assert login.status_code == 200

    def test_update_user(self, client, admin_headers, regular_user):
        response = client.put(
            f"/api/admin/users/{regular_user['id']}",
            json={"name": "Renamed", "role": "manager", "isActive": False},
            headers=admin_headers,
        )
        assert response.status_code == 200
        user = response.json()["user"]
        assert (user["name"], user["role"], user["isActive"]) == ("Renamed", "manager", False)

    def test_update_to_taken_email(self, client, admin_headers, regular_user):
        response = client.put(
            f"/api/admin/users/{regular_user['id']}",
            json={"email": "admin@example.com"},
            headers=admin_headers,
        )
        assert response.status_code == 400

    def test_update_unknown_user(self, client, admin_headers):
        assert client.put("/api/admin/users/not-an-id", json={"name": "x"}, headers=admin_headers).status_code == 404
