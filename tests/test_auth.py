"""
Unit tests for authentication functionality
"""

import asyncio

from labflow.config import settings
from labflow.models.user import User
from labflow.services.user_service import UserService


class TestLogin:
    """Test cases for user login"""

    def test_login_with_username(self, client, lab_user):
        response = client.post(
            "/api/v1/auth/login",
            json={"username_or_email": "maria", "password": "UserPass123"},
        )
        assert response.status_code == 200

        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["expires_in"] == settings.access_token_expire_minutes * 60
        assert data["user"]["username"] == "maria"
        assert "hashed_password" not in data["user"]

    def test_login_with_email_case_insensitive(self, client, lab_user):
        response = client.post(
            "/api/v1/auth/login",
            json={"username_or_email": "Maria@Example.com", "password": "UserPass123"},
        )
        assert response.status_code == 200

    def test_login_wrong_password(self, client, lab_user):
        response = client.post(
            "/api/v1/auth/login",
            json={"username_or_email": "maria", "password": "WrongPass123"},
        )
        assert response.status_code == 401

    def test_login_unknown_user(self, client):
        response = client.post(
            "/api/v1/auth/login",
            json={"username_or_email": "nobody", "password": "Whatever123"},
        )
        assert response.status_code == 401

    def test_login_inactive_user(self, client, db, lab_user):
        lab_user.is_active = False
        db.commit()

        response = client.post(
            "/api/v1/auth/login",
            json={"username_or_email": "maria", "password": "UserPass123"},
        )
        assert response.status_code == 401
        assert "deactivated" in response.json()["detail"]


class TestCurrentUser:
    """Test cases for token-protected user endpoints"""

    def test_me(self, client, user_headers):
        response = client.get("/api/v1/auth/me", headers=user_headers)
        assert response.status_code == 200
        assert response.json()["email"] == "maria@example.com"
        assert response.json()["role"] == "user"

    def test_invalid_token(self, client):
        response = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer invalid"})
        assert response.status_code == 401

    def test_missing_token(self, client):
        response = client.get("/api/v1/auth/me")
        assert response.status_code in (401, 403)

    def test_list_users_for_assignment(self, client, admin_user, user_headers):
        response = client.get("/api/v1/auth/users", headers=user_headers)
        assert response.status_code == 200
        assert [user["username"] for user in response.json()] == ["admin", "maria"]
        assert set(response.json()[0]) == {"id", "username"}


class TestUserManagement:
    """Admin account creation"""

    def test_admin_creates_user(self, client, admin_headers):
        response = client.post(
            "/api/v1/auth/users",
            json={"username": "Joao.Silva", "email": "joao@example.com", "password": "Fresa2024"},
            headers=admin_headers,
        )
        assert response.status_code == 201
        assert response.json()["username"] == "joao.silva"
        assert response.json()["role"] == "user"

    def test_duplicate_username(self, client, admin_headers, lab_user):
        response = client.post(
            "/api/v1/auth/users",
            json={"username": "maria", "email": "other@example.com", "password": "Fresa2024"},
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert "Username already registered" in response.json()["detail"]

    def test_duplicate_email(self, client, admin_headers, lab_user):
        response = client.post(
            "/api/v1/auth/users",
            json={"username": "maria2", "email": "maria@example.com", "password": "Fresa2024"},
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert "Email already registered" in response.json()["detail"]

    def test_weak_password(self, client, admin_headers):
        response = client.post(
            "/api/v1/auth/users",
            json={"username": "fraco", "email": "fraco@example.com", "password": "onlyletters"},
            headers=admin_headers,
        )
        assert response.status_code == 422

    def test_invalid_role(self, client, admin_headers):
        response = client.post(
            "/api/v1/auth/users",
            json={"username": "chefe", "email": "chefe@example.com", "password": "Fresa2024", "role": "owner"},
            headers=admin_headers,
        )
        assert response.status_code == 422

    def test_non_admin_cannot_create_users(self, client, user_headers):
        response = client.post(
            "/api/v1/auth/users",
            json={"username": "intruso", "email": "intruso@example.com", "password": "Fresa2024"},
            headers=user_headers,
        )
        assert response.status_code == 403


class TestBootstrapAdmin:

    def test_ensure_admin_is_idempotent(self, db):
        service = UserService(db)
        first = service.ensure_admin("Chefe", "chefe@example.com", "Bootstrap123")
        second = service.ensure_admin("Chefe", "chefe@example.com", "Bootstrap123")

        assert first.id == second.id
        assert first.role == "admin"
        assert db.query(User).count() == 1

    def test_bootstrapped_admin_can_login(self, client, db):
        UserService(db).ensure_admin("chefe", "chefe@example.com", "Bootstrap123")
        response = client.post(
            "/api/v1/auth/login",
            json={"username_or_email": "chefe@example.com", "password": "Bootstrap123"},
        )
        assert response.status_code == 200
        assert response.json()["user"]["role"] == "admin"
        assert asyncio.run(UserService(db).get_user_by_id(response.json()["user"]["id"])) is not None
