"""
Tests d'inscription et d'authentification.
"""

from app.models import Admin, Tenure, User
from tests.conftest import PASSWORD


def _registration(**overrides):
    data = {
        "email": "new@owner.test",
        "phone": "+91 98000 00020",
        "full_name": "Meera Iyer",
        "password": PASSWORD,
        "confirm_password": PASSWORD,
    }
    data.update(overrides)
    return data


class TestRegistration:
    def test_register_admin_creates_hostel(self, client, db) -> None:
        response = client.post(
            "/api/v1/auth/register/admin",
            json=_registration(hostel_name="Green Nest PG", hostel_address="Koramangala, Bengaluru"),
        )

        assert response.status_code == 201
        assert response.json()["role"] == "admin"
        assert response.json()["phone"] == "+919800000020"
        admin = db.query(Admin).one()
        assert admin.hostel_name == "Green Nest PG"
        assert admin.payment_mode == "PLATFORM"
        assert len(admin.stay_key) == 6
        assert admin.stay_key.isalnum() and admin.stay_key == admin.stay_key.upper()

    def test_register_tenant_with_stay_key(self, client, db, hostel) -> None:
        response = client.post(
            "/api/v1/auth/register/tenant",
            json=_registration(email="new@tenant.test", stay_key="sun123"),
        )

        assert response.status_code == 201
        assert response.json()["role"] == "tenant"
        tenure = db.query(Tenure).one()
        assert tenure.admin_id == hostel.id
        assert tenure.status == "pending"
        assert tenure.email == "new@tenant.test"

    def test_unknown_stay_key(self, client, db, hostel) -> None:
        response = client.post("/api/v1/auth/register/tenant", json=_registration(stay_key="NOPE99"))

        assert response.status_code == 404
        assert db.query(User).filter(User.email == "new@owner.test").count() == 0

    def test_duplicate_email(self, client, admin_user) -> None:
        response = client.post(
            "/api/v1/auth/register/admin",
            json=_registration(email=admin_user.email, hostel_name="Copy PG"),
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Un compte existe déjà avec cet email"

    def test_weak_password(self, client) -> None:
        response = client.post(
            "/api/v1/auth/register/admin",
            json=_registration(password="weakpass", confirm_password="weakpass", hostel_name="Weak PG"),
        )

        assert response.status_code == 422


class TestLogin:
    def test_login_and_me(self, client, admin_user) -> None:
        response = client.post("/api/v1/auth/login", json={"email": admin_user.email, "password": PASSWORD})

        assert response.status_code == 200
        tokens = response.json()
        assert tokens["token_type"] == "bearer"

        me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
        assert me.json()["email"] == admin_user.email

    def test_login_with_phone(self, client, tenant_user) -> None:
        response = client.post("/api/v1/auth/login", json={"phone": tenant_user.phone, "password": PASSWORD})

        assert response.status_code == 200

    def test_wrong_password(self, client, admin_user) -> None:
        response = client.post("/api/v1/auth/login", json={"email": admin_user.email, "password": "Wrong1234"})

        assert response.status_code == 401

    def test_inactive_account(self, client, db, admin_user) -> None:
        admin_user.is_active = False
        db.commit()

        response = client.post("/api/v1/auth/login", json={"email": admin_user.email, "password": PASSWORD})

        assert response.status_code == 403

    def test_refresh_token(self, client, admin_user) -> None:
        tokens = client.post("/api/v1/auth/login", json={"email": admin_user.email, "password": PASSWORD}).json()

        refreshed = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        misused = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["access_token"]})

        assert refreshed.status_code == 200
        assert misused.status_code == 401

    def test_invalid_token(self, client) -> None:
        response = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-token"})

        assert response.status_code == 401
