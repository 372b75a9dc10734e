"""
Configuration pytest et fixtures partagées.
La base de test est un fichier SQLite recréé pour chaque test.
"""

import os

# Les paramètres sont lus à l'import de app.config
os.environ.update({
    "DATABASE_URL": "sqlite:///./test_nestify.db",
    "ENVIRONMENT": "test",
    "DEBUG": "true",
    "SECRET_KEY": "test-secret-key",
    "RAZORPAY_KEY_ID": "rzp_test_platform",
    "RAZORPAY_KEY_SECRET": "test_platform_secret",
    "RAZORPAY_WEBHOOK_SECRET": "test_webhook_secret",
    "CRON_SECRET": "test-cron-secret",
    "ENCRYPTION_KEY": "test-encryption-key-0123456789abcdef",
})
os.environ.pop("RESEND_API_KEY", None)
os.environ.pop("OTP_DEV_BYPASS_CODE", None)

import hashlib
import hmac
import json
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Generator

import email_validator
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.database import Base, SessionLocal, engine
from app.core.security import create_access_token, get_password_hash
from app.main import app
from app.models import Admin, Room, Tenure, User
from app.services.billing_service import generate_invoice

# Les adresses de test utilisent le TLD réservé ".test"
email_validator.TEST_ENVIRONMENT = True


PASSWORD = "Secret123"
BILLING_DAY = date(2026, 3, 5)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Session de test sur un schéma vierge."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    return TestClient(app)


def make_user(db: Session, email: str, phone: str, role: str, full_name: str = "Test User") -> User:
    user = User(
        email=email,
        phone=phone,
        hashed_password=get_password_hash(PASSWORD),
        full_name=full_name,
        role=role,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user: User) -> Dict[str, str]:
    token = create_access_token(subject=user.id, role=user.role)
    return {"Authorization": f"Bearer {token}"}


def sign(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def webhook_body(event: str, entity_key: str, entity: Dict[str, Any]) -> bytes:
    payload = {
        "entity": "event",
        "event": event,
        "payload": {entity_key: {"entity": entity}},
    }
    return json.dumps(payload).encode("utf-8")


@pytest.fixture
def admin_user(db: Session) -> User:
    return make_user(db, "owner@sunrise.test", "+919800000001", "admin", "Asha Menon")


@pytest.fixture
def hostel(db: Session, admin_user: User) -> Admin:
    admin = Admin(
        user_id=admin_user.id,
        full_name=admin_user.full_name,
        hostel_name="Sunrise PG",
        phone=admin_user.phone,
        stay_key="SUN123",
        payment_mode="PLATFORM",
        billing_cycle_day=BILLING_DAY.day,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    return admin


@pytest.fixture
def room(db: Session, hostel: Admin) -> Room:
    room = Room(admin_id=hostel.id, room_number="101", price=Decimal("10000"), capacity=2)
    db.add(room)
    db.commit()
    db.refresh(room)
    return room


@pytest.fixture
def tenant_user(db: Session) -> User:
    return make_user(db, "ravi@tenant.test", "+919800000002", "tenant", "Ravi Kumar")


@pytest.fixture
def tenure(db: Session, hostel: Admin, room: Room, tenant_user: User) -> Tenure:
    tenure = Tenure(
        admin_id=hostel.id,
        user_id=tenant_user.id,
        room_id=room.id,
        full_name=tenant_user.full_name,
        email=tenant_user.email,
        phone=tenant_user.phone,
        status="active",
    )
    db.add(tenure)
    db.commit()
    db.refresh(tenure)
    return tenure


@pytest.fixture
def monitor_user(db: Session) -> User:
    return make_user(db, "ops@nestify.test", "+919800000003", "monitor", "Platform Ops")


@pytest.fixture
def invoice(db: Session, tenure: Tenure):
    """Facture de mars 2026 (loyer 10000, mode PLATFORM, total 10075)."""
    invoice = generate_invoice(db, tenure, today=BILLING_DAY)
    db.commit()
    db.refresh(invoice)
    return invoice


@pytest.fixture
def admin_headers(admin_user: User) -> Dict[str, str]:
    return auth_headers(admin_user)


@pytest.fixture
def tenant_headers(tenant_user: User) -> Dict[str, str]:
    return auth_headers(tenant_user)


@pytest.fixture
def monitor_headers(monitor_user: User) -> Dict[str, str]:
    return auth_headers(monitor_user)
