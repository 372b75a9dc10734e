"""
Tests de l'application: santé, identifiant de requête, avertissements de configuration.
"""

from unittest.mock import patch

from app.config import settings
from app.main import configuration_warnings


def test_health(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["database"] == "ok"
    assert data["razorpay_platform"] == "configured"
    assert data["email"] == "simulated"


def test_request_id_is_echoed(client) -> None:
    response = client.get("/", headers={"X-Request-ID": "req-42"})

    assert response.headers["X-Request-ID"] == "req-42"
    assert "X-Process-Time" in response.headers


def test_configuration_warnings() -> None:
    assert configuration_warnings() == ["RESEND_API_KEY absent: les emails sont simulés"]

    with patch.object(settings, "CRON_SECRET", None), patch.object(settings, "ENVIRONMENT", "production"), \
            patch.object(settings, "OTP_DEV_BYPASS_CODE", "112233"):
        warnings = configuration_warnings()

    assert any("CRON_SECRET" in warning for warning in warnings)
    assert any("OTP_DEV_BYPASS_CODE" in warning for warning in warnings)


def test_payment_details_are_masked() -> None:
    from app.core.logging import mask_details, mask_email

    assert mask_details({"invoice_id": 4, "key_secret": "abc", "razorpay_signature": "f00"}) == {
        "invoice_id": 4,
        "key_secret": "***",
        "razorpay_signature": "***",
    }
    assert mask_details(None) == {}
    assert mask_email("ravi@tenant.test") == "r***@tenant.test"
