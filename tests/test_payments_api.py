"""
Tests d'intégration des routes de paiement (orders, checkout, webhooks).
"""

from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from app.core.crypto import encrypt
from app.models import Admin, Invoice, Payment
from app.services.billing_service import generate_invoice
from app.services.razorpay_service import razorpay_service
from app.services.settlement_service import compute_admin_balances
from tests.conftest import auth_headers, make_user, sign, webhook_body


PLATFORM_SECRET = "test_platform_secret"
WEBHOOK_SECRET = "test_webhook_secret"


def _captured_entity(invoice, payment_id="pay_W1", mode="PLATFORM", amount_paise=1007500):
    return {
        "id": payment_id,
        "entity": "payment",
        "amount": amount_paise,
        "currency": "INR",
        "status": "captured",
        "order_id": "order_W1",
        "notes": {
            "source": "nestify_dual",
            "invoice_id": str(invoice.id),
            "admin_id": str(invoice.admin_id),
            "payment_mode": mode,
        },
    }


def _post_webhook(client, body: bytes, secret: str):
    return client.post(
        "/api/v1/payments/webhook",
        content=body,
        headers={"Content-Type": "application/json", "X-Razorpay-Signature": sign(secret, body)},
    )


class TestCreateOrder:
    def test_tenant_creates_order_for_own_invoice(self, client, db, invoice, tenant_headers) -> None:
        gateway_result = {
            "success": True,
            "order_id": "order_T1",
            "amount": 1007500,
            "currency": "INR",
            "key_id": "rzp_test_platform",
            "payment_mode": "PLATFORM",
        }
        with patch.object(
            razorpay_service, "create_order_for_invoice", AsyncMock(return_value=gateway_result),
        ) as create:
            response = client.post("/api/v1/payments/orders", json={"invoice_id": invoice.id}, headers=tenant_headers)

        assert response.status_code == 201
        assert response.json() == {
            "order_id": "order_T1",
            "amount": 1007500,
            "currency": "INR",
            "key_id": "rzp_test_platform",
            "payment_mode": "PLATFORM",
            "invoice_id": invoice.id,
        }
        create.assert_awaited_once()
        db.refresh(invoice)
        assert invoice.gateway_order_id == "order_T1"
        assert invoice.gateway_payment_mode == "PLATFORM"
        assert invoice.gateway_order_amount == Decimal("10075")

    def test_other_tenant_cannot_pay_invoice(self, client, db, invoice) -> None:
        stranger = make_user(db, "other@tenant.test", "+919800000009", "tenant")

        response = client.post(
            "/api/v1/payments/orders", json={"invoice_id": invoice.id}, headers=auth_headers(stranger),
        )

        assert response.status_code == 404

    def test_paid_invoice_is_refused(self, client, db, invoice, tenant_headers) -> None:
        invoice.status = "paid"
        db.commit()

        response = client.post("/api/v1/payments/orders", json={"invoice_id": invoice.id}, headers=tenant_headers)

        assert response.status_code == 400

    def test_own_mode_without_keys(self, client, db, hostel, invoice, tenant_headers) -> None:
        hostel.payment_mode = "OWN"
        db.commit()

        response = client.post("/api/v1/payments/orders", json={"invoice_id": invoice.id}, headers=tenant_headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Own gateway enabled but keys are missing"

    def test_gateway_failure_returns_bad_gateway(self, client, invoice, tenant_headers) -> None:
        failure = {"success": False, "error": "Authentication failed", "status_code": 401}
        with patch.object(razorpay_service, "create_order_for_invoice", AsyncMock(return_value=failure)):
            response = client.post("/api/v1/payments/orders", json={"invoice_id": invoice.id}, headers=tenant_headers)

        assert response.status_code == 502
        assert response.json()["detail"] == "Erreur Razorpay: Authentication failed"

    def test_monitor_cannot_create_orders(self, client, invoice, monitor_headers) -> None:
        response = client.post("/api/v1/payments/orders", json={"invoice_id": invoice.id}, headers=monitor_headers)

        assert response.status_code == 403


def _attach_order(db, invoice, order_id="order_C1", mode="PLATFORM", amount=None):
    invoice.gateway_order_id = order_id
    invoice.gateway_payment_mode = mode
    invoice.gateway_order_amount = amount if amount is not None else invoice.total_amount
    db.commit()


class TestVerifyPayment:
    def _verify(self, client, invoice, headers, payment_id="pay_C1", secret=PLATFORM_SECRET, order_id="order_C1"):
        return client.post(
            "/api/v1/payments/verify",
            json={
                "invoice_id": invoice.id,
                "razorpay_order_id": order_id,
                "razorpay_payment_id": payment_id,
                "razorpay_signature": sign(secret, f"{order_id}|{payment_id}".encode("utf-8")),
            },
            headers=headers,
        )

    def test_valid_platform_payment(self, client, db, invoice, tenant_headers) -> None:
        _attach_order(db, invoice)

        response = self._verify(client, invoice, tenant_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["payment_status"] == "SUCCESS"
        assert data["payment_mode"] == "PLATFORM"
        assert data["settlement_status"] == "PENDING"
        assert Decimal(str(data["order_amount"])) == Decimal("10075")
        assert Decimal(str(data["platform_fee"])) == Decimal("201.50")
        assert Decimal(str(data["vendor_payout"])) == Decimal("9873.50")
        assert data["remarks"] == "Captured via PLATFORM Gateway"

        db.refresh(invoice)
        assert invoice.status == "paid"
        assert invoice.paid_at is not None

    def test_own_payment_is_signed_with_admin_secret(self, client, db, hostel, invoice, tenant_headers) -> None:
        hostel.payment_mode = "OWN"
        hostel.razorpay_key_id = "rzp_test_own1234"
        hostel.razorpay_key_secret = encrypt("own_key_secret")
        _attach_order(db, invoice, mode="OWN")

        rejected = self._verify(client, invoice, tenant_headers, secret=PLATFORM_SECRET)
        accepted = self._verify(client, invoice, tenant_headers, secret="own_key_secret")

        assert rejected.status_code == 400
        assert accepted.status_code == 200
        data = accepted.json()
        assert data["payment_mode"] == "OWN"
        assert data["settlement_status"] == "COMPLETED"
        assert data["platform_fee"] is None
        assert data["vendor_payout"] is None

    def test_invalid_signature(self, client, db, invoice, tenant_headers) -> None:
        _attach_order(db, invoice)

        response = self._verify(client, invoice, tenant_headers, secret="forged")

        assert response.status_code == 400
        assert response.json()["detail"] == "Signature de paiement invalide"
        db.refresh(invoice)
        assert invoice.status == "pending"
        assert db.query(Payment).count() == 0

    def test_verify_twice_returns_same_payment(self, client, db, invoice, tenant_headers) -> None:
        _attach_order(db, invoice)

        first = self._verify(client, invoice, tenant_headers)
        second = self._verify(client, invoice, tenant_headers)

        assert first.json()["id"] == second.json()["id"]
        assert db.query(Payment).count() == 1

    def test_invoice_without_order_is_refused(self, client, db, invoice, tenant_headers) -> None:
        response = self._verify(client, invoice, tenant_headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Cet order ne correspond pas à la facture"
        assert db.query(Payment).count() == 0

    def test_checkout_of_another_invoice_is_refused(self, client, db, tenure, invoice, tenant_headers) -> None:
        cheap = generate_invoice(db, tenure, today=date(2026, 4, 5))
        cheap.total_amount = Decimal("100")
        db.commit()
        _attach_order(db, cheap, order_id="order_CHEAP")
        _attach_order(db, invoice, order_id="order_EXPENSIVE")

        # Signature authentique du checkout de la petite facture, présentée pour la grosse
        response = self._verify(client, invoice, tenant_headers, payment_id="pay_CHEAP", order_id="order_CHEAP")

        assert response.status_code == 400
        db.refresh(invoice)
        assert invoice.status == "pending"
        assert db.query(Payment).count() == 0

    def test_mode_and_amount_come_from_the_order(self, client, db, hostel, invoice, tenant_headers) -> None:
        _attach_order(db, invoice, mode="PLATFORM", amount=Decimal("10075"))
        # Passage en OWN et pénalité ajoutée après la création de l'order
        hostel.payment_mode = "OWN"
        hostel.razorpay_key_id = "rzp_test_own1234"
        hostel.razorpay_key_secret = encrypt("own_key_secret")
        invoice.total_amount = Decimal("10277")
        db.commit()

        response = self._verify(client, invoice, tenant_headers, secret=PLATFORM_SECRET)

        assert response.status_code == 200
        data = response.json()
        assert data["payment_mode"] == "PLATFORM"
        assert data["settlement_status"] == "PENDING"
        assert Decimal(str(data["order_amount"])) == Decimal("10075")


class TestWebhook:
    def test_payment_captured(self, client, db, invoice) -> None:
        body = webhook_body("payment.captured", "payment", _captured_entity(invoice))

        response = _post_webhook(client, body, WEBHOOK_SECRET)

        assert response.status_code == 200
        assert response.json() == {"received": True}
        payment = db.query(Payment).one()
        assert payment.gateway_payment_id == "pay_W1"
        assert payment.gateway_order_id == "order_W1"
        assert payment.invoice_id == invoice.id
        assert payment.admin_id == invoice.admin_id
        assert payment.tenure_id == invoice.tenure_id
        assert Decimal(str(payment.order_amount)) == Decimal("10075")
        assert payment.settlement_status == "PENDING"
        db.refresh(invoice)
        assert invoice.status == "paid"

    def test_replayed_webhook_is_recorded_once(self, client, db, invoice) -> None:
        body = webhook_body("payment.captured", "payment", _captured_entity(invoice))

        _post_webhook(client, body, WEBHOOK_SECRET)
        response = _post_webhook(client, body, WEBHOOK_SECRET)

        assert response.status_code == 200
        assert db.query(Payment).count() == 1

    def test_webhook_after_checkout_verification(self, client, db, invoice, tenant_headers) -> None:
        _attach_order(db, invoice, order_id="order_W1")
        client.post(
            "/api/v1/payments/verify",
            json={
                "invoice_id": invoice.id,
                "razorpay_order_id": "order_W1",
                "razorpay_payment_id": "pay_W1",
                "razorpay_signature": sign(PLATFORM_SECRET, b"order_W1|pay_W1"),
            },
            headers=tenant_headers,
        )
        body = webhook_body("payment.captured", "payment", _captured_entity(invoice))

        response = _post_webhook(client, body, WEBHOOK_SECRET)

        assert response.status_code == 200
        assert db.query(Payment).count() == 1

    def test_own_webhook_signed_with_admin_webhook_secret(self, client, db, hostel, invoice) -> None:
        hostel.payment_mode = "OWN"
        hostel.razorpay_key_id = "rzp_test_own1234"
        hostel.razorpay_key_secret = encrypt("own_key_secret")
        hostel.razorpay_webhook_secret = encrypt("own_webhook_secret")
        db.commit()
        body = webhook_body("payment.captured", "payment", _captured_entity(invoice, mode="OWN", amount_paise=1012000))

        response = _post_webhook(client, body, "own_webhook_secret")

        assert response.status_code == 200
        payment = db.query(Payment).one()
        assert payment.payment_mode == "OWN"
        assert payment.settlement_status == "COMPLETED"
        assert payment.platform_fee is None

    @pytest.fixture
    def other_own_hostel(self, db):
        owner = make_user(db, "owner@lakeview.test", "+919800000020", "admin", "Vikram Rao")
        admin = Admin(
            user_id=owner.id,
            full_name=owner.full_name,
            hostel_name="Lakeview Hostel",
            phone=owner.phone,
            stay_key="LAK456",
            payment_mode="OWN",
            razorpay_key_id="rzp_test_lake1234",
            razorpay_key_secret=encrypt("lake_key_secret"),
            razorpay_webhook_secret=encrypt("lake_webhook_secret"),
        )
        db.add(admin)
        db.commit()
        db.refresh(admin)
        return admin

    def test_own_secret_cannot_settle_another_hostels_invoice(self, client, db, invoice, other_own_hostel) -> None:
        entity = _captured_entity(invoice, payment_id="pay_X1", amount_paise=500000000)
        entity["notes"]["admin_id"] = str(other_own_hostel.id)
        body = webhook_body("payment.captured", "payment", entity)

        response = _post_webhook(client, body, "lake_webhook_secret")

        assert response.status_code == 400
        assert response.json()["detail"] == "La facture n'appartient pas à ce gérant"
        assert db.query(Payment).count() == 0
        db.refresh(invoice)
        assert invoice.status == "pending"

    def test_own_secret_cannot_claim_platform_mode(self, client, db, other_own_hostel) -> None:
        entity = {
            "id": "pay_X2",
            "entity": "payment",
            "amount": 500000000,
            "order_id": "order_X2",
            "notes": {"admin_id": str(other_own_hostel.id), "payment_mode": "PLATFORM"},
        }
        body = webhook_body("payment.captured", "payment", entity)

        response = _post_webhook(client, body, "lake_webhook_secret")

        assert response.status_code == 200
        payment = db.query(Payment).one()
        assert payment.payment_mode == "OWN"
        assert payment.vendor_payout is None
        assert payment.settlement_status == "COMPLETED"
        assert compute_admin_balances(db) == []

    def test_own_secret_cannot_refund_platform_payment(self, client, db, invoice, other_own_hostel) -> None:
        _post_webhook(client, webhook_body("payment.captured", "payment", _captured_entity(invoice)), WEBHOOK_SECRET)
        refund = {
            "id": "rfnd_X",
            "entity": "refund",
            "payment_id": "pay_W1",
            "notes": {"admin_id": str(other_own_hostel.id)},
        }

        response = _post_webhook(client, webhook_body("refund.processed", "refund", refund), "lake_webhook_secret")

        assert response.status_code == 400
        payment = db.query(Payment).one()
        db.refresh(payment)
        assert payment.payment_status == "SUCCESS"

    def test_own_refund_signed_by_owner(self, client, db, hostel, invoice) -> None:
        hostel.payment_mode = "OWN"
        hostel.razorpay_key_id = "rzp_test_own1234"
        hostel.razorpay_key_secret = encrypt("own_key_secret")
        hostel.razorpay_webhook_secret = encrypt("own_webhook_secret")
        db.commit()
        captured = webhook_body("payment.captured", "payment", _captured_entity(invoice, mode="OWN"))
        _post_webhook(client, captured, "own_webhook_secret")
        refund = {"id": "rfnd_O", "entity": "refund", "payment_id": "pay_W1", "notes": {}}

        response = _post_webhook(client, webhook_body("refund.processed", "refund", refund), "own_webhook_secret")

        assert response.status_code == 200
        payment = db.query(Payment).one()
        db.refresh(payment)
        assert payment.payment_status == "REFUNDED"

    def test_invalid_signature_is_rejected(self, client, db, invoice) -> None:
        body = webhook_body("payment.captured", "payment", _captured_entity(invoice))

        response = _post_webhook(client, body, "not-the-secret")

        assert response.status_code == 400
        assert response.json()["detail"] == "Signature invalide"
        assert db.query(Payment).count() == 0

    def test_missing_signature_header(self, client, invoice) -> None:
        body = webhook_body("payment.captured", "payment", _captured_entity(invoice))

        response = client.post("/api/v1/payments/webhook", content=body)

        assert response.status_code == 400

    def test_refund_processed(self, client, db, invoice) -> None:
        _post_webhook(client, webhook_body("payment.captured", "payment", _captured_entity(invoice)), WEBHOOK_SECRET)
        refund = {"id": "rfnd_1", "entity": "refund", "payment_id": "pay_W1", "amount": 1007500}

        response = _post_webhook(client, webhook_body("refund.processed", "refund", refund), WEBHOOK_SECRET)

        assert response.status_code == 200
        payment = db.query(Payment).one()
        db.refresh(payment)
        assert payment.payment_status == "REFUNDED"
        assert payment.remarks == "Refund processed via webhook"

    def test_refund_for_unknown_payment_is_acknowledged(self, client, db) -> None:
        refund = {"id": "rfnd_2", "entity": "refund", "payment_id": "pay_unknown"}

        response = _post_webhook(client, webhook_body("refund.processed", "refund", refund), WEBHOOK_SECRET)

        assert response.status_code == 200
        assert db.query(Payment).count() == 0

    def test_unhandled_event_is_acknowledged(self, client, db) -> None:
        body = webhook_body("order.paid", "order", {"id": "order_X", "notes": {}})

        response = _post_webhook(client, body, WEBHOOK_SECRET)

        assert response.status_code == 200
        assert response.json() == {"received": True}

    def test_invalid_json(self, client) -> None:
        response = client.post(
            "/api/v1/payments/webhook",
            content=b"not json",
            headers={"X-Razorpay-Signature": sign(WEBHOOK_SECRET, b"not json")},
        )

        assert response.status_code == 400


class TestPaymentQueries:
    @pytest.fixture
    def payment(self, client, db, invoice):
        _post_webhook(client, webhook_body("payment.captured", "payment", _captured_entity(invoice)), WEBHOOK_SECRET)
        return db.query(Payment).one()

    def test_admin_lists_hostel_payments(self, client, payment, admin_headers) -> None:
        response = client.get("/api/v1/payments", headers=admin_headers)

        assert response.status_code == 200
        assert [p["id"] for p in response.json()] == [payment.id]

    def test_other_admin_sees_nothing(self, client, db, payment) -> None:
        other = make_user(db, "other@owner.test", "+919800000010", "admin")

        response = client.get("/api/v1/payments", headers=auth_headers(other))

        assert response.status_code == 200
        assert response.json() == []

    def test_tenant_lists_own_payments(self, client, payment, tenant_headers) -> None:
        response = client.get("/api/v1/payments/my", headers=tenant_headers)

        assert [p["gateway_payment_id"] for p in response.json()] == ["pay_W1"]

    def test_payment_detail_is_scoped(self, client, db, payment, tenant_headers, monitor_headers) -> None:
        stranger = make_user(db, "other@tenant.test", "+919800000011", "tenant")

        assert client.get(f"/api/v1/payments/{payment.id}", headers=tenant_headers).status_code == 200
        assert client.get(f"/api/v1/payments/{payment.id}", headers=monitor_headers).status_code == 200
        assert client.get(f"/api/v1/payments/{payment.id}", headers=auth_headers(stranger)).status_code == 403
        assert client.get("/api/v1/payments/9999", headers=monitor_headers).status_code == 404

    def test_payout_summary(self, client, payment, admin_headers) -> None:
        response = client.get("/api/v1/payments/payouts", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["connected"] is False
        assert Decimal(str(data["total_earnings"])) == Decimal("9873.50")
        assert Decimal(str(data["pending_settlement"])) == Decimal("9873.50")
        assert Decimal(str(data["paid_out"])) == Decimal("0")
