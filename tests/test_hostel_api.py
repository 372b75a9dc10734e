"""
Tests de gestion de la résidence: profil, chambres, séjours et factures.
"""

from decimal import Decimal

from app.models import Invoice
from tests.conftest import auth_headers, make_user


class TestHostel:
    def test_update_billing_settings(self, client, hostel, admin_headers) -> None:
        response = client.patch(
            "/api/v1/hostel",
            json={"billing_cycle_day": 10, "auto_billing_enabled": True, "fixed_water": "150"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["billing_cycle_day"] == 10
        assert data["auto_billing_enabled"] is True
        assert Decimal(str(data["fixed_water"])) == Decimal("150")

    def test_cycle_day_is_bounded(self, client, hostel, admin_headers) -> None:
        response = client.patch("/api/v1/hostel", json={"billing_cycle_day": 31}, headers=admin_headers)

        assert response.status_code == 422

    def test_regenerate_stay_key(self, client, hostel, admin_headers) -> None:
        response = client.post("/api/v1/hostel/stay-key/regenerate", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["stay_key"] != "SUN123"

    def test_admin_without_hostel(self, client, db) -> None:
        orphan = make_user(db, "orphan@owner.test", "+919800000030", "admin")

        response = client.get("/api/v1/hostel", headers=auth_headers(orphan))

        assert response.status_code == 404


class TestRoomsAndTenures:
    def test_create_room(self, client, hostel, admin_headers) -> None:
        response = client.post(
            "/api/v1/rooms", json={"room_number": "202", "price": "7500", "capacity": 3}, headers=admin_headers,
        )
        duplicate = client.post("/api/v1/rooms", json={"room_number": "202", "price": "7000"}, headers=admin_headers)

        assert response.status_code == 201
        assert response.json()["capacity"] == 3
        assert duplicate.status_code == 400

    def test_approve_tenure_with_room(self, client, db, tenure, room, admin_headers) -> None:
        tenure.status = "pending"
        tenure.room_id = None
        db.commit()

        response = client.patch(
            f"/api/v1/tenures/{tenure.id}", json={"status": "active", "room_id": room.id}, headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["status"] == "active"
        assert response.json()["room_id"] == room.id

    def test_pending_filter(self, client, db, tenure, admin_headers) -> None:
        tenure.status = "pending"
        db.commit()

        response = client.get("/api/v1/tenures?status=pending", headers=admin_headers)

        assert [t["id"] for t in response.json()] == [tenure.id]

    def test_unknown_room(self, client, tenure, admin_headers) -> None:
        response = client.patch(f"/api/v1/tenures/{tenure.id}", json={"room_id": 999}, headers=admin_headers)

        assert response.status_code == 404


class TestInvoicesApi:
    def test_manual_invoice(self, client, db, tenure, admin_headers) -> None:
        response = client.post(
            "/api/v1/invoices", json={"tenure_id": tenure.id, "month": 5, "year": 2026}, headers=admin_headers,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert Decimal(str(data["total_amount"])) == Decimal("10075")
        assert [item["type"] for item in data["items"]] == ["rent", "fee", "fee"]

    def test_duplicate_manual_invoice(self, client, tenure, admin_headers) -> None:
        payload = {"tenure_id": tenure.id, "month": 5, "year": 2026}

        client.post("/api/v1/invoices", json=payload, headers=admin_headers)
        response = client.post("/api/v1/invoices", json=payload, headers=admin_headers)

        assert response.status_code == 409

    def test_inactive_tenure(self, client, db, tenure, admin_headers) -> None:
        tenure.status = "inactive"
        db.commit()

        response = client.post("/api/v1/invoices", json={"tenure_id": tenure.id}, headers=admin_headers)

        assert response.status_code == 400

    def test_edit_items_recomputes_totals(self, client, invoice, admin_headers) -> None:
        response = client.patch(
            f"/api/v1/invoices/{invoice.id}",
            json={"items": [
                {"description": "Room Rent", "amount": "10000", "type": "rent"},
                {"description": "Laundry", "amount": "300", "type": "service"},
                {"description": "Platform Service Fee", "amount": "60", "type": "fee"},
            ]},
            headers=admin_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert Decimal(str(data["subtotal"])) == Decimal("10300")
        assert Decimal(str(data["total_amount"])) == Decimal("10360")

    def test_cancel_only_once(self, client, invoice, admin_headers) -> None:
        cancelled = client.post(f"/api/v1/invoices/{invoice.id}/cancel", headers=admin_headers)
        again = client.post(f"/api/v1/invoices/{invoice.id}/cancel", headers=admin_headers)

        assert cancelled.json()["status"] == "cancelled"
        assert again.status_code == 400

    def test_tenant_sees_only_own_invoices(self, client, db, invoice, tenant_headers) -> None:
        stranger = make_user(db, "other@tenant.test", "+919800000031", "tenant")

        mine = client.get("/api/v1/invoices", headers=tenant_headers).json()
        theirs = client.get("/api/v1/invoices", headers=auth_headers(stranger)).json()

        assert [i["id"] for i in mine] == [invoice.id]
        assert theirs == []
        assert client.get(f"/api/v1/invoices/{invoice.id}", headers=auth_headers(stranger)).status_code == 404

    def test_status_filter(self, client, db, invoice, monitor_headers) -> None:
        assert len(client.get("/api/v1/invoices?status=pending", headers=monitor_headers).json()) == 1
        assert client.get("/api/v1/invoices?status=paid", headers=monitor_headers).json() == []
        assert db.query(Invoice).count() == 1
