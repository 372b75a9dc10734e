"""
Tests du service de facturation.
"""

from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from app.models import BillingRun, Invoice
from app.services.billing_service import (
    BillingError,
    DuplicateInvoiceError,
    apply_late_fees,
    compute_invoice_lines,
    email_service,
    generate_invoice,
    recompute_totals,
    run_monthly_billing,
)
from tests.conftest import BILLING_DAY


def _by_description(items):
    return {item["description"]: item for item in items}


class TestInvoiceLines:
    def test_platform_mode_fee_schedule(self) -> None:
        items, subtotal, total = compute_invoice_lines(rent=10000, mode="PLATFORM")

        assert subtotal == Decimal("10000")
        assert total == Decimal("10075")
        lines = _by_description(items)
        assert lines["Room Rent"] == {"description": "Room Rent", "amount": 10000, "type": "rent"}
        assert lines["Payment Gateway Fee"]["amount"] == 15
        assert lines["Platform Service Fee"]["amount"] == 60
        assert len(items) == 3

    def test_own_mode_fee_schedule(self) -> None:
        items, subtotal, total = compute_invoice_lines(rent=10000, mode="OWN")

        assert subtotal == Decimal("10000")
        assert total == Decimal("10120")
        lines = _by_description(items)
        assert lines["Platform Service Fee"]["amount"] == 20
        assert lines["Platform Share (0.6%)"]["amount"] == 60
        assert lines["Dev & Support Charges"]["amount"] == 40
        assert "Payment Gateway Fee" not in lines

    def test_fixed_charges_are_listed_and_billed(self) -> None:
        items, subtotal, total = compute_invoice_lines(
            rent=10000, maintenance=500, electricity=300, water=0, mode="PLATFORM",
        )

        lines = _by_description(items)
        assert lines["Maintenance Charges"]["type"] == "service"
        assert lines["Electricity Charges"]["type"] == "utility"
        assert "Water Charges" not in lines
        assert subtotal == Decimal("10800")
        # 16.2 -> 16 et 64.8 -> 65
        assert lines["Payment Gateway Fee"]["amount"] == 16
        assert lines["Platform Service Fee"]["amount"] == 65
        assert total == Decimal("10881")

    def test_fees_round_half_up(self) -> None:
        # 0.15% de 3000 = 4.5 -> 5 ; 0.6% de 3000 = 18
        items, _, total = compute_invoice_lines(rent=3000, mode="PLATFORM")

        lines = _by_description(items)
        assert lines["Payment Gateway Fee"]["amount"] == 5
        assert total == Decimal("3023")

    def test_recompute_totals_excludes_fees_from_subtotal(self) -> None:
        items = [
            {"description": "Room Rent", "amount": 8000, "type": "rent"},
            {"description": "Laundry", "amount": 250.5, "type": "other"},
            {"description": "Platform Service Fee", "amount": 48, "type": "fee"},
            {"description": "Late Fee (2%) - 2026-03-20", "amount": 166, "type": "late_fee"},
        ]

        subtotal, total = recompute_totals(items)

        assert subtotal == Decimal("8250.5")
        assert total == Decimal("8464.5")


class TestGenerateInvoice:
    def test_generates_pending_invoice_for_the_month(self, db, tenure) -> None:
        invoice = generate_invoice(db, tenure, today=BILLING_DAY)
        db.commit()

        assert invoice.month == 3
        assert invoice.year == 2026
        assert invoice.status == "pending"
        assert invoice.due_date == BILLING_DAY + timedelta(days=10)
        assert Decimal(str(invoice.total_amount)) == Decimal("10075")
        assert invoice.admin_id == tenure.admin_id

    def test_uses_own_schedule_when_hostel_collects_directly(self, db, hostel, tenure) -> None:
        hostel.payment_mode = "OWN"
        db.commit()

        invoice = generate_invoice(db, tenure, today=BILLING_DAY)

        assert Decimal(str(invoice.total_amount)) == Decimal("10120")

    def test_second_invoice_same_month_is_refused(self, db, tenure) -> None:
        generate_invoice(db, tenure, today=BILLING_DAY)
        db.commit()

        with pytest.raises(DuplicateInvoiceError):
            generate_invoice(db, tenure, today=BILLING_DAY)

        # Un autre mois reste possible
        generate_invoice(db, tenure, month=4, year=2026, today=BILLING_DAY)

    def test_inactive_tenure_is_refused(self, db, tenure) -> None:
        tenure.status = "inactive"
        db.commit()

        with pytest.raises(BillingError, match="pas actif"):
            generate_invoice(db, tenure, today=BILLING_DAY)

    def test_tenure_without_room_is_refused(self, db, tenure) -> None:
        tenure.room_id = None
        db.commit()
        db.refresh(tenure)

        with pytest.raises(BillingError, match="chambre"):
            generate_invoice(db, tenure, today=BILLING_DAY)


class TestMonthlyBilling:
    async def test_auto_run_bills_hostels_due_today(self, db, hostel, tenure) -> None:
        hostel.auto_billing_enabled = True
        db.commit()

        with patch.object(email_service, "send_invoice_email", AsyncMock(return_value=True)) as send:
            run = await run_monthly_billing(db, today=BILLING_DAY)

        assert run.run_type == "auto"
        assert run.status == "completed"
        assert run.processed_count == 1
        assert run.errors == []
        assert run.completed_at is not None
        send.assert_awaited_once()
        assert send.await_args.kwargs["to_email"] == tenure.email
        assert send.await_args.kwargs["period"] == "March 2026"

    async def test_auto_run_skips_other_cycle_days(self, db, hostel, tenure) -> None:
        hostel.auto_billing_enabled = True
        db.commit()

        run = await run_monthly_billing(db, today=BILLING_DAY + timedelta(days=1))

        assert run.processed_count == 0
        assert db.query(Invoice).count() == 0

    async def test_auto_run_skips_hostels_without_auto_billing(self, db, hostel, tenure) -> None:
        run = await run_monthly_billing(db, today=BILLING_DAY)

        assert run.processed_count == 0

    async def test_manual_run_ignores_cycle_day(self, db, admin_user, hostel, tenure) -> None:
        run = await run_monthly_billing(db, triggered_by=admin_user, today=date(2026, 3, 17))

        assert run.run_type == "manual"
        assert run.triggered_by_id == admin_user.id
        assert run.processed_count == 1

    async def test_rerun_does_not_duplicate_invoices(self, db, admin_user, hostel, tenure) -> None:
        await run_monthly_billing(db, triggered_by=admin_user, today=BILLING_DAY)
        second = await run_monthly_billing(db, triggered_by=admin_user, today=BILLING_DAY)

        assert second.processed_count == 0
        assert second.status == "completed"
        assert db.query(Invoice).count() == 1
        assert db.query(BillingRun).count() == 2

    async def test_pending_tenures_are_not_billed(self, db, admin_user, hostel, tenure) -> None:
        tenure.status = "pending"
        db.commit()

        run = await run_monthly_billing(db, triggered_by=admin_user, today=BILLING_DAY)

        assert run.processed_count == 0


class TestLateFees:
    @pytest.fixture
    def overdue_invoice(self, db, hostel, invoice):
        hostel.late_fee_enabled = True
        hostel.late_fee_daily_percent = Decimal("2")
        db.commit()
        return invoice

    async def test_applies_daily_fee_once_per_day(self, db, overdue_invoice) -> None:
        today = date(2026, 3, 20)

        first = await apply_late_fees(db, today=today)
        second = await apply_late_fees(db, today=today)

        db.refresh(overdue_invoice)
        assert first.processed_count == 1
        assert second.processed_count == 0
        # 2% de 10075 = 201.5 -> 202
        assert Decimal(str(overdue_invoice.total_amount)) == Decimal("10277")
        late_fees = [item for item in overdue_invoice.items if item["type"] == "late_fee"]
        assert late_fees == [{
            "description": "Late Fee (2%) - 2026-03-20",
            "amount": 202,
            "type": "late_fee",
            "date": "2026-03-20",
        }]

    async def test_fee_compounds_on_following_days(self, db, overdue_invoice) -> None:
        await apply_late_fees(db, today=date(2026, 3, 20))
        await apply_late_fees(db, today=date(2026, 3, 21))

        db.refresh(overdue_invoice)
        # 2% de 10277 = 205.54 -> 206
        assert Decimal(str(overdue_invoice.total_amount)) == Decimal("10483")
        assert len([i for i in overdue_invoice.items if i["type"] == "late_fee"]) == 2

    async def test_invoice_not_yet_due_is_untouched(self, db, overdue_invoice) -> None:
        run = await apply_late_fees(db, today=overdue_invoice.due_date)

        assert run.processed_count == 0

    async def test_paid_invoices_are_untouched(self, db, overdue_invoice) -> None:
        overdue_invoice.status = "paid"
        db.commit()

        run = await apply_late_fees(db, today=date(2026, 3, 20))

        assert run.processed_count == 0

    async def test_disabled_late_fees(self, db, hostel, overdue_invoice) -> None:
        hostel.late_fee_enabled = False
        db.commit()

        run = await apply_late_fees(db, today=date(2026, 3, 20))

        assert run.processed_count == 0

    async def test_sends_late_fee_email(self, db, overdue_invoice) -> None:
        with patch.object(email_service, "send_late_fee_email", AsyncMock(return_value=True)) as send:
            await apply_late_fees(db, today=date(2026, 3, 20))

        send.assert_awaited_once()
        assert send.await_args.kwargs["fee_amount"] == Decimal("202")

    async def test_manual_run_only_touches_own_hostel(self, db, monitor_user, overdue_invoice) -> None:
        # Un utilisateur sans résidence ne voit aucune facture
        run = await apply_late_fees(db, triggered_by=monitor_user, today=date(2026, 3, 20))

        assert run.run_type == "manual"
        assert run.processed_count == 0
