"""
Service de facturation.
Génération des factures (manuelle et mensuelle automatique), grille de frais
selon le mode de paiement et pénalités de retard journalières.
"""

import asyncio
import time
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.config import settings
from app.core.logging import logger, log_billing_run
from app.models.admin import Admin
from app.models.billing_run import BillingRun
from app.models.invoice import Invoice
from app.models.room import Room
from app.models.tenure import Tenure
from app.models.user import User
from app.services.email_service import email_service


class BillingError(Exception):
    """Erreur métier de facturation."""


class DuplicateInvoiceError(BillingError):
    """Une facture existe déjà pour ce séjour et ce mois."""


def _to_decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_rupees(value: Decimal) -> Decimal:
    """Arrondi à la roupie entière, demi vers le haut."""
    return value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def _share(base: Decimal, percent: float) -> Decimal:
    return round_rupees(base * Decimal(str(percent)))


def json_amount(value: Decimal):
    """Montant sérialisable dans la colonne JSON des lignes."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def _percent_label(percent: Decimal) -> str:
    return format(percent.normalize(), "f")


def compute_invoice_lines(
    rent: Any,
    maintenance: Any = 0,
    electricity: Any = 0,
    water: Any = 0,
    mode: str = "PLATFORM",
) -> Tuple[List[Dict[str, Any]], Decimal, Decimal]:
    """
    Calcule les lignes d'une facture mensuelle.

    Args:
        rent: Loyer de la chambre
        maintenance / electricity / water: Charges fixes du gérant
        mode: Mode de paiement du gérant (PLATFORM ou OWN)

    Returns:
        (items, subtotal, total)
    """
    rent = _to_decimal(rent)
    maintenance = _to_decimal(maintenance)
    electricity = _to_decimal(electricity)
    water = _to_decimal(water)

    subtotal = rent + maintenance + electricity + water

    items: List[Dict[str, Any]] = [
        {"description": "Room Rent", "amount": json_amount(rent), "type": "rent"},
    ]
    if maintenance > 0:
        items.append({"description": "Maintenance Charges", "amount": json_amount(maintenance), "type": "service"})
    if electricity > 0:
        items.append({"description": "Electricity Charges", "amount": json_amount(electricity), "type": "utility"})
    if water > 0:
        items.append({"description": "Water Charges", "amount": json_amount(water), "type": "utility"})

    platform_share = _share(subtotal, settings.BILLING_PLATFORM_PERCENT)

    if mode == "OWN":
        fixed_fee = _to_decimal(settings.BILLING_FIXED_FEE)
        # Chaque part est arrondie séparément avant regroupement
        dev_support = (
            _share(subtotal, settings.BILLING_DEV_PERCENT)
            + _share(subtotal, settings.BILLING_SUPPORT_PERCENT)
            + _share(subtotal, settings.BILLING_MAINT_PERCENT)
        )
        platform_label = f"{settings.BILLING_PLATFORM_PERCENT * 100:.1f}"
        fees = [
            ("Platform Service Fee", fixed_fee),
            (f"Platform Share ({platform_label}%)", platform_share),
            ("Dev & Support Charges", dev_support),
        ]
    else:
        fees = [
            ("Payment Gateway Fee", _share(subtotal, settings.BILLING_GATEWAY_PERCENT)),
            ("Platform Service Fee", platform_share),
        ]

    total_fees = Decimal("0")
    for description, amount in fees:
        items.append({"description": description, "amount": json_amount(amount), "type": "fee"})
        total_fees += amount

    return items, subtotal, subtotal + total_fees


def recompute_totals(items: List[Dict[str, Any]]) -> Tuple[Decimal, Decimal]:
    """
    Recalcule (subtotal, total) d'une liste de lignes.
    Le sous-total exclut les frais et pénalités.
    """
    total = sum((_to_decimal(item["amount"]) for item in items), Decimal("0"))
    subtotal = sum(
        (_to_decimal(item["amount"]) for item in items if item.get("type") not in ("fee", "late_fee")),
        Decimal("0"),
    )
    return subtotal, total


def invoice_exists(db: Session, tenure_id: int, month: int, year: int) -> bool:
    return db.query(Invoice.id).filter(
        Invoice.tenure_id == tenure_id,
        Invoice.month == month,
        Invoice.year == year,
    ).first() is not None


def generate_invoice(
    db: Session,
    tenure: Tenure,
    month: Optional[int] = None,
    year: Optional[int] = None,
    today: Optional[date] = None,
) -> Invoice:
    """
    Génère la facture d'un séjour pour un mois donné (sans commit).

    Raises:
        BillingError: séjour inactif ou sans chambre
        DuplicateInvoiceError: facture déjà émise pour ce mois
    """
    today = today or datetime.utcnow().date()
    month = month or today.month
    year = year or today.year

    if tenure.status != "active":
        raise BillingError("Le séjour n'est pas actif")
    if tenure.room is None:
        raise BillingError("Aucune chambre n'est affectée à ce séjour")
    if invoice_exists(db, tenure.id, month, year):
        raise DuplicateInvoiceError(
            f"Une facture existe déjà pour {tenure.full_name} ({month:02d}/{year})"
        )

    admin = tenure.admin
    items, subtotal, total = compute_invoice_lines(
        rent=tenure.room.price,
        maintenance=admin.fixed_maintenance,
        electricity=admin.fixed_electricity,
        water=admin.fixed_water,
        mode=admin.payment_mode,
    )

    invoice = Invoice(
        admin_id=tenure.admin_id,
        tenure_id=tenure.id,
        month=month,
        year=year,
        due_date=today + timedelta(days=settings.INVOICE_DUE_DAYS),
        status="pending",
        items=items,
        subtotal=subtotal,
        total_amount=total,
    )
    db.add(invoice)
    db.flush()
    return invoice


async def send_invoice_notification(invoice: Invoice, tenure: Tenure) -> bool:
    return await email_service.send_invoice_email(
        to_email=tenure.email,
        tenant_name=tenure.full_name,
        hostel_name=tenure.admin.hostel_name,
        period=invoice.period_label,
        items=invoice.items,
        total_amount=invoice.total_amount,
        due_date=invoice.due_date.strftime("%d %b %Y"),
    )


async def _send_all(notifications: List) -> None:
    """Envoie les emails en parallèle; les échecs sont seulement journalisés."""
    if not notifications:
        return
    results = await asyncio.gather(*notifications, return_exceptions=True)
    sent = sum(1 for result in results if result is True)
    for result in results:
        if isinstance(result, Exception):
            logger.error(f"Échec d'envoi d'email de facturation: {result}")
    logger.info(f"Emails de facturation envoyés: {sent}/{len(results)}")


def _start_run(db: Session, job_name: str, today: date, triggered_by: Optional[User]) -> BillingRun:
    run = BillingRun(
        job_name=job_name,
        run_date=today,
        run_type="manual" if triggered_by else "auto",
        status="running",
        triggered_by_id=triggered_by.id if triggered_by else None,
        processed_count=0,
        errors=[],
    )
    db.add(run)
    db.commit()
    db.refresh(run)
    return run


def _finish_run(db: Session, run: BillingRun, processed: int, errors: List[Dict[str, Any]], started: float) -> BillingRun:
    run.status = "failed" if errors else "completed"
    run.processed_count = processed
    run.errors = errors
    run.completed_at = datetime.utcnow()
    run.execution_time_ms = int((time.monotonic() - started) * 1000)
    db.commit()
    db.refresh(run)

    log_billing_run(
        job_name=run.job_name,
        run_id=run.id,
        run_type=run.run_type,
        status=run.status,
        processed=processed,
        errors=len(errors),
        duration_ms=run.execution_time_ms,
    )
    return run


def _admin_of(db: Session, user: Optional[User]) -> Optional[Admin]:
    if user is None:
        return None
    return db.query(Admin).filter(Admin.user_id == user.id).first()


async def run_monthly_billing(
    db: Session,
    triggered_by: Optional[User] = None,
    today: Optional[date] = None,
) -> BillingRun:
    """
    Génère les factures du mois pour les séjours actifs.

    Mode manuel (triggered_by renseigné): uniquement la résidence du gérant,
    quel que soit le jour de facturation. Mode automatique: résidences dont la
    facturation auto est active et dont le jour de cycle est aujourd'hui.
    """
    started = time.monotonic()
    today = today or datetime.utcnow().date()
    run = _start_run(db, "monthly_invoices", today, triggered_by)

    query = (
        db.query(Tenure)
        .join(Room, Tenure.room_id == Room.id)
        .join(Admin, Tenure.admin_id == Admin.id)
        .filter(Tenure.status == "active")
    )
    if triggered_by is not None:
        admin = _admin_of(db, triggered_by)
        query = query.filter(Tenure.admin_id == (admin.id if admin else -1))
    else:
        query = query.filter(
            Admin.auto_billing_enabled.is_(True),
            Admin.billing_cycle_day == today.day,
        )

    tenures = query.order_by(Tenure.id).all()
    logger.info(f"Facturation mensuelle #{run.id}: {len(tenures)} séjours à traiter")

    processed = 0
    errors: List[Dict[str, Any]] = []
    notifications = []

    for tenure in tenures:
        if invoice_exists(db, tenure.id, today.month, today.year):
            logger.debug(f"Facture déjà émise pour {tenure.full_name}, ignoré")
            continue
        try:
            invoice = generate_invoice(db, tenure, today.month, today.year, today)
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Facturation impossible pour {tenure.full_name}: {e}")
            errors.append({"tenure_id": tenure.id, "tenure_name": tenure.full_name, "error": str(e)})
            continue

        processed += 1
        logger.info(f"Facture générée pour {tenure.full_name}: ₹{invoice.total_amount}")
        if tenure.email:
            notifications.append(send_invoice_notification(invoice, tenure))

    await _send_all(notifications)
    return _finish_run(db, run, processed, errors, started)


async def apply_late_fees(
    db: Session,
    triggered_by: Optional[User] = None,
    today: Optional[date] = None,
) -> BillingRun:
    """
    Ajoute la pénalité journalière aux factures en retard.

    Idempotent sur la journée: une facture portant déjà une ligne late_fee
    datée d'aujourd'hui est ignorée.
    """
    started = time.monotonic()
    today = today or datetime.utcnow().date()
    today_str = today.isoformat()
    run = _start_run(db, "late_fees", today, triggered_by)

    query = (
        db.query(Invoice)
        .join(Admin, Invoice.admin_id == Admin.id)
        .filter(
            Invoice.status == "pending",
            Invoice.due_date < today,
            Admin.late_fee_enabled.is_(True),
        )
    )
    if triggered_by is not None:
        admin = _admin_of(db, triggered_by)
        query = query.filter(Invoice.admin_id == (admin.id if admin else -1))

    invoices = query.order_by(Invoice.id).all()
    logger.info(f"Pénalités de retard #{run.id}: {len(invoices)} factures en retard")

    processed = 0
    errors: List[Dict[str, Any]] = []
    notifications = []

    for invoice in invoices:
        percent = _to_decimal(invoice.admin.late_fee_daily_percent)
        if percent <= 0:
            continue

        items = list(invoice.items or [])
        if any(item.get("type") == "late_fee" and item.get("date") == today_str for item in items):
            logger.debug(f"Pénalité déjà appliquée aujourd'hui à la facture {invoice.id}")
            continue

        total = _to_decimal(invoice.total_amount)
        fee = round_rupees(total * percent / 100)
        if fee <= 0:
            continue

        items.append({
            "description": f"Late Fee ({_percent_label(percent)}%) - {today_str}",
            "amount": json_amount(fee),
            "type": "late_fee",
            "date": today_str,
        })
        try:
            # Réaffectation de la liste pour que la colonne JSON soit marquée modifiée
            invoice.items = items
            invoice.total_amount = total + fee
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Pénalité impossible pour la facture {invoice.id}: {e}")
            errors.append({"invoice_id": invoice.id, "error": str(e)})
            continue

        processed += 1
        tenure = invoice.tenure
        logger.info(f"Pénalité de ₹{fee} appliquée à la facture {invoice.id}")
        if tenure is not None and tenure.email:
            notifications.append(
                email_service.send_late_fee_email(
                    to_email=tenure.email,
                    tenant_name=tenure.full_name,
                    period=invoice.period_label,
                    fee_amount=fee,
                    new_total=invoice.total_amount,
                )
            )

    await _send_all(notifications)
    return _finish_run(db, run, processed, errors, started)
