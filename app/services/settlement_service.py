"""
Service de règlement.
Enregistrement des paiements capturés, remboursements et rapprochement des
soldes entre la plateforme et les gérants (mode PLATFORM).
"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.core.logging import logger, log_payment_event
from app.models.admin import Admin
from app.models.invoice import Invoice
from app.models.payment import Payment
from app.models.settlement import PlatformSettlement
from app.models.user import User


# En dessous de ce seuil, un solde est considéré comme soldé (arrondis)
BALANCE_DUST = Decimal("1")


class SettlementError(Exception):
    """Règlement refusé (montant invalide, gérant inconnu...)."""


def _money(value: Any) -> Decimal:
    return Decimal(str(value or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def split_platform_amount(amount: Decimal) -> Dict[str, Decimal]:
    """Commission plateforme et montant à reverser pour un encaissement PLATFORM."""
    fee = _money(amount * Decimal(str(settings.PLATFORM_COMMISSION_PERCENT)))
    return {"platform_fee": fee, "vendor_payout": _money(amount - fee)}


def record_captured_payment(
    db: Session,
    gateway_payment_id: str,
    gateway_order_id: Optional[str],
    invoice_id: Optional[int],
    amount: Any,
    payment_mode: str = "PLATFORM",
    admin_id: Optional[int] = None,
    source: str = "webhook",
) -> Payment:
    """
    Enregistre un paiement capturé et marque la facture payée.

    Idempotent sur gateway_payment_id: le webhook et la vérification du
    checkout peuvent arriver dans n'importe quel ordre, le second appel
    retourne la ligne existante.
    """
    existing = db.query(Payment).filter(Payment.gateway_payment_id == gateway_payment_id).first()
    if existing:
        logger.info(f"Paiement déjà enregistré: {gateway_payment_id} ({source})")
        return existing

    amount = _money(amount)
    invoice = db.query(Invoice).filter(Invoice.id == invoice_id).first() if invoice_id else None
    if invoice is not None and admin_id is None:
        admin_id = invoice.admin_id

    payment = Payment(
        invoice_id=invoice.id if invoice else None,
        admin_id=admin_id,
        tenure_id=invoice.tenure_id if invoice else None,
        gateway_name="razorpay",
        gateway_order_id=gateway_order_id,
        gateway_payment_id=gateway_payment_id,
        order_amount=amount,
        payment_status="SUCCESS",
        payment_mode=payment_mode,
        remarks=f"Captured via {payment_mode} Gateway",
    )
    if payment_mode == "PLATFORM":
        split = split_platform_amount(amount)
        payment.platform_fee = split["platform_fee"]
        payment.vendor_payout = split["vendor_payout"]
        payment.settlement_status = "PENDING"
    else:
        payment.platform_fee = None
        payment.vendor_payout = None
        payment.settlement_status = "COMPLETED"

    if invoice is not None:
        invoice.status = "paid"
        invoice.paid_at = datetime.utcnow()

    db.add(payment)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = db.query(Payment).filter(Payment.gateway_payment_id == gateway_payment_id).first()
        if existing is None:
            raise
        logger.info(f"Paiement enregistré en parallèle: {gateway_payment_id} ({source})")
        return existing

    db.refresh(payment)
    log_payment_event(
        event_type="capture",
        payment_id=gateway_payment_id,
        amount=float(amount),
        status="SUCCESS",
        mode=payment_mode,
        details={"invoice_id": payment.invoice_id, "source": source},
    )
    return payment


def record_refund(db: Session, gateway_payment_id: str) -> Optional[Payment]:
    """Marque un paiement remboursé; un identifiant inconnu est ignoré."""
    payment = db.query(Payment).filter(Payment.gateway_payment_id == gateway_payment_id).first()
    if payment is None:
        logger.warning(f"Remboursement pour un paiement inconnu: {gateway_payment_id}")
        return None

    payment.payment_status = "REFUNDED"
    payment.remarks = "Refund processed via webhook"
    db.commit()
    db.refresh(payment)

    log_payment_event(
        event_type="refund",
        payment_id=gateway_payment_id,
        amount=float(payment.order_amount),
        status="REFUNDED",
        mode=payment.payment_mode,
    )
    return payment


def _collected_by_admin(db: Session) -> Dict[int, Decimal]:
    rows = (
        db.query(Payment.admin_id, func.sum(Payment.vendor_payout))
        .filter(
            Payment.payment_status == "SUCCESS",
            Payment.vendor_payout.isnot(None),
            Payment.admin_id.isnot(None),
        )
        .group_by(Payment.admin_id)
        .all()
    )
    return {admin_id: _money(total) for admin_id, total in rows}


def _settled_by_admin(db: Session) -> Dict[int, Decimal]:
    rows = (
        db.query(PlatformSettlement.admin_id, func.sum(PlatformSettlement.amount))
        .group_by(PlatformSettlement.admin_id)
        .all()
    )
    return {admin_id: _money(total) for admin_id, total in rows}


def admin_balance(db: Session, admin_id: int) -> Dict[str, Decimal]:
    collected = _collected_by_admin(db).get(admin_id, Decimal("0.00"))
    settled = _settled_by_admin(db).get(admin_id, Decimal("0.00"))
    return {
        "total_collected": collected,
        "total_settled": settled,
        "balance_due": collected - settled,
    }


def compute_admin_balances(db: Session) -> List[Dict[str, Any]]:
    """
    Soldes dus par la plateforme à chaque gérant.

    Returns:
        Liste triée par solde décroissant, limitée aux soldes > 1
    """
    collected = _collected_by_admin(db)
    settled = _settled_by_admin(db)
    if not collected:
        return []

    admins = db.query(Admin).filter(Admin.id.in_(list(collected.keys()))).all()
    balances = []
    for admin in admins:
        total_collected = collected.get(admin.id, Decimal("0.00"))
        total_settled = settled.get(admin.id, Decimal("0.00"))
        balance_due = total_collected - total_settled
        if balance_due <= BALANCE_DUST:
            continue
        balances.append({
            "admin_id": admin.id,
            "name": admin.full_name,
            "hostel_name": admin.hostel_name,
            "total_collected": total_collected,
            "total_settled": total_settled,
            "balance_due": balance_due,
        })

    balances.sort(key=lambda row: row["balance_due"], reverse=True)
    return balances


def reconcile_admin_payments(db: Session, admin_id: int) -> int:
    """
    Répartit le total réglé sur les paiements PLATFORM du gérant, du plus
    ancien au plus récent: SETTLED tant que le cumul des reversements est
    couvert, PENDING au-delà.

    Returns:
        Nombre de paiements marqués SETTLED
    """
    total_settled = _settled_by_admin(db).get(admin_id, Decimal("0.00"))
    payments = (
        db.query(Payment)
        .filter(
            Payment.admin_id == admin_id,
            Payment.payment_mode == "PLATFORM",
            Payment.payment_status == "SUCCESS",
            Payment.vendor_payout.isnot(None),
        )
        .order_by(Payment.created_at.asc(), Payment.id.asc())
        .all()
    )

    cumulative = Decimal("0.00")
    settled_count = 0
    for payment in payments:
        cumulative += _money(payment.vendor_payout)
        if cumulative <= total_settled:
            payment.settlement_status = "SETTLED"
            settled_count += 1
        else:
            payment.settlement_status = "PENDING"
    return settled_count


def record_settlement(
    db: Session,
    admin_id: int,
    amount: Any,
    reference_id: Optional[str] = None,
    notes: Optional[str] = None,
    recorded_by: Optional[User] = None,
) -> PlatformSettlement:
    """
    Enregistre un virement manuel de la plateforme vers un gérant.

    Raises:
        SettlementError: gérant inconnu, montant nul ou supérieur au solde dû
    """
    amount = _money(amount)
    if amount <= 0:
        raise SettlementError("Le montant doit être positif")

    admin = db.query(Admin).filter(Admin.id == admin_id).first()
    if admin is None:
        raise SettlementError("Gérant non trouvé")

    balance = admin_balance(db, admin_id)
    if amount > balance["balance_due"]:
        raise SettlementError(
            f"Le montant dépasse le solde dû (₹{balance['balance_due']})"
        )

    settlement = PlatformSettlement(
        admin_id=admin_id,
        amount=amount,
        reference_id=reference_id,
        notes=notes,
        recorded_by_id=recorded_by.id if recorded_by else None,
    )
    db.add(settlement)
    db.flush()

    settled_count = reconcile_admin_payments(db, admin_id)
    db.commit()
    db.refresh(settlement)

    log_payment_event(
        event_type="settlement",
        payment_id=reference_id or f"settlement-{settlement.id}",
        amount=float(amount),
        status="SETTLED",
        mode="PLATFORM",
        details={"admin_id": admin_id, "payments_settled": settled_count},
    )
    return settlement


def payout_summary(db: Session, admin: Admin) -> Dict[str, Any]:
    """Résumé des encaissements PLATFORM et reversements d'un gérant."""
    balance = admin_balance(db, admin.id)
    return {
        "connected": admin.is_vendor_connected,
        "account_id": admin.razorpay_account_id,
        "total_earnings": balance["total_collected"],
        "pending_settlement": balance["balance_due"],
        "paid_out": balance["total_settled"],
    }


def settlement_history(db: Session, admin_id: Optional[int] = None, limit: int = 50) -> List[PlatformSettlement]:
    query = db.query(PlatformSettlement)
    if admin_id is not None:
        query = query.filter(PlatformSettlement.admin_id == admin_id)
    return query.order_by(PlatformSettlement.created_at.desc(), PlatformSettlement.id.desc()).limit(limit).all()


def global_ledger(db: Session, limit: int = 50) -> List[Payment]:
    """Derniers paiements toutes résidences confondues."""
    return (
        db.query(Payment)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .limit(limit)
        .all()
    )
