"""
Routes des factures.
Le gérant émet et gère les factures de sa résidence; le locataire consulte les siennes.
"""

from datetime import datetime
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.core.logging import logger
from app.models.admin import Admin
from app.models.invoice import Invoice, InvoiceStatus
from app.models.tenure import Tenure
from app.models.user import User
from app.schemas.invoice import InvoiceCreate, InvoiceUpdate, InvoiceResponse
from app.services.billing_service import (
    BillingError,
    DuplicateInvoiceError,
    generate_invoice,
    json_amount,
    recompute_totals,
    send_invoice_notification,
)
from app.api.deps import get_current_active_user, get_current_admin_profile


router = APIRouter()


def _visible_invoices(db: Session, user: User):
    """Factures visibles par l'utilisateur selon son rôle."""
    query = db.query(Invoice)
    if user.role == "admin":
        admin = db.query(Admin).filter(Admin.user_id == user.id).first()
        return query.filter(Invoice.admin_id == (admin.id if admin else -1))
    if user.role == "tenant":
        return query.join(Tenure, Invoice.tenure_id == Tenure.id).filter(Tenure.user_id == user.id)
    return query


def _get_admin_invoice(db: Session, admin: Admin, invoice_id: int) -> Invoice:
    invoice = db.query(Invoice).filter(
        Invoice.id == invoice_id,
        Invoice.admin_id == admin.id,
    ).first()
    if not invoice:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Facture non trouvée",
        )
    return invoice


@router.post(
    "",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Générer une facture pour un séjour",
)
async def create_invoice(
    data: InvoiceCreate,
    admin: Admin = Depends(get_current_admin_profile),
    db: Session = Depends(get_db),
) -> Any:
    """
    Génère la facture du mois (courant par défaut) avec la grille de frais
    correspondant au mode de paiement de la résidence, puis prévient le locataire.
    """
    tenure = db.query(Tenure).filter(
        Tenure.id == data.tenure_id,
        Tenure.admin_id == admin.id,
    ).first()
    if not tenure:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Séjour non trouvé",
        )

    try:
        invoice = generate_invoice(db, tenure, data.month, data.year)
        db.commit()
    except DuplicateInvoiceError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except BillingError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    db.refresh(invoice)
    logger.info(f"Facture {invoice.id} émise manuellement pour {tenure.full_name}")

    if tenure.email:
        await send_invoice_notification(invoice, tenure)
    return invoice


@router.get(
    "",
    response_model=List[InvoiceResponse],
    summary="Liste des factures",
)
async def list_invoices(
    status_filter: Optional[InvoiceStatus] = Query(None, alias="status"),
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> Any:
    query = _visible_invoices(db, current_user)
    if status_filter:
        query = query.filter(Invoice.status == status_filter.value)
    if month:
        query = query.filter(Invoice.month == month)
    if year:
        query = query.filter(Invoice.year == year)
    return query.order_by(Invoice.year.desc(), Invoice.month.desc(), Invoice.id.desc()).offset(skip).limit(limit).all()


@router.get(
    "/{invoice_id}",
    response_model=InvoiceResponse,
    summary="Détails d'une facture",
)
async def get_invoice(
    invoice_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> Any:
    invoice = _visible_invoices(db, current_user).filter(Invoice.id == invoice_id).first()
    if not invoice:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Facture non trouvée",
        )
    return invoice


@router.patch(
    "/{invoice_id}",
    response_model=InvoiceResponse,
    summary="Modifier les lignes d'une facture",
)
async def update_invoice(
    invoice_id: int,
    data: InvoiceUpdate,
    admin: Admin = Depends(get_current_admin_profile),
    db: Session = Depends(get_db),
) -> Any:
    """Remplace les lignes d'une facture en attente; sous-total et total sont recalculés."""
    invoice = _get_admin_invoice(db, admin, invoice_id)
    if not invoice.is_pending:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Seule une facture en attente peut être modifiée",
        )

    items = []
    for item in data.items:
        row = {"description": item.description, "amount": json_amount(item.amount), "type": item.type}
        if item.date:
            row["date"] = item.date
        items.append(row)

    subtotal, total = recompute_totals(items)
    if total < 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Le total de la facture ne peut pas être négatif",
        )

    invoice.items = items
    invoice.subtotal = subtotal
    invoice.total_amount = total
    db.commit()
    db.refresh(invoice)

    logger.info(f"Facture {invoice.id} modifiée: total ₹{invoice.total_amount}")
    return invoice


@router.post(
    "/{invoice_id}/cancel",
    response_model=InvoiceResponse,
    summary="Annuler une facture",
)
async def cancel_invoice(
    invoice_id: int,
    admin: Admin = Depends(get_current_admin_profile),
    db: Session = Depends(get_db),
) -> Any:
    invoice = _get_admin_invoice(db, admin, invoice_id)
    if not invoice.is_pending:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Seule une facture en attente peut être annulée",
        )

    invoice.status = "cancelled"
    invoice.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(invoice)

    logger.info(f"Facture {invoice.id} annulée par le gérant {admin.id}")
    return invoice
