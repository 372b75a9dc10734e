"""
Routes de paiement Razorpay.
Création d'orders, vérification du checkout, webhooks et consultation.
"""

import json
from decimal import Decimal
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.core.logging import logger
from app.models.admin import Admin
from app.models.invoice import Invoice
from app.models.payment import Payment, PaymentStatus
from app.models.tenure import Tenure
from app.models.user import User
from app.schemas.payment import (
    OrderCreate,
    OrderResponse,
    PaymentVerify,
    PaymentResponse,
    PayoutSummary,
)
from app.services.razorpay_service import razorpay_service, PaymentConfigError
from app.services.settlement_service import (
    record_captured_payment,
    record_refund,
    payout_summary,
)
from app.api.deps import (
    get_current_active_user,
    get_current_admin_profile,
    require_payer,
    require_roles,
    require_tenant,
)


router = APIRouter()


def _get_payable_invoice(db: Session, user: User, invoice_id: int) -> Invoice:
    """Facture que l'utilisateur peut régler: la sienne (locataire) ou celle de sa résidence (gérant)."""
    query = db.query(Invoice).filter(Invoice.id == invoice_id)
    if user.role == "tenant":
        query = query.join(Tenure, Invoice.tenure_id == Tenure.id).filter(Tenure.user_id == user.id)
    else:
        admin = db.query(Admin).filter(Admin.user_id == user.id).first()
        query = query.filter(Invoice.admin_id == (admin.id if admin else -1))

    invoice = query.first()
    if not invoice:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Facture non trouvée",
        )
    return invoice


@router.post(
    "/orders",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Créer un order Razorpay pour une facture",
)
async def create_order(
    data: OrderCreate,
    current_user: User = Depends(require_payer),
    db: Session = Depends(get_db),
) -> Any:
    """
    Crée l'order sur le compte Razorpay de la plateforme ou du gérant selon
    le mode de la résidence. La key_id renvoyée doit être utilisée par le checkout.
    """
    invoice = _get_payable_invoice(db, current_user, data.invoice_id)
    if not invoice.is_pending:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"La facture n'est pas en attente de paiement (statut: {invoice.status})",
        )

    try:
        result = await razorpay_service.create_order_for_invoice(invoice, invoice.admin)
    except PaymentConfigError as e:
        logger.warning(f"Configuration de paiement inutilisable pour la facture {invoice.id}: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if not result["success"]:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Erreur Razorpay: {result['error']}",
        )

    invoice.gateway_order_id = result["order_id"]
    invoice.gateway_payment_mode = result["payment_mode"]
    invoice.gateway_order_amount = Decimal(str(result["amount"])) / 100
    db.commit()

    return OrderResponse(
        order_id=result["order_id"],
        amount=result["amount"],
        currency=result["currency"],
        key_id=result["key_id"],
        payment_mode=result["payment_mode"],
        invoice_id=invoice.id,
    )


@router.post(
    "/verify",
    response_model=PaymentResponse,
    summary="Vérifier un paiement du checkout",
)
async def verify_payment(
    data: PaymentVerify,
    current_user: User = Depends(require_payer),
    db: Session = Depends(get_db),
) -> Any:
    """
    Vérifie la signature renvoyée par le checkout puis enregistre le paiement.

    L'order doit être le dernier créé pour la facture: la signature est
    vérifiée avec le secret du compte qui l'a créé, et le paiement enregistré
    avec le mode et le montant de cet order. Si le webhook a déjà enregistré
    ce paiement, la ligne existante est renvoyée.
    """
    invoice = _get_payable_invoice(db, current_user, data.invoice_id)
    if not invoice.gateway_order_id or data.razorpay_order_id != invoice.gateway_order_id:
        logger.warning(
            f"Order {data.razorpay_order_id} présenté pour la facture {invoice.id} "
            f"(order attendu: {invoice.gateway_order_id})"
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cet order ne correspond pas à la facture",
        )

    admin = invoice.admin
    payment_mode = invoice.gateway_payment_mode or "PLATFORM"

    try:
        secret = razorpay_service.checkout_secret_for(admin, payment_mode)
    except PaymentConfigError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if not razorpay_service.verify_checkout_signature(
        data.razorpay_order_id,
        data.razorpay_payment_id,
        data.razorpay_signature,
        secret,
    ):
        logger.warning(f"Signature de checkout invalide pour la facture {invoice.id}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Signature de paiement invalide",
        )

    return record_captured_payment(
        db,
        gateway_payment_id=data.razorpay_payment_id,
        gateway_order_id=data.razorpay_order_id,
        invoice_id=invoice.id,
        amount=invoice.gateway_order_amount or invoice.total_amount,
        payment_mode=payment_mode,
        admin_id=admin.id,
        source="checkout",
    )


def _webhook_entity(payload: dict) -> dict:
    inner = payload.get("payload") or {}
    for key in ("payment", "transfer", "settlement", "refund"):
        entity = (inner.get(key) or {}).get("entity")
        if entity:
            return entity
    return {}


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _refund_signed_by_owner(payment: Payment, signer: str, admin: Optional[Admin]) -> bool:
    """Un remboursement n'est accepté que du compte qui a encaissé le paiement."""
    if signer == "PLATFORM":
        return payment.payment_mode == "PLATFORM"
    return admin is not None and payment.admin_id == admin.id and payment.payment_mode == "OWN"


@router.post(
    "/webhook",
    summary="Webhook Razorpay",
)
async def razorpay_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(None, alias="X-Razorpay-Signature"),
    db: Session = Depends(get_db),
) -> Any:
    """
    Reçoit les événements Razorpay des deux modes.

    La signature est vérifiée avec le secret de la plateforme puis, si l'order
    porte un admin_id, avec les secrets du gérant. Le compte signataire fixe
    le mode du paiement; un gérant ne peut signer que pour ses propres
    factures et paiements. Événements traités: payment.captured et
    refund.processed; les autres sont acquittés.
    """
    raw_body = await request.body()
    try:
        payload = json.loads(raw_body)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Corps de webhook invalide",
        )

    event = payload.get("event")
    entity = _webhook_entity(payload)
    notes = entity.get("notes") or {}
    if not isinstance(notes, dict):
        notes = {}

    admin = None
    admin_id = _to_int(notes.get("admin_id"))
    if admin_id is not None:
        admin = db.query(Admin).filter(Admin.id == admin_id).first()
    elif event == "refund.processed" and entity.get("payment_id"):
        # Les remboursements ne portent pas les notes de l'order
        refunded = db.query(Payment).filter(Payment.gateway_payment_id == str(entity["payment_id"])).first()
        if refunded is not None and refunded.admin_id is not None:
            admin = db.query(Admin).filter(Admin.id == refunded.admin_id).first()

    signer = razorpay_service.webhook_signer(raw_body, x_razorpay_signature, admin)
    if signer is None:
        logger.error(f"Signature de webhook invalide (événement {event})")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Signature invalide",
        )

    logger.info(f"Webhook Razorpay reçu: {event} (signé par le compte {signer})")

    try:
        if event == "payment.captured":
            payment_entity = payload["payload"]["payment"]["entity"]
            invoice_id = _to_int(notes.get("invoice_id"))
            invoice = db.query(Invoice).filter(Invoice.id == invoice_id).first() if invoice_id else None
            if invoice is not None and admin is not None and invoice.admin_id != admin.id:
                logger.error(
                    f"Webhook {payment_entity['id']}: facture {invoice.id} "
                    f"hors de la résidence du gérant {admin.id}"
                )
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="La facture n'appartient pas à ce gérant",
                )
            if notes.get("payment_mode") and notes.get("payment_mode") != signer:
                logger.warning(
                    f"Webhook {payment_entity['id']}: mode {notes.get('payment_mode')} "
                    f"annoncé, compte signataire {signer}"
                )

            record_captured_payment(
                db,
                gateway_payment_id=payment_entity["id"],
                gateway_order_id=payment_entity.get("order_id"),
                invoice_id=invoice.id if invoice else None,
                amount=payment_entity["amount"] / 100,
                payment_mode=signer,
                admin_id=admin.id if admin else None,
                source="webhook",
            )
        elif event == "refund.processed":
            refund_entity = payload["payload"]["refund"]["entity"]
            payment = (
                db.query(Payment)
                .filter(Payment.gateway_payment_id == refund_entity["payment_id"])
                .first()
            )
            if payment is not None and not _refund_signed_by_owner(payment, signer, admin):
                logger.error(
                    f"Remboursement {refund_entity['payment_id']} refusé: "
                    f"paiement {payment.payment_mode} du gérant {payment.admin_id}, "
                    f"webhook signé par le compte {signer}"
                )
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Le paiement n'appartient pas au compte signataire",
                )
            record_refund(db, refund_entity["payment_id"])
        else:
            logger.info(f"Événement ignoré: {event}")
    except (KeyError, TypeError) as e:
        logger.error(f"Webhook {event} incomplet: champ manquant {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Payload de webhook incomplet",
        )

    return {"received": True}


@router.get(
    "",
    response_model=List[PaymentResponse],
    summary="Liste des paiements",
)
async def list_payments(
    status_filter: Optional[PaymentStatus] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(require_roles(["admin", "monitor"])),
    db: Session = Depends(get_db),
) -> Any:
    """Gérant: paiements de sa résidence. Monitor: tous les paiements."""
    query = db.query(Payment)
    if current_user.role == "admin":
        admin = db.query(Admin).filter(Admin.user_id == current_user.id).first()
        query = query.filter(Payment.admin_id == (admin.id if admin else -1))
    if status_filter:
        query = query.filter(Payment.payment_status == status_filter.value)
    return query.order_by(Payment.created_at.desc(), Payment.id.desc()).offset(skip).limit(limit).all()


@router.get(
    "/my",
    response_model=List[PaymentResponse],
    summary="Mes paiements",
)
async def my_payments(
    current_user: User = Depends(require_tenant),
    db: Session = Depends(get_db),
) -> Any:
    return (
        db.query(Payment)
        .join(Tenure, Payment.tenure_id == Tenure.id)
        .filter(Tenure.user_id == current_user.id)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .all()
    )


@router.get(
    "/payouts",
    response_model=PayoutSummary,
    summary="Résumé des reversements",
)
async def get_payouts(
    admin: Admin = Depends(get_current_admin_profile),
    db: Session = Depends(get_db),
) -> Any:
    """Encaissements en mode PLATFORM, montants reversés et solde en attente."""
    return payout_summary(db, admin)


@router.get(
    "/{payment_id}",
    response_model=PaymentResponse,
    summary="Détails d'un paiement",
)
async def get_payment(
    payment_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> Any:
    payment = db.query(Payment).filter(Payment.id == payment_id).first()
    if not payment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Paiement non trouvé",
        )

    allowed = current_user.role == "monitor"
    if current_user.role == "admin":
        admin = db.query(Admin).filter(Admin.user_id == current_user.id).first()
        allowed = admin is not None and payment.admin_id == admin.id
    elif current_user.role == "tenant":
        allowed = payment.tenure is not None and payment.tenure.user_id == current_user.id

    if not allowed:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Accès non autorisé à ce paiement",
        )
    return payment
