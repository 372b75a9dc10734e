"""
Routes de configuration de paiement du gérant.
Choix du mode (PLATFORM ou OWN), clés Razorpay chiffrées, compte lié.
Toute modification est protégée par un code OTP envoyé par email.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.core.crypto import encrypt, mask_key
from app.core.logging import logger
from app.models.admin import Admin
from app.models.user import User
from app.schemas.hostel import (
    PaymentConfigResponse,
    PaymentConfigUpdate,
    VendorOnboardRequest,
)
from app.services.email_service import email_service
from app.services.otp_service import issue_code, consume_code
from app.services.razorpay_service import razorpay_service, PaymentConfigError
from app.api.deps import get_current_admin_profile, require_admin


router = APIRouter()


def _config_response(admin: Admin) -> PaymentConfigResponse:
    return PaymentConfigResponse(
        payment_mode=admin.payment_mode,
        razorpay_key_id=mask_key(admin.razorpay_key_id) if admin.razorpay_key_id else None,
        has_key_secret=bool(admin.razorpay_key_secret),
        has_webhook_secret=bool(admin.razorpay_webhook_secret),
        razorpay_account_id=admin.razorpay_account_id,
        is_vendor_connected=admin.is_vendor_connected,
    )


@router.get(
    "",
    response_model=PaymentConfigResponse,
    summary="Configuration de paiement",
)
async def get_payment_config(
    admin: Admin = Depends(get_current_admin_profile),
) -> Any:
    """Les secrets ne sont jamais renvoyés; la Key ID est masquée."""
    return _config_response(admin)


@router.post(
    "/otp",
    summary="Envoyer le code de sécurité",
)
async def send_config_otp(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Envoie par email le code requis pour modifier la configuration."""
    verification = issue_code(db, current_user, "PAYMENT_CONFIG")
    sent = await email_service.send_security_otp_email(
        to_email=current_user.email,
        user_name=current_user.full_name,
        code=verification.code,
    )
    if not sent:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Impossible d'envoyer le code de vérification",
        )

    response: Dict[str, Any] = {
        "message": "Code de vérification envoyé",
        "expires_in": settings.OTP_EXPIRE_MINUTES * 60,
    }
    # Sans fournisseur d'email, le code est renvoyé uniquement en développement
    if settings.DEBUG and not email_service.is_configured:
        response["debug_otp"] = verification.code
    return response


@router.put(
    "",
    response_model=PaymentConfigResponse,
    summary="Modifier la configuration de paiement",
)
async def update_payment_config(
    data: PaymentConfigUpdate,
    admin: Admin = Depends(get_current_admin_profile),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> Any:
    """
    Change le mode de paiement et/ou les clés Razorpay du gérant.

    - **OWN**: Key ID et Key Secret requis (nouveaux ou déjà enregistrés)
    - Les secrets sont chiffrés (AES-GCM) avant stockage
    """
    if data.payment_mode.value == "OWN":
        if not (data.razorpay_key_id or admin.razorpay_key_id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="La Key ID Razorpay est requise pour le mode OWN",
            )
        if not (data.razorpay_key_secret or admin.razorpay_key_secret):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Le Key Secret Razorpay est requis pour le mode OWN",
            )

    if not consume_code(db, current_user, data.otp, "PAYMENT_CONFIG"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Code de vérification invalide ou expiré",
        )

    admin.payment_mode = data.payment_mode.value
    if data.razorpay_key_id:
        admin.razorpay_key_id = data.razorpay_key_id
    if data.razorpay_key_secret:
        admin.razorpay_key_secret = encrypt(data.razorpay_key_secret)
    if data.razorpay_webhook_secret:
        admin.razorpay_webhook_secret = encrypt(data.razorpay_webhook_secret)
    db.commit()
    db.refresh(admin)

    logger.info(
        f"Configuration de paiement du gérant {admin.id} mise à jour: mode={admin.payment_mode}, "
        f"nouvelle_cle={bool(data.razorpay_key_id)}, nouveau_secret={bool(data.razorpay_key_secret)}"
    )
    return _config_response(admin)


@router.post(
    "/onboard-vendor",
    response_model=PaymentConfigResponse,
    summary="Créer le compte lié Razorpay",
)
async def onboard_vendor(
    data: VendorOnboardRequest,
    admin: Admin = Depends(get_current_admin_profile),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> Any:
    """Crée le compte lié (Route) utilisé pour les reversements en mode PLATFORM."""
    if admin.razorpay_account_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Un compte lié existe déjà pour cette résidence",
        )

    try:
        result = await razorpay_service.onboard_vendor(admin, current_user, data.business_name)
    except PaymentConfigError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if not result["success"]:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=result["error"],
        )

    db.commit()
    db.refresh(admin)
    return _config_response(admin)
