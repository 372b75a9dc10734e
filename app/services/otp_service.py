"""
Service des codes de vérification à usage unique (OTP).
Protège les modifications de la configuration de paiement.
"""

import hmac
import secrets
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.core.logging import logger
from app.models.user import User
from app.models.verification_code import VerificationCode


def generate_code(length: int = 6) -> str:
    """Code numérique aléatoire, sans zéro initial."""
    lower = 10 ** (length - 1)
    return str(lower + secrets.randbelow(9 * lower))


def issue_code(db: Session, user: User, purpose: str = "PAYMENT_CONFIG") -> VerificationCode:
    """
    Crée un code valable OTP_EXPIRE_MINUTES minutes.
    Les codes précédents du même utilisateur pour le même usage sont invalidés.
    """
    db.query(VerificationCode).filter(
        VerificationCode.user_id == user.id,
        VerificationCode.type == purpose,
    ).delete(synchronize_session=False)

    verification = VerificationCode(
        user_id=user.id,
        code=generate_code(),
        type=purpose,
        attempts=0,
        expires_at=datetime.utcnow() + timedelta(minutes=settings.OTP_EXPIRE_MINUTES),
    )
    db.add(verification)
    db.commit()
    db.refresh(verification)

    logger.info(f"Code de vérification {purpose} émis pour l'utilisateur {user.id}")
    return verification


def consume_code(
    db: Session,
    user: User,
    code: Optional[str],
    purpose: str = "PAYMENT_CONFIG",
) -> bool:
    """
    Vérifie et consomme un code.

    Chaque code erroné compte comme un essai sur le code actif de
    l'utilisateur; au-delà de OTP_MAX_ATTEMPTS essais, le code est supprimé
    et un nouveau doit être demandé.

    Returns:
        True si le code est valide (il est alors supprimé), False sinon
    """
    if not code:
        return False

    if settings.DEBUG and settings.OTP_DEV_BYPASS_CODE and code == settings.OTP_DEV_BYPASS_CODE:
        logger.warning(f"Code de contournement utilisé par l'utilisateur {user.id} (DEBUG)")
        return True

    verification = (
        db.query(VerificationCode)
        .filter(
            VerificationCode.user_id == user.id,
            VerificationCode.type == purpose,
            VerificationCode.expires_at > datetime.utcnow(),
        )
        .order_by(VerificationCode.created_at.desc(), VerificationCode.id.desc())
        .first()
    )
    if verification is None:
        logger.warning(f"Aucun code de vérification actif pour l'utilisateur {user.id}")
        return False

    if hmac.compare_digest(verification.code.encode("utf-8"), code.encode("utf-8")):
        db.delete(verification)
        db.commit()
        return True

    verification.attempts = (verification.attempts or 0) + 1
    if verification.attempts_remaining == 0:
        logger.warning(
            f"Code de vérification invalidé pour l'utilisateur {user.id} "
            f"après {verification.attempts} essais"
        )
        db.delete(verification)
    else:
        logger.warning(
            f"Code de vérification erroné pour l'utilisateur {user.id} "
            f"({verification.attempts_remaining} essai(s) restant(s))"
        )
    db.commit()
    return False
