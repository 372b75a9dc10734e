"""
Dépendances FastAPI pour l'injection de dépendances.
Gère l'authentification, les rôles et l'accès à la base de données.
"""

import hmac
from typing import List, Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.core.security import verify_token
from app.core.logging import logger
from app.models.admin import Admin
from app.models.user import User


# Schéma de sécurité Bearer Token
security = HTTPBearer(auto_error=False)


def _user_from_credentials(
    credentials: Optional[HTTPAuthorizationCredentials],
    db: Session,
) -> Optional[User]:
    if not credentials:
        return None
    payload = verify_token(credentials.credentials, token_type="access")
    if payload is None or payload.get("sub") is None:
        return None
    return db.query(User).filter(User.id == int(payload["sub"])).first()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """
    Récupère l'utilisateur courant à partir du token JWT.

    Raises:
        HTTPException: Si le token est invalide ou l'utilisateur non trouvé
    """
    if not credentials:
        logger.warning("Tentative d'accès sans token")

    user = _user_from_credentials(credentials, db)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token d'authentification invalide ou expiré",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.debug(f"Utilisateur authentifié: {user.email}")
    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """Vérifie que l'utilisateur courant est actif."""
    if not current_user.is_active:
        logger.warning(f"Tentative d'accès par utilisateur désactivé: {current_user.email}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Compte utilisateur désactivé",
        )
    return current_user


def require_roles(allowed_roles: List[str]):
    """
    Dépendance pour restreindre l'accès à certains rôles.

    Usage:
        @router.get("/settlements")
        def balances(user: User = Depends(require_roles(["monitor"]))):
            pass
    """
    async def role_checker(
        current_user: User = Depends(get_current_active_user),
    ) -> User:
        if current_user.role not in allowed_roles:
            logger.warning(
                f"Accès refusé pour {current_user.email}: "
                f"rôle {current_user.role} non autorisé"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Accès refusé. Rôles requis: {allowed_roles}",
            )
        return current_user

    return role_checker


# Dépendances prédéfinies pour les rôles courants
require_admin = require_roles(["admin"])
require_tenant = require_roles(["tenant"])
require_monitor = require_roles(["monitor"])
require_payer = require_roles(["tenant", "admin"])


async def get_current_admin_profile(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> Admin:
    """Résidence du gérant connecté."""
    admin = db.query(Admin).filter(Admin.user_id == current_user.id).first()
    if not admin:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Profil de résidence non trouvé",
        )
    return admin


async def get_billing_trigger(
    x_cron_secret: Optional[str] = Header(None, alias="X-Cron-Secret"),
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """
    Déclencheur d'une tâche de facturation.

    Returns:
        None pour le cron (mode automatique), le gérant pour un lancement manuel

    Raises:
        HTTPException: ni secret cron valide ni token gérant
    """
    if x_cron_secret is not None:
        if settings.CRON_SECRET and hmac.compare_digest(
            x_cron_secret.encode("utf-8"), settings.CRON_SECRET.encode("utf-8")
        ):
            return None
        logger.warning("Secret cron invalide")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Secret cron invalide",
        )

    user = _user_from_credentials(credentials, db)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentification requise",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Seul un gérant peut lancer une facturation manuelle",
        )
    return user


__all__ = [
    "get_db",
    "get_current_user",
    "get_current_active_user",
    "require_roles",
    "require_admin",
    "require_tenant",
    "require_monitor",
    "require_payer",
    "get_current_admin_profile",
    "get_billing_trigger",
    "security",
]
