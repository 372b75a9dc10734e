"""
Routes d'authentification - Inscription des gérants et locataires, connexion, tokens.
"""

import secrets
import string
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.core.security import (
    create_access_token,
    create_refresh_token,
    verify_password,
    get_password_hash,
    verify_token,
)
from app.core.logging import logger
from app.config import settings
from app.models.admin import Admin
from app.models.tenure import Tenure
from app.models.user import User
from app.schemas.user import (
    UserCreate,
    AdminRegister,
    TenantRegister,
    UserResponse,
    UserLogin,
    Token,
    RefreshRequest,
)
from app.api.deps import get_current_active_user


router = APIRouter()

STAY_KEY_ALPHABET = string.ascii_uppercase + string.digits


def generate_stay_key(db: Session, length: int = 6) -> str:
    """Code de résidence unique partagé aux locataires."""
    while True:
        key = "".join(secrets.choice(STAY_KEY_ALPHABET) for _ in range(length))
        if not db.query(Admin.id).filter(Admin.stay_key == key).first():
            return key


def _ensure_unique_identity(db: Session, data: UserCreate) -> None:
    if db.query(User).filter(User.email == data.email).first():
        logger.warning(f"Email déjà utilisé: {data.email}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Un compte existe déjà avec cet email",
        )
    if db.query(User).filter(User.phone == data.phone).first():
        logger.warning(f"Téléphone déjà utilisé: {data.phone}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Un compte existe déjà avec ce numéro de téléphone",
        )


def _token_pair(user: User) -> Token:
    return Token(
        access_token=create_access_token(subject=user.id, role=user.role),
        refresh_token=create_refresh_token(subject=user.id),
        token_type="bearer",
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


@router.post(
    "/register/admin",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Inscription d'un gérant de résidence",
)
async def register_admin(
    data: AdminRegister,
    db: Session = Depends(get_db),
) -> Any:
    """
    Crée le compte du gérant et le profil de sa résidence.
    Un code de résidence (stay key) est généré pour l'inscription des locataires.
    """
    logger.info(f"Inscription gérant: {data.email}")
    _ensure_unique_identity(db, data)

    user = User(
        email=data.email,
        phone=data.phone,
        hashed_password=get_password_hash(data.password),
        full_name=data.full_name,
        role="admin",
        is_active=True,
    )
    db.add(user)
    db.flush()

    admin = Admin(
        user_id=user.id,
        full_name=data.full_name,
        hostel_name=data.hostel_name,
        hostel_address=data.hostel_address,
        phone=data.phone,
        stay_key=generate_stay_key(db),
        payment_mode="PLATFORM",
    )
    db.add(admin)
    db.commit()
    db.refresh(user)

    logger.info(f"Nouveau gérant créé: {user.email} (résidence {admin.hostel_name})")
    return user


@router.post(
    "/register/tenant",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Inscription d'un locataire",
)
async def register_tenant(
    data: TenantRegister,
    db: Session = Depends(get_db),
) -> Any:
    """
    Crée le compte du locataire et une demande de séjour en attente
    d'approbation dans la résidence désignée par le stay key.
    """
    logger.info(f"Inscription locataire: {data.email}")

    admin = db.query(Admin).filter(Admin.stay_key == data.stay_key).first()
    if not admin:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Code de résidence invalide",
        )
    _ensure_unique_identity(db, data)

    user = User(
        email=data.email,
        phone=data.phone,
        hashed_password=get_password_hash(data.password),
        full_name=data.full_name,
        role="tenant",
        is_active=True,
    )
    db.add(user)
    db.flush()

    db.add(Tenure(
        admin_id=admin.id,
        user_id=user.id,
        full_name=data.full_name,
        email=data.email,
        phone=data.phone,
        status="pending",
    ))
    db.commit()
    db.refresh(user)

    logger.info(f"Nouveau locataire {user.email} en attente chez {admin.hostel_name}")
    return user


@router.post(
    "/login",
    response_model=Token,
    summary="Connexion utilisateur",
)
async def login(
    credentials: UserLogin,
    db: Session = Depends(get_db),
) -> Any:
    """
    Authentifie un utilisateur et retourne les tokens JWT.
    Connexion par email ou téléphone.
    """
    identifier = credentials.email or credentials.phone
    logger.info(f"Tentative de connexion: {identifier}")

    user = None
    if credentials.email:
        user = db.query(User).filter(User.email == credentials.email).first()
    elif credentials.phone:
        user = db.query(User).filter(User.phone == credentials.phone).first()

    if not user or not verify_password(credentials.password, user.hashed_password):
        logger.warning(f"Échec de connexion: {identifier}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Email/téléphone ou mot de passe incorrect",
        )

    if not user.is_active:
        logger.warning(f"Compte désactivé: {user.email}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Votre compte a été désactivé",
        )

    user.last_login = datetime.utcnow()
    db.commit()

    logger.info(f"Connexion réussie: {user.email}")
    return _token_pair(user)


@router.post(
    "/refresh",
    response_model=Token,
    summary="Rafraîchir le token d'accès",
)
async def refresh_token(
    data: RefreshRequest,
    db: Session = Depends(get_db),
) -> Any:
    """Génère une nouvelle paire de tokens à partir du refresh token."""
    payload = verify_token(data.refresh_token, token_type="refresh")
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Refresh token invalide ou expiré",
        )

    user = db.query(User).filter(User.id == int(payload.get("sub"))).first()
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Utilisateur non trouvé ou désactivé",
        )

    logger.info(f"Token rafraîchi pour: {user.email}")
    return _token_pair(user)


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Profil de l'utilisateur connecté",
)
async def get_me(
    current_user: User = Depends(get_current_active_user),
) -> Any:
    return current_user
