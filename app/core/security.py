"""
Module de sécurité pour Nestify.
Authentification JWT des gérants, locataires et opérateurs de la plateforme,
et hashage des mots de passe.
"""

from datetime import datetime, timedelta
from typing import Any, Optional, Dict, Union

import bcrypt
from jose import JWTError, jwt

from app.config import settings
from app.core.logging import logger


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Vérifie si un mot de passe en clair correspond au hash stocké."""
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            hashed_password.encode("utf-8"),
        )
    except ValueError as e:
        logger.error(f"Hash de mot de passe illisible: {e}")
        return False


def get_password_hash(password: str) -> str:
    """Hash un mot de passe pour le stockage."""
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())
    return hashed.decode("utf-8")


def _encode(claims: Dict[str, Any], expire: datetime) -> str:
    to_encode = dict(claims)
    to_encode.update({"exp": expire, "iat": datetime.utcnow()})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_access_token(
    subject: Union[str, int],
    role: str,
    expires_delta: Optional[timedelta] = None,
    extra_claims: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Crée un token JWT d'accès.

    Args:
        subject: Identifiant de l'utilisateur
        role: Rôle de l'utilisateur (admin, tenant, monitor)
        expires_delta: Durée de validité du token
        extra_claims: Claims supplémentaires à inclure

    Returns:
        Token JWT encodé
    """
    expire = datetime.utcnow() + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    claims = {"sub": str(subject), "role": role, "type": "access"}
    if extra_claims:
        claims.update(extra_claims)

    logger.debug(f"Token d'accès créé pour l'utilisateur {subject} ({role})")
    return _encode(claims, expire)


def create_refresh_token(
    subject: Union[str, int],
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Crée un token JWT de rafraîchissement."""
    expire = datetime.utcnow() + (
        expires_delta or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    )
    return _encode({"sub": str(subject), "type": "refresh"}, expire)


def verify_token(token: str, token_type: str = "access") -> Optional[Dict[str, Any]]:
    """
    Vérifie et décode un token JWT.

    Args:
        token: Token JWT à vérifier
        token_type: Type de token attendu (access ou refresh)

    Returns:
        Payload du token si valide, None sinon
    """
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
        )
    except JWTError as e:
        logger.warning(f"Erreur de vérification du token JWT: {e}")
        return None

    if payload.get("type") != token_type:
        logger.warning(
            f"Type de token invalide: attendu {token_type}, reçu {payload.get('type')}"
        )
        return None

    return payload


def decode_token_unsafe(token: str) -> Optional[Dict[str, Any]]:
    """
    Décode un token sans vérifier l'expiration (journalisation uniquement).
    """
    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            options={"verify_exp": False},
        )
    except JWTError:
        return None


__all__ = [
    "verify_password",
    "get_password_hash",
    "create_access_token",
    "create_refresh_token",
    "verify_token",
    "decode_token_unsafe",
]
