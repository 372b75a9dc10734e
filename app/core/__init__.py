"""
Module core - Fonctionnalités centrales de l'application.
Contient la sécurité, le chiffrement des identifiants et le logging.
"""

from .security import (
    create_access_token,
    create_refresh_token,
    verify_password,
    get_password_hash,
    verify_token,
)
from .crypto import encrypt, decrypt, CredentialDecryptionError
from .logging import setup_logging, logger

__all__ = [
    "create_access_token",
    "create_refresh_token",
    "verify_password",
    "get_password_hash",
    "verify_token",
    "encrypt",
    "decrypt",
    "CredentialDecryptionError",
    "setup_logging",
    "logger",
]
