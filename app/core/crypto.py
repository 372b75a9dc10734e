"""
Chiffrement au repos des identifiants de passerelle des gérants.

AES-256-GCM avec une clé dérivée par PBKDF2-HMAC-SHA256 (sel fixe, clé
déterministe) à partir de ENCRYPTION_KEY. Format stocké: "ivhex:cipherhex",
le tag GCM étant concaténé au texte chiffré.
"""

import os
from functools import lru_cache

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from app.config import settings


KDF_SALT = b"nestify_salt"
KDF_ITERATIONS = 100000
IV_LENGTH = 12


class CredentialDecryptionError(ValueError):
    """Valeur chiffrée illisible ou falsifiée."""


@lru_cache(maxsize=4)
def _derive_key(master_key: str) -> bytes:
    # Seuls les 32 premiers caractères de la clé maître sont utilisés
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=KDF_SALT,
        iterations=KDF_ITERATIONS,
    )
    return kdf.derive(master_key[:32].encode("utf-8"))


def encrypt(plaintext: str, master_key: str = None) -> str:
    """
    Chiffre une chaîne pour le stockage en base.

    Args:
        plaintext: Valeur en clair (secret Razorpay, secret de webhook)
        master_key: Clé maître (défaut: settings.ENCRYPTION_KEY)

    Returns:
        Chaîne "ivhex:cipherhex"
    """
    key = _derive_key(master_key or settings.ENCRYPTION_KEY)
    iv = os.urandom(IV_LENGTH)
    ciphertext = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
    return f"{iv.hex()}:{ciphertext.hex()}"


def decrypt(token: str, master_key: str = None) -> str:
    """
    Déchiffre une valeur produite par encrypt().

    Raises:
        CredentialDecryptionError: format invalide ou authentification GCM échouée
    """
    iv_hex, _, cipher_hex = (token or "").partition(":")
    if not iv_hex or not cipher_hex:
        raise CredentialDecryptionError("Invalid encrypted format")

    try:
        iv = bytes.fromhex(iv_hex)
        ciphertext = bytes.fromhex(cipher_hex)
    except ValueError as e:
        raise CredentialDecryptionError("Invalid encrypted format") from e

    key = _derive_key(master_key or settings.ENCRYPTION_KEY)
    try:
        plaintext = AESGCM(key).decrypt(iv, ciphertext, None)
    except (InvalidTag, ValueError) as e:
        raise CredentialDecryptionError("Unable to decrypt value") from e

    return plaintext.decode("utf-8")


def mask_key(value: str, visible: int = 4) -> str:
    """Masque un identifiant pour l'affichage (rzp_live_****abcd)."""
    if not value:
        return ""
    if len(value) <= visible:
        return "*" * len(value)
    prefix = ""
    for candidate in ("rzp_live_", "rzp_test_"):
        if value.startswith(candidate):
            prefix = candidate
            break
    return f"{prefix}****{value[-visible:]}"


__all__ = [
    "CredentialDecryptionError",
    "encrypt",
    "decrypt",
    "mask_key",
]
