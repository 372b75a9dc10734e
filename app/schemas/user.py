"""
Schémas Pydantic pour les utilisateurs et l'authentification.
Validation des données d'entrée et sérialisation des réponses.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field, field_validator
import re

from app.models.user import UserRole


def _clean_phone(v: str) -> str:
    cleaned = re.sub(r"[\s\-]", "", v)
    if not re.match(r"^\+?[0-9]{8,15}$", cleaned):
        raise ValueError("Format de téléphone invalide. Exemple: +919876543210")
    return cleaned


class UserBase(BaseModel):
    """Schéma de base pour les utilisateurs."""
    email: EmailStr = Field(..., description="Adresse email")
    phone: str = Field(..., min_length=8, max_length=20, description="Numéro de téléphone")
    full_name: str = Field(..., min_length=2, max_length=200, description="Nom complet")

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        """Valide le format du numéro de téléphone."""
        return _clean_phone(v)


class UserCreate(UserBase):
    """Champs communs à l'inscription d'un gérant ou d'un locataire."""
    password: str = Field(..., min_length=8, description="Mot de passe (min 8 caractères)")
    confirm_password: str = Field(..., description="Confirmation du mot de passe")

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        """Valide la complexité du mot de passe."""
        if not re.search(r"[A-Z]", v):
            raise ValueError("Le mot de passe doit contenir au moins une majuscule")
        if not re.search(r"[a-z]", v):
            raise ValueError("Le mot de passe doit contenir au moins une minuscule")
        if not re.search(r"[0-9]", v):
            raise ValueError("Le mot de passe doit contenir au moins un chiffre")
        return v

    @field_validator("confirm_password")
    @classmethod
    def passwords_match(cls, v: str, info) -> str:
        """Vérifie que les mots de passe correspondent."""
        if "password" in info.data and v != info.data["password"]:
            raise ValueError("Les mots de passe ne correspondent pas")
        return v


class AdminRegister(UserCreate):
    """Inscription d'un gérant avec sa résidence."""
    hostel_name: str = Field(..., min_length=2, max_length=200, description="Nom de la résidence")
    hostel_address: Optional[str] = Field(None, max_length=500)


class TenantRegister(UserCreate):
    """Inscription d'un locataire avec le code de la résidence."""
    stay_key: str = Field(..., min_length=4, max_length=20, description="Code de la résidence")

    @field_validator("stay_key")
    @classmethod
    def normalize_stay_key(cls, v: str) -> str:
        return v.strip().upper()


class UserResponse(BaseModel):
    """Schéma de réponse pour un utilisateur."""
    id: int
    email: EmailStr
    phone: str
    full_name: str
    role: UserRole
    is_active: bool
    created_at: datetime
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserLogin(BaseModel):
    """Schéma pour la connexion."""
    email: Optional[EmailStr] = Field(None, description="Email")
    phone: Optional[str] = Field(None, description="Téléphone")
    password: str = Field(..., description="Mot de passe")


class Token(BaseModel):
    """Schéma pour les tokens JWT."""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Durée de validité en secondes")


class RefreshRequest(BaseModel):
    refresh_token: str
