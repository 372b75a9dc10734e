"""
Modèle User - Comptes d'accès à la plateforme Nestify.
Un compte est soit un gérant de résidence, soit un locataire, soit un
opérateur de la plateforme (monitor).
"""

import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, Index
from sqlalchemy.orm import relationship

from app.database import Base


class UserRole(str, enum.Enum):
    """Rôles disponibles pour les utilisateurs."""
    ADMIN = "admin"       # Gérant d'une résidence (hostel / PG)
    TENANT = "tenant"     # Locataire
    MONITOR = "monitor"   # Opérateur de la plateforme (règlements)


class User(Base):
    """
    Modèle représentant un compte utilisateur.

    Attributes:
        id: Identifiant unique
        email: Adresse email (unique)
        phone: Numéro de téléphone (unique)
        hashed_password: Mot de passe hashé
        full_name: Nom complet
        role: admin, tenant ou monitor
        is_active: Compte actif ou non
        last_login: Date de dernière connexion
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(20), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    full_name = Column(String(200), nullable=False)

    role = Column(
        Enum("admin", "tenant", "monitor", name="userrole"),
        default="tenant",
        nullable=False,
    )
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = Column(DateTime, nullable=True)

    # Relations
    admin_profile = relationship("Admin", back_populates="user", uselist=False)
    tenures = relationship("Tenure", back_populates="user")

    __table_args__ = (
        Index("idx_user_email_active", "email", "is_active"),
        Index("idx_user_role", "role"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role={self.role})>"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_monitor(self) -> bool:
        return self.role == "monitor"
