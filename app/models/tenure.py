"""
Modèle Tenure - Séjour d'un locataire dans une résidence.
"""

import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum, Index
from sqlalchemy.orm import relationship

from app.database import Base


class TenureStatus(str, enum.Enum):
    """Statuts d'un séjour."""
    PENDING = "pending"     # Demande en attente d'approbation du gérant
    ACTIVE = "active"       # Locataire présent, facturé chaque mois
    INACTIVE = "inactive"   # Séjour terminé


class Tenure(Base):
    """
    Séjour d'un locataire.

    Les coordonnées sont copiées du compte pour que les factures et emails
    restent lisibles même si le compte est désactivé.
    """

    __tablename__ = "tenures"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    admin_id = Column(Integer, ForeignKey("admins.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=True)

    full_name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True)

    status = Column(
        Enum("pending", "active", "inactive", name="tenurestatus"),
        default="pending",
        nullable=False,
    )

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relations
    admin = relationship("Admin", back_populates="tenures")
    user = relationship("User", back_populates="tenures")
    room = relationship("Room", back_populates="tenures")
    invoices = relationship("Invoice", back_populates="tenure")

    __table_args__ = (
        Index("idx_tenure_admin_status", "admin_id", "status"),
        Index("idx_tenure_user", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<Tenure(id={self.id}, name='{self.full_name}', status={self.status})>"

    @property
    def is_billable(self) -> bool:
        return self.status == "active" and self.room is not None
