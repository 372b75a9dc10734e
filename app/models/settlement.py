"""
Modèle PlatformSettlement - Reversements manuels de la plateforme aux gérants.
"""

from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, DateTime, Text, Numeric, ForeignKey,
    Index, CheckConstraint,
)
from sqlalchemy.orm import relationship

from app.database import Base


class PlatformSettlement(Base):
    """
    Virement effectué hors ligne par un opérateur de la plateforme.

    La somme de ces lignes constitue le total_settled d'un gérant.
    """

    __tablename__ = "platform_settlements"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    admin_id = Column(Integer, ForeignKey("admins.id"), nullable=False)

    amount = Column(Numeric(12, 2), nullable=False)
    reference_id = Column(String(100), nullable=True)   # UTR / référence bancaire
    notes = Column(Text, nullable=True)

    recorded_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    admin = relationship("Admin")
    recorded_by = relationship("User")

    __table_args__ = (
        Index("idx_settlement_admin", "admin_id"),
        CheckConstraint("amount > 0", name="positive_settlement"),
    )

    def __repr__(self) -> str:
        return f"<PlatformSettlement(id={self.id}, admin={self.admin_id}, amount={self.amount})>"
