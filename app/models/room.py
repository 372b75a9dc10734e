"""
Modèle Room - Chambres d'une résidence et loyer mensuel.
"""

from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, DateTime, Numeric, ForeignKey,
    UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship

from app.database import Base


class Room(Base):
    """Chambre louée à un ou plusieurs locataires."""

    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    admin_id = Column(Integer, ForeignKey("admins.id"), nullable=False, index=True)

    room_number = Column(String(20), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    capacity = Column(Integer, default=1, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    admin = relationship("Admin", back_populates="rooms")
    tenures = relationship("Tenure", back_populates="room")

    __table_args__ = (
        UniqueConstraint("admin_id", "room_number", name="unique_room_number"),
        CheckConstraint("price >= 0", name="non_negative_rent"),
        CheckConstraint("capacity > 0", name="positive_capacity"),
    )

    def __repr__(self) -> str:
        return f"<Room(id={self.id}, number='{self.room_number}', price={self.price})>"
