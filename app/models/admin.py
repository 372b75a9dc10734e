"""
Modèle Admin - Profil du gérant et configuration de sa résidence.
Porte le mode de paiement (PLATFORM ou OWN), les identifiants Razorpay
chiffrés et la configuration de facturation.
"""

import enum
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text,
    Numeric, ForeignKey, Enum, Index, CheckConstraint,
)
from sqlalchemy.orm import relationship

from app.database import Base


class PaymentMode(str, enum.Enum):
    """Compte de passerelle utilisé pour encaisser les loyers."""
    PLATFORM = "PLATFORM"   # Compte Razorpay de Nestify, reversement manuel
    OWN = "OWN"             # Compte Razorpay du gérant


class Admin(Base):
    """
    Modèle représentant un gérant de résidence.

    Attributes:
        user_id: Compte de connexion du gérant
        hostel_name: Nom de la résidence
        stay_key: Code partagé aux locataires pour rejoindre la résidence
        payment_mode: PLATFORM ou OWN
        razorpay_key_id: Key ID du compte propre (mode OWN)
        razorpay_key_secret: Key secret chiffré (mode OWN)
        razorpay_webhook_secret: Secret de webhook chiffré (mode OWN)
        razorpay_account_id: Compte lié (Route) créé à l'onboarding
        billing_cycle_day: Jour du mois de la facturation automatique
        auto_billing_enabled: Facturation mensuelle automatique active
        fixed_maintenance / fixed_electricity / fixed_water: Charges fixes mensuelles
        late_fee_enabled: Pénalités de retard actives
        late_fee_daily_percent: Pénalité journalière (% du total)
    """

    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)

    # Résidence
    full_name = Column(String(200), nullable=False)
    hostel_name = Column(String(200), nullable=False)
    hostel_address = Column(Text, nullable=True)
    phone = Column(String(20), nullable=True)
    stay_key = Column(String(20), unique=True, index=True, nullable=False)

    # Passerelle de paiement
    payment_mode = Column(
        Enum("PLATFORM", "OWN", name="paymentmode"),
        default="PLATFORM",
        nullable=False,
    )
    razorpay_key_id = Column(String(100), nullable=True)
    razorpay_key_secret = Column(Text, nullable=True)
    razorpay_webhook_secret = Column(Text, nullable=True)
    razorpay_account_id = Column(String(100), nullable=True)

    # Facturation
    billing_cycle_day = Column(Integer, default=1, nullable=False)
    auto_billing_enabled = Column(Boolean, default=False, nullable=False)
    fixed_maintenance = Column(Numeric(10, 2), default=0, nullable=False)
    fixed_electricity = Column(Numeric(10, 2), default=0, nullable=False)
    fixed_water = Column(Numeric(10, 2), default=0, nullable=False)
    late_fee_enabled = Column(Boolean, default=False, nullable=False)
    late_fee_daily_percent = Column(Numeric(5, 2), default=0, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relations
    user = relationship("User", back_populates="admin_profile")
    rooms = relationship("Room", back_populates="admin")
    tenures = relationship("Tenure", back_populates="admin")

    __table_args__ = (
        Index("idx_admin_billing", "auto_billing_enabled", "billing_cycle_day"),
        CheckConstraint(
            "billing_cycle_day >= 1 AND billing_cycle_day <= 28",
            name="valid_billing_cycle_day",
        ),
        CheckConstraint("late_fee_daily_percent >= 0", name="non_negative_late_fee"),
    )

    def __repr__(self) -> str:
        return f"<Admin(id={self.id}, hostel='{self.hostel_name}', mode={self.payment_mode})>"

    @property
    def uses_own_gateway(self) -> bool:
        return self.payment_mode == "OWN"

    @property
    def has_own_keys(self) -> bool:
        return bool(self.razorpay_key_id and self.razorpay_key_secret)

    @property
    def is_vendor_connected(self) -> bool:
        """Compte lié Razorpay créé (reversements en mode PLATFORM)."""
        return bool(self.razorpay_account_id)
