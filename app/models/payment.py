"""
Modèle Payment - Paiements capturés par la passerelle Razorpay.
Chaque ligne porte le mode d'encaissement et l'état du reversement au gérant.
"""

import enum
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, DateTime, Text, Numeric, ForeignKey,
    Enum, Index, CheckConstraint,
)
from sqlalchemy.orm import relationship

from app.database import Base


class PaymentStatus(str, enum.Enum):
    """Statuts d'un paiement passerelle."""
    SUCCESS = "SUCCESS"       # Capturé
    FAILED = "FAILED"         # Échoué
    REFUNDED = "REFUNDED"     # Remboursé


class SettlementStatus(str, enum.Enum):
    """État du reversement des fonds au gérant."""
    PENDING = "PENDING"           # Fonds détenus par la plateforme, à reverser
    COMPLETED = "COMPLETED"       # Encaissé directement par le gérant (mode OWN)
    SETTLED = "SETTLED"           # Couvert par un règlement manuel de la plateforme
    TRANSFERRED = "TRANSFERRED"   # Transfert Route effectué


class Payment(Base):
    """
    Paiement capturé pour une facture.

    Attributes:
        gateway_order_id: Order Razorpay (order_xxx)
        gateway_payment_id: Payment Razorpay (pay_xxx), unique
        order_amount: Montant capturé en roupies
        payment_mode: PLATFORM ou OWN au moment de la capture
        platform_fee: Commission de la plateforme (PLATFORM uniquement)
        vendor_payout: Montant dû au gérant (PLATFORM uniquement)
        settlement_status: État du reversement
    """

    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Références
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=True)
    admin_id = Column(Integer, ForeignKey("admins.id"), nullable=True)
    tenure_id = Column(Integer, ForeignKey("tenures.id"), nullable=True)

    # Passerelle
    gateway_name = Column(String(50), default="razorpay", nullable=False)
    gateway_order_id = Column(String(100), nullable=True, index=True)
    gateway_payment_id = Column(String(100), unique=True, nullable=False, index=True)

    order_amount = Column(Numeric(12, 2), nullable=False)
    payment_status = Column(
        Enum("SUCCESS", "FAILED", "REFUNDED", name="paymentstatus"),
        default="SUCCESS",
        nullable=False,
    )
    payment_mode = Column(
        Enum("PLATFORM", "OWN", name="paymentmode"),
        default="PLATFORM",
        nullable=False,
    )

    # Reversement
    settlement_status = Column(
        Enum("PENDING", "COMPLETED", "SETTLED", "TRANSFERRED", name="settlementstatus"),
        default="PENDING",
        nullable=False,
    )
    vendor_payout = Column(Numeric(12, 2), nullable=True)
    platform_fee = Column(Numeric(12, 2), nullable=True)
    transfer_id = Column(String(100), nullable=True)

    remarks = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relations
    invoice = relationship("Invoice", back_populates="payments")
    admin = relationship("Admin")
    tenure = relationship("Tenure")

    __table_args__ = (
        Index("idx_payment_admin_mode", "admin_id", "payment_mode"),
        Index("idx_payment_status", "payment_status"),
        Index("idx_payment_settlement", "settlement_status"),
        CheckConstraint("order_amount > 0", name="positive_amount"),
    )

    def __repr__(self) -> str:
        return (
            f"<Payment(id={self.id}, gateway_id='{self.gateway_payment_id}', "
            f"amount={self.order_amount}, mode={self.payment_mode})>"
        )

    @property
    def is_platform_collected(self) -> bool:
        """Fonds encaissés sur le compte de la plateforme."""
        return self.payment_mode == "PLATFORM"
