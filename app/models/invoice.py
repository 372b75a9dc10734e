"""
Modèle Invoice - Factures mensuelles des locataires.
Les lignes de facture sont stockées en JSON (loyer, charges, frais, pénalités).
"""

import enum
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Date, DateTime, Numeric, ForeignKey,
    Enum, Index, UniqueConstraint, CheckConstraint, JSON,
)
from sqlalchemy.orm import relationship

from app.database import Base


class InvoiceStatus(str, enum.Enum):
    """Statuts d'une facture."""
    PENDING = "pending"       # En attente de paiement
    PAID = "paid"             # Réglée via la passerelle
    CANCELLED = "cancelled"   # Annulée par le gérant


class Invoice(Base):
    """
    Facture mensuelle d'un séjour.

    Attributes:
        month / year: Période facturée (une seule facture par séjour et par mois)
        due_date: Date d'échéance (génération + INVOICE_DUE_DAYS)
        items: Lignes [{description, amount, type, date?}]
        subtotal: Loyer et charges, hors frais de plateforme
        total_amount: Montant réclamé au locataire
        gateway_order_id: Dernier order Razorpay créé pour la facture
        gateway_payment_mode: Compte (PLATFORM ou OWN) qui a créé cet order
        gateway_order_amount: Montant de cet order, en roupies
    """

    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    admin_id = Column(Integer, ForeignKey("admins.id"), nullable=False)
    tenure_id = Column(Integer, ForeignKey("tenures.id"), nullable=False)

    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=False)

    status = Column(
        Enum("pending", "paid", "cancelled", name="invoicestatus"),
        default="pending",
        nullable=False,
    )

    items = Column(JSON, default=list, nullable=False)
    subtotal = Column(Numeric(12, 2), nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)

    gateway_order_id = Column(String(100), nullable=True)
    gateway_payment_mode = Column(Enum("PLATFORM", "OWN", name="paymentmode"), nullable=True)
    gateway_order_amount = Column(Numeric(12, 2), nullable=True)

    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relations
    admin = relationship("Admin")
    tenure = relationship("Tenure", back_populates="invoices")
    payments = relationship("Payment", back_populates="invoice")

    __table_args__ = (
        UniqueConstraint("tenure_id", "month", "year", name="unique_invoice_per_month"),
        Index("idx_invoice_admin_status", "admin_id", "status"),
        Index("idx_invoice_due", "status", "due_date"),
        Index("idx_invoice_gateway_order", "gateway_order_id"),
        CheckConstraint("month >= 1 AND month <= 12", name="valid_invoice_month"),
        CheckConstraint("total_amount >= 0", name="non_negative_total"),
    )

    def __repr__(self) -> str:
        return (
            f"<Invoice(id={self.id}, tenure={self.tenure_id}, "
            f"period={self.month:02d}/{self.year}, total={self.total_amount})>"
        )

    @property
    def period_label(self) -> str:
        """Libellé de la période, ex: 'March 2026'."""
        return datetime(self.year, self.month, 1).strftime("%B %Y")

    @property
    def is_pending(self) -> bool:
        return self.status == "pending"
