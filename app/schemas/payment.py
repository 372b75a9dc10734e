"""
Schémas Pydantic pour les paiements Razorpay et les règlements.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field

from app.models.admin import PaymentMode
from app.models.payment import PaymentStatus, SettlementStatus


class OrderCreate(BaseModel):
    """Création d'un order Razorpay pour une facture."""
    invoice_id: int


class OrderResponse(BaseModel):
    """Order créé; key_id est la clé à utiliser dans le checkout."""
    order_id: str
    amount: int = Field(description="Montant en paise")
    currency: str
    key_id: str
    payment_mode: PaymentMode
    invoice_id: int


class PaymentVerify(BaseModel):
    """Retour du checkout Razorpay."""
    invoice_id: int
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str


class PaymentResponse(BaseModel):
    id: int
    invoice_id: Optional[int] = None
    admin_id: Optional[int] = None
    tenure_id: Optional[int] = None
    gateway_name: str
    gateway_order_id: Optional[str] = None
    gateway_payment_id: str
    order_amount: Decimal
    payment_status: PaymentStatus
    payment_mode: PaymentMode
    settlement_status: SettlementStatus
    vendor_payout: Optional[Decimal] = None
    platform_fee: Optional[Decimal] = None
    transfer_id: Optional[str] = None
    remarks: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PayoutSummary(BaseModel):
    """Résumé des reversements pour le gérant."""
    connected: bool
    account_id: Optional[str] = None
    total_earnings: Decimal
    pending_settlement: Decimal
    paid_out: Decimal


class AdminBalance(BaseModel):
    admin_id: int
    name: str
    hostel_name: str
    total_collected: Decimal
    total_settled: Decimal
    balance_due: Decimal


class SettlementCreate(BaseModel):
    admin_id: int
    amount: Decimal = Field(..., gt=0)
    reference_id: Optional[str] = Field(None, max_length=100, description="UTR / référence du virement")
    notes: Optional[str] = Field(None, max_length=500)


class SettlementResponse(BaseModel):
    id: int
    admin_id: int
    amount: Decimal
    reference_id: Optional[str] = None
    notes: Optional[str] = None
    recorded_by_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True
