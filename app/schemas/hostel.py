"""
Schémas Pydantic pour la résidence, les chambres, les séjours et la
configuration de paiement du gérant.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from app.models.admin import PaymentMode
from app.models.tenure import TenureStatus


class HostelResponse(BaseModel):
    """Profil de la résidence et configuration de facturation."""
    id: int
    full_name: str
    hostel_name: str
    hostel_address: Optional[str] = None
    phone: Optional[str] = None
    stay_key: str
    payment_mode: PaymentMode
    billing_cycle_day: int
    auto_billing_enabled: bool
    fixed_maintenance: Decimal
    fixed_electricity: Decimal
    fixed_water: Decimal
    late_fee_enabled: bool
    late_fee_daily_percent: Decimal
    created_at: datetime

    class Config:
        from_attributes = True


class HostelUpdate(BaseModel):
    """Mise à jour du profil et de la facturation (hors passerelle)."""
    hostel_name: Optional[str] = Field(None, min_length=2, max_length=200)
    hostel_address: Optional[str] = Field(None, max_length=500)
    billing_cycle_day: Optional[int] = Field(None, ge=1, le=28)
    auto_billing_enabled: Optional[bool] = None
    fixed_maintenance: Optional[Decimal] = Field(None, ge=0)
    fixed_electricity: Optional[Decimal] = Field(None, ge=0)
    fixed_water: Optional[Decimal] = Field(None, ge=0)
    late_fee_enabled: Optional[bool] = None
    late_fee_daily_percent: Optional[Decimal] = Field(None, ge=0, le=100)


class RoomCreate(BaseModel):
    room_number: str = Field(..., min_length=1, max_length=20)
    price: Decimal = Field(..., ge=0, description="Loyer mensuel")
    capacity: int = Field(default=1, gt=0)


class RoomResponse(BaseModel):
    id: int
    admin_id: int
    room_number: str
    price: Decimal
    capacity: int
    created_at: datetime

    class Config:
        from_attributes = True


class TenureUpdate(BaseModel):
    """Approbation, affectation de chambre ou fin de séjour."""
    status: Optional[TenureStatus] = None
    room_id: Optional[int] = None


class TenureResponse(BaseModel):
    id: int
    admin_id: int
    user_id: Optional[int] = None
    room_id: Optional[int] = None
    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    status: TenureStatus
    created_at: datetime

    class Config:
        from_attributes = True


class PaymentConfigResponse(BaseModel):
    """Configuration passerelle exposée au gérant (secrets jamais renvoyés)."""
    payment_mode: PaymentMode
    razorpay_key_id: Optional[str] = None
    has_key_secret: bool
    has_webhook_secret: bool
    razorpay_account_id: Optional[str] = None
    is_vendor_connected: bool


class PaymentConfigUpdate(BaseModel):
    """Changement de mode ou de clés, protégé par un code OTP."""
    otp: str = Field(..., min_length=4, max_length=10, description="Code reçu par email")
    payment_mode: PaymentMode
    razorpay_key_id: Optional[str] = Field(None, max_length=100)
    razorpay_key_secret: Optional[str] = Field(None, max_length=200)
    razorpay_webhook_secret: Optional[str] = Field(None, max_length=200)

    @field_validator("razorpay_key_id")
    @classmethod
    def validate_key_id(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v.startswith("rzp_"):
            raise ValueError("Key ID Razorpay invalide (doit commencer par rzp_)")
        return v


class VendorOnboardRequest(BaseModel):
    business_name: Optional[str] = Field(None, max_length=200)
