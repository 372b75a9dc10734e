"""
Module des schémas Pydantic pour Nestify.
Définit les modèles de validation pour les requêtes et réponses API.
"""

from .user import (
    UserBase,
    UserCreate,
    AdminRegister,
    TenantRegister,
    UserResponse,
    UserLogin,
    Token,
    RefreshRequest,
)
from .hostel import (
    HostelResponse,
    HostelUpdate,
    RoomCreate,
    RoomResponse,
    TenureUpdate,
    TenureResponse,
    PaymentConfigResponse,
    PaymentConfigUpdate,
    VendorOnboardRequest,
)
from .invoice import (
    InvoiceItem,
    InvoiceCreate,
    InvoiceUpdate,
    InvoiceResponse,
    BillingRunResponse,
)
from .payment import (
    OrderCreate,
    OrderResponse,
    PaymentVerify,
    PaymentResponse,
    PayoutSummary,
    AdminBalance,
    SettlementCreate,
    SettlementResponse,
)

__all__ = [
    # User
    "UserBase",
    "UserCreate",
    "AdminRegister",
    "TenantRegister",
    "UserResponse",
    "UserLogin",
    "Token",
    "RefreshRequest",
    # Hostel
    "HostelResponse",
    "HostelUpdate",
    "RoomCreate",
    "RoomResponse",
    "TenureUpdate",
    "TenureResponse",
    "PaymentConfigResponse",
    "PaymentConfigUpdate",
    "VendorOnboardRequest",
    # Invoice
    "InvoiceItem",
    "InvoiceCreate",
    "InvoiceUpdate",
    "InvoiceResponse",
    "BillingRunResponse",
    # Payment
    "OrderCreate",
    "OrderResponse",
    "PaymentVerify",
    "PaymentResponse",
    "PayoutSummary",
    "AdminBalance",
    "SettlementCreate",
    "SettlementResponse",
]
