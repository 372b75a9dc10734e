"""
Module des modèles SQLAlchemy pour Nestify.
Définit toutes les entités de la base de données.
"""

from .user import User, UserRole
from .admin import Admin, PaymentMode
from .room import Room
from .tenure import Tenure, TenureStatus
from .invoice import Invoice, InvoiceStatus
from .payment import Payment, PaymentStatus, SettlementStatus
from .settlement import PlatformSettlement
from .billing_run import BillingRun, BillingJob, RunType, RunStatus
from .verification_code import VerificationCode, VerificationPurpose

__all__ = [
    # User
    "User",
    "UserRole",
    # Hostel
    "Admin",
    "PaymentMode",
    "Room",
    "Tenure",
    "TenureStatus",
    # Billing
    "Invoice",
    "InvoiceStatus",
    "BillingRun",
    "BillingJob",
    "RunType",
    "RunStatus",
    # Payment
    "Payment",
    "PaymentStatus",
    "SettlementStatus",
    "PlatformSettlement",
    # OTP
    "VerificationCode",
    "VerificationPurpose",
]
