"""
Endpoints de l'API v1.
"""

from . import (
    auth,
    hostel,
    rooms,
    tenures,
    invoices,
    billing,
    payment_config,
    payments,
    settlements,
)

__all__ = [
    "auth",
    "hostel",
    "rooms",
    "tenures",
    "invoices",
    "billing",
    "payment_config",
    "payments",
    "settlements",
]
