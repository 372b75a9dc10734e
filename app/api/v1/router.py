"""
Routeur principal de l'API v1.
Regroupe toutes les routes des différents modules.
"""

from fastapi import APIRouter

from app.api.v1.endpoints import (
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

api_router = APIRouter()

# Routes d'authentification
api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["Authentification"],
)

# Résidence et configuration de facturation
api_router.include_router(
    hostel.router,
    prefix="/hostel",
    tags=["Résidence"],
)

api_router.include_router(
    rooms.router,
    prefix="/rooms",
    tags=["Chambres"],
)

api_router.include_router(
    tenures.router,
    prefix="/tenures",
    tags=["Séjours"],
)

# Factures et tâches de facturation
api_router.include_router(
    invoices.router,
    prefix="/invoices",
    tags=["Factures"],
)

api_router.include_router(
    billing.router,
    prefix="/billing",
    tags=["Facturation"],
)

# Paiements
api_router.include_router(
    payment_config.router,
    prefix="/payment-config",
    tags=["Configuration de paiement"],
)

api_router.include_router(
    payments.router,
    prefix="/payments",
    tags=["Paiements"],
)

# Règlements plateforme
api_router.include_router(
    settlements.router,
    prefix="/settlements",
    tags=["Règlements"],
)
