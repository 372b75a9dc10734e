"""
Routes de la résidence - Profil et configuration de facturation du gérant.
"""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.core.logging import logger
from app.models.admin import Admin
from app.schemas.hostel import HostelResponse, HostelUpdate
from app.api.deps import get_current_admin_profile
from app.api.v1.endpoints.auth import generate_stay_key


router = APIRouter()


@router.get(
    "",
    response_model=HostelResponse,
    summary="Profil de la résidence",
)
async def get_hostel(
    admin: Admin = Depends(get_current_admin_profile),
) -> Any:
    return admin


@router.patch(
    "",
    response_model=HostelResponse,
    summary="Mettre à jour la résidence et la facturation",
)
async def update_hostel(
    data: HostelUpdate,
    admin: Admin = Depends(get_current_admin_profile),
    db: Session = Depends(get_db),
) -> Any:
    """
    Met à jour le profil et la configuration de facturation:
    jour de cycle (1-28), facturation automatique, charges fixes, pénalités.

    Le mode de paiement se modifie via /payment-config (protégé par OTP).
    """
    changes = data.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(admin, field, value)
    db.commit()
    db.refresh(admin)

    logger.info(f"Résidence {admin.id} mise à jour: {sorted(changes.keys())}")
    return admin


@router.post(
    "/stay-key/regenerate",
    response_model=HostelResponse,
    summary="Générer un nouveau code de résidence",
)
async def regenerate_stay_key(
    admin: Admin = Depends(get_current_admin_profile),
    db: Session = Depends(get_db),
) -> Any:
    """L'ancien code cesse immédiatement de fonctionner."""
    admin.stay_key = generate_stay_key(db)
    db.commit()
    db.refresh(admin)
    logger.info(f"Nouveau code de résidence pour le gérant {admin.id}")
    return admin
