"""
Routes des séjours - Approbation, affectation de chambre, fin de séjour.
"""

from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.core.logging import logger
from app.models.admin import Admin
from app.models.room import Room
from app.models.tenure import Tenure, TenureStatus
from app.schemas.hostel import TenureUpdate, TenureResponse
from app.api.deps import get_current_admin_profile


router = APIRouter()


@router.get(
    "",
    response_model=List[TenureResponse],
    summary="Liste des séjours de la résidence",
)
async def list_tenures(
    status_filter: Optional[TenureStatus] = Query(None, alias="status"),
    admin: Admin = Depends(get_current_admin_profile),
    db: Session = Depends(get_db),
) -> Any:
    query = db.query(Tenure).filter(Tenure.admin_id == admin.id)
    if status_filter:
        query = query.filter(Tenure.status == status_filter.value)
    return query.order_by(Tenure.created_at.desc()).all()


@router.patch(
    "/{tenure_id}",
    response_model=TenureResponse,
    summary="Mettre à jour un séjour",
)
async def update_tenure(
    tenure_id: int,
    data: TenureUpdate,
    admin: Admin = Depends(get_current_admin_profile),
    db: Session = Depends(get_db),
) -> Any:
    """Approuve (active), affecte une chambre ou termine (inactive) un séjour."""
    tenure = db.query(Tenure).filter(
        Tenure.id == tenure_id,
        Tenure.admin_id == admin.id,
    ).first()
    if not tenure:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Séjour non trouvé",
        )

    if data.room_id is not None:
        room = db.query(Room).filter(Room.id == data.room_id, Room.admin_id == admin.id).first()
        if not room:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Chambre non trouvée",
            )
        tenure.room_id = room.id

    if data.status is not None:
        tenure.status = data.status.value

    db.commit()
    db.refresh(tenure)

    logger.info(f"Séjour {tenure.id} mis à jour: statut={tenure.status}, chambre={tenure.room_id}")
    return tenure
