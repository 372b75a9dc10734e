"""
Routes des chambres.
"""

from typing import Any, List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.core.logging import logger
from app.models.admin import Admin
from app.models.room import Room
from app.schemas.hostel import RoomCreate, RoomResponse
from app.api.deps import get_current_admin_profile


router = APIRouter()


@router.post(
    "",
    response_model=RoomResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Ajouter une chambre",
)
async def create_room(
    data: RoomCreate,
    admin: Admin = Depends(get_current_admin_profile),
    db: Session = Depends(get_db),
) -> Any:
    existing = db.query(Room).filter(
        Room.admin_id == admin.id,
        Room.room_number == data.room_number,
    ).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"La chambre {data.room_number} existe déjà",
        )

    room = Room(admin_id=admin.id, **data.model_dump())
    db.add(room)
    db.commit()
    db.refresh(room)

    logger.info(f"Chambre {room.room_number} créée pour la résidence {admin.id}")
    return room


@router.get(
    "",
    response_model=List[RoomResponse],
    summary="Liste des chambres",
)
async def list_rooms(
    admin: Admin = Depends(get_current_admin_profile),
    db: Session = Depends(get_db),
) -> Any:
    return db.query(Room).filter(Room.admin_id == admin.id).order_by(Room.room_number).all()
