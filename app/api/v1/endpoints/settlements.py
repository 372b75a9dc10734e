"""
Routes de règlement - Réservées aux opérateurs de la plateforme (monitor).
Soldes dus aux gérants, enregistrement des virements, historique et grand livre.
"""

from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User
from app.schemas.payment import (
    AdminBalance,
    PaymentResponse,
    SettlementCreate,
    SettlementResponse,
)
from app.services.settlement_service import (
    SettlementError,
    compute_admin_balances,
    global_ledger,
    record_settlement,
    settlement_history,
)
from app.api.deps import require_monitor


router = APIRouter()


@router.get(
    "",
    response_model=List[AdminBalance],
    summary="Soldes dus aux gérants",
)
async def list_balances(
    current_user: User = Depends(require_monitor),
    db: Session = Depends(get_db),
) -> Any:
    """balance_due = total encaissé (reversements) - total réglé, soldes > ₹1 uniquement."""
    return compute_admin_balances(db)


@router.post(
    "",
    response_model=SettlementResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enregistrer un virement à un gérant",
)
async def create_settlement(
    data: SettlementCreate,
    current_user: User = Depends(require_monitor),
    db: Session = Depends(get_db),
) -> Any:
    """Le montant ne peut pas dépasser le solde dû."""
    try:
        return record_settlement(
            db,
            admin_id=data.admin_id,
            amount=data.amount,
            reference_id=data.reference_id,
            notes=data.notes,
            recorded_by=current_user,
        )
    except SettlementError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get(
    "/history",
    response_model=List[SettlementResponse],
    summary="Historique des virements",
)
async def list_settlements(
    admin_id: Optional[int] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(require_monitor),
    db: Session = Depends(get_db),
) -> Any:
    return settlement_history(db, admin_id=admin_id, limit=limit)


@router.get(
    "/ledger",
    response_model=List[PaymentResponse],
    summary="Derniers paiements de toutes les résidences",
)
async def ledger(
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(require_monitor),
    db: Session = Depends(get_db),
) -> Any:
    return global_ledger(db, limit=limit)
