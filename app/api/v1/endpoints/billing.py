"""
Routes des tâches de facturation.
Déclenchées par le cron externe (X-Cron-Secret) ou manuellement par un gérant.
"""

from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.billing_run import BillingRun
from app.models.user import User
from app.schemas.invoice import BillingRunResponse
from app.services.billing_service import run_monthly_billing, apply_late_fees
from app.api.deps import get_billing_trigger, require_roles


router = APIRouter()


@router.post(
    "/runs/monthly",
    response_model=BillingRunResponse,
    summary="Générer les factures mensuelles",
)
async def trigger_monthly_billing(
    triggered_by: Optional[User] = Depends(get_billing_trigger),
    db: Session = Depends(get_db),
) -> Any:
    """
    Cron: résidences dont la facturation automatique tombe aujourd'hui.
    Gérant: toute sa résidence, quel que soit le jour de cycle.
    """
    return await run_monthly_billing(db, triggered_by=triggered_by)


@router.post(
    "/runs/late-fees",
    response_model=BillingRunResponse,
    summary="Appliquer les pénalités de retard",
)
async def trigger_late_fees(
    triggered_by: Optional[User] = Depends(get_billing_trigger),
    db: Session = Depends(get_db),
) -> Any:
    return await apply_late_fees(db, triggered_by=triggered_by)


@router.get(
    "/runs",
    response_model=List[BillingRunResponse],
    summary="Historique des exécutions",
)
async def list_billing_runs(
    job_name: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(require_roles(["admin", "monitor"])),
    db: Session = Depends(get_db),
) -> Any:
    """Un gérant voit ses lancements manuels et les exécutions automatiques."""
    query = db.query(BillingRun)
    if current_user.role == "admin":
        query = query.filter(
            (BillingRun.triggered_by_id == current_user.id) | (BillingRun.triggered_by_id.is_(None))
        )
    if job_name:
        query = query.filter(BillingRun.job_name == job_name)
    return query.order_by(BillingRun.created_at.desc(), BillingRun.id.desc()).limit(limit).all()
