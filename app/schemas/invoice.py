"""
Schémas Pydantic pour les factures et les exécutions de facturation.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field

from app.models.invoice import InvoiceStatus


class InvoiceItem(BaseModel):
    """Ligne de facture."""
    description: str = Field(..., min_length=1, max_length=200)
    amount: Decimal
    type: str = Field(default="other", max_length=30)
    date: Optional[str] = None


class InvoiceCreate(BaseModel):
    """Génération manuelle d'une facture pour un séjour."""
    tenure_id: int
    month: Optional[int] = Field(None, ge=1, le=12, description="Mois (défaut: mois courant)")
    year: Optional[int] = Field(None, ge=2000, le=2100)


class InvoiceUpdate(BaseModel):
    """Remplacement des lignes d'une facture en attente."""
    items: List[InvoiceItem] = Field(..., min_length=1)


class InvoiceResponse(BaseModel):
    id: int
    admin_id: int
    tenure_id: int
    month: int
    year: int
    due_date: date
    status: InvoiceStatus
    items: List[Dict[str, Any]]
    subtotal: Decimal
    total_amount: Decimal
    paid_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class BillingRunResponse(BaseModel):
    id: int
    job_name: str
    run_date: date
    run_type: str
    status: str
    triggered_by_id: Optional[int] = None
    processed_count: int
    errors: List[Dict[str, Any]]
    execution_time_ms: Optional[int] = None
    created_at: datetime
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True
