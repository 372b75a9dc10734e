"""
Modèle BillingRun - Journal d'exécution des tâches de facturation.
"""

import enum
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Date, DateTime, ForeignKey, Enum, Index, JSON,
)
from sqlalchemy.orm import relationship

from app.database import Base


class BillingJob(str, enum.Enum):
    MONTHLY_INVOICES = "monthly_invoices"
    LATE_FEES = "late_fees"


class RunType(str, enum.Enum):
    AUTO = "auto"       # Déclenché par le cron
    MANUAL = "manual"   # Déclenché par un gérant


class RunStatus(str, enum.Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class BillingRun(Base):
    """Exécution d'une tâche de facturation (factures mensuelles ou pénalités)."""

    __tablename__ = "billing_runs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    job_name = Column(String(50), nullable=False)
    run_date = Column(Date, nullable=False)
    run_type = Column(
        Enum("auto", "manual", name="runtype"),
        default="auto",
        nullable=False,
    )
    status = Column(
        Enum("running", "completed", "failed", name="runstatus"),
        default="running",
        nullable=False,
    )
    triggered_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    processed_count = Column(Integer, default=0, nullable=False)
    errors = Column(JSON, default=list, nullable=False)
    execution_time_ms = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    triggered_by = relationship("User")

    __table_args__ = (
        Index("idx_billing_run_job_date", "job_name", "run_date"),
    )

    def __repr__(self) -> str:
        return f"<BillingRun(id={self.id}, job={self.job_name}, status={self.status})>"
