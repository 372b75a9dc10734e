"""
Modèle VerificationCode - Codes OTP à usage unique.
"""

import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index

from app.config import settings
from app.database import Base


class VerificationPurpose(str, enum.Enum):
    PAYMENT_CONFIG = "PAYMENT_CONFIG"   # Modification de la configuration de paiement


class VerificationCode(Base):
    """
    Code envoyé par email, supprimé dès sa première utilisation ou après
    OTP_MAX_ATTEMPTS essais erronés.
    """

    __tablename__ = "verification_codes"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    code = Column(String(10), nullable=False)
    type = Column(String(50), default="PAYMENT_CONFIG", nullable=False)
    attempts = Column(Integer, default=0, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_verification_lookup", "user_id", "type", "code"),
    )

    def __repr__(self) -> str:
        return f"<VerificationCode(id={self.id}, user={self.user_id}, type={self.type})>"

    @property
    def is_expired(self) -> bool:
        return datetime.utcnow() > self.expires_at

    @property
    def attempts_remaining(self) -> int:
        return max(settings.OTP_MAX_ATTEMPTS - (self.attempts or 0), 0)
