"""
Module des services métier de Nestify.
"""

from .razorpay_service import RazorpayService, RazorpayClient, PaymentConfigError
from .email_service import EmailService

__all__ = ["RazorpayService", "RazorpayClient", "PaymentConfigError", "EmailService"]
