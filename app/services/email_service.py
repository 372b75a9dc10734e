"""
Service d'envoi d'emails pour Nestify.
Envoie les factures, les pénalités de retard et les codes de sécurité via
l'API Resend.
"""

import html
from typing import Any, Dict, List, Optional

import httpx

from app.config import settings
from app.core.logging import logger, log_notification_sent


_BASE_STYLE = """
    body { font-family: 'Segoe UI', Arial, sans-serif; background-color: #f5f5f5; margin: 0; padding: 20px; }
    .container { max-width: 560px; margin: 0 auto; background: white; border-radius: 12px; overflow: hidden; box-shadow: 0 4px 20px rgba(0,0,0,0.08); }
    .header { background: #4F46E5; padding: 24px; text-align: center; }
    .header h1 { color: white; margin: 0; font-size: 22px; }
    .content { padding: 24px; }
    table { width: 100%; border-collapse: collapse; margin: 16px 0; }
    td { padding: 8px 0; border-bottom: 1px solid #eee; color: #333; }
    td.amount { text-align: right; }
    .total td { font-weight: bold; border-top: 2px solid #4F46E5; }
    .code { font-size: 34px; font-weight: bold; color: #4F46E5; letter-spacing: 8px; font-family: monospace; text-align: center; }
    .button { display: inline-block; background: #4F46E5; color: white; padding: 12px 24px; border-radius: 8px; text-decoration: none; }
    .footer { background: #f8f9fa; padding: 16px; text-align: center; color: #666; font-size: 12px; }
    p { color: #333; line-height: 1.6; }
"""


def _wrap(title: str, body: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="utf-8">
        <style>{_BASE_STYLE}</style>
    </head>
    <body>
        <div class="container">
            <div class="header"><h1>{title}</h1></div>
            <div class="content">{body}</div>
            <div class="footer">
                <p>This email was sent automatically by {settings.APP_NAME}.</p>
            </div>
        </div>
    </body>
    </html>
    """


def _format_inr(amount: Any) -> str:
    return f"₹{float(amount):,.2f}"


class EmailService:
    """Service pour l'envoi d'emails transactionnels."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(settings.RESEND_API_KEY)

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
    ) -> bool:
        """
        Envoie un email via Resend.

        Args:
            to_email: Adresse email du destinataire
            subject: Sujet de l'email
            html_content: Contenu HTML de l'email

        Returns:
            True si l'envoi a réussi (ou a été simulé), False sinon
        """
        if not self.is_configured:
            logger.warning("Clé Resend manquante - Email non envoyé")
            logger.info(f"Email simulé vers {to_email}: {subject}")
            return True  # Ne pas bloquer en dev

        try:
            async with httpx.AsyncClient(
                base_url=settings.RESEND_API_URL,
                timeout=15.0,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    "/emails",
                    headers={"Authorization": f"Bearer {settings.RESEND_API_KEY}"},
                    json={
                        "from": f"{settings.APP_NAME} <{settings.RESEND_FROM_EMAIL}>",
                        "to": [to_email],
                        "subject": subject,
                        "html": html_content,
                    },
                )
        except httpx.HTTPError as e:
            logger.error(f"Erreur lors de l'envoi de l'email à {to_email}: {e}")
            return False

        if response.status_code in [200, 201, 202]:
            logger.info(f"Email envoyé à {to_email}: {subject}")
            return True

        logger.error(f"Erreur Resend ({response.status_code}) pour {to_email}: {response.text}")
        return False

    async def send_invoice_email(
        self,
        to_email: str,
        tenant_name: str,
        hostel_name: str,
        period: str,
        items: List[Dict[str, Any]],
        total_amount: Any,
        due_date: str,
    ) -> bool:
        """Envoie la facture mensuelle générée au locataire."""
        subject = f"Invoice for {period} - {hostel_name}"
        tenant_name = html.escape(tenant_name)
        hostel_name = html.escape(hostel_name)
        rows = "".join(
            f"<tr><td>{html.escape(str(item['description']))}</td>"
            f"<td class=\"amount\">{_format_inr(item['amount'])}</td></tr>"
            for item in items
        )
        body = f"""
            <p>Hi <strong>{tenant_name}</strong>,</p>
            <p>Your invoice for <strong>{period}</strong> at {hostel_name} is ready.</p>
            <table>
                {rows}
                <tr class="total"><td>Total</td><td class="amount">{_format_inr(total_amount)}</td></tr>
            </table>
            <p>Please pay before <strong>{due_date}</strong> to avoid late fees.</p>
            <p style="text-align:center">
                <a class="button" href="{settings.FRONTEND_URL}/tenant/payments">Pay now</a>
            </p>
        """
        success = await self.send_email(to_email, subject, _wrap("New invoice", body))
        log_notification_sent("invoice", to_email, "email", success, subject)
        return success

    async def send_late_fee_email(
        self,
        to_email: str,
        tenant_name: str,
        period: str,
        fee_amount: Any,
        new_total: Any,
    ) -> bool:
        """Prévient le locataire qu'une pénalité de retard a été ajoutée."""
        subject = f"Late fee applied to your {period} invoice"
        tenant_name = html.escape(tenant_name)
        body = f"""
            <p>Hi <strong>{tenant_name}</strong>,</p>
            <p>Your invoice for <strong>{period}</strong> is overdue. A late fee of
            <strong>{_format_inr(fee_amount)}</strong> has been added.</p>
            <p>New amount due: <strong>{_format_inr(new_total)}</strong></p>
            <p style="text-align:center">
                <a class="button" href="{settings.FRONTEND_URL}/tenant/payments">Pay now</a>
            </p>
        """
        success = await self.send_email(to_email, subject, _wrap("Payment overdue", body))
        log_notification_sent("late_fee", to_email, "email", success, subject)
        return success

    async def send_security_otp_email(
        self,
        to_email: str,
        user_name: str,
        code: str,
    ) -> bool:
        """Envoie le code protégeant la modification de la configuration de paiement."""
        subject = f"{settings.APP_NAME} security code"
        user_name = html.escape(user_name)
        body = f"""
            <p>Hi <strong>{user_name}</strong>,</p>
            <p>Use this code to confirm the change of your payment settings:</p>
            <div class="code">{code}</div>
            <p>The code expires in {settings.OTP_EXPIRE_MINUTES} minutes.
            If you did not request it, secure your account immediately.</p>
        """
        success = await self.send_email(to_email, subject, _wrap("Security verification", body))
        # Le code n'est jamais journalisé
        log_notification_sent("otp", to_email, "email", success, subject)
        return success


# Instance globale du service
email_service = EmailService()
