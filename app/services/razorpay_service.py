"""
Service de paiement Razorpay en double mode.

PLATFORM: les loyers sont encaissés sur le compte de Nestify puis reversés
manuellement au gérant. OWN: le gérant encaisse sur son propre compte avec
ses clés, stockées chiffrées.
"""

import hashlib
import hmac
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Any, List, Optional, Tuple

import httpx

from app.config import settings
from app.core.crypto import decrypt, CredentialDecryptionError
from app.core.logging import logger, log_payment_event
from app.models.admin import Admin
from app.models.invoice import Invoice
from app.models.user import User


class PaymentConfigError(Exception):
    """Configuration de passerelle inutilisable pour ce gérant."""


@dataclass
class GatewayCredentials:
    """Clés à utiliser pour un appel Razorpay."""
    key_id: str
    key_secret: str
    mode: str


class RazorpayClient:
    """
    Client HTTP minimal pour l'API REST Razorpay.
    Documentation: https://razorpay.com/docs/api/
    """

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.base_url = (base_url or settings.RAZORPAY_API_URL).rstrip("/")
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            auth=(self.key_id, self.key_secret),
            timeout=20.0,
            transport=self._transport,
        )

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """Extrait error.description de la réponse Razorpay si présente."""
        try:
            data = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        error = data.get("error") if isinstance(data, dict) else None
        if isinstance(error, dict) and error.get("description"):
            return error["description"]
        return response.text or f"HTTP {response.status_code}"

    async def create_order(
        self,
        amount_paise: int,
        receipt: str,
        notes: Optional[Dict[str, Any]] = None,
        currency: str = "INR",
    ) -> Dict[str, Any]:
        """
        Crée un order Razorpay.

        Args:
            amount_paise: Montant en paise (1 INR = 100 paise)
            receipt: Référence interne (ID de facture)
            notes: Métadonnées attachées à l'order
            currency: Devise

        Returns:
            {"success": True, "order_id", "amount", "currency"} ou
            {"success": False, "error", "status_code"}
        """
        try:
            async with self._client() as client:
                response = await client.post(
                    "/orders",
                    json={
                        "amount": amount_paise,
                        "currency": currency,
                        "receipt": receipt,
                        "notes": notes or {},
                    },
                )
        except httpx.HTTPError as e:
            logger.error(f"Exception Razorpay (order): {e}")
            return {"success": False, "error": str(e), "status_code": None}

        if response.status_code in [200, 201]:
            data = response.json()
            return {
                "success": True,
                "order_id": data.get("id"),
                "amount": data.get("amount", amount_paise),
                "currency": data.get("currency", currency),
            }

        error = self._error_message(response)
        logger.error(f"Erreur Razorpay (order {receipt}): {response.status_code} - {error}")
        return {"success": False, "error": error, "status_code": response.status_code}

    async def create_linked_account(
        self,
        name: str,
        email: str,
        phone: str,
        business_name: str,
        admin_id: int,
    ) -> Dict[str, Any]:
        """
        Crée un compte lié (Razorpay Route) pour un gérant.

        Returns:
            {"success": True, "account_id"} ou {"success": False, "error", "status_code"}
        """
        payload = {
            "email": email,
            "phone": phone,
            "legal_business_name": business_name,
            "business_type": "individual",
            "contact_name": name,
            "tnc_accepted": True,
            "account_details": {
                "business_name": business_name,
                "business_type": "individual",
            },
            "notes": {"internal_admin_id": str(admin_id)},
        }
        try:
            async with self._client() as client:
                response = await client.post("/accounts", json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Exception Razorpay (compte lié): {e}")
            return {"success": False, "error": str(e), "status_code": None}

        if response.status_code in [200, 201]:
            return {"success": True, "account_id": response.json().get("id")}

        if response.status_code == 404:
            error = "Razorpay Route is not enabled on the platform account"
        else:
            error = self._error_message(response)
        logger.error(f"Erreur Razorpay (compte lié admin {admin_id}): {response.status_code} - {error}")
        return {"success": False, "error": error, "status_code": response.status_code}


def _hmac_sha256_hex(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


class RazorpayService:
    """
    Service principal de paiement.
    Choisit le compte Razorpay selon le mode du gérant et vérifie les signatures.
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._transport = transport

    def client_for(self, credentials: GatewayCredentials) -> RazorpayClient:
        return RazorpayClient(
            credentials.key_id,
            credentials.key_secret,
            transport=self._transport,
        )

    def platform_credentials(self) -> GatewayCredentials:
        if not settings.RAZORPAY_KEY_ID or not settings.RAZORPAY_KEY_SECRET:
            raise PaymentConfigError("Platform Razorpay keys are not configured")
        return GatewayCredentials(
            key_id=settings.RAZORPAY_KEY_ID,
            key_secret=settings.RAZORPAY_KEY_SECRET,
            mode="PLATFORM",
        )

    def own_credentials(self, admin: Admin) -> GatewayCredentials:
        """
        Clés propres du gérant, déchiffrées, quel que soit son mode actuel.

        Raises:
            PaymentConfigError: clés absentes ou indéchiffrables
        """
        if not admin.has_own_keys:
            raise PaymentConfigError("Own gateway enabled but keys are missing")
        try:
            key_secret = decrypt(admin.razorpay_key_secret)
        except CredentialDecryptionError as e:
            logger.error(f"Déchiffrement impossible des clés du gérant {admin.id}")
            raise PaymentConfigError("Failed to decrypt payment keys") from e
        return GatewayCredentials(
            key_id=admin.razorpay_key_id,
            key_secret=key_secret,
            mode="OWN",
        )

    def resolve_credentials(self, admin: Admin) -> GatewayCredentials:
        """
        Retourne les clés à utiliser pour encaisser au nom d'un gérant.

        Raises:
            PaymentConfigError: clés propres absentes ou indéchiffrables,
                ou clés de la plateforme non configurées
        """
        if admin.payment_mode == "OWN":
            return self.own_credentials(admin)
        return self.platform_credentials()

    async def create_order_for_invoice(
        self,
        invoice: Invoice,
        admin: Admin,
    ) -> Dict[str, Any]:
        """
        Crée l'order Razorpay d'une facture sur le compte adapté au gérant.

        Returns:
            Résultat du client, enrichi de key_id et payment_mode en cas de succès
        """
        credentials = self.resolve_credentials(admin)
        amount_paise = int(
            (Decimal(str(invoice.total_amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        )
        notes = {
            "source": "nestify_dual",
            "invoice_id": str(invoice.id),
            "admin_id": str(admin.id),
            "payment_mode": credentials.mode,
        }

        result = await self.client_for(credentials).create_order(
            amount_paise=amount_paise,
            receipt=str(invoice.id),
            notes=notes,
            currency=settings.RAZORPAY_CURRENCY,
        )

        if result["success"]:
            result["key_id"] = credentials.key_id
            result["payment_mode"] = credentials.mode
            log_payment_event(
                event_type="order",
                payment_id=result["order_id"],
                amount=float(invoice.total_amount),
                status="created",
                mode=credentials.mode,
                details={"invoice_id": invoice.id},
            )
        return result

    @staticmethod
    def verify_checkout_signature(
        order_id: str,
        payment_id: str,
        signature: str,
        secret: str,
    ) -> bool:
        """Vérifie la signature renvoyée par le checkout (order_id|payment_id)."""
        if not signature or not secret:
            return False
        expected = _hmac_sha256_hex(secret, f"{order_id}|{payment_id}".encode("utf-8"))
        return hmac.compare_digest(expected, signature)

    @staticmethod
    def verify_webhook_signature(
        raw_body: bytes,
        signature: Optional[str],
        secret: Optional[str],
    ) -> bool:
        """Vérifie l'en-tête X-Razorpay-Signature sur le corps brut."""
        if not signature or not secret:
            return False
        expected = _hmac_sha256_hex(secret, raw_body)
        return hmac.compare_digest(expected, signature)

    def webhook_secrets_for(self, admin: Optional[Admin]) -> List[Tuple[str, str]]:
        """
        Secrets candidats pour vérifier un webhook, dans l'ordre d'essai, avec
        le compte qu'ils authentifient: secret de la plateforme (PLATFORM),
        secret de webhook du gérant puis key secret du gérant (OWN).
        """
        secrets: List[Tuple[str, str]] = []
        if settings.RAZORPAY_WEBHOOK_SECRET:
            secrets.append(("PLATFORM", settings.RAZORPAY_WEBHOOK_SECRET))

        if admin is None:
            return secrets

        for encrypted in (admin.razorpay_webhook_secret, admin.razorpay_key_secret):
            if not encrypted:
                continue
            try:
                secrets.append(("OWN", decrypt(encrypted)))
            except CredentialDecryptionError:
                logger.warning(f"Secret indéchiffrable ignoré pour le gérant {admin.id}")
        return secrets

    def webhook_signer(
        self,
        raw_body: bytes,
        signature: Optional[str],
        admin: Optional[Admin],
    ) -> Optional[str]:
        """
        Compte dont le secret a signé le webhook.

        Returns:
            "PLATFORM", "OWN" (secret du gérant) ou None si aucun secret ne correspond
        """
        for account, secret in self.webhook_secrets_for(admin):
            if self.verify_webhook_signature(raw_body, signature, secret):
                return account
        return None

    def checkout_secret_for(self, admin: Admin, payment_mode: Optional[str] = None) -> str:
        """Secret signant le checkout: celui du compte qui a créé l'order."""
        mode = payment_mode or admin.payment_mode
        if mode == "OWN":
            return self.own_credentials(admin).key_secret
        return self.platform_credentials().key_secret

    async def onboard_vendor(
        self,
        admin: Admin,
        user: User,
        business_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Crée le compte lié du gérant avec les clés de la plateforme.
        L'appelant persiste admin.razorpay_account_id en cas de succès.
        """
        credentials = self.platform_credentials()
        result = await self.client_for(credentials).create_linked_account(
            name=admin.full_name,
            email=user.email,
            phone=admin.phone or user.phone,
            business_name=business_name or admin.hostel_name,
            admin_id=admin.id,
        )
        if result["success"]:
            admin.razorpay_account_id = result["account_id"]
            logger.info(f"Compte lié Razorpay créé pour le gérant {admin.id}: {result['account_id']}")
        return result


# Instance singleton du service
razorpay_service = RazorpayService()
