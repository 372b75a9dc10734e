"""
Logging Nestify avec Loguru.

Trois destinations: la console, le journal applicatif et un journal dédié aux
événements d'argent (orders, captures, remboursements, règlements, facturation)
conservé plus longtemps. Les secrets de passerelle n'apparaissent jamais dans
les détails journalisés.
"""

import sys
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger


PAYMENTS_CHANNEL = "payments"
SLOW_QUERY_MS = 100

# Clés dont la valeur est masquée dans les détails journalisés
SENSITIVE_KEYS = ("secret", "password", "signature", "otp", "code", "token", "authorization")


def _is_payment_record(record: Dict[str, Any]) -> bool:
    return record["extra"].get("channel") == PAYMENTS_CHANNEL


def mask_details(details: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Copie des détails avec les valeurs sensibles masquées."""
    if not details:
        return {}
    masked = {}
    for key, value in details.items():
        if any(marker in key.lower() for marker in SENSITIVE_KEYS):
            masked[key] = "***"
        else:
            masked[key] = value
    return masked


def mask_email(email: str) -> str:
    """r***@domaine.com"""
    if not email or "@" not in email:
        return email or ""
    local, domain = email.split("@", 1)
    return f"{local[0]}***@{domain}"


def setup_logging(
    log_level: str = "INFO",
    log_dir: str = "logs",
    json_logs: bool = False,
    rotation: str = "10 MB",
    retention: str = "30 days",
    payments_retention: str = "1 year",
) -> None:
    """
    Configure les destinations Loguru.

    Args:
        log_level: Niveau minimal (DEBUG, INFO, WARNING...)
        log_dir: Répertoire des fichiers de log
        json_logs: Fichiers au format JSON (un objet par ligne) pour l'agrégation
        rotation: Taille maximale d'un fichier avant rotation
        retention: Conservation du journal applicatif
        payments_retention: Conservation du journal des paiements
    """
    logger.remove()

    console_format = (
        "<green>{time:HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{line}</cyan> | "
        "<level>{message}</level>"
    )
    file_format = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message} | {extra}"

    logger.add(sys.stdout, format=console_format, level=log_level, colorize=True, diagnose=False)

    directory = Path(log_dir)
    directory.mkdir(parents=True, exist_ok=True)

    file_options = dict(
        format=file_format,
        serialize=json_logs,
        compression="zip",
        backtrace=True,
        diagnose=False,
        enqueue=True,
    )
    logger.add(
        directory / "nestify.log",
        level=log_level,
        rotation=rotation,
        retention=retention,
        filter=lambda record: not _is_payment_record(record),
        **file_options,
    )
    logger.add(
        directory / "payments.log",
        level="INFO",
        rotation=rotation,
        retention=payments_retention,
        filter=_is_payment_record,
        **file_options,
    )
    logger.add(
        directory / "errors.log",
        level="ERROR",
        rotation=rotation,
        retention=retention,
        **file_options,
    )

    logger.info(f"Logging initialisé (niveau {log_level}, répertoire {directory})")


def payment_logger(**context: Any):
    """Logger lié au journal des paiements."""
    return logger.bind(channel=PAYMENTS_CHANNEL, **context)


def log_request(
    method: str,
    url: str,
    status_code: int,
    duration_ms: float,
    user_id: Optional[str] = None,
) -> None:
    """Une ligne par requête HTTP; 4xx en warning, 5xx en error."""
    if status_code >= 500:
        level = "ERROR"
    elif status_code >= 400:
        level = "WARNING"
    else:
        level = "INFO"
    logger.bind(user_id=user_id, duration_ms=round(duration_ms, 2)).log(
        level, f"{method} {url} -> {status_code} ({duration_ms:.1f}ms)"
    )


def log_database_query(
    query: str,
    duration_ms: float,
    params: Optional[Dict] = None,
) -> None:
    """Requête SQL: warning au-delà de SLOW_QUERY_MS, debug sinon."""
    statement = " ".join(query.split())
    if duration_ms >= SLOW_QUERY_MS:
        logger.warning(f"Requête lente ({duration_ms:.0f}ms): {statement[:300]}")
    else:
        logger.debug(f"SQL ({duration_ms:.1f}ms): {statement[:120]}")


def log_payment_event(
    event_type: str,
    payment_id: str,
    amount: float,
    status: str,
    mode: str,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Trace un mouvement d'argent dans le journal des paiements.

    Args:
        event_type: order, capture, refund ou settlement
        payment_id: Identifiant Razorpay (order/payment) ou référence de virement
        amount: Montant en roupies
        status: Statut résultant
        mode: PLATFORM ou OWN
        details: Contexte additionnel, masqué avant écriture
    """
    payment_logger(
        event_type=event_type,
        payment_id=payment_id,
        mode=mode,
        details=mask_details(details),
    ).info(f"[{mode}] {event_type} {payment_id}: ₹{amount:,.2f} -> {status}")


def log_notification_sent(
    notification_type: str,
    recipient: str,
    channel: str,
    success: bool,
    message_preview: str = "",
) -> None:
    """Envoi d'email (facture, pénalité, code de sécurité); destinataire masqué."""
    outcome = "envoyé" if success else "échec"
    logger.bind(notification=notification_type, channel=channel).log(
        "INFO" if success else "WARNING",
        f"{notification_type} ({channel}) -> {mask_email(recipient)}: {outcome} | {message_preview[:60]}",
    )


def log_billing_run(
    job_name: str,
    run_id: int,
    run_type: str,
    status: str,
    processed: int,
    errors: int,
    duration_ms: int,
) -> None:
    """Bilan d'une exécution de facturation (factures mensuelles ou pénalités)."""
    payment_logger(job=job_name, run_id=run_id, run_type=run_type).log(
        "INFO" if errors == 0 else "WARNING",
        f"Facturation {job_name} #{run_id} ({run_type}) {status}: "
        f"{processed} traité(s), {errors} erreur(s) en {duration_ms}ms",
    )


__all__ = [
    "logger",
    "setup_logging",
    "payment_logger",
    "mask_details",
    "mask_email",
    "log_request",
    "log_database_query",
    "log_payment_event",
    "log_notification_sent",
    "log_billing_run",
]
