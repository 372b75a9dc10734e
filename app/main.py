"""
Nestify - Application FastAPI.
Gestion de résidences (hostels / PG) et encaissement des loyers via Razorpay,
sur le compte de la plateforme ou sur celui du gérant.
"""

import time
import uuid
from contextlib import asynccontextmanager
from typing import Callable, List

from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.config import settings
from app.database import check_db_connection, init_db
from app.core.logging import setup_logging, logger, log_request
from app.core.security import decode_token_unsafe
from app.api.v1.router import api_router


setup_logging(
    log_level="DEBUG" if settings.DEBUG else "INFO",
    json_logs=settings.ENVIRONMENT == "production",
)


def configuration_warnings() -> List[str]:
    """Réglages manquants ou dangereux détectés au démarrage."""
    warnings = []
    if not settings.RAZORPAY_KEY_ID or not settings.RAZORPAY_KEY_SECRET:
        warnings.append("Clés Razorpay de la plateforme absentes: le mode PLATFORM est inutilisable")
    if not settings.RAZORPAY_WEBHOOK_SECRET:
        warnings.append("RAZORPAY_WEBHOOK_SECRET absent: seuls les webhooks des gérants OWN seront acceptés")
    if not settings.CRON_SECRET:
        warnings.append("CRON_SECRET absent: la facturation automatique ne peut pas être déclenchée")
    if not settings.RESEND_API_KEY:
        warnings.append("RESEND_API_KEY absent: les emails sont simulés")
    if settings.ENVIRONMENT == "production":
        if settings.ENCRYPTION_KEY.startswith("default-fallback"):
            warnings.append("ENCRYPTION_KEY par défaut en production")
        if settings.OTP_DEV_BYPASS_CODE:
            warnings.append("OTP_DEV_BYPASS_CODE défini en production (ignoré hors DEBUG)")
    return warnings


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Démarrage de {settings.APP_NAME} v{settings.APP_VERSION} ({settings.ENVIRONMENT})")

    for warning in configuration_warnings():
        logger.warning(warning)

    if check_db_connection():
        if settings.DEBUG and settings.DATABASE_URL.startswith("sqlite"):
            init_db()
    else:
        logger.error("Démarrage sans base de données: les routes renverront des erreurs 500")

    yield

    logger.info(f"Arrêt de {settings.APP_NAME}")


app = FastAPI(
    title=settings.APP_NAME,
    description="""
    ## Nestify - Résidences et loyers

    * **Résidence** - Chambres, séjours, code d'inscription des locataires
    * **Facturation** - Factures manuelles et mensuelles, pénalités de retard
    * **Paiements** - Razorpay en mode PLATFORM (compte Nestify) ou OWN (compte du gérant)
    * **Webhooks** - Captures et remboursements signés HMAC-SHA256
    * **Règlements** - Reversements de la plateforme aux gérants

    Rôles: **admin** (gérant), **tenant** (locataire), **monitor** (opérateur de la plateforme).
    """,
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_tags=[
        {"name": "Authentification", "description": "Inscription, connexion, tokens JWT"},
        {"name": "Résidence", "description": "Profil et configuration de facturation"},
        {"name": "Chambres", "description": "Chambres et loyers"},
        {"name": "Séjours", "description": "Locataires de la résidence"},
        {"name": "Factures", "description": "Factures mensuelles"},
        {"name": "Facturation", "description": "Tâches planifiées de facturation"},
        {"name": "Configuration de paiement", "description": "Mode PLATFORM / OWN et clés Razorpay"},
        {"name": "Paiements", "description": "Orders, vérification et webhooks Razorpay"},
        {"name": "Règlements", "description": "Reversements de la plateforme aux gérants"},
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.FRONTEND_URL,
        "http://localhost:5173",
        "http://localhost:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next: Callable) -> Response:
    """Identifiant de requête propagé dans les logs et renvoyé au client."""
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
    started = time.perf_counter()

    user_id = None
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        payload = decode_token_unsafe(auth_header[7:])
        if payload:
            user_id = payload.get("sub")

    with logger.contextualize(request_id=request_id):
        response = await call_next(request)
        duration_ms = (time.perf_counter() - started) * 1000
        log_request(
            method=request.method,
            url=request.url.path,
            status_code=response.status_code,
            duration_ms=duration_ms,
            user_id=user_id,
        )

    response.headers["X-Request-ID"] = request_id
    response.headers["X-Process-Time"] = f"{duration_ms:.2f}ms"
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning(f"Validation refusée sur {request.url.path}: {[e['field'] for e in errors]}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": "Erreur de validation des données", "errors": errors},
    )


@app.exception_handler(IntegrityError)
async def integrity_exception_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    """Contrainte d'unicité ou d'intégrité violée (doublon concurrent)."""
    logger.warning(f"Conflit d'intégrité sur {request.url.path}: {exc.orig}")
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": "La ressource existe déjà ou viole une contrainte"},
    )


@app.exception_handler(SQLAlchemyError)
async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.opt(exception=exc).error(f"Erreur de base de données sur {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Erreur de base de données"},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error(f"Erreur non gérée sur {request.method} {request.url.path}")
    content = {"detail": "Une erreur interne est survenue"}
    if settings.DEBUG:
        content = {"detail": str(exc), "type": type(exc).__name__}
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)


app.include_router(api_router, prefix="/api/v1")


@app.get("/health", tags=["Système"], summary="État de l'application")
async def health_check():
    """Base de données et intégrations externes configurées."""
    database_ok = check_db_connection()
    return {
        "status": "ok" if database_ok else "degraded",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "database": "ok" if database_ok else "error",
        "razorpay_platform": "configured" if settings.RAZORPAY_KEY_ID else "missing",
        "email": "resend" if settings.RESEND_API_KEY else "simulated",
    }


@app.get("/", tags=["Système"])
async def root():
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs" if settings.DEBUG else None,
        "health": "/health",
        "api": "/api/v1",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info",
    )
