"""
Accès à la base de données (SQLAlchemy).
PostgreSQL en production, SQLite pour les tests et le développement local.
"""

from contextlib import contextmanager
from typing import Any, Dict, Generator
import time

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import QueuePool

from app.config import settings
from app.core.logging import logger, log_database_query


def _engine_options(database_url: str) -> Dict[str, Any]:
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "poolclass": QueuePool,
        "pool_size": 10,
        "max_overflow": 20,
        "pool_timeout": 30,
        "pool_recycle": 1800,
        "pool_pre_ping": True,
    }


def build_engine(database_url: str) -> Engine:
    """Moteur configuré pour le backend de l'URL, avec mesure des requêtes."""
    new_engine = create_engine(database_url, **_engine_options(database_url))

    if database_url.startswith("sqlite"):
        @event.listens_for(new_engine, "connect")
        def enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    @event.listens_for(new_engine, "before_cursor_execute")
    def start_timer(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault("query_started", []).append(time.perf_counter())

    @event.listens_for(new_engine, "after_cursor_execute")
    def report_duration(conn, cursor, statement, parameters, context, executemany):
        duration_ms = (time.perf_counter() - conn.info["query_started"].pop()) * 1000
        log_database_query(statement, duration_ms)

    return new_engine


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """
    Session par requête (dépendance FastAPI).
    Les routes valident elles-mêmes leurs transactions; une exception annule
    ce qui n'a pas été validé.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Session transactionnelle hors requête HTTP (scripts, tâches planifiées).

    Usage:
        with get_db_context() as db:
            await run_monthly_billing(db)
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Transaction annulée: {e}")
        raise
    finally:
        db.close()


def init_db() -> None:
    """Crée les tables manquantes (développement uniquement, Alembic sinon)."""
    import app.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info(f"Schéma créé: {len(Base.metadata.tables)} tables")


def check_db_connection() -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Base de données injoignable: {e}")
        return False
    return True


__all__ = [
    "engine",
    "build_engine",
    "SessionLocal",
    "Base",
    "get_db",
    "get_db_context",
    "init_db",
    "check_db_connection",
]
