from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker

from .config import get_settings


logger = logging.getLogger(__name__)

# URL fijada por la app; None = la de get_settings()
_database_url: Optional[str] = None


def configure_database(database_url: Optional[str]) -> None:
    """Fija la URL de BD del proceso y descarta engine y sesiones cacheados."""
    global _database_url
    _database_url = database_url
    get_session_factory.cache_clear()
    get_engine.cache_clear()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    url = make_url(_database_url or get_settings().database_url)

    # Log básico de parámetros de conexión (sin contraseña)
    logger.info(
        "[DB] Crear engine backend=%s host=%s db=%s",
        url.get_backend_name(),
        url.host,
        url.database,
    )

    engine = create_engine(url, pool_pre_ping=True, future=True)

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("[DB] Test de conexión OK")
    except Exception:
        logger.exception("[DB] Test de conexión FALLÓ")

    return engine


@lru_cache(maxsize=1)
def get_session_factory() -> sessionmaker:
    return sessionmaker(bind=get_engine(), autocommit=False, autoflush=False, future=True)
