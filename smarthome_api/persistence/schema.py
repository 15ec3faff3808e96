"""Esquema de la tabla de dispositivos.

Una sola tabla para todas las variantes; ``device_type`` discrimina y las
columnas propias de cada variante quedan en NULL para las demás.
"""

from __future__ import annotations

import logging

from sqlalchemy import Boolean, Column, Float, MetaData, String, Table
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

metadata = MetaData()

devices_table = Table(
    "devices",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(200), nullable=False),
    Column("room_id", String(36), nullable=True, index=True),
    Column("user_id", String(36), nullable=True, index=True),
    Column("device_type", String(32), nullable=False),
    Column("is_on", Boolean, nullable=True),
    Column("current_temperature", Float, nullable=True),
)


def ensure_schema(engine: Engine) -> None:
    """Crea las tablas si no existen. Seguro de llamar varias veces."""
    logger.info("[DB] Ensuring schema exists")
    try:
        metadata.create_all(engine, checkfirst=True)
    except Exception as e:
        logger.exception("[DB] Schema creation failed: %s", e)
        raise
