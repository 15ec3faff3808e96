"""Health, readiness y métricas."""

import logging

from fastapi import APIRouter, HTTPException, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text

from common.db import get_engine
from ..realtime.hub import get_broadcast_hub
from ..telemetry.runtime import get_telemetry_listener

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


@router.get("/health")
def health():
    """Liveness probe: ok mientras el proceso responda."""
    return {"status": "ok"}


@router.get("/ready")
def ready():
    """Readiness probe: comprueba la conexión a la BD."""
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return {"status": "ready"}
    except Exception:
        # No exponer detalles del error al cliente.
        logger.exception("[DB] Readiness check failed")
        raise HTTPException(status_code=503, detail="not ready")


@router.get("/mqtt/health")
def mqtt_health():
    """Estado del listener de telemetría y del hub de difusión."""
    listener = get_telemetry_listener()
    hub = get_broadcast_hub()

    if listener is None:
        telemetry = {"status": "disabled"}
    else:
        telemetry = listener.health_check()
        telemetry["status"] = "connected" if telemetry["connected"] else "reconnecting"

    return {"telemetry": telemetry, "hub": hub.stats}


@router.get("/metrics")
def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
