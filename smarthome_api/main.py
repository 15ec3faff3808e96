"""Aplicación FastAPI del backend SmartHome.

Arranque (lifespan):
  logging → esquema de BD → hub de difusión → listener MQTT (si FF_MQTT_LISTENER_ENABLED)

Parada en orden inverso. Un broker inaccesible no impide arrancar: el
listener reintenta en segundo plano mientras la API sirve requests.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from common.config import Settings, get_settings
from common.db import configure_database, get_engine, get_session_factory
from common.log import setup_logging
from .domain.errors import DeviceNotFoundError, InvalidDeviceNameError, UnsupportedOperationError
from .endpoints import devices_router, health_router
from .persistence.schema import ensure_schema
from .persistence.unit_of_work import make_unit_of_work_factory
from .realtime.hub import get_broadcast_hub
from .realtime.websocket import router as realtime_router
from .telemetry.runtime import start_telemetry_listener, stop_telemetry_listener

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    setup_logging(settings.log_level)

    ensure_schema(get_engine())

    hub = get_broadcast_hub()
    await hub.start()

    await start_telemetry_listener(make_unit_of_work_factory(get_session_factory()), hub)
    logger.info("[APP] Startup complete")

    try:
        yield
    finally:
        await stop_telemetry_listener()
        await hub.stop()
        logger.info("[APP] Shutdown complete")


async def _device_not_found(request: Request, exc: DeviceNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def _unsupported_operation(request: Request, exc: UnsupportedOperationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


async def _invalid_device_name(request: Request, exc: InvalidDeviceNameError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_database(settings.database_url)

    app = FastAPI(title="SmartHome API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(DeviceNotFoundError, _device_not_found)
    app.add_exception_handler(UnsupportedOperationError, _unsupported_operation)
    app.add_exception_handler(InvalidDeviceNameError, _invalid_device_name)

    app.include_router(health_router)
    app.include_router(devices_router)
    app.include_router(realtime_router)

    return app


app = create_app()
